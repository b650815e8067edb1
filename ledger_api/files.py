"""
Storage for uploaded document scans.

The engine only records file name and location on the document; the bytes
go to a ``FileStore``.
"""

from pathlib import Path
from typing import Protocol
from uuid import UUID

from ledger_kernel.exceptions import ValidationError
from ledger_kernel.logging_config import get_logger

logger = get_logger("api.files")


class FileStore(Protocol):
    def save(self, document_id: UUID, file_name: str, content: bytes) -> str:
        """Store ``content`` and return its location."""
        ...


class LocalFileStore:
    """Files under ``root/<document_id>/<file_name>``."""

    def __init__(self, root: Path | str):
        self.root = Path(root)

    def save(self, document_id: UUID, file_name: str, content: bytes) -> str:
        name = Path(file_name or "").name
        if not name or name in (".", ".."):
            raise ValidationError("Upload needs a file name", field="file", step="validate")
        target_dir = self.root / str(document_id)
        target_dir.mkdir(parents=True, exist_ok=True)
        target = target_dir / name
        target.write_bytes(content)
        logger.info(
            "document_file_stored",
            extra={"document_id": document_id, "file_name": name, "size": len(content)},
        )
        return str(target)
