"""
Ledger configuration (``ledger_config``).

The single runtime entrypoint is ``get_active_config()``.  It returns the
configuration set named by the ``LEDGER_CONFIG_PATH`` environment variable,
or the packaged SKR03 set.
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path

from ledger_config.loader import load_config
from ledger_config.schema import AccountDef, LedgerConfig, PostingPolicyDef, TaxKeyDef

__all__ = [
    "AccountDef",
    "LedgerConfig",
    "PostingPolicyDef",
    "TaxKeyDef",
    "DEFAULT_CONFIG_PATH",
    "get_active_config",
]

_logger = logging.getLogger("ledger_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "skr03.yaml"


@lru_cache(maxsize=8)
def _load_cached(path: str) -> LedgerConfig:
    config = load_config(Path(path))
    _logger.info(
        "ledger_config_loaded",
        extra={
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "account_count": len(config.accounts),
            "tax_key_count": len(config.tax_keys),
        },
    )
    return config


def get_active_config(path: Path | str | None = None) -> LedgerConfig:
    """
    Load the active configuration set (cached per path).

    Raises:
        FileNotFoundError: No file at the resolved path.
        ValueError: Configuration validation failed.
    """
    resolved = path or os.environ.get("LEDGER_CONFIG_PATH") or DEFAULT_CONFIG_PATH
    return _load_cached(str(resolved))
