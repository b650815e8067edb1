"""HTTP wire layer (FastAPI) over the ledger services."""

from ledger_api.app import create_app

__all__ = ["create_app"]
