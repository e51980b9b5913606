"""Authoritative host: table store, intent service, projections and the WebSocket server."""

from .projection import project_table
from .service import IntentResult, TableService
from .store import InMemoryStore, VersionMismatch

__all__ = ["project_table", "IntentResult", "TableService", "InMemoryStore", "VersionMismatch"]
