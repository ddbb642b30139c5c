"""Backend selection and degradation for student record storage.

Mirrors the cache backend's "try Redis, fall back to memory" setup, but the
state lives on an explicitly constructed BackendSelector that the repository
receives at construction, not on a module global.

Usage:
    from storage_backend import init_storage, get_repository
    init_storage(app)          # called once in create_app()
    repo = get_repository()    # inside a request / app context
"""

from __future__ import annotations

import enum
import logging
from pathlib import Path

from flask import current_app

from document_store import DB_NAME, DocumentStore

logger = logging.getLogger(__name__)


class BackendState(str, enum.Enum):
    UNINITIALIZED = "UNINITIALIZED"
    PROBING = "PROBING"
    MONGO_ACTIVE = "MONGO_ACTIVE"
    CSV_ONLY = "CSV_ONLY"


class BackendSelector:
    """Decides, per call, whether the document store should be tried.

    UNINITIALIZED -> PROBING -> MONGO_ACTIVE | CSV_ONLY. CSV_ONLY is terminal
    for the life of the process. In MONGO_ACTIVE the adapter's availability
    flag is re-read before every call; once the adapter has cleared it the
    effective mode is CSV, although the recorded state is left alone.
    """

    def __init__(self, document_store: DocumentStore | None = None):
        self.document_store = document_store or DocumentStore()
        self.state = BackendState.UNINITIALIZED

    def initialize(
        self,
        uri: str,
        db_name: str = DB_NAME,
        connect_timeout_ms: int = 15000,
        server_selection_timeout_ms: int = 10000,
    ) -> BackendState:
        if self.state is not BackendState.UNINITIALIZED:
            return self.state

        self.state = BackendState.PROBING
        connected = self.document_store.initialize(
            uri,
            db_name=db_name,
            connect_timeout_ms=connect_timeout_ms,
            server_selection_timeout_ms=server_selection_timeout_ms,
        )
        if not connected:
            return self._demote("connection unavailable")

        indexed = self.document_store.ensure_indexes()
        if not indexed.ok:
            self.document_store.mark_unavailable(f"index creation failed: {indexed.reason}")
            return self._demote(f"index creation failed: {indexed.reason}")

        self.state = BackendState.MONGO_ACTIVE
        logger.info("Storage mode: MongoDB")
        return self.state

    def _demote(self, reason: str) -> BackendState:
        self.state = BackendState.CSV_ONLY
        logger.info("Storage mode: CSV (%s)", reason)
        return self.state

    def use_document_store(self) -> bool:
        return self.state is BackendState.MONGO_ACTIVE and self.document_store.is_available()

    @property
    def effective_mode(self) -> str:
        return "MongoDB" if self.use_document_store() else "CSV"

    def status(self) -> dict:
        if self.state is not BackendState.MONGO_ACTIVE:
            return {
                "success": False,
                "message": "MongoDB not connected - using CSV fallback",
                "mode": "CSV",
                "state": self.state.value,
            }
        result = self.document_store.status()
        result["state"] = self.state.value
        return result


def build_repository(config, selector: BackendSelector | None = None):
    """Construct a repository whose flat files live in config['DATA_DIR']."""
    from repository import StudentRecordRepository

    data_dir = Path(config.get("DATA_DIR") or Path(__file__).parent / "data")
    selector = selector or BackendSelector()
    repo = StudentRecordRepository.with_data_dir(selector, data_dir)
    repo.ensure_initialized()
    return repo


def init_storage(app, selector: BackendSelector | None = None):
    """Probe the document store once and attach the repository to the app."""
    repo = build_repository(app.config, selector)
    repo.selector.initialize(
        app.config.get("MONGODB_URI", ""),
        db_name=app.config.get("MONGODB_DB_NAME", DB_NAME),
        connect_timeout_ms=int(app.config.get("MONGO_CONNECT_TIMEOUT_MS", 15000)),
        server_selection_timeout_ms=int(app.config.get("MONGO_SERVER_SELECTION_TIMEOUT_MS", 10000)),
    )
    app.extensions["repository"] = repo
    app.logger.info("Storage backend: %s (state=%s)", repo.selector.effective_mode, repo.selector.state.value)
    return repo


def get_repository():
    """Return the repository attached to the current app."""
    return current_app.extensions["repository"]
