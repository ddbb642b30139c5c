"""MongoDB adapter with an explicit success/failure result per call.

The adapter owns the single long-lived MongoClient shared by all requests.
It never raises past its own boundary: every operation returns a
StoreResult, and a connectivity-class failure clears the cached availability
flag so later callers go straight to the flat file instead of waiting out
another server-selection timeout.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.errors import ConnectionFailure, PyMongoError

from storage_errors import ConnectivityError, StorageError

logger = logging.getLogger(__name__)

DB_NAME = "student_portal"

COLLECTIONS = {
    "STUDENTS": "students",
    "TERMS": "terms",
    "REPORTS": "reports",
    "BIOGRAPHIES": "biographies",
    "ATTACHMENTS": "attachments",
}

# (collection, key, direction)
REQUIRED_INDEXES = [
    (COLLECTIONS["TERMS"], "AdmissionNumber", ASCENDING),
    (COLLECTIONS["REPORTS"], "AdmissionNumber", ASCENDING),
    (COLLECTIONS["BIOGRAPHIES"], "AdmissionNumber", ASCENDING),
    (COLLECTIONS["ATTACHMENTS"], "AdmissionNumber", ASCENDING),
    (COLLECTIONS["TERMS"], "Timestamp", DESCENDING),
    (COLLECTIONS["REPORTS"], "CreatedAt", DESCENDING),
    (COLLECTIONS["ATTACHMENTS"], "CreatedAt", DESCENDING),
]


@dataclass
class StoreResult:
    """Outcome of one adapter call.

    ``value`` is the acknowledged flag, the list of documents, or the
    matched/deleted flag depending on the operation. ``error`` is set only
    when ``ok`` is False.
    """

    ok: bool
    value: Any = None
    error: StorageError | None = None

    @classmethod
    def success(cls, value: Any = None) -> StoreResult:
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: StorageError) -> StoreResult:
        return cls(ok=False, error=error)

    @property
    def reason(self) -> str:
        return str(self.error) if self.error else ""


class DocumentStore:
    """Wraps a pymongo client and the logical student_portal database."""

    def __init__(self, client_factory=MongoClient):
        self._client_factory = client_factory
        self._client = None
        self._db = None
        self._available = False
        self.db_name = DB_NAME
        self.last_error = ""

    # ── Lifecycle ──────────────────────────────────────────

    def initialize(
        self,
        uri: str,
        db_name: str = DB_NAME,
        connect_timeout_ms: int = 15000,
        server_selection_timeout_ms: int = 10000,
    ) -> bool:
        """Connect and ping. Returns False (never raises) on any failure."""
        self.db_name = db_name or DB_NAME
        if not uri:
            self.last_error = "MONGODB_URI not configured"
            logger.info("MONGODB_URI not set; document store disabled")
            return False

        try:
            logger.info("Attempting MongoDB connection...")
            self._client = self._client_factory(
                uri,
                connectTimeoutMS=connect_timeout_ms,
                serverSelectionTimeoutMS=server_selection_timeout_ms,
            )
            self._db = self._client[self.db_name]
            self._db.command("ping")
        except (PyMongoError, ValueError, TypeError) as e:
            self.last_error = str(e)
            self._available = False
            logger.warning("MongoDB connection failed: %s", e)
            self.close()
            return False

        self._available = True
        self.last_error = ""
        logger.info("MongoDB connected (database=%s)", self.db_name)
        return True

    def ensure_indexes(self) -> StoreResult:
        """Create the lookup and timestamp indexes used by the repository."""
        if not self._available:
            return StoreResult.failure(ConnectivityError("document store not available"))
        try:
            for collection, key, direction in REQUIRED_INDEXES:
                self._db[collection].create_index([(key, direction)])
        except PyMongoError as e:
            return self._fail("create_index", e)
        logger.info("MongoDB collections initialized with indexes")
        return StoreResult.success(True)

    def is_available(self) -> bool:
        return self._available

    def mark_unavailable(self, reason: str) -> None:
        if self._available:
            logger.warning("Document store marked unavailable: %s", reason)
        self._available = False
        self.last_error = reason

    def close(self) -> None:
        if self._client is not None:
            try:
                self._client.close()
            except PyMongoError as e:
                logger.debug("Error closing MongoClient: %s", e)
        self._client = None
        self._db = None

    def status(self) -> dict[str, Any]:
        """Live connection check for the status endpoint."""
        if not self._available:
            return {
                "success": False,
                "message": "MongoDB not connected - using CSV fallback",
                "mode": "CSV",
            }
        try:
            self._db.command("ping")
            names = self._db.list_collection_names()
        except PyMongoError as e:
            self._fail("status", e)
            return {
                "success": False,
                "message": "MongoDB connection test failed",
                "mode": "CSV",
                "error": str(e),
            }
        return {
            "success": True,
            "message": "MongoDB connected successfully",
            "mode": "MongoDB",
            "collections": sorted(names),
            "database": self.db_name,
        }

    # ── Operations ─────────────────────────────────────────

    def _fail(self, op: str, exc: PyMongoError) -> StoreResult:
        if isinstance(exc, ConnectionFailure):
            self.mark_unavailable(f"{op}: {exc}")
            return StoreResult.failure(ConnectivityError(str(exc)))
        logger.warning("MongoDB %s failed: %s", op, exc)
        return StoreResult.failure(StorageError(str(exc)))

    def _collection(self, name: str):
        if not self._available or self._db is None:
            raise ConnectionFailure("document store not available")
        return self._db[name]

    def insert(self, collection: str, record: dict[str, Any]) -> StoreResult:
        try:
            result = self._collection(collection).insert_one(dict(record))
        except PyMongoError as e:
            return self._fail("insert", e)
        return StoreResult.success(bool(result.acknowledged))

    def find(
        self,
        collection: str,
        filter: dict[str, Any],
        sort_field: str | None = None,
        sort_descending: bool = True,
    ) -> StoreResult:
        try:
            cursor = self._collection(collection).find(filter)
            if sort_field:
                cursor = cursor.sort(sort_field, DESCENDING if sort_descending else ASCENDING)
            docs = list(cursor)
        except PyMongoError as e:
            return self._fail("find", e)
        return StoreResult.success(docs)

    def update_one(
        self,
        collection: str,
        filter: dict[str, Any],
        patch: dict[str, Any],
        upsert: bool = False,
    ) -> StoreResult:
        """``$set`` the patch on the first match.

        ``value`` is True when a document matched or was upserted; a patch
        that leaves the document unchanged still counts as matched.
        """
        try:
            result = self._collection(collection).update_one(filter, {"$set": patch}, upsert=upsert)
        except PyMongoError as e:
            return self._fail("update_one", e)
        matched = result.matched_count > 0 or result.upserted_id is not None
        return StoreResult.success(matched)

    def delete_one(self, collection: str, filter: dict[str, Any]) -> StoreResult:
        try:
            result = self._collection(collection).delete_one(filter)
        except PyMongoError as e:
            return self._fail("delete_one", e)
        return StoreResult.success(result.deleted_count > 0)

    def delete_many(self, collection: str, filter: dict[str, Any]) -> StoreResult:
        try:
            result = self._collection(collection).delete_many(filter)
        except PyMongoError as e:
            return self._fail("delete_many", e)
        return StoreResult.success(result.deleted_count)
