"""
Test fixtures for the sponsorship portal.

Provides app, client and repository fixtures backed by a temporary DATA_DIR.
MongoDB is never contacted: tests that need the document store path inject
FakeDocumentStore, an in-memory stand-in with the adapter's interface.
"""

from __future__ import annotations

import csv
import itertools
from datetime import datetime, timedelta, timezone

import pytest
from bson import ObjectId

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from document_store import StoreResult  # noqa: E402
from storage_errors import ConnectivityError, StorageError  # noqa: E402

STUDENT_COLUMNS = [
    "Admission Number", "Full Name", "Department", "Class", "Email",
    "Contact", "Place of Residence", "Photo", "Small Biography", "Gender",
    "Date of Birth", "School",
]

STUDENTS = [
    {
        "Admission Number": "A123", "Full Name": "Amina Wanjiru", "Department": "Germans",
        "Class": "Form 2", "Email": "amina@example.com", "Contact": "0700000001",
        "Place of Residence": "Nairobi", "Photo": "amina.jpg",
        "Small Biography": "Loves chemistry.", "Gender": "Female",
        "Date of Birth": "2009-04-01", "School": "Daisy High",
    },
    {
        "Admission Number": "B456", "Full Name": "Brian Otieno", "Department": "Italians",
        "Class": "Pri. 6", "Email": "", "Contact": "", "Place of Residence": "Kisumu",
        "Photo": "", "Small Biography": "", "Gender": "Male",
        "Date of Birth": "2013-09-12", "School": "Daisy Primary",
    },
    {
        "Admission Number": "C789", "Full Name": "Cynthia Mwangi", "Department": "Education for Generations",
        "Class": "Yr 2", "Email": "", "Contact": "", "Place of Residence": "Nakuru",
        "Photo": "static/images/cynthia.png", "Small Biography": "", "Gender": "Female",
        "Date of Birth": "2003-01-20", "School": "Egerton University",
    },
]


def write_students(path: Path, rows=STUDENTS) -> None:
    with open(path, "w", encoding="utf-8", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=STUDENT_COLUMNS)
        writer.writeheader()
        writer.writerows(rows)


# ── Fake document store ───────────────────────────────────


def _matches(doc: dict, flt: dict) -> bool:
    for key, expected in flt.items():
        if key == "$or":
            if not any(_matches(doc, sub) for sub in expected):
                return False
        elif doc.get(key) != expected:
            return False
    return True


class FakeDocumentStore:
    """In-memory document store with the DocumentStore call surface.

    Set ``fail_next`` to an exception instance to make the next operation
    fail the way the real adapter reports it.
    """

    def __init__(self, connect: bool = True, index_ok: bool = True):
        self.connect = connect
        self.index_ok = index_ok
        self.collections: dict[str, list[dict]] = {}
        self._available = False
        self.fail_next: StorageError | None = None
        self.calls: list[str] = []
        self.initialize_calls = 0

    def initialize(self, uri, db_name="student_portal", connect_timeout_ms=15000, server_selection_timeout_ms=10000):
        self.initialize_calls += 1
        self._available = bool(uri) and self.connect
        return self._available

    def ensure_indexes(self):
        if not self.index_ok:
            return StoreResult.failure(StorageError("index build refused"))
        return StoreResult.success(True)

    def is_available(self):
        return self._available

    def mark_unavailable(self, reason):
        self._available = False

    def status(self):
        return {
            "success": True,
            "message": "MongoDB connected successfully",
            "mode": "MongoDB",
            "collections": sorted(self.collections),
            "database": "student_portal",
        }

    def _check(self, op):
        self.calls.append(op)
        if self.fail_next is not None:
            error, self.fail_next = self.fail_next, None
            if isinstance(error, ConnectivityError):
                self._available = False
            return StoreResult.failure(error)
        if not self._available:
            return StoreResult.failure(ConnectivityError("document store not available"))
        return None

    def insert(self, collection, record):
        failed = self._check("insert")
        if failed:
            return failed
        doc = dict(record)
        doc["_id"] = ObjectId()
        self.collections.setdefault(collection, []).append(doc)
        return StoreResult.success(True)

    def find(self, collection, filter, sort_field=None, sort_descending=True):
        failed = self._check("find")
        if failed:
            return failed
        docs = [dict(d) for d in self.collections.get(collection, []) if _matches(d, filter)]
        if sort_field:
            docs.sort(key=lambda d: d.get(sort_field, ""), reverse=sort_descending)
        return StoreResult.success(docs)

    def update_one(self, collection, filter, patch, upsert=False):
        failed = self._check("update_one")
        if failed:
            return failed
        for doc in self.collections.get(collection, []):
            if _matches(doc, filter):
                doc.update(patch)
                return StoreResult.success(True)
        if upsert:
            doc = {**{k: v for k, v in filter.items() if not k.startswith("$")}, **patch, "_id": ObjectId()}
            self.collections.setdefault(collection, []).append(doc)
            return StoreResult.success(True)
        return StoreResult.success(False)

    def delete_one(self, collection, filter):
        failed = self._check("delete_one")
        if failed:
            return failed
        docs = self.collections.get(collection, [])
        for i, doc in enumerate(docs):
            if _matches(doc, filter):
                del docs[i]
                return StoreResult.success(True)
        return StoreResult.success(False)

    def delete_many(self, collection, filter):
        failed = self._check("delete_many")
        if failed:
            return failed
        docs = self.collections.get(collection, [])
        kept = [d for d in docs if not _matches(d, filter)]
        self.collections[collection] = kept
        return StoreResult.success(len(docs) - len(kept))


class FakeClock:
    """Deterministic clock; each call advances one second."""

    def __init__(self, start=datetime(2025, 1, 1, tzinfo=timezone.utc)):
        self._ticks = itertools.count()
        self._start = start

    def __call__(self):
        return self._start + timedelta(seconds=next(self._ticks))


# ── Fixtures ──────────────────────────────────────────────


@pytest.fixture(autouse=True)
def reset_singletons():
    """Module-level cache and task queue must not leak between tests."""
    import cache_backend
    import tasks
    cache_backend._cache = None
    tasks._queue = None
    yield
    cache_backend._cache = None
    tasks._queue = None


@pytest.fixture
def data_dir(tmp_path):
    d = tmp_path / "data"
    d.mkdir()
    write_students(d / "students.csv")
    return d


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store_cls():
    return FakeDocumentStore


@pytest.fixture
def fake_store():
    return FakeDocumentStore()


@pytest.fixture
def csv_repo(data_dir, clock):
    """Repository whose selector never connected (CSV_ONLY)."""
    from repository import StudentRecordRepository
    from storage_backend import BackendSelector

    selector = BackendSelector(FakeDocumentStore())
    selector.initialize("")
    repo = StudentRecordRepository.with_data_dir(selector, data_dir, clock=clock)
    repo.ensure_initialized()
    return repo


@pytest.fixture
def mongo_repo(data_dir, clock, fake_store):
    """Repository with an active (fake) document store."""
    from repository import StudentRecordRepository
    from storage_backend import BackendSelector

    selector = BackendSelector(fake_store)
    selector.initialize("mongodb://fake")
    repo = StudentRecordRepository.with_data_dir(selector, data_dir, clock=clock)
    repo.ensure_initialized()
    return repo


@pytest.fixture
def app(data_dir):
    """App on CSV storage with a seeded students.csv."""
    from app import create_app

    app = create_app({
        "TESTING": True,
        "SECRET_KEY": "test-secret-key",
        "DATA_DIR": str(data_dir),
        "STUDENTS_CSV": str(data_dir / "students.csv"),
        "CONTACT_EMAIL": "office@example.com",
    })
    yield app


@pytest.fixture
def mongo_app(data_dir, fake_store):
    """App whose selector wraps FakeDocumentStore and is MONGO_ACTIVE."""
    from app import create_app
    from storage_backend import BackendSelector

    app = create_app({
        "TESTING": True,
        "SECRET_KEY": "test-secret-key",
        "DATA_DIR": str(data_dir),
        "STUDENTS_CSV": str(data_dir / "students.csv"),
        "MONGODB_URI": "mongodb://fake",
    }, selector=BackendSelector(fake_store))
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def mongo_client(mongo_app):
    return mongo_app.test_client()


@pytest.fixture
def fake_redis():
    """Dict-backed object with the few redis.Redis methods the code calls."""

    class _FakeRedis:
        def __init__(self):
            self.store = {}

        def get(self, key):
            return self.store.get(key)

        def setex(self, key, ttl, value):
            self.store[key] = value.encode() if isinstance(value, str) else value

        def delete(self, *keys):
            for k in keys:
                self.store.pop(k, None)

        def scan_iter(self, match="*"):
            prefix = match.rstrip("*")
            return [k for k in list(self.store) if k.startswith(prefix)]

        def ping(self):
            return True

    return _FakeRedis()
