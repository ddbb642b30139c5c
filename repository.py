"""Backend-agnostic student record repository.

Terms, reports, biographies and uploaded attachments are read and written
through one API. Each operation tries the document store when the selector
says it is usable; if that attempt fails, the same operation is answered by
the CSV table for this call. Callers never learn which backend served them:
records come back as plain string mappings with an ``id`` field that works
as a delete/update key on either backend.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from bson import ObjectId

from document_store import COLLECTIONS
from flat_file import FlatFileTable
from storage_backend import BackendSelector
from storage_errors import NotFoundError, StorageError, UnsupportedOperationError

logger = logging.getLogger(__name__)

TERM_FIELDS = (
    "AdmissionNumber",
    "TermName",
    "ExecutiveSummary",
    "AcademicOverview",
    "AcademicGrade",
    "AcademicRank",
    "AcademicStrengths",
    "AcademicChallenges",
    "PersonalSchool",
    "PersonalExtra",
    "HomeEnvironment",
    "HomeUpdateMethod",
    "NextTermDate",
    "GoalsAcademic",
    "GoalsPersonal",
    "FeesAmount",
    "FeesDueDate",
    "UniformNotes",
    "BookList",
    "TransportNotes",
    "OtherNeeds",
    "RecommendAcademic",
    "RecommendMaterial",
    "ConcludingRemark",
    "Timestamp",
)
REPORT_FIELDS = ("AdmissionNumber", "Filename", "PublicId", "CreatedAt")
BIOGRAPHY_FIELDS = ("AdmissionNumber", "Biography", "LastUpdated")
ATTACHMENT_FIELDS = ("AdmissionNumber", "Category", "Filename", "PublicId", "Url", "Note", "CreatedAt")

ATTACHMENT_CATEGORIES = ("gallery", "results", "letters")

# Form field name -> stored column
TERM_FORM_FIELDS = {
    "termName": "TermName",
    "executiveSummary": "ExecutiveSummary",
    "academicOverview": "AcademicOverview",
    "academicGrade": "AcademicGrade",
    "academicRank": "AcademicRank",
    "academicStrengths": "AcademicStrengths",
    "academicChallenges": "AcademicChallenges",
    "personalSchool": "PersonalSchool",
    "personalExtra": "PersonalExtra",
    "homeEnvironment": "HomeEnvironment",
    "homeUpdateMethod": "HomeUpdateMethod",
    "nextTermDate": "NextTermDate",
    "goalsAcademic": "GoalsAcademic",
    "goalsPersonal": "GoalsPersonal",
    "feesAmount": "FeesAmount",
    "feesDueDate": "FeesDueDate",
    "uniformNotes": "UniformNotes",
    "bookList": "BookList",
    "transportNotes": "TransportNotes",
    "otherNeeds": "OtherNeeds",
    "recommendAcademic": "RecommendAcademic",
    "recommendMaterial": "RecommendMaterial",
    "concludingRemark": "ConcludingRemark",
}

# Passed through as given; every other term column defaults to "".
TERM_PASSTHROUGH_FIELDS = ("TermName", "NextTermDate", "ConcludingRemark")

REQUIRED_TERM_FORM_FIELDS = (
    "termName",
    "executiveSummary",
    "academicOverview",
    "nextTermDate",
    "concludingRemark",
)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class Status(str, enum.Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    UNSUPPORTED = "unsupported"
    FAILED = "failed"


@dataclass
class OperationResult:
    """Outcome of a repository mutation. Truthy iff it succeeded."""

    success: bool
    status: Status
    message: str = ""
    backend: str = ""

    def __bool__(self) -> bool:
        return self.success

    def to_dict(self) -> dict[str, Any]:
        return {"success": self.success, "status": self.status.value, "message": self.message}

    def raise_for_status(self) -> None:
        """Raise the matching StorageError subclass if the operation failed."""
        if self.success:
            return
        error_cls = {
            Status.NOT_FOUND: NotFoundError,
            Status.UNSUPPORTED: UnsupportedOperationError,
        }.get(self.status, StorageError)
        raise error_cls(self.message)


def _ok(backend: str, message: str = "") -> OperationResult:
    return OperationResult(True, Status.OK, message, backend)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(dt: datetime) -> str:
    """ISO-8601 in UTC with a trailing Z."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds").replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    """Parse a stored timestamp; unparseable values sort last."""
    if not value:
        return _EPOCH
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return _EPOCH
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def term_fields_from_form(form: Mapping[str, Any]) -> dict[str, Any]:
    """Map camelCase form keys (or column names) onto term columns."""
    fields: dict[str, Any] = {}
    for form_key, column in TERM_FORM_FIELDS.items():
        if form_key in form:
            fields[column] = form[form_key]
        elif column in form:
            fields[column] = form[column]
    return fields


# ── Record kinds ──────────────────────────────────────────


class _RecordKind:
    """Shared routing logic for one collection / CSV table pair."""

    collection: str = ""
    timestamp_field: str = ""
    key_field: str = ""

    def __init__(self, selector: BackendSelector, table: FlatFileTable, clock: Callable[[], datetime]):
        self.selector = selector
        self.table = table
        self._clock = clock

    @property
    def _store(self):
        return self.selector.document_store

    def _now(self) -> str:
        return format_timestamp(self._clock())

    def _normalize_doc(self, doc: Mapping[str, Any]) -> dict[str, str]:
        record = {}
        for name in self.table.fields:
            value = doc.get(name)
            record[name] = "" if value is None else str(value)
        record["id"] = str(doc.get("_id", "")) or record.get(self.key_field, "")
        return record

    def _normalize_row(self, row: Mapping[str, str]) -> dict[str, str]:
        record = {name: row.get(name, "") for name in self.table.fields}
        record["id"] = record.get(self.key_field, "")
        return record

    def _sorted(self, records: list[dict[str, str]]) -> list[dict[str, str]]:
        return sorted(records, key=lambda r: parse_timestamp(r.get(self.timestamp_field, "")), reverse=True)

    def _key_filter(self, adm_no: str, key: str) -> dict[str, Any]:
        if ObjectId.is_valid(key):
            return {
                "AdmissionNumber": adm_no,
                "$or": [{"_id": ObjectId(key)}, {self.key_field: key}],
            }
        return {"AdmissionNumber": adm_no, self.key_field: key}

    def _row_matches_key(self, row: Mapping[str, str], adm_no: str, key: str) -> bool:
        return row.get("AdmissionNumber") == adm_no and row.get(self.key_field) == key

    def _merged(self, docs: list[dict[str, str]], rows: list[dict[str, str]]) -> list[dict[str, str]]:
        """Newest first, one record per key; documents win ties."""
        merged = []
        seen = set()
        for record in self._sorted(docs + rows):
            key = record.get(self.key_field) or record["id"]
            if key in seen:
                continue
            seen.add(key)
            merged.append(record)
        return merged

    # Routed primitives

    def _list(self, mongo_filter: dict[str, Any], row_filter: Callable[[Mapping[str, str]], bool]) -> list[dict[str, str]]:
        rows = [self._normalize_row(r) for r in self.table.read_all() if row_filter(r)]
        if self.selector.use_document_store():
            result = self._store.find(self.collection, mongo_filter, self.timestamp_field, True)
            if result.ok:
                # Rows written to CSV after a failed insert stay visible.
                return self._merged([self._normalize_doc(d) for d in result.value], rows)
            logger.warning("%s lookup fell back to CSV: %s", self.collection, result.reason)
        return self._sorted(rows)

    def _insert(self, record: dict[str, Any]) -> OperationResult:
        if self.selector.use_document_store():
            result = self._store.insert(self.collection, record)
            if result.ok and result.value:
                return _ok("MongoDB")
            logger.warning("%s insert fell back to CSV: %s", self.collection, result.reason or "not acknowledged")
        if self.table.append(record):
            return _ok("CSV")
        return OperationResult(False, Status.FAILED, f"could not write {self.table.path.name}", "CSV")

    def _delete_rows(self, row_matches: Callable[[Mapping[str, str]], bool], many: bool = False) -> OperationResult:
        with self.table.locked():
            try:
                rows = self.table.read_all(strict=True)
            except StorageError as e:
                logger.error("Refusing to rewrite %s: %s", self.table.path.name, e)
                return OperationResult(False, Status.FAILED, f"could not read {self.table.path.name}", "CSV")
            if many:
                kept = [r for r in rows if not row_matches(r)]
            else:
                index = next((i for i, r in enumerate(rows) if row_matches(r)), None)
                kept = rows if index is None else rows[:index] + rows[index + 1:]
            if len(kept) == len(rows):
                return OperationResult(False, Status.NOT_FOUND, "no matching record", "CSV")
            if not self.table.rewrite(kept):
                return OperationResult(False, Status.FAILED, f"could not write {self.table.path.name}", "CSV")
        return _ok("CSV")

    def _delete(
        self,
        mongo_filter: dict[str, Any],
        row_matches: Callable[[Mapping[str, str]], bool],
        many: bool = False,
    ) -> OperationResult:
        """Delete one matching record, or every match when ``many`` is set.

        A record missing from the document store is looked for in the CSV
        table, where a failed insert may have put it.
        """
        deleted = False
        if self.selector.use_document_store():
            op = self._store.delete_many if many else self._store.delete_one
            result = op(self.collection, mongo_filter)
            if result.ok:
                deleted = bool(result.value)
                if deleted and not many:
                    return _ok("MongoDB")
            else:
                logger.warning("%s delete fell back to CSV: %s", self.collection, result.reason)

        csv_result = self._delete_rows(row_matches, many)
        if deleted and csv_result.status is not Status.FAILED:
            return _ok("MongoDB")
        return csv_result

    # Public API shared by all kinds

    def list_for(self, adm_no: str) -> list[dict[str, str]]:
        return self._list({"AdmissionNumber": adm_no}, lambda r: r.get("AdmissionNumber") == adm_no)

    def find(self, adm_no: str, key: str) -> dict[str, str] | None:
        for record in self.list_for(adm_no):
            if key in (record["id"], record.get(self.key_field)):
                return record
        return None

    def remove(self, adm_no: str, key: str) -> OperationResult:
        return self._delete(
            self._key_filter(adm_no, key),
            lambda r: self._row_matches_key(r, adm_no, key),
        )


class TermStore(_RecordKind):
    collection = COLLECTIONS["TERMS"]
    timestamp_field = "Timestamp"
    key_field = "Timestamp"

    def latest_for(self, adm_no: str) -> dict[str, str] | None:
        terms = self.list_for(adm_no)
        return terms[0] if terms else None

    def add(self, adm_no: str, fields: Mapping[str, Any]) -> OperationResult:
        values = term_fields_from_form(fields)
        record: dict[str, Any] = {"AdmissionNumber": adm_no}
        for column in TERM_FIELDS[1:-1]:
            value = values.get(column)
            if column in TERM_PASSTHROUGH_FIELDS:
                record[column] = value
            else:
                record[column] = value or ""
        record["Timestamp"] = self._now()
        return self._insert(record)

    def update(self, adm_no: str, key: str, patch: Mapping[str, Any]) -> OperationResult:
        """Patch a stored term. Only the document store supports this."""
        if not self.selector.use_document_store():
            return OperationResult(
                False,
                Status.UNSUPPORTED,
                "Term updates need the document store; delete and re-add the term instead.",
                "CSV",
            )
        changes = {k: ("" if v is None else v) for k, v in term_fields_from_form(patch).items()}
        if not changes:
            return OperationResult(False, Status.FAILED, "no updatable fields supplied", "MongoDB")

        result = self._store.update_one(self.collection, self._key_filter(adm_no, key), changes, upsert=False)
        if not result.ok:
            return OperationResult(
                False,
                Status.UNSUPPORTED,
                f"Document store unavailable ({result.reason}); delete and re-add the term instead.",
                "CSV",
            )
        if not result.value:
            if any(self._row_matches_key(r, adm_no, key) for r in self.table.read_all()):
                return OperationResult(
                    False,
                    Status.UNSUPPORTED,
                    "This term is stored in the CSV fallback; delete and re-add it instead.",
                    "CSV",
                )
            return OperationResult(False, Status.NOT_FOUND, "no matching term", "MongoDB")
        return _ok("MongoDB")


class ReportStore(_RecordKind):
    collection = COLLECTIONS["REPORTS"]
    timestamp_field = "CreatedAt"
    key_field = "PublicId"

    def add(self, adm_no: str, filename: str, public_id: str) -> OperationResult:
        return self._insert({
            "AdmissionNumber": adm_no,
            "Filename": filename,
            "PublicId": public_id,
            "CreatedAt": self._now(),
        })


class AttachmentStore(_RecordKind):
    """Gallery photos, result slips and letters uploaded for a student."""

    collection = COLLECTIONS["ATTACHMENTS"]
    timestamp_field = "CreatedAt"
    key_field = "PublicId"

    def list_for(self, adm_no: str, category: str | None = None) -> list[dict[str, str]]:
        if category is None:
            return super().list_for(adm_no)
        return self._list(
            {"AdmissionNumber": adm_no, "Category": category},
            lambda r: r.get("AdmissionNumber") == adm_no and r.get("Category") == category,
        )

    def add(
        self,
        adm_no: str,
        category: str,
        filename: str,
        public_id: str,
        url: str = "",
        note: str = "",
    ) -> OperationResult:
        if category not in ATTACHMENT_CATEGORIES:
            return OperationResult(False, Status.FAILED, f"unknown category {category!r}")
        return self._insert({
            "AdmissionNumber": adm_no,
            "Category": category,
            "Filename": filename,
            "PublicId": public_id,
            "Url": url,
            "Note": note or "",
            "CreatedAt": self._now(),
        })


class BiographyStore(_RecordKind):
    """At most one biography per student; uniqueness is enforced here."""

    collection = COLLECTIONS["BIOGRAPHIES"]
    timestamp_field = "LastUpdated"
    key_field = "AdmissionNumber"

    def get(self, adm_no: str) -> str:
        records = self.list_for(adm_no)
        return records[0]["Biography"] if records else ""

    def add(self, adm_no: str, text: str) -> OperationResult:
        record = {"AdmissionNumber": adm_no, "Biography": text or "", "LastUpdated": self._now()}

        if self.selector.use_document_store():
            result = self._store.update_one(self.collection, {"AdmissionNumber": adm_no}, record, upsert=True)
            if result.ok:
                return _ok("MongoDB")
            logger.warning("biography upsert fell back to CSV: %s", result.reason)

        with self.table.locked():
            try:
                rows = [r for r in self.table.read_all(strict=True) if r.get("AdmissionNumber") != adm_no]
            except StorageError as e:
                logger.error("Refusing to rewrite %s: %s", self.table.path.name, e)
                return OperationResult(False, Status.FAILED, f"could not read {self.table.path.name}", "CSV")
            rows.append(record)
            if not self.table.rewrite(rows):
                return OperationResult(False, Status.FAILED, f"could not write {self.table.path.name}", "CSV")
        return _ok("CSV")

    update = add

    def remove(self, adm_no: str, key: str | None = None) -> OperationResult:
        """Drop every stored biography for the student, on both backends."""
        return self._delete(
            {"AdmissionNumber": adm_no},
            lambda r: r.get("AdmissionNumber") == adm_no,
            many=True,
        )


# ── Repository ────────────────────────────────────────────


class StudentRecordRepository:
    """Uniform entry point for all per-student records."""

    def __init__(
        self,
        selector: BackendSelector,
        terms_table: FlatFileTable,
        reports_table: FlatFileTable,
        biographies_table: FlatFileTable,
        attachments_table: FlatFileTable,
        clock: Callable[[], datetime] | None = None,
    ):
        clock = clock or _utcnow
        self.selector = selector
        self.terms = TermStore(selector, terms_table, clock)
        self.reports = ReportStore(selector, reports_table, clock)
        self.biographies = BiographyStore(selector, biographies_table, clock)
        self.attachments = AttachmentStore(selector, attachments_table, clock)

    @classmethod
    def with_data_dir(
        cls,
        selector: BackendSelector,
        data_dir: Path | str,
        clock: Callable[[], datetime] | None = None,
    ) -> StudentRecordRepository:
        data_dir = Path(data_dir)
        return cls(
            selector,
            FlatFileTable(data_dir / "terms.csv", TERM_FIELDS),
            FlatFileTable(data_dir / "reports.csv", REPORT_FIELDS),
            FlatFileTable(data_dir / "biographies.csv", BIOGRAPHY_FIELDS),
            FlatFileTable(data_dir / "attachments.csv", ATTACHMENT_FIELDS),
            clock=clock,
        )

    @property
    def tables(self) -> list[FlatFileTable]:
        return [self.terms.table, self.reports.table, self.biographies.table, self.attachments.table]

    def ensure_initialized(self) -> None:
        for table in self.tables:
            table.ensure_initialized()

    @property
    def mode(self) -> str:
        return self.selector.effective_mode
