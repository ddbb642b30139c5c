"""CSV-backed table used when the document store is unavailable.

One file per record kind, header row first. Inserts append a single line;
deletes and biography upserts rewrite the whole file. There is no update in
place. A rewrite is not transactional: a crash mid-write can lose rows.
"""

from __future__ import annotations

import fcntl
import logging
from collections.abc import Iterable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from pathlib import Path

from csv_codec import LINE_TERMINATOR, encode_row, iter_records
from storage_errors import MalformedRecordError, StorageError

logger = logging.getLogger(__name__)


class FlatFileTable:
    """A named collection of same-shaped records in one CSV file."""

    def __init__(self, path: Path | str, fields: Sequence[str]):
        self.path = Path(path)
        self.fields: tuple[str, ...] = tuple(fields)

    def __repr__(self) -> str:
        return f"FlatFileTable({self.path.name!r})"

    @property
    def lock_path(self) -> Path:
        return self.path.with_suffix(self.path.suffix + ".lock")

    def ensure_initialized(self) -> None:
        """Create the file with only its header row if it does not exist."""
        if self.path.exists():
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "x", encoding="utf-8", newline="") as f:
            f.write(encode_row(self.fields) + LINE_TERMINATOR)

    @contextmanager
    def locked(self) -> Iterator[None]:
        """Hold an exclusive lock on the sidecar lock file.

        Serializes read-modify-rewrite cycles between workers on one host.
        Not re-entrant.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        lock_file = None
        try:
            lock_file = open(self.lock_path, "w")
            fcntl.flock(lock_file, fcntl.LOCK_EX)
        except OSError as e:
            logger.warning("Could not lock %s (%s); continuing unlocked", self.lock_path, e)
            if lock_file:
                lock_file.close()
            lock_file = None
        try:
            yield
        finally:
            if lock_file:
                fcntl.flock(lock_file, fcntl.LOCK_UN)
                lock_file.close()

    def read_all(self, strict: bool = False) -> list[dict[str, str]]:
        """Return every data row as a field-name mapping.

        The file's own header decides column order, so rows written under an
        older field list still map correctly. Missing columns read as "".

        An unreadable file reads as empty unless ``strict`` is set, in which
        case a StorageError is raised. Anything that rewrites the file from
        what it read must pass ``strict=True``.
        """
        if not self.path.exists():
            return []
        try:
            with open(self.path, encoding="utf-8", newline="") as f:
                rows = list(iter_records(f))
        except (MalformedRecordError, UnicodeDecodeError) as e:
            if strict:
                raise MalformedRecordError(f"{self.path.name}: {e}") from e
            logger.error("Malformed CSV file %s, treating as empty: %s", self.path, e)
            return []
        except OSError as e:
            if strict:
                raise StorageError(f"{self.path.name}: {e}") from e
            logger.error("Error reading CSV file %s: %s", self.path, e)
            return []

        if len(rows) <= 1:
            return []
        header = rows[0]
        records = []
        for values in rows[1:]:
            if not values:
                continue
            entry = {name: "" for name in self.fields}
            for name, value in zip(header, values):
                entry[name] = value
            records.append(entry)
        return records

    def _encode(self, record: Mapping[str, object]) -> str:
        values = []
        for name in self.fields:
            value = record.get(name)
            values.append("" if value is None else str(value))
        return encode_row(values)

    def append(self, record: Mapping[str, object]) -> bool:
        """Append one record; absent fields are written as ""."""
        try:
            self.ensure_initialized()
            line = self._encode(record)
            with open(self.path, "a", encoding="utf-8", newline="") as f:
                f.write(line + LINE_TERMINATOR)
            return True
        except OSError as e:
            logger.error("Error appending to CSV file %s: %s", self.path, e)
            return False

    def rewrite(self, records: Iterable[Mapping[str, object]]) -> bool:
        """Replace the file with the header followed by ``records``."""
        try:
            lines = [encode_row(self.fields)]
            lines.extend(self._encode(r) for r in records)
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8", newline="") as f:
                f.write(LINE_TERMINATOR.join(lines) + LINE_TERMINATOR)
            return True
        except OSError as e:
            logger.error("Error writing CSV file %s: %s", self.path, e)
            return False
