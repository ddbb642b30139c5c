"""Comma-separated line codec for the flat-file tables.

Fields containing a comma, a double quote, CR or LF are wrapped in quotes
with embedded quotes doubled. Built on the stdlib csv module so that quoted
fields may span physical lines when a whole file is read.
"""

from __future__ import annotations

import csv
import io
import sys
from collections.abc import Iterator, Sequence
from typing import TextIO

from storage_errors import MalformedRecordError

# Lines are written with LF; the writer still quotes CR because the dialect's
# terminator contains it.
_ENCODE_TERMINATOR = "\r\n"
LINE_TERMINATOR = "\n"


def _raise_field_size_limit() -> int:
    """Lift the reader's 128 KiB per-field cap as far as the platform allows."""
    limit = sys.maxsize
    while True:
        try:
            csv.field_size_limit(limit)
            return limit
        except OverflowError:
            limit //= 2


FIELD_SIZE_LIMIT = _raise_field_size_limit()


def encode_row(fields: Sequence[str]) -> str:
    """Encode one record as a single CSV line (without terminator)."""
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_MINIMAL, lineterminator=_ENCODE_TERMINATOR)
    writer.writerow(["" if f is None else str(f) for f in fields])
    return buf.getvalue()[: -len(_ENCODE_TERMINATOR)]


def decode_line(line: str) -> list[str]:
    """Decode one encoded record back into its fields.

    An unterminated quoted field is closed at end of input rather than
    raising. Returns [] for an empty line.
    """
    rows = list(iter_records(io.StringIO(line)))
    if not rows:
        return []
    return rows[0]


def iter_records(stream: TextIO) -> Iterator[list[str]]:
    """Yield decoded records from a text stream opened with newline=""."""
    reader = csv.reader(stream, strict=False)
    try:
        for row in reader:
            yield row
    except csv.Error as e:
        raise MalformedRecordError(f"line {reader.line_num}: {e}") from e
