"""Error taxonomy for the persistence layer.

None of these escape to route handlers: connectivity problems are absorbed by
the document-store adapter, malformed files are logged and read as empty (or
reported as FAILED by anything that would rewrite them), and
not-found / unsupported outcomes are reported as OperationResult statuses
(callers that prefer exceptions use OperationResult.raise_for_status()).
"""

from __future__ import annotations


class StorageError(Exception):
    """Base class for persistence-layer errors."""


class ConnectivityError(StorageError):
    """The document store is unreachable or timed out."""


class NotFoundError(StorageError):
    """No record matched a delete/update filter."""


class MalformedRecordError(StorageError):
    """A flat-file row could not be decoded."""


class UnsupportedOperationError(StorageError):
    """The operation has no equivalent on the backend that would serve it."""
