"""
Custom exceptions for the content record log.

These exceptions are intentionally simple and descriptive.
They are used across:

  - core/api/ (store gateways)
  - core/log/ (codec, engine)
  - runtime/ (agent, stores, HTTP routes)

Placing them at the project root (exceptions/) avoids circular imports
and keeps exception types consistent across modules.
"""


class ContentRecordError(Exception):
    """Base class for every error raised by the content record log."""


class EntryTooLargeError(ContentRecordError):
    """
    Raised when a serialized entry exceeds the entry size ceiling.

    Detected before anything is written, so a rejected entry never
    touches the store.
    """

    def __init__(self, size, limit):
        self.size = size
        self.limit = limit
        msg = f"Entry exceeds max size, {size}>{limit}"
        super().__init__(msg)


class StoreError(ContentRecordError):
    """
    Raised when a get/set round trip against the key/value store fails.

    Contains the key and the operation ("get" or "set") that failed.
    """

    def __init__(self, key, operation, details=None):
        self.key = key
        self.operation = operation
        self.details = details or "store request failed"
        msg = f"Store {operation} failed for key: {key}\nDetails: {self.details}"
        super().__init__(msg)


class WriteConflictError(StoreError):
    """
    Raised when a conditional write is rejected because the stored
    version no longer matches the version that was read.
    """

    def __init__(self, key, expected_version=None):
        self.expected_version = expected_version
        super().__init__(
            key,
            "set",
            f"version changed since read (expected {expected_version!r})",
        )


class ConflictRetriesExhaustedError(StoreError):
    """Raised when optimistic writes keep conflicting past the retry bound."""

    def __init__(self, key, attempts):
        self.attempts = attempts
        super().__init__(key, "set", f"gave up after {attempts} conflicting attempts")


class InconsistencyError(ContentRecordError):
    """
    Raised by a strict consistency check when the index and the current
    page disagree on the entry count.

    Appends never raise this: the next successful append recomputes the
    count from the page and heals the index.
    """

    def __init__(self, kind, index_count, page_count):
        self.kind = kind
        self.index_count = index_count
        self.page_count = page_count
        msg = (
            f"Index for {kind} reports {index_count} entries on the current "
            f"page, the page holds {page_count}"
        )
        super().__init__(msg)


class NotInitializedError(ContentRecordError):
    """Raised when a log operation is requested before init() succeeded."""

    def __init__(self):
        super().__init__("Content record is not initialized, call init() first")
