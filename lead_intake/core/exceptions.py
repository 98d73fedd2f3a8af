"""
Exception taxonomy for the intake pipeline.

Mail-lane errors are caught at the connection manager / processor boundary and
surfaced through the health state. CSV batch rejections are raised inside the
validation engine and turned into a failed ValidationOutcome before returning.
"""

from enum import Enum


class IntakeError(Exception):
    """Base class for all intake pipeline errors."""


class ConfigurationError(IntakeError):
    """Mailbox credentials or settings are missing; the pipeline does not start."""


class MailConnectionError(IntakeError):
    """IMAP protocol or socket failure."""


class BatchStage(str, Enum):
    """CSV pipeline stage that rejected a whole batch."""

    SIZE = "size"
    SECURITY = "security"
    PARSE = "parse"
    ROW_LIMIT = "row_limit"
    EMPTY = "empty"
    HEADERS = "headers"


class BatchRejected(IntakeError):
    """A CSV batch was rejected before per-row validation."""

    stage: BatchStage

    def __init__(self, errors: str | list[str]):
        self.errors = [errors] if isinstance(errors, str) else list(errors)
        super().__init__("; ".join(self.errors))


class FileTooLargeError(BatchRejected):
    stage = BatchStage.SIZE


class SecurityRejection(BatchRejected):
    """Raw upload content matched a dangerous pattern."""

    stage = BatchStage.SECURITY


class CSVParseError(BatchRejected):
    stage = BatchStage.PARSE


class RowLimitExceeded(BatchRejected):
    stage = BatchStage.ROW_LIMIT


class EmptyBatchError(BatchRejected):
    stage = BatchStage.EMPTY


class HeaderValidationError(BatchRejected):
    stage = BatchStage.HEADERS
