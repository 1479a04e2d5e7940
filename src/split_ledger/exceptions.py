"""Custom exceptions for split-ledger."""


class SplitLedgerError(Exception):
    """Base exception for all split-ledger errors."""

    pass


class ConfigurationError(SplitLedgerError):
    """Raised when configuration is invalid or missing."""

    pass


class InvalidAmountError(SplitLedgerError):
    """Raised when a value cannot be used as an exact money amount."""

    def __init__(self, raw: object, message: str | None = None):
        self.raw = raw
        super().__init__(message or f"Invalid amount: {raw!r}")


class DivisionByZeroError(SplitLedgerError):
    """Raised when dividing an amount (or a share weight) by zero."""

    pass


class EmptyParticipantSetError(SplitLedgerError):
    """Raised when a split has no participants."""

    def __init__(self, message: str | None = None):
        super().__init__(message or "A split needs at least one participant")


class DuplicateParticipantError(SplitLedgerError):
    """Raised when the same participant appears twice in a split."""

    def __init__(self, participant_id: str):
        self.participant_id = participant_id
        super().__init__(f"Participant {participant_id!r} appears more than once")


class UnknownParticipantError(SplitLedgerError):
    """Raised when a split method names someone who is not a participant."""

    def __init__(self, participant_id: str):
        self.participant_id = participant_id
        super().__init__(
            f"Split method references {participant_id!r}, who is not a participant"
        )


class InvalidSplitError(SplitLedgerError):
    """Raised when split parameters are unusable (e.g. negative weights)."""

    pass


class SplitMismatchError(SplitLedgerError):
    """Raised when split inputs don't add up to what they must add up to."""

    def __init__(self, expected: object, actual: object):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Split mismatch: expected {expected}, got {actual}")


class AggregationFailureError(SplitLedgerError):
    """Raised when a record cannot be folded into the balance map."""

    def __init__(self, record_id: str, cause: Exception):
        self.record_id = record_id
        self.cause = cause
        super().__init__(f"Record {record_id!r} could not be aggregated: {cause}")


class RecordNotFoundError(SplitLedgerError):
    """Raised when a record id is not known to the ledger."""

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"Record {record_id!r} not found")


class DuplicateRecordError(SplitLedgerError):
    """Raised when two different records claim the same id and version."""

    def __init__(self, record_id: str, version: int):
        self.record_id = record_id
        self.version = version
        super().__init__(f"Record {record_id!r} version {version} already exists")
