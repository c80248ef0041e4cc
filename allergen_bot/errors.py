"""Error taxonomy for analysis and storage."""
from enum import Enum


class ErrorKind(str, Enum):
    RATE_LIMITED = "rate_limited"
    NETWORK = "network"
    UNRECOVERABLE = "unrecoverable"


class AnalysisError(Exception):
    """Raised by the analyzer once every attempt has failed."""

    def __init__(self, kind: ErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message


class AnalysisCancelled(Exception):
    """The caller abandoned a check while it was waiting to retry."""


class MalformedEnvelopeError(Exception):
    """The provider answered 2xx but without a usable completion."""


class StorageError(Exception):
    pass


class CheckNotFoundError(StorageError):
    def __init__(self, check_id: str) -> None:
        super().__init__(f"No check with id {check_id}")
        self.check_id = check_id
