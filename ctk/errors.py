"""
Error types for CTK.

Every failure CTK reports derives from CtkError so callers can catch the
whole family at once, while the subclasses keep validation problems,
acquisition failures and schema evaluation failures apart.
"""
from enum import Enum
from typing import Optional


class CtkError(Exception):
    """Base class for all CTK errors."""
    pass


class ValidationError(CtkError):
    """Invalid input detected before any engine runs.

    Raised for malformed catalogs, an empty filtered set, an empty key
    selection or blank schema text.
    """
    pass


class AcquisitionCause(Enum):
    """Why loading a remote catalog failed."""
    CONNECTIVITY = "connectivity"
    TIMEOUT = "timeout"
    HTTP_STATUS = "http_status"
    MALFORMED = "malformed"


class AcquisitionError(CtkError):
    """Failure while retrieving a catalog over the network."""

    def __init__(self, message: str, cause: AcquisitionCause, status_code: Optional[int] = None):
        super().__init__(message)
        self.cause = cause
        self.status_code = status_code


class ErrorKind(Enum):
    """Category of a schema evaluation failure."""
    SYNTAX = "syntax"
    RUNTIME = "runtime"
    TIMEOUT = "timeout"
    RESULT = "result"


class EvaluationError(CtkError):
    """
    Failure while compiling or running a schema.

    Attributes:
        kind: ErrorKind of the failure
        field: Output field being computed, if any
        index: Position of the record being processed, if any
    """

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.RUNTIME,
        field: Optional[str] = None,
        index: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.field = field
        self.index = index

    def located(self, field: Optional[str] = None, index: Optional[int] = None) -> "EvaluationError":
        """Attach the field/record position if not already set."""
        if self.field is None:
            self.field = field
        if self.index is None:
            self.index = index
        return self

    def __str__(self):
        where = []
        if self.field is not None:
            where.append(f"field '{self.field}'")
        if self.index is not None:
            where.append(f"record #{self.index}")
        if where:
            return f"{self.message} ({', '.join(where)})"
        return self.message
