from __future__ import annotations

"""Domain-specific exception hierarchy for the percentile service.

Every failure the core can produce is tagged with an :class:`ErrorKind`. The
orchestrator turns raised errors into an ``ErrorOutcome`` value, the HTTP
layer turns them back into JSON bodies through ``register_exception_handlers``.
"""

from enum import Enum
from typing import Any

__all__ = [
    "ErrorKind",
    "DomainError",
    "DecodeError",
    "InvalidNumberError",
    "InvalidFormatError",
    "UnsupportedFormatError",
    "ComputeError",
    "EmptyDatasetError",
    "InvalidPercentileError",
    "DatasetTooLargeError",
    "PayloadTooLargeError",
    "MissingFileError",
    "ConfigurationError",
    "error_for_kind",
]


class ErrorKind(str, Enum):
    """Tag identifying which input or policy rule a call violated."""

    EMPTY_DATASET = "empty_dataset"
    INVALID_PERCENTILE = "invalid_percentile"
    INVALID_NUMBER = "invalid_number"
    INVALID_FORMAT = "invalid_format"
    DATASET_TOO_LARGE = "dataset_too_large"
    UNSUPPORTED_FORMAT = "unsupported_format"


class DomainError(Exception):
    """Base class for recoverable domain-level errors."""

    status_code: int = 400
    error_code: str = "domain_error"
    default_message: str = "Domain error"
    kind: ErrorKind | None = None

    def __init__(
        self,
        message: str | None = None,
        *,
        detail: Any | None = None,
        status_code: int | None = None,
    ) -> None:
        final_message = message or self.default_message
        super().__init__(final_message)
        self.message = final_message
        self.detail = detail
        if status_code is not None:
            self.status_code = status_code


class DecodeError(DomainError):
    """Raised when raw input cannot be turned into a dataset."""

    error_code = "decode_error"
    default_message = "Unable to decode input"


class InvalidNumberError(DecodeError, ValueError):
    """Raised when a token or line does not parse as a finite number."""

    kind = ErrorKind.INVALID_NUMBER
    error_code = ErrorKind.INVALID_NUMBER.value
    default_message = "Invalid number"


class InvalidFormatError(DecodeError, ValueError):
    """Raised when a JSON or CSV document is structurally wrong."""

    kind = ErrorKind.INVALID_FORMAT
    error_code = ErrorKind.INVALID_FORMAT.value
    default_message = "Invalid input format"


class UnsupportedFormatError(DecodeError):
    """Raised when no decoder matches the file extension or content type."""

    kind = ErrorKind.UNSUPPORTED_FORMAT
    error_code = ErrorKind.UNSUPPORTED_FORMAT.value
    status_code = 415
    default_message = "Unsupported file format. Use .json or .csv"


class ComputeError(DomainError, ValueError):
    """Raised by the percentile engine for inputs it cannot compute on."""

    error_code = "compute_error"
    default_message = "Unable to compute percentile"


class EmptyDatasetError(ComputeError):
    kind = ErrorKind.EMPTY_DATASET
    error_code = ErrorKind.EMPTY_DATASET.value
    default_message = "Cannot calculate percentile of empty dataset"


class InvalidPercentileError(ComputeError):
    kind = ErrorKind.INVALID_PERCENTILE
    error_code = ErrorKind.INVALID_PERCENTILE.value
    default_message = "Percentile must be between 0 and 100"


class DatasetTooLargeError(DomainError):
    """Raised when a dataset holds more values than the cardinality limit."""

    kind = ErrorKind.DATASET_TOO_LARGE
    error_code = ErrorKind.DATASET_TOO_LARGE.value
    status_code = 413
    default_message = "Input dataset exceeds the value limit"


class PayloadTooLargeError(DomainError):
    """Raised by the transport layer when a request body exceeds its byte ceiling."""

    error_code = "payload_too_large"
    status_code = 413
    default_message = "Request body too large"


class MissingFileError(DomainError):
    error_code = "missing_file"
    default_message = "No file provided. Send a file field with your data."


class ConfigurationError(DomainError):
    """Raised when server-side configuration is invalid or incomplete."""

    error_code = "configuration_error"
    status_code = 500
    default_message = "Invalid configuration"


_ERRORS_BY_KIND: dict[ErrorKind, type[DomainError]] = {
    ErrorKind.EMPTY_DATASET: EmptyDatasetError,
    ErrorKind.INVALID_PERCENTILE: InvalidPercentileError,
    ErrorKind.INVALID_NUMBER: InvalidNumberError,
    ErrorKind.INVALID_FORMAT: InvalidFormatError,
    ErrorKind.DATASET_TOO_LARGE: DatasetTooLargeError,
    ErrorKind.UNSUPPORTED_FORMAT: UnsupportedFormatError,
}


def error_for_kind(kind: ErrorKind, message: str | None = None, detail: Any | None = None) -> DomainError:
    """Build the exception matching ``kind``."""

    return _ERRORS_BY_KIND[kind](message, detail=detail)
