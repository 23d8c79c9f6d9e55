from __future__ import annotations

"""Single entry point shared by the CLI and the HTTP API.

``process`` applies the cardinality limit, decodes raw input when needed,
computes the percentile and packages the outcome. It never raises for bad
input: every domain failure comes back as an :class:`ErrorOutcome`, so the
command line and the API always agree on identical input.
"""

import math
from contextlib import nullcontext
from dataclasses import dataclass, field
from typing import Any, Callable, ContextManager, Dict, Optional, Sequence, Union

from outlier.core.errors import (
    DatasetTooLargeError,
    DomainError,
    ErrorKind,
    InvalidNumberError,
    InvalidPercentileError,
    error_for_kind,
)
from outlier.engine.percentile import percentile as compute_percentile
from outlier.services.decoder import DataFormat, RawInput, decode

__all__ = [
    "MAX_DATASET_VALUES",
    "DEFAULT_PERCENTILE",
    "Instrument",
    "PercentileRequest",
    "PercentileResult",
    "ErrorOutcome",
    "Outcome",
    "parse_percentile",
    "process",
    "process_request",
    "raise_for_outcome",
]


MAX_DATASET_VALUES = 10_000_000
DEFAULT_PERCENTILE = 95.0

Instrument = Callable[[str], ContextManager[Any]]


def parse_percentile(raw: Optional[str]) -> float:
    """Parse a textual percentile (CLI flag, form field); blank means the default.

    Only the number syntax is checked here, the range check stays with the engine.
    """
    if raw is None or not raw.strip():
        return DEFAULT_PERCENTILE
    try:
        return float(raw)
    except ValueError as exc:
        raise InvalidPercentileError(
            f"Percentile must be a number between 0 and 100, got '{raw}'",
            detail={"percentile": raw},
        ) from exc


@dataclass(frozen=True, slots=True)
class PercentileRequest:
    """Dataset plus target percentile for one call."""

    values: Sequence[float]
    percentile: float = DEFAULT_PERCENTILE


@dataclass(frozen=True, slots=True)
class PercentileResult:
    """Value object for a successful computation."""

    count: int
    percentile: float
    value: float

    def as_dict(self) -> Dict[str, Any]:
        return {"percentile": self.percentile, "value": self.value, "count": self.count}


@dataclass(frozen=True, slots=True)
class ErrorOutcome:
    """Value object for a failed computation, tagged by kind."""

    kind: ErrorKind
    message: str
    detail: Optional[Dict[str, Any]] = field(default=None)

    @classmethod
    def from_error(cls, error: DomainError) -> "ErrorOutcome":
        kind = error.kind or ErrorKind.INVALID_FORMAT
        detail = dict(error.detail) if isinstance(error.detail, dict) else None
        return cls(kind=kind, message=error.message, detail=detail)

    def as_dict(self) -> Dict[str, Any]:
        return {"error": self.message, "kind": self.kind.value}


Outcome = Union[PercentileResult, ErrorOutcome]


def _no_instrument(_name: str) -> ContextManager[Any]:
    return nullcontext()


def _check_size(count: int, max_values: int) -> None:
    if count > max_values:
        raise DatasetTooLargeError(
            f"Input dataset exceeds the limit of {max_values} values. Aborting.",
            detail={"count": count, "max_values": max_values},
        )


def _check_finite(values: Sequence[float]) -> list[float]:
    dataset: list[float] = []
    for index, item in enumerate(values):
        try:
            value = float(item)
        except (TypeError, ValueError, OverflowError):
            value = math.nan
        if not math.isfinite(value):
            raise InvalidNumberError(
                f"Invalid number at index {index}: only finite values are accepted",
                detail={"index": index},
            )
        dataset.append(value)
    return dataset


def process(
    source: Union[RawInput, Sequence[float]],
    percentile: float,
    fmt: Optional[DataFormat] = None,
    *,
    max_values: int = MAX_DATASET_VALUES,
    instrument: Optional[Instrument] = None,
) -> Outcome:
    """Run decode, validation and computation for one call.

    Args:
        source: Raw text/bytes (decoded with ``fmt``) or already-parsed numbers.
        percentile: Target percentile in [0, 100].
        fmt: Encoding of ``source``; required when ``source`` is raw input.
        max_values: Dataset cardinality ceiling.
        instrument: Optional ``instrument(name)`` context manager factory,
            entered around the ``"decode"`` and ``"compute"`` operations.
    """
    span = instrument or _no_instrument
    try:
        if isinstance(source, (bytes, bytearray, str)):
            if fmt is None:
                raise ValueError("fmt is required when decoding raw input")
            with span("decode"):
                values = decode(source, fmt, max_values=max_values)
        else:
            _check_size(len(source), max_values)
            values = _check_finite(source)
        _check_size(len(values), max_values)
        with span("compute"):
            value = compute_percentile(values, percentile)
    except DomainError as exc:
        return ErrorOutcome.from_error(exc)
    return PercentileResult(count=len(values), percentile=float(percentile), value=value)


def process_request(
    request: PercentileRequest,
    *,
    max_values: int = MAX_DATASET_VALUES,
    instrument: Optional[Instrument] = None,
) -> Outcome:
    return process(request.values, request.percentile, max_values=max_values, instrument=instrument)


def raise_for_outcome(outcome: Outcome) -> PercentileResult:
    """Return the result, or raise the ``DomainError`` matching the error kind."""

    if isinstance(outcome, ErrorOutcome):
        raise error_for_kind(outcome.kind, outcome.message, outcome.detail)
    return outcome
