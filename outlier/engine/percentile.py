"""Percentile computation by linear interpolation between closest ranks.

This is the same estimator as NumPy's default ``linear`` method and Excel's
``PERCENTILE.INC``: for ``n`` sorted values the fractional rank of percentile
``p`` is ``(p / 100) * (n - 1)`` and the result blends the two bracketing
values proportionally to the fractional part.

Example:
    >>> percentile([10, 20, 30, 40, 50], 50)
    30.0
"""

from __future__ import annotations

import math
from typing import Sequence

from outlier.core.errors import EmptyDatasetError, InvalidPercentileError

__all__ = ["PERCENTILE_MIN", "PERCENTILE_MAX", "percentile", "validate_percentile"]


PERCENTILE_MIN = 0.0
PERCENTILE_MAX = 100.0


def validate_percentile(p: float) -> float:
    """Return ``p`` as float or raise ``InvalidPercentileError`` echoing the value."""

    try:
        value = float(p)
    except OverflowError as exc:
        raise InvalidPercentileError(
            "Percentile must be between 0 and 100, got a number too large to represent",
            detail={"percentile": "overflow"},
        ) from exc
    except (TypeError, ValueError) as exc:
        raise InvalidPercentileError(
            f"Percentile must be a number between 0 and 100, got {p!r}",
            detail={"percentile": repr(p)},
        ) from exc
    if not math.isfinite(value) or not PERCENTILE_MIN <= value <= PERCENTILE_MAX:
        raise InvalidPercentileError(
            f"Percentile must be between 0 and 100, got {value:g}",
            detail={"percentile": value},
        )
    return value


def percentile(values: Sequence[float], p: float) -> float:
    """Compute the ``p``-th percentile of ``values``.

    Args:
        values: Numbers in any order. The input is not mutated.
        p: Target percentile in the closed interval [0, 100].

    Returns:
        The interpolated percentile value.

    Raises:
        EmptyDatasetError: ``values`` is empty.
        InvalidPercentileError: ``p`` is outside [0, 100] or not finite.
    """
    if len(values) == 0:
        raise EmptyDatasetError()
    p = validate_percentile(p)

    ordered = sorted(float(v) for v in values)
    n = len(ordered)
    if n == 1:
        return ordered[0]

    rank = (p / 100.0) * (n - 1)
    lo = math.floor(rank)
    hi = math.ceil(rank)
    if lo == hi:
        return ordered[lo]
    frac = rank - lo
    spread = ordered[hi] - ordered[lo]
    if math.isinf(spread):
        # bracketing values of opposite sign near the float limits
        return ordered[lo] * (1.0 - frac) + ordered[hi] * frac
    return ordered[lo] + frac * spread
