"""Decoding of raw input into a dataset of floats.

Three encodings are supported:

- ``DELIMITED``: comma-separated numbers, as typed on the command line.
- ``JSON``: a top-level array of numbers.
- ``CSV``: a header line followed by one number per line.

The encoding is always chosen by the caller (file extension or content type),
the decoder never inspects content to guess it. Non-finite numbers (NaN,
infinities, values overflowing a double) are rejected as invalid numbers.
"""

from __future__ import annotations

import csv
import io
import json
import math
import re
from enum import Enum
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Union

from outlier.core.errors import (
    DatasetTooLargeError,
    InvalidFormatError,
    InvalidNumberError,
    UnsupportedFormatError,
)

__all__ = [
    "DataFormat",
    "RawInput",
    "decode",
    "format_from_filename",
    "format_from_content_type",
    "format_from_hint",
    "read_values_from_file",
]


RawInput = Union[bytes, bytearray, str]


class DataFormat(str, Enum):
    DELIMITED = "delimited"
    JSON = "json"
    CSV = "csv"


_EXTENSION_FORMATS = {
    ".json": DataFormat.JSON,
    ".csv": DataFormat.CSV,
}

_CONTENT_TYPE_FORMATS = {
    "application/json": DataFormat.JSON,
    "text/json": DataFormat.JSON,
    "text/csv": DataFormat.CSV,
    "application/csv": DataFormat.CSV,
}


def format_from_filename(filename: str | Path) -> DataFormat:
    """Select the decoder from a file extension (case-insensitive)."""

    suffix = Path(str(filename)).suffix.lower()
    fmt = _EXTENSION_FORMATS.get(suffix)
    if fmt is None:
        raise UnsupportedFormatError(
            f"Unsupported file format '{suffix or str(filename)}'. Use .json or .csv",
            detail={"filename": str(filename)},
        )
    return fmt


def format_from_content_type(content_type: str | None) -> DataFormat:
    """Select the decoder from a MIME type, ignoring parameters such as charset."""

    media_type = (content_type or "").split(";", 1)[0].strip().lower()
    fmt = _CONTENT_TYPE_FORMATS.get(media_type)
    if fmt is None:
        raise UnsupportedFormatError(
            f"Unsupported content type '{media_type}'. Use application/json or text/csv",
            detail={"content_type": media_type},
        )
    return fmt


def format_from_hint(filename: str | None, content_type: str | None = None) -> DataFormat:
    """Prefer the filename extension, fall back to the content type."""

    if filename and Path(filename).suffix:
        return format_from_filename(filename)
    return format_from_content_type(content_type)


def _to_text(raw: RawInput) -> str:
    if isinstance(raw, str):
        return raw.lstrip("\ufeff")
    try:
        return bytes(raw).decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise InvalidFormatError(
            "Input is not valid UTF-8 text",
            detail={"position": exc.start},
        ) from exc


_NUMBER_RE = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?", re.ASCII)


def _parse_number(token: str) -> Optional[float]:
    # plain ASCII decimal notation only; float() alone would take "1_000" or non-ASCII digits
    if not _NUMBER_RE.fullmatch(token):
        return None
    try:
        value = float(token)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value):
        return None
    return value


def _too_large(max_values: int) -> DatasetTooLargeError:
    return DatasetTooLargeError(
        f"Input dataset exceeds the limit of {max_values} values. Aborting.",
        detail={"max_values": max_values},
    )


def _collect(values: Iterable[float], max_values: Optional[int]) -> List[float]:
    dataset: List[float] = []
    for value in values:
        dataset.append(value)
        if max_values is not None and len(dataset) > max_values:
            raise _too_large(max_values)
    return dataset


def _iter_delimited(text: str) -> Iterator[float]:
    if not text.strip():
        return
    for index, token in enumerate(text.split(",")):
        stripped = token.strip()
        value = _parse_number(stripped)
        if value is None:
            raise InvalidNumberError(
                f"Invalid number '{stripped}' at position {index + 1}",
                detail={"token": stripped, "position": index + 1},
            )
        yield value


def _reject_constant(name: str) -> float:
    raise InvalidNumberError(
        f"Invalid number '{name}': only finite values are accepted",
        detail={"token": name},
    )


def _decode_json(text: str, max_values: Optional[int]) -> List[float]:
    try:
        document = json.loads(text, parse_constant=_reject_constant)
    except json.JSONDecodeError as exc:
        raise InvalidFormatError(
            f"Failed to parse JSON: {exc.msg} (line {exc.lineno}, column {exc.colno}). "
            "Expected array of numbers.",
            detail={"line": exc.lineno, "column": exc.colno},
        ) from exc
    if not isinstance(document, list):
        raise InvalidFormatError(
            f"Expected a JSON array of numbers, got {type(document).__name__}",
            detail={"type": type(document).__name__},
        )
    if max_values is not None and len(document) > max_values:
        raise _too_large(max_values)

    dataset: List[float] = []
    for index, item in enumerate(document):
        # bool is an int subclass but not a number on the wire
        if isinstance(item, bool) or not isinstance(item, (int, float)):
            raise InvalidFormatError(
                f"Expected a number at index {index}, got {json.dumps(item)[:40]}",
                detail={"index": index},
            )
        try:
            value = float(item)
        except OverflowError:
            value = math.inf
        if not math.isfinite(value):
            raise InvalidNumberError(
                f"Invalid number at index {index}: only finite values are accepted",
                detail={"index": index},
            )
        dataset.append(value)
    return dataset


def _iter_csv(text: str) -> Iterator[float]:
    reader = csv.reader(io.StringIO(text, newline=""))
    try:
        if next(reader, None) is None:
            return
        blank_lines: List[int] = []
        for row in reader:
            if not row or all(not field.strip() for field in row):
                blank_lines.append(reader.line_num)
                continue
            if blank_lines:
                line = blank_lines[0]
                raise InvalidNumberError(
                    f"Invalid number '' on line {line}",
                    detail={"line": line, "content": ""},
                )
            if len(row) > 1:
                raise InvalidFormatError(
                    f"Expected a single column on line {reader.line_num}, found {len(row)}",
                    detail={"line": reader.line_num, "columns": len(row)},
                )
            content = row[0].strip()
            value = _parse_number(content)
            if value is None:
                raise InvalidNumberError(
                    f"Invalid number '{content}' on line {reader.line_num}",
                    detail={"line": reader.line_num, "content": content},
                )
            yield value
    except csv.Error as exc:
        raise InvalidFormatError(
            f"Failed to parse CSV on line {reader.line_num}: {exc}",
            detail={"line": reader.line_num},
        ) from exc


def decode(raw: RawInput, fmt: DataFormat, *, max_values: Optional[int] = None) -> List[float]:
    """Decode ``raw`` using the decoder selected by ``fmt``.

    Args:
        raw: Text or UTF-8 bytes.
        fmt: Encoding of ``raw``; never inferred from content.
        max_values: Optional cardinality ceiling. Decoding aborts with
            ``DatasetTooLargeError`` as soon as it is exceeded.

    Returns:
        The fully materialized dataset, in input order.
    """
    fmt = DataFormat(fmt)
    text = _to_text(raw)
    if fmt is DataFormat.JSON:
        return _decode_json(text, max_values)
    if fmt is DataFormat.CSV:
        return _collect(_iter_csv(text), max_values)
    return _collect(_iter_delimited(text), max_values)


def read_values_from_file(path: str | Path, *, max_values: Optional[int] = None) -> List[float]:
    """Read a JSON or CSV file, choosing the decoder from its extension."""

    path = Path(path)
    fmt = format_from_filename(path)
    return decode(path.read_bytes(), fmt, max_values=max_values)
