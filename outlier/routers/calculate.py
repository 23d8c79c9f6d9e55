from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from outlier.core.config import Settings, get_settings
from outlier.core.errors import MissingFileError, PayloadTooLargeError
from outlier.core.logging import get_logger
from outlier.core.metrics import inc_counter, operation_timer
from outlier.schemas.calculate import CalculateRequest, CalculateResponse, ErrorResponse
from outlier.services.decoder import format_from_hint
from outlier.services.orchestrator import (
    ErrorOutcome,
    Outcome,
    parse_percentile,
    process,
    raise_for_outcome,
)

router = APIRouter(tags=["outlier"])
logger = get_logger("outlier.routers.calculate", component="http")

_UPLOAD_CHUNK_BYTES = 1024 * 1024

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid input"},
    413: {"model": ErrorResponse, "description": "Dataset or request body too large"},
    415: {"model": ErrorResponse, "description": "Unsupported file format"},
}


def _respond(outcome: Outcome, source: str) -> CalculateResponse:
    if isinstance(outcome, ErrorOutcome):
        logger.info(
            "calculate_failed",
            extra={"structured_data": {"source": source, "kind": outcome.kind.value}},
        )
    result = raise_for_outcome(outcome)
    inc_counter(f"outlier.requests.{source}")
    logger.info(
        "calculate_completed",
        extra={"structured_data": {"source": source, "count": result.count, "percentile": result.percentile}},
    )
    return CalculateResponse(**result.as_dict())


def _read_upload(upload: UploadFile, limit: int) -> bytes:
    chunks: list[bytes] = []
    total = 0
    while True:
        chunk = upload.file.read(_UPLOAD_CHUNK_BYTES)
        if not chunk:
            break
        total += len(chunk)
        if total > limit:
            raise PayloadTooLargeError(
                f"Uploaded file exceeds the limit of {limit} bytes",
                detail={"max_body_bytes": limit},
            )
        chunks.append(chunk)
    return b"".join(chunks)


@router.post("/calculate", response_model=CalculateResponse, responses=_ERROR_RESPONSES)
def calculate(payload: CalculateRequest, settings: Settings = Depends(get_settings)) -> CalculateResponse:
    """Calculate a percentile from a JSON array of values."""
    outcome = process(
        payload.values,
        payload.percentile,
        max_values=settings.limits.max_dataset_values,
        instrument=operation_timer,
    )
    return _respond(outcome, "values")


@router.post("/calculate/file", response_model=CalculateResponse, responses=_ERROR_RESPONSES)
def calculate_file(
    file: Optional[UploadFile] = File(default=None, description="JSON array or CSV with a header line"),
    percentile: Optional[str] = Form(default=None, description="Percentile to calculate, defaults to 95"),
    settings: Settings = Depends(get_settings),
) -> CalculateResponse:
    """Calculate a percentile from an uploaded JSON or CSV file.

    The decoder is picked from the file name extension, or from the part
    content type when the name has no extension.
    """
    if file is None:
        raise MissingFileError()
    target = parse_percentile(percentile)
    fmt = format_from_hint(file.filename, file.content_type)
    data = _read_upload(file, settings.limits.max_body_bytes)
    outcome = process(
        data,
        target,
        fmt,
        max_values=settings.limits.max_dataset_values,
        instrument=operation_timer,
    )
    return _respond(outcome, "file")
