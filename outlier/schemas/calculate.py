from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt

__all__ = [
    "CalculateRequest",
    "CalculateResponse",
    "ErrorResponse",
    "HealthResponse",
]


class CalculateRequest(BaseModel):
    model_config = ConfigDict(
        json_schema_extra={"examples": [{"values": [1, 2, 3, 4, 5, 6, 7, 8, 9, 10], "percentile": 95}]}
    )

    values: List[StrictFloat | StrictInt] = Field(description="Array of numerical values")
    percentile: StrictFloat | StrictInt = Field(default=95.0, description="Percentile to calculate (0-100)")


class CalculateResponse(BaseModel):
    percentile: float = Field(description="The requested percentile")
    value: float = Field(description="The interpolated percentile value")
    count: int = Field(ge=0, description="Number of values in the dataset")


class ErrorResponse(BaseModel):
    error: str
    kind: str
    correlation_id: Optional[str] = None


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
