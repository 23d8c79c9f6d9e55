"""Percentile statistics over numeric datasets, from the command line or over HTTP."""

__version__ = "0.1.0"

from outlier.core.errors import DomainError, ErrorKind
from outlier.engine.percentile import percentile
from outlier.services.decoder import DataFormat, decode, read_values_from_file
from outlier.services.orchestrator import (
    MAX_DATASET_VALUES,
    ErrorOutcome,
    PercentileRequest,
    PercentileResult,
    process,
)

__all__ = [
    "__version__",
    "DomainError",
    "ErrorKind",
    "percentile",
    "DataFormat",
    "decode",
    "read_values_from_file",
    "MAX_DATASET_VALUES",
    "ErrorOutcome",
    "PercentileRequest",
    "PercentileResult",
    "process",
]
