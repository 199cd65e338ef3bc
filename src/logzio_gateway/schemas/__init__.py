from logzio_gateway.schemas.requests import (
    RELATIVE_TIME_TOKENS,
    SearchRequest,
    Severity,
    StatisticsRequest,
    StructuredQueryRequest,
    TimeRange,
)
from logzio_gateway.schemas.results import Bucket, NormalizedResult, RawResponse

__all__ = [
    "RELATIVE_TIME_TOKENS",
    "SearchRequest",
    "Severity",
    "StatisticsRequest",
    "StructuredQueryRequest",
    "TimeRange",
    "Bucket",
    "NormalizedResult",
    "RawResponse",
]
