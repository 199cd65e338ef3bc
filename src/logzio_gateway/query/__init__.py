from logzio_gateway.query.time_range import (
    RELATIVE_DURATIONS,
    ResolvedRange,
    resolve_relative,
    resolve_time_range,
)
from logzio_gateway.query.translator import (
    build_search_payload,
    build_statistics_payload,
    build_structured_query_payload,
    histogram_interval,
)

__all__ = [
    "RELATIVE_DURATIONS",
    "ResolvedRange",
    "resolve_relative",
    "resolve_time_range",
    "build_search_payload",
    "build_statistics_payload",
    "build_structured_query_payload",
    "histogram_interval",
]
