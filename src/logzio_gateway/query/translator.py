"""Build Logz.io search payloads from request models.

All builders are pure: they read the request and an optional ``now`` anchor,
and return a freshly constructed dict. Nothing is cached or shared.
"""

from datetime import datetime, timedelta
from typing import Any, Optional

from logzio_gateway.query.time_range import ResolvedRange, resolve_time_range
from logzio_gateway.schemas.requests import (
    SearchRequest,
    StatisticsRequest,
    StructuredQueryRequest,
)

TIMESTAMP_FIELD = "@timestamp"
KEYWORD_SUFFIX = ".keyword"
GROUP_BY_BUCKETS = 20
LEVEL_BUCKETS = 10

# (upper bound of the span, bucket width); first match wins.
_HISTOGRAM_STEPS: tuple[tuple[timedelta, str], ...] = (
    (timedelta(hours=6), "30m"),
    (timedelta(hours=24), "1h"),
    (timedelta(hours=72), "3h"),
    (timedelta(hours=168), "6h"),
)


def histogram_interval(span: Optional[timedelta]) -> str:
    """Pick a date-histogram bucket width for a time span (``1h`` when unknown)."""
    if span is None:
        return "1h"
    for limit, interval in _HISTOGRAM_STEPS:
        if span <= limit:
            return interval
    return "1d"


def _sort_clause(order: str) -> list[dict[str, Any]]:
    return [{TIMESTAMP_FIELD: {"order": "asc" if order == "asc" else "desc"}}]


def _range_filter(resolved: ResolvedRange) -> dict[str, Any]:
    return {"range": {TIMESTAMP_FIELD: resolved.range_clause()}}


def _with_time_filter(clause: dict[str, Any], resolved: ResolvedRange) -> dict[str, Any]:
    if resolved.is_empty:
        return clause
    return {"bool": {"must": [clause], "filter": _range_filter(resolved)}}


def build_search_text(request: SearchRequest) -> str:
    text = request.query
    if request.severity is not None:
        text += f" AND level:{request.severity.value}"
    if request.log_type:
        text += f" AND type:{request.log_type}"
    return text


def build_search_payload(request: SearchRequest, now: Optional[datetime] = None) -> dict[str, Any]:
    resolved = resolve_time_range(request.time_range, now)
    text_clause = {"query_string": {"query": build_search_text(request)}}
    return {
        "query": _with_time_filter(text_clause, resolved),
        "size": request.limit,
        "sort": _sort_clause(request.sort),
    }


def build_structured_query_payload(
    request: StructuredQueryRequest, now: Optional[datetime] = None
) -> dict[str, Any]:
    resolved = resolve_time_range(request.time_range, now)
    lucene_clause = {"query_string": {"query": request.query}}
    return {
        "query": _with_time_filter(lucene_clause, resolved),
        "size": request.limit,
        "sort": _sort_clause(request.sort),
    }


def _terms_agg(field: str, size: int) -> dict[str, Any]:
    return {
        "terms": {
            "field": f"{field}{KEYWORD_SUFFIX}",
            "size": size,
            "order": {"_count": "desc"},
        }
    }


def build_statistics_payload(
    request: StatisticsRequest, now: Optional[datetime] = None
) -> dict[str, Any]:
    resolved = resolve_time_range(request.time_range, now)

    if resolved.is_empty:
        query: dict[str, Any] = {"match_all": {}}
    else:
        query = {"bool": {"filter": _range_filter(resolved)}}

    aggs: dict[str, Any] = {
        "time_histogram": {
            "date_histogram": {
                "field": TIMESTAMP_FIELD,
                "interval": histogram_interval(resolved.span),
                "order": {"_key": "desc"},
            }
        }
    }
    for field in request.group_by:
        aggs[f"by_{field}"] = _terms_agg(field, GROUP_BY_BUCKETS)
    # Always break the counts down by severity as well.
    aggs["by_level"] = _terms_agg("level", LEVEL_BUCKETS)

    return {"query": query, "size": 0, "aggs": aggs}


def build_health_check_payload() -> dict[str, Any]:
    return {"query": {"match_all": {}}, "size": 0}
