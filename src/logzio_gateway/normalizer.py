import logging
from typing import Any, Mapping, Optional, Union

from pydantic import ValidationError

from logzio_gateway.errors import ErrorKind, GatewayError
from logzio_gateway.schemas.results import Bucket, NormalizedResult, RawResponse, TotalHits

logger = logging.getLogger(__name__)


def normalize_total(total: Union[int, TotalHits, Mapping[str, Any], None]) -> int:
    """``hits.total`` arrives either as a bare number or as ``{"value": n}``."""
    if total is None:
        return 0
    if isinstance(total, bool):
        return int(total)
    if isinstance(total, int):
        return total
    if isinstance(total, TotalHits):
        return total.value or 0
    if isinstance(total, Mapping):
        value = total.get("value")
        return int(value) if isinstance(value, (int, float)) else 0
    return 0


def _bucket(raw: Mapping[str, Any]) -> Optional[Bucket]:
    key = raw.get("key_as_string", raw.get("key"))
    if key is None:
        return None
    count = raw.get("count", raw.get("doc_count", 0))
    return Bucket(key=key, count=int(count or 0))


def normalize_aggregations(
    aggregations: Optional[Mapping[str, Any]],
) -> tuple[dict[str, list[Bucket]], dict[str, Optional[float]]]:
    """Split aggregations into bucketed ones and single-value metrics."""
    bucketed: dict[str, list[Bucket]] = {}
    metrics: dict[str, Optional[float]] = {}
    for name, agg in (aggregations or {}).items():
        if not isinstance(agg, Mapping):
            continue
        buckets = agg.get("buckets")
        if isinstance(buckets, list):
            bucketed[name] = [
                b for b in (_bucket(raw) for raw in buckets if isinstance(raw, Mapping)) if b
            ]
        elif "value" in agg:
            value = agg.get("value")
            metrics[name] = float(value) if isinstance(value, (int, float)) else None
    return bucketed, metrics


def normalize_response(raw: Mapping[str, Any]) -> NormalizedResult:
    """Reshape a backend search response into a ``NormalizedResult``.

    Missing ``hits`` is an empty result rather than an error.
    """
    try:
        parsed = RawResponse.model_validate(raw)
    except ValidationError as exc:
        raise GatewayError(
            ErrorKind.UNKNOWN,
            "Backend response has an unexpected shape",
            context={"errors": exc.errors(include_url=False, include_context=False)},
        ) from exc

    hits = parsed.hits
    items = [hit.source or {} for hit in (hits.hits or [])] if hits else []
    total = normalize_total(hits.total) if hits else 0
    aggregations, metrics = normalize_aggregations(parsed.aggregations)

    logger.debug(
        "[normalizer] total=%d items=%d aggregations=%s",
        total, len(items), list(aggregations),
    )
    return NormalizedResult(
        total=total,
        items=items,
        aggregations=aggregations,
        metrics=metrics,
        took_ms=parsed.took or 0,
        timed_out=bool(parsed.timed_out),
    )
