"""Plain-text rendering of gateway results for tool responses."""

from datetime import datetime
from typing import Any, Optional

from logzio_gateway.errors import GatewayError
from logzio_gateway.schemas.results import NormalizedResult

MAX_MESSAGE_CHARS = 1000
MAX_METADATA_VALUE_CHARS = 50
MAX_EXTRA_FIELDS = 5

_IMPORTANT_FIELDS = (
    "k8s_namespace_name", "k8s_pod_name", "container_name", "env_id",
    "status_code", "method", "path", "duration", "error_type", "user_id",
)
_SKIP_FIELDS = frozenset({
    "@timestamp", "timestamp", "level", "severity", "message", "msg",
    "time", "log", "stream", "_id", "_index", "_type", "_score",
})
_PHRASE_MARKERS = ('"', ":", " AND ", " OR ", " NOT ", "*", "?")


def smart_phrase(query: str) -> str:
    """Quote short multi-word free text so it matches as an exact phrase.

    Queries that already use quotes, field syntax, boolean operators or
    wildcards are returned unchanged.
    """
    if any(marker in query for marker in _PHRASE_MARKERS):
        return query
    words = query.split()
    if len(words) <= 1 or len(words) > 6:
        return query
    has_separators = any(ch in query for ch in "-_.")
    if has_separators or any(len(word) > 3 for word in words):
        return f'"{query.strip()}"'
    return query


def _truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


def _format_timestamp(raw: Any) -> str:
    if not raw:
        return "N/A"
    try:
        parsed = datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
    except ValueError:
        return str(raw)
    return parsed.strftime("%Y-%m-%d %H:%M:%S %Z").strip()


def format_log_entry(doc: dict[str, Any], index: int) -> str:
    timestamp = _format_timestamp(doc.get("@timestamp") or doc.get("timestamp"))
    level = str(doc.get("level") or doc.get("severity") or "INFO").upper()
    message = _truncate(str(doc.get("message") or doc.get("msg") or ""), MAX_MESSAGE_CHARS)
    source = (
        doc.get("k8s_pod_name") or doc.get("container_name") or doc.get("host")
        or doc.get("source") or doc.get("service") or ""
    )

    line = f"{index + 1}. [{timestamp}] {level}"
    if source:
        line += f" ({source})"
    lines = [line, f"   {message or 'No message'}"]

    metadata: dict[str, Any] = {k: doc[k] for k in _IMPORTANT_FIELDS if doc.get(k) not in (None, "")}
    extra = [
        k for k, v in doc.items()
        if k not in _SKIP_FIELDS and k not in metadata and v not in (None, "")
    ]
    for key in extra[:MAX_EXTRA_FIELDS]:
        metadata[key] = doc[key]
    if metadata:
        lines.append("   Metadata:")
        for key, value in metadata.items():
            shown = _truncate(value, MAX_METADATA_VALUE_CHARS) if isinstance(value, str) else value
            lines.append(f"      • {key}: {shown}")
    return "\n".join(lines)


def format_search_result(
    result: NormalizedResult,
    query: str,
    time_desc: Optional[str] = None,
) -> str:
    if not result.items:
        return f"No logs found matching the search criteria.\nQuery: {query}"
    header = (
        f"Found {result.total:,} total log(s) (showing {len(result.items)})\n"
        f"Query: {query}\n"
        f"Backend time: {result.took_ms}ms"
    )
    if time_desc:
        header += f"\nTime range: {time_desc}"
    if result.timed_out:
        header += "\nWARNING: the backend timed out; results may be partial."
    entries = "\n\n---\n\n".join(format_log_entry(doc, i) for i, doc in enumerate(result.items))
    return f"{header}\n\n{entries}"


def format_stats_result(result: NormalizedResult, time_desc: Optional[str] = None) -> str:
    sections = [f"Total logs: {result.total:,}"]
    if time_desc:
        sections.append(f"Time range: {time_desc}")

    histogram = result.aggregations.get("time_histogram", [])
    if histogram:
        lines = ["Volume over time (most recent first):"]
        lines += [f"  {b.key}: {b.count:,}" for b in histogram]
        sections.append("\n".join(lines))

    for name, buckets in result.aggregations.items():
        if name == "time_histogram":
            continue
        title = name[3:] if name.startswith("by_") else name
        lines = [f"By {title}:"]
        if buckets:
            for b in buckets:
                pct = (b.count / result.total * 100) if result.total else 0.0
                lines.append(f"  {b.key}: {b.count:,} ({pct:.1f}%)")
        else:
            lines.append("  (no data)")
        sections.append("\n".join(lines))

    return "\n\n".join(sections)


def format_error(error: GatewayError) -> str:
    text = f"Error ({error.kind.value}): {error.message}"
    if error.status_code is not None:
        text += f"\nStatus: {error.status_code}"
    return text
