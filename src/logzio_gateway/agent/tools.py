import logging
from typing import Any, Optional

from claude_agent_sdk import create_sdk_mcp_server, tool

from logzio_gateway.config import settings
from logzio_gateway.errors import ErrorKind, GatewayError
from logzio_gateway.formatting import (
    format_error,
    format_search_result,
    format_stats_result,
    smart_phrase,
)
from logzio_gateway.gateway import LogzioGateway
from logzio_gateway.schemas.requests import TimeRange

logger = logging.getLogger(__name__)

DEFAULT_TOOL_TIME_RANGE = "24h"

_gateway: LogzioGateway | None = None


def get_gateway() -> LogzioGateway:
    """Lazily build the process-wide gateway from settings."""
    global _gateway
    if _gateway is None:
        _gateway = LogzioGateway(settings.to_gateway_config())
    return _gateway


def set_gateway(gateway: LogzioGateway | None) -> None:
    global _gateway
    _gateway = gateway


async def close_gateway() -> None:
    """Release the shared gateway's connection pool; the next call rebuilds it."""
    global _gateway
    gateway, _gateway = _gateway, None
    if gateway is not None:
        await gateway.aclose()


def _text_result(text: str, is_error: bool = False) -> dict[str, Any]:
    result: dict[str, Any] = {"content": [{"type": "text", "text": text}]}
    if is_error:
        result["is_error"] = True
    return result


def _tool_time_range(
    args: dict[str, Any], default: Optional[str] = DEFAULT_TOOL_TIME_RANGE
) -> tuple[TimeRange | None, str]:
    """Build the time range for a tool call; explicit from/to override timeRange.

    Returns the range and a short description for the response header.
    """
    relative: Optional[str] = args.get("timeRange") or default
    from_time: Optional[str] = args.get("from")
    to_time: Optional[str] = args.get("to")
    if not (relative or from_time or to_time):
        return None, "all time"
    try:
        time_range = TimeRange(**{"from": from_time, "to": to_time, "relative": relative})
    except ValueError as exc:
        raise GatewayError(
            ErrorKind.VALIDATION,
            f"Invalid time range: {exc}",
            context={"from": from_time, "to": to_time, "timeRange": relative},
        ) from exc
    if from_time or to_time:
        desc = f"{from_time or 'now-' + (relative or '?')} → {to_time or 'now'}"
    else:
        desc = f"last {relative}"
    return time_range, desc


def _clamp_limit(value: Any, default: int) -> int:
    if value is None:
        return min(default, settings.max_results)
    try:
        limit = int(value)
    except (TypeError, ValueError):
        raise GatewayError(
            ErrorKind.VALIDATION,
            f"Invalid parameters: limit must be an integer, got {value!r}",
            context={"limit": value},
        ) from None
    return min(limit, settings.max_results)


async def run_search_logs(gateway: LogzioGateway, args: dict[str, Any]) -> str:
    raw_query = str(args.get("query") or "")
    query = smart_phrase(raw_query)
    if query != raw_query:
        logger.info("[tools] Applied phrase detection %r -> %r", raw_query, query)
    time_range, time_desc = _tool_time_range(args)
    result = await gateway.search(
        query=query,
        time_range=time_range,
        log_type=args.get("logType"),
        severity=args.get("severity"),
        limit=_clamp_limit(args.get("limit"), 50),
        sort=args.get("sort") or "desc",
    )
    return format_search_result(result, query, time_desc)


async def run_query_logs(gateway: LogzioGateway, args: dict[str, Any]) -> str:
    query = str(args.get("luceneQuery") or args.get("query") or "")
    time_range, time_desc = _tool_time_range(args, default=None)
    result = await gateway.structured_query(
        query=query,
        time_range=time_range,
        limit=_clamp_limit(args.get("size"), 100),
        sort=args.get("sort") or "desc",
    )
    return format_search_result(result, query, time_desc)


async def run_get_log_stats(gateway: LogzioGateway, args: dict[str, Any]) -> str:
    time_range, time_desc = _tool_time_range(args)
    result = await gateway.statistics(
        time_range=time_range,
        group_by=tuple(args.get("groupBy") or ()),
    )
    return format_stats_result(result, time_desc)


async def _call(name: str, runner, args: dict[str, Any]) -> dict[str, Any]:
    try:
        text = await runner(get_gateway(), args)
    except GatewayError as exc:
        logger.error("[tools] %s failed: kind=%s status=%s", name, exc.kind.value, exc.status_code)
        return _text_result(format_error(exc), is_error=True)
    return _text_result(text)


@tool(
    "search_logs",
    (
        "Search Logz.io logs with free text, optional severity / log type filters and a time range.\n\n"
        "TIME RANGE: timeRange is one of 1h, 6h, 12h, 24h, 3d, 7d, 30d (default 24h). "
        "from / to (ISO 8601) override timeRange.\n"
        "Multi-word text is treated as an exact phrase unless it already uses quotes, "
        "field syntax or boolean operators.\n"
        "COMMON FIELDS: k8s_namespace_name, k8s_pod_name, container_name, level, host, service."
    ),
    {
        "query": str,
        "timeRange": Optional[str],
        "from": Optional[str],
        "to": Optional[str],
        "logType": Optional[str],
        "severity": Optional[str],
        "limit": int,
        "sort": Optional[str],
    },
)
async def search_logs(args: dict[str, Any]) -> dict[str, Any]:
    return await _call("search_logs", run_search_logs, args)


@tool(
    "query_logs",
    (
        "Run a Lucene query against Logz.io logs, e.g. "
        "'level:ERROR AND service:checkout' or 'status_code:[500 TO 599]'. "
        "Optional from / to (ISO 8601) or timeRange bound the search; size is 1-1000 (default 100)."
    ),
    {
        "luceneQuery": str,
        "timeRange": Optional[str],
        "from": Optional[str],
        "to": Optional[str],
        "size": int,
        "sort": Optional[str],
    },
)
async def query_logs(args: dict[str, Any]) -> dict[str, Any]:
    return await _call("query_logs", run_query_logs, args)


@tool(
    "get_log_stats",
    (
        "Aggregated log statistics: volume over time (bucket width follows the range), "
        "a breakdown by level, and one breakdown per groupBy field (e.g. ['service', 'host']). "
        "timeRange defaults to 24h; from / to override it."
    ),
    {
        "timeRange": Optional[str],
        "from": Optional[str],
        "to": Optional[str],
        "groupBy": Optional[list],
    },
)
async def get_log_stats(args: dict[str, Any]) -> dict[str, Any]:
    return await _call("get_log_stats", run_get_log_stats, args)


def build_logzio_tools_server():
    """Create an in-process MCP server exposing the Logz.io tools."""
    return create_sdk_mcp_server(
        name="logzio_tools",
        version="0.1.0",
        tools=[search_logs, query_logs, get_log_stats],
    )
