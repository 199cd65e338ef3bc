import httpx
import pytest

from logzio_gateway.agent import tools
from logzio_gateway.errors import ErrorKind, GatewayError
from logzio_gateway.formatting import format_error, format_log_entry, smart_phrase

from conftest import FakeBackend, ok, search_body


@pytest.fixture
def install_gateway(make_gateway):
    def _install(backend: FakeBackend):
        gateway = make_gateway(backend)
        tools.set_gateway(gateway)
        return gateway

    yield _install
    tools.set_gateway(None)


@pytest.mark.parametrize(
    "query, expected",
    [
        ("upstream timeout", '"upstream timeout"'),
        ("payment-service down", '"payment-service down"'),
        ("error", "error"),
        ("db is up", "db is up"),
        ('"already quoted"', '"already quoted"'),
        ("level:error AND service:cart", "level:error AND service:cart"),
        ("time*out", "time*out"),
        ("one two three four five six seven", "one two three four five six seven"),
    ],
)
def test_smart_phrase(query, expected):
    assert smart_phrase(query) == expected


def test_tool_time_range_defaults_to_last_day():
    time_range, desc = tools._tool_time_range({})
    assert time_range.relative == "24h"
    assert desc == "last 24h"


def test_tool_time_range_explicit_bounds_override():
    time_range, desc = tools._tool_time_range(
        {"timeRange": "1h", "from": "2025-01-15T10:00:00Z", "to": "2025-01-15T11:00:00Z"}
    )
    assert time_range.from_ is not None and time_range.to is not None
    assert "2025-01-15T10:00:00Z" in desc


def test_tool_time_range_without_default():
    assert tools._tool_time_range({}, default=None) == (None, "all time")


def test_tool_time_range_rejects_inverted_bounds():
    with pytest.raises(GatewayError) as info:
        tools._tool_time_range({"from": "2025-01-15T12:00:00Z", "to": "2025-01-15T10:00:00Z"})
    assert info.value.kind is ErrorKind.VALIDATION


@pytest.mark.asyncio
async def test_run_search_logs_formats_results(make_gateway):
    backend = FakeBackend(ok())
    text = await tools.run_search_logs(
        make_gateway(backend), {"query": "upstream timeout", "severity": "error"}
    )

    assert text.startswith("Found 2 total log(s) (showing 2)")
    assert 'Query: "upstream timeout"' in text
    assert "Time range: last 24h" in text
    assert "upstream timeout" in text
    sent = backend.payloads[0]["query"]["bool"]
    assert sent["must"] == [{"query_string": {"query": '"upstream timeout" AND level:error'}}]
    assert sent["filter"]["range"]["@timestamp"]["gte"] == "2025-01-14T12:00:00.000Z"


@pytest.mark.asyncio
async def test_run_search_logs_clamps_limit(make_gateway, monkeypatch):
    monkeypatch.setattr(tools.settings, "max_results", 20)
    backend = FakeBackend(ok())
    await tools.run_search_logs(make_gateway(backend), {"query": "x", "limit": 500})
    assert backend.payloads[0]["size"] == 20


@pytest.mark.asyncio
async def test_run_search_logs_no_results(make_gateway):
    backend = FakeBackend(ok(search_body(total=0, docs=[])))
    text = await tools.run_search_logs(make_gateway(backend), {"query": "nothing"})
    assert text.startswith("No logs found matching the search criteria.")


@pytest.mark.asyncio
async def test_run_query_logs_passes_lucene_unbounded(make_gateway):
    backend = FakeBackend(ok())
    await tools.run_query_logs(
        make_gateway(backend), {"luceneQuery": "status_code:[500 TO 599]", "size": 10}
    )
    payload = backend.payloads[0]
    assert payload["query"] == {"query_string": {"query": "status_code:[500 TO 599]"}}
    assert payload["size"] == 10


@pytest.mark.asyncio
async def test_run_get_log_stats(make_gateway):
    body = search_body(
        total={"value": 10},
        docs=[],
        aggregations={
            "time_histogram": {"buckets": [{"key_as_string": "2025-01-15T11:00:00.000Z", "doc_count": 10}]},
            "by_service": {"buckets": [{"key": "checkout", "doc_count": 8}, {"key": "cart", "doc_count": 2}]},
            "by_level": {"buckets": []},
        },
    )
    backend = FakeBackend(ok(body))
    text = await tools.run_get_log_stats(make_gateway(backend), {"groupBy": ["service"]})

    assert "Total logs: 10" in text
    assert "checkout: 8 (80.0%)" in text
    assert "By level:\n  (no data)" in text
    assert set(backend.payloads[0]["aggs"]) == {"time_histogram", "by_service", "by_level"}


@pytest.mark.asyncio
async def test_tool_call_success(install_gateway):
    install_gateway(FakeBackend(ok()))
    result = await tools._call("search_logs", tools.run_search_logs, {"query": "timeout"})
    assert "is_error" not in result
    assert result["content"][0]["type"] == "text"
    assert "Found 2 total log(s)" in result["content"][0]["text"]


@pytest.mark.asyncio
async def test_tool_call_reports_gateway_errors(install_gateway):
    backend = FakeBackend(httpx.Response(401))
    install_gateway(backend)
    result = await tools._call("query_logs", tools.run_query_logs, {"luceneQuery": "x"})
    assert result["is_error"] is True
    text = result["content"][0]["text"]
    assert text.startswith("Error (authentication)")
    assert "Status: 401" in text
    assert len(backend.requests) == 1


@pytest.mark.asyncio
async def test_tool_call_reports_validation_errors(install_gateway):
    backend = FakeBackend(ok())
    install_gateway(backend)
    result = await tools._call("search_logs", tools.run_search_logs, {"query": ""})
    assert result["is_error"] is True
    assert "Error (validation)" in result["content"][0]["text"]
    assert backend.requests == []


def test_log_entry_formatting():
    entry = format_log_entry(
        {
            "@timestamp": "2025-01-15T11:59:00.000Z",
            "level": "error",
            "message": "upstream timeout",
            "k8s_pod_name": "checkout-7f9",
            "status_code": 504,
        },
        0,
    )
    lines = entry.splitlines()
    assert lines[0] == "1. [2025-01-15 11:59:00 UTC] ERROR (checkout-7f9)"
    assert lines[1] == "   upstream timeout"
    assert "      • status_code: 504" in lines


def test_format_error_without_status():
    assert format_error(GatewayError(ErrorKind.CANCELLED, "Request cancelled")) == (
        "Error (cancelled): Request cancelled"
    )


@pytest.mark.asyncio
async def test_tool_call_accepts_naive_from_with_utc_to(install_gateway):
    backend = FakeBackend(ok())
    install_gateway(backend)
    result = await tools._call(
        "search_logs",
        tools.run_search_logs,
        {"query": "timeout", "from": "2025-01-01T00:00:00", "to": "2025-01-02T00:00:00Z"},
    )
    assert "is_error" not in result
    assert backend.payloads[0]["query"]["bool"]["filter"]["range"]["@timestamp"] == {
        "gte": "2025-01-01T00:00:00.000Z",
        "lte": "2025-01-02T00:00:00.000Z",
    }


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "name, runner, args",
    [
        ("search_logs", tools.run_search_logs, {"query": "x", "limit": "many"}),
        ("query_logs", tools.run_query_logs, {"luceneQuery": "x", "size": [10]}),
    ],
)
async def test_tool_call_reports_non_numeric_limits(install_gateway, name, runner, args):
    backend = FakeBackend(ok())
    install_gateway(backend)
    result = await tools._call(name, runner, args)
    assert result["is_error"] is True
    assert "Error (validation)" in result["content"][0]["text"]
    assert backend.requests == []


@pytest.mark.asyncio
async def test_close_gateway_releases_shared_instance():
    closed = []

    class Tracking:
        async def aclose(self):
            closed.append(True)

    tools.set_gateway(Tracking())
    await tools.close_gateway()
    assert closed == [True]
    # Closing again is a no-op.
    await tools.close_gateway()
    assert closed == [True]
    tools.set_gateway(None)
