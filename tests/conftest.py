import json
from datetime import datetime, timezone
from typing import Any, Callable, Union

import httpx
import pytest

from logzio_gateway.config import GatewayConfig
from logzio_gateway.gateway import LogzioGateway

NOW = datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)

Reply = Union[httpx.Response, Exception, Callable[[httpx.Request], httpx.Response]]


class FakeBackend:
    """Scripted Logz.io search endpoint; the last reply repeats once the script runs out."""

    def __init__(self, *replies: Reply):
        self.replies = list(replies)
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        if callable(reply) and not isinstance(reply, httpx.Response):
            return reply(request)
        return reply

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def payloads(self) -> list[dict[str, Any]]:
        return [json.loads(r.content) for r in self.requests]


class SleepRecorder:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def ok(body: dict[str, Any] | None = None) -> httpx.Response:
    return httpx.Response(200, json=body if body is not None else search_body())


def search_body(total: Any = 2, docs: list[dict[str, Any]] | None = None, **extra: Any) -> dict[str, Any]:
    docs = docs if docs is not None else [
        {"@timestamp": "2025-01-15T11:59:00.000Z", "level": "error", "message": "upstream timeout"},
        {"@timestamp": "2025-01-15T11:58:00.000Z", "level": "error", "message": "db timeout"},
    ]
    body = {
        "took": 12,
        "timed_out": False,
        "hits": {"total": total, "hits": [{"_id": str(i), "_source": d} for i, d in enumerate(docs)]},
    }
    body.update(extra)
    return body


@pytest.fixture
def config() -> GatewayConfig:
    return GatewayConfig(api_key="test-token", base_url="https://api.logz.io")


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def make_gateway(config, sleeper):
    def _make(backend: FakeBackend, cfg: GatewayConfig | None = None) -> LogzioGateway:
        return LogzioGateway(
            cfg or config,
            transport=backend.transport,
            sleep=sleeper,
            clock=lambda: NOW,
        )

    return _make
