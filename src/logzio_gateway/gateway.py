"""Query gateway: translate, execute with retries, normalize."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional, TypeVar, Union

import httpx
from pydantic import BaseModel, ValidationError

from logzio_gateway.config import GatewayConfig
from logzio_gateway.errors import ErrorKind, GatewayError
from logzio_gateway.executor import RequestExecutor, SleepFn
from logzio_gateway.normalizer import normalize_response
from logzio_gateway.query.time_range import format_instant
from logzio_gateway.query.translator import (
    build_health_check_payload,
    build_search_payload,
    build_statistics_payload,
    build_structured_query_payload,
)
from logzio_gateway.schemas.requests import (
    SearchRequest,
    StatisticsRequest,
    StructuredQueryRequest,
)
from logzio_gateway.schemas.results import NormalizedResult

logger = logging.getLogger(__name__)

RequestT = TypeVar("RequestT", bound=BaseModel)


def _validate(
    model: type[RequestT],
    request: Union[RequestT, Mapping[str, Any], None],
    overrides: Mapping[str, Any],
    operation: str,
) -> RequestT:
    if isinstance(request, model) and not overrides:
        return request
    data: dict[str, Any] = {}
    if isinstance(request, BaseModel):
        data.update(request.model_dump(by_alias=False, exclude_unset=True))
    elif request is not None:
        data.update(request)
    data.update(overrides)
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        messages = [f"{'.'.join(str(p) for p in err['loc']) or 'request'}: {err['msg']}" for err in exc.errors()]
        raise GatewayError(
            ErrorKind.VALIDATION,
            "Invalid parameters: " + ", ".join(messages),
            context={"operation": operation, "errors": exc.errors(include_url=False, include_context=False)},
        ) from exc


class LogzioGateway:
    """Entry point for ``search``, ``structured_query`` and ``statistics``.

    Each call is independent: the only thing calls share is the read-only
    config and the HTTP connection pool. Usable as an async context manager.
    """

    def __init__(
        self,
        config: GatewayConfig,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Optional[SleepFn] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        if not isinstance(config, GatewayConfig):
            raise GatewayError(
                ErrorKind.CONFIGURATION,
                f"Expected a GatewayConfig, got {type(config).__name__}",
            )
        self.config = config
        self._executor = RequestExecutor(config, transport=transport, sleep=sleep)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def __aenter__(self) -> "LogzioGateway":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._executor.aclose()

    async def search(
        self,
        request: Union[SearchRequest, Mapping[str, Any], None] = None,
        *,
        cancel_event: Optional[asyncio.Event] = None,
        **params: Any,
    ) -> NormalizedResult:
        """Free-text search, optionally narrowed by severity and log type."""
        req = _validate(SearchRequest, request, params, "search")
        logger.info(
            "[gateway] search query=%r time_range=%r severity=%s limit=%d",
            req.query, req.time_range, req.severity.value if req.severity else None, req.limit,
        )
        return await self._run(
            "search", lambda: build_search_payload(req, self._clock()), cancel_event
        )

    async def structured_query(
        self,
        request: Union[StructuredQueryRequest, Mapping[str, Any], None] = None,
        *,
        cancel_event: Optional[asyncio.Event] = None,
        **params: Any,
    ) -> NormalizedResult:
        """Run a Lucene query string as-is."""
        req = _validate(StructuredQueryRequest, request, params, "structured_query")
        logger.info(
            "[gateway] structured_query query=%r time_range=%r limit=%d",
            req.query, req.time_range, req.limit,
        )
        return await self._run(
            "structured_query",
            lambda: build_structured_query_payload(req, self._clock()),
            cancel_event,
        )

    async def statistics(
        self,
        request: Union[StatisticsRequest, Mapping[str, Any], None] = None,
        *,
        cancel_event: Optional[asyncio.Event] = None,
        **params: Any,
    ) -> NormalizedResult:
        """Counts over time plus per-field and per-level breakdowns."""
        req = _validate(StatisticsRequest, request, params, "statistics")
        logger.info(
            "[gateway] statistics time_range=%r group_by=%s", req.time_range, list(req.group_by)
        )
        return await self._run(
            "statistics", lambda: build_statistics_payload(req, self._clock()), cancel_event
        )

    async def health_check(self) -> dict[str, str]:
        """Check connectivity with a zero-size search (there is no health endpoint)."""
        await self._run("health_check", build_health_check_payload, None)
        return {"status": "ok", "timestamp": format_instant(self._clock())}

    async def _run(
        self,
        operation: str,
        build_payload: Callable[[], dict[str, Any]],
        cancel_event: Optional[asyncio.Event],
    ) -> NormalizedResult:
        try:
            payload = build_payload()
            raw = await self._executor.execute(
                payload, operation=operation, cancel_event=cancel_event
            )
            result = normalize_response(raw)
        except GatewayError as exc:
            exc.context.setdefault("operation", operation)
            raise
        except Exception as exc:
            logger.exception("[gateway] Unexpected failure in %s", operation)
            raise GatewayError(
                ErrorKind.UNKNOWN,
                str(exc) or type(exc).__name__,
                context={"operation": operation, "exception": type(exc).__name__},
            ) from exc

        logger.info(
            "[gateway] %s complete: total=%d returned=%d took=%dms",
            operation, result.total, len(result.items), result.took_ms,
        )
        return result
