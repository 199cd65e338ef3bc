"""Deliver one logical search call to Logz.io with bounded, delayed retries."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

import httpx

from logzio_gateway.config import GatewayConfig
from logzio_gateway.errors import (
    ErrorKind,
    GatewayError,
    classify_exception,
    classify_response,
    is_retryable,
    retry_delay_ms,
)

logger = logging.getLogger(__name__)

SEARCH_PATH = "/v1/search"
CLIENT_ID = "logzio-gateway/0.1.0"
MAX_BACKOFF_MS = 30_000

SleepFn = Callable[[float], Awaitable[Any]]
T = TypeVar("T")


def build_http_client(
    config: GatewayConfig, transport: Optional[httpx.AsyncBaseTransport] = None
) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=config.base_url,
        timeout=config.timeout_ms / 1000,
        headers={
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": CLIENT_ID,
            "X-API-TOKEN": config.api_key,
        },
        transport=transport,
    )


def backoff_delay_ms(attempt: int, base_delay_ms: int) -> int:
    """Exponential backoff for the wait after ``attempt`` (1-based), capped at 30s."""
    return min(base_delay_ms * 2 ** (attempt - 1), MAX_BACKOFF_MS)


class RequestExecutor:
    """POSTs query payloads and retries transient failures.

    ``max_attempts`` counts every HTTP call, so 3 means the first try plus at
    most two retries. Retries run strictly one after another.
    """

    def __init__(
        self,
        config: GatewayConfig,
        *,
        client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Optional[SleepFn] = None,
    ):
        self._config = config
        self._owns_client = client is None
        self._client = client or build_http_client(config, transport)
        self._sleep: SleepFn = sleep or asyncio.sleep

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def execute(
        self,
        payload: dict[str, Any],
        *,
        operation: str = "search",
        cancel_event: Optional[asyncio.Event] = None,
    ) -> dict[str, Any]:
        max_attempts = self._config.max_attempts
        attempt = 1
        while True:
            context = {"operation": operation, "attempt": attempt}
            try:
                return await self._send(payload, context, cancel_event)
            except Exception as exc:
                error = classify_exception(exc, context)
                if (
                    error.kind is ErrorKind.CANCELLED
                    or attempt >= max_attempts
                    or not is_retryable(error)
                ):
                    logger.error(
                        "[executor] %s failed (kind=%s status=%s) after %d/%d attempt(s): %s",
                        operation, error.kind.value, error.status_code,
                        attempt, max_attempts, error.message.splitlines()[0],
                    )
                    if error is exc:
                        raise
                    raise error from exc

                delay_ms = retry_delay_ms(error)
                if delay_ms is None:
                    delay_ms = backoff_delay_ms(attempt, self._config.base_delay_ms)
                logger.warning(
                    "[executor] %s attempt %d/%d failed (kind=%s status=%s), retrying in %dms",
                    operation, attempt, max_attempts,
                    error.kind.value, error.status_code, delay_ms,
                )

            await self._race(self._sleep(delay_ms / 1000), cancel_event, context)
            attempt += 1

    async def _send(
        self,
        payload: dict[str, Any],
        context: dict[str, Any],
        cancel_event: Optional[asyncio.Event],
    ) -> dict[str, Any]:
        logger.debug("[executor] POST %s%s %s", self._config.base_url, SEARCH_PATH, context)
        response = await self._race(
            self._client.post(SEARCH_PATH, json=payload), cancel_event, context
        )
        logger.debug(
            "[executor] %s responded %d (attempt %d)",
            SEARCH_PATH, response.status_code, context["attempt"],
        )
        if response.is_error:
            raise classify_response(response, context)

        try:
            body = response.json()
        except ValueError:
            raise GatewayError(
                ErrorKind.UNKNOWN,
                "Backend returned a response that is not valid JSON",
                status_code=response.status_code,
                context={**context, "data": response.text[:500]},
            ) from None
        if not isinstance(body, dict):
            raise GatewayError(
                ErrorKind.UNKNOWN,
                f"Expected a JSON object from the backend, received {type(body).__name__}",
                status_code=response.status_code,
                context={**context, "data": body},
            )
        return body

    async def _race(
        self,
        awaitable: Awaitable[T],
        cancel_event: Optional[asyncio.Event],
        context: dict[str, Any],
    ) -> T:
        """Await ``awaitable`` unless ``cancel_event`` fires first."""
        if cancel_event is None:
            return await awaitable

        work = asyncio.ensure_future(awaitable)
        if cancel_event.is_set():
            work.cancel()
            await asyncio.gather(work, return_exceptions=True)
            raise GatewayError(ErrorKind.CANCELLED, "Request cancelled", context=context)

        watcher = asyncio.ensure_future(cancel_event.wait())
        try:
            await asyncio.wait({work, watcher}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            pending = [task for task in (work, watcher) if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        if work.done() and not work.cancelled():
            return work.result()
        raise GatewayError(ErrorKind.CANCELLED, "Request cancelled", context=context)
