import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from logzio_gateway.errors import ErrorKind, GatewayError
from logzio_gateway.gateway import LogzioGateway
from logzio_gateway.schemas.requests import (
    SearchRequest,
    StatisticsRequest,
    StructuredQueryRequest,
)
from logzio_gateway.schemas.results import NormalizedResult

logger = logging.getLogger(__name__)
router = APIRouter()

_STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 422,
    ErrorKind.AUTHENTICATION: 401,
    ErrorKind.RATE_LIMIT: 429,
    ErrorKind.BACKEND_UNAVAILABLE: 503,
    ErrorKind.BAD_REQUEST: 400,
    ErrorKind.CANCELLED: 499,
}


def get_gateway(request: Request) -> LogzioGateway:
    gateway = getattr(request.app.state, "gateway", None)
    if gateway is None:
        raise HTTPException(status_code=503, detail="Log gateway is not configured.")
    return gateway


def _http_error(exc: GatewayError) -> HTTPException:
    status = _STATUS_BY_KIND.get(exc.kind, 502)
    headers = None
    if exc.kind is ErrorKind.RATE_LIMIT and exc.retry_after_ms is not None:
        headers = {"Retry-After": str(max(1, exc.retry_after_ms // 1000))}
    logger.warning(
        "[logs] %s failed: kind=%s backend_status=%s -> HTTP %d",
        exc.context.get("operation"), exc.kind.value, exc.status_code, status,
    )
    return HTTPException(
        status_code=status,
        detail={"kind": exc.kind.value, "message": exc.message, "backend_status": exc.status_code},
        headers=headers,
    )


@router.post("/search", response_model=NormalizedResult)
async def search_logs(
    payload: SearchRequest, gateway: LogzioGateway = Depends(get_gateway)
) -> NormalizedResult:
    """Free-text log search."""
    try:
        return await gateway.search(payload)
    except GatewayError as exc:
        raise _http_error(exc) from exc


@router.post("/query", response_model=NormalizedResult)
async def query_logs(
    payload: StructuredQueryRequest, gateway: LogzioGateway = Depends(get_gateway)
) -> NormalizedResult:
    """Lucene query passed through to the backend."""
    try:
        return await gateway.structured_query(payload)
    except GatewayError as exc:
        raise _http_error(exc) from exc


@router.post("/stats", response_model=NormalizedResult)
async def log_stats(
    payload: StatisticsRequest, gateway: LogzioGateway = Depends(get_gateway)
) -> NormalizedResult:
    try:
        return await gateway.statistics(payload)
    except GatewayError as exc:
        raise _http_error(exc) from exc
