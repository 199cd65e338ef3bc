import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException

from logzio_gateway.api.logs import router as logs_router
from logzio_gateway.config import settings
from logzio_gateway.errors import GatewayError
from logzio_gateway.gateway import LogzioGateway

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    try:
        app.state.gateway = LogzioGateway(settings.to_gateway_config())
    except GatewayError as exc:
        # Keep serving /health so the misconfiguration is visible.
        logger.error("Log gateway disabled: %s", exc.message)
        app.state.gateway = None
    else:
        logger.info("Log gateway ready, base_url=%s", app.state.gateway.config.base_url)
    yield
    if app.state.gateway is not None:
        await app.state.gateway.aclose()


app = FastAPI(title="Logz.io Query Gateway", lifespan=lifespan)
app.include_router(logs_router, prefix="/api/logs", tags=["logs"])


@app.get("/health")
async def health():
    gateway = getattr(app.state, "gateway", None)
    if gateway is None:
        raise HTTPException(status_code=503, detail="Log gateway is not configured.")
    try:
        return await gateway.health_check()
    except GatewayError as exc:
        raise HTTPException(
            status_code=503,
            detail=f"Health check failed: {exc.message.splitlines()[0]}",
        ) from exc
