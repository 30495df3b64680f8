from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from wepay_link.config import settings
from wepay_link.api.submit import router as submit_router
from wepay_link.api.wepay import router as wepay_router
from wepay_link.database import engine

# Configure structlog
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        (
            structlog.dev.ConsoleRenderer()
            if settings.APP_ENV == "development"
            else structlog.processors.JSONRenderer()
        ),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(0),
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
    cache_logger_on_first_use=True,
)

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    log.info(
        "starting_up",
        env=settings.APP_ENV,
        wepay_environment="stage" if settings.WEPAY_TEST_MODE else "production",
        app_fee_enabled=settings.WEPAY_APP_FEE != "",
    )
    if not settings.WEPAY_CLIENT_ID or not settings.WEPAY_CLIENT_SECRET:
        log.warning("wepay_credentials_missing")
    if not settings.WEPAY_GATEWAY_SECRET:
        log.warning("wepay_gateway_secret_missing")

    yield

    # Shutdown
    log.info("shutting_down")
    await engine.dispose()


app = FastAPI(
    title="WePay Link",
    lifespan=lifespan,
)

app.include_router(submit_router)
app.include_router(wepay_router)


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
