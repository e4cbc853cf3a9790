from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from certservice.api.batches import router as batches_router
from certservice.api.certificates import router as certificates_router
from certservice.api.health import router as health_router
from certservice.api.metrics_endpoint import router as metrics_router
from certservice.api.verify import router as verify_router
from certservice.core.config import SETTINGS
from certservice.core.logging import setup_logging
from certservice.db.engine import lifespan_db
from certservice.db.redis import lifespan_redis
from certservice.middleware.metrics import MetricsMiddleware
from certservice.middleware.request_context import RequestContextMiddleware

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    # Torn down in reverse order
    async with lifespan_db():
        async with lifespan_redis():
            yield


app = FastAPI(
    title="certificate-service",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

# The verification page is served from VERIFY_BASE_URL
app.add_middleware(
    CORSMiddleware,
    allow_origins=[SETTINGS.verify_base_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Last added runs first: RequestContext -> Metrics -> CORS -> route
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)

app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(certificates_router)
app.include_router(batches_router)
app.include_router(verify_router)

logger.info(
    "certificate-service started  env=%s log_level=%s port=%d docs=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    "on" if SETTINGS.is_dev else "off",
)
