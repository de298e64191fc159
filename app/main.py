from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.certificates import router as certificates_router
from app.api.enrollments import router as enrollments_router
from app.api.exam import router as exam_router
from app.api.health import router as health_router
from app.api.materials import router as materials_router
from app.api.metrics_endpoint import router as metrics_router
from app.core.config import SETTINGS
from app.core.errors import EngineError
from app.core.logging import setup_logging
from app.db.engine import lifespan_db
from app.db.redis import lifespan_redis
from app.middleware.metrics import MetricsMiddleware
from app.middleware.request_context import RequestContextMiddleware

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    # Nested so teardown runs in reverse order.
    async with lifespan_db():
        async with lifespan_redis():
            yield


app = FastAPI(
    title="learning-engine",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Last added runs first: RequestContext -> Metrics -> CORS -> route.
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)


@app.exception_handler(EngineError)
async def engine_error_handler(request: Request, exc: EngineError) -> JSONResponse:
    """Render domain errors as {"detail", "error_code"[, "context"]}."""
    level = logging.WARNING if exc.status_code in (409, 500) else logging.INFO
    logger.log(
        level,
        "%s %s rejected: %s (%s)",
        request.method,
        request.url.path,
        exc.detail,
        exc.error_code,
        extra={"error_code": exc.error_code, "status_code": exc.status_code},
    )
    body: dict = {"detail": exc.detail, "error_code": exc.error_code}
    if exc.extra:
        body["context"] = jsonable_encoder(exc.extra)
    return JSONResponse(status_code=exc.status_code, content=body)


app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(enrollments_router)
app.include_router(exam_router)
app.include_router(certificates_router)
app.include_router(materials_router)

logger.info(
    "learning-engine started  env=%s log_level=%s port=%d docs=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    "on" if SETTINGS.is_dev else "off",
)
