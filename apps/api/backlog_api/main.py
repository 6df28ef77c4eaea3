from __future__ import annotations

import logging
from time import monotonic

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from backlog_api.config import settings
from backlog_api.errors import BacklogError
from backlog_api.logging_config import configure_logging
from backlog_api.metrics import runtime_metrics
from backlog_api.routers.backlog import router as backlog_router

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="Backlog Sync API", version="0.1.0")


@app.exception_handler(BacklogError)
async def _backlog_error_handler(_, exc: BacklogError) -> JSONResponse:
  if exc.status_code >= 500:
    logger.error("request failed: %s", exc.message)
  return JSONResponse(status_code=exc.status_code, content={"detail": {"message": exc.message, **exc.details}})


app.include_router(backlog_router)


@app.middleware("http")
async def _request_metrics_middleware(request, call_next):
  start = monotonic()
  response = await call_next(request)
  elapsed_ms = (monotonic() - start) * 1000.0
  runtime_metrics.observe_request(response.status_code, elapsed_ms)
  response.headers.setdefault("X-Content-Type-Options", "nosniff")
  return response


@app.on_event("startup")
async def _startup() -> None:
  logger.info(
    "backlog sync starting: channel sink %s, webhook sink %s, refinement %s",
    "on" if settings.channel_sink_enabled() else "off",
    "on" if settings.webhook_sink_enabled() else "off",
    settings.refinement_provider,
  )


@app.get("/health")
async def health() -> dict:
  return {"ok": True}


@app.get("/version")
async def version() -> dict:
  return {"version": settings.app_version, "buildSha": settings.build_sha}


@app.get("/metrics")
async def metrics() -> dict:
  return runtime_metrics.snapshot()
