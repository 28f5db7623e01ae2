import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from practicepulse.config import settings
from practicepulse.logging_config import setup_logging
from practicepulse.middleware import CorrelationIDMiddleware
from practicepulse.records.source import RecordSourceError
from practicepulse.reports.router import router as reports_router

setup_logging(settings.log_level, json_output=settings.is_production)

logger = logging.getLogger(__name__)

REPORT_FAILED_MESSAGE = "Failed to load report data"

app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    docs_url="/api/docs",
    openapi_url="/api/openapi.json",
)

# Middleware
app.add_middleware(CorrelationIDMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.backend_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(reports_router, prefix="/api/reports", tags=["Reports"])


@app.exception_handler(RecordSourceError)
async def record_source_error_handler(request: Request, exc: RecordSourceError):
    logger.exception(
        "Report %s failed",
        request.url.path,
        exc_info=exc,
        extra={"correlation_id": getattr(request.state, "correlation_id", None)},
    )
    return JSONResponse(status_code=500, content={"error": REPORT_FAILED_MESSAGE})


@app.get("/api/health")
async def health_check():
    return {"status": "healthy", "version": settings.app_version}
