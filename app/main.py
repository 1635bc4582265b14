"""LeadLaunch — FastAPI Application Entry Point.

Connect a Meta ad account, launch website-leads campaigns, and report on
their periodically refreshed insights.
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.database import init_db, test_connection
from app.scheduler.jobs import start_scheduler, stop_scheduler
from app.api.auth_routes import router as auth_router
from app.api.meta_routes import router as meta_router
from app.api.campaign_routes import router as campaign_router
from app.api.report_routes import router as report_router
from app.core.errors import AppError
from app.core.logging import get_logger

logger = get_logger("main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    logger.info("🚀 LeadLaunch starting up...")
    if test_connection():
        init_db()
    else:
        logger.error("❌ Database NOT connected — endpoints will fail")
    start_scheduler()
    yield
    stop_scheduler()
    logger.info("LeadLaunch shut down")


app = FastAPI(
    title="LeadLaunch",
    description="Connect Meta Ads, launch website-leads campaigns, and track their insights.",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Error Handlers ──


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(
            f"{request.method} {request.url.path} failed: {exc.message}",
            extra={"status_code": exc.status_code},
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request", "details": jsonable_encoder(exc.errors())},
    )


# Routers
app.include_router(auth_router)
app.include_router(meta_router)
app.include_router(campaign_router)
app.include_router(report_router)


@app.get("/health", tags=["System"])
async def health_check():
    """Health check endpoint."""
    return {"ok": True, "ts": int(time.time() * 1000)}


if __name__ == "__main__":
    import uvicorn

    from app.config import settings

    uvicorn.run("app.main:app", host="0.0.0.0", port=settings.port)
