# shopagenda/main.py
from __future__ import annotations

# Load .env early so settings and os.getenv agree
from dotenv import load_dotenv
load_dotenv()

import sqlalchemy as sa
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from shopagenda.core.config import settings
from shopagenda.core.errors import AgendaError, log_error
from shopagenda.core.logging import LoggingMiddleware, get_logger, redact_path, setup_logging
from shopagenda.db.session import get_session

# Routers
from shopagenda.api.routes.appointments import router as appointments_router
from shopagenda.api.routes.public import router as public_router
from shopagenda.api.routes.working_hours import router as working_hours_router

setup_logging(
    debug=settings.is_development,
    max_log_length=settings.MAX_LOG_LENGTH,
    level=settings.LOG_LEVEL,
)
logger = get_logger(__name__)

app = FastAPI(title="Shop Agenda", description="Repair-shop appointments with client confirmation links")

app.middleware("http")(
    LoggingMiddleware(
        log_requests=settings.LOG_REQUESTS or settings.is_development,
        slow_threshold=settings.SLOW_REQUEST_THRESHOLD,
    )
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Correlation-ID"],
)


@app.exception_handler(AgendaError)
async def agenda_error_handler(request: Request, exc: AgendaError):
    log_error(exc, {"endpoint": redact_path(request.url.path), "method": request.method})
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# -------- Health / readiness (public) --------
@app.get("/healthz", include_in_schema=False)
async def healthz():
    return {"ok": True}


@app.get("/readyz", include_in_schema=False)
async def readyz(db: AsyncSession = Depends(get_session)):
    await db.execute(sa.text("SELECT 1"))
    return {"db": "ok"}


# -------- Include routers --------
app.include_router(appointments_router)
app.include_router(working_hours_router)
app.include_router(public_router)

logger.info("app_configured", env=settings.APP_ENV, sms_enabled=settings.sms_enabled)
