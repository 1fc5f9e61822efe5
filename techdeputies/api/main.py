"""
FastAPI app assembly: logging, middleware and router wiring.
"""
import logging
import os
import time

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from techdeputies.config import SITE_NAME, cors_origins

# Configure logging
LOG_LEVEL_NAME = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_LEVEL = getattr(logging, LOG_LEVEL_NAME, logging.INFO)
logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)
logger.setLevel(LOG_LEVEL)
logger.info("app_startup: log_level=%s", LOG_LEVEL_NAME)

from techdeputies.api.admin import router as admin_router
from techdeputies.api.audits import router as audits_router
from techdeputies.api.auth import router as auth_router
from techdeputies.api.bmad import router as bmad_router
from techdeputies.api.bookings import router as bookings_router
from techdeputies.api.calendar_events import router as calendar_events_router
from techdeputies.api.courses import router as courses_router
from techdeputies.api.email_webhooks import router as email_webhooks_router
from techdeputies.api.gift_cards import router as gift_cards_router
from techdeputies.api.subscriptions import plans_router, router as subscriptions_router

# Tables are created on first DB access for SQLite; other databases use Alembic.

app = FastAPI(
    title=f"{SITE_NAME} API",
    description="Bookings, courses, gift cards, subscriptions and admin tools for The Tech Deputies.",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    logger.info(
        "request method=%s path=%s status=%s duration_ms=%.1f",
        request.method,
        request.url.path,
        response.status_code,
        (time.perf_counter() - started) * 1000,
    )
    return response


@app.exception_handler(Exception)
async def unhandled_exception(request: Request, exc: Exception):
    logger.exception("unhandled_error method=%s path=%s", request.method, request.url.path)
    return JSONResponse({"detail": "Internal server error"}, status_code=500)


app.include_router(auth_router)
app.include_router(admin_router)
app.include_router(audits_router)
app.include_router(gift_cards_router)
app.include_router(courses_router)
app.include_router(calendar_events_router)
app.include_router(bookings_router)
app.include_router(plans_router)
app.include_router(subscriptions_router)
app.include_router(bmad_router)
app.include_router(email_webhooks_router)


@app.get("/health")
def health_check():
    return {"status": "ok", "service": "techdeputies"}
