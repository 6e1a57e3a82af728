import logging
import os

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from booking_engine.api.routes import aftercare, availability, bookings, calendar
from booking_engine.core.config import settings, _ENV_FILE
from booking_engine.core.errors import SchedulingError
from booking_engine.core.timezones import is_valid_time_zone

_LOG_FORMATS = {
    "production": '{"time": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s"}',
}
_env = os.getenv("ENV", settings.env)
logging.basicConfig(
    level=logging.INFO if _env == "production" else logging.DEBUG,
    format=_LOG_FORMATS.get(_env, logging.BASIC_FORMAT),
)
logger = logging.getLogger(__name__)

_ALLOWED_METHODS = ["GET", "POST", "PATCH", "DELETE", "OPTIONS"]
_ALLOWED_HEADERS = ["Authorization", "Content-Type"]

app = FastAPI(
    title="Booking Engine API",
    description="Availability, rescheduling and aftercare rebook scheduling",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=_ALLOWED_METHODS,
    allow_headers=_ALLOWED_HEADERS,
)

for _router in (availability.router, bookings.router, aftercare.router, calendar.router):
    app.include_router(_router, prefix="/api/v1")


def _error_response(request: Request, status_code: int, content: dict) -> JSONResponse:
    """JSON error with CORS headers; handler responses bypass the CORS middleware."""
    origins = settings.cors_origins_list
    origin = request.headers.get("origin")
    headers = {
        "Access-Control-Allow-Credentials": "true",
        "Access-Control-Allow-Methods": ", ".join(_ALLOWED_METHODS),
        "Access-Control-Allow-Headers": ", ".join(_ALLOWED_HEADERS),
    }
    if origins:
        headers["Access-Control-Allow-Origin"] = origin if origin in origins else origins[0]
    return JSONResponse(status_code=status_code, content=content, headers=headers)


@app.exception_handler(SchedulingError)
async def scheduling_error_handler(request: Request, exc: SchedulingError) -> JSONResponse:
    logger.info("%s %s rejected: %s (%s)", request.method, request.url.path, exc.code, exc.message)
    return _error_response(request, exc.status_code, {"detail": exc.message, "code": exc.code})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    if isinstance(exc, HTTPException):
        return _error_response(request, exc.status_code, {"detail": exc.detail})
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error_response(request, 500, {"detail": f"{type(exc).__name__}: {exc}"})


@app.on_event("startup")
def startup_log() -> None:
    logger.info("Settings from %s (exists: %s), env=%s", _ENV_FILE, _ENV_FILE.exists(), _env)
    if not is_valid_time_zone(settings.default_time_zone):
        logger.warning(
            "DEFAULT_TIME_ZONE %r is not a known IANA zone; falling back to UTC",
            settings.default_time_zone,
        )


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}
