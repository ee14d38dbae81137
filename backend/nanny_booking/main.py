import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import models  # noqa: F401  registers tables on Base.metadata
from .api import api_booking_preferences
from .core.config import settings
from .core.observability import setup_logging
from .database import Base, engine
from .services.session_registry import registry
from .utils.recovery_cache import close_redis_client

setup_logging()
logger = logging.getLogger(__name__)

Base.metadata.create_all(bind=engine)

app = FastAPI(title="Nanny Booking Engine API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
logger.info("CORS origins set to: %s", settings.CORS_ORIGINS)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Return validation errors in the shared ``message``/``field_errors`` shape."""
    errors = exc.errors()
    logger.warning("Validation error at %s: %s", request.url.path, errors)
    field_errors = {
        ".".join(str(part) for part in err.get("loc", ()) if part != "body"): err.get("msg", "invalid")
        for err in errors
    }
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": {"message": "Validation error", "field_errors": field_errors}},
    )


api_prefix = settings.API_V1_STR
app.include_router(api_booking_preferences.router, prefix=f"{api_prefix}/booking")


@app.get("/healthz")
def healthz() -> dict:
    return {"status": "ok"}


@app.on_event("shutdown")
def shutdown_booking_sessions() -> None:
    """Cancel pending profile writes and close Redis on shutdown."""
    logger.info("Closing booking sessions")
    registry.close_all()
    close_redis_client()
