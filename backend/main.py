import os

from fastapi.openapi.utils import get_openapi
from dotenv import load_dotenv

# Load environment variables before settings are read
load_dotenv()

from nanny_booking.main import app  # noqa: E402


def custom_openapi() -> dict:
    """Return OpenAPI schema with project metadata."""
    if app.openapi_schema:
        return app.openapi_schema
    app.openapi_schema = get_openapi(
        title="Nanny Booking Engine API",
        version="1.0.0",
        description="Booking wizard preferences, preview pricing and booking submission.",
        routes=app.routes,
    )
    return app.openapi_schema


app.openapi = custom_openapi

if __name__ == "__main__":
    import uvicorn

    # Sessions and debounced writes live in process memory; run one worker.
    keepalive = int(os.getenv("UVICORN_KEEPALIVE", "65"))
    uvicorn.run(
        "nanny_booking.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=os.getenv("UVICORN_RELOAD", "0") == "1",
        timeout_keep_alive=keepalive,
    )
