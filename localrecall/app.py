"""FastAPI application for the LocalRecall backend."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import API_ALLOWED_ORIGINS, API_HOST, API_PORT
from .health import check_database_health
from .models import HealthResponse
from .logging_config import configure_logging
from .routes import resolve_storage, router

configure_logging()
LOGGER = logging.getLogger(__name__)
LOGGER.info("Creating LocalRecall FastAPI application")

app = FastAPI(
    title="LocalRecall API",
    version="1.0.0",
    description="AI provider layer and knowledge endpoints for the LocalRecall knowledge base.",
)

# Allow list is driven by configuration so deployments can constrain access.
app.add_middleware(
    CORSMiddleware,
    allow_origins=API_ALLOWED_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)


@app.on_event("startup")
def ensure_storage_ready() -> None:
    """Create database tables before the first request is served."""
    LOGGER.info("Backend startup hook triggered, initialising storage")
    try:
        resolve_storage()
    except Exception:  # pylint: disable=broad-except
        LOGGER.exception("Storage failed to initialise during startup")
        raise


@app.get("/health", tags=["health"], response_model=HealthResponse)
def healthcheck() -> HealthResponse:
    """Report service liveness along with a database check."""
    database = check_database_health()
    return HealthResponse(
        status="ok" if database.status == "ok" else "degraded",
        checks=[database.to_dict()],
    )


def main() -> None:
    """Run the API under Uvicorn."""
    import uvicorn

    LOGGER.info("Launching Uvicorn development server on %s:%s", API_HOST, API_PORT)
    uvicorn.run("localrecall.app:app", host=API_HOST, port=API_PORT, reload=True)


if __name__ == "__main__":
    main()
