"""FastAPI application for the firmware update service."""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import uvicorn
from fastapi import FastAPI

from fwupdater.api.routes import router
from fwupdater.config import Settings
from fwupdater.services.context import UpdaterContext
from fwupdater.utils.logging import setup_logger

VERSION = "1.0.0"


def create_app(
    settings: Optional[Settings] = None,
    context: Optional[UpdaterContext] = None,
) -> FastAPI:
    """Build the application.

    Args:
        settings: Service settings (FWUPDATER_* environment if None)
        context: Prebuilt session; created during startup if None
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup: logger, directories, session. Shutdown: cancel runs."""
        app_settings = settings or (context.settings if context else Settings())
        logger = setup_logger(app_settings.log_level_value, app_settings.log_file)
        logger.info("fwupdater starting up...")

        for directory in (app_settings.firmware_dir, app_settings.backup_dir):
            Path(directory).mkdir(parents=True, exist_ok=True)
            logger.debug(f"Ensured directory exists: {directory}")

        app.state.context = context or UpdaterContext(app_settings)
        twin_backend = app_settings.twin_url or "in-memory"
        logger.info(f"fwupdater ready on port {app_settings.port} (twins: {twin_backend})")

        yield

        logger.info("fwupdater shutting down...")
        await app.state.context.aclose()

    app = FastAPI(
        title="fwupdater",
        description="Firmware update orchestration reported through device twins",
        version=VERSION,
        lifespan=lifespan,
    )
    app.include_router(router)

    @app.get("/")
    async def root():
        """Health check endpoint."""
        return {"status": "ok", "service": "fwupdater", "version": VERSION}

    return app


# Module-level app for `uvicorn fwupdater.main:app`
app = create_app()


def main(settings: Optional[Settings] = None) -> None:
    """Run the HTTP service."""
    settings = settings or Settings()
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        access_log=True,
    )


if __name__ == "__main__":
    main()
