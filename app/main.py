import threading
from contextlib import asynccontextmanager
from datetime import datetime
from functools import partial
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from app.api import bookings
from app.core.config import Settings, settings as default_settings
from app.core.errors import PersistenceError, ValidationError
from app.core.logger import setup_logging, logger
from app.services.backup_service import BackupManager
from app.services.booking_service import BookingService
from app.services.db_service import RecordStore
from app.services.notification_service import send_booking_confirmation

setup_logging()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"🚀 Starting {settings.PROJECT_NAME}")

        # Store writes and backup copies share one lock
        gate = threading.Lock()
        backup_manager = BackupManager(
            settings.DB_PATH,
            settings.BACKUP_PATH,
            gate=gate,
            interval=settings.BACKUP_INTERVAL_SECONDS,
        )
        # StoreUnavailable propagates here and aborts startup
        backup_manager.ensure_store()
        store = RecordStore(settings.DB_PATH, gate=gate).open()

        notifier = partial(send_booking_confirmation, enabled=settings.EMAIL_NOTIFICATIONS_ENABLED)
        app.state.settings = settings
        app.state.store = store
        app.state.backup_manager = backup_manager
        app.state.booking_service = BookingService(store, unit_price=settings.UNIT_PRICE, notifier=notifier)

        backup_manager.start()
        try:
            yield
        finally:
            logger.info("🛑 Shutting down backend")
            try:
                await backup_manager.shutdown()
            finally:
                store.close()

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version="0.1.0",
        lifespan=lifespan
    )

    @app.exception_handler(ValidationError)
    async def validation_exception_handler(request: Request, exc: ValidationError):
        return JSONResponse(status_code=400, content={"message": "Booking rejected", "detail": str(exc)})

    @app.exception_handler(PersistenceError)
    async def persistence_exception_handler(request: Request, exc: PersistenceError):
        logger.error(f"❌ Persistence failure on {request.url.path}: {exc}")
        return JSONResponse(status_code=500, content={"message": "Booking failed", "detail": "The booking could not be saved."})

    # Global Exception Handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.opt(exception=exc).error(f"🔥 UNHANDLED ERROR: {str(exc)}")
        return JSONResponse(
            status_code=500,
            content={"message": "Internal Server Error", "detail": "An unexpected error occurred. Please contact support."}
        )

    app.include_router(bookings.router, tags=["Bookings"])

    @app.get("/health")
    async def health_check():
        return {"status": "ok", "environment": settings.ENVIRONMENT, "timestamp": datetime.now().isoformat()}

    # Booking form; mounted last so API routes win
    if Path(settings.STATIC_DIR).is_dir():
        app.mount("/", StaticFiles(directory=settings.STATIC_DIR, html=True), name="static")

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:app", host="0.0.0.0", port=default_settings.PORT)
