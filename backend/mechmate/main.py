"""
Main FastAPI application for the Mechmate notification backend.
"""
import asyncio
from contextlib import asynccontextmanager
from typing import Awaitable, Callable
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from sqlalchemy import text

from mechmate import __version__
from mechmate.config import settings, get_vapid_keys, is_push_configured
from mechmate.constants import TASK_MONITOR_CHECK_INTERVAL_SECONDS, RETENTION_CLEANUP_INTERVAL_SECONDS
from mechmate.database import init_db, close_db, AsyncSessionLocal
from mechmate.middleware.correlation import CorrelationIdMiddleware
from mechmate.utils.errors import ErrorCode, create_error_response
from mechmate.utils.logger import setup_logger
from mechmate.services import (
    NotificationStore,
    WebPushTransport,
    DeliveryService,
    NotificationService,
    NotificationScheduler,
    RetentionService,
)
from mechmate.api import notifications


class BackgroundTaskMonitor:
    """
    Monitors and restarts background tasks if they die unexpectedly.
    """

    def __init__(self):
        self._tasks: dict[str, asyncio.Task] = {}
        self._task_factories: dict[str, Callable[[], Awaitable[None]]] = {}
        self._monitor_task: asyncio.Task | None = None
        self._running = False

    def register_task(self, name: str, factory: Callable[[], Awaitable[None]]) -> asyncio.Task:
        """
        Register and start a background task.

        Args:
            name: Unique name for the task
            factory: Coroutine factory that creates the task
        """
        self._task_factories[name] = factory
        task = asyncio.create_task(factory(), name=name)
        self._tasks[name] = task
        logger.info(f"Background task '{name}' started")
        return task

    async def start_monitoring(self, check_interval: float = TASK_MONITOR_CHECK_INTERVAL_SECONDS):
        """Start the task monitor."""
        self._running = True
        self._monitor_task = asyncio.create_task(
            self._monitor_loop(check_interval),
            name="task_monitor"
        )

    async def stop(self):
        """Stop all tasks and the monitor."""
        self._running = False

        for task in [self._monitor_task, *self._tasks.values()]:
            if task and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

    async def _monitor_loop(self, check_interval: float):
        """Monitor tasks and restart if needed."""
        while self._running:
            try:
                await asyncio.sleep(check_interval)

                for name, task in list(self._tasks.items()):
                    if not task.done():
                        continue
                    if task.cancelled():
                        logger.debug(f"Background task '{name}' was cancelled")
                        continue

                    exc = task.exception()
                    if exc:
                        logger.error(f"Background task '{name}' crashed: {exc}")

                    logger.warning(f"Restarting background task '{name}'")
                    self._tasks[name] = asyncio.create_task(self._task_factories[name](), name=name)

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in task monitor: {e}")


async def retention_cleanup_loop(retention_service: RetentionService):
    """Background task that prunes the notification log once a day."""
    while True:
        try:
            await asyncio.sleep(RETENTION_CLEANUP_INTERVAL_SECONDS)
            await retention_service.cleanup_old_data()
        except asyncio.CancelledError:
            logger.debug("Retention cleanup task cancelled")
            raise
        except Exception as e:
            logger.error(f"Error in retention cleanup task: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager."""
    # Startup
    setup_logger()
    logger.info(f"Starting {settings.app_name} notifications v{__version__}...")

    await init_db()
    logger.info("Database initialized")

    store = NotificationStore(AsyncSessionLocal)

    vapid_keys = get_vapid_keys()
    push_configured = is_push_configured(vapid_keys)
    if not push_configured:
        logger.warning("Push notifications not configured. VAPID keys or subject missing.")

    transport = WebPushTransport(
        vapid_private_key=vapid_keys.get("private_key", ""),
        vapid_subject=settings.vapid_subject,
        ttl=settings.push_ttl_seconds,
        timeout=settings.push_timeout_seconds,
    )
    delivery_service = DeliveryService(store, transport)
    notification_service = NotificationService(
        store,
        delivery_service,
        timezone=settings.timezone,
        log_requires_delivery=settings.notification_log_requires_delivery,
        push_configured=push_configured,
    )
    scheduler = NotificationScheduler(
        notification_service,
        schedule=settings.notification_cron_schedule,
        timezone=settings.timezone,
    )

    app.state.notification_store = store
    app.state.push_transport = transport
    app.state.delivery_service = delivery_service
    app.state.notification_service = notification_service
    app.state.notification_scheduler = scheduler
    app.state.vapid_public_key = vapid_keys.get("public_key")

    if settings.scheduler_enabled:
        scheduler.start()
    else:
        logger.info("Notification scheduler disabled via settings (SCHEDULER_ENABLED=false)")

    task_monitor = BackgroundTaskMonitor()
    app.state.task_monitor = task_monitor
    retention_service = RetentionService(store, settings.notification_log_retention_days)
    task_monitor.register_task("retention_cleanup", lambda: retention_cleanup_loop(retention_service))
    await task_monitor.start_monitoring()

    logger.info(f"{settings.app_name} notifications started successfully")

    yield

    # Shutdown
    logger.info("Shutting down...")
    await task_monitor.stop()
    scheduler.stop()
    await transport.close()
    await close_db()
    logger.info("Shut down complete")


app = FastAPI(
    title="Mechmate Notifications",
    description="Maintenance due-date push notifications",
    version=__version__,
    lifespan=lifespan
)

# Correlation ID middleware (first, to capture all requests)
app.add_middleware(CorrelationIdMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        f"http://localhost:{settings.port}",
        f"http://127.0.0.1:{settings.port}",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def jsonable_errors(exc: RequestValidationError) -> list:
    return [{"loc": list(err.get("loc", ())), "msg": err.get("msg")} for err in exc.errors()]


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed request bodies as 400 in the standard error shape."""
    return JSONResponse(
        status_code=400,
        content={
            "detail": create_error_response(
                ErrorCode.VALIDATION_ERROR,
                "Request validation failed",
                {"errors": jsonable_errors(exc)},
            )
        },
    )


app.include_router(notifications.router)


@app.get("/api/status/health")
async def health_check():
    """Combined health check endpoint."""
    return {
        "status": "healthy",
        "version": __version__
    }


@app.get("/api/status/live")
async def liveness_check():
    """
    Liveness probe - checks if the process is alive.
    Should return 200 if the app is running, regardless of dependencies.
    """
    return {"status": "alive"}


@app.get("/api/status/ready")
async def readiness_check(request: Request):
    """
    Readiness probe - checks database connectivity and the scheduler.
    """
    checks = {
        "database": False,
        "scheduler": False,
    }

    try:
        async with AsyncSessionLocal() as db:
            await db.execute(text("SELECT 1"))
            checks["database"] = True
    except Exception as e:
        logger.warning(f"Readiness check - database failed: {e}")

    scheduler = getattr(request.app.state, "notification_scheduler", None)
    if scheduler is not None and (scheduler.is_running or not settings.scheduler_enabled):
        checks["scheduler"] = True

    if all(checks.values()):
        return {"status": "ready", "checks": checks}
    return JSONResponse(status_code=503, content={"status": "not_ready", "checks": checks})


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.host, port=settings.port)
