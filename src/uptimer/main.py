import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from uptimer.config import get_settings
from uptimer.database import close_db, init_db
from uptimer.routers import monitors, notifications

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=logging.INFO if not settings.debug else logging.DEBUG,
    format="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()

    # Start the check scheduler (skip in test mode)
    if not getattr(app.state, "_testing", False):
        from uptimer.scheduler import start_scheduler
        start_scheduler()

    yield

    if not getattr(app.state, "_testing", False):
        from uptimer.scheduler import stop_scheduler
        stop_scheduler()
    await close_db()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    lifespan=lifespan,
)

app.include_router(monitors.router)
app.include_router(notifications.router)


@app.get("/api/health")
async def health_check():
    return {
        "status": "healthy",
        "app": settings.app_name,
        "version": settings.app_version,
    }
