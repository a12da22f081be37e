import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from smartshort_app.config import settings
from smartshort_app.database.connection import close_db, init_db
from smartshort_app.logging_config import setup_logging
from smartshort_app.api import analytics, redirect, urls
from smartshort_app.dependencies import get_analyzer, get_cache, get_event_dispatcher, get_notifier
from smartshort_app.exceptions import AllocationExhausted, ShortLinkError
from smartshort_app.reaper.reaper_worker import ReaperWorker

setup_logging()
logger = logging.getLogger("smartshort")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create database tables
    await init_db()

    reaper_task = None
    reaper = None
    if settings.reaper_enabled:
        reaper = ReaperWorker()
        reaper_task = asyncio.create_task(reaper.start())

    yield

    if reaper is not None:
        reaper.stop()
        reaper_task.cancel()
        await asyncio.gather(reaper_task, return_exceptions=True)

    await get_event_dispatcher().drain()
    await get_analyzer().close()
    await get_cache().close()
    await get_notifier().close()
    await close_db()


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="URL shortener with custom aliases, expiring links and click analytics",
    debug=settings.debug,
    lifespan=lifespan,
)


@app.exception_handler(ShortLinkError)
async def short_link_error_handler(request: Request, exc: ShortLinkError):
    if isinstance(exc, AllocationExhausted):
        logger.error("❌ %s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg')}" if field else first.get("msg")
    else:
        message = "Invalid request"
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "error": message},
    )


@app.get("/")
def read_root():
    """Root endpoint with API information"""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "docs": "/docs",
        "redoc": "/redoc"
    }


@app.get("/health")
def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "environment": settings.environment}


######## Include routers
app.include_router(urls.router, prefix="/api")
app.include_router(analytics.router, prefix="/api")
app.include_router(redirect.router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host=settings.host, port=settings.port, reload=settings.debug)
