import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
from festival_portal.config import settings
from festival_portal.core.logging import setup_logging, get_logger
from festival_portal.core.exceptions import api_exception_handler, general_exception_handler, APIError
from festival_portal.core.middleware import principal_middleware, request_logging_middleware, PUBLIC_PATHS
from festival_portal.database import DatabasePool, check_database

# Initialize logging
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle - startup and shutdown"""
    sync_task = None
    if settings.sync_enabled:
        from festival_portal.tasks.ticket_sync import run_sync_loop
        sync_task = asyncio.create_task(run_sync_loop())
    else:
        logger.info("Scheduled ticket sync disabled (SYNC_ENABLED=false)")

    yield

    if sync_task:
        sync_task.cancel()
        try:
            await sync_task
        except asyncio.CancelledError:
            pass
    await DatabasePool.close_pool()


app = FastAPI(
    title="Festival Portal API",
    description="Ticket sales, economy and sponsor reporting for festival organizers",
    version="1.0.0",
    debug=settings.debug,
    docs_url="/docs",
    lifespan=lifespan
)


def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema
    openapi_schema = get_openapi(
        title="Festival Portal API",
        version="1.0.0",
        description="Ticket sales, economy and sponsor reporting for festival organizers",
        routes=app.routes,
    )
    openapi_schema.setdefault("components", {})["securitySchemes"] = {
        "cookieAuth": {
            "type": "apiKey",
            "in": "cookie",
            "name": "session-token"
        }
    }

    for path in openapi_schema["paths"]:
        if path in PUBLIC_PATHS:
            continue
        for method in openapi_schema["paths"][path]:
            if method in ["get", "post", "put", "delete", "patch"]:
                openapi_schema["paths"][path][method]["security"] = [{"cookieAuth": []}]

    app.openapi_schema = openapi_schema
    return app.openapi_schema

app.openapi = custom_openapi

# Exception handlers
app.add_exception_handler(APIError, api_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Custom middleware (order matters - first added runs last)
app.middleware("http")(request_logging_middleware)  # runs last
app.middleware("http")(principal_middleware)        # runs first

# Import and include routers
from festival_portal.routers import sales, economy, sponsors, exports, sync

app.include_router(sales.router, prefix="/sales", tags=["sales"])
app.include_router(economy.router, prefix="/economy", tags=["economy"])
app.include_router(sponsors.router, prefix="/sponsors", tags=["sponsors"])
app.include_router(exports.router, prefix="/exports", tags=["exports"])
app.include_router(sync.router, prefix="/sync", tags=["sync"])


@app.get("/")
async def root():
    return {
        "service": "Festival Portal API",
        "version": "1.0.0",
        "environment": settings.app_env
    }


@app.get("/health")
async def health():
    return {
        "status": "healthy",
        "database": "connected" if await check_database() else "unavailable",
        "sync_enabled": settings.sync_enabled
    }


# Auto-start server if run directly
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "festival_portal.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
