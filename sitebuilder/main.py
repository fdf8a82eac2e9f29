from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sitebuilder.api import builder, websocket
from sitebuilder.core.errors import ArtifactMissingError, NoActiveProjectError
from sitebuilder.core.session import get_session_registry
from sitebuilder.memory.db import dispose_engine, init_db
from sitebuilder.settings import get_settings
from sitebuilder.utils.logging import configure_logging, get_logger

LOGGER = get_logger(__name__)
configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    settings = get_settings()
    await init_db()
    LOGGER.info("Site builder ready (generation_mode=%s)", settings.generation_mode)

    yield
    await get_session_registry().shutdown()
    await dispose_engine()


app = FastAPI(
    title="Site Builder Backend",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def check_api_key(request: Request, call_next):
    settings = get_settings()
    # Only enforce if key is set and path starts with /api (exclude docs/websocket)
    if settings.admin_api_key and request.url.path.startswith("/api"):
        api_key = request.headers.get("X-API-Key")
        if api_key != settings.admin_api_key:
            # Allow OPTIONS for CORS
            if request.method == "OPTIONS":
                return await call_next(request)
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"detail": "Invalid or missing API Key"},
            )
    return await call_next(request)


@app.exception_handler(NoActiveProjectError)
async def no_active_project_handler(request: Request, exc: NoActiveProjectError):
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": str(exc)})


@app.exception_handler(ArtifactMissingError)
async def artifact_missing_handler(request: Request, exc: ArtifactMissingError):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


# Global Exception Handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    LOGGER.error("Global exception: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal Server Error"},
    )


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}


app.include_router(builder.router)
app.include_router(websocket.router)
