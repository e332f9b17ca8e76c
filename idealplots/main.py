# idealplots/main.py
import asyncio
import logging
import sys
from contextlib import asynccontextmanager

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from idealplots.core.config import settings
from idealplots.core.exceptions import EngineError, FatalError
from idealplots.core.logging_config import LogConfig, setup_logging
from idealplots.db.session import Database, database, get_database
from idealplots.routers import admin, agents, auth, enquiry, properties, users
from idealplots.schemas.common import ErrorResponse

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(LogConfig(level=settings.log_level))
    await database.init()
    yield
    await database.close()


app = FastAPI(
    title="Ideal Plots Backend",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Error envelope ---
@app.exception_handler(EngineError)
async def engine_error_handler(request: Request, exc: EngineError):
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    body = ErrorResponse(error=exc.code, message=exc.message, details=exc.details or None)
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(body.model_dump(exclude_none=True)))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    body = ErrorResponse(
        error="validation_error",
        message="Request validation failed",
        details={"errors": jsonable_encoder(exc.errors())},
    )
    return JSONResponse(status_code=422, content=body.model_dump(exclude_none=True))


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    body = ErrorResponse(error="http_error", message=str(exc.detail))
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(exclude_none=True))


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    body = ErrorResponse(error="internal_error", message="Internal Server Error")
    return JSONResponse(status_code=500, content=body.model_dump(exclude_none=True))


# --- Register Routers ---
app.include_router(enquiry.router)      # /api/enquiries
app.include_router(properties.router)   # /api/properties/*
app.include_router(users.router)        # /api/users/*
app.include_router(agents.router)       # /api/agents/*
app.include_router(admin.router)        # /api/admin/*
app.include_router(auth.router)         # /api/auth/*


# --- Health check ---
@app.get("/health")
async def health(db: Database = Depends(get_database)):
    ready = db.is_ready
    return JSONResponse(
        status_code=200 if ready else 503,
        content={"success": ready, "data": {"database": "up" if ready else "down", "env": settings.node_env}},
    )


async def serve() -> int:
    """
    Start the pool, serve until SIGTERM/SIGINT and drain. Returns the process
    exit code: 1 when the pool cannot be created or does not drain in time.
    """
    setup_logging(LogConfig(level=settings.log_level))
    config = uvicorn.Config(
        app,
        host=settings.host,
        port=settings.port,
        timeout_graceful_shutdown=int(settings.shutdown_timeout_seconds),
        log_config=None,
    )
    server = uvicorn.Server(config)
    try:
        await database.init()
        await server.serve()
        await database.close()
    except FatalError as exc:
        logger.critical("Fatal: %s", exc.message)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(serve()))
