#!/usr/bin/env python
"""FastAPI server for the forge web interface."""

import sys
from contextlib import asynccontextmanager
from pathlib import Path

# Add src directory to Python path for imports
src_dir = Path(__file__).parent.parent
if str(src_dir) not in sys.path:
    sys.path.insert(0, str(src_dir))

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.dependencies import close_services, get_quota_service
from api.routers import core, passthrough, runs
from utils.config import load_config, validate_config
from utils.logging import get_logger, setup_logging

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    config = load_config()
    setup_logging(config["log_level"], json_output=config["log_json"])

    for problem in validate_config(config):
        logger.warning("config_problem", problem=problem)

    quota = get_quota_service()
    connect = getattr(quota, "connect", None)
    if connect is not None:
        await connect()

    logger.info("server_started", quota_limit=quota.limit)
    try:
        yield
    finally:
        await close_services()
        logger.info("server_stopped")


app = FastAPI(title="Forge API", version="1.0.0", lifespan=lifespan)

# CORS middleware for development
app.add_middleware(
    CORSMiddleware,
    allow_origins=load_config()["cors_origins"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render every HTTP error as ``{"error": ...}``."""
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return JSONResponse(status_code=400, content={"error": message})


app.include_router(core.router)
app.include_router(passthrough.router)
app.include_router(runs.router)
