import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from studio.config.settings import Settings
from studio.db.connection import connect
from studio.routes import render, template
from studio.services.storage import MediaStorage
from studio.services.template_store import build_store

logger = logging.getLogger("uvicorn.error")


# -----------------------------------------------------------
# Error envelope: every failure is  {"error": message}
# -----------------------------------------------------------
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail
    if exc.status_code == 405:
        message = "Method not allowed"
    return JSONResponse(status_code=exc.status_code, content={"error": message}, headers=getattr(exc, "headers", None))


async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return JSONResponse(status_code=422, content={"error": message})


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unexpected error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()

    mongo_client, db = (None, None)
    if settings.template_store != "memory":
        mongo_client, db = connect(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.http = httpx.AsyncClient(timeout=60, follow_redirects=True)
        logger.info(f"Template Studio started (store={settings.template_store}, provider={settings.resolve_provider()})")
        yield
        await app.state.http.aclose()
        if mongo_client is not None:
            mongo_client.close()

    app = FastAPI(title="Template Studio Backend", lifespan=lifespan)

    app.state.settings = settings
    app.state.template_store = build_store(settings, db)
    app.state.storage = MediaStorage(settings.local_media_root, settings.base_url)

    os.makedirs(settings.local_media_root, exist_ok=True)
    app.mount("/media", StaticFiles(directory=settings.local_media_root), name="media")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
    )

    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(template.router)
    app.include_router(render.router)

    @app.get("/")
    async def home():
        return {"message": "Template Studio Backend Running!"}

    return app


app = create_app()
