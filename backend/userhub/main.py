# userhub/main.py

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from userhub.core.config import settings
from userhub.core.logging_config import setup_logging
from userhub.db.database import connect, get_database, init_user_store
from userhub.routes.users import users_router
from userhub.utils.avatar_utils import AvatarPipeline
from userhub.utils.email_utils import Mailer

# Error Handlers
from userhub.core.error_handlers import (
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)

setup_logging(settings.LOG_LEVEL, settings.LOG_FILE)
logger = logging.getLogger(__name__)


# ------------------------
# Lifecycle: Mongo client, mailer, HTTP client
# ------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    mongo_client = connect(settings)
    http_client = httpx.AsyncClient(timeout=settings.AVATAR_FETCH_TIMEOUT)

    app.state.user_store = await init_user_store(get_database(mongo_client, settings))
    app.state.mailer = Mailer.from_settings(settings)
    app.state.avatar_pipeline = AvatarPipeline(
        http_client, settings.TMP_DIR, settings.AVATARS_DIR, size=settings.AVATAR_SIZE,
        max_bytes=settings.AVATAR_MAX_BYTES,
    )
    app.state.avatar_pipeline.ensure_dirs()
    logger.info("UserHub API started.")
    try:
        yield
    finally:
        await http_client.aclose()
        mongo_client.close()
        logger.info("UserHub API stopped.")


# ------------------------
# App init
# ------------------------
app = FastAPI(title="UserHub API", lifespan=lifespan)


def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema
    openapi_schema = get_openapi(
        title="UserHub API",
        version="1.0.0",
        description="User accounts: signup, email verification, login, avatars, subscriptions",
        routes=app.routes,
    )
    openapi_schema.setdefault("components", {})["securitySchemes"] = {
        "BearerAuth": {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"}
    }
    app.openapi_schema = openapi_schema
    return app.openapi_schema


app.openapi = custom_openapi

# ------------------------
# CORS
# ------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ------------------------
# Routes
# ------------------------
app.include_router(users_router, prefix="/users")
app.mount("/avatars", StaticFiles(directory=settings.AVATARS_DIR, check_dir=False), name="avatars")

# ------------------------
# Exception handlers
# ------------------------
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


# ------------------------
# Health & root
# ------------------------
@app.get("/")
async def root():
    return {"message": "Welcome to UserHub API"}


@app.get("/healthz")
async def healthz():
    return {"status": "ok"}
