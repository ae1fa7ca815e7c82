# userhub/db/database.py
import asyncio
import logging

from fastapi import Request
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from userhub.core.config import Settings
from userhub.crud.user_crud import UserStore

logger = logging.getLogger(__name__)


def connect(settings: Settings) -> AsyncIOMotorClient:
    """Open the process-wide Mongo client. Motor connects lazily, so this never blocks."""
    return AsyncIOMotorClient(settings.MONGO_URL, serverSelectionTimeoutMS=5000)


def get_database(client: AsyncIOMotorClient, settings: Settings) -> AsyncIOMotorDatabase:
    return client[settings.MONGO_DB_NAME]


async def init_user_store(db: AsyncIOMotorDatabase) -> UserStore:
    store = UserStore(db["users"])
    try:
        # 5-second timeout so an unreachable database does not hold up startup
        await asyncio.wait_for(store.ensure_indexes(), timeout=5)
        logger.info("MongoDB connected, user indexes ensured.")
    except Exception as e:
        logger.error("MongoDB connection failed: %s", e)
    return store


def get_user_store(request: Request) -> UserStore:
    return request.app.state.user_store
