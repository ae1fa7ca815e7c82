# userhub/crud/user_crud.py
import logging
from typing import Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from userhub.core.error_messages import DatabaseError, DuplicateKey

logger = logging.getLogger(__name__)


def _object_id(user_id) -> Optional[ObjectId]:
    if isinstance(user_id, ObjectId):
        return user_id
    try:
        return ObjectId(str(user_id))
    except (InvalidId, TypeError):
        return None


class UserStore:
    """Credential store over the `users` collection.

    Every method is a single document-level operation; nothing here spans
    more than one read or one write.
    """

    def __init__(self, collection):
        self.collection = collection

    async def ensure_indexes(self):
        await self.collection.create_index([("email", ASCENDING)], unique=True)
        await self.collection.create_index([("verificationToken", ASCENDING)])

    # ------------------------
    # Reads
    # ------------------------
    async def find_by_email(self, email: str) -> Optional[dict]:
        return await self._find_one({"email": email})

    async def find_by_id(self, user_id) -> Optional[dict]:
        oid = _object_id(user_id)
        if oid is None:
            return None
        return await self._find_one({"_id": oid})

    async def find_by_verification_token(self, verification_token: str) -> Optional[dict]:
        return await self._find_one({"verificationToken": verification_token})

    async def _find_one(self, selector: dict) -> Optional[dict]:
        try:
            return await self.collection.find_one(selector)
        except PyMongoError as e:
            raise DatabaseError(internal=str(e))

    # ------------------------
    # Writes
    # ------------------------
    async def create(self, document: dict) -> dict:
        """Insert a new user; a taken email raises `DuplicateKey` and inserts nothing."""
        doc = dict(document)
        try:
            result = await self.collection.insert_one(doc)
        except DuplicateKeyError as e:
            raise DuplicateKey(str(e))
        except PyMongoError as e:
            raise DatabaseError(internal=str(e))
        doc["_id"] = result.inserted_id
        return doc

    async def update_fields(
        self,
        selector: dict,
        fields: Optional[dict] = None,
        unset: Optional[list] = None,
        upsert: bool = False,
    ) -> Optional[dict]:
        """Apply `$set`/`$unset` to the first match and return the updated document."""
        update = {}
        if fields:
            update["$set"] = fields
        if unset:
            update["$unset"] = {name: "" for name in unset}
        if not update:
            return await self._find_one(selector)
        try:
            return await self.collection.find_one_and_update(
                selector,
                update,
                upsert=upsert,
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            raise DatabaseError(internal=str(e))

    async def set_token(self, email: str, token: str) -> Optional[dict]:
        # Last login wins; there is one token slot per user
        return await self.update_fields({"email": email}, {"token": token}, upsert=True)

    async def clear_token(self, user_id) -> Optional[dict]:
        return await self.update_fields({"_id": _object_id(user_id)}, {"token": None})

    async def mark_verified(self, user_id, verification_token: str) -> Optional[dict]:
        """Flip `verify` and drop the token, only if that token is still the live one."""
        selector = {
            "_id": _object_id(user_id),
            "verificationToken": verification_token,
            "verify": False,
        }
        return await self.update_fields(selector, {"verify": True}, unset=["verificationToken"])

    async def update_subscription(self, user_id, subscription: str) -> Optional[dict]:
        return await self.update_fields({"_id": _object_id(user_id)}, {"subscription": subscription})

    async def update_avatar(self, user_id, avatar_url: str) -> Optional[dict]:
        return await self.update_fields({"_id": _object_id(user_id)}, {"avatarURL": avatar_url})
