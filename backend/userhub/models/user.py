# userhub/models/user.py
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class Subscription(str, Enum):
    STARTER = "starter"
    PRO = "pro"
    BUSINESS = "business"


class User(BaseModel):
    """A user document as stored in the `users` collection."""

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    id: Optional[str] = Field(default=None, alias="_id")
    email: EmailStr
    password: str  # bcrypt digest, never plaintext
    subscription: Subscription = Subscription.STARTER
    avatarURL: Optional[str] = None
    token: Optional[str] = None
    verify: bool = False
    verificationToken: Optional[str] = None

    def to_document(self) -> dict:
        """Insertable document; `_id` is left to Mongo, an absent token is omitted."""
        doc = self.model_dump(mode="json", exclude={"id"})
        if doc["verificationToken"] is None:
            doc.pop("verificationToken")
        return doc
