from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from userhub.models.user import Subscription

BCRYPT_MAX_BYTES = 72


# ------------------------
# Requests
# ------------------------
class CredentialsSchema(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        # bcrypt ignores everything past 72 bytes
        if len(value.encode("utf-8")) > BCRYPT_MAX_BYTES:
            raise ValueError(f"must be at most {BCRYPT_MAX_BYTES} bytes")
        return value


class SignupSchema(CredentialsSchema):
    pass


class LoginSchema(CredentialsSchema):
    pass


class ResendVerificationSchema(BaseModel):
    email: EmailStr


class SubscriptionSchema(BaseModel):
    subscription: Subscription


# ------------------------
# Responses
# ------------------------
class MessageResponse(BaseModel):
    message: str


class SignupResponse(BaseModel):
    message: str
    userId: str


class PublicUser(BaseModel):
    email: EmailStr
    subscription: Subscription


class LoginResponse(BaseModel):
    token: str
    user: PublicUser
    message: str


class AvatarResponse(BaseModel):
    message: str
    avatarURL: Optional[str] = None
