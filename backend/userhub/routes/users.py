# userhub/routes/users.py
import logging
from typing import Optional
from uuid import uuid4

from fastapi import APIRouter, Depends, File, Form, Response, UploadFile, status

from userhub.core.error_messages import (
    BadRequestError,
    ConflictError,
    DuplicateKey,
    NotFoundError,
    UnauthorizedError,
)
from userhub.crud.user_crud import UserStore
from userhub.db.database import get_user_store
from userhub.middleware.auth import get_current_user
from userhub.models.user import User
from userhub.schemas.user import (
    AvatarResponse,
    LoginResponse,
    LoginSchema,
    MessageResponse,
    PublicUser,
    ResendVerificationSchema,
    SignupResponse,
    SignupSchema,
    SubscriptionSchema,
)
from userhub.utils.auth_utils import create_access_token
from userhub.utils.avatar_utils import AvatarPipeline, default_avatar_url, get_avatar_pipeline
from userhub.utils.email_utils import Mailer, get_mailer
from userhub.utils.hash_utils import hash_password, verify_password

logger = logging.getLogger(__name__)

users_router = APIRouter(tags=["Users"])


def public_user(user: dict) -> PublicUser:
    return PublicUser(email=user["email"], subscription=user.get("subscription", "starter"))


@users_router.get("", response_model=MessageResponse)
async def users_index():
    return {"message": "Auth page"}


# ------------------------
# Signup
# ------------------------
@users_router.post("/signup", response_model=SignupResponse, status_code=status.HTTP_201_CREATED)
async def signup(
    data: SignupSchema,
    store: UserStore = Depends(get_user_store),
    mailer: Mailer = Depends(get_mailer),
):
    if await store.find_by_email(data.email):
        raise ConflictError("Email in use")

    verification_token = str(uuid4())
    user = User(
        email=data.email,
        password=hash_password(data.password),
        avatarURL=default_avatar_url(data.email),
        verificationToken=verification_token,
    )
    try:
        created = await store.create(user.to_document())
    except DuplicateKey:
        # Lost a race with a concurrent signup for the same email
        raise ConflictError("Email in use")
    user_id = str(created["_id"])
    logger.info("User %s created for %s", user_id, data.email)

    # The user stays persisted (and unverified) if this fails
    await mailer.send_verification_email(data.email, verification_token)

    return {"message": "User created successfully", "userId": user_id}


# ------------------------
# Login
# ------------------------
@users_router.post("/login", response_model=LoginResponse)
async def login(data: LoginSchema, store: UserStore = Depends(get_user_store)):
    user = await store.find_by_email(data.email)
    if not user:
        raise NotFoundError()

    if not user.get("verify"):
        raise UnauthorizedError("Email not verified")

    if not verify_password(data.password, user.get("password")):
        raise UnauthorizedError("Email or password is wrong")

    token = create_access_token(str(user["_id"]))
    await store.set_token(user["email"], token)
    logger.info("User %s logged in", user["_id"])

    return {"token": token, "user": public_user(user), "message": "Login successful"}


# ------------------------
# Logout / current
# ------------------------
@users_router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    current_user: dict = Depends(get_current_user),
    store: UserStore = Depends(get_user_store),
):
    if not await store.clear_token(current_user["_id"]):
        raise UnauthorizedError()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@users_router.get("/current", response_model=PublicUser)
async def current(current_user: dict = Depends(get_current_user)):
    return public_user(current_user)


# ------------------------
# Subscription
# ------------------------
@users_router.patch("", response_model=PublicUser)
async def update_subscription(
    data: SubscriptionSchema,
    current_user: dict = Depends(get_current_user),
    store: UserStore = Depends(get_user_store),
):
    updated = await store.update_subscription(current_user["_id"], data.subscription.value)
    if not updated:
        raise NotFoundError()
    return public_user(updated)


# ------------------------
# Avatar
# ------------------------
@users_router.patch("/avatars", response_model=AvatarResponse)
async def update_avatar(
    avatarURL: Optional[str] = Form(None),
    avatar: Optional[UploadFile] = File(None),
    current_user: dict = Depends(get_current_user),
    store: UserStore = Depends(get_user_store),
    pipeline: AvatarPipeline = Depends(get_avatar_pipeline),
):
    content = await avatar.read() if avatar is not None else None
    if not content and not avatarURL:
        raise BadRequestError("Missing required field avatarURL")

    filename = await pipeline.update_avatar(store, current_user, source=avatarURL, content=content or None)
    return {"message": "Avatar updated successfully", "avatarURL": filename}


# ------------------------
# Verification
# ------------------------
@users_router.get("/verify/{verification_token}", response_model=MessageResponse)
async def verify_email(verification_token: str, store: UserStore = Depends(get_user_store)):
    user = await store.find_by_verification_token(verification_token)
    if not user:
        raise NotFoundError()

    if not user.get("verificationToken"):
        raise ConflictError("Verification token has already been used")
    if user.get("verify"):
        raise ConflictError("User already verified")

    if not await store.mark_verified(user["_id"], verification_token):
        # Another request consumed the token between the read and the write
        raise ConflictError("Verification token has already been used")

    logger.info("User %s verified", user["_id"])
    return {"message": "Verification successful"}


@users_router.post("/verify", response_model=MessageResponse)
async def resend_verification(
    data: ResendVerificationSchema,
    store: UserStore = Depends(get_user_store),
    mailer: Mailer = Depends(get_mailer),
):
    user = await store.find_by_email(data.email)
    if not user:
        raise NotFoundError()

    if user.get("verify") or not user.get("verificationToken"):
        raise ConflictError("Verification has already been passed")

    await mailer.send_verification_email(data.email, user["verificationToken"])
    return {"message": "Email sent successfully"}
