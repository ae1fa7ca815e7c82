# userhub/utils/avatar_utils.py
import hashlib
import logging
import os
import time
from pathlib import Path
from typing import Optional
from urllib.parse import urlencode

import aiofiles
import httpx
from fastapi import Request
from fastapi.concurrency import run_in_threadpool
from PIL import Image, UnidentifiedImageError

from userhub.core.error_messages import (
    BadRequestError,
    DecodeError,
    FetchError,
    ServiceError,
    StorageError,
)
from userhub.crud.user_crud import UserStore

logger = logging.getLogger(__name__)

GRAVATAR_HOST = "www.gravatar.com"
MAX_AVATAR_BYTES = 5 * 1024 * 1024


def gravatar_url(email: str, size: int = 200, rating: str = "pg", default: str = "identicon",
                 protocol: Optional[str] = None) -> str:
    """Deterministic gravatar URL for `email`. No network access."""
    digest = hashlib.md5(email.strip().lower().encode("utf-8")).hexdigest()
    query = urlencode({"s": str(size), "r": rating, "d": default})
    prefix = f"{protocol}:" if protocol else ""
    return f"{prefix}//{GRAVATAR_HOST}/avatar/{digest}?{query}"


def default_avatar_url(email: str) -> str:
    return gravatar_url(email, size=200, rating="pg", default="identicon", protocol="https")


def resolve_source_url(source: str, size: int) -> str:
    """An https URL is used as is; any other URL is refused; anything else is taken to be an email."""
    source = source.strip()
    if source.lower().startswith("https://"):
        return source
    if "://" in source:
        raise BadRequestError("avatarURL must be an https URL or an email address")
    return gravatar_url(source, size=size, protocol="https")


def resize_image_file(path: Path, size: int):
    """Decode `path`, resize it to `size` x `size` and write it back as JPEG."""
    try:
        with Image.open(path) as image:
            image.load()
            resized = image.convert("RGB").resize((size, size))
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise DecodeError(internal=f"cannot decode {path.name}: {e}")
    try:
        resized.save(path, format="JPEG")
    except OSError as e:
        raise StorageError(internal=f"cannot write {path}: {e}")


class AvatarPipeline:
    """Fetches, resizes and publishes avatar images.

    Images are written under `tmp_dir` first and only renamed into
    `avatars_dir` after the resize has completed, so the served directory
    never holds a partial file.
    """

    def __init__(self, http_client: httpx.AsyncClient, tmp_dir: Path, avatars_dir: Path,
                 size: int = 250, max_bytes: int = MAX_AVATAR_BYTES):
        self.http_client = http_client
        self.tmp_dir = Path(tmp_dir)
        self.avatars_dir = Path(avatars_dir)
        self.size = size
        self.max_bytes = max_bytes

    def ensure_dirs(self):
        self.tmp_dir.mkdir(parents=True, exist_ok=True)
        self.avatars_dir.mkdir(parents=True, exist_ok=True)

    async def fetch(self, url: str) -> bytes:
        """GET `url` without following redirects, refusing bodies over `max_bytes`."""
        try:
            async with self.http_client.stream("GET", url, follow_redirects=False) as response:
                if response.is_redirect:
                    raise FetchError(internal=f"GET {url}: redirect to {response.headers.get('location')} refused")
                response.raise_for_status()
                declared = response.headers.get("content-length")
                if declared and declared.isdigit() and int(declared) > self.max_bytes:
                    raise FetchError(internal=f"GET {url}: body exceeds {self.max_bytes} bytes")
                chunks = []
                received = 0
                async for chunk in response.aiter_bytes():
                    received += len(chunk)
                    if received > self.max_bytes:
                        raise FetchError(internal=f"GET {url}: body exceeds {self.max_bytes} bytes")
                    chunks.append(chunk)
        except httpx.HTTPError as e:
            raise FetchError(internal=f"GET {url} failed: {e}")
        return b"".join(chunks)

    async def update_avatar(self, store: UserStore, user: dict, source: Optional[str] = None,
                            content: Optional[bytes] = None) -> str:
        """Publish a new avatar for `user` and point its `avatarURL` at it.

        `content` (uploaded bytes) takes precedence over `source` (URL or email).
        Returns the published filename.
        """
        if content is None:
            if not source:
                raise BadRequestError("Missing required field avatarURL")
            content = await self.fetch(resolve_source_url(source, self.size))

        filename = f"{user['_id']}_{int(time.time() * 1000)}.jpg"
        tmp_path = self.tmp_dir / filename
        final_path = self.avatars_dir / filename

        try:
            try:
                async with aiofiles.open(tmp_path, "wb") as out_file:
                    await out_file.write(content)
            except OSError as e:
                raise StorageError(internal=f"cannot write {tmp_path}: {e}")

            await run_in_threadpool(resize_image_file, tmp_path, self.size)

            try:
                os.replace(tmp_path, final_path)
            except OSError as e:
                raise StorageError(internal=f"cannot publish {final_path}: {e}")
        finally:
            if tmp_path.exists():
                tmp_path.unlink()

        try:
            await store.update_avatar(user["_id"], filename)
        except ServiceError:
            # The user record still points at the old avatar; drop the orphan
            final_path.unlink(missing_ok=True)
            raise

        logger.info("Avatar for user %s published as %s", user["_id"], filename)
        return filename


def get_avatar_pipeline(request: Request) -> AvatarPipeline:
    return request.app.state.avatar_pipeline
