"""Pytest configuration and fixtures."""

import asyncio
import io
from urllib.parse import urlparse

import httpx
import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient
from PIL import Image

from userhub.core.error_messages import MailDeliveryError
from userhub.crud.user_crud import UserStore
from userhub.db.database import get_user_store
from userhub.main import app
from userhub.utils.avatar_utils import AvatarPipeline, get_avatar_pipeline
from userhub.utils.email_utils import get_mailer

TEST_EMAIL = "a@example.com"
TEST_PASSWORD = "secret1"


def make_image(width=10, height=10, fmt="PNG") -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color=(200, 30, 30)).save(buffer, format=fmt)
    return buffer.getvalue()


class RecordingMailer:
    """Stands in for the SMTP mailer and remembers what it was asked to send."""

    def __init__(self):
        self.sent = []
        self.fail = False

    async def send_verification_email(self, to_email, verification_token):
        if self.fail:
            raise MailDeliveryError(internal="relay unavailable")
        self.sent.append((to_email, verification_token))

    def last_token_for(self, email):
        for to_email, token in reversed(self.sent):
            if to_email == email:
                return token
        return None


class ImageServer:
    """`httpx.MockTransport` handler serving a few fixed paths."""

    def __init__(self):
        self.requested = []

    async def chunks(self):
        for _ in range(4):
            yield b"x" * 64

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requested.append(str(request.url))
        path = urlparse(str(request.url)).path
        if request.url.host == "www.gravatar.com" or path.endswith(".png"):
            return httpx.Response(200, content=make_image(), headers={"content-type": "image/png"})
        if path.endswith(".txt"):
            return httpx.Response(200, content=b"not an image", headers={"content-type": "text/plain"})
        if path == "/moved":
            return httpx.Response(302, headers={"location": "http://169.254.169.254/latest/meta-data/x.png"})
        if path == "/stream":
            return httpx.Response(200, content=self.chunks(), headers={"content-type": "image/png"})
        return httpx.Response(404)


@pytest.fixture
def collection():
    return AsyncMongoMockClient()["userhub_test"]["users"]


@pytest.fixture
def store(collection):
    user_store = UserStore(collection)
    asyncio.run(user_store.ensure_indexes())
    return user_store


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def image_server():
    return ImageServer()


@pytest.fixture
def pipeline(tmp_path, image_server):
    avatar_pipeline = AvatarPipeline(
        httpx.AsyncClient(transport=httpx.MockTransport(image_server)),
        tmp_path / "tmp",
        tmp_path / "public" / "avatars",
        size=250,
    )
    avatar_pipeline.ensure_dirs()
    return avatar_pipeline


@pytest.fixture
def client(store, mailer, pipeline):
    """Test client with the store, mailer and avatar pipeline swapped for in-process ones."""
    app.dependency_overrides[get_user_store] = lambda: store
    app.dependency_overrides[get_mailer] = lambda: mailer
    app.dependency_overrides[get_avatar_pipeline] = lambda: pipeline
    # No context manager: the lifespan (real Mongo, SMTP) is not started
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def verified_user(client, mailer):
    """Sign up, verify and log in a user; returns its credentials and auth headers."""
    response = client.post("/users/signup", json={"email": TEST_EMAIL, "password": TEST_PASSWORD})
    assert response.status_code == 201
    user_id = response.json()["userId"]

    token = mailer.last_token_for(TEST_EMAIL)
    assert client.get(f"/users/verify/{token}").status_code == 200

    response = client.post("/users/login", json={"email": TEST_EMAIL, "password": TEST_PASSWORD})
    assert response.status_code == 200
    access_token = response.json()["token"]

    return {
        "id": user_id,
        "email": TEST_EMAIL,
        "password": TEST_PASSWORD,
        "token": access_token,
        "headers": {"Authorization": f"Bearer {access_token}"},
    }
