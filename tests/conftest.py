"""Shared fixtures: a fresh SQLite DB and app per test, with a fake image host."""
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from devsource_platform.api.server import create_app
from devsource_platform.cloudinary.client import image_format
from devsource_platform.config import Config
from devsource_platform.context import AppContext

TEST_SECRET = "test-signing-secret"


class FakeImageHost:
    """Stands in for CloudinaryClient; records uploads instead of calling out."""

    def __init__(self) -> None:
        self.uploads: List[Dict[str, Any]] = []

    def ping(self) -> bool:
        return True

    def upload_image(self, *, filename: str, content: bytes, content_type: Optional[str] = None) -> str:
        fmt = image_format(filename, content_type)
        self.uploads.append({"filename": filename, "content": content, "content_type": content_type})
        return f"https://res.cloudinary.com/demo/image/upload/devsource_profiles/{len(self.uploads)}.{fmt}"


@pytest.fixture
def cfg(tmp_path) -> Config:
    return Config(
        DB_DSN=str(tmp_path / "devsource-test.sqlite"),
        AUTH_JWT_SECRET=TEST_SECRET,
        CORS_ALLOW_ORIGINS="http://localhost:5173",
    )


@pytest.fixture
def images() -> FakeImageHost:
    return FakeImageHost()


@pytest.fixture
def client(cfg, images):
    app = create_app(context=AppContext(cfg=cfg, images=images))
    with TestClient(app) as c:
        yield c


def register(client, *, name="A", email="a@x.com", password="p", role="user"):
    return client.post(f"/register/{role}", json={"name": name, "email": email, "password": password})


def login(client, *, email="a@x.com", password="p", role="user"):
    return client.post(f"/login/{role}", json={"email": email, "password": password})


def auth(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def signup(client, *, name="A", email="a@x.com", password="p", role="user") -> Dict[str, Any]:
    """Register + login; returns {"id", "token", "headers"}."""
    r = register(client, name=name, email=email, password=password, role=role)
    assert r.status_code == 201, r.text
    r = login(client, email=email, password=password, role=role)
    assert r.status_code == 200, r.text
    body = r.json()
    return {"id": body[role]["id"], "token": body["token"], "headers": auth(body["token"])}


@pytest.fixture
def alice(client):
    return signup(client, name="Alice", email="alice@x.com", password="alice-pw")


@pytest.fixture
def bob(client):
    return signup(client, name="Bob", email="bob@x.com", password="bob-pw")


@pytest.fixture
def admin(client):
    return signup(client, name="Root", email="root@x.com", password="root-pw", role="admin")
