"""Shared test fixtures for the ReportAI backend."""

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from reportai import database as db
from reportai.config import get_settings
from reportai.main import app, get_llm


class FakeLLM:
    """Stands in for the chat model: replays canned replies, records prompts."""

    def __init__(self, replies=None, error=None):
        self.replies = list(replies or [])
        self.error = error
        self.prompts = []

    def invoke(self, prompt):
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        reply = self.replies.pop(0) if self.replies else ""
        return SimpleNamespace(content=reply)


@pytest.fixture(autouse=True)
def _test_settings(monkeypatch):
    """In-memory database, no real model, fast bcrypt."""
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    monkeypatch.setenv("JWT_SECRET", "test-secret")
    monkeypatch.setenv("LLM_MODEL", "")
    monkeypatch.setattr("reportai.auth.SALT_ROUNDS", 4)
    get_settings.cache_clear()
    db.init_db("sqlite://")
    yield
    get_settings.cache_clear()


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def client(fake_llm):
    app.dependency_overrides[get_llm] = lambda: fake_llm
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def fake_pdf_text(monkeypatch):
    """Map uploaded bytes straight to text instead of parsing a real PDF."""

    def _extract(data: bytes) -> str:
        return data.decode("utf-8")

    monkeypatch.setattr("reportai.main.get_text_from_pdf", _extract)
    return _extract


@pytest.fixture
def register_user(client):
    """POST /api/auth/register and return the JSON body."""

    def _register(email="ana@example.com", password="password123", name="Ana"):
        resp = client.post("/api/auth/register", json={"name": name, "email": email, "password": password})
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _register


@pytest.fixture
def auth_headers(register_user):
    token = register_user()["token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user_id():
    return db.create_user("Owner", "owner@example.com", "not-a-real-hash")["id"]
