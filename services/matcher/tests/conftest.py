from __future__ import annotations

from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient
from matcher.auth import issue_token
from matcher.main import create_app

JWT_SECRET = "test-secret-that-is-long-enough-for-hs256"


class FakeProvider:
    """Completion provider double that returns canned text or raises."""

    name = "fake"

    def __init__(self, reply: str | None = None, error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error
        self.prompts: list[str] = []

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.reply or ""

    async def aclose(self) -> None:
        return None


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider(error=RuntimeError("connection refused"))


@pytest.fixture
def client(tmp_path: Path, provider: FakeProvider) -> Iterator[TestClient]:
    app = create_app(
        database_path=str(tmp_path / "matcher.sqlite3"),
        jwt_secret=JWT_SECRET,
        provider=provider,
        ai_timeout_seconds=2,
    )
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers(client: TestClient) -> Callable[..., dict[str, str]]:
    def make(email: str = "ada@example.com", name: str = "Ada") -> dict[str, str]:
        user = client.app.state.repository.create_user(email, name)
        return {"x-auth-token": issue_token(user.id, JWT_SECRET)}

    return make


@pytest.fixture
def seed_catalog(client: TestClient) -> Callable[[list[dict[str, Any]]], list[dict[str, Any]]]:
    def seed(jobs: list[dict[str, Any]]) -> list[dict[str, Any]]:
        response = client.post("/api/jobs/seed", json={"jobs": jobs})
        assert response.status_code == 200
        return client.get("/api/jobs").json()

    return seed
