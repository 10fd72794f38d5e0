import json
import os
import tempfile
from pathlib import Path
from typing import Callable

# Settings are read at import time, so the environment goes first
_TMP = Path(tempfile.mkdtemp(prefix="tenx-cards-tests-"))
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP / 'test.db'}"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["JWT_KEY_FILE"] = str(_TMP / "jwt_rsa_key.pem")
os.environ["MODE"] = "test"
os.environ["OPENROUTER_API_KEY"] = "test-openrouter-key"

import httpx  # noqa: E402
import pytest  # noqa: E402

from app.core.db import schemas  # noqa: E402,F401
from app.core.db.base import Base, async_session_maker, engine  # noqa: E402
from app.modules.generations.openrouter import (  # noqa: E402
    OpenRouterConfig,
    OpenRouterService,
    get_openrouter_service,
)
from main import app  # noqa: E402


SOURCE_TEXT = (
    "Warsaw is the capital and largest city of Poland. It stands on the "
    "Vistula river in east-central Poland and is home to about 1.8 million "
    "people, making it one of the largest cities in the European Union."
)


def chat_completion(cards) -> dict:
    """Chat-completions payload whose message content is the given flashcards."""
    return {
        "id": "gen-1",
        "choices": [
            {"message": {"role": "assistant", "content": json.dumps({"flashcards": cards})}}
        ],
    }


def make_openrouter(handler: Callable[[httpx.Request], httpx.Response]) -> OpenRouterService:
    return OpenRouterService(
        OpenRouterConfig(
            api_key="test-openrouter-key",
            model="openai/gpt-4o-mini",
            site_url="http://localhost:3000",
            app_name="tenx-cards",
        ),
        transport=httpx.MockTransport(handler),
    )


@pytest.fixture(autouse=True)
async def database():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def db_session():
    async with async_session_maker() as session:
        yield session


@pytest.fixture
def use_openrouter():
    """Route the generation endpoint's AI calls to a mock handler."""

    def install(handler: Callable[[httpx.Request], httpx.Response]) -> None:
        service = make_openrouter(handler)
        app.dependency_overrides[get_openrouter_service] = lambda: service

    yield install
    app.dependency_overrides.pop(get_openrouter_service, None)


@pytest.fixture
async def client():
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


async def register_and_login(client: httpx.AsyncClient, email: str, password: str = "secret123") -> dict:
    resp = await client.post("/api/auth/register", json={"email": email, "password": password})
    assert resp.status_code == 201, resp.text
    user_id = resp.json()["id"]
    resp = await client.post(
        "/api/auth/jwt/login", data={"username": email, "password": password}
    )
    assert resp.status_code == 200, resp.text
    token = resp.json()["access_token"]
    return {"id": user_id, "headers": {"Authorization": f"Bearer {token}"}}


@pytest.fixture
async def alice(client):
    return await register_and_login(client, "alice@example.com")


@pytest.fixture
async def bob(client):
    return await register_and_login(client, "bob@example.com")
