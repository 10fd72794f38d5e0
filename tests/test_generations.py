import json

import httpx
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from app.core.db.schemas.flashcards import Generation, GenerationErrorLog
from app.core.db_services import GenerationService
from app.modules.generations.hashing import hash_text
from tests.conftest import SOURCE_TEXT, chat_completion


CARDS = [
    {"front": "Capital of Poland?", "back": "Warsaw"},
    {"front": "River through Warsaw?", "back": "Vistula"},
]


async def test_generate_returns_proposals_and_records_generation(
    client, alice, db_session, use_openrouter
):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=chat_completion(CARDS))

    use_openrouter(handler)

    resp = await client.post(
        "/api/generations", json={"source_text": SOURCE_TEXT}, headers=alice["headers"]
    )

    data = resp.json()["data"]
    assert resp.status_code == 201
    assert data["generated_count"] == 2
    assert data["model"] == "openai/gpt-4o-mini"
    assert data["proposals"] == CARDS

    assert seen["url"].endswith("/chat/completions")
    assert seen["auth"] == "Bearer test-openrouter-key"
    system, user = seen["body"]["messages"]
    assert "exactly 12 flashcards" in system["content"]
    assert user == {"role": "user", "content": SOURCE_TEXT}

    generation = await db_session.scalar(select(Generation))
    assert generation.id == data["generation_id"]
    assert generation.source_text_hash == hash_text(SOURCE_TEXT)
    assert generation.source_text_length == len(SOURCE_TEXT)
    assert generation.accepted_unedited_count is None


async def test_ai_failure_is_logged_and_reported_unavailable(
    client, alice, db_session, use_openrouter
):
    use_openrouter(lambda request: httpx.Response(500, text="upstream exploded"))

    resp = await client.post(
        "/api/generations", json={"source_text": SOURCE_TEXT}, headers=alice["headers"]
    )

    assert resp.status_code == 503
    assert resp.json() == {
        "error": "Service unavailable",
        "message": "AI generation service is currently unavailable. Please try again later.",
    }
    assert (await db_session.scalars(select(Generation))).all() == []
    log = await db_session.scalar(select(GenerationErrorLog))
    assert log.error_code == "OPENROUTER_ERROR"
    assert "500" in log.error_message
    assert log.source_text_hash == hash_text(SOURCE_TEXT)


async def test_ai_timeout_is_logged_with_its_own_code(
    client, alice, db_session, use_openrouter
):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    use_openrouter(handler)

    resp = await client.post(
        "/api/generations", json={"source_text": SOURCE_TEXT}, headers=alice["headers"]
    )

    assert resp.status_code == 503
    log = await db_session.scalar(select(GenerationErrorLog))
    assert log.error_code == "OPENROUTER_TIMEOUT"
    assert log.error_message == "Request timeout - AI service took too long to respond"


async def test_bad_proposal_fails_the_whole_generation(
    client, alice, db_session, use_openrouter
):
    cards = CARDS + [{"front": "no back"}]
    use_openrouter(lambda request: httpx.Response(200, json=chat_completion(cards)))

    resp = await client.post(
        "/api/generations", json={"source_text": SOURCE_TEXT}, headers=alice["headers"]
    )

    assert resp.status_code == 503
    log = await db_session.scalar(select(GenerationErrorLog))
    assert log.error_message == "Flashcard missing front or back"


async def test_non_object_message_is_logged_and_reported_unavailable(
    client, alice, db_session, use_openrouter
):
    use_openrouter(
        lambda request: httpx.Response(
            200, json={"choices": [{"message": "not an object"}]}
        )
    )

    resp = await client.post(
        "/api/generations", json={"source_text": SOURCE_TEXT}, headers=alice["headers"]
    )

    assert resp.status_code == 503
    log = await db_session.scalar(select(GenerationErrorLog))
    assert log.error_code == "OPENROUTER_ERROR"
    assert log.error_message == "Failed to parse OpenRouter response as JSON"


async def test_source_text_length_limits(client, alice, use_openrouter):
    use_openrouter(lambda request: httpx.Response(200, json=chat_completion(CARDS)))

    for text in ("x" * 99, "x" * 1001, "   " + "x" * 90 + "   "):
        resp = await client.post(
            "/api/generations", json={"source_text": text}, headers=alice["headers"]
        )
        assert resp.status_code == 422
        assert "source_text" in resp.json()["details"]


async def test_get_and_update_generation_metrics(client, alice, bob, db_session):
    generation = Generation(
        user_id=alice["id"],
        model="openai/gpt-4o-mini",
        generated_count=5,
        source_text_hash="b" * 64,
        source_text_length=300,
        generation_duration=2000,
    )
    db_session.add(generation)
    await db_session.commit()
    url = f"/api/generations/{generation.id}"

    resp = await client.patch(url, json={"accepted_unedited_count": 2}, headers=alice["headers"])
    assert resp.status_code == 200
    assert resp.json()["data"]["accepted_unedited_count"] == 2
    assert "user_id" not in resp.json()["data"]

    resp = await client.patch(url, json={"accepted_edited_count": 4}, headers=alice["headers"])
    assert resp.status_code == 422

    resp = await client.patch(url, json={}, headers=alice["headers"])
    assert resp.status_code == 422

    assert (await client.get(url, headers=bob["headers"])).status_code == 404
    resp = await client.patch(url, json={"accepted_edited_count": 1}, headers=bob["headers"])
    assert resp.status_code == 404


async def test_error_log_write_failure_is_swallowed(alice, db_session, monkeypatch, caplog):
    service = GenerationService(db_session)
    rolled_back = []

    async def failing_commit():
        raise OperationalError("INSERT INTO generation_error_logs", {}, Exception("disk I/O error"))

    async def rollback():
        rolled_back.append(True)

    monkeypatch.setattr(db_session, "commit", failing_commit)
    monkeypatch.setattr(db_session, "rollback", rollback)

    await service.log_error(
        user_id=alice["id"],
        model="openai/gpt-4o-mini",
        source_text_hash=hash_text(SOURCE_TEXT),
        source_text_length=len(SOURCE_TEXT),
        error_code="OPENROUTER_ERROR",
        error_message="OpenRouter API returned 500: upstream exploded",
    )

    assert rolled_back == [True]
    assert "Could not write generation error log (OPENROUTER_ERROR)" in caplog.text
