from sqlalchemy import func, select

from app.core.db.schemas.flashcards import Flashcard, Generation


async def add_generation(db_session, user_id: int, generated_count: int = 3) -> Generation:
    generation = Generation(
        user_id=user_id,
        model="openai/gpt-4o-mini",
        generated_count=generated_count,
        source_text_hash="a" * 64,
        source_text_length=240,
        generation_duration=1500,
    )
    db_session.add(generation)
    await db_session.commit()
    return generation


def batch(generation_id: int, *edited: bool) -> dict:
    return {
        "generation_id": generation_id,
        "flashcards": [
            {"front": f"front {i}", "back": f"back {i}", "edited": e}
            for i, e in enumerate(edited)
        ],
    }


async def test_batch_creates_ai_flashcards_and_records_metrics(client, alice, db_session):
    generation = await add_generation(db_session, alice["id"], generated_count=3)

    resp = await client.post(
        "/api/flashcards/batch", json=batch(generation.id, False, True), headers=alice["headers"]
    )

    data = resp.json()["data"]
    assert resp.status_code == 201
    assert data["created_count"] == 2
    assert {c["source"] for c in data["flashcards"]} == {"ai"}
    assert {c["generation_id"] for c in data["flashcards"]} == {generation.id}

    metrics = await client.get(f"/api/generations/{generation.id}", headers=alice["headers"])
    assert metrics.json()["data"]["accepted_unedited_count"] == 1
    assert metrics.json()["data"]["accepted_edited_count"] == 1


async def test_batch_for_someone_elses_generation_creates_nothing(
    client, alice, bob, db_session
):
    generation = await add_generation(db_session, bob["id"])

    resp = await client.post(
        "/api/flashcards/batch", json=batch(generation.id, False), headers=alice["headers"]
    )

    assert resp.status_code == 404
    assert resp.json()["message"] == "Generation session not found"
    assert await db_session.scalar(select(func.count()).select_from(Flashcard)) == 0


async def test_batch_for_missing_generation(client, alice):
    resp = await client.post(
        "/api/flashcards/batch", json=batch(12345, False), headers=alice["headers"]
    )

    assert resp.status_code == 404


async def test_flashcards_survive_a_failed_metrics_update(client, alice, db_session):
    # Accepting more cards than were generated makes the metrics update fail
    generation = await add_generation(db_session, alice["id"], generated_count=1)

    resp = await client.post(
        "/api/flashcards/batch",
        json=batch(generation.id, False, False),
        headers=alice["headers"],
    )

    assert resp.status_code == 201
    assert resp.json()["data"]["created_count"] == 2
    assert await db_session.scalar(select(func.count()).select_from(Flashcard)) == 2

    stored = await client.get(f"/api/generations/{generation.id}", headers=alice["headers"])
    assert stored.json()["data"]["accepted_unedited_count"] is None


async def test_batch_validation(client, alice):
    too_many = batch(1, *([False] * 51))
    missing_edited = {"generation_id": 1, "flashcards": [{"front": "a", "back": "b"}]}
    empty = {"generation_id": 1, "flashcards": []}

    for body in (too_many, missing_edited, empty):
        resp = await client.post("/api/flashcards/batch", json=body, headers=alice["headers"])
        assert resp.status_code == 422, body
        assert resp.json()["details"]
