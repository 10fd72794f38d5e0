import httpx
import pytest

from app.modules.client.api import ApiClientError, FlashcardsApiClient, build_query
from app.modules.client.auth import AuthContext
from app.modules.client.proposals import ProposalReview
from app.modules.review.session import ReviewState, load_review_session
from main import app
from tests.conftest import SOURCE_TEXT, chat_completion


def api_client(auth: AuthContext) -> FlashcardsApiClient:
    return FlashcardsApiClient(
        "http://test", auth, transport=httpx.ASGITransport(app=app)
    )


@pytest.fixture
async def logged_in():
    auth = AuthContext()
    async with api_client(auth) as api:
        await api.register("student@example.com", "secret123")
        await api.login("student@example.com", "secret123")
        yield api


def test_build_query_omits_unset_values():
    assert build_query(page=2, limit=None, search="", source="ai") == {
        "page": 2,
        "source": "ai",
    }


def test_auth_context_mirrors_token_to_file(tmp_path):
    token_file = tmp_path / "tokens" / "token"

    auth = AuthContext(token_file=token_file)
    assert auth.is_authenticated is False
    assert auth.authorization_headers() == {}

    auth.set_token("abc")
    assert token_file.read_text() == "abc"
    assert AuthContext(token_file=token_file).load().token == "abc"
    assert auth.authorization_headers() == {"Authorization": "Bearer abc"}

    auth.clear()
    assert not token_file.exists()
    assert AuthContext(token_file=token_file).load().is_authenticated is False


async def test_capital_of_poland_end_to_end(logged_in):
    created = await logged_in.create_flashcard("What is the capital of Poland?", "Warsaw")
    assert created["source"] == "manual"

    session = await load_review_session(logged_in)

    assert session.current_card["front"] == "What is the capital of Poland?"
    session.flip()
    assert session.current_card["back"] == "Warsaw"
    session.next()
    assert session.state is ReviewState.COMPLETED


async def test_fetch_all_walks_every_page_oldest_first(logged_in):
    for i in range(105):
        await logged_in.create_flashcard(f"front {i}", f"back {i}")

    cards = await logged_in.fetch_all_flashcards()

    assert len(cards) == 105
    assert cards[0]["front"] == "front 0"
    assert cards[-1]["front"] == "front 104"


async def test_fetch_all_stops_at_page_cap():
    pages = []

    def handler(request: httpx.Request) -> httpx.Response:
        page = int(request.url.params["page"])
        pages.append(page)
        assert request.url.params["sort"] == "created_at"
        assert request.url.params["order"] == "asc"
        # A misbehaving server that always claims there is more
        return httpx.Response(
            200,
            json={"data": [{"id": page}], "pagination": {"has_next": True}},
        )

    auth = AuthContext(token="t")
    async with FlashcardsApiClient(
        "http://test", auth, transport=httpx.MockTransport(handler)
    ) as api:
        cards = await api.fetch_all_flashcards(max_pages=3)

    assert pages == [1, 2, 3]
    assert [c["id"] for c in cards] == [1, 2, 3]


async def test_crud_and_delete_all(logged_in):
    card = await logged_in.create_flashcard("front", "back")
    updated = await logged_in.update_flashcard(card["id"], "new front", "new back")
    assert updated["front"] == "new front"
    assert (await logged_in.get_flashcard(card["id"]))["back"] == "new back"

    await logged_in.create_flashcard("second", "card")
    listing = await logged_in.list_flashcards(search="second")
    assert listing["pagination"]["total"] == 1

    assert await logged_in.delete_all_flashcards() == 2
    assert (await logged_in.list_flashcards())["data"] == []

    with pytest.raises(ApiClientError) as exc_info:
        await logged_in.get_flashcard(card["id"])
    assert exc_info.value.status_code == 404
    assert exc_info.value.error == "Not found"


async def test_validation_error_details_reach_the_client(logged_in):
    with pytest.raises(ApiClientError) as exc_info:
        await logged_in.create_flashcard("", "back")

    assert exc_info.value.status_code == 422
    assert "front" in exc_info.value.details


async def test_generate_then_save_accepted_proposals(logged_in, use_openrouter):
    cards = [
        {"front": "Capital of Poland?", "back": "Warsaw"},
        {"front": "River through Warsaw?", "back": "Vistula"},
        {"front": "Population?", "back": "1.8 million"},
    ]
    use_openrouter(lambda request: httpx.Response(200, json=chat_completion(cards)))

    review = ProposalReview.from_generation(await logged_in.generate(SOURCE_TEXT))
    review.toggle_accept(0)
    review.edit(2, "Population of Warsaw?", "About 1.8 million")
    result = await logged_in.create_batch(review.to_batch_command())

    assert result["created_count"] == 2
    saved = await logged_in.list_flashcards(source="ai", order="asc")
    assert [c["front"] for c in saved["data"]] == [
        "Capital of Poland?",
        "Population of Warsaw?",
    ]


async def test_logout_clears_token(logged_in):
    await logged_in.logout()

    assert logged_in.auth.is_authenticated is False
    with pytest.raises(ApiClientError) as exc_info:
        await logged_in.list_flashcards()
    assert exc_info.value.status_code == 401
    assert exc_info.value.message == "Invalid or missing authentication token"
