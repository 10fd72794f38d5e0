import pytest

from app.modules.review.cli import handle_key, render, run_review
from app.modules.review.session import ReviewSession, ReviewState, load_review_session


def cards(n: int) -> list[dict]:
    return [{"id": i + 1, "front": f"front {i}", "back": f"back {i}"} for i in range(n)]


def studying(n: int) -> ReviewSession:
    session = ReviewSession()
    session.load(cards(n))
    return session


def test_starts_loading_then_studies_first_card_face_up():
    session = ReviewSession()
    assert session.state is ReviewState.LOADING
    assert session.current_card is None

    session.load(cards(3))

    assert session.state is ReviewState.STUDYING
    assert session.current_card["front"] == "front 0"
    assert session.flipped is False
    assert session.position == (1, 3)


def test_empty_collection_never_studies():
    session = ReviewSession()
    session.load([])

    assert session.state is ReviewState.EMPTY
    session.next()
    session.flip()
    assert session.state is ReviewState.EMPTY
    assert session.current_card is None


def test_load_twice_is_an_error():
    session = studying(1)

    with pytest.raises(RuntimeError):
        session.load(cards(2))


@pytest.mark.parametrize("n", [1, 2, 7])
def test_next_walks_to_last_card_then_completes(n):
    session = studying(n)

    for _ in range(n - 1):
        session.next()
    assert session.state is ReviewState.STUDYING
    assert session.index == n - 1

    session.next()
    assert session.state is ReviewState.COMPLETED
    assert session.current_card is None


def test_flip_toggles_and_moving_resets_it():
    session = studying(2)

    session.flip()
    assert session.flipped is True
    session.flip()
    assert session.flipped is False

    session.flip()
    session.next()
    assert session.flipped is False

    session.flip()
    session.previous()
    assert (session.index, session.flipped) == (0, False)


def test_previous_is_noop_on_first_card():
    session = studying(3)
    session.flip()

    session.previous()

    assert (session.index, session.flipped) == (0, True)


def test_restart_only_from_completed():
    session = studying(2)
    session.next()
    session.restart()
    assert session.index == 1

    session.flip()
    session.next()
    assert session.state is ReviewState.COMPLETED

    session.restart()
    assert session.state is ReviewState.STUDYING
    assert (session.index, session.flipped) == (0, False)


def test_navigation_ignored_once_completed():
    session = studying(2)
    session.next()
    session.next()

    session.previous()
    session.next()
    session.flip()

    assert session.state is ReviewState.COMPLETED


@pytest.mark.parametrize("finish", [0, 1, 2])
def test_exit_from_any_state(finish):
    session = studying(2)
    for _ in range(finish):
        session.next()

    session.exit()

    assert session.state is ReviewState.EXITED
    session.restart()
    assert session.state is ReviewState.EXITED


class FakeClient:
    def __init__(self, cards):
        self.cards = cards
        self.calls = 0

    async def fetch_all_flashcards(self):
        self.calls += 1
        return self.cards


async def test_load_review_session_fetches_once():
    client = FakeClient(cards(4))

    session = await load_review_session(client)
    for _ in range(4):
        session.next()

    assert client.calls == 1
    assert session.state is ReviewState.COMPLETED


def test_keys_drive_the_session():
    session = studying(2)

    handle_key(session, "")
    assert session.flipped is True
    handle_key(session, "n")
    assert session.index == 1
    handle_key(session, "P")
    assert session.index == 0
    handle_key(session, "q")
    assert session.state is ReviewState.EXITED


def test_render_shows_the_visible_side():
    session = studying(1)
    assert render(session).startswith("[1/1] Front: front 0")

    session.flip()
    assert render(session).startswith("[1/1] Back: back 0")

    session.next()
    assert render(session).startswith("Session complete: 1 cards reviewed")


def test_run_review_until_quit(capsys):
    session = studying(1)
    keys = iter(["", "n", "r", "q"])

    run_review(session, read_key=lambda prompt: next(keys))

    out = capsys.readouterr().out
    assert "Back: back 0" in out
    assert "Session complete" in out
    assert session.state is ReviewState.EXITED


def test_run_review_stops_on_eof():
    session = studying(3)

    def eof(prompt):
        raise EOFError

    run_review(session, read_key=eof)

    assert session.state is ReviewState.EXITED
