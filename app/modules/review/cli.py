from __future__ import annotations

import argparse
import asyncio
import getpass
import os
from pathlib import Path
from typing import Callable

from app.core.logging import setup_logging
from app.modules.client.api import ApiClientError, FlashcardsApiClient
from app.modules.client.auth import AuthContext
from app.modules.client.proposals import ProposalReview
from app.modules.review.session import ReviewSession, ReviewState, load_review_session


DEFAULT_API_URL = os.getenv("TENX_API_URL", "http://localhost:8000")
DEFAULT_TOKEN_FILE = Path.home() / ".tenx-cards" / "token"


def render(session: ReviewSession) -> str:
    if session.state is ReviewState.EMPTY:
        return "No flashcards yet. Add some with `tenx-cards add` first."
    if session.state is ReviewState.COMPLETED:
        return f"Session complete: {len(session.cards)} cards reviewed. [r]estart or [q]uit"
    card = session.current_card
    if card is None:
        return ""
    number, total = session.position
    side = card["back"] if session.flipped else card["front"]
    label = "Back" if session.flipped else "Front"
    return f"[{number}/{total}] {label}: {side}\n(enter/space flip, n next, p previous, q quit)"


def handle_key(session: ReviewSession, key: str) -> None:
    key = key.strip().lower()
    if key in ("", "f"):
        session.flip()
    elif key == "n":
        session.next()
    elif key == "p":
        session.previous()
    elif key == "r":
        session.restart()
    elif key == "q":
        session.exit()


def run_review(session: ReviewSession, read_key: Callable[[str], str] = input) -> None:
    if session.state is ReviewState.EMPTY:
        print(render(session))
        return
    while session.state in (ReviewState.STUDYING, ReviewState.COMPLETED):
        print(render(session))
        try:
            key = read_key("> ")
        except EOFError:
            session.exit()
            break
        handle_key(session, key)


async def _authenticated(client: FlashcardsApiClient, args: argparse.Namespace) -> None:
    if client.auth.is_authenticated and not args.email:
        return
    email = args.email or input("Email: ")
    password = os.getenv("TENX_PASSWORD") or getpass.getpass("Password: ")
    await client.login(email, password)


async def _review(client: FlashcardsApiClient, args: argparse.Namespace) -> int:
    await _authenticated(client, args)
    session = await load_review_session(client)
    run_review(session)
    return 0


async def _add(client: FlashcardsApiClient, args: argparse.Namespace) -> int:
    await _authenticated(client, args)
    card = await client.create_flashcard(args.front, args.back)
    print(f"Created flashcard #{card['id']}")
    return 0


async def _generate(client: FlashcardsApiClient, args: argparse.Namespace) -> int:
    await _authenticated(client, args)
    source_text = Path(args.file).read_text(encoding="utf-8") if args.file else args.text
    if not source_text:
        raise SystemExit("--text or --file is required")

    data = await client.generate(source_text)
    review = ProposalReview.from_generation(data)
    for i, proposal in enumerate(review.proposals, start=1):
        print(f"{i:>2}. {proposal.front}\n    -> {proposal.back}")

    if args.accept_all:
        review.accept_all()
    else:
        picked = input("Accept which proposals? (e.g. 1,3,4 or 'all', empty to discard): ")
        if picked.strip().lower() == "all":
            review.accept_all()
        else:
            for part in picked.replace(" ", "").split(","):
                if part.isdigit() and 1 <= int(part) <= len(review.proposals):
                    review.toggle_accept(int(part) - 1)

    if not review.accepted:
        print("Nothing accepted; proposals discarded")
        return 0
    result = await client.create_batch(review.to_batch_command())
    print(f"Saved {result['created_count']} flashcards")
    return 0


COMMANDS = {"review": _review, "add": _add, "generate": _generate}


async def _run(args: argparse.Namespace) -> int:
    auth = AuthContext(token_file=Path(args.token_file)).load()
    async with FlashcardsApiClient(args.api_url, auth) as client:
        return await COMMANDS[args.cmd](client, args)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="tenx-cards", description="Flashcards study CLI"
    )
    parser.add_argument("--api-url", default=DEFAULT_API_URL, help="API base URL")
    parser.add_argument(
        "--token-file", default=str(DEFAULT_TOKEN_FILE), help="Where to keep the token"
    )
    parser.add_argument("--email", help="Log in as this user before running")
    sub = parser.add_subparsers(dest="cmd", required=True)

    sub.add_parser("review", help="Study all of your flashcards")

    a = sub.add_parser("add", help="Create a flashcard manually")
    a.add_argument("--front", required=True)
    a.add_argument("--back", required=True)

    g = sub.add_parser("generate", help="Generate flashcard proposals from text")
    g.add_argument("--text", "-t", help="Source text (100-1000 characters)")
    g.add_argument("--file", help="Path to a file containing the source text")
    g.add_argument("--accept-all", action="store_true", help="Save every proposal")

    args = parser.parse_args(argv)
    setup_logging()
    try:
        return asyncio.run(_run(args))
    except ApiClientError as e:
        print(f"Error: {e.message}")
        for field, messages in e.details.items():
            print(f"  {field}: {', '.join(messages)}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
