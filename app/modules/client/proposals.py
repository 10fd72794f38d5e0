from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class Proposal:
    """AI suggestion kept on the client until the user saves it."""

    front: str
    back: str
    is_accepted: bool = False
    is_edited: bool = False


class NothingAcceptedError(ValueError):
    pass


@dataclass
class ProposalReview:
    generation_id: int
    proposals: list[Proposal] = field(default_factory=list)

    @classmethod
    def from_generation(cls, data: dict[str, Any]) -> "ProposalReview":
        """Build from the ``data`` object of ``POST /api/generations``."""
        return cls(
            generation_id=data["generation_id"],
            proposals=[Proposal(p["front"], p["back"]) for p in data["proposals"]],
        )

    def toggle_accept(self, index: int) -> None:
        proposal = self.proposals[index]
        proposal.is_accepted = not proposal.is_accepted

    def accept_all(self) -> None:
        for proposal in self.proposals:
            proposal.is_accepted = True

    def remove(self, index: int) -> None:
        del self.proposals[index]

    def edit(self, index: int, front: str, back: str) -> None:
        # Editing a proposal implies the user wants to keep it
        proposal = self.proposals[index]
        proposal.front = front
        proposal.back = back
        proposal.is_edited = True
        proposal.is_accepted = True

    @property
    def accepted(self) -> list[Proposal]:
        return [p for p in self.proposals if p.is_accepted]

    def to_batch_command(self) -> dict[str, Any]:
        accepted = self.accepted
        if not accepted:
            raise NothingAcceptedError("No proposals accepted")
        return {
            "flashcards": [
                {"front": p.front, "back": p.back, "edited": p.is_edited}
                for p in accepted
            ],
            "generation_id": self.generation_id,
        }
