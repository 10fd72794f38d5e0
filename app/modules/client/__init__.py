from .auth import AuthContext
from .api import ApiClientError, FlashcardsApiClient
from .proposals import NothingAcceptedError, Proposal, ProposalReview

__all__ = [
    "AuthContext",
    "ApiClientError",
    "FlashcardsApiClient",
    "NothingAcceptedError",
    "Proposal",
    "ProposalReview",
]
