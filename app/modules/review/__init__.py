"""Study session exports."""

from .session import ReviewSession, ReviewState, load_review_session

__all__ = ["ReviewSession", "ReviewState", "load_review_session"]
