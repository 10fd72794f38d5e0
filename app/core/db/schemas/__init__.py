# Import models so Alembic and Base metadata are aware of them
from .auth import User  # noqa: F401
from .flashcards import Flashcard, FlashcardSource, Generation, GenerationErrorLog  # noqa: F401
