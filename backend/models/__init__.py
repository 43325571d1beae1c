"""SQLAlchemy ORM models for the Nexus Study database."""

from backend.models.base import Base
from backend.models.card import Card
from backend.models.deck import Deck
from backend.models.learner import Learner
from backend.models.review_log import ReviewLog

__all__ = ["Base", "Card", "Deck", "Learner", "ReviewLog"]
