"""Pydantic schemas for API request/response models."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

RatingValue = Literal["again", "hard", "good", "easy"]

# --- Decks & cards ---


class LearnerCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)


class LearnerResponse(BaseModel):
    id: int
    name: str


class DeckCreateRequest(BaseModel):
    """Request to create a deck."""

    learner_id: int
    title: str = Field(min_length=1, max_length=200)
    subject: str = ""


class CountsResponse(BaseModel):
    """Bucket sizes for a deck or a learner, without daily limits."""

    new: int
    learning: int
    review: int
    suspended: int


class DeckResponse(BaseModel):
    id: int
    title: str
    subject: str
    total_cards: int
    counts: CountsResponse


class CardCreateRequest(BaseModel):
    """Request to add a card to a deck."""

    front: str = Field(min_length=1)
    back: str = ""
    card_type: Literal["basic", "cloze"] = "basic"
    source_type: Literal["note", "pdf"] | None = None
    source_id: str | None = None
    source_title: str | None = None


class CardResponse(BaseModel):
    id: int
    deck_id: int
    front: str
    back: str
    card_type: str
    status: str
    interval: float
    ease_factor: float
    reps: int
    lapses: int
    due_date: datetime
    step_index: int
    last_reviewed: datetime | None
    suspended_from: str | None = None
    source_type: str | None = None
    source_title: str | None = None

    model_config = {"from_attributes": True}


class ImportRequest(BaseModel):
    """Raw note text to scan for cards."""

    text: str
    source_title: str | None = None


class ImportResponse(BaseModel):
    cards_extracted: int
    cards_after_dedup: int
    cards_created: int


# --- Session ---


class SessionStartRequest(BaseModel):
    learner_id: int
    deck_id: int | None = None


class SessionStartResponse(BaseModel):
    """Response when starting a new review session."""

    session_id: str
    learner_id: int
    total_cards: int
    learning_cards: int
    review_cards: int
    new_cards: int


class CardPromptResponse(BaseModel):
    """The next card to show, question side already rendered."""

    card_id: int
    card_type: str
    status: str
    prompt: str
    answer: str
    remaining: int


class AnswerRequest(BaseModel):
    """Request to submit a rating for the current card."""

    card_id: int
    rating: RatingValue
    time_ms: int = Field(ge=0)


class AnswerResponse(BaseModel):
    """Response after rating a card with its new schedule."""

    rating: str
    applied_rating: str
    status: str
    interval_days: float
    next_due: datetime
    xp_earned: int
    remaining: int
    session_complete: bool


class SessionStatsResponse(BaseModel):
    """Statistics for the current review session."""

    cards_reviewed: int
    again: int
    hard: int
    good: int
    easy: int
    new_cards_seen: int
    suspended: int
    xp_earned: int
    average_time_ms: float


# --- Stats & settings ---


class LearnerStatsResponse(BaseModel):
    """Overall statistics for a learner."""

    xp: int
    level: int
    streak: int
    last_study_date: datetime | None
    cards_learned: int
    total_cards: int
    counts: CountsResponse
    new_studied_today: int
    reviews_studied_today: int
    total_reviews: int
    average_retention: float | None


class SettingsPayload(BaseModel):
    """Scheduling settings as exposed over the API."""

    learning_steps: list[float] = Field(min_length=1)
    graduating_interval: float = Field(ge=0)
    easy_bonus: float = Field(ge=1)
    leech_threshold: int = Field(ge=1)
    reaction_time_target_ms: int = Field(ge=0)
    max_new_per_day: int = Field(ge=0)
    max_reviews_per_day: int = Field(ge=0)
