import os
import tempfile
from pathlib import Path

# Point the app at a throwaway database before backend.config is imported
_db_dir = Path(tempfile.mkdtemp(prefix="nexus-study-tests-"))
os.environ["NEXUS_DATABASE_URL"] = f"sqlite+aiosqlite:///{_db_dir / 'test.db'}"

import pytest_asyncio  # noqa: E402

from backend.database import async_session, init_db  # noqa: E402
from backend.models.deck import Deck  # noqa: E402
from backend.models.learner import Learner  # noqa: E402


@pytest_asyncio.fixture
async def db():
    """A session on a freshly initialized schema."""
    await init_db()
    async with async_session() as session:
        yield session


@pytest_asyncio.fixture
async def learner(db) -> Learner:
    learner = Learner(name="Test")
    db.add(learner)
    await db.commit()
    return learner


@pytest_asyncio.fixture
async def deck(db, learner) -> Deck:
    deck = Deck(learner_id=learner.id, title="Biology", subject="Science")
    db.add(deck)
    await db.commit()
    return deck
