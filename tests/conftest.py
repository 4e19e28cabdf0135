"""
Shared pytest fixtures and configuration for FlashQuiz tests.

This file is automatically discovered by pytest and provides
fixtures available to all tests.
"""

import asyncio
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

# Make the project root importable without an install
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.utils.persistence import InMemoryPersistence


USER_ID = "user-test-123"
SET_ID = "set-test-python"


def make_card_rows(count: int, set_id: str = SET_ID) -> List[Dict[str, Any]]:
    """Card rows as stored by the generator, ordered by created_at."""
    return [
        {
            "id": f"card-{i}",
            "set_id": set_id,
            "question": f"Question {i}?",
            "answer": f"Answer {i}",
            "difficulty": ["easy", "medium", "hard"][i % 3],
            "created_at": f"2026-01-01T00:00:{i:02d}+00:00",
        }
        for i in range(count)
    ]


def seed_set(
    persistence: InMemoryPersistence,
    cards: List[Dict[str, Any]],
    set_id: str = SET_ID,
    user_id: Optional[str] = USER_ID,
    high_score: int = 0,
    title: str = "Python Basics",
) -> str:
    """Put a set straight into an in-memory backend."""
    persistence.sets[set_id] = {
        "id": set_id,
        "user_id": user_id,
        "title": title,
        "prompt": "Teach me Python basics",
        "created_at": "2026-01-01T00:00:00+00:00",
        "high_score": high_score,
    }
    persistence.cards[set_id] = [dict(card) for card in cards]
    return set_id


class ControlledPersistence(InMemoryPersistence):
    """
    In-memory backend with call counters, failure switches and read gates.

    Gates are asyncio.Events created by the test inside its own event loop.
    """

    def __init__(self):
        super().__init__()
        self.metadata_reads = 0
        self.session_updates: List[Dict[str, Any]] = []
        self.high_score_writes: List[int] = []
        self.fail_inserts = False
        self.fail_updates = False
        self.fail_high_score = False
        self.fail_reads = False
        self.metadata_gate: Optional[asyncio.Event] = None
        self.update_yields = 0

    async def get_set_metadata(self, set_id):
        self.metadata_reads += 1
        if self.fail_reads:
            raise OSError("read failed")
        row = await super().get_set_metadata(set_id)
        if self.metadata_gate is not None:
            await self.metadata_gate.wait()
        return row

    async def insert_session(self, record):
        if self.fail_inserts:
            raise OSError("insert failed")
        return await super().insert_session(record)

    async def update_session(self, session_id, fields):
        for _ in range(self.update_yields):
            await asyncio.sleep(0)
        if self.fail_updates:
            raise OSError("update failed")
        self.session_updates.append(dict(fields, session_id=session_id))
        await super().update_session(session_id, fields)

    async def update_set_high_score(self, set_id, user_id, new_high_score, updated_at):
        if self.fail_high_score:
            raise OSError("high score write failed")
        self.high_score_writes.append(new_high_score)
        await super().update_set_high_score(set_id, user_id, new_high_score, updated_at)


@pytest.fixture
def persistence():
    """Controlled in-memory backend with an empty store."""
    return ControlledPersistence()


@pytest.fixture
def five_card_set(persistence):
    """Backend seeded with one five-card set owned by USER_ID."""
    seed_set(persistence, make_card_rows(5))
    return persistence


@pytest.fixture
def card_rows():
    return make_card_rows(5)


# Pytest hooks for better test output


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
