"""
Quiz session record - the persisted progress of one attempt at a set.

A session is created when a quiz view is entered or reset and is never
deleted by the quiz core.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Sequence


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class QuizSession:
    """
    Persisted progress of one attempt.

    Attributes:
        session_id: Session identifier ("qs-" prefixed UUID)
        set_id: Set being studied
        user_id: Owner of the attempt
        current_card_index: Card the learner is looking at
        correct_answers: Cards self-marked correct
        total_attempts: Cards answered so far
        completed: Whether every card has been answered
        created_at: ISO 8601 creation time
        updated_at: ISO 8601 time of the last snapshot
    """
    set_id: str
    user_id: str
    session_id: str = field(default_factory=lambda: f"qs-{uuid.uuid4()}")
    current_card_index: int = 0
    correct_answers: int = 0
    total_attempts: int = 0
    completed: bool = False
    created_at: str = field(default_factory=utc_now)
    updated_at: str = field(default_factory=utc_now)

    def __post_init__(self):
        if not (0 <= self.correct_answers <= self.total_attempts):
            raise ValueError(
                f"Expected 0 <= correct_answers <= total_attempts, got "
                f"{self.correct_answers} / {self.total_attempts}"
            )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QuizSession":
        return cls(**{k: data[k] for k in cls.__dataclass_fields__ if k in data})

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def snapshot_fields(
    current_index: int,
    correct_answers: int,
    answered: Sequence[bool],
    completed: bool,
    updated_at: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Build the update payload for a progress snapshot.

    total_attempts is derived from the answered flags so it can never drift
    from them.
    """
    return {
        "current_card_index": current_index,
        "correct_answers": correct_answers,
        "total_attempts": sum(1 for flag in answered if flag),
        "completed": completed,
        "updated_at": updated_at or utc_now(),
    }
