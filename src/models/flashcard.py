"""
Flashcard and flashcard set models.

Cards are immutable once generated and keep the order they were created in.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class Difficulty(str, Enum):
    """Difficulty assigned by the generator."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


@dataclass(frozen=True)
class Card:
    """
    A single question/answer card.

    Attributes:
        card_id: Card identifier
        question: Question text shown first
        answer: Answer text revealed on demand
        difficulty: Generator-assigned difficulty
    """
    card_id: str
    question: str
    answer: str
    difficulty: Difficulty = Difficulty.MEDIUM

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Card":
        """Build a card from a validated persistence row."""
        return cls(
            card_id=str(data["id"]),
            question=data["question"],
            answer=data["answer"],
            difficulty=Difficulty(data.get("difficulty", Difficulty.MEDIUM.value)),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.card_id,
            "question": self.question,
            "answer": self.answer,
            "difficulty": self.difficulty.value,
        }


@dataclass
class FlashcardSet:
    """
    A named collection of cards generated from one prompt.

    high_score only ever grows and is written by the session recorder.
    """
    set_id: str
    user_id: Optional[str]
    title: str
    prompt: str
    created_at: str = ""
    high_score: int = 0

    def __post_init__(self):
        if not self.created_at:
            self.created_at = datetime.now(timezone.utc).isoformat()
        if self.high_score < 0:
            raise ValueError(f"high_score cannot be negative: {self.high_score}")

    @staticmethod
    def new_id() -> str:
        return f"set-{uuid.uuid4()}"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FlashcardSet":
        return cls(
            set_id=data["id"],
            user_id=data.get("user_id"),
            title=data.get("title", ""),
            prompt=data.get("prompt", ""),
            created_at=data.get("created_at", ""),
            high_score=int(data.get("high_score") or 0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.set_id,
            "user_id": self.user_id,
            "title": self.title,
            "prompt": self.prompt,
            "created_at": self.created_at,
            "high_score": self.high_score,
        }


@dataclass(frozen=True)
class SetSummary:
    """Row of the set listing: metadata plus card count and best score."""
    set_id: str
    title: str
    prompt: str
    created_at: str
    card_count: int
    high_score: int
