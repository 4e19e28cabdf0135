"""
Data models for FlashQuiz.

This module contains core data models:
- Card, FlashcardSet, SetSummary: generated study material
- QuizSession: persisted progress of one attempt
- QuizState: the per-attempt state machine (pure logic)
"""

from .flashcard import Card, Difficulty, FlashcardSet, SetSummary
from .quiz_session import QuizSession, snapshot_fields
from .quiz_state import QuizState, QuizStatus

__all__ = [
    "Card",
    "Difficulty",
    "FlashcardSet",
    "SetSummary",
    "QuizSession",
    "snapshot_fields",
    "QuizState",
    "QuizStatus",
]
