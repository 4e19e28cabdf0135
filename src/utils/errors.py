"""
Exception types shared by the card store, session recorder, quiz engine
and card generator.
"""

from __future__ import annotations

from typing import List, Optional


class FlashQuizError(Exception):
    """Base class for all FlashQuiz errors."""


class NotFound(FlashQuizError):
    """A set, its cards or a session does not exist."""

    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} not found: {identifier}")


class PersistenceWriteFailed(FlashQuizError):
    """A snapshot, session or high-score write did not go through."""

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        self.operation = operation
        self.cause = cause
        message = f"Persistence write failed during {operation}"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)


class Unauthenticated(FlashQuizError):
    """
    An operation that must be owned by a user was called without one.

    Raised by set generation only. The quiz path never raises it: a missing
    user makes the session recorder return no session id and the quiz runs
    local-only.
    """


class MalformedCard(FlashQuizError):
    """A card is missing required fields or carries invalid values."""

    def __init__(self, errors: List[str], card_id: Optional[str] = None):
        self.errors = errors
        self.card_id = card_id
        label = card_id or "<no id>"
        super().__init__(f"Malformed card {label}: " + "; ".join(errors))


class GenerationFailed(FlashQuizError):
    """The language model reply did not yield any usable card."""
