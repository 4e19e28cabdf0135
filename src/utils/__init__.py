"""
Utility modules for FlashQuiz.

This module contains utility functions:
- errors: Exception taxonomy
- validation: JSON Schema validation of cards
- progress: Score and progress helpers
- persistence: Storage backends for sets, cards and sessions
"""

from .errors import (
    FlashQuizError,
    NotFound,
    PersistenceWriteFailed,
    Unauthenticated,
    MalformedCard,
    GenerationFailed,
)
from .validation import (
    SchemaValidator,
    CardValidator,
    ValidationResult,
    validate_card,
)
from .progress import (
    progress_percent,
    score_percent,
    high_score_percent,
    performance_tier,
    review_summary,
)
from .persistence import (
    FlashcardPersistence,
    InMemoryPersistence,
    JsonFilePersistence,
)

__all__ = [
    # Errors
    "FlashQuizError",
    "NotFound",
    "PersistenceWriteFailed",
    "Unauthenticated",
    "MalformedCard",
    "GenerationFailed",
    # Validation
    "SchemaValidator",
    "CardValidator",
    "ValidationResult",
    "validate_card",
    # Progress
    "progress_percent",
    "score_percent",
    "high_score_percent",
    "performance_tier",
    "review_summary",
    # Persistence
    "FlashcardPersistence",
    "InMemoryPersistence",
    "JsonFilePersistence",
]
