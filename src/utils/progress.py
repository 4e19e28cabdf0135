"""
Score and progress helpers for quiz views and set listings.

Provides:
- Progress and score percentages (always over the full card count)
- High score percentage
- Completion tiers and messages
- Per-card review summary
"""

from __future__ import annotations

import math
from typing import Dict, List, Optional, Sequence, Tuple

try:
    from ..config import config
except ImportError:
    from src.config import config


TIER_MESSAGES: Dict[str, str] = {
    "excellent": "Excellent work!",
    "good": "Good job! Keep practicing.",
    "keep_studying": "Keep studying and try again!",
}


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def progress_percent(answered_count: int, card_count: int) -> float:
    """
    Share of cards answered so far.

    Example:
        >>> progress_percent(2, 5)
        40.0
    """
    if card_count <= 0:
        return 0.0
    return 100.0 * answered_count / card_count


def score_percent(correct_answers: int, card_count: int) -> int:
    """
    Correct answers over the total card count, rounded half up.

    The denominator is the card count, not the attempts so far, so a
    partially completed quiz never shows an inflated percentage.

    Example:
        >>> score_percent(3, 5)
        60
    """
    if card_count <= 0:
        return 0
    return _round_half_up(100.0 * correct_answers / card_count)


def high_score_percent(high_score: int, card_count: int) -> int:
    """High score expressed as a percentage of the set size."""
    return score_percent(high_score, card_count)


def performance_tier(percent: int) -> Tuple[str, str]:
    """
    Classify a final score for the completion screen.

    Returns:
        (tier, message) where tier is "excellent", "good" or "keep_studying"
    """
    if percent >= config.quiz.excellent_threshold:
        tier = "excellent"
    elif percent >= config.quiz.good_threshold:
        tier = "good"
    else:
        tier = "keep_studying"
    return tier, TIER_MESSAGES[tier]


def review_summary(correctness: Sequence[Optional[bool]]) -> List[str]:
    """
    Label every card for the review grid.

    Example:
        >>> review_summary([True, False, None])
        ['correct', 'incorrect', 'unanswered']
    """
    labels = []
    for value in correctness:
        if value is None:
            labels.append("unanswered")
        elif value:
            labels.append("correct")
        else:
            labels.append("incorrect")
    return labels
