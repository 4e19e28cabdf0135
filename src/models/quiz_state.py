"""
Quiz state machine - one study pass over a fixed, ordered card sequence.

The whole per-attempt state lives in a single immutable QuizState value.
Every command is one transition method returning a new value; derived
numbers (score, attempts, progress) are computed on read and never stored.

States: LOADING -> ACTIVE -> COMPLETED, plus EMPTY for a set without cards.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Sequence, Tuple

try:
    from .flashcard import Card
    from ..utils.progress import progress_percent, score_percent
except ImportError:
    from src.models.flashcard import Card
    from src.utils.progress import progress_percent, score_percent


class QuizStatus(str, Enum):
    LOADING = "loading"
    ACTIVE = "active"
    COMPLETED = "completed"
    EMPTY = "empty"


@dataclass(frozen=True)
class QuizState:
    """
    Snapshot of one attempt.

    Attributes:
        status: Lifecycle state
        cards: Ordered cards of the set
        current_index: Card on screen
        answered: Per-card answered flags, index-aligned with cards
        correctness: Per-card result, None while unanswered
        show_answer: Whether the answer side is revealed
    """
    status: QuizStatus = QuizStatus.LOADING
    cards: Tuple[Card, ...] = ()
    current_index: int = 0
    answered: Tuple[bool, ...] = ()
    correctness: Tuple[Optional[bool], ...] = ()
    show_answer: bool = False

    # ---- construction ----

    @classmethod
    def loading(cls) -> "QuizState":
        return cls()

    def start(self, cards: Sequence[Card]) -> "QuizState":
        """LOADING -> ACTIVE with all cards unanswered (EMPTY for no cards)."""
        cards = tuple(cards)
        if not cards:
            return QuizState(status=QuizStatus.EMPTY)
        return QuizState(
            status=QuizStatus.ACTIVE,
            cards=cards,
            current_index=0,
            answered=(False,) * len(cards),
            correctness=(None,) * len(cards),
            show_answer=False,
        )

    def restart(self) -> "QuizState":
        """Fresh tracking arrays over the same cards."""
        return QuizState.loading().start(self.cards)

    # ---- derived values ----

    @property
    def card_count(self) -> int:
        return len(self.cards)

    @property
    def correct_answers(self) -> int:
        return sum(1 for value in self.correctness if value is True)

    @property
    def total_attempts(self) -> int:
        return sum(1 for flag in self.answered if flag)

    @property
    def completed(self) -> bool:
        return self.status == QuizStatus.COMPLETED

    @property
    def current_card(self) -> Optional[Card]:
        if not self.cards:
            return None
        return self.cards[self.current_index]

    @property
    def progress_percent(self) -> float:
        return progress_percent(self.total_attempts, self.card_count)

    @property
    def score_percent(self) -> int:
        return score_percent(self.correct_answers, self.card_count)

    # ---- transitions ----

    def submit(self, correct: bool) -> "QuizState":
        """
        Record an answer for the current card.

        Returns the same state when the card is already answered, so a
        recorded result can never be improved by answering again.
        """
        if self.status != QuizStatus.ACTIVE:
            return self
        index = self.current_index
        if self.answered[index]:
            return self

        answered = self.answered[:index] + (True,) + self.answered[index + 1:]
        correctness = (
            self.correctness[:index] + (bool(correct),) + self.correctness[index + 1:]
        )
        next_index = _next_unanswered(answered, index)
        status = QuizStatus.COMPLETED if all(answered) else QuizStatus.ACTIVE

        return replace(
            self,
            status=status,
            answered=answered,
            correctness=correctness,
            current_index=next_index,
            show_answer=self.show_answer if next_index == index else False,
        )

    def go_to(self, index: int) -> "QuizState":
        """
        Jump to any card; answer data is untouched.

        Raises:
            ValueError: If index is outside the card range
        """
        if not (0 <= index < self.card_count):
            raise ValueError(f"Card index {index} out of range [0, {self.card_count})")
        return replace(self, current_index=index, show_answer=False)

    def reveal(self) -> "QuizState":
        return replace(self, show_answer=True)

    def hide(self) -> "QuizState":
        return replace(self, show_answer=False)

    def toggle(self) -> "QuizState":
        return replace(self, show_answer=not self.show_answer)

    def check_invariants(self) -> None:
        """
        Raises:
            ValueError: If the tracking arrays disagree
        """
        if not (len(self.answered) == len(self.correctness) == self.card_count):
            raise ValueError("Integrity error: tracking arrays not sized to the card count")
        for index, (flag, value) in enumerate(zip(self.answered, self.correctness)):
            if flag != (value is not None):
                raise ValueError(f"Integrity error: answered/correctness disagree at {index}")
        if not (0 <= self.correct_answers <= self.total_attempts <= self.card_count):
            raise ValueError(
                f"Integrity error: {self.correct_answers} correct, "
                f"{self.total_attempts} attempts, {self.card_count} cards"
            )
        if self.completed != (self.card_count > 0 and all(self.answered)):
            raise ValueError("Integrity error: completion flag disagrees with answers")


def _next_unanswered(answered: Sequence[bool], index: int) -> int:
    """Immediate next card if unanswered, else the lowest unanswered, else stay."""
    following = index + 1
    if following < len(answered) and not answered[following]:
        return following
    for candidate, flag in enumerate(answered):
        if not flag:
            return candidate
    return index
