"""
Quiz Engine - drives one study pass over a flashcard set.

Wires the pure QuizState machine to the card store and the session recorder:
1. load_set: fetch cards, start a session, read the high score
2. commands (answer, go_to, reset, ...) replace the state with one transition
3. each change of persisted fields triggers exactly one progress snapshot
4. on completion: await the completion write, verify it, reconcile the score

Commands never raise. Failures are logged; the ones that matter for data
integrity surface through completion_status and view().warning.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Set, Tuple

try:
    from .card_store import CardStore
    from .models.flashcard import Card
    from .models.quiz_state import QuizState, QuizStatus
    from .session_recorder import SessionRecorder
    from .utils.errors import NotFound, PersistenceWriteFailed
    from .utils.progress import high_score_percent, performance_tier, review_summary
except ImportError:
    from src.card_store import CardStore
    from src.models.flashcard import Card
    from src.models.quiz_state import QuizState, QuizStatus
    from src.session_recorder import SessionRecorder
    from src.utils.errors import NotFound, PersistenceWriteFailed
    from src.utils.progress import high_score_percent, performance_tier, review_summary

logger = logging.getLogger(__name__)

RESULT_NOT_SAVED = "Your result could not be saved yet. It will be retried on your next action."
HIGH_SCORE_NOT_SAVED = "Your new high score could not be saved yet. It will be retried on your next action."
LOAD_FAILED = "Failed to load flashcards."


class CompletionStatus(str, Enum):
    NOT_COMPLETED = "not_completed"
    CONFIRMED = "confirmed"
    UNCONFIRMED = "unconfirmed"
    LOCAL_ONLY = "local_only"


@dataclass(frozen=True)
class QuizView:
    """Everything the presentation layer reads."""
    set_id: Optional[str]
    title: str
    status: QuizStatus
    current_card: Optional[Card]
    current_index: int
    show_answer: bool
    answered: Tuple[bool, ...]
    correctness: Tuple[Optional[bool], ...]
    card_count: int
    correct_answers: int
    total_attempts: int
    progress_percent: float
    score_percent: int
    high_score: int
    high_score_percent: int
    completed: bool
    loading: bool
    empty: bool
    local_only: bool
    completion_status: CompletionStatus
    warning: Optional[str]
    review: Tuple[str, ...]
    tier: Optional[str]
    tier_message: Optional[str]


class QuizEngine:
    """
    State owner for one quiz screen.

    Usage:
        engine = QuizEngine(CardStore(persistence), SessionRecorder(persistence), user_id)
        await engine.load_set(set_id)
        engine.reveal()
        await engine.answer(True)
        view = engine.view()
    """

    def __init__(
        self,
        card_store: CardStore,
        recorder: SessionRecorder,
        user_id: Optional[str] = None,
    ):
        self.card_store = card_store
        self.recorder = recorder
        self.user_id = user_id

        self.set_id: Optional[str] = None
        self.title = ""
        self.state = QuizState.loading()
        self.session_id: Optional[str] = None
        self.completion_status = CompletionStatus.NOT_COMPLETED
        self.warning: Optional[str] = None
        self.last_write_error: Optional[PersistenceWriteFailed] = None
        self.closed = False

        self._pending: Set[asyncio.Task] = set()

    # ==================== Commands ====================

    async def load_set(self, set_id: str) -> QuizState:
        """
        Enter the quiz for a set.

        A set without usable cards ends in the EMPTY state.
        """
        self.set_id = set_id
        self.title = ""
        self.state = QuizState.loading()
        self.session_id = None
        self.completion_status = CompletionStatus.NOT_COMPLETED
        self.warning = None
        self.last_write_error = None
        self.closed = False

        try:
            metadata = await self.card_store.get_set(set_id)
            self.title = metadata.title
            cards = await self.card_store.load_cards(set_id)
        except NotFound as e:
            logger.info("Nothing to quiz: %s", e)
            self.state = self.state.start([])
            return self.state
        except Exception as e:
            logger.error("Error fetching flashcards for set %s: %s", set_id, e)
            self.warning = LOAD_FAILED
            self.state = self.state.start([])
            return self.state

        self.state = self.state.start(cards)
        await self._begin_session()
        await self.recorder.fetch_high_score(set_id, self.user_id)
        return self.state

    def reveal(self) -> QuizState:
        if self.state.cards:
            self.state = self.state.reveal()
        return self.state

    def hide(self) -> QuizState:
        if self.state.cards:
            self.state = self.state.hide()
        return self.state

    def toggle(self) -> QuizState:
        if self.state.cards:
            self.state = self.state.toggle()
        return self.state

    async def answer(self, correct: bool) -> QuizState:
        """Self-grade the current card. Answering a card twice changes nothing."""
        if self.closed:
            return self.state

        new_state = self.state.submit(correct)
        if new_state is self.state:
            logger.debug("Card %d already answered; ignoring", self.state.current_index)
            return self.state

        self.state = new_state
        await self._after_change()
        return self.state

    async def go_to(self, index: int) -> QuizState:
        """Jump to any card, answered or not."""
        if self.closed:
            return self.state

        try:
            new_state = self.state.go_to(index)
        except ValueError as e:
            logger.warning("Ignoring navigation: %s", e)
            return self.state

        moved = new_state.current_index != self.state.current_index
        self.state = new_state
        if moved:
            await self._after_change()
        return self.state

    async def reset(self) -> QuizState:
        """Start a new attempt over the same cards with a new session."""
        if not self.state.cards:
            return self.state

        self.state = self.state.restart()
        self.session_id = None
        self.completion_status = CompletionStatus.NOT_COMPLETED
        self.warning = None
        self.last_write_error = None
        self.closed = False
        await self._begin_session()
        return self.state

    def back(self) -> None:
        """Leave the quiz. Pending progress writes finish but their results are dropped."""
        self.closed = True
        logger.debug("Left quiz on set %s at card %d", self.set_id, self.state.current_index)

    async def drain(self) -> None:
        """Wait for all scheduled progress writes."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # ==================== Read side ====================

    @property
    def local_only(self) -> bool:
        return self.session_id is None

    def view(self) -> QuizView:
        state = self.state
        high_score = self.recorder.high_score(self.set_id, self.user_id) if self.set_id else 0
        tier, tier_message = (None, None)
        if state.completed:
            tier, tier_message = performance_tier(state.score_percent)

        return QuizView(
            set_id=self.set_id,
            title=self.title,
            status=state.status,
            current_card=state.current_card,
            current_index=state.current_index,
            show_answer=state.show_answer,
            answered=state.answered,
            correctness=state.correctness,
            card_count=state.card_count,
            correct_answers=state.correct_answers,
            total_attempts=state.total_attempts,
            progress_percent=state.progress_percent,
            score_percent=state.score_percent,
            high_score=high_score,
            high_score_percent=high_score_percent(high_score, state.card_count),
            completed=state.completed,
            loading=state.status == QuizStatus.LOADING,
            empty=state.status == QuizStatus.EMPTY,
            local_only=self.local_only,
            completion_status=self.completion_status,
            warning=self.warning,
            review=tuple(review_summary(state.correctness)),
            tier=tier,
            tier_message=tier_message,
        )

    # ==================== Persistence hooks ====================

    async def _begin_session(self) -> None:
        try:
            self.session_id = await self.recorder.create_session(self.set_id, self.user_id)
        except PersistenceWriteFailed as e:
            logger.error("Error creating quiz session; continuing local-only: %s", e)
            self.session_id = None

    async def _after_change(self) -> None:
        if self.state.completed and self.completion_status not in (
            CompletionStatus.CONFIRMED,
            CompletionStatus.LOCAL_ONLY,
        ):
            await self._complete()
        else:
            self._schedule_snapshot()

    def _schedule_snapshot(self) -> None:
        if self.session_id is None:
            return
        state = self.state
        task = asyncio.create_task(
            self._write_progress(
                self.session_id,
                state.current_index,
                state.correct_answers,
                state.answered,
                state.completed,
            )
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _write_progress(
        self,
        session_id: str,
        current_index: int,
        correct_answers: int,
        answered: Tuple[bool, ...],
        completed: bool,
    ) -> None:
        try:
            await self.recorder.snapshot(
                session_id, current_index, correct_answers, answered, completed
            )
        except PersistenceWriteFailed as e:
            if self._abandoned(session_id):
                logger.debug("Dropping failed write for abandoned session %s", session_id)
                return
            logger.warning("Progress snapshot failed, retried on next change: %s", e)
            self.last_write_error = e
        else:
            if not self._abandoned(session_id):
                self.last_write_error = None

    async def _complete(self) -> None:
        """Confirm-then-reconcile: completion write, verifying read, score update."""
        state = self.state

        if self.session_id is None:
            # Scored for this attempt only; nothing reaches storage
            await self.recorder.reconcile_high_score(
                self.set_id, state.correct_answers, self.user_id, persist=False
            )
            self.completion_status = CompletionStatus.LOCAL_ONLY
            return

        session_id = self.session_id

        # Earlier progress writes must land before the completion write
        await self.drain()
        try:
            await self.recorder.snapshot(
                session_id, state.current_index, state.correct_answers, state.answered, True
            )
        except PersistenceWriteFailed as e:
            logger.warning("Completion write failed for session %s: %s", session_id, e)
            self.last_write_error = e

        confirmed = await self.recorder.confirm_completed(session_id, state.correct_answers)
        if self._abandoned(session_id):
            return
        if not confirmed:
            self.completion_status = CompletionStatus.UNCONFIRMED
            self.warning = RESULT_NOT_SAVED
            return

        try:
            await self.recorder.reconcile_high_score(
                self.set_id, state.correct_answers, self.user_id
            )
        except PersistenceWriteFailed as e:
            logger.error("High score reconciliation failed for set %s: %s", self.set_id, e)
            self.completion_status = CompletionStatus.UNCONFIRMED
            self.warning = HIGH_SCORE_NOT_SAVED
            return

        await self.recorder.fetch_high_score(self.set_id, self.user_id)
        self.completion_status = CompletionStatus.CONFIRMED
        self.warning = None
        self.last_write_error = None
        logger.info(
            "Quiz on set %s completed: %d/%d",
            self.set_id,
            state.correct_answers,
            state.card_count,
        )

    def _abandoned(self, session_id: str) -> bool:
        return self.closed or session_id != self.session_id
