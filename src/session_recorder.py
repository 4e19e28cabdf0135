"""
Session recorder - persists attempt progress and owns the per-set high score.

Responsibilities:
- Create one session row per attempt (skipped when nobody is signed in)
- Write progress snapshots in the order they were requested
- Verify the completion write with a re-read before scores are reconciled
- Keep the high score a monotonic register: only ever raised, never read lower

High-score fetches for the same (set, user) share one underlying read.
Fetched values are merged into the cache with max(), so a slow read that
started before an update can never pull the cached score back down.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional, Sequence, Tuple

try:
    from .config import config
    from .models.quiz_session import QuizSession, snapshot_fields, utc_now
    from .utils.errors import PersistenceWriteFailed
    from .utils.persistence import FlashcardPersistence
except ImportError:
    from src.config import config
    from src.models.quiz_session import QuizSession, snapshot_fields, utc_now
    from src.utils.errors import PersistenceWriteFailed
    from src.utils.persistence import FlashcardPersistence

logger = logging.getLogger(__name__)

ScoreKey = Tuple[str, Optional[str]]


class SessionRecorder:
    """
    Write-through recorder for quiz sessions and high scores.

    Usage:
        recorder = SessionRecorder(persistence)
        session_id = await recorder.create_session(set_id, user_id)
        await recorder.snapshot(session_id, 1, 1, [True, False], False)
        best = await recorder.fetch_high_score(set_id, user_id)
    """

    def __init__(
        self,
        persistence: FlashcardPersistence,
        confirm_retries: Optional[int] = None,
    ):
        """
        Initialize recorder.

        Args:
            persistence: Storage backend
            confirm_retries: Extra verifying reads after a completion write
        """
        self.persistence = persistence
        self.confirm_retries = (
            config.quiz.confirm_retries if confirm_retries is None else confirm_retries
        )

        # FIFO: snapshots are attempted in the order they were requested
        self._write_lock = asyncio.Lock()
        self._score_locks: Dict[ScoreKey, asyncio.Lock] = {}
        self._fetches: Dict[ScoreKey, asyncio.Future] = {}
        self._high_scores: Dict[ScoreKey, int] = {}
        # Last known value of the set row itself, kept apart from the merged display value
        self._stored_scores: Dict[ScoreKey, int] = {}

    # ==================== Sessions ====================

    async def create_session(self, set_id: str, user_id: Optional[str]) -> Optional[str]:
        """
        Start a new session for an attempt.

        Returns:
            Session id, or None when there is no authenticated user

        Raises:
            PersistenceWriteFailed: If the insert fails
        """
        if not user_id:
            logger.info("No authenticated user; quiz on set %s runs local-only", set_id)
            return None

        session = QuizSession(set_id=set_id, user_id=user_id)
        try:
            session_id = await self.persistence.insert_session(session.to_dict())
        except Exception as e:
            raise PersistenceWriteFailed("session insert", e) from e

        logger.info("Created quiz session %s for set %s", session_id, set_id)
        return session_id

    async def snapshot(
        self,
        session_id: str,
        current_index: int,
        correct_answers: int,
        answered: Sequence[bool],
        completed: bool,
    ) -> None:
        """
        Upsert session progress. Writing the same snapshot twice is harmless.

        Raises:
            PersistenceWriteFailed: If the update fails
        """
        fields = snapshot_fields(current_index, correct_answers, answered, completed)
        async with self._write_lock:
            try:
                await self.persistence.update_session(session_id, fields)
            except Exception as e:
                raise PersistenceWriteFailed("session snapshot", e) from e

        logger.debug(
            "Session %s updated: index=%d correct=%d attempts=%d completed=%s",
            session_id,
            current_index,
            correct_answers,
            fields["total_attempts"],
            completed,
        )

    async def confirm_completed(self, session_id: str, correct_answers: int) -> bool:
        """
        Verifying read after the completion write.

        Returns:
            True once the stored session shows completed with the same score
        """
        for attempt in range(self.confirm_retries + 1):
            try:
                row = await self.persistence.get_session(session_id)
            except Exception as e:
                logger.warning(
                    "Verifying read %d for session %s failed: %s", attempt + 1, session_id, e
                )
                continue
            if row and row.get("completed") and row.get("correct_answers") == correct_answers:
                return True

        logger.error("Session %s could not be confirmed as completed", session_id)
        return False

    # ==================== High score ====================

    def high_score(self, set_id: str, user_id: Optional[str]) -> int:
        """Latest confirmed (or locally recorded) high score, without I/O."""
        return self._high_scores.get((set_id, user_id), 0)

    async def fetch_high_score(self, set_id: str, user_id: Optional[str]) -> int:
        """
        Read the high score, joining a fetch that is already in flight.

        Returns:
            Best score so far, 0 if nothing has been completed. On read
            errors the cached value is returned unchanged.
        """
        key = (set_id, user_id)
        if not user_id:
            return self._high_scores.get(key, 0)

        in_flight = self._fetches.get(key)
        if in_flight is None:
            in_flight = asyncio.ensure_future(self._read_high_score(set_id, user_id))
            self._fetches[key] = in_flight
            in_flight.add_done_callback(lambda fut: self._clear_fetch(key, fut))

        try:
            fetched = await asyncio.shield(in_flight)
        except Exception as e:
            logger.error("Error fetching high score for set %s: %s", set_id, e)
            return self._high_scores.get(key, 0)

        stored, best_session = fetched
        self._stored_scores[key] = max(self._stored_scores.get(key, 0), stored)
        merged = max(self._high_scores.get(key, 0), stored, best_session)
        self._high_scores[key] = merged
        return merged

    async def reconcile_high_score(
        self,
        set_id: str,
        candidate: int,
        user_id: Optional[str] = None,
        persist: bool = True,
    ) -> int:
        """
        Raise the high score to candidate if it is larger; otherwise no-op.

        The stored set value is written whenever candidate exceeds it, even
        if a completed session already shows that score. Safe to call
        repeatedly with the same or a lower candidate.

        Args:
            set_id: Set the score belongs to
            candidate: Correct answers of a completed attempt
            user_id: Owner of the set; without one nothing is written
            persist: False keeps the new value in memory only (local-only attempts)

        Returns:
            The high score after reconciliation

        Raises:
            PersistenceWriteFailed: If the stored value could not be raised
        """
        if candidate < 0:
            raise ValueError(f"Score cannot be negative: {candidate}")

        key = (set_id, user_id)
        async with self._score_lock(key):
            if user_id and persist:
                if key not in self._stored_scores:
                    await self.fetch_high_score(set_id, user_id)
                stored = self._stored_scores.get(key, 0)

                if candidate > stored:
                    try:
                        await self.persistence.update_set_high_score(
                            set_id, user_id, candidate, utc_now()
                        )
                    except Exception as e:
                        raise PersistenceWriteFailed("high score update", e) from e
                    self._stored_scores[key] = max(self._stored_scores.get(key, 0), candidate)
                    logger.info(
                        "High score for set %s raised from %d to %d", set_id, stored, candidate
                    )
            elif user_id and key not in self._high_scores:
                await self.fetch_high_score(set_id, user_id)

            self._high_scores[key] = max(self._high_scores.get(key, 0), candidate)
            return self._high_scores[key]

    # ==================== Internals ====================

    async def _read_high_score(self, set_id: str, user_id: str) -> Tuple[int, int]:
        """Stored set value and best completed session score, read separately."""
        metadata = await self.persistence.get_set_metadata(set_id)
        best = await self.persistence.query_best_completed_session(user_id, set_id)
        stored = int(metadata.get("high_score") or 0)
        best_session = int(best["correct_answers"]) if best else 0
        return stored, best_session

    def _score_lock(self, key: ScoreKey) -> asyncio.Lock:
        if key not in self._score_locks:
            self._score_locks[key] = asyncio.Lock()
        return self._score_locks[key]

    def _clear_fetch(self, key: ScoreKey, future: asyncio.Future) -> None:
        if self._fetches.get(key) is future:
            del self._fetches[key]
