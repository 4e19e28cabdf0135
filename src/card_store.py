"""
Card store - read access to the ordered cards of a set.

Rows coming back from persistence are schema-checked one by one; a card
missing required fields is dropped with a warning instead of failing the
whole load.
"""

from __future__ import annotations

import logging
from typing import List, Optional

try:
    from .models.flashcard import Card, FlashcardSet, SetSummary
    from .utils.errors import MalformedCard, NotFound
    from .utils.persistence import FlashcardPersistence
    from .utils.validation import validate_card
except ImportError:
    from src.models.flashcard import Card, FlashcardSet, SetSummary
    from src.utils.errors import MalformedCard, NotFound
    from src.utils.persistence import FlashcardPersistence
    from src.utils.validation import validate_card

logger = logging.getLogger(__name__)


class CardStore:
    """Read-side view over a FlashcardPersistence backend."""

    def __init__(self, persistence: FlashcardPersistence):
        self.persistence = persistence

    async def load_cards(self, set_id: str) -> List[Card]:
        """
        Ordered, validated cards of a set.

        Raises:
            NotFound: If the set does not exist or has no usable card
        """
        rows = await self.persistence.get_cards_for_set(set_id)

        cards = []
        for position, row in enumerate(rows):
            try:
                validate_card(row, require_id=True)
            except MalformedCard as e:
                logger.warning("Skipping card %d of set %s: %s", position, set_id, e)
                continue
            cards.append(Card.from_dict(row))

        if not cards:
            raise NotFound("cards for set", set_id)

        logger.debug("Loaded %d/%d cards for set %s", len(cards), len(rows), set_id)
        return cards

    async def get_set(self, set_id: str) -> FlashcardSet:
        """
        Raises:
            NotFound: If the set does not exist
        """
        return FlashcardSet.from_dict(await self.persistence.get_set_metadata(set_id))

    async def list_sets(self, user_id: Optional[str]) -> List[SetSummary]:
        """
        Sets of a user, newest first, with card counts and best scores.

        The best score is the larger of the set's stored high score and the
        best completed session, so either source alone is enough.
        """
        if not user_id:
            return []

        summaries = []
        for row in await self.persistence.list_sets(user_id):
            card_count = await self.persistence.count_cards(row["id"])
            best = await self.persistence.query_best_completed_session(user_id, row["id"])
            best_score = best["correct_answers"] if best else 0
            summaries.append(
                SetSummary(
                    set_id=row["id"],
                    title=row.get("title", ""),
                    prompt=row.get("prompt", ""),
                    created_at=row.get("created_at", ""),
                    card_count=card_count,
                    high_score=max(int(row.get("high_score") or 0), best_score),
                )
            )
        return summaries

    async def delete_set(self, set_id: str) -> None:
        """
        Raises:
            NotFound: If the set does not exist
        """
        await self.persistence.delete_set(set_id)
        logger.info("Deleted set %s", set_id)
