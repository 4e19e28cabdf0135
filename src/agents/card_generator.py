"""
Card Generator Agent - turns a learning prompt into question/answer cards.

Uses an LLM to write the cards, optionally grounded in supporting document
text supplied by the caller, then validates every card before storing the
new set.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence

from langchain_core.prompts import PromptTemplate
from langchain_openai import ChatOpenAI

try:
    from ..config import config
    from ..models.flashcard import FlashcardSet
    from ..utils.errors import GenerationFailed, MalformedCard, Unauthenticated
    from ..utils.persistence import FlashcardPersistence
    from ..utils.validation import validate_card
except ImportError:
    from src.config import config
    from src.models.flashcard import FlashcardSet
    from src.utils.errors import GenerationFailed, MalformedCard, Unauthenticated
    from src.utils.persistence import FlashcardPersistence
    from src.utils.validation import validate_card

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an expert educational content creator. Create flashcards that help "
    "students learn effectively. Each flashcard should have a clear, concise question "
    "and a comprehensive but focused answer."
)

CARD_PROMPT = PromptTemplate(
    input_variables=["system", "count", "prompt", "context"],
    template="""{system}

Create {count} flashcards based on the following learning request.

**Request:** {prompt}
{context}
**Requirements:**
1. One question and one answer per card
2. Questions test understanding, not only recall
3. Rate each card "easy", "medium" or "hard"

**Format your response as a JSON array:**
[
  {{"question": "...", "answer": "...", "difficulty": "medium"}}
]

**Flashcards:**""",
)


def parse_cards_response(response_text: str) -> List[Any]:
    """
    Extract the JSON card array from an LLM reply.

    Tries, in order: the whole reply, a fenced ```json block, the first
    [...] span.

    Raises:
        GenerationFailed: If no JSON array can be parsed
    """
    candidates = [response_text]
    fenced = re.search(r"```(?:json)?\s*([\s\S]*?)\s*```", response_text)
    if fenced:
        candidates.append(fenced.group(1))
    array = re.search(r"\[[\s\S]*\]", response_text)
    if array:
        candidates.append(array.group(0))

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, list):
            return parsed

    raise GenerationFailed("No valid JSON card array found in model response")


class CardGenerator:
    """
    Generates flashcard sets with an LLM.

    Features:
    - Prompt plus optional document context
    - Tolerant parsing of fenced or chatty replies
    - Schema validation, malformed cards are dropped
    """

    def __init__(
        self,
        llm: Optional[Any] = None,
        model_name: Optional[str] = None,
        temperature: Optional[float] = None,
    ):
        """
        Initialize card generator.

        Args:
            llm: Chat model to use (built from config when None)
            model_name: LLM model name
            temperature: LLM temperature
        """
        self.model_name = model_name or config.model.model_name
        self.llm = llm or ChatOpenAI(
            model=self.model_name,
            temperature=config.model.temperature if temperature is None else temperature,
            max_tokens=config.model.max_tokens,
            api_key=config.model.api_key,
            base_url=config.model.base_url,
            timeout=config.model.request_timeout,
        )

    def generate_cards(
        self,
        prompt: str,
        documents: Sequence[str] = (),
        count: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Ask the model for cards and keep the valid ones.

        Args:
            prompt: What the learner wants to study
            documents: Supporting document text, already extracted
            count: Number of cards to request

        Returns:
            Card dicts with question, answer and difficulty

        Raises:
            ValueError: If prompt is empty or count is out of range
            GenerationFailed: If the reply holds no usable card
        """
        if not prompt or not prompt.strip():
            raise ValueError("Prompt cannot be empty")

        count = count or config.quiz.default_card_count
        if not (1 <= count <= config.quiz.max_card_count):
            raise ValueError(
                f"Card count must be between 1 and {config.quiz.max_card_count}, got {count}"
            )

        context = ""
        texts = [doc for doc in documents if doc and doc.strip()]
        if texts:
            context = "\n**Additional context from uploaded files:**\n" + "\n\n".join(texts) + "\n"

        message = CARD_PROMPT.format(
            system=SYSTEM_PROMPT, count=count, prompt=prompt.strip(), context=context
        )
        response = self.llm.invoke(message).content

        cards = []
        for position, raw in enumerate(parse_cards_response(response)):
            try:
                validate_card(raw)
            except MalformedCard as e:
                logger.warning("Dropping generated card %d: %s", position, e)
                continue
            cards.append(
                {
                    "question": raw["question"].strip(),
                    "answer": raw["answer"].strip(),
                    "difficulty": raw["difficulty"],
                }
            )

        if not cards:
            raise GenerationFailed("Model response contained no usable flashcards")

        logger.info("Generated %d flashcards (%d requested)", len(cards), count)
        return cards

    async def create_set(
        self,
        persistence: FlashcardPersistence,
        user_id: str,
        title: str,
        prompt: str,
        documents: Sequence[str] = (),
        count: Optional[int] = None,
    ) -> str:
        """
        Generate cards and store them as a new set.

        Returns:
            The new set id

        Raises:
            Unauthenticated: If there is no user
            ValueError: If the title is missing
            GenerationFailed: If no card could be generated
        """
        if not user_id:
            raise Unauthenticated("Generating a set requires a signed-in user")
        if not title or not title.strip():
            raise ValueError("Title cannot be empty")

        # The chat model call blocks; keep it off the event loop
        cards = await asyncio.to_thread(
            self.generate_cards, prompt, documents=documents, count=count
        )

        flashcard_set = FlashcardSet(
            set_id=FlashcardSet.new_id(),
            user_id=user_id,
            title=title.strip(),
            prompt=prompt.strip(),
        )

        # Spread creation times so storage order matches generation order
        base = datetime.now(timezone.utc)
        rows = [
            {
                **card,
                "id": f"card-{uuid.uuid4()}",
                "created_at": (base + timedelta(microseconds=position)).isoformat(),
            }
            for position, card in enumerate(cards)
        ]

        set_id = await persistence.save_set(flashcard_set.to_dict(), rows)
        logger.info("Stored set %s with %d cards", set_id, len(rows))
        return set_id
