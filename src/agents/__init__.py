"""
AI agents for FlashQuiz.

This module contains LangChain-based agents:
- Card generation (prompt + documents -> question/answer cards)

Note: the quiz state machine is in src/models (pure logic, not an agent)
"""

from .card_generator import (
    CardGenerator,
    parse_cards_response,
)

__all__ = [
    "CardGenerator",
    "parse_cards_response",
]
