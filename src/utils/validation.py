"""
Schema validation utilities for FlashQuiz.

Provides JSON Schema validation with clear error messages for generated and
stored flashcards. Cards that fail validation are reported as MalformedCard
and excluded by the card store rather than breaking a load.
"""

import json
from pathlib import Path
from typing import Any, Optional

from jsonschema import Draft7Validator, FormatChecker, ValidationError

try:
    from ..config import config
    from .errors import MalformedCard
except ImportError:
    from src.config import config
    from src.utils.errors import MalformedCard


class ValidationResult:
    """
    Result of a validation attempt.

    Attributes:
        valid: Whether data passed validation
        errors: List of error messages
        data: The validated data
    """

    def __init__(self, valid: bool, errors: list[str], data: Any = None):
        self.valid = valid
        self.errors = errors
        self.data = data

    def __bool__(self) -> bool:
        """Allow using result in boolean context."""
        return self.valid

    def __str__(self) -> str:
        """Human-readable representation."""
        if self.valid:
            return "✓ Validation passed"
        return f"✗ Validation failed with {len(self.errors)} error(s):\n" + "\n".join(
            f"  - {error}" for error in self.errors
        )


class SchemaValidator:
    """
    JSON Schema validator.

    Usage:
        validator = SchemaValidator("path/to/schema.json")
        result = validator.validate(data)
        if not result:
            print(result.errors)
    """

    def __init__(self, schema_path: Path | str):
        """
        Initialize validator with a schema file.

        Args:
            schema_path: Path to JSON Schema file
        """
        self.schema_path = Path(schema_path)
        with open(self.schema_path, "r", encoding="utf-8") as f:
            self.schema = json.load(f)
        self.validator = Draft7Validator(self.schema, format_checker=FormatChecker())

    def validate(self, data: Any) -> ValidationResult:
        """
        Validate data against schema.

        Args:
            data: Data to validate

        Returns:
            ValidationResult with validation status and any errors
        """
        errors = [self._format_error(error) for error in self.validator.iter_errors(data)]
        return ValidationResult(valid=not errors, errors=errors, data=data)

    def _format_error(self, error: ValidationError) -> str:
        """
        Convert ValidationError to human-readable message with details.

        Args:
            error: jsonschema ValidationError

        Returns:
            Formatted error message with validator and schema path
        """
        path = " -> ".join(str(p) for p in error.path) if error.path else "root"
        validator_name = getattr(error, "validator", "unknown")
        schema_path = "/".join(str(p) for p in error.schema_path)
        return (
            f"At '{path}': {error.message} "
            f"[validator={validator_name}, schema_path=/{schema_path}]"
        )


class CardValidator(SchemaValidator):
    """Validator for a single flashcard dict."""

    def __init__(self, schema_path: Optional[Path | str] = None):
        super().__init__(schema_path or config.paths.card_schema)

    def validate(self, data: Any, require_id: bool = False) -> ValidationResult:
        """
        Validate a card.

        Args:
            data: Card dict
            require_id: Stored cards must carry an id; freshly generated ones may not

        Returns:
            ValidationResult
        """
        result = super().validate(data)
        if require_id and isinstance(data, dict) and not data.get("id"):
            result.errors.append("At 'root': 'id' is a required property for stored cards")
            result.valid = False
        return result


# Lazily created; the schema file is read once per process
_card_validator: Optional[CardValidator] = None


def get_card_validator() -> CardValidator:
    """Get or create the global card validator."""
    global _card_validator
    if _card_validator is None:
        _card_validator = CardValidator()
    return _card_validator


def validate_card(data: Any, require_id: bool = False) -> dict:
    """
    Validate a card dict and return it.

    Raises:
        MalformedCard: If the card does not match the schema
    """
    result = get_card_validator().validate(data, require_id=require_id)
    if not result:
        card_id = data.get("id") if isinstance(data, dict) else None
        raise MalformedCard(result.errors, card_id=card_id)
    return data
