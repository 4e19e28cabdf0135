"""
Configuration management for FlashQuiz.

This module centralizes all configuration settings:
- Secrets loaded from environment variables
- Sensible defaults for development
- Single source of truth for paths, quiz policy and logging
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


@dataclass
class ModelConfig:
    """LLM model configuration used by the card generator."""

    api_key: str = field(default_factory=lambda: os.getenv("OPENAI_API_KEY", ""))
    model_name: str = field(
        default_factory=lambda: os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    )
    base_url: Optional[str] = field(
        default_factory=lambda: os.getenv("OPENAI_BASE_URL")
    )

    temperature: float = 0.7
    max_tokens: int = 2000
    request_timeout: float = field(
        default_factory=lambda: float(os.getenv("REQUEST_TIMEOUT", "60.0"))
    )


@dataclass
class QuizConfig:
    """Quiz and generation policy."""

    # Generation
    default_card_count: int = 10
    max_card_count: int = 50

    # Completion screen tiers (score percent)
    excellent_threshold: int = 80
    good_threshold: int = 60

    # Verifying reads after the completion write
    confirm_retries: int = field(
        default_factory=lambda: int(os.getenv("CONFIRM_RETRIES", "2"))
    )


@dataclass
class PathConfig:
    """File system paths - single source of truth for all directories."""

    project_root: Path = field(default_factory=lambda: Path(__file__).parent.parent)
    data_dir: Path = field(
        default_factory=lambda: Path(
            os.getenv("FLASHQUIZ_DATA_DIR", str(Path(__file__).parent.parent / "data"))
        ).resolve()
    )

    sets_dir: Path = field(init=False)
    sessions_dir: Path = field(init=False)
    logs_dir: Path = field(init=False)

    schemas_dir: Path = field(init=False)
    card_schema: Path = field(init=False)

    def __post_init__(self):
        """Initialize computed paths."""
        self.sets_dir = self.data_dir / "sets"
        self.sessions_dir = self.data_dir / "sessions"
        self.logs_dir = self.data_dir / "logs"
        self.schemas_dir = self.project_root / "schemas"
        self.card_schema = self.schemas_dir / "flashcard.schema.json"

    def prepare_filesystem(self):
        """
        Create directories if they don't exist.

        Separated from __post_init__ to avoid side-effects on import.
        Call this explicitly from your app entrypoint.
        """
        for directory in [
            self.data_dir,
            self.sets_dir,
            self.sessions_dir,
            self.logs_dir,
        ]:
            directory.mkdir(parents=True, exist_ok=True)


@dataclass
class LoggingConfig:
    """Logging configuration."""

    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_format: str = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class Config:
    """
    Main configuration class. Singleton pattern.

    Usage:
        from src.config import config

        data_dir = config.paths.data_dir
        tiers = config.quiz.excellent_threshold, config.quiz.good_threshold

        # Prepare filesystem (call once at startup)
        config.prepare_fs()
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance.paths = PathConfig()
            cls._instance.model = ModelConfig()
            cls._instance.quiz = QuizConfig()
            cls._instance.logging = LoggingConfig()
        return cls._instance

    def prepare_fs(self):
        """Prepare filesystem (create directories). Call once at startup."""
        self.paths.prepare_filesystem()

    def validate(self) -> list[str]:
        """
        Validate configuration and return list of errors.

        Returns:
            List of error messages (empty if valid)
        """
        errors = []

        if not self.model.api_key:
            errors.append("OPENAI_API_KEY not set in environment")

        if not (0 <= self.model.temperature <= 2):
            errors.append(f"temperature must be in [0, 2], got {self.model.temperature}")

        if self.model.max_tokens <= 0:
            errors.append(f"max_tokens must be > 0, got {self.model.max_tokens}")

        if not (1 <= self.quiz.default_card_count <= self.quiz.max_card_count):
            errors.append(
                f"default_card_count must be in [1, {self.quiz.max_card_count}], "
                f"got {self.quiz.default_card_count}"
            )

        if not (0 <= self.quiz.good_threshold <= self.quiz.excellent_threshold <= 100):
            errors.append(
                "Tier thresholds must satisfy 0 <= good <= excellent <= 100, got "
                f"good={self.quiz.good_threshold}, excellent={self.quiz.excellent_threshold}"
            )

        if self.quiz.confirm_retries < 0:
            errors.append(f"confirm_retries must be >= 0, got {self.quiz.confirm_retries}")

        if not self.paths.card_schema.exists():
            errors.append(f"Card schema not found: {self.paths.card_schema}")

        if not isinstance(logging.getLevelName(self.logging.log_level.upper()), int):
            errors.append(f"Unknown LOG_LEVEL: {self.logging.log_level}")

        return errors


# Global config instance
config = Config()


def setup_logging(level: Optional[str] = None) -> None:
    """Configure root logging once from LoggingConfig."""
    logging.basicConfig(
        level=(level or config.logging.log_level).upper(),
        format=config.logging.log_format,
    )
