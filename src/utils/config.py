"""Configuration management for the Recipe Pipeline.

Loads environment variables from system environment and .env file.
Priority order: system environment > .env file > hardcoded defaults
"""

import os

from dotenv import load_dotenv


# Load .env file (if exists, silently continues if missing)
load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


class Config:
    """Application configuration loaded from environment variables."""

    def __init__(self) -> None:
        """Initialize configuration from environment variables."""
        # Gemini API Key: optional. Without it generation uses stub recipes
        # and embeddings are skipped.
        self.GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY", "")
        # Text generation model used for recipe generation
        self.GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-1.5-flash")
        # Embedding model used for recipe similarity
        self.EMBEDDING_MODEL: str = os.getenv("EMBEDDING_MODEL", "text-embedding-004")
        # Database URL: SQLAlchemy connection string. Default: local SQLite file
        self.DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///recipes.db")
        # Number of recipes requested from the model per generation call. Default: 3
        self.RECIPES_PER_REQUEST: int = int(os.getenv("RECIPES_PER_REQUEST", "3"))

        # LLM Model Parameters
        # Temperature: Controls randomness (0.0 = deterministic, 1.0 = max randomness)
        self.TEMPERATURE: float = float(os.getenv("TEMPERATURE", "0.7"))
        # Max Output Tokens: three full recipes with steps fit comfortably in 4096
        self.MAX_OUTPUT_TOKENS: int = int(os.getenv("MAX_OUTPUT_TOKENS", "4096"))

        # External call timeouts (seconds). Exceeding them counts as a failure:
        # generation falls back to stub recipes, embedding falls back to none.
        self.GENERATION_TIMEOUT_SECONDS: float = float(os.getenv("GENERATION_TIMEOUT_SECONDS", "30"))
        self.EMBEDDING_TIMEOUT_SECONDS: float = float(os.getenv("EMBEDDING_TIMEOUT_SECONDS", "10"))

        # Dietary Policy: "tag" or "drop"
        # "tag": non-compliant candidates are kept, only compliant ones receive the preference tags
        # "drop": non-compliant candidates are discarded before persistence
        self.DIETARY_POLICY: str = os.getenv("DIETARY_POLICY", "tag").lower()
        # SINGLE_FLIGHT: serialize concurrent cache misses for the same fingerprint
        # (at-most-once generation per fingerprint within this process)
        self.SINGLE_FLIGHT: bool = _env_bool("SINGLE_FLIGHT", "false")
        # ALTERNATIVES_APPLY_PREFERENCES: filter alternatives by dietary compliance
        self.ALTERNATIVES_APPLY_PREFERENCES: bool = _env_bool("ALTERNATIVES_APPLY_PREFERENCES", "false")

        # Default result sizes for recommendation queries
        self.SIMILAR_LIMIT: int = int(os.getenv("SIMILAR_LIMIT", "5"))
        self.ALTERNATIVES_LIMIT: int = int(os.getenv("ALTERNATIVES_LIMIT", "5"))

    def validate(self) -> None:
        """Validate configuration values.

        Raises:
            ValueError: If any value is out of range or not a supported option.
        """
        if self.DIETARY_POLICY not in ("tag", "drop"):
            raise ValueError(
                f"DIETARY_POLICY must be 'tag' or 'drop', got: {self.DIETARY_POLICY}"
            )
        if not (0.0 <= self.TEMPERATURE <= 1.0):
            raise ValueError(
                f"TEMPERATURE must be between 0.0 and 1.0, got: {self.TEMPERATURE}"
            )
        if self.MAX_OUTPUT_TOKENS < 512:
            raise ValueError(
                f"MAX_OUTPUT_TOKENS must be at least 512, got: {self.MAX_OUTPUT_TOKENS}"
            )
        if self.RECIPES_PER_REQUEST < 1:
            raise ValueError(
                f"RECIPES_PER_REQUEST must be at least 1, got: {self.RECIPES_PER_REQUEST}"
            )
        if self.GENERATION_TIMEOUT_SECONDS <= 0:
            raise ValueError(
                f"GENERATION_TIMEOUT_SECONDS must be positive, got: {self.GENERATION_TIMEOUT_SECONDS}"
            )
        if self.EMBEDDING_TIMEOUT_SECONDS <= 0:
            raise ValueError(
                f"EMBEDDING_TIMEOUT_SECONDS must be positive, got: {self.EMBEDDING_TIMEOUT_SECONDS}"
            )
        if self.SIMILAR_LIMIT < 1 or self.ALTERNATIVES_LIMIT < 1:
            raise ValueError(
                f"SIMILAR_LIMIT and ALTERNATIVES_LIMIT must be at least 1, "
                f"got: {self.SIMILAR_LIMIT}, {self.ALTERNATIVES_LIMIT}"
            )


# Create module-level config instance and validate immediately
config = Config()
config.validate()
