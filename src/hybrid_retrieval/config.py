"""Centralized configuration for the hybrid retriever."""

import os


class Config:
    """
    Retrieval configuration with environment variable overrides.

    All configuration values are centralized here with sensible defaults.
    Values can be overridden via environment variables.
    """

    @staticmethod
    def _parse_float(name: str, default: str) -> float:
        """Parse a float environment variable."""
        raw = os.getenv(name, default)
        try:
            return float(raw)
        except ValueError as e:
            raise ValueError(f"Invalid {name} environment variable: {e}")

    @staticmethod
    def _parse_int(name: str, default: str) -> int:
        """Parse an integer environment variable."""
        raw = os.getenv(name, default)
        try:
            return int(raw)
        except ValueError as e:
            raise ValueError(f"Invalid {name} environment variable: {e}")

    # ========================================================================
    # Retriever Tuning
    # ========================================================================
    LEXICAL_WEIGHT: float = _parse_float.__func__("RETRIEVAL_LEXICAL_WEIGHT", "0.5")
    VECTOR_WEIGHT: float = _parse_float.__func__("RETRIEVAL_VECTOR_WEIGHT", "0.5")
    DIVERSITY_LAMBDA: float = _parse_float.__func__("RETRIEVAL_DIVERSITY_LAMBDA", "0.7")
    MAX_SNIPPET_LENGTH: int = _parse_int.__func__("RETRIEVAL_MAX_SNIPPET_LENGTH", "200")
    OVERFETCH_FACTOR: int = _parse_int.__func__("RETRIEVAL_OVERFETCH_FACTOR", "2")
    MIN_CANDIDATE_POOL: int = _parse_int.__func__("RETRIEVAL_MIN_CANDIDATE_POOL", "20")
    SEARCH_TIMEOUT: float = _parse_float.__func__("RETRIEVAL_SEARCH_TIMEOUT", "0")  # 0 = none

    # ========================================================================
    # Qdrant Configuration
    # ========================================================================
    QDRANT_URL: str = os.getenv("QDRANT_URL", "http://localhost:6333")
    QDRANT_API_KEY: str = os.getenv("QDRANT_API_KEY", "")
    QDRANT_TIMEOUT: int = _parse_int.__func__("QDRANT_TIMEOUT", "30")

    # Fusion weights applied inside the index provider
    INDEX_LEXICAL_WEIGHT: float = _parse_float.__func__("INDEX_LEXICAL_WEIGHT", "0.3")
    INDEX_VECTOR_WEIGHT: float = _parse_float.__func__("INDEX_VECTOR_WEIGHT", "0.7")

    # ========================================================================
    # Embedding Configuration
    # ========================================================================
    EMBEDDING_BACKEND: str = os.getenv("EMBEDDING_BACKEND", "gemini").lower()
    GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY", "")
    GEMINI_EMBEDDING_MODEL: str = os.getenv(
        "GEMINI_EMBEDDING_MODEL", "models/text-embedding-004"
    )
    VERTEX_PROJECT_ID: str = os.getenv("GOOGLE_CLOUD_PROJECT", "")
    VERTEX_LOCATION: str = os.getenv("GOOGLE_CLOUD_LOCATION", "us-central1")
    VERTEX_EMBEDDING_MODEL: str = os.getenv("VERTEX_EMBEDDING_MODEL", "text-embedding-004")
    EMBEDDING_DIMENSION: int = _parse_int.__func__("EMBEDDING_DIMENSION", "768")
    EMBEDDING_MAX_RETRIES: int = _parse_int.__func__("EMBEDDING_MAX_RETRIES", "3")
    EMBEDDING_RETRY_DELAY: float = _parse_float.__func__("EMBEDDING_RETRY_DELAY", "1.0")

    SUPPORTED_EMBEDDING_BACKENDS: tuple[str, ...] = ("gemini", "vertex")

    @classmethod
    def validate(cls) -> bool:
        """
        Validate configuration consistency.

        Checks:
        - Weight pairs are non-negative and not both zero
        - Diversity lambda lies in [0, 1]
        - Sizes and counts are > 0
        - Embedding backend is known

        Returns:
            True if validation passes

        Raises:
            ValueError: If validation fails
        """
        errors = []

        for prefix, lexical, vector in (
            ("", cls.LEXICAL_WEIGHT, cls.VECTOR_WEIGHT),
            ("INDEX_", cls.INDEX_LEXICAL_WEIGHT, cls.INDEX_VECTOR_WEIGHT),
        ):
            if lexical < 0 or vector < 0:
                errors.append(
                    f"{prefix}LEXICAL_WEIGHT and {prefix}VECTOR_WEIGHT must be >= 0, "
                    f"got {lexical} and {vector}"
                )
            elif lexical + vector == 0:
                errors.append(f"{prefix}LEXICAL_WEIGHT and {prefix}VECTOR_WEIGHT cannot both be 0")

        if not (0.0 <= cls.DIVERSITY_LAMBDA <= 1.0):
            errors.append(f"DIVERSITY_LAMBDA must be in [0, 1], got {cls.DIVERSITY_LAMBDA}")

        if cls.MAX_SNIPPET_LENGTH <= 0:
            errors.append(f"MAX_SNIPPET_LENGTH must be > 0, got {cls.MAX_SNIPPET_LENGTH}")

        if cls.OVERFETCH_FACTOR <= 0:
            errors.append(f"OVERFETCH_FACTOR must be > 0, got {cls.OVERFETCH_FACTOR}")

        if cls.MIN_CANDIDATE_POOL <= 0:
            errors.append(f"MIN_CANDIDATE_POOL must be > 0, got {cls.MIN_CANDIDATE_POOL}")

        if cls.SEARCH_TIMEOUT < 0:
            errors.append(f"SEARCH_TIMEOUT must be >= 0, got {cls.SEARCH_TIMEOUT}")

        if cls.QDRANT_TIMEOUT <= 0:
            errors.append(f"QDRANT_TIMEOUT must be > 0, got {cls.QDRANT_TIMEOUT}")

        if cls.EMBEDDING_DIMENSION <= 0:
            errors.append(f"EMBEDDING_DIMENSION must be > 0, got {cls.EMBEDDING_DIMENSION}")

        if cls.EMBEDDING_MAX_RETRIES < 0:
            errors.append(f"EMBEDDING_MAX_RETRIES must be >= 0, got {cls.EMBEDDING_MAX_RETRIES}")

        if cls.EMBEDDING_BACKEND not in cls.SUPPORTED_EMBEDDING_BACKENDS:
            errors.append(
                f"EMBEDDING_BACKEND must be one of {cls.SUPPORTED_EMBEDDING_BACKENDS}, "
                f"got {cls.EMBEDDING_BACKEND!r}"
            )

        if errors:
            raise ValueError(f"Config validation failed: {'; '.join(errors)}")

        return True
