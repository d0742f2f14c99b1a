"""Embedding providers for query and document vectors."""

from ..config import Config
from .gemini import EmbeddingResult, GeminiEmbedder, RateLimiter
from .vertex import VertexEmbedder


def embedder_from_config():
    """Build the embedding provider selected by Config.EMBEDDING_BACKEND."""
    if Config.EMBEDDING_BACKEND == "vertex":
        return VertexEmbedder.from_config()
    if Config.EMBEDDING_BACKEND == "gemini":
        return GeminiEmbedder.from_config()
    raise ValueError(f"Unknown embedding backend: {Config.EMBEDDING_BACKEND!r}")


__all__ = [
    "EmbeddingResult",
    "GeminiEmbedder",
    "RateLimiter",
    "VertexEmbedder",
    "embedder_from_config",
]
