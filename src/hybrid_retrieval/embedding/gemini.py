# embedding/gemini.py
"""
Gemini API embedding provider with batching, retry, and rate limiting.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Dict, List

import google.generativeai as genai
from loguru import logger

from ..config import Config


@dataclass
class EmbeddingResult:
    """Result of an embedding operation."""
    vector: List[float]
    token_count: int
    model: str


class RateLimiter:
    """Simple async interval rate limiter."""

    def __init__(self, calls_per_minute: int = 60):
        self.calls_per_minute = calls_per_minute
        self.interval = 60.0 / calls_per_minute
        self.last_call = 0.0
        self.lock = asyncio.Lock()

    async def wait(self):
        """Wait until we can make the next call."""
        async with self.lock:
            now = time.monotonic()
            time_since_last = now - self.last_call
            if time_since_last < self.interval:
                sleep_time = self.interval - time_since_last
                logger.debug(f"Rate limiting: sleeping {sleep_time:.2f}s")
                await asyncio.sleep(sleep_time)
            self.last_call = time.monotonic()


class GeminiEmbedder:
    """
    Embedding provider backed by the Gemini embedding API.

    Features:
    - Batch embedding (up to 100 texts per call)
    - Automatic retry with exponential backoff
    - Rate limiting
    - Usage tracking for quota management

    A single text is embedded with the "retrieval_query" task type,
    several with "retrieval_document", for asymmetric search.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "models/text-embedding-004",
        batch_size: int = 100,
        max_retries: int = 3,
        retry_base_delay: float = 1.0,
        calls_per_minute: int = 60,
    ):
        genai.configure(api_key=api_key)
        self.model = model
        self.batch_size = batch_size
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay

        self.rate_limiter = RateLimiter(calls_per_minute)

        # Usage tracking
        self.call_count = 0
        self.token_count = 0
        self.error_count = 0

    @classmethod
    def from_config(cls) -> "GeminiEmbedder":
        return cls(
            api_key=Config.GEMINI_API_KEY,
            model=Config.GEMINI_EMBEDDING_MODEL,
            max_retries=Config.EMBEDDING_MAX_RETRIES,
            retry_base_delay=Config.EMBEDDING_RETRY_DELAY,
        )

    async def embed(self, texts: List[str]) -> List[List[float]]:
        """
        Embed texts, one vector per text in input order.

        Raises:
            ValueError: If texts is empty
        """
        if not texts:
            raise ValueError("no texts provided")

        if len(texts) == 1:
            result = await self._embed_with_retry(texts, task_type="retrieval_query")
            return [r.vector for r in result]

        vectors = []
        for i in range(0, len(texts), self.batch_size):
            batch = texts[i:i + self.batch_size]
            batch_results = await self._embed_with_retry(batch, task_type="retrieval_document")
            vectors.extend(r.vector for r in batch_results)

        return vectors

    async def _embed_with_retry(self, texts: List[str], task_type: str) -> List[EmbeddingResult]:
        """Embed a single batch with retry logic."""
        retry_count = 0
        last_error = None

        while retry_count <= self.max_retries:
            try:
                await self.rate_limiter.wait()

                content = texts[0] if len(texts) == 1 else texts
                response = await asyncio.to_thread(
                    genai.embed_content,
                    model=self.model,
                    content=content,
                    task_type=task_type,
                )

                self.call_count += 1
                self.token_count += sum(len(t.split()) for t in texts)  # Approximate

                embeddings = response["embedding"]
                # Single content yields one flat vector
                if embeddings and not isinstance(embeddings[0], list):
                    embeddings = [embeddings]

                logger.debug(f"Embedded batch of {len(texts)} texts")
                return [
                    EmbeddingResult(
                        vector=list(embedding),
                        token_count=len(text.split()),
                        model=self.model,
                    )
                    for text, embedding in zip(texts, embeddings)
                ]

            except Exception as e:
                error_str = str(e).lower()
                last_error = e
                self.error_count += 1

                if "400" in error_str or "invalid" in error_str:
                    # Bad request - don't retry
                    logger.error(f"Invalid embedding request: {e}")
                    raise

                if retry_count == self.max_retries:
                    break

                if "429" in error_str or "quota" in error_str or "rate limit" in error_str:
                    wait_time = self.retry_base_delay * 10 * (2 ** retry_count)
                    logger.warning(
                        f"Rate limit hit, waiting {wait_time:.1f}s before retry "
                        f"{retry_count + 1}/{self.max_retries}"
                    )
                else:
                    wait_time = self.retry_base_delay * (2 ** retry_count)
                    logger.warning(f"Embedding error: {e}. Retrying in {wait_time:.1f}s")

                await asyncio.sleep(wait_time)
                retry_count += 1

        logger.error("All retries exhausted for batch embedding")
        raise last_error

    def get_usage(self) -> Dict:
        """Get usage statistics."""
        return {
            "call_count": self.call_count,
            "token_count": self.token_count,
            "error_count": self.error_count,
            "model": self.model,
        }

    def reset_usage(self):
        """Reset usage counters (e.g., for daily reset)."""
        self.call_count = 0
        self.token_count = 0
        self.error_count = 0
