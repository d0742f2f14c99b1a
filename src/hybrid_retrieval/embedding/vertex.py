# embedding/vertex.py
"""
Vertex AI text-embedding provider over the REST ``:predict`` endpoint.
"""

import asyncio
import os
from typing import Any, Dict, List, Optional

import httpx
from loguru import logger

from ..config import Config
from ..errors import EmbeddingAuthError

# Vertex AI text-embedding-004 accepts at most 5 instances per request
MAX_BATCH_SIZE = 5

# Status codes that a retry cannot fix
NON_RETRYABLE_STATUS = {400, 401, 403, 429}


class VertexEmbedder:
    """
    Embedding provider backed by Vertex AI text embeddings.

    Features:
    - Batches of up to 5 texts per request
    - Input validation (blank text, estimated token limit)
    - Retry with exponential backoff, except on client errors
    """

    def __init__(
        self,
        project_id: str,
        location: str = "us-central1",
        model: str = "text-embedding-004",
        output_dimension: int = 768,
        batch_size: int = MAX_BATCH_SIZE,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        max_tokens: int = 3072,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not 0 < batch_size <= MAX_BATCH_SIZE:
            raise ValueError(f"batch_size must be in 1..{MAX_BATCH_SIZE}, got {batch_size}")

        self.project_id = project_id
        self.location = location
        self.model = model
        self.output_dimension = output_dimension
        self.batch_size = batch_size
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.max_tokens = max_tokens
        self.timeout = httpx.Timeout(timeout, connect=10.0)
        self._transport = transport

    @classmethod
    def from_config(cls) -> "VertexEmbedder":
        return cls(
            project_id=Config.VERTEX_PROJECT_ID,
            location=Config.VERTEX_LOCATION,
            model=Config.VERTEX_EMBEDDING_MODEL,
            output_dimension=Config.EMBEDDING_DIMENSION,
            max_retries=Config.EMBEDDING_MAX_RETRIES,
            retry_delay=Config.EMBEDDING_RETRY_DELAY,
        )

    @property
    def endpoint(self) -> str:
        return (
            f"https://{self.location}-aiplatform.googleapis.com/v1/projects/{self.project_id}"
            f"/locations/{self.location}/publishers/google/models/{self.model}:predict"
        )

    async def embed(self, texts: List[str]) -> List[List[float]]:
        """
        Embed texts, one vector per text in input order.

        Raises:
            ValueError: If texts is empty or a text fails validation
            EmbeddingAuthError: If no access token is available
            httpx.HTTPError: If a request keeps failing
        """
        if not texts:
            raise ValueError("no texts provided")
        self._validate_texts(texts)

        logger.info(f"Generating embeddings: text_count={len(texts)}, model={self.model}")

        vectors: List[List[float]] = []
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            for i in range(0, len(texts), self.batch_size):
                batch = texts[i:i + self.batch_size]
                logger.debug(f"Processing embedding batch {i}-{i + len(batch) - 1}")
                vectors.extend(await self._embed_batch(client, batch))

        return vectors

    def _validate_texts(self, texts: List[str]) -> None:
        for i, text in enumerate(texts):
            if not text.strip():
                raise ValueError(f"text at index {i} is empty")

            # Rough approximation: 1 token ~ 4 characters
            estimated_tokens = len(text) // 4
            if estimated_tokens > self.max_tokens:
                raise ValueError(
                    f"text at index {i} exceeds maximum token limit "
                    f"({estimated_tokens} tokens estimated, max {self.max_tokens})"
                )

    async def _embed_batch(self, client: httpx.AsyncClient, texts: List[str]) -> List[List[float]]:
        payload = {
            "instances": [{"content": t, "task_type": "RETRIEVAL_DOCUMENT"} for t in texts],
            "parameters": {"outputDimensionality": self.output_dimension},
        }

        last_error: Optional[Exception] = None
        for attempt in range(self.max_retries + 1):
            if attempt > 0:
                delay = self.retry_delay * (2 ** (attempt - 1))
                logger.warning(f"Retrying embedding request: attempt={attempt}, delay={delay:.1f}s")
                await asyncio.sleep(delay)

            try:
                data = await self._post(client, payload)
            except httpx.HTTPStatusError as e:
                last_error = e
                logger.warning(f"Embedding request failed: attempt={attempt + 1}, error={e}")
                if e.response.status_code in NON_RETRYABLE_STATUS:
                    break
                continue
            except httpx.TransportError as e:
                last_error = e
                logger.warning(f"Embedding request failed: attempt={attempt + 1}, error={e}")
                continue

            predictions = data.get("predictions", [])
            if len(predictions) != len(texts):
                raise ValueError(
                    f"response predictions count ({len(predictions)}) doesn't match "
                    f"request instances count ({len(texts)})"
                )
            return [p["embeddings"]["values"] for p in predictions]

        raise last_error

    async def _post(self, client: httpx.AsyncClient, payload: Dict[str, Any]) -> Dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {self._access_token()}",
            "Content-Type": "application/json",
        }
        response = await client.post(self.endpoint, headers=headers, json=payload)
        response.raise_for_status()
        return response.json()

    def _access_token(self) -> str:
        token = os.getenv("GOOGLE_ACCESS_TOKEN", "")
        if not token:
            raise EmbeddingAuthError(
                "no access token found. Set GOOGLE_ACCESS_TOKEN environment variable"
            )
        return token

    def get_model_info(self) -> Dict[str, Any]:
        return {
            "model": self.model,
            "project_id": self.project_id,
            "location": self.location,
            "max_batch_size": self.batch_size,
            "max_tokens_per_text": self.max_tokens,
            "output_dimensions": self.output_dimension,
            "max_retries": self.max_retries,
            "retry_delay": self.retry_delay,
        }
