"""Recipe embeddings and cosine-similarity ranking.

Embeddings come from the Gemini embedding API. The service is an optional
capability: when it is not configured, fails, or times out, callers get None and
treat the recipe as having no embedding. Comparing vectors of different lengths
is a configuration error and raises DimensionMismatchError.
"""

import asyncio
from typing import Optional, Protocol, Sequence

import numpy as np
from google import genai

from src.models.models import ExternalResult, GeneratedRecipe
from src.utils.config import config
from src.utils.logger import logger


class DimensionMismatchError(ValueError):
    """Raised when two embeddings of different dimensionality are compared."""


class Embedder(Protocol):
    async def embed(self, text: str) -> list[float]: ...


class GeminiEmbedder:
    """Embedder backed by the google-genai embed_content API."""

    def __init__(self, api_key: str, model: str = config.EMBEDDING_MODEL) -> None:
        if not api_key:
            raise ValueError("GEMINI_API_KEY is required")
        self.client = genai.Client(api_key=api_key)
        self.model = model

    async def embed(self, text: str) -> list[float]:
        result = await asyncio.to_thread(
            self.client.models.embed_content,
            model=self.model,
            contents=text,
        )
        if not result.embeddings or not result.embeddings[0].values:
            raise ValueError("Gemini returned no embedding values")
        return [float(v) for v in result.embeddings[0].values]


def create_embedder() -> Optional[Embedder]:
    """Return a Gemini embedder, or None when GEMINI_API_KEY is not set."""
    if not config.GEMINI_API_KEY:
        logger.warning("GEMINI_API_KEY not set, embedding features will be disabled")
        return None
    logger.info(f"Embedding service initialized with Gemini {config.EMBEDDING_MODEL}")
    return GeminiEmbedder(api_key=config.GEMINI_API_KEY)


def build_recipe_embedding_text(recipe: GeneratedRecipe) -> str:
    """Combine title, description, ingredients and tags into one embedding input."""
    parts = [
        recipe.title,
        recipe.description or "",
        f"Bahan: {', '.join(recipe.ingredients)}" if recipe.ingredients else "",
        f"Tags: {', '.join(recipe.tags)}" if recipe.tags else "",
    ]
    return ". ".join(part for part in parts if part)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two equal-length vectors.

    Returns 0.0 when either vector has zero norm.

    Raises:
        DimensionMismatchError: If the vectors differ in length.
    """
    if len(a) != len(b):
        raise DimensionMismatchError(f"Embeddings must have the same dimension, got {len(a)} and {len(b)}")

    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    norm_a = float(np.linalg.norm(va))
    norm_b = float(np.linalg.norm(vb))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    similarity = float(np.dot(va, vb) / (norm_a * norm_b))
    # Clamp floating-point drift so the result stays within [-1, 1]
    return max(-1.0, min(1.0, similarity))


def find_similar(
    target: Sequence[float],
    candidates: Sequence[tuple[str, Sequence[float]]],
    top_k: int = 5,
) -> list[tuple[str, float]]:
    """Rank candidates by cosine similarity to target.

    Args:
        target: Target embedding.
        candidates: (id, embedding) pairs.
        top_k: Number of results to return.

    Returns:
        Up to top_k (id, similarity) pairs, highest first. Ties keep candidate order.
    """
    scored = [(candidate_id, cosine_similarity(target, embedding)) for candidate_id, embedding in candidates]
    # sorted() is stable, so equal scores keep candidate order
    scored = sorted(scored, key=lambda item: item[1], reverse=True)
    return scored[:top_k]


class EmbeddingAdapter:
    """Optional embedding capability with a bounded timeout."""

    def __init__(
        self,
        embedder: Optional[Embedder] = None,
        timeout_seconds: float = config.EMBEDDING_TIMEOUT_SECONDS,
    ) -> None:
        self.embedder = embedder
        self.timeout_seconds = timeout_seconds

    async def embed_outcome(self, text: str) -> ExternalResult[list[float]]:
        """Embed text and report whether the service was unavailable, failed, or succeeded."""
        if self.embedder is None:
            return ExternalResult.not_configured("No embedder configured")
        if not text or not text.strip():
            return ExternalResult.not_configured("Nothing to embed")

        try:
            vector = await asyncio.wait_for(self.embedder.embed(text), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.error(f"Embedding call timed out after {self.timeout_seconds}s")
            return ExternalResult.failure(f"Timed out after {self.timeout_seconds}s")
        except Exception as e:
            logger.error(f"Failed to generate embedding: {e}")
            return ExternalResult.failure(str(e))

        return ExternalResult.success(vector)

    async def embed(self, text: str) -> Optional[list[float]]:
        """Embedding vector for text, or None if no embedding is available."""
        outcome = await self.embed_outcome(text)
        return outcome.value if outcome.ok else None

    async def embed_recipe(self, recipe: GeneratedRecipe) -> Optional[list[float]]:
        return await self.embed(build_recipe_embedding_text(recipe))
