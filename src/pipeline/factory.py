"""Pipeline initialization factory.

Wires the store, generation adapter, embedding adapter, pipeline and
recommendation engine from configuration.
"""

from typing import Optional

from src.pipeline.pipeline import RecipePipeline
from src.pipeline.recommendations import RecommendationEngine
from src.services.embedding import EmbeddingAdapter, create_embedder
from src.services.generation import GenerationAdapter, create_text_generator
from src.storage.store import RecipeStore
from src.utils.config import config
from src.utils.logger import logger


async def _configure_store(database_url: Optional[str]) -> RecipeStore:
    logger.info("Step 1/4: Configuring recipe store...")
    url = database_url or config.DATABASE_URL

    if url.startswith("sqlite"):
        logger.info(f"Using SQLite database: {url}")
    else:
        logger.info(f"Using database: {url.split('@')[1] if '@' in url else '...'}")

    store = RecipeStore(database_url=url)
    await store.create_tables()
    logger.info("✓ Recipe store configured")
    return store


def _configure_generation() -> GenerationAdapter:
    logger.info("Step 2/4: Configuring recipe generation...")
    adapter = GenerationAdapter(text_generator=create_text_generator())
    mode = "Gemini" if adapter.text_generator else "stub"
    logger.info(f"✓ Recipe generation configured ({mode} mode)")
    return adapter


def _configure_embedding() -> EmbeddingAdapter:
    logger.info("Step 3/4: Configuring embeddings...")
    adapter = EmbeddingAdapter(embedder=create_embedder())
    logger.info(f"✓ Embeddings {'enabled' if adapter.embedder else 'disabled'}")
    return adapter


async def initialize_recipe_pipeline(
    database_url: Optional[str] = None,
) -> tuple[RecipePipeline, RecommendationEngine]:
    """Initialize the recipe pipeline and recommendation engine.

    Args:
        database_url: Override for DATABASE_URL.

    Returns:
        Tuple of (RecipePipeline, RecommendationEngine) sharing one store.
    """
    logger.info("=== Initializing Recipe Pipeline ===")

    store = await _configure_store(database_url)
    generation = _configure_generation()
    embedding = _configure_embedding()

    logger.info("Step 4/4: Assembling pipeline...")
    pipeline = RecipePipeline(store=store, generation=generation, embedding=embedding)
    recommendations = RecommendationEngine(store=store)
    logger.info(
        f"✓ Pipeline ready (dietary_policy={config.DIETARY_POLICY}, single_flight={config.SINGLE_FLIGHT})"
    )

    logger.info("=== Pipeline initialization complete ===")
    return pipeline, recommendations
