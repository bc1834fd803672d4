"""Recipe generation pipeline: cache probe, generation, post-processing, persistence.

Per request, strictly sequential:
1. Fingerprint the request
2. Cache probe by fingerprint (hit -> return cached recipes)
3. Generate candidates (never fails, stub fallback)
4. Drop candidates containing the user's allergens
5. Tag dietary-compliant candidates (non-compliant: kept or dropped per DIETARY_POLICY)
6. Annotate safety notes
7. Embed candidates (missing embedding does not block persistence)
8. Persist with the fingerprint and return

Only store errors (and programming errors) propagate to the caller.
"""

import asyncio
import random
from typing import Optional

from src.models.models import (
    GeneratedRecipe,
    GenerationRequest,
    GenerationResult,
    Recipe,
    RecipeSearchQuery,
    RecipeSearchResult,
)
from src.pipeline.fingerprint import fingerprint
from src.services.embedding import EmbeddingAdapter
from src.services.generation import GenerationAdapter
from src.storage.store import RecipeStore
from src.taxonomy.allergens import validate_recipe
from src.taxonomy.dietary import check_compliance, get_required_tags
from src.taxonomy.safety import generate_safety_notes
from src.utils.config import config
from src.utils.logger import logger


class RecipePipeline:
    """Cache-or-generate orchestrator for recipe generation requests."""

    def __init__(
        self,
        store: RecipeStore,
        generation: GenerationAdapter,
        embedding: EmbeddingAdapter,
        dietary_policy: str = config.DIETARY_POLICY,
        single_flight: bool = config.SINGLE_FLIGHT,
        rng: Optional[random.Random] = None,
    ) -> None:
        if dietary_policy not in ("tag", "drop"):
            raise ValueError(f"dietary_policy must be 'tag' or 'drop', got: {dietary_policy}")

        self.store = store
        self.generation = generation
        self.embedding = embedding
        self.dietary_policy = dietary_policy
        self.single_flight = single_flight
        self.rng = rng
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        """Return recipes for a request, from cache when the fingerprint is known."""
        key = fingerprint(request)
        log_extra = {"fingerprint": key}
        logger.info(f"Generating recipes for fingerprint: {key}", extra=log_extra)

        cached = await self._probe_cache(key)
        if cached:
            return GenerationResult(recipes=cached, cached=True, fingerprint=key)

        if not self.single_flight:
            return await self._generate_fresh(request, key)

        lock = self._locks.setdefault(key, asyncio.Lock())
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                # Another request may have filled the cache while we waited
                cached = await self._probe_cache(key)
                if cached:
                    return GenerationResult(recipes=cached, cached=True, fingerprint=key)
                return await self._generate_fresh(request, key)
        finally:
            # A released lock can still have queued waiters, so count holders and waiters
            self._lock_users[key] -= 1
            if self._lock_users[key] == 0:
                del self._lock_users[key]
                del self._locks[key]

    async def _probe_cache(self, key: str) -> list[Recipe]:
        cached = await self.store.find_by_fingerprint(key)
        if cached:
            logger.info(f"Cache hit! Found {len(cached)} cached recipes", extra={"fingerprint": key})
        return cached

    async def _generate_fresh(self, request: GenerationRequest, key: str) -> GenerationResult:
        log_extra = {"fingerprint": key}
        logger.info("Cache miss, generating new recipes...", extra=log_extra)

        candidates = await self.generation.generate(request)
        candidates = self.filter_allergens(candidates, request.allergies)
        if not candidates:
            logger.warning("All candidates removed by allergen filter", extra=log_extra)

        candidates = self.apply_dietary_preferences(candidates, request.preferences)
        candidates = [self.annotate_safety(c) for c in candidates]
        candidates = await self.embed_candidates(candidates)

        saved = await self.store.create_many(candidates, input_fingerprint=key, is_generated=True)
        logger.info(f"Persisted {len(saved)} generated recipes", extra=log_extra)
        return GenerationResult(recipes=saved, cached=False, fingerprint=key)

    # ------------------------------------------------------- post-processing

    def filter_allergens(self, candidates: list[GeneratedRecipe], allergies: list[str]) -> list[GeneratedRecipe]:
        """Drop candidates that contain any of the user's allergens."""
        if not allergies:
            return candidates

        safe: list[GeneratedRecipe] = []
        for candidate in candidates:
            validation = validate_recipe(
                candidate.title, candidate.ingredients, allergies, description=candidate.description
            )
            if validation.is_safe:
                safe.append(candidate)
            else:
                logger.info(f"Dropping '{candidate.title}': {'; '.join(validation.warnings)}")
        return safe

    def apply_dietary_preferences(
        self, candidates: list[GeneratedRecipe], preferences: list[str]
    ) -> list[GeneratedRecipe]:
        """Merge required tags into compliant candidates; handle the rest per policy."""
        if not preferences:
            return candidates

        required_tags = get_required_tags(preferences)
        result: list[GeneratedRecipe] = []
        for candidate in candidates:
            compliance = check_compliance(candidate.ingredients, preferences)
            if compliance.compliant:
                tags = list(dict.fromkeys([*candidate.tags, *required_tags]))
                result.append(candidate.model_copy(update={"tags": tags}))
                continue

            logger.warning(f"Recipe '{candidate.title}' has dietary violations: {', '.join(compliance.violations)}")
            if self.dietary_policy == "tag":
                result.append(candidate)
        return result

    def annotate_safety(self, candidate: GeneratedRecipe) -> GeneratedRecipe:
        notes = generate_safety_notes(candidate.ingredients, candidate.steps, candidate.safety_notes, rng=self.rng)
        return candidate.model_copy(update={"safety_notes": notes})

    async def embed_candidates(self, candidates: list[GeneratedRecipe]) -> list[GeneratedRecipe]:
        embeddings = await asyncio.gather(*(self.embedding.embed_recipe(c) for c in candidates))
        return [c.model_copy(update={"embedding": e}) for c, e in zip(candidates, embeddings)]

    # ---------------------------------------------------------- record access

    async def find_all(self) -> list[Recipe]:
        return await self.store.find_all()

    async def find_by_id(self, recipe_id: str) -> Optional[Recipe]:
        return await self.store.find_by_id(recipe_id)

    async def search(self, query: RecipeSearchQuery) -> RecipeSearchResult:
        return await self.store.search(query)

    async def rate_recipe(self, recipe_id: str, rating: float) -> Optional[Recipe]:
        """Add a 1-5 rating to a recipe. Returns None if the recipe does not exist.

        Raises:
            ValueError: If rating is outside 1..5.
        """
        if not (1 <= rating <= 5):
            raise ValueError(f"Rating must be between 1 and 5, got: {rating}")
        recipe = await self.store.update_rating(recipe_id, rating)
        if recipe is None:
            logger.info(f"Cannot rate missing recipe {recipe_id}", extra={"recipe_id": recipe_id})
        return recipe

    async def set_saved(self, recipe_id: str, saved: bool = True) -> Optional[Recipe]:
        recipe = await self.store.set_saved(recipe_id, saved)
        if recipe is None:
            logger.info(f"Cannot bookmark missing recipe {recipe_id}", extra={"recipe_id": recipe_id})
        return recipe

    async def find_saved(self) -> list[Recipe]:
        return await self.store.find_saved()
