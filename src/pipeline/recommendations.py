"""Similar-recipe and alternative-recipe discovery over persisted recipes."""

from typing import Sequence

from src.models.models import AlternativeRecipe, Recipe, SimilarRecipe
from src.services.embedding import find_similar
from src.storage.store import RecipeStore
from src.taxonomy.dietary import check_compliance
from src.utils.config import config
from src.utils.logger import logger


def _fuzzy_match(term: str, candidates: Sequence[str]) -> bool:
    return any(term in candidate or candidate in term for candidate in candidates)


def ingredient_match_score(query_ingredients: Sequence[str], recipe_ingredients: Sequence[str]) -> int:
    """Percentage of query ingredients found in the recipe (bidirectional substring).

    Returns round(matches / len(query_ingredients) * 100), 0 for an empty query.
    """
    terms = [i.lower().strip() for i in query_ingredients if i.strip()]
    if not terms:
        return 0

    recipe_terms = [i.lower() for i in recipe_ingredients]
    matches = sum(1 for term in terms if _fuzzy_match(term, recipe_terms))
    return round(matches / len(terms) * 100)


class RecommendationEngine:
    """Reads persisted recipes and embeddings to answer discovery queries."""

    def __init__(
        self,
        store: RecipeStore,
        apply_preferences: bool = config.ALTERNATIVES_APPLY_PREFERENCES,
    ) -> None:
        self.store = store
        self.apply_preferences = apply_preferences

    async def find_similar_recipes(self, recipe_id: str, limit: int = config.SIMILAR_LIMIT) -> list[SimilarRecipe]:
        """Rank embedded recipes by cosine similarity to the given recipe.

        Returns an empty list when the recipe does not exist or has no embedding.

        Raises:
            DimensionMismatchError: If stored embeddings differ in dimensionality.
        """
        target = await self.store.find_by_id(recipe_id)
        if target is None:
            logger.info(f"Recipe {recipe_id} not found", extra={"recipe_id": recipe_id})
            return []
        if not target.embedding:
            logger.info(f"Recipe {recipe_id} has no embedding", extra={"recipe_id": recipe_id})
            return []

        candidates = [r for r in await self.store.find_all_with_embedding() if r.id != recipe_id]
        by_id = {r.id: r for r in candidates}

        ranked = find_similar(target.embedding, [(r.id, r.embedding) for r in candidates], top_k=limit)
        return [SimilarRecipe(recipe=by_id[rid], similarity=score) for rid, score in ranked]

    async def find_alternatives(
        self,
        ingredients: Sequence[str],
        allergies: Sequence[str] = (),
        preferences: Sequence[str] = (),
        limit: int = config.ALTERNATIVES_LIMIT,
    ) -> list[AlternativeRecipe]:
        """Rank embedded recipes by how many of the given ingredients they use.

        Recipes whose ingredient text contains an allergy term are discarded, as are
        recipes that match none of the ingredients. Dietary preferences only filter
        results when the engine was built with apply_preferences=True.
        """
        recipes = await self.store.find_all_with_embedding()
        allergy_terms = [a.lower().strip() for a in allergies if a.strip()]

        scored: list[AlternativeRecipe] = []
        for recipe in recipes:
            ingredient_text = " ".join(recipe.ingredients).lower()
            if any(term in ingredient_text for term in allergy_terms):
                continue
            if self.apply_preferences and preferences:
                if not check_compliance(recipe.ingredients, list(preferences)).compliant:
                    continue

            score = ingredient_match_score(ingredients, recipe.ingredients)
            if score > 0:
                scored.append(AlternativeRecipe(recipe=recipe, match_score=score))

        # Stable sort keeps retrieval order among equal scores
        scored.sort(key=lambda alt: alt.match_score, reverse=True)
        return scored[:limit]
