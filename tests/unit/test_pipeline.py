"""Unit tests for the recipe generation pipeline.

Covers the cache-or-generate flow, allergen exclusion, dietary tagging policies,
safety annotation, optional embeddings, single-flight and record access.
"""

import asyncio
import random
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.models.models import GenerationRequest, RecipeSearchQuery
from src.pipeline.fingerprint import fingerprint
from src.pipeline.pipeline import RecipePipeline
from src.services.embedding import EmbeddingAdapter
from src.services.generation import GenerationAdapter
from tests.unit.fakes import FakeEmbedder, FakeTextGenerator, make_recipe, raw_recipe, recipe_json


def build_pipeline(store, generator=None, embedder=None, **kwargs) -> RecipePipeline:
    return RecipePipeline(
        store=store,
        generation=GenerationAdapter(text_generator=generator),
        embedding=EmbeddingAdapter(embedder=embedder),
        rng=kwargs.pop("rng", random.Random(0)),
        **kwargs,
    )


class TestCacheFlow:
    """Test cache miss followed by cache hit."""

    @pytest.mark.asyncio
    async def test_miss_then_hit_with_stub_generation(self, store):
        pipeline = build_pipeline(store)
        request = GenerationRequest(ingredients=["ayam", "bawang putih"])

        first = await pipeline.generate(request)
        second = await pipeline.generate(request)

        assert first.cached is False
        assert len(first.recipes) == 3
        assert all(r.input_fingerprint == fingerprint(request) for r in first.recipes)
        assert all(r.is_generated for r in first.recipes)

        assert second.cached is True
        assert second.fingerprint == first.fingerprint
        assert [r.id for r in second.recipes] == [r.id for r in first.recipes]
        assert len(await store.find_all()) == 3

    @pytest.mark.asyncio
    async def test_equivalent_request_hits_cache(self, store):
        generator = FakeTextGenerator(response=recipe_json(raw_recipe("Ayam Goreng", ["ayam"])))
        pipeline = build_pipeline(store, generator)

        await pipeline.generate(GenerationRequest(ingredients=["Ayam", "bawang putih"]))
        result = await pipeline.generate(GenerationRequest(ingredients=["bawang putih", "ayam"], max_time=60))

        assert result.cached is True
        assert generator.calls == 1

    @pytest.mark.asyncio
    async def test_different_request_misses_cache(self, store):
        pipeline = build_pipeline(store)

        await pipeline.generate(GenerationRequest(ingredients=["ayam"]))
        result = await pipeline.generate(GenerationRequest(ingredients=["tahu"]))

        assert result.cached is False
        assert len(await store.find_all()) == 6


class TestAllergenExclusion:
    """Test that candidates containing the user's allergens are never persisted."""

    @pytest.mark.asyncio
    async def test_allergen_recipe_dropped(self, store):
        generator = FakeTextGenerator(
            response=recipe_json(
                raw_recipe("Udang Balado", ["300g udang", "cabai"]),
                raw_recipe("Tumis Kangkung", ["kangkung", "bawang merah"]),
            )
        )
        pipeline = build_pipeline(store, generator)

        result = await pipeline.generate(GenerationRequest(ingredients=["kangkung"], allergies=["udang"]))

        assert [r.title for r in result.recipes] == ["Tumis Kangkung"]
        assert len(await store.find_all()) == 1

    @pytest.mark.asyncio
    async def test_alias_allergen_dropped(self, store):
        generator = FakeTextGenerator(response=recipe_json(raw_recipe("Shrimp Fried Rice", ["nasi", "shrimp"])))
        pipeline = build_pipeline(store, generator)

        result = await pipeline.generate(GenerationRequest(ingredients=["nasi"], allergies=["udang"]))

        assert result.recipes == []
        assert result.cached is False

    @pytest.mark.asyncio
    async def test_stub_recipes_are_filtered_too(self, store):
        pipeline = build_pipeline(store)

        result = await pipeline.generate(GenerationRequest(ingredients=["udang"], allergies=["udang"]))

        assert result.recipes == []
        assert await store.find_all() == []


class TestDietaryPolicy:
    """Test dietary tagging under both policies."""

    @pytest.fixture
    def generator(self):
        return FakeTextGenerator(
            response=recipe_json(
                raw_recipe("Tumis Tahu", ["tahu", "bawang putih"], tags=["quick"]),
                raw_recipe("Ayam Goreng", ["ayam", "bawang putih"]),
            )
        )

    @pytest.mark.asyncio
    async def test_tag_policy_keeps_non_compliant_untagged(self, store, generator):
        pipeline = build_pipeline(store, generator, dietary_policy="tag")

        result = await pipeline.generate(GenerationRequest(ingredients=["tahu"], preferences=["vegetarian"]))

        by_title = {r.title: r for r in result.recipes}
        assert by_title["Tumis Tahu"].tags == ["quick", "vegetarian"]
        assert "vegetarian" not in by_title["Ayam Goreng"].tags

    @pytest.mark.asyncio
    async def test_drop_policy_discards_non_compliant(self, store, generator):
        pipeline = build_pipeline(store, generator, dietary_policy="drop")

        result = await pipeline.generate(GenerationRequest(ingredients=["tahu"], preferences=["vegetarian"]))

        assert [r.title for r in result.recipes] == ["Tumis Tahu"]

    @pytest.mark.asyncio
    async def test_tags_are_not_duplicated(self, store):
        generator = FakeTextGenerator(response=recipe_json(raw_recipe("Salad", ["selada"], tags=["vegan"])))
        pipeline = build_pipeline(store, generator)

        result = await pipeline.generate(GenerationRequest(ingredients=["selada"], preferences=["vegan"]))

        assert result.recipes[0].tags == ["vegan", "plant-based"]

    def test_invalid_policy_rejected(self):
        with pytest.raises(ValueError):
            build_pipeline(MagicMock(), dietary_policy="ignore")


class TestPostProcessing:
    """Test safety notes and embeddings on generated recipes."""

    @pytest.mark.asyncio
    async def test_safety_notes_added(self, store):
        generator = FakeTextGenerator(
            response=recipe_json(raw_recipe("Ayam Goreng", ["ayam"], steps=["Goreng ayam hingga matang"]))
        )
        pipeline = build_pipeline(store, generator)

        result = await pipeline.generate(GenerationRequest(ingredients=["ayam"]))

        notes = result.recipes[0].safety_notes
        assert any("74°C" in n for n in notes)
        assert any("minyak panas" in n for n in notes)

    @pytest.mark.asyncio
    async def test_model_safety_notes_preserved(self, store):
        generator = FakeTextGenerator(
            response=recipe_json(raw_recipe("Tahu Isi", ["tahu"], safetyNotes=["Catatan dari model"]))
        )
        pipeline = build_pipeline(store, generator)

        result = await pipeline.generate(GenerationRequest(ingredients=["tahu"]))

        assert result.recipes[0].safety_notes[0] == "Catatan dari model"

    @pytest.mark.asyncio
    async def test_embeddings_persisted(self, store):
        embedder = FakeEmbedder(vector=[0.3, 0.4])
        pipeline = build_pipeline(store, embedder=embedder)

        result = await pipeline.generate(GenerationRequest(ingredients=["ayam"]))

        assert all(r.embedding == [0.3, 0.4] for r in result.recipes)
        assert len(embedder.texts) == 3

    @pytest.mark.asyncio
    async def test_embedding_failure_does_not_block_persistence(self, store):
        pipeline = build_pipeline(store, embedder=FakeEmbedder(error=RuntimeError("embedding down")))

        result = await pipeline.generate(GenerationRequest(ingredients=["ayam"]))

        assert len(result.recipes) == 3
        assert all(r.embedding is None for r in result.recipes)
        assert await store.find_all_with_embedding() == []


class TestErrorPropagation:
    """Test that store errors reach the caller."""

    @pytest.mark.asyncio
    async def test_store_failure_propagates(self, store):
        pipeline = build_pipeline(store)
        pipeline.store.create_many = AsyncMock(side_effect=RuntimeError("database locked"))

        with pytest.raises(RuntimeError, match="database locked"):
            await pipeline.generate(GenerationRequest(ingredients=["ayam"]))


class TestSingleFlight:
    """Test concurrent requests for the same fingerprint."""

    @pytest.mark.asyncio
    async def test_concurrent_misses_generate_once(self, store):
        generator = FakeTextGenerator(response=recipe_json(raw_recipe("Soto Ayam", ["ayam"])), delay=0.05)
        pipeline = build_pipeline(store, generator, single_flight=True)
        request = GenerationRequest(ingredients=["ayam"])

        results = await asyncio.gather(pipeline.generate(request), pipeline.generate(request))

        assert generator.calls == 1
        assert sorted(r.cached for r in results) == [False, True]
        assert len(await store.find_all()) == 1
        assert pipeline._locks == {}

    @pytest.mark.asyncio
    async def test_late_caller_waits_when_nothing_was_persisted(self, store):
        """Every candidate is filtered out, so each waiter misses the cache and generates in turn."""
        generator = FakeTextGenerator(response=recipe_json(raw_recipe("Udang Balado", ["udang"])), delay=0.05)
        pipeline = build_pipeline(store, generator, single_flight=True)
        request = GenerationRequest(ingredients=["cabai"], allergies=["udang"])

        async def late_call():
            await asyncio.sleep(0.06)
            return await pipeline.generate(request)

        results = await asyncio.gather(pipeline.generate(request), pipeline.generate(request), late_call())

        assert generator.peak_in_flight == 1
        assert generator.calls == 3
        assert all(r.recipes == [] for r in results)
        assert pipeline._locks == {}
        assert pipeline._lock_users == {}

    @pytest.mark.asyncio
    async def test_without_single_flight_both_generate(self, store):
        generator = FakeTextGenerator(response=recipe_json(raw_recipe("Soto Ayam", ["ayam"])), delay=0.05)
        pipeline = build_pipeline(store, generator, single_flight=False)
        request = GenerationRequest(ingredients=["ayam"])

        await asyncio.gather(pipeline.generate(request), pipeline.generate(request))

        assert generator.calls == 2


class TestRecordAccess:
    """Test listing, lookup, search and rating through the pipeline."""

    @pytest.mark.asyncio
    async def test_find_all_and_by_id(self, store):
        pipeline = build_pipeline(store)
        [saved] = await store.create_many([make_recipe("Tumis Tahu")])

        assert [r.id for r in await pipeline.find_all()] == [saved.id]
        assert (await pipeline.find_by_id(saved.id)).title == "Tumis Tahu"
        assert await pipeline.find_by_id("missing") is None

    @pytest.mark.asyncio
    async def test_search(self, store):
        pipeline = build_pipeline(store)
        await store.create_many([make_recipe("Tumis Tahu"), make_recipe("Sup Ayam")])

        result = await pipeline.search(RecipeSearchQuery(q="tahu"))

        assert result.total == 1

    @pytest.mark.asyncio
    async def test_rate_recipe(self, store):
        pipeline = build_pipeline(store)
        [saved] = await store.create_many([make_recipe()])

        rated = await pipeline.rate_recipe(saved.id, 4)

        assert rated.rating == 4.0
        assert rated.rating_count == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("rating", [0, 5.5, -1])
    async def test_rate_recipe_out_of_range(self, store, rating):
        pipeline = build_pipeline(store)

        with pytest.raises(ValueError):
            await pipeline.rate_recipe("any", rating)

    @pytest.mark.asyncio
    async def test_rate_missing_recipe(self, store):
        pipeline = build_pipeline(store)

        assert await pipeline.rate_recipe("missing", 3) is None

    @pytest.mark.asyncio
    async def test_bookmark_recipe(self, store):
        pipeline = build_pipeline(store)
        [saved, _] = await store.create_many([make_recipe("Tumis Tahu"), make_recipe("Sup Ayam")])

        bookmarked = await pipeline.set_saved(saved.id)

        assert bookmarked.is_saved is True
        assert [r.id for r in await pipeline.find_saved()] == [saved.id]

    @pytest.mark.asyncio
    async def test_bookmark_missing_recipe(self, store):
        pipeline = build_pipeline(store)

        assert await pipeline.set_saved("missing") is None
