"""Unit tests for embeddings and similarity ranking."""

from unittest.mock import MagicMock, patch

import pytest

from src.models.models import ExternalStatus
from src.services.embedding import (
    DimensionMismatchError,
    EmbeddingAdapter,
    GeminiEmbedder,
    build_recipe_embedding_text,
    cosine_similarity,
    create_embedder,
    find_similar,
)
from src.utils.config import config
from tests.unit.fakes import FakeEmbedder, make_recipe


class TestCosineSimilarity:
    """Test vector similarity math."""

    def test_identical_vectors(self):
        assert cosine_similarity([1.0, 2.0, 3.0], [1.0, 2.0, 3.0]) == pytest.approx(1.0)

    def test_orthogonal_vectors(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)

    def test_opposite_vectors(self):
        assert cosine_similarity([1.0, 1.0], [-1.0, -1.0]) == pytest.approx(-1.0)

    def test_scale_invariant(self):
        assert cosine_similarity([1.0, 2.0], [2.0, 4.0]) == pytest.approx(1.0)

    def test_zero_vector_returns_zero(self):
        assert cosine_similarity([0.0, 0.0], [1.0, 2.0]) == 0.0

    def test_dimension_mismatch_raises(self):
        with pytest.raises(DimensionMismatchError):
            cosine_similarity([1.0, 2.0], [1.0, 2.0, 3.0])

    def test_dimension_mismatch_is_value_error(self):
        assert issubclass(DimensionMismatchError, ValueError)


class TestFindSimilar:
    """Test ranking of candidate embeddings."""

    def test_ranks_by_similarity(self):
        candidates = [("far", [0.0, 1.0]), ("near", [1.0, 0.1]), ("exact", [1.0, 0.0])]

        ranked = find_similar([1.0, 0.0], candidates)

        assert [rid for rid, _ in ranked] == ["exact", "near", "far"]

    def test_top_k_limits_results(self):
        candidates = [(str(i), [1.0, float(i)]) for i in range(10)]

        assert len(find_similar([1.0, 0.0], candidates, top_k=3)) == 3

    def test_ties_keep_candidate_order(self):
        candidates = [("a", [1.0, 0.0]), ("b", [2.0, 0.0]), ("c", [3.0, 0.0])]

        ranked = find_similar([1.0, 0.0], candidates)

        assert [rid for rid, _ in ranked] == ["a", "b", "c"]

    def test_empty_candidates(self):
        assert find_similar([1.0], []) == []


class TestEmbeddingText:
    """Test the text used as embedding input."""

    def test_combines_title_description_ingredients_and_tags(self):
        recipe = make_recipe("Tumis Tahu", ["tahu", "kecap"], description="Cepat", tags=["quick"])

        text = build_recipe_embedding_text(recipe)

        assert text == "Tumis Tahu. Cepat. Bahan: tahu, kecap. Tags: quick"

    def test_skips_empty_parts(self):
        recipe = make_recipe("Air Putih", [], description="", tags=[])

        assert build_recipe_embedding_text(recipe) == "Air Putih"


class TestEmbeddingAdapter:
    """Test optional embedding with failure reporting."""

    @pytest.mark.asyncio
    async def test_not_configured_returns_none(self):
        adapter = EmbeddingAdapter(embedder=None)

        outcome = await adapter.embed_outcome("tahu")

        assert outcome.status == ExternalStatus.NOT_CONFIGURED
        assert await adapter.embed("tahu") is None

    @pytest.mark.asyncio
    async def test_blank_text_is_not_embedded(self):
        embedder = FakeEmbedder()
        adapter = EmbeddingAdapter(embedder=embedder)

        assert await adapter.embed("   ") is None
        assert embedder.texts == []

    @pytest.mark.asyncio
    async def test_success(self):
        adapter = EmbeddingAdapter(embedder=FakeEmbedder(vector=[0.5, 0.5]))

        outcome = await adapter.embed_outcome("tahu")

        assert outcome.ok
        assert outcome.value == [0.5, 0.5]

    @pytest.mark.asyncio
    async def test_failure_returns_none(self):
        adapter = EmbeddingAdapter(embedder=FakeEmbedder(error=RuntimeError("boom")))

        outcome = await adapter.embed_outcome("tahu")

        assert outcome.status == ExternalStatus.FAILURE
        assert await adapter.embed("tahu") is None

    @pytest.mark.asyncio
    async def test_timeout_returns_none(self):
        adapter = EmbeddingAdapter(embedder=FakeEmbedder(delay=1.0), timeout_seconds=0.01)

        outcome = await adapter.embed_outcome("tahu")

        assert outcome.status == ExternalStatus.FAILURE
        assert "Timed out" in outcome.error

    @pytest.mark.asyncio
    async def test_embed_recipe_uses_recipe_text(self):
        embedder = FakeEmbedder()
        adapter = EmbeddingAdapter(embedder=embedder)

        await adapter.embed_recipe(make_recipe("Tumis Tahu"))

        assert embedder.texts[0].startswith("Tumis Tahu")


class TestGeminiEmbedder:
    """Test the google-genai backed embedder with a patched client."""

    def test_requires_api_key(self):
        with pytest.raises(ValueError):
            GeminiEmbedder(api_key="")

    @pytest.mark.asyncio
    @patch("src.services.embedding.genai.Client")
    async def test_embed_returns_values(self, mock_client_cls):
        mock_client = MagicMock()
        mock_client.models.embed_content.return_value = MagicMock(embeddings=[MagicMock(values=[0.1, 0.2])])
        mock_client_cls.return_value = mock_client

        embedder = GeminiEmbedder(api_key="test-key", model="test-embedding")
        vector = await embedder.embed("tahu")

        assert vector == [0.1, 0.2]
        mock_client.models.embed_content.assert_called_once_with(model="test-embedding", contents="tahu")

    @pytest.mark.asyncio
    @patch("src.services.embedding.genai.Client")
    async def test_missing_values_raise(self, mock_client_cls):
        mock_client_cls.return_value.models.embed_content.return_value = MagicMock(embeddings=[])

        embedder = GeminiEmbedder(api_key="test-key")

        with pytest.raises(ValueError):
            await embedder.embed("tahu")

    def test_factory_returns_none_without_key(self, monkeypatch):
        monkeypatch.setattr(config, "GEMINI_API_KEY", "")

        assert create_embedder() is None
