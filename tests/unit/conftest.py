"""Shared fixtures for unit tests.

Unit tests run fully offline: the text-generation and embedding services are
replaced by in-process fakes and the store uses in-memory SQLite.
"""

import pytest
import pytest_asyncio

from src.storage.store import RecipeStore
from tests.unit.fakes import FakeEmbedder, FakeTextGenerator


@pytest_asyncio.fixture
async def store():
    """Fresh in-memory recipe store per test."""
    recipe_store = RecipeStore(database_url="sqlite://")
    await recipe_store.create_tables()
    yield recipe_store
    recipe_store.engine.dispose()


@pytest.fixture
def fake_generator():
    return FakeTextGenerator()


@pytest.fixture
def fake_embedder():
    return FakeEmbedder()
