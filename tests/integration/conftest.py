"""Pytest configuration and fixtures for integration tests.

Ensures environment variables are loaded and skips the suite when the Gemini
API key is not configured. These tests call the real Gemini APIs.
"""

import os
from pathlib import Path

import pytest
import pytest_asyncio
from dotenv import load_dotenv

from src.storage.store import RecipeStore


def pytest_configure(config):
    """Load .env from the project root before test collection."""
    env_path = Path(__file__).parent.parent.parent / ".env"
    load_dotenv(env_path)

    print("\n" + "=" * 70)
    print("Note: These tests require a valid GEMINI_API_KEY")
    print(f"Environment loaded from: {env_path}")
    print("=" * 70 + "\n")


@pytest.fixture(autouse=True)
def check_api_keys():
    """Skip integration tests when GEMINI_API_KEY is not configured."""
    if not os.getenv("GEMINI_API_KEY"):
        pytest.skip("Missing required API key: GEMINI_API_KEY. Configure it in .env to run integration tests.")


@pytest_asyncio.fixture
async def store():
    recipe_store = RecipeStore(database_url="sqlite://")
    await recipe_store.create_tables()
    yield recipe_store
    recipe_store.engine.dispose()
