"""Recipe generation through the Gemini text-generation API.

The adapter builds the prompt, calls the model once (no retries), parses and
normalizes the JSON array it returns, and falls back to deterministic stub
recipes whenever the model is not configured, fails, times out, or returns
unusable output. Callers never see an exception caused by the external service.

Core Functions:
- strip_code_fences(): Remove ```json ... ``` wrappers from model output
- parse_generation_response(): Lenient JSON parsing into normalized recipes
- normalize_generated_recipe(): Per-field fallback rules for one raw element
- generate_stub_recipes(): Deterministic recipes built from the request alone
- GenerationAdapter.generate(): Always-succeeding generation entry point
"""

import asyncio
import json
import math
import re
from typing import Any, Optional, Protocol

from google import genai
from google.genai import types

from src.models.models import Difficulty, ExternalResult, GeneratedRecipe, GenerationRequest
from src.prompts.prompts import build_generation_prompt
from src.utils.config import config
from src.utils.logger import logger
from src.utils.safe import safe_execute_sync

UNTITLED_RECIPE = "Resep Tanpa Nama"
DEFAULT_ESTIMATED_TIME = 30


class TextGenerator(Protocol):
    """Black-box text-completion service."""

    async def complete(self, prompt: str) -> str: ...


class GeminiTextGenerator:
    """TextGenerator backed by the google-genai client."""

    def __init__(
        self,
        api_key: str,
        model: str = config.GEMINI_MODEL,
        temperature: float = config.TEMPERATURE,
        max_output_tokens: int = config.MAX_OUTPUT_TOKENS,
    ) -> None:
        """Initialize the Gemini client.

        Raises:
            ValueError: If api_key is None or empty string.
        """
        if not api_key:
            raise ValueError("GEMINI_API_KEY is required")

        self.client = genai.Client(api_key=api_key)
        self.model = model
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens

    async def complete(self, prompt: str) -> str:
        # Run in thread pool since the client call is synchronous
        response = await asyncio.to_thread(
            self.client.models.generate_content,
            model=self.model,
            contents=prompt,
            config=types.GenerateContentConfig(
                temperature=self.temperature,
                max_output_tokens=self.max_output_tokens,
                response_mime_type="application/json",
            ),
        )
        if not response.text:
            raise ValueError("Gemini returned an empty response")
        return response.text


def create_text_generator() -> Optional[TextGenerator]:
    """Return a Gemini text generator, or None when GEMINI_API_KEY is not set."""
    if not config.GEMINI_API_KEY:
        logger.warning("GEMINI_API_KEY not set, recipe generation will use stub mode")
        return None
    logger.info(f"Gemini initialized with model: {config.GEMINI_MODEL}")
    return GeminiTextGenerator(api_key=config.GEMINI_API_KEY)


# ============================================================================
# Response parsing
# ============================================================================


def strip_code_fences(text: str) -> str:
    """Remove surrounding markdown code fences (```json ... ``` or ``` ... ```)."""
    clean = text.strip()
    if clean.startswith("```json"):
        clean = clean[7:]
    elif clean.startswith("```"):
        clean = clean[3:]
    if clean.endswith("```"):
        clean = clean[:-3]
    return clean.strip()


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


def _normalize_difficulty(value: Any) -> Difficulty:
    normalized = str(value).strip().lower()
    if normalized == "easy":
        return Difficulty.EASY
    if normalized == "hard":
        return Difficulty.HARD
    return Difficulty.MEDIUM


def _normalize_estimated_time(value: Any) -> int:
    # bool is an int subclass but never a valid duration
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return DEFAULT_ESTIMATED_TIME
    # json.loads accepts NaN, Infinity and out-of-range literals like 1e400
    if isinstance(value, float) and not math.isfinite(value):
        return DEFAULT_ESTIMATED_TIME
    minutes = int(round(value))
    return minutes if minutes > 0 else DEFAULT_ESTIMATED_TIME


def normalize_generated_recipe(raw: Any) -> GeneratedRecipe:
    """Apply per-field fallback rules to one element of the model output.

    - missing/invalid title -> placeholder title
    - missing description -> ""
    - non-list ingredients/steps/safetyNotes/tags -> [] (non-string entries dropped)
    - non-numeric, non-finite or non-positive estimatedTime -> 30
    - difficulty other than easy/hard (case-insensitive) -> medium
    """
    data = raw if isinstance(raw, dict) else {}

    title = data.get("title")
    if not isinstance(title, str) or not title.strip():
        title = UNTITLED_RECIPE

    description = data.get("description")
    if not isinstance(description, str):
        description = ""

    cuisine = data.get("cuisine")
    if not isinstance(cuisine, str) or not cuisine.strip():
        cuisine = None

    return GeneratedRecipe(
        title=title.strip(),
        description=description.strip(),
        ingredients=_string_list(data.get("ingredients")),
        steps=_string_list(data.get("steps")),
        estimated_time=_normalize_estimated_time(data.get("estimatedTime")),
        difficulty=_normalize_difficulty(data.get("difficulty")),
        safety_notes=_string_list(data.get("safetyNotes")),
        tags=_string_list(data.get("tags")),
        cuisine=cuisine,
    )


def parse_generation_response(response_text: str) -> list[GeneratedRecipe]:
    """Parse raw model output into normalized recipes.

    Tries direct JSON parsing of the fence-stripped text first, then extraction of
    the outermost JSON array from surrounding prose. A single object is treated as
    a one-element list and a {"recipes": [...]} envelope is unwrapped.

    Raises:
        ValueError: If no JSON array of recipes can be recovered.
    """
    clean_text = strip_code_fences(response_text)

    def _parse_json_direct():
        return json.loads(clean_text)

    def _parse_json_regex():
        json_match = re.search(r"\[.*\]", clean_text, re.DOTALL)
        if json_match:
            return json.loads(json_match.group())
        return None

    parsed = safe_execute_sync(_parse_json_direct, "Direct JSON parse", log_level="debug")
    if parsed is None:
        parsed = safe_execute_sync(_parse_json_regex, "Regex JSON extraction", log_level="debug")

    if isinstance(parsed, dict):
        parsed = parsed.get("recipes", [parsed])

    if not isinstance(parsed, list):
        raise ValueError("Failed to parse JSON recipe array from Gemini response")

    return [normalize_generated_recipe(item) for item in parsed]


# ============================================================================
# Stub generation
# ============================================================================


def generate_stub_recipes(request: GenerationRequest) -> list[GeneratedRecipe]:
    """Synthesize simple recipes purely from the ingredient list and max time.

    Deterministic: the same request always yields the same recipes.
    """
    ingredients = list(request.ingredients)
    ingredients_list = ", ".join(ingredients)
    main = ingredients[0] if ingredients else None
    base_time = request.max_time or DEFAULT_ESTIMATED_TIME
    difficulty = request.difficulty or Difficulty.MEDIUM

    return [
        GeneratedRecipe(
            title=f"Tumis {main or 'Sayuran'} Spesial",
            description=f"Resep tumis lezat dengan bahan: {ingredients_list}",
            ingredients=[f"Secukupnya {i}" for i in ingredients],
            steps=[
                "Siapkan semua bahan dan cuci bersih",
                "Panaskan minyak di wajan",
                "Tumis bumbu hingga harum",
                f"Masukkan {main or 'bahan utama'}, aduk rata",
                "Tambahkan bumbu penyedap secukupnya",
                "Masak hingga matang dan sajikan",
            ],
            estimated_time=base_time,
            difficulty=difficulty,
            safety_notes=["Pastikan bahan sudah matang sempurna"],
            tags=["quick", "easy", "homemade", "stub"],
            cuisine=request.cuisine,
        ),
        GeneratedRecipe(
            title=f"Sup {main or 'Hangat'} Rumahan",
            description=f"Sup hangat dengan campuran {ingredients_list}",
            ingredients=[*(f"100g {i}" for i in ingredients), "1 liter air kaldu", "Garam dan merica secukupnya"],
            steps=[
                "Didihkan air kaldu dalam panci",
                "Masukkan bahan-bahan satu per satu",
                "Masak dengan api sedang selama 20 menit",
                "Tambahkan garam dan merica",
                "Sajikan hangat",
            ],
            estimated_time=base_time + 10,
            difficulty=difficulty,
            safety_notes=["Hati-hati dengan sup panas"],
            tags=["soup", "comfort-food", "healthy", "stub"],
            cuisine=request.cuisine,
        ),
        GeneratedRecipe(
            title=f"{main or 'Bahan'} Panggang Madu",
            description=f"Hidangan panggang dengan {ingredients_list} dan saus madu",
            ingredients=[*(f"250g {i}" for i in ingredients), "3 sdm madu", "2 sdm kecap asin", "1 sdm minyak wijen"],
            steps=[
                "Campurkan madu, kecap, dan minyak wijen untuk saus",
                "Lumuri bahan utama dengan saus",
                "Marinasi selama 15 menit",
                "Panggang di suhu 180°C selama 25 menit",
                "Olesi saus lagi di tengah proses",
                "Sajikan dengan garnish",
            ],
            estimated_time=base_time + 15,
            difficulty=Difficulty.MEDIUM,
            safety_notes=["Gunakan sarung tangan saat mengeluarkan dari oven"],
            tags=["baked", "sweet", "dinner", "stub"],
            cuisine=request.cuisine,
        ),
    ]


# ============================================================================
# Adapter
# ============================================================================


class GenerationAdapter:
    """Wraps the text-generation service with prompt building, parsing and stub fallback."""

    def __init__(
        self,
        text_generator: Optional[TextGenerator] = None,
        recipe_count: int = config.RECIPES_PER_REQUEST,
        timeout_seconds: float = config.GENERATION_TIMEOUT_SECONDS,
    ) -> None:
        self.text_generator = text_generator
        self.recipe_count = recipe_count
        self.timeout_seconds = timeout_seconds

    async def generate_outcome(self, request: GenerationRequest) -> ExternalResult[list[GeneratedRecipe]]:
        """Call the model once and report which outcome occurred.

        Returns:
            ExternalResult with status success (parsed recipes), not_configured, or
            failure (service error, timeout, malformed or empty output).
        """
        if self.text_generator is None:
            return ExternalResult.not_configured("No text generator configured")

        prompt = build_generation_prompt(request, recipe_count=self.recipe_count)

        try:
            logger.info("Calling Gemini API for recipe generation...")
            text = await asyncio.wait_for(self.text_generator.complete(prompt), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.error(f"Gemini API call timed out after {self.timeout_seconds}s")
            return ExternalResult.failure(f"Timed out after {self.timeout_seconds}s")
        except Exception as e:
            logger.error(f"Gemini API error: {e}")
            return ExternalResult.failure(str(e))

        try:
            recipes = parse_generation_response(text)
        except Exception as e:
            logger.error(f"Failed to parse Gemini response: {e}")
            logger.debug(f"Raw response: {text}")
            return ExternalResult.failure(f"Malformed response: {e}")

        if not recipes:
            logger.warning("Gemini returned an empty recipe list")
            return ExternalResult.failure("Empty recipe list")

        return ExternalResult.success(recipes)

    async def generate(self, request: GenerationRequest) -> list[GeneratedRecipe]:
        """Generate candidate recipes, falling back to stub recipes on any failure."""
        outcome = await self.generate_outcome(request)
        if outcome.ok:
            logger.info(f"Generated {len(outcome.value)} recipes with Gemini")
            return outcome.value

        logger.warning(f"Falling back to stub recipes ({outcome.status.value}: {outcome.error})")
        return generate_stub_recipes(request)
