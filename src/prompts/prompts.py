"""Prompt construction for recipe generation.

Builds the natural-language prompt sent to the text-generation model. The prompt
embeds the available ingredients, time and difficulty constraints, allergy
exclusions, dietary preference instructions and required tags (taken from the
dietary registry), an optional cuisine directive, and the JSON output schema the
response parser expects.
"""

from src.models.models import GenerationRequest
from src.pipeline.fingerprint import DEFAULT_DIFFICULTY, DEFAULT_MAX_TIME
from src.taxonomy.dietary import build_prompt_hints, get_required_tags


OUTPUT_SCHEMA = """[
  {
    "title": "Nama Resep",
    "description": "Deskripsi singkat resep dalam 1-2 kalimat",
    "ingredients": ["bahan 1 dengan takaran", "bahan 2 dengan takaran"],
    "steps": ["Langkah 1", "Langkah 2", "Langkah 3"],
    "estimatedTime": 30,
    "difficulty": "easy|medium|hard",
    "safetyNotes": ["catatan keamanan jika ada"],
    "tags": ["tag1", "tag2"]
  }
]"""


def _get_dietary_section(preferences: list[str]) -> str:
    """Generate the dietary rules section, empty when no known preference is requested."""
    hints = build_prompt_hints(preferences)
    if not hints:
        return ""

    required_tags = get_required_tags(preferences)
    lines = "\n".join(f"- {hint}" for hint in hints)
    return f"""
ATURAN DIET (WAJIB DIPATUHI):
{lines}
- Sertakan tag berikut pada setiap resep: {", ".join(required_tags)}
"""


def _get_cuisine_section(cuisine: str | None) -> str:
    if not cuisine:
        return ""
    return f"\nJENIS MASAKAN: Buat resep bergaya masakan {cuisine}.\n"


def build_generation_prompt(request: GenerationRequest, recipe_count: int = 3) -> str:
    """Build the recipe generation prompt for a request.

    Args:
        request: The generation request.
        recipe_count: Number of recipes to ask the model for.

    Returns:
        str: Prompt text.
    """
    difficulty = request.difficulty.value if request.difficulty else DEFAULT_DIFFICULTY
    max_time = request.max_time or DEFAULT_MAX_TIME
    allergies = ", ".join(request.allergies) or "none"
    preferences = ", ".join(request.preferences) or "none"
    ingredients = "\n".join(f"- {i}" for i in request.ingredients)

    allergy_rule = ""
    if request.allergies:
        allergy_rule = f"\nJANGAN gunakan bahan berikut atau turunannya sama sekali: {allergies}\n"

    return f"""Kamu adalah chef profesional Indonesia. Buatkan {recipe_count} resep masakan berdasarkan bahan-bahan berikut:

BAHAN YANG TERSEDIA:
{ingredients}

PREFERENSI:
- Tingkat kesulitan: {difficulty}
- Waktu maksimal: {max_time} menit
- Alergi/pantangan: {allergies}
- Preferensi diet: {preferences}
{allergy_rule}{_get_dietary_section(request.preferences)}{_get_cuisine_section(request.cuisine)}
FORMAT OUTPUT (JSON array, tanpa markdown code block):
{OUTPUT_SCHEMA}

Berikan resep yang praktis, mudah diikuti, dan sesuai dengan masakan Indonesia atau Asia. Pastikan semua bahan yang diminta terpakai."""
