"""Dietary preference registry: prompt hints, required tags and compliance checks."""

from types import MappingProxyType
from typing import Mapping, Optional, Sequence

from src.models.models import ComplianceResult, DietaryPreference

_MEAT_AND_SEAFOOD = (
    "daging", "ayam", "sapi", "babi", "kambing", "bebek",
    "ikan", "udang", "kepiting", "cumi", "kerang", "lobster",
)
_MEAT_AND_SEAFOOD_EN = ("fish", "chicken", "beef", "pork", "meat", "seafood")

_PREFERENCES = (
    DietaryPreference(
        id="vegetarian",
        name="Vegetarian",
        description="No meat or fish, but allows eggs and dairy",
        excluded_ingredients=(
            *_MEAT_AND_SEAFOOD,
            *_MEAT_AND_SEAFOOD_EN,
            "bacon", "ham", "sosis", "kornet", "bakso",
        ),
        required_tags=("vegetarian",),
        prompt_hint=(
            "Resep harus vegetarian - TIDAK BOLEH mengandung daging atau seafood apapun. "
            "Boleh menggunakan telur dan produk susu."
        ),
    ),
    DietaryPreference(
        id="vegan",
        name="Vegan",
        description="No animal products at all",
        excluded_ingredients=(
            *_MEAT_AND_SEAFOOD,
            "telur", "susu", "keju", "mentega", "yogurt", "krim",
            "madu", "gelatin",
            *_MEAT_AND_SEAFOOD_EN,
            "egg", "milk", "cheese", "butter", "cream", "honey",
        ),
        required_tags=("vegan", "plant-based"),
        prompt_hint=(
            "Resep harus vegan - TIDAK BOLEH mengandung produk hewani apapun termasuk daging, seafood, "
            "telur, susu, keju, mentega, dan madu. Hanya bahan nabati."
        ),
    ),
    DietaryPreference(
        id="halal",
        name="Halal",
        description="Compliant with Islamic dietary laws",
        excluded_ingredients=(
            "babi", "pork", "bacon", "ham", "lard",
            "alkohol", "mirin", "wine", "beer", "sake", "arak",
            "gelatin babi",
        ),
        required_tags=("halal",),
        prompt_hint=(
            "Resep harus halal - TIDAK BOLEH mengandung babi, produk babi, atau alkohol. "
            "Pastikan semua bahan halal."
        ),
    ),
    DietaryPreference(
        id="gluten-free",
        name="Gluten-Free",
        description="No gluten-containing ingredients",
        excluded_ingredients=(
            "tepung terigu", "gandum", "roti", "pasta", "mie",
            "kecap", "saus tiram", "beer",
            "wheat", "flour", "bread", "noodle",
            "barley", "oat",
        ),
        required_tags=("gluten-free",),
        prompt_hint=(
            "Resep harus bebas gluten - TIDAK BOLEH mengandung tepung terigu, gandum, roti, pasta, "
            "atau mie biasa. Gunakan alternatif seperti tepung beras atau tapioka."
        ),
    ),
    DietaryPreference(
        id="dairy-free",
        name="Dairy-Free",
        description="No dairy products",
        excluded_ingredients=(
            "susu", "susu sapi", "krim", "keju", "mentega", "yogurt",
            "whey", "kasein", "laktosa",
            "milk", "cream", "cheese", "butter",
        ),
        required_tags=("dairy-free",),
        prompt_hint=(
            "Resep harus bebas susu - TIDAK BOLEH mengandung susu, keju, mentega, krim, "
            "atau produk olahan susu lainnya."
        ),
    ),
    DietaryPreference(
        id="low-carb",
        name="Low-Carb",
        description="Reduced carbohydrate content",
        excluded_ingredients=(
            "nasi", "beras", "roti", "pasta", "mie", "kentang",
            "gula", "tepung", "singkong", "ubi",
            "rice", "bread", "potato", "sugar",
        ),
        required_tags=("low-carb", "keto-friendly"),
        prompt_hint=(
            "Resep harus rendah karbohidrat - HINDARI nasi, roti, pasta, kentang, dan gula. "
            "Fokus pada protein dan sayuran."
        ),
    ),
)

DIETARY_PREFERENCES: Mapping[str, DietaryPreference] = MappingProxyType({p.id: p for p in _PREFERENCES})


def get_all_preferences() -> Mapping[str, DietaryPreference]:
    """Return every supported preference keyed by identifier (read-only)."""
    return DIETARY_PREFERENCES


def get_preference_names() -> list[str]:
    return list(DIETARY_PREFERENCES)


def get_preference(preference_id: str) -> Optional[DietaryPreference]:
    """Look up a preference by identifier, case-insensitively. None if unknown."""
    return DIETARY_PREFERENCES.get(preference_id.lower().strip())


def _known(preferences: Sequence[str]) -> list[DietaryPreference]:
    found = (get_preference(p) for p in preferences)
    return [p for p in found if p is not None]


def build_prompt_hints(preferences: Sequence[str]) -> list[str]:
    """Collect the prompt instruction fragments of the known preferences."""
    return [p.prompt_hint for p in _known(preferences)]


def get_required_tags(preferences: Sequence[str]) -> list[str]:
    """Return the de-duplicated tags that compliant recipes should carry."""
    tags: list[str] = []
    for preference in _known(preferences):
        tags.extend(preference.required_tags)
    return list(dict.fromkeys(tags))


def check_compliance(ingredients: Sequence[str], preferences: Sequence[str]) -> ComplianceResult:
    """Check an ingredient list against one or more dietary preferences.

    Every excluded substring of every requested (known) preference that appears in
    the lower-cased ingredient text is reported as a violation. Unknown preference
    identifiers are ignored.
    """
    violations: list[str] = []
    ingredient_text = " ".join(ingredients).lower()

    for preference in _known(preferences):
        for excluded in preference.excluded_ingredients:
            if excluded.lower() in ingredient_text:
                violations.append(f'"{excluded}" tidak sesuai dengan {preference.name}')

    return ComplianceResult(compliant=not violations, violations=violations)
