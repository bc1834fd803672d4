"""Allergen registry and alias-aware allergen matching.

The registry is a static, read-only table grouped into display categories.
Matching ignores categories: a user-supplied term matches text either directly
(substring) or through any registry entry it cross-matches (substring in either
direction) whose name or alias also appears in the text.
"""

from typing import Optional, Sequence

from src.models.models import (
    AllergenCategory,
    AllergenCheck,
    AllergenEntry,
    IngredientFilterResult,
    RecipeValidation,
)


def _entry(name: str, aliases: Sequence[str], description: str, severity: str) -> AllergenEntry:
    return AllergenEntry(name=name, aliases=tuple(aliases), description=description, severity=severity)


ALLERGEN_CATEGORIES: tuple[AllergenCategory, ...] = (
    AllergenCategory(
        category="Kacang-kacangan",
        allergens=(
            _entry(
                "kacang tanah",
                ["peanut", "kacang", "selai kacang", "minyak kacang", "kacang goreng"],
                "Alergen umum yang dapat menyebabkan reaksi berat",
                "high",
            ),
            _entry("kacang mete", ["cashew", "mete", "kacang mede"], "Tree nut allergen", "high"),
            _entry("kacang almond", ["almond", "badam"], "Tree nut allergen", "high"),
            _entry("kacang kenari", ["walnut", "kenari"], "Tree nut allergen", "high"),
            _entry(
                "kacang kedelai",
                ["soy", "kedelai", "tahu", "tempe", "kecap", "tauco", "miso", "edamame"],
                "Legume allergen, common in Asian cuisine",
                "medium",
            ),
        ),
    ),
    AllergenCategory(
        category="Seafood",
        allergens=(
            _entry("udang", ["shrimp", "prawn", "ebi", "udang galah", "udang windu"], "Shellfish allergen", "high"),
            _entry("kepiting", ["crab", "rajungan", "kepiting soka"], "Shellfish allergen", "high"),
            _entry("lobster", ["lobster"], "Shellfish allergen", "high"),
            _entry(
                "kerang",
                ["clam", "shellfish", "kupang", "simping", "kerang hijau", "kerang dara"],
                "Mollusk allergen",
                "high",
            ),
            _entry("cumi", ["squid", "cumi-cumi", "sotong"], "Mollusk allergen", "medium"),
            _entry("gurita", ["octopus", "gurita"], "Mollusk allergen", "medium"),
            _entry(
                "ikan",
                ["fish", "salmon", "tuna", "tenggiri", "kakap", "patin", "lele", "nila", "bandeng", "teri", "ikan asin"],
                "Fish allergen",
                "high",
            ),
        ),
    ),
    AllergenCategory(
        category="Dairy",
        allergens=(
            _entry(
                "susu",
                ["milk", "dairy", "susu sapi", "krim", "cream", "whey", "kasein", "laktosa"],
                "Dairy/lactose allergen",
                "medium",
            ),
            _entry("keju", ["cheese", "parmesan", "mozzarella", "cheddar"], "Dairy allergen", "medium"),
            _entry("mentega", ["butter", "margarin"], "Dairy allergen", "medium"),
            _entry("yogurt", ["yoghurt", "yogurt"], "Dairy allergen", "medium"),
        ),
    ),
    AllergenCategory(
        category="Gluten",
        allergens=(
            _entry(
                "gandum",
                ["wheat", "terigu", "tepung terigu", "roti", "pasta", "mie"],
                "Gluten/wheat allergen",
                "medium",
            ),
            _entry("barley", ["barley", "jelai"], "Gluten allergen", "medium"),
            _entry("oat", ["oat", "haver", "oatmeal"], "May contain gluten", "low"),
        ),
    ),
    AllergenCategory(
        category="Telur",
        allergens=(
            _entry(
                "telur",
                ["egg", "telur ayam", "telur bebek", "telur puyuh", "kuning telur", "putih telur"],
                "Egg allergen",
                "medium",
            ),
        ),
    ),
    AllergenCategory(
        category="Lainnya",
        allergens=(
            _entry("wijen", ["sesame", "bijan", "minyak wijen"], "Sesame allergen", "medium"),
            _entry("mustard", ["mustard", "sawi"], "Mustard allergen", "low"),
            _entry("seledri", ["celery", "daun seledri"], "Celery allergen", "low"),
        ),
    ),
)

# Flattened view used for matching
_ALL_ENTRIES: tuple[AllergenEntry, ...] = tuple(
    entry for category in ALLERGEN_CATEGORIES for entry in category.allergens
)


def get_all_allergens() -> tuple[AllergenCategory, ...]:
    """Return all allergen categories for reference/display."""
    return ALLERGEN_CATEGORIES


def get_all_allergen_names() -> list[str]:
    """Return a flat, de-duplicated list of every allergen name and alias."""
    names: list[str] = []
    for entry in _ALL_ENTRIES:
        names.extend(entry.all_names)
    return list(dict.fromkeys(names))


def _cross_matches(term: str, names: Sequence[str]) -> bool:
    return any(term in name.lower() or name.lower() in term for name in names)


def contains_allergen(text: str, user_allergens: Sequence[str]) -> AllergenCheck:
    """Report which user-supplied allergen terms are found in text.

    A term matches when it appears directly in the text, or when it cross-matches
    a registry entry (bidirectional substring against the entry's name or aliases)
    and any name of that entry appears in the text. Comparison is case-insensitive.

    Args:
        text: Arbitrary free text (recipe title, ingredients, ...).
        user_allergens: Terms supplied by the user.

    Returns:
        AllergenCheck with the found flag and the matching user terms, each at most once.
    """
    normalized_text = text.lower()
    matches: list[str] = []

    for user_allergen in user_allergens:
        term = user_allergen.lower().strip()
        if not term:
            continue

        if term in normalized_text:
            matches.append(user_allergen)
            continue

        for entry in _ALL_ENTRIES:
            if not _cross_matches(term, entry.all_names):
                continue
            if any(name.lower() in normalized_text for name in entry.all_names):
                matches.append(user_allergen)
                break

    unique_matches = list(dict.fromkeys(matches))
    return AllergenCheck(found=bool(unique_matches), matches=unique_matches)


def filter_ingredients(ingredients: Sequence[str], user_allergens: Sequence[str]) -> IngredientFilterResult:
    """Split an ingredient list into safe and unsafe entries for the user's allergens."""
    result = IngredientFilterResult()

    for ingredient in ingredients:
        check = contains_allergen(ingredient, user_allergens)
        if check.found:
            result.unsafe.append(ingredient)
            result.warnings.append(f'"{ingredient}" mengandung alergen: {", ".join(check.matches)}')
        else:
            result.safe.append(ingredient)

    return result


def validate_recipe(
    title: str,
    ingredients: Sequence[str],
    user_allergens: Sequence[str],
    description: Optional[str] = None,
) -> RecipeValidation:
    """Validate a recipe against the user's allergens.

    Title, description and ingredients are joined into one text blob and checked
    with contains_allergen. Any match marks the recipe unsafe.
    """
    if not user_allergens:
        return RecipeValidation(is_safe=True)

    all_text = " ".join([title, description or "", *ingredients])
    check = contains_allergen(all_text, user_allergens)

    if check.found:
        return RecipeValidation(
            is_safe=False,
            warnings=[f"Resep ini mengandung alergen yang Anda hindari: {', '.join(check.matches)}"],
        )

    return RecipeValidation(is_safe=True)
