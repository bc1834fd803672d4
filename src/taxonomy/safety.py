"""Food safety warning registry and safety-note synthesis.

generate_safety_notes() only ever appends to the notes it is given. When no
ingredient or cooking-method warning applies, one general tip is picked at
random from a fixed pool of five; the random source is injectable so tests can
pin the choice (output is non-deterministic by default).
"""

import random
from typing import Optional, Sequence

from src.models.models import SafetyWarning
from src.utils.logger import logger


def _warning(ingredient: str, aliases: Sequence[str], category: str, warning: str, severity: str) -> SafetyWarning:
    return SafetyWarning(
        ingredient=ingredient,
        aliases=tuple(aliases),
        category=category,
        warning=warning,
        severity=severity,
    )


SAFETY_WARNINGS: tuple[SafetyWarning, ...] = (
    # Raw meat
    _warning(
        "daging ayam",
        ["ayam", "chicken", "daging ayam mentah", "paha ayam", "dada ayam", "sayap ayam"],
        "cooking",
        "Pastikan ayam dimasak hingga suhu internal minimal 74°C untuk membunuh bakteri Salmonella",
        "high",
    ),
    _warning(
        "daging sapi",
        ["sapi", "beef", "daging sapi mentah", "has dalam", "sirloin", "tenderloin"],
        "cooking",
        "Masak daging sapi hingga suhu internal minimal 63°C (medium) atau 71°C (well done)",
        "medium",
    ),
    _warning(
        "daging babi",
        ["babi", "pork", "bacon", "ham"],
        "cooking",
        "Pastikan babi dimasak hingga suhu internal minimal 71°C untuk menghindari parasit",
        "high",
    ),
    _warning(
        "daging kambing",
        ["kambing", "lamb", "mutton", "domba"],
        "cooking",
        "Masak daging kambing hingga matang sempurna, suhu internal minimal 63°C",
        "medium",
    ),
    # Seafood
    _warning(
        "udang",
        ["shrimp", "prawn", "udang galah", "udang windu", "ebi"],
        "allergy",
        "Udang adalah alergen umum. Perhatikan tanda-tanda reaksi alergi. Masak hingga berwarna oranye-pink",
        "high",
    ),
    _warning(
        "kepiting",
        ["crab", "rajungan", "kepiting soka"],
        "allergy",
        "Kepiting adalah alergen umum. Pastikan dimasak hingga cangkang berwarna merah cerah",
        "high",
    ),
    _warning(
        "kerang",
        ["shellfish", "clam", "mussel", "kupang", "kerang hijau"],
        "hygiene",
        "Buang kerang yang tidak terbuka setelah dimasak. Kerang mentah berisiko kontaminasi bakteri",
        "high",
    ),
    _warning(
        "ikan mentah",
        ["sashimi", "raw fish", "ikan segar"],
        "hygiene",
        "Konsumsi ikan mentah berisiko parasit. Pastikan ikan berkualitas sashimi-grade "
        "dan disimpan pada suhu sangat rendah",
        "high",
    ),
    _warning(
        "ikan",
        ["fish", "salmon", "tuna", "tenggiri", "kakap", "patin", "lele"],
        "cooking",
        "Masak ikan hingga dagingnya mudah dipisahkan dengan garpu dan berwarna tidak transparan",
        "medium",
    ),
    # Eggs
    _warning(
        "telur",
        ["egg", "telur ayam", "telur bebek", "telur mentah"],
        "cooking",
        "Hindari konsumsi telur mentah atau setengah matang, terutama untuk anak-anak, lansia, dan ibu hamil",
        "medium",
    ),
    # Dairy
    _warning(
        "susu",
        ["milk", "susu segar", "dairy"],
        "storage",
        "Simpan susu dalam lemari es dan konsumsi sebelum tanggal kedaluwarsa. "
        "Jangan biarkan di suhu ruang lebih dari 2 jam",
        "low",
    ),
    # Vegetables that need attention
    _warning(
        "singkong",
        ["cassava", "ubi kayu", "tapioka"],
        "cooking",
        "Singkong mentah mengandung sianida. Pastikan dimasak dengan benar dan buang air rebusan pertama",
        "high",
    ),
    _warning(
        "jamur liar",
        ["wild mushroom", "jamur hutan"],
        "hygiene",
        "PERINGATAN: Hanya konsumsi jamur dari sumber terpercaya. Jamur liar beracun bisa sangat berbahaya",
        "high",
    ),
    _warning(
        "tauge",
        ["bean sprouts", "kecambah"],
        "hygiene",
        "Tauge rawan kontaminasi bakteri. Cuci bersih dan masak hingga matang",
        "medium",
    ),
    # Equipment & general
    _warning(
        "minyak goreng",
        ["oil", "minyak", "minyak panas", "deep fry"],
        "equipment",
        "Hati-hati dengan minyak panas. Jangan tinggalkan tanpa pengawasan dan siapkan penutup untuk api",
        "high",
    ),
    _warning(
        "pisau",
        ["knife", "mengiris", "memotong halus"],
        "equipment",
        "Gunakan teknik memotong yang aman. Jaga jari menekuk ke dalam saat mengiris",
        "medium",
    ),
    _warning(
        "cabai",
        ["chili", "cabe", "cabai rawit", "cabai merah"],
        "hygiene",
        "Cuci tangan setelah mengolah cabai dan hindari menyentuh mata",
        "low",
    ),
    _warning(
        "bawang putih",
        ["garlic"],
        "storage",
        "Bawang putih dalam minyak bisa menumbuhkan Clostridium botulinum jika tidak disimpan di lemari es",
        "low",
    ),
)

GENERAL_SAFETY_TIPS: tuple[str, ...] = (
    "Cuci tangan dengan sabun sebelum dan sesudah memasak",
    "Gunakan talenan berbeda untuk daging mentah dan sayuran",
    "Simpan bahan mentah terpisah dari makanan matang",
    "Jangan biarkan makanan di suhu ruang lebih dari 2 jam",
    "Pastikan semua peralatan masak bersih sebelum digunakan",
)

# (step keywords, note markers that mean "already covered", note to add)
COOKING_METHOD_NOTES: tuple[tuple[tuple[str, ...], tuple[str, ...], str], ...] = (
    (
        ("goreng", "deep fry"),
        ("minyak panas",),
        "Hati-hati saat menggoreng dengan minyak panas. Jangan tinggalkan tanpa pengawasan",
    ),
    (
        ("kukus", "steam"),
        ("uap",),
        "Hati-hati dengan uap panas saat membuka tutup kukusan",
    ),
    (
        ("oven", "panggang"),
        ("oven", "sarung tangan"),
        "Gunakan sarung tangan tahan panas saat menggunakan oven",
    ),
)


def get_warnings_for_ingredients(ingredients: Sequence[str]) -> list[SafetyWarning]:
    """Return registry warnings triggered by the ingredient list, one per registry entry."""
    ingredient_text = " ".join(ingredients).lower()
    return [
        warning
        for warning in SAFETY_WARNINGS
        if any(term.lower() in ingredient_text for term in warning.all_terms)
    ]


def get_high_severity_warnings(ingredients: Sequence[str]) -> list[SafetyWarning]:
    return [w for w in get_warnings_for_ingredients(ingredients) if w.severity == "high"]


def get_all_safety_tips() -> tuple[str, ...]:
    return GENERAL_SAFETY_TIPS


def generate_safety_notes(
    ingredients: Sequence[str],
    steps: Sequence[str],
    existing_notes: Optional[Sequence[str]] = None,
    rng: Optional[random.Random] = None,
) -> list[str]:
    """Synthesize safety notes for a recipe.

    1. Ingredient warnings from the registry, skipped when an existing note already
       mentions the trigger ingredient.
    2. Cooking-method notes (frying, steaming, oven) detected in the step text.
    3. If no note exists at all, one random general tip.

    Args:
        ingredients: Recipe ingredient lines.
        steps: Recipe step strings.
        existing_notes: Notes already on the recipe; always preserved, in order.
        rng: Random source for the general tip. Defaults to the module-level `random`.

    Returns:
        New list of notes, a superset of existing_notes.
    """
    notes = list(existing_notes or [])

    for warning in get_warnings_for_ingredients(ingredients):
        trigger = warning.ingredient.lower()
        if not any(trigger in note.lower() for note in notes):
            notes.append(warning.warning)

    steps_text = " ".join(steps).lower()
    for keywords, markers, method_note in COOKING_METHOD_NOTES:
        if not any(keyword in steps_text for keyword in keywords):
            continue
        if not any(marker in note for note in notes for marker in markers):
            notes.append(method_note)

    if not notes:
        tip = (rng or random).choice(GENERAL_SAFETY_TIPS)
        logger.debug(f"No specific safety warnings, adding general tip: {tip}")
        notes.append(tip)

    return notes
