"""Deterministic cache key for generation requests."""

import hashlib
import json

from src.models.models import GenerationRequest

FINGERPRINT_LENGTH = 16
DEFAULT_MAX_TIME = 60
DEFAULT_DIFFICULTY = "any"


def normalize_request(request: GenerationRequest) -> dict:
    """Build the order- and case-insensitive structure that is hashed.

    Ingredients are trimmed, lower-cased and sorted; allergies and preferences are
    sorted; missing optional fields take fixed defaults. Cuisine is only included
    when set.
    """
    normalized = {
        "ingredients": sorted(i.lower().strip() for i in request.ingredients),
        "maxTime": request.max_time or DEFAULT_MAX_TIME,
        "difficulty": request.difficulty.value if request.difficulty else DEFAULT_DIFFICULTY,
        "allergies": sorted(a.lower().strip() for a in request.allergies),
        "preferences": sorted(p.lower().strip() for p in request.preferences),
    }
    if request.cuisine:
        normalized["cuisine"] = request.cuisine.lower().strip()
    return normalized


def fingerprint(request: GenerationRequest) -> str:
    """Return the 16-hex-character SHA-256 fingerprint of a request.

    Pure function of the request: no time dependency, no hidden state.
    """
    canonical = json.dumps(normalize_request(request), sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]
