"""Data models and schemas for the recipe generation pipeline.

Defines Pydantic models for generation requests, generated and persisted recipes,
taxonomy registry entries, and the results of pipeline/recommendation operations.
All models use Pydantic v2 for strict validation.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Generic, List, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

T = TypeVar("T")

Severity = Literal["high", "medium", "low"]


class Difficulty(str, Enum):
    """Difficulty tier of a recipe."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


# ============================================================================
# Requests
# ============================================================================


class GenerationRequest(BaseModel):
    """Request schema for recipe generation.

    Ingredient, allergy and preference lists are order-irrelevant: two requests that
    differ only in ordering or casing of list entries share the same fingerprint.
    Immutable once issued.
    """

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    ingredients: Annotated[List[str], Field(description="Available ingredients (free-form strings)")]
    max_time: Annotated[
        Optional[int], Field(None, ge=1, le=1440, description="Maximum cooking time in minutes")
    ]
    difficulty: Annotated[Optional[Difficulty], Field(None, description="Preferred difficulty tier")]
    allergies: Annotated[
        List[str], Field(default_factory=list, description="Allergens or ingredients to avoid")
    ]
    preferences: Annotated[
        List[str], Field(default_factory=list, description="Dietary preference identifiers (e.g. halal, vegan)")
    ]
    cuisine: Annotated[Optional[str], Field(None, max_length=100, description="Optional cuisine directive")]

    @field_validator("ingredients", "allergies", "preferences", mode="before")
    @classmethod
    def coerce_list(cls, v):
        """Accept None as an empty list and a comma-separated string as a list."""
        if v is None:
            return []
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v


# ============================================================================
# Recipes
# ============================================================================


class GeneratedRecipe(BaseModel):
    """A candidate recipe produced by generation, prior to persistence."""

    title: Annotated[str, Field(min_length=1, description="Recipe name")]
    description: str = ""
    ingredients: List[str] = Field(default_factory=list)
    steps: List[str] = Field(default_factory=list)
    estimated_time: Annotated[int, Field(30, ge=1, description="Estimated time in minutes")]
    difficulty: Difficulty = Difficulty.MEDIUM
    safety_notes: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    cuisine: Optional[str] = None
    embedding: Optional[List[float]] = None


class Recipe(GeneratedRecipe):
    """Domain model for a persisted recipe.

    Carries the owning fingerprint when produced by generation (absent for
    hand-entered data), the running rating mean and count, and a bookmark flag.
    """

    model_config = ConfigDict(from_attributes=True)

    id: Annotated[str, Field(description="Recipe ID (UUID)")]
    rating: Annotated[float, Field(0.0, ge=0.0, le=5.0, description="Average rating")]
    rating_count: Annotated[int, Field(0, ge=0, description="Number of accepted ratings")]
    input_fingerprint: Optional[str] = None
    is_generated: bool = False
    is_saved: bool = False
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class GenerationResult(BaseModel):
    """Response schema of a pipeline generation call."""

    recipes: List[Recipe] = Field(default_factory=list)
    cached: bool
    fingerprint: str
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class SimilarRecipe(BaseModel):
    """A recipe ranked by embedding similarity."""

    recipe: Recipe
    similarity: float


class AlternativeRecipe(BaseModel):
    """A recipe ranked by ingredient overlap, score in whole percent."""

    recipe: Recipe
    match_score: Annotated[int, Field(ge=0, le=100)]


class RecipeSearchQuery(BaseModel):
    """Filter, sort and pagination options for searching stored recipes."""

    model_config = ConfigDict(str_strip_whitespace=True)

    q: Optional[str] = None
    difficulty: Optional[Difficulty] = None
    max_time: Annotated[Optional[int], Field(None, ge=1)]
    tags: List[str] = Field(default_factory=list)
    sort_by: Literal["created_at", "rating", "estimated_time"] = "created_at"
    order: Literal["asc", "desc"] = "desc"
    limit: Annotated[int, Field(10, ge=1, le=50)]
    offset: Annotated[int, Field(0, ge=0)]


class RecipeSearchResult(BaseModel):
    data: List[Recipe]
    total: int
    limit: int
    offset: int


# ============================================================================
# Taxonomy registries
# ============================================================================


class AllergenEntry(BaseModel):
    """A known allergen with its aliases in different languages/spellings."""

    model_config = ConfigDict(frozen=True)

    name: str
    aliases: tuple[str, ...]
    description: str
    severity: Severity

    @property
    def all_names(self) -> tuple[str, ...]:
        return (self.name, *self.aliases)


class AllergenCategory(BaseModel):
    """Display grouping of allergen entries. Matching ignores the category."""

    model_config = ConfigDict(frozen=True)

    category: str
    allergens: tuple[AllergenEntry, ...]


class DietaryPreference(BaseModel):
    """Dietary preference rules, required tags, and the prompt fragment injected into generation."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str
    excluded_ingredients: tuple[str, ...]
    required_tags: tuple[str, ...]
    prompt_hint: str


class SafetyWarning(BaseModel):
    """Ingredient-triggered food safety warning."""

    model_config = ConfigDict(frozen=True)

    ingredient: str
    aliases: tuple[str, ...]
    category: Literal["cooking", "storage", "allergy", "hygiene", "equipment"]
    warning: str
    severity: Severity

    @property
    def all_terms(self) -> tuple[str, ...]:
        return (self.ingredient, *self.aliases)


class AllergenCheck(BaseModel):
    found: bool
    matches: List[str] = Field(default_factory=list)


class IngredientFilterResult(BaseModel):
    safe: List[str] = Field(default_factory=list)
    unsafe: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class RecipeValidation(BaseModel):
    is_safe: bool
    warnings: List[str] = Field(default_factory=list)


class ComplianceResult(BaseModel):
    compliant: bool
    violations: List[str] = Field(default_factory=list)


# ============================================================================
# External call outcomes
# ============================================================================


class ExternalStatus(str, Enum):
    SUCCESS = "success"
    NOT_CONFIGURED = "not_configured"
    FAILURE = "failure"


class ExternalResult(BaseModel, Generic[T]):
    """Outcome of a call to an external service.

    Distinguishes a service that is not configured from one that failed
    (error, timeout, malformed response) and from a successful call, so
    callers can apply their fallback policy explicitly.
    """

    status: ExternalStatus
    value: Optional[T] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == ExternalStatus.SUCCESS

    @classmethod
    def success(cls, value: T) -> "ExternalResult[T]":
        return cls(status=ExternalStatus.SUCCESS, value=value)

    @classmethod
    def not_configured(cls, reason: str) -> "ExternalResult[T]":
        return cls(status=ExternalStatus.NOT_CONFIGURED, error=reason)

    @classmethod
    def failure(cls, error: str) -> "ExternalResult[T]":
        return cls(status=ExternalStatus.FAILURE, error=error)
