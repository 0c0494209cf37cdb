"""Community recipe Pydantic schemas."""

from pydantic import Field

from .common import CamelModel, UtcDateTime


class Macros(CamelModel):
    """Per-serving macro nutrients."""

    calories: float | None = Field(None, ge=0)
    protein: float | None = Field(None, ge=0)
    carbs: float | None = Field(None, ge=0)
    fats: float | None = Field(None, ge=0)


class RecipeCreate(CamelModel):
    """Schema for sharing a recipe with the community."""

    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    image_url: str | None = Field(None, max_length=2048)
    ingredients: list[str] = Field(..., min_length=1)
    instructions: list[str] = Field(..., min_length=1)
    prep_time: int = Field(0, ge=0, description="Minutes")
    cook_time: int = Field(0, ge=0, description="Minutes")
    servings: int = Field(1, ge=1)
    macros: Macros | None = None
    tags: list[str] | None = None
    diet_type: str | None = None
    is_public: bool = True


class RecipeUpdate(CamelModel):
    """Partial update of a recipe by its author."""

    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = None
    image_url: str | None = Field(None, max_length=2048)
    ingredients: list[str] | None = Field(None, min_length=1)
    instructions: list[str] | None = Field(None, min_length=1)
    prep_time: int | None = Field(None, ge=0)
    cook_time: int | None = Field(None, ge=0)
    servings: int | None = Field(None, ge=1)
    macros: Macros | None = None
    tags: list[str] | None = None
    diet_type: str | None = None
    is_public: bool | None = None


class RecipeResponse(CamelModel):
    """Schema for recipe information returned by the API."""

    id: int
    author_id: int
    title: str
    description: str | None
    image_url: str | None
    ingredients: list[str]
    instructions: list[str]
    prep_time: int
    cook_time: int
    servings: int
    macros: Macros | None
    tags: list[str] | None
    diet_type: str | None
    is_public: bool
    created_at: UtcDateTime
    updated_at: UtcDateTime
    favorited_by_me: bool = False
    average_rating: float | None = None
    ratings_count: int = 0


class RatingCreate(CamelModel):
    """A 1-5 star rating with an optional comment."""

    rating: int = Field(..., description="Whole stars from 1 to 5")
    comment: str | None = Field(None, max_length=2000)


class RatingResponse(CamelModel):
    """Schema for a recipe rating returned by the API."""

    id: int
    recipe_id: int
    user_id: int
    rating: int
    comment: str | None
    created_at: UtcDateTime
