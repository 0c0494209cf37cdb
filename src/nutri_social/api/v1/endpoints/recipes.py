"""Community recipe endpoints: sharing, favorites and ratings."""

from typing import Annotated

from fastapi import APIRouter, Query, Response, status

from nutri_social.api.v1.dependencies import (
    CurrentUserDep,
    InteractionServiceDep,
    ListingServiceDep,
)
from nutri_social.schemas.common import FavoriteState
from nutri_social.schemas.recipe import (
    RatingCreate,
    RatingResponse,
    RecipeCreate,
    RecipeResponse,
    RecipeUpdate,
)
from nutri_social.services.listings import to_recipe_response

router = APIRouter(prefix="/recipes", tags=["recipes"])


@router.get("", response_model=list[RecipeResponse])
async def list_recipes(
    current_user: CurrentUserDep,
    listings: ListingServiceDep,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int | None, Query(ge=1)] = None,
) -> list[RecipeResponse]:
    """List public recipes, newest first."""
    return listings.list_recipes(current_user.id, page=page, limit=limit)


@router.post("", response_model=RecipeResponse, status_code=status.HTTP_201_CREATED)
def create_recipe(
    recipe_data: RecipeCreate,
    current_user: CurrentUserDep,
    interactions: InteractionServiceDep,
) -> RecipeResponse:
    recipe = interactions.create_recipe(current_user.id, recipe_data)
    return to_recipe_response(recipe)


@router.get("/favorites", response_model=list[RecipeResponse])
async def list_favorite_recipes(
    current_user: CurrentUserDep,
    listings: ListingServiceDep,
) -> list[RecipeResponse]:
    """Recipes the current user has favorited."""
    return listings.list_user_favorite_recipes(current_user.id)


@router.get("/{recipe_id}", response_model=RecipeResponse)
async def get_recipe(
    recipe_id: int,
    current_user: CurrentUserDep,
    listings: ListingServiceDep,
) -> RecipeResponse:
    return listings.get_recipe(recipe_id, current_user.id)


@router.patch("/{recipe_id}", response_model=RecipeResponse)
def update_recipe(
    recipe_id: int,
    recipe_data: RecipeUpdate,
    current_user: CurrentUserDep,
    interactions: InteractionServiceDep,
    listings: ListingServiceDep,
) -> RecipeResponse:
    interactions.update_recipe(recipe_id, current_user.id, recipe_data)
    return listings.get_recipe(recipe_id, current_user.id)


@router.delete("/{recipe_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_recipe(
    recipe_id: int,
    current_user: CurrentUserDep,
    interactions: InteractionServiceDep,
) -> Response:
    interactions.delete_recipe(recipe_id, current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{recipe_id}/favorite", response_model=FavoriteState)
def toggle_recipe_favorite(
    recipe_id: int,
    current_user: CurrentUserDep,
    interactions: InteractionServiceDep,
) -> FavoriteState:
    """Favorite the recipe, or remove it from favorites."""
    return FavoriteState(favorited=interactions.toggle_recipe_favorite(recipe_id, current_user.id))


@router.post("/{recipe_id}/rate", response_model=RatingResponse)
def rate_recipe(
    recipe_id: int,
    rating_data: RatingCreate,
    current_user: CurrentUserDep,
    interactions: InteractionServiceDep,
) -> RatingResponse:
    """Create or replace the current user's rating of a recipe."""
    rating = interactions.rate_recipe(
        recipe_id, current_user.id, rating_data.rating, rating_data.comment
    )
    return RatingResponse.model_validate(rating)


@router.get("/{recipe_id}/ratings", response_model=list[RatingResponse])
async def list_ratings(
    recipe_id: int,
    current_user: CurrentUserDep,
    listings: ListingServiceDep,
) -> list[RatingResponse]:
    return listings.list_recipe_ratings(recipe_id, current_user.id)
