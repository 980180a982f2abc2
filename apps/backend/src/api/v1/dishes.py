"""Dishes API endpoints.

CRUD for dishes with their ingredients, plus scaling a saved dish to a
different number of servings. Domain errors raised by the gateway
(``DishValidationError``, ``PersistenceError``) propagate to the global
exception handler; a missing dish becomes a 404 here.
"""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status

from crud.dishes import dish_crud
from dependencies.db import DbSession
from models.dishes import Dish
from schemas.dishes import (
    DishCreate,
    DishOut,
    DishUpdate,
    Metric,
    ScaledDishOut,
    ScaleRequest,
)
from services.scaling import scale_dish


router = APIRouter(prefix="/dishes", tags=["dishes"])


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Dish not found")


def _dish_to_response(dish: Dish) -> DishOut:
    return DishOut.model_validate(dish)


@router.get(
    "/metrics",
    response_model=list[Metric],
    summary="List the units an ingredient quantity can use",
)
async def list_metrics() -> list[Metric]:
    return list(Metric)


@router.post(
    "/",
    response_model=DishOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new dish",
    description=(
        "Create a dish with its ingredients. Blank ingredient rows are "
        "ignored; at least one valid ingredient is required."
    ),
)
async def create_dish(dish_data: DishCreate, db: DbSession) -> DishOut:
    dish = await dish_crud.create(
        db,
        name=dish_data.name,
        base_servings=dish_data.base_servings,
        ingredients=dish_data.ingredients,
    )
    return _dish_to_response(dish)


@router.get(
    "/",
    response_model=list[DishOut],
    summary="Search dishes by name",
)
async def search_dishes(
    db: DbSession,
    search: Annotated[
        str,
        Query(
            max_length=255,
            description="Case-insensitive substring of the dish name; empty lists all",
        ),
    ] = "",
) -> list[DishOut]:
    # Surrounding whitespace typed into a search box is not part of the term
    dishes = await dish_crud.search(db, search.strip())
    return [_dish_to_response(d) for d in dishes]


@router.get("/{dish_id}", response_model=DishOut, summary="Get a dish by id")
async def get_dish(dish_id: UUID, db: DbSession) -> DishOut:
    dish = await dish_crud.get_by_id(db, dish_id)
    if dish is None:
        raise _not_found()
    return _dish_to_response(dish)


@router.put(
    "/{dish_id}",
    response_model=DishOut,
    summary="Replace a dish's details and ingredients",
)
async def update_dish(dish_id: UUID, dish_data: DishUpdate, db: DbSession) -> DishOut:
    dish = await dish_crud.update(
        db,
        dish_id,
        name=dish_data.name,
        base_servings=dish_data.base_servings,
        ingredients=dish_data.ingredients,
    )
    if dish is None:
        raise _not_found()
    return _dish_to_response(dish)


@router.post(
    "/{dish_id}/scale",
    response_model=ScaledDishOut,
    summary="Scale a dish's ingredients to a number of servings",
)
async def scale_saved_dish(
    dish_id: UUID, scale_request: ScaleRequest, db: DbSession
) -> ScaledDishOut:
    dish = await dish_crud.get_by_id(db, dish_id)
    if dish is None:
        raise _not_found()
    return scale_dish(dish, scale_request.target_servings)
