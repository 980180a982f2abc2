from datetime import datetime
from enum import Enum
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


MAX_TARGET_SERVINGS = 10_000


class Metric(str, Enum):
    """Measurement unit an ingredient quantity is expressed in."""

    GRAMS = "grams"
    KILOGRAMS = "kilograms"
    POUNDS = "pounds"
    TABLESPOONS = "tbsp"
    TEASPOONS = "tsp"
    MILLILITERS = "ml"
    LITERS = "liters"
    FLUID_OUNCES = "fl oz"
    CUPS = "cups"
    PIECES = "pieces"


class IngredientIn(BaseModel):
    """Request model for one ingredient row of a dish.

    Rows mirror a form: a blank name or a missing/non-positive quantity marks
    a draft row, which the gateway drops instead of rejecting the request.
    """

    id: UUID | None = Field(
        default=None,
        description="Identifier of a previously saved row; ignored on update",
    )
    name: str = Field(default="", max_length=255, description="Ingredient name")
    quantity: float | None = Field(
        default=None, description="Quantity for the dish's base servings"
    )
    metric: Metric = Field(default=Metric.GRAMS, description="Unit for quantity")

    model_config = ConfigDict(extra="forbid")


class IngredientOut(BaseModel):
    """Response model for a persisted ingredient."""

    id: UUID
    dish_id: UUID
    name: str
    quantity: float
    metric: Metric
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class DishBase(BaseModel):
    """Shared fields for dish writes."""

    name: Annotated[str, Field(max_length=255, description="Dish name")]
    base_servings: Annotated[
        int, Field(description="Servings the ingredient quantities are for")
    ]
    ingredients: list[IngredientIn] = Field(
        default_factory=list, description="Ingredient rows"
    )

    model_config = ConfigDict(extra="forbid")


class DishCreate(DishBase):
    """Request model for creating a dish."""


class DishUpdate(DishBase):
    """Request model for a full dish update (ingredients are replaced)."""


class DishOut(BaseModel):
    """Response model for a dish with its ingredients."""

    id: UUID
    name: str
    base_servings: int
    created_at: datetime | None = None
    updated_at: datetime | None = None
    ingredients: list[IngredientOut] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class ScaledIngredient(BaseModel):
    """Ingredient quantity recomputed for a different serving count."""

    name: str
    quantity: float
    metric: Metric


class ScaleRequest(BaseModel):
    """Request body for scaling a saved dish."""

    target_servings: Annotated[
        int,
        Field(
            gt=0, le=MAX_TARGET_SERVINGS, description="Number of people to serve"
        ),
    ]

    model_config = ConfigDict(extra="forbid")


class ScaledDishOut(BaseModel):
    """A dish's ingredients scaled to a target serving count."""

    dish_id: UUID
    name: str
    base_servings: int
    target_servings: int
    factor: float
    ingredients: list[ScaledIngredient]
