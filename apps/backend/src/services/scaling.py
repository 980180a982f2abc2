"""Proportional scaling of ingredient quantities to a new serving count.

Quantities are multiplied by ``target / original`` and rounded to two
decimal places, half away from zero. The arithmetic runs on ``Decimal`` built
from each value's shortest repr, so the rounding sees the number as written
(``1.005`` rounds to ``1.01``) rather than its binary approximation.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Protocol

from schemas.dishes import Metric, ScaledDishOut, ScaledIngredient


QUANTITY_PRECISION = Decimal("0.01")
FACTOR_PRECISION = Decimal("0.0001")


class _Quantified(Protocol):
    name: str
    quantity: float
    metric: Metric


class _ScalableDish(Protocol):
    id: object
    name: str
    base_servings: int
    ingredients: list


def _to_decimal(value: float | int | Decimal) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(repr(value))


def _round(value: Decimal, precision: Decimal) -> Decimal:
    with localcontext() as ctx:
        # quantize needs room for every integer digit plus the kept decimals
        ctx.prec = max(ctx.prec, value.adjusted() - precision.as_tuple().exponent + 1)
        return value.quantize(precision, rounding=ROUND_HALF_UP)


def scale_quantity(
    quantity: float | Decimal, original_servings: int, target_servings: int
) -> float:
    """Scale one quantity and round it to two decimal places.

    Raises:
        ZeroDivisionError: If ``original_servings`` is zero.
    """
    if original_servings == 0:
        raise ZeroDivisionError("original_servings must not be zero")
    scaled = (
        _to_decimal(quantity)
        * _to_decimal(target_servings)
        / _to_decimal(original_servings)
    )
    return float(_round(scaled, QUANTITY_PRECISION))


def scale_ingredients(
    ingredients: Iterable[_Quantified], original_servings: int, target_servings: int
) -> list[ScaledIngredient]:
    """Return each ingredient scaled from ``original_servings`` to ``target_servings``.

    Output order and length match the input. ``target_servings`` is not
    validated here; callers reject non-positive values before calling.
    """
    return [
        ScaledIngredient(
            name=ing.name,
            quantity=scale_quantity(ing.quantity, original_servings, target_servings),
            metric=ing.metric,
        )
        for ing in ingredients
    ]


def scale_dish(dish: _ScalableDish, target_servings: int) -> ScaledDishOut:
    """Scale a loaded dish (ingredients attached) to ``target_servings``."""
    factor = _round(
        _to_decimal(target_servings) / _to_decimal(dish.base_servings),
        FACTOR_PRECISION,
    )
    return ScaledDishOut(
        dish_id=dish.id,
        name=dish.name,
        base_servings=dish.base_servings,
        target_servings=target_servings,
        factor=float(factor),
        ingredients=scale_ingredients(
            dish.ingredients, dish.base_servings, target_servings
        ),
    )
