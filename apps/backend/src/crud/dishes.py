"""CRUD operations for dishes and their ingredients.

Create and update are multi-row writes (dish row, then ingredient rows). Each
runs in a single session transaction: rows are flushed step by step and
committed once, so a failure part-way rolls the whole sequence back instead
of leaving a dish without ingredients.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from core.error_handler import StructuredLogger
from core.exceptions import DishValidationError, PersistenceError
from models.dishes import Dish
from models.ingredients import Ingredient
from schemas.dishes import IngredientIn, Metric


logger = StructuredLogger(__name__)


@dataclass(frozen=True)
class _IngredientRow:
    name: str
    quantity: float
    metric: Metric


def _clean_ingredients(ingredients: Sequence[IngredientIn]) -> list[_IngredientRow]:
    """Drop draft rows (blank name, missing or non-positive quantity)."""
    rows: list[_IngredientRow] = []
    for ing in ingredients:
        name = (ing.name or "").strip()
        if not name or ing.quantity is None or not ing.quantity > 0:
            continue
        rows.append(_IngredientRow(name=name, quantity=ing.quantity, metric=ing.metric))
    return rows


def validate_dish_input(
    name: str, base_servings: int, ingredients: Sequence[IngredientIn]
) -> tuple[str, list[_IngredientRow]]:
    """Normalize dish input, raising DishValidationError when unusable.

    Returns the stripped dish name and the ingredient rows worth persisting.
    """
    clean_name = (name or "").strip()
    if not clean_name:
        raise DishValidationError("Dish name is required")
    if (
        isinstance(base_servings, bool)
        or not isinstance(base_servings, int)
        or base_servings <= 0
    ):
        raise DishValidationError("Base servings must be a positive whole number")

    rows = _clean_ingredients(ingredients)
    if not rows:
        raise DishValidationError("At least one valid ingredient is required")
    return clean_name, rows


class DishCRUD:
    """CRUD operations for dishes."""

    def _with_ingredients(self):
        return select(Dish).options(selectinload(Dish.ingredients))

    async def _load(self, db: AsyncSession, dish_id: UUID) -> Dish | None:
        statement = (
            self._with_ingredients()
            .where(Dish.id == dish_id)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(statement)
        return result.scalar_one_or_none()

    def _add_ingredients(
        self, db: AsyncSession, dish_id: UUID, rows: list[_IngredientRow]
    ) -> None:
        db.add_all(
            Ingredient(
                dish_id=dish_id, name=row.name, quantity=row.quantity, metric=row.metric
            )
            for row in rows
        )

    async def create(
        self,
        db: AsyncSession,
        name: str,
        base_servings: int,
        ingredients: Sequence[IngredientIn],
    ) -> Dish:
        """Create a dish together with its ingredients.

        Raises:
            DishValidationError: If the input is unusable (nothing is written).
            PersistenceError: If any insert fails; nothing is kept.
        """
        clean_name, rows = validate_dish_input(name, base_servings, ingredients)

        try:
            dish = Dish(name=clean_name, base_servings=base_servings)
            db.add(dish)
            await db.flush()  # Assigns the id without committing

            self._add_ingredients(db, dish.id, rows)
            await db.flush()
            await db.commit()

            created = await self._load(db, dish.id)
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.error("Failed to create dish", error=str(exc))
            raise PersistenceError("Could not save dish") from exc

        if created is None:
            raise PersistenceError("Dish vanished after commit")

        logger.info("Dish created", dish_id=str(created.id), ingredient_count=len(rows))
        return created

    async def search(self, db: AsyncSession, term: str = "") -> list[Dish]:
        """Return dishes whose name contains ``term``, case-insensitively.

        The term is matched as given, whitespace included; an empty term
        matches every dish. Results are ordered by name.
        """
        statement = self._with_ingredients().order_by(Dish.name)
        if term:
            statement = statement.where(Dish.name.icontains(term, autoescape=True))

        try:
            result = await db.execute(statement)
        except SQLAlchemyError as exc:
            logger.error("Dish search failed", error=str(exc))
            raise PersistenceError("Could not search dishes") from exc
        return list(result.scalars().all())

    async def get_by_id(self, db: AsyncSession, dish_id: UUID) -> Dish | None:
        """Get a dish with its ingredients, or None if it does not exist."""
        try:
            return await self._load(db, dish_id)
        except SQLAlchemyError as exc:
            logger.error("Dish lookup failed", dish_id=str(dish_id), error=str(exc))
            raise PersistenceError("Could not load dish") from exc

    async def update(
        self,
        db: AsyncSession,
        dish_id: UUID,
        name: str,
        base_servings: int,
        ingredients: Sequence[IngredientIn],
    ) -> Dish | None:
        """Replace a dish's name, servings and full ingredient set.

        Existing ingredient rows are deleted and the supplied ones inserted
        with fresh ids; an ``id`` carried on an input row is not reused.
        Returns None when no dish has ``dish_id``.
        """
        clean_name, rows = validate_dish_input(name, base_servings, ingredients)

        try:
            dish = await db.get(Dish, dish_id)
            if dish is None:
                return None

            dish.name = clean_name
            dish.base_servings = base_servings
            await db.flush()

            await db.execute(delete(Ingredient).where(Ingredient.dish_id == dish_id))
            self._add_ingredients(db, dish_id, rows)
            await db.flush()
            await db.commit()

            updated = await self._load(db, dish_id)
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.error("Failed to update dish", dish_id=str(dish_id), error=str(exc))
            raise PersistenceError("Could not update dish") from exc

        logger.info("Dish updated", dish_id=str(dish_id), ingredient_count=len(rows))
        return updated


# Singleton instance to use across the application
dish_crud = DishCRUD()
