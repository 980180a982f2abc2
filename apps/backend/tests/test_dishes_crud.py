"""Tests for the dish store gateway against an in-memory SQLite database."""

import uuid
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import DishValidationError, PersistenceError
from crud.dishes import dish_crud, validate_dish_input
from models.dishes import Dish
from models.ingredients import Ingredient
from schemas.dishes import IngredientIn, Metric


async def _count(db: AsyncSession, model) -> int:
    result = await db.execute(select(func.count()).select_from(model))
    return result.scalar_one()


def _fail_on_flush(db: AsyncSession, monkeypatch, failing_call: int) -> None:
    """Make the n-th explicit flush raise as if the connection dropped."""
    real_flush = db.flush
    calls = 0

    async def flaky_flush(*args, **kwargs):
        nonlocal calls
        calls += 1
        if calls == failing_call:
            raise OperationalError("INSERT", {}, Exception("connection reset"))
        return await real_flush(*args, **kwargs)

    monkeypatch.setattr(db, "flush", flaky_flush)


class TestValidateDishInput:
    def test_strips_name_and_ingredient_names(self) -> None:
        name, rows = validate_dish_input(
            "  Pancakes ", 4, [IngredientIn(name=" Flour ", quantity=200)]
        )

        assert name == "Pancakes"
        assert [r.name for r in rows] == ["Flour"]
        assert rows[0].metric is Metric.GRAMS

    def test_drops_draft_rows(self) -> None:
        _, rows = validate_dish_input(
            "Soup",
            2,
            [
                IngredientIn(name="Water", quantity=1, metric=Metric.LITERS),
                IngredientIn(name="", quantity=5),
                IngredientIn(name="   ", quantity=5),
                IngredientIn(name="Salt"),
                IngredientIn(name="Pepper", quantity=0),
                IngredientIn(name="Oil", quantity=-1),
            ],
        )

        assert [r.name for r in rows] == ["Water"]

    @pytest.mark.parametrize("name", ["", "   "])
    def test_rejects_blank_name(self, name: str, pancake_ingredients) -> None:
        with pytest.raises(DishValidationError, match="name"):
            validate_dish_input(name, 4, pancake_ingredients)

    @pytest.mark.parametrize("servings", [0, -2])
    def test_rejects_non_positive_servings(
        self, servings: int, pancake_ingredients
    ) -> None:
        with pytest.raises(DishValidationError, match="servings"):
            validate_dish_input("Pancakes", servings, pancake_ingredients)

    def test_rejects_when_no_valid_ingredient(self) -> None:
        with pytest.raises(DishValidationError, match="ingredient"):
            validate_dish_input("Pancakes", 4, [IngredientIn(name="", quantity=1)])


@pytest.mark.asyncio
class TestCreate:
    async def test_create_persists_dish_and_ingredients(
        self, db_session: AsyncSession, pancake_ingredients
    ) -> None:
        dish = await dish_crud.create(db_session, "Pancakes", 4, pancake_ingredients)

        assert isinstance(dish.id, uuid.UUID)
        assert dish.name == "Pancakes"
        assert dish.base_servings == 4
        assert dish.created_at is not None
        assert [(i.name, i.quantity, i.metric) for i in dish.ingredients] == [
            ("Flour", 200.0, Metric.GRAMS),
            ("Milk", 300.0, Metric.MILLILITERS),
        ]
        assert all(i.dish_id == dish.id for i in dish.ingredients)
        assert await _count(db_session, Ingredient) == 2

    async def test_create_skips_blank_rows(self, db_session: AsyncSession) -> None:
        dish = await dish_crud.create(
            db_session,
            "Tea",
            1,
            [
                IngredientIn(name="Water", quantity=250, metric=Metric.MILLILITERS),
                IngredientIn(),
                IngredientIn(),
            ],
        )

        assert [i.name for i in dish.ingredients] == ["Water"]

    async def test_invalid_input_writes_nothing(
        self, db_session: AsyncSession
    ) -> None:
        with pytest.raises(DishValidationError):
            await dish_crud.create(db_session, "Empty", 2, [IngredientIn()])

        assert await _count(db_session, Dish) == 0

    async def test_failed_ingredient_insert_leaves_no_dish(
        self, db_session: AsyncSession, pancake_ingredients, monkeypatch
    ) -> None:
        # First flush inserts the dish, second the ingredients
        _fail_on_flush(db_session, monkeypatch, failing_call=2)

        with pytest.raises(PersistenceError) as exc_info:
            await dish_crud.create(db_session, "Pancakes", 4, pancake_ingredients)

        assert isinstance(exc_info.value.__cause__, OperationalError)
        monkeypatch.undo()
        assert await _count(db_session, Dish) == 0
        assert await _count(db_session, Ingredient) == 0


@pytest.mark.asyncio
class TestSearch:
    async def _seed(self, db: AsyncSession) -> None:
        for name in ("Pancakes", "Banana Bread", "Potato Pancakes", "100% Rye"):
            await dish_crud.create(db, name, 2, [IngredientIn(name="Flour", quantity=1)])

    async def test_empty_term_returns_every_dish_ordered(
        self, db_session: AsyncSession
    ) -> None:
        await self._seed(db_session)

        dishes = await dish_crud.search(db_session, "")

        assert [d.name for d in dishes] == [
            "100% Rye",
            "Banana Bread",
            "Pancakes",
            "Potato Pancakes",
        ]

    async def test_term_is_case_insensitive_substring(
        self, db_session: AsyncSession
    ) -> None:
        await self._seed(db_session)

        dishes = await dish_crud.search(db_session, "PANCAKE")

        assert [d.name for d in dishes] == ["Pancakes", "Potato Pancakes"]

    async def test_results_include_ingredients(self, db_session: AsyncSession) -> None:
        await self._seed(db_session)

        dishes = await dish_crud.search(db_session, "banana")

        assert len(dishes) == 1
        assert [i.name for i in dishes[0].ingredients] == ["Flour"]

    async def test_wildcards_match_literally(self, db_session: AsyncSession) -> None:
        await self._seed(db_session)

        assert [d.name for d in await dish_crud.search(db_session, "%")] == [
            "100% Rye"
        ]
        assert await dish_crud.search(db_session, "_") == []

    async def test_no_match(self, db_session: AsyncSession) -> None:
        await self._seed(db_session)

        assert await dish_crud.search(db_session, "lasagna") == []

    async def test_whitespace_in_term_is_significant(
        self, db_session: AsyncSession
    ) -> None:
        for name in ("Pancakes", "Carrot cake"):
            await dish_crud.create(
                db_session, name, 2, [IngredientIn(name="Egg", quantity=1)]
            )

        assert [d.name for d in await dish_crud.search(db_session, " cake")] == [
            "Carrot cake"
        ]
        assert [d.name for d in await dish_crud.search(db_session, " ")] == [
            "Carrot cake"
        ]

    async def test_store_failure_raises_persistence_error(self) -> None:
        db = AsyncMock(spec=AsyncSession)
        db.execute.side_effect = OperationalError("SELECT", {}, Exception("down"))

        with pytest.raises(PersistenceError):
            await dish_crud.search(db, "x")


@pytest.mark.asyncio
class TestGetById:
    async def test_returns_dish_with_ingredients(
        self, db_session: AsyncSession, pancake_ingredients
    ) -> None:
        created = await dish_crud.create(
            db_session, "Pancakes", 4, pancake_ingredients
        )

        found = await dish_crud.get_by_id(db_session, created.id)

        assert found is not None
        assert found.id == created.id
        assert {i.name for i in found.ingredients} == {"Flour", "Milk"}

    async def test_missing_dish_returns_none(self, db_session: AsyncSession) -> None:
        assert await dish_crud.get_by_id(db_session, uuid.uuid4()) is None

    async def test_store_failure_raises_persistence_error(self) -> None:
        db = AsyncMock(spec=AsyncSession)
        db.execute.side_effect = OperationalError("SELECT", {}, Exception("down"))

        with pytest.raises(PersistenceError):
            await dish_crud.get_by_id(db, uuid.uuid4())


@pytest.mark.asyncio
class TestUpdate:
    async def test_update_replaces_everything(
        self, db_session: AsyncSession, pancake_ingredients
    ) -> None:
        created = await dish_crud.create(
            db_session, "Pancakes", 4, pancake_ingredients
        )
        dish_id = created.id
        old_ids = {i.id for i in created.ingredients}
        new_rows = [
            # Carrying an old id must not keep that row
            IngredientIn(
                id=next(iter(old_ids)), name="Flour", quantity=250, metric=Metric.GRAMS
            ),
            IngredientIn(name="Eggs", quantity=2, metric=Metric.PIECES),
            IngredientIn(name="Butter", quantity=1, metric=Metric.TABLESPOONS),
        ]

        updated = await dish_crud.update(
            db_session, dish_id, "Fluffy Pancakes", 6, new_rows
        )
        fetched = await dish_crud.get_by_id(db_session, dish_id)

        assert updated is not None and fetched is not None
        assert fetched.name == "Fluffy Pancakes"
        assert fetched.base_servings == 6
        assert sorted((i.name, i.quantity, i.metric) for i in fetched.ingredients) == [
            ("Butter", 1.0, Metric.TABLESPOONS),
            ("Eggs", 2.0, Metric.PIECES),
            ("Flour", 250.0, Metric.GRAMS),
        ]
        assert old_ids.isdisjoint({i.id for i in fetched.ingredients})
        assert await _count(db_session, Ingredient) == 3

    async def test_update_missing_dish_returns_none(
        self, db_session: AsyncSession, pancake_ingredients
    ) -> None:
        result = await dish_crud.update(
            db_session, uuid.uuid4(), "Ghost", 2, pancake_ingredients
        )

        assert result is None
        assert await _count(db_session, Ingredient) == 0

    async def test_invalid_update_leaves_dish_untouched(
        self, db_session: AsyncSession, pancake_ingredients
    ) -> None:
        created = await dish_crud.create(
            db_session, "Pancakes", 4, pancake_ingredients
        )

        with pytest.raises(DishValidationError):
            await dish_crud.update(db_session, created.id, "Pancakes", 0, [])

        fetched = await dish_crud.get_by_id(db_session, created.id)
        assert fetched is not None
        assert fetched.base_servings == 4
        assert len(fetched.ingredients) == 2

    async def test_failed_insert_keeps_previous_ingredients(
        self, db_session: AsyncSession, pancake_ingredients, monkeypatch
    ) -> None:
        created = await dish_crud.create(
            db_session, "Pancakes", 4, pancake_ingredients
        )
        dish_id = created.id
        old_ids = {i.id for i in created.ingredients}

        # First flush writes the dish row, second the replacement ingredients
        _fail_on_flush(db_session, monkeypatch, failing_call=2)
        with pytest.raises(PersistenceError):
            await dish_crud.update(
                db_session,
                dish_id,
                "Crepes",
                2,
                [IngredientIn(name="Flour", quantity=100)],
            )
        monkeypatch.undo()

        fetched = await dish_crud.get_by_id(db_session, dish_id)
        assert fetched is not None
        assert fetched.name == "Pancakes"
        assert fetched.base_servings == 4
        assert {i.id for i in fetched.ingredients} == old_ids
