"""Expose the ORM models at package level.

Importing this package registers both tables on ``Base.metadata`` so
``init_models`` and the tests can create the schema in one call.
"""

from .base import Base  # noqa: F401
from .dishes import Dish  # noqa: F401
from .ingredients import Ingredient  # noqa: F401
