import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String, Uuid, func
from sqlalchemy.orm import relationship

from .base import Base


class Dish(Base):
    __tablename__ = "dishes"
    __table_args__ = (
        CheckConstraint("base_servings > 0", name="ck_dishes_base_servings_positive"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, index=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False, index=True)
    # Serving count the stored ingredient quantities are calibrated against
    base_servings = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    ingredients = relationship(
        "Ingredient",
        back_populates="dish",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Ingredient.name",
    )
