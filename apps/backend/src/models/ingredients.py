import uuid

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Numeric,
    String,
    Uuid,
    func,
)
from sqlalchemy.orm import relationship

from schemas.dishes import Metric

from .base import Base


class Ingredient(Base):
    __tablename__ = "ingredients"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_ingredients_quantity_positive"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, index=True, default=uuid.uuid4)
    dish_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("dishes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = Column(String(255), nullable=False)
    quantity = Column(Numeric(asdecimal=False), nullable=False)
    # Stored by value ("fl oz", not "FL_OZ"); the CHECK constraint keeps the
    # column inside the Metric set even for writes that bypass the ORM.
    metric = Column(
        Enum(
            Metric,
            name="ingredient_metric",
            native_enum=False,
            create_constraint=True,
            length=16,
            validate_strings=True,
            values_callable=lambda enum_cls: [m.value for m in enum_cls],
        ),
        nullable=False,
        default=Metric.GRAMS,
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    dish = relationship("Dish", back_populates="ingredients")
