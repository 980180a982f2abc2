class DomainError(Exception):
    """Base class for domain-specific errors."""

    pass


class DishValidationError(DomainError):
    """Caller-supplied dish data failed a precondition.

    Raised before any store interaction; never retried.
    """

    pass


class PersistenceError(DomainError):
    """The database rejected or failed to complete an operation.

    The original ``SQLAlchemyError`` is chained as ``__cause__``.
    """

    pass
