"""Domain-level exceptions.

All business rule violations are expressed as subclasses of DomainException
so the processing service can catch them uniformly and turn them into
failure results.  PersistenceError deliberately sits outside that hierarchy:
storage failures are fatal and must reach the caller.
"""

from __future__ import annotations


class DomainException(Exception):
    """Base class for all domain errors."""


class ValidationError(DomainException):
    """Input is missing or invalid.

    ``field_errors`` maps a field name to its messages when the failure can
    be attributed to specific inputs.
    """

    def __init__(
        self,
        message: str | None = None,
        field_errors: dict[str, list[str]] | None = None,
    ) -> None:
        self.field_errors: dict[str, list[str]] = field_errors or {}
        if message is None:
            message = "; ".join(
                msg for messages in self.field_errors.values() for msg in messages
            )
        super().__init__(message)

    @property
    def messages(self) -> list[str]:
        if not self.field_errors:
            return [str(self)]
        return [msg for messages in self.field_errors.values() for msg in messages]


class PreconditionError(DomainException):
    """A state-machine guard does not hold for the requested operation."""


class ResourceNotFoundError(DomainException):
    """A referenced store, user, product or order does not exist."""


class InsufficientInventoryError(DomainException):
    """Requested quantity exceeds what is available across all locations."""

    def __init__(
        self, product_id: str, product_name: str, requested: int, available: int
    ) -> None:
        self.product_id = product_id
        self.product_name = product_name
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient inventory for {product_name} "
            f"(need {requested}, have {available} available)"
        )


class PersistenceError(Exception):
    """Unexpected storage failure or a concurrent-write conflict."""
