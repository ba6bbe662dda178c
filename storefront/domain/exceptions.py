"""Domain exceptions.

Errors that represent an invalid request against the catalog core.
Questionable product data is not an error: it is recorded as a
DataAnomaly next to a degraded-but-usable result.
"""

from typing import Any


class DomainError(Exception):
    """Base class for all domain exceptions.

    All domain errors inherit from this class so callers can catch
    catalog errors at the application layer.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize domain error.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


# ============================================================================
# Filter Errors
# ============================================================================


class FilterError(DomainError):
    """Base class for filter-related errors."""

    pass


class InvalidFilterSpecError(FilterError):
    """Raised when a filter specification cannot be evaluated.

    The engine never falls back to an empty or unfiltered result when
    this is raised; the caller has to fix the named field.
    """

    def __init__(self, field: str, reason: str, value: Any = None) -> None:
        """Initialize invalid filter spec error.

        Args:
            field: Name of the offending FilterSpec field.
            reason: Explanation of why the value is invalid.
            value: The rejected value.
        """
        super().__init__(
            f"Invalid filter field '{field}': {reason}",
            details={"field": field, "reason": reason, "value": repr(value)},
        )
        self.field = field
        self.reason = reason


# ============================================================================
# Catalog Errors
# ============================================================================


class CatalogError(DomainError):
    """Base class for catalog-related errors."""

    pass


class VariantNotFoundError(CatalogError):
    """Raised when a variant id is not part of a product."""

    def __init__(self, product_id: str, variant_id: str) -> None:
        """Initialize variant not found error.

        Args:
            product_id: ID of the product.
            variant_id: ID of the missing variant.
        """
        super().__init__(
            f"Variant {variant_id} not found on product {product_id}",
            details={"product_id": product_id, "variant_id": variant_id},
        )


class InvalidQuantityError(CatalogError):
    """Raised when an invalid purchase quantity is provided."""

    def __init__(self, quantity: int, reason: str = "Quantity must be positive") -> None:
        """Initialize invalid quantity error.

        Args:
            quantity: The invalid quantity value.
            reason: Explanation of why the quantity is invalid.
        """
        super().__init__(
            f"Invalid quantity {quantity}: {reason}",
            details={"quantity": quantity, "reason": reason},
        )


# ============================================================================
# Price Errors
# ============================================================================


class PriceError(DomainError):
    """Base class for price-related errors."""

    pass


class InvalidPriceRangeError(PriceError):
    """Raised when a price range has its bounds inverted."""

    def __init__(self, minimum: Any, maximum: Any) -> None:
        """Initialize invalid price range error.

        Args:
            minimum: Lower bound.
            maximum: Upper bound.
        """
        super().__init__(
            f"Price range minimum {minimum} is greater than maximum {maximum}",
            details={"min": str(minimum), "max": str(maximum)},
        )
