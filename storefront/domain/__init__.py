"""Domain layer - value objects, data anomalies and exceptions.

- **Value Objects**: PriceRange, StockStatistics and price rounding
- **Anomalies**: non-fatal data-quality findings recorded during resolution
- **Exceptions**: invalid filter specifications and catalog lookups
"""

from storefront.domain.anomalies import AnomalyHook, AnomalyKind, DataAnomaly
from storefront.domain.base import DiagnosticRecord, ValueObject
from storefront.domain.exceptions import (
    CatalogError,
    DomainError,
    FilterError,
    InvalidFilterSpecError,
    InvalidPriceRangeError,
    InvalidQuantityError,
    PriceError,
    VariantNotFoundError,
)
from storefront.domain.value_objects import PriceRange, StockStatistics, round_price, to_decimal

__all__ = [
    # Base
    "DiagnosticRecord",
    "ValueObject",
    # Value objects
    "PriceRange",
    "StockStatistics",
    "round_price",
    "to_decimal",
    # Anomalies
    "AnomalyHook",
    "AnomalyKind",
    "DataAnomaly",
    # Exceptions
    "CatalogError",
    "DomainError",
    "FilterError",
    "InvalidFilterSpecError",
    "InvalidPriceRangeError",
    "InvalidQuantityError",
    "PriceError",
    "VariantNotFoundError",
]
