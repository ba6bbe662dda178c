"""Value Objects for the domain layer.

Prices are kept as Decimal amounts in major currency units and rounded
to the currency's minor unit with half-up rounding, so repeated
resolution of the same input always yields the same amounts.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Self

from storefront.domain.base import ValueObject
from storefront.domain.exceptions import InvalidPriceRangeError
from storefront.infrastructure import config

ZERO = Decimal("0")
HUNDRED = Decimal("100")


# ============================================================================
# Price helpers
# ============================================================================


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    """Convert a numeric value to Decimal without binary float noise.

    Args:
        value: Amount as Decimal, int, float or numeric string.

    Returns:
        Decimal amount.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def round_price(amount: Decimal, places: int = 2) -> Decimal:
    """Round an amount to the currency minor unit.

    Args:
        amount: Amount in major units.
        places: Number of decimal places of the currency.

    Returns:
        Amount quantized with half-up rounding, never negative.
    """
    quantum = Decimal(1).scaleb(-places)
    rounded = to_decimal(amount).quantize(quantum, rounding=ROUND_HALF_UP)
    if rounded < ZERO:
        return ZERO.quantize(quantum)
    return rounded


# ============================================================================
# Price Range
# ============================================================================


@dataclass(frozen=True)
class PriceRange(ValueObject):
    """Inclusive range of prices.

    Attributes:
        min: Lowest price.
        max: Highest price.
    """

    min: Decimal
    max: Decimal

    def __post_init__(self) -> None:
        """Validate and normalize bounds."""
        object.__setattr__(self, "min", to_decimal(self.min))
        object.__setattr__(self, "max", to_decimal(self.max))
        if self.min > self.max:
            raise InvalidPriceRangeError(self.min, self.max)

    @classmethod
    def single(cls, amount: Decimal) -> Self:
        """Create a degenerate range holding one price.

        Args:
            amount: The only price.

        Returns:
            PriceRange with equal bounds.
        """
        return cls(min=amount, max=amount)

    @classmethod
    def empty(cls) -> Self:
        """Create the range reported for an empty collection.

        Returns:
            PriceRange from zero to zero.
        """
        return cls(min=ZERO, max=ZERO)

    @classmethod
    def spanning(cls, amounts: list[Decimal]) -> Self:
        """Create the smallest range containing every amount.

        Args:
            amounts: Non-empty list of prices.

        Returns:
            PriceRange covering all amounts.
        """
        return cls(min=min(amounts), max=max(amounts))

    @property
    def has_range(self) -> bool:
        """Check whether the bounds differ."""
        return self.min != self.max

    def contains(self, amount: Decimal) -> bool:
        """Check if an amount falls within the inclusive bounds.

        Args:
            amount: Price to test.

        Returns:
            True if min <= amount <= max.
        """
        return self.min <= amount <= self.max

    def union(self, other: "PriceRange") -> "PriceRange":
        """Combine two ranges into one covering both.

        Args:
            other: Range to merge.

        Returns:
            New PriceRange spanning both ranges.
        """
        return PriceRange(min=min(self.min, other.min), max=max(self.max, other.max))

    def format(self, currency: str | None = None, places: int | None = None) -> str:
        """Format the range for display.

        Args:
            currency: Currency code appended to the amounts, defaults to settings.
            places: Number of decimal places shown, defaults to settings.

        Returns:
            "min - max CUR" or "amount CUR" when the range is degenerate.
        """
        currency = config.settings.currency if currency is None else currency
        places = config.settings.price_decimal_places if places is None else places
        if self.has_range:
            return f"{self.min:.{places}f} - {self.max:.{places}f} {currency}"
        return f"{self.min:.{places}f} {currency}"

    def __str__(self) -> str:
        return self.format()


# ============================================================================
# Stock Statistics
# ============================================================================


@dataclass(frozen=True)
class StockStatistics(ValueObject):
    """Stock summary over a collection of products.

    Attributes:
        total_products: Number of products considered.
        in_stock_products: Products with at least one unit available.
        out_of_stock_products: Products with nothing available.
        total_stock: Units available across in-stock products.
    """

    total_products: int
    in_stock_products: int
    out_of_stock_products: int
    total_stock: int

    @property
    def in_stock_percentage(self) -> Decimal:
        """Share of in-stock products, in percent (0 for no products)."""
        if self.total_products == 0:
            return round_price(ZERO)
        return round_price(Decimal(self.in_stock_products) / self.total_products * HUNDRED)
