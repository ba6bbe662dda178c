"""Catalog models.

Input records are pydantic models: they are the contract the
normalization layer has to satisfy (numbers arrive as numbers, text is
already reduced to one locale, attribute names are resolved). Resolved
records are frozen dataclasses produced by the PriceResolver and read
by the filter engine and the facet helpers.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator, model_validator

from storefront.domain.anomalies import DataAnomaly
from storefront.domain.exceptions import VariantNotFoundError
from storefront.domain.value_objects import PriceRange, to_decimal


def _coerce_amount(value: Any) -> Any:
    """Accept numbers only; floats go through str() to avoid binary noise."""
    if isinstance(value, (str, bytes, bool)):
        raise ValueError("amount must be a number, not text")
    if isinstance(value, (int, float)):
        return to_decimal(value)
    return value


Amount = Annotated[Decimal, BeforeValidator(_coerce_amount)]
Quantity = Annotated[int, Field(strict=True, ge=0)]


class RuleScope(str, Enum):
    """What a price rule applies to."""

    PRODUCT = "product"
    VARIANT = "variant"


class ReductionType(str, Enum):
    """How a price rule reduces the price."""

    PERCENTAGE = "percentage"
    ABSOLUTE = "absolute"


# ============================================================================
# Input records
# ============================================================================


class AttributeAssignment(BaseModel):
    """One value on one axis of variation (e.g. Color = Red)."""

    model_config = ConfigDict(frozen=True)

    group_id: str
    group_name: str
    value_id: str
    value_name: str
    color_swatch: str | None = Field(default=None, pattern=r"^#(?:[0-9a-fA-F]{3}){1,2}$")

    def matches_group(self, key: str) -> bool:
        """Check a filter key against the group id or, case-insensitively, its name."""
        return key == self.group_id or key.casefold() == self.group_name.casefold()

    def matches_value(self, value: str) -> bool:
        """Check a filter value against the value id or, case-insensitively, its name."""
        return value == self.value_id or value.casefold() == self.value_name.casefold()


class RawVariant(BaseModel):
    """A purchasable combination as delivered by the normalization layer."""

    model_config = ConfigDict(frozen=True)

    id: str
    product_id: str
    reference: str = ""
    price_delta: Amount = Decimal("0")
    quantity: Quantity = 0
    is_default: bool = False
    attributes: tuple[AttributeAssignment, ...] = ()

    @model_validator(mode="after")
    def _unique_groups(self) -> "RawVariant":
        group_ids = [attr.group_id for attr in self.attributes]
        if len(group_ids) != len(set(group_ids)):
            raise ValueError(f"variant {self.id} has more than one value for an attribute group")
        return self


class PriceRule(BaseModel):
    """A promotional (specific) price.

    The reduction type is kept as free text so that unknown types reach
    the resolver, which skips them and records a data anomaly.
    """

    model_config = ConfigDict(frozen=True)

    id: str | None = None
    scope: RuleScope = RuleScope.PRODUCT
    variant_id: str | None = None
    reduction_type: str
    reduction_value: Amount
    valid_from: datetime | None = None
    valid_to: datetime | None = None
    min_quantity: Annotated[int, Field(strict=True)] = 1

    @field_validator("valid_from", "valid_to")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @property
    def label(self) -> str:
        """Identifier used in diagnostics."""
        return self.id or f"{self.scope.value}:{self.variant_id or '*'}"


class RawProduct(BaseModel):
    """A product as delivered by the normalization layer.

    ``is_simple`` is an explicit discriminant: simple products carry
    their own stock quantity and no variants.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str = ""
    short_description: str = ""
    reference: str | None = None
    category_id: str
    extra_category_ids: tuple[str, ...] = ()
    manufacturer_id: str | None = None
    manufacturer_name: str | None = None
    base_price: Annotated[Amount, Field(ge=0)]
    is_simple: bool
    variants: tuple[RawVariant, ...] = ()
    default_variant_id: str | None = None
    simple_stock_quantity: Quantity = 0
    active: bool = True

    @model_validator(mode="after")
    def _simple_has_no_variants(self) -> "RawProduct":
        if self.is_simple and self.variants:
            raise ValueError(f"simple product {self.id} cannot carry variants")
        return self


# ============================================================================
# Resolved records
# ============================================================================


@dataclass(frozen=True)
class ResolvedVariant:
    """A variant with its effective price computed.

    Attributes:
        id: Variant identifier.
        product_id: Parent product identifier.
        reference: SKU-like label.
        price_delta: Signed amount added to the product base price.
        quantity: Units in stock.
        is_default: Whether upstream flags this variant as the default.
        attributes: Attribute values of this combination.
        unadjusted_price: Base price plus delta, clamped at zero and rounded.
        final_price: Price after the applicable rule, rounded.
        applied_rule_id: Label of the rule that produced final_price.
    """

    id: str
    product_id: str
    reference: str
    price_delta: Decimal
    quantity: int
    is_default: bool
    attributes: tuple[AttributeAssignment, ...]
    unadjusted_price: Decimal
    final_price: Decimal
    applied_rule_id: str | None = None

    @property
    def in_stock(self) -> bool:
        """Check if at least one unit is available."""
        return self.quantity > 0

    def attribute_for(self, group_id: str) -> AttributeAssignment | None:
        """Get the value this variant has for an attribute group.

        Args:
            group_id: Attribute group identifier.

        Returns:
            The assignment, or None if the variant has no value on that axis.
        """
        for attr in self.attributes:
            if attr.group_id == group_id:
                return attr
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary.

        Returns:
            Dictionary representation.
        """
        return {
            "id": self.id,
            "product_id": self.product_id,
            "reference": self.reference,
            "price_delta": str(self.price_delta),
            "unadjusted_price": str(self.unadjusted_price),
            "final_price": str(self.final_price),
            "quantity": self.quantity,
            "in_stock": self.in_stock,
            "is_default": self.is_default,
            "applied_rule_id": self.applied_rule_id,
            "attributes": [attr.model_dump() for attr in self.attributes],
        }


@dataclass(frozen=True)
class ResolvedProduct:
    """A product with effective prices and stock flags computed.

    Produced once per product by the PriceResolver; the filter engine
    and facet helpers only read it.

    Attributes:
        id: Product identifier.
        name: Display name.
        description: Long description.
        short_description: Short description.
        reference: Product reference (SKU-like).
        category_id: Primary category, the only one the category filter checks.
        extra_category_ids: Auxiliary categories.
        manufacturer_id: Brand identifier.
        manufacturer_name: Brand name.
        base_price: Unadjusted base price.
        is_simple: True if the product has no variants.
        variants: Resolved variants, empty when simple.
        simple_stock_quantity: Stock of a simple product.
        default_variant_id: Variant whose price is displayed.
        list_price: Unadjusted price of the displayed target.
        display_price: Effective price of the displayed target.
        price_range: Effective price range across variants.
        has_stock: Any unit available.
        all_in_stock: Every variant (or the simple product) available.
        total_stock: Units across variants, or simple quantity.
        on_sale: A rule lowered the displayed price.
        discount_percentage: Reduction of the displayed price in percent.
        applied_rule_id: Rule that priced the displayed target.
        active: Upstream active flag.
        anomalies: Data anomalies recorded while resolving.
    """

    id: str
    name: str
    description: str
    short_description: str
    reference: str | None
    category_id: str
    extra_category_ids: tuple[str, ...]
    manufacturer_id: str | None
    manufacturer_name: str | None
    base_price: Decimal
    is_simple: bool
    variants: tuple[ResolvedVariant, ...]
    simple_stock_quantity: int
    default_variant_id: str | None
    list_price: Decimal
    display_price: Decimal
    price_range: PriceRange
    has_stock: bool
    all_in_stock: bool
    total_stock: int
    on_sale: bool
    discount_percentage: Decimal | None = None
    applied_rule_id: str | None = None
    active: bool = True
    anomalies: tuple[DataAnomaly, ...] = field(default=(), compare=False)

    @property
    def default_variant(self) -> ResolvedVariant | None:
        """Get the variant whose price is displayed."""
        if self.default_variant_id is None:
            return None
        return self.find_variant(self.default_variant_id)

    def find_variant(self, variant_id: str) -> ResolvedVariant:
        """Get a variant by id.

        Args:
            variant_id: Variant identifier.

        Returns:
            The resolved variant.

        Raises:
            VariantNotFoundError: If the product has no such variant.
        """
        for variant in self.variants:
            if variant.id == variant_id:
                return variant
        raise VariantNotFoundError(self.id, variant_id)

    def priced_amounts(self) -> list[Decimal]:
        """Get every purchasable price of this product.

        Returns:
            The display price for a simple product, else each variant's final price.
        """
        if not self.variants:
            return [self.display_price]
        return [variant.final_price for variant in self.variants]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary.

        Returns:
            Dictionary representation.
        """
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "short_description": self.short_description,
            "reference": self.reference,
            "category_id": self.category_id,
            "extra_category_ids": list(self.extra_category_ids),
            "manufacturer_id": self.manufacturer_id,
            "manufacturer_name": self.manufacturer_name,
            "base_price": str(self.base_price),
            "is_simple": self.is_simple,
            "default_variant_id": self.default_variant_id,
            "list_price": str(self.list_price),
            "display_price": str(self.display_price),
            "price_range": {"min": str(self.price_range.min), "max": str(self.price_range.max)},
            "has_stock": self.has_stock,
            "all_in_stock": self.all_in_stock,
            "total_stock": self.total_stock,
            "on_sale": self.on_sale,
            "discount_percentage": (
                str(self.discount_percentage) if self.discount_percentage is not None else None
            ),
            "active": self.active,
            "variants": [variant.to_dict() for variant in self.variants],
            "anomalies": [anomaly.to_dict() for anomaly in self.anomalies],
        }
