"""Shared fixtures for catalog tests."""

from collections.abc import Callable
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from storefront.catalog import (
    AttributeAssignment,
    PriceResolver,
    PriceRule,
    RawProduct,
    RawVariant,
    ResolvedProduct,
)

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)

GROUP_IDS = {"Color": "10", "Size": "20"}
VALUE_IDS = {
    "Red": "101",
    "Blue": "102",
    "Green": "103",
    "S": "201",
    "M": "202",
    "L": "203",
}
SWATCHES = {"Red": "#FF0000", "Blue": "#0000FF", "Green": "#00FF00"}


def attribute(group: str, value: str) -> AttributeAssignment:
    """Build an attribute assignment with the fixed test ids."""
    return AttributeAssignment(
        group_id=GROUP_IDS[group],
        group_name=group,
        value_id=VALUE_IDS[value],
        value_name=value,
        color_swatch=SWATCHES.get(value) if group == "Color" else None,
    )


@pytest.fixture
def make_attribute() -> Callable[[str, str], AttributeAssignment]:
    """Factory for attribute assignments, e.g. make_attribute("Color", "Red")."""
    return attribute


@pytest.fixture
def now() -> datetime:
    """Fixed evaluation time."""
    return NOW


@pytest.fixture
def resolver() -> PriceResolver:
    """Resolver with a frozen clock."""
    return PriceResolver(clock=lambda: NOW)


@pytest.fixture
def make_variant() -> Callable[..., RawVariant]:
    """Factory for raw variants; keyword attributes map group to value."""

    def _make(
        variant_id: str,
        product_id: str = "1",
        price_delta: Decimal | int | float = 0,
        quantity: int = 5,
        is_default: bool = False,
        reference: str = "",
        **attributes: str,
    ) -> RawVariant:
        return RawVariant(
            id=variant_id,
            product_id=product_id,
            reference=reference or f"REF-{product_id}-{variant_id}",
            price_delta=price_delta,
            quantity=quantity,
            is_default=is_default,
            attributes=tuple(attribute(group, value) for group, value in attributes.items()),
        )

    return _make


@pytest.fixture
def make_product() -> Callable[..., RawProduct]:
    """Factory for raw products; simple unless variants are given."""

    def _make(
        product_id: str = "1",
        base_price: Decimal | int | float = 100,
        variants: tuple[RawVariant, ...] | list[RawVariant] = (),
        stock: int = 10,
        name: str | None = None,
        **fields,
    ) -> RawProduct:
        return RawProduct(
            id=product_id,
            name=name or f"Product {product_id}",
            description=fields.pop("description", f"Description of product {product_id}"),
            category_id=fields.pop("category_id", "3"),
            base_price=base_price,
            is_simple=not variants,
            variants=tuple(variants),
            simple_stock_quantity=stock if not variants else 0,
            **fields,
        )

    return _make


@pytest.fixture
def resolve(resolver: PriceResolver) -> Callable[..., ResolvedProduct]:
    """Resolve a raw product at the fixed evaluation time."""

    def _resolve(product: RawProduct, rules: list[PriceRule] | tuple = ()) -> ResolvedProduct:
        return resolver.resolve(product, rules, at=NOW)

    return _resolve


@pytest.fixture
def shirt(make_product, make_variant, resolve) -> ResolvedProduct:
    """T-shirt with {Red, S} and {Blue, L} variants."""
    return resolve(
        make_product(
            "7",
            base_price=20,
            name="Cotton T-Shirt",
            category_id="3",
            manufacturer_id="1",
            variants=[
                make_variant("71", "7", quantity=4, is_default=True, Color="Red", Size="S"),
                make_variant("72", "7", price_delta=5, quantity=0, Color="Blue", Size="L"),
            ],
        )
    )


@pytest.fixture
def catalog(make_product, make_variant, resolve, shirt) -> list[ResolvedProduct]:
    """Small mixed catalog: simple, variant-bearing, on sale and out of stock."""
    mug = resolve(
        make_product(
            "2",
            base_price=12,
            name="Ceramic Mug",
            category_id="4",
            manufacturer_id="2",
            reference="MUG-CER",
        )
    )
    poster = resolve(
        make_product(
            "5",
            base_price=30,
            name="Art Poster",
            description="Printed on matte paper",
            category_id="5",
            manufacturer_id="2",
            stock=0,
        ),
        [PriceRule(reduction_type="percentage", reduction_value=50)],
    )
    hoodie = resolve(
        make_product(
            "11",
            base_price=45,
            name="hoodie",
            category_id="3",
            manufacturer_id="3",
            variants=[
                make_variant("111", "11", quantity=2, is_default=True, Color="Green", Size="M"),
                make_variant("112", "11", price_delta=10, quantity=1, Color="Red", Size="L"),
            ],
        )
    )
    return [mug, shirt, poster, hoodie]
