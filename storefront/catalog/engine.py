"""Product filter, sort and pagination engine.

Pure transformation over resolved products: no I/O, inputs are never
mutated. Predicates are AND-combined and applied cheapest first:

1. Stock (quick elimination)
2. Category / manufacturer membership
3. Price range (any purchasable price inside the bounds)
4. On sale
5. Free-text search
6. Attribute filters (most expensive)
"""

from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

import structlog

from storefront.catalog.filters import AttributeGroupsMode, FilterSpec, SortKey
from storefront.catalog.models import ResolvedProduct, ResolvedVariant
from storefront.domain.exceptions import InvalidFilterSpecError

logger = structlog.get_logger()


@dataclass(frozen=True)
class FilterResult:
    """One page of filtered products.

    Attributes:
        items: Products on this page.
        total: Matching products before pagination.
        offset: Effective (clamped) offset.
        limit: Requested limit, None for all.
    """

    items: list[ResolvedProduct]
    total: int
    offset: int = 0
    limit: int | None = None

    @property
    def has_more(self) -> bool:
        """Check if there are matches after this page."""
        return self.offset + len(self.items) < self.total

    @property
    def has_prev(self) -> bool:
        """Check if there are matches before this page."""
        return self.offset > 0 and self.total > 0


# ============================================================================
# Predicates
# ============================================================================


def in_price_range(
    product: ResolvedProduct,
    price_min: Decimal | None,
    price_max: Decimal | None,
) -> bool:
    """Check if any purchasable price of a product is within bounds.

    A multi-variant product matches when at least one variant fits.
    """
    for price in product.priced_amounts():
        if price_min is not None and price < price_min:
            continue
        if price_max is not None and price > price_max:
            continue
        return True
    return False


def variant_matches_attributes(
    variant: ResolvedVariant,
    attribute_filters: Mapping[str, Iterable[str]],
    mode: AttributeGroupsMode = AttributeGroupsMode.ALL,
) -> bool:
    """Check one variant against group -> accepted values constraints.

    Values within a group are alternatives; groups must all hold (ALL)
    or at least one must hold (ANY).
    """

    def group_holds(group: str, accepted: Iterable[str]) -> bool:
        return any(
            attr.matches_group(group) and any(attr.matches_value(v) for v in accepted)
            for attr in variant.attributes
        )

    checks = (group_holds(group, accepted) for group, accepted in attribute_filters.items())
    if mode is AttributeGroupsMode.ANY:
        return any(checks)
    return all(checks)


def matches_attributes(
    product: ResolvedProduct,
    attribute_filters: Mapping[str, Iterable[str]],
    mode: AttributeGroupsMode = AttributeGroupsMode.ALL,
) -> bool:
    """Check if a single variant of the product satisfies the constraints.

    Products without variants never match a non-empty filter.
    """
    if not attribute_filters:
        return True
    if product.is_simple or not product.variants:
        return False
    return any(
        variant_matches_attributes(variant, attribute_filters, mode)
        for variant in product.variants
    )


def matches_search(product: ResolvedProduct, search_text: str | None) -> bool:
    """Case-insensitive substring search in name, description and references."""
    if not search_text:
        return True
    needle = search_text.casefold()
    haystacks = [product.name, product.description, product.reference or ""]
    haystacks.extend(variant.reference for variant in product.variants)
    return any(needle in text.casefold() for text in haystacks)


def _stock_ok(product: ResolvedProduct, spec: FilterSpec) -> bool:
    if spec.in_stock_only and not product.has_stock:
        return False
    if spec.all_variants_in_stock_only and not product.all_in_stock:
        return False
    return True


def _membership_ok(product: ResolvedProduct, spec: FilterSpec) -> bool:
    if spec.category_ids and product.category_id not in spec.category_ids:
        return False
    if spec.manufacturer_ids and product.manufacturer_id not in spec.manufacturer_ids:
        return False
    return True


def _price_ok(product: ResolvedProduct, spec: FilterSpec) -> bool:
    if spec.price_min is None and spec.price_max is None:
        return True
    return in_price_range(product, spec.price_min, spec.price_max)


def _sale_ok(product: ResolvedProduct, spec: FilterSpec) -> bool:
    return product.on_sale or not spec.on_sale_only


def _search_ok(product: ResolvedProduct, spec: FilterSpec) -> bool:
    return matches_search(product, spec.search_text)


def _attributes_ok(product: ResolvedProduct, spec: FilterSpec) -> bool:
    return matches_attributes(product, spec.attribute_filters, spec.attribute_groups_mode)


Predicate = Callable[[ResolvedProduct, FilterSpec], bool]

PREDICATES: tuple[Predicate, ...] = (
    _stock_ok,
    _membership_ok,
    _price_ok,
    _sale_ok,
    _search_ok,
    _attributes_ok,
)


# ============================================================================
# Sorting
# ============================================================================


def id_sort_key(product_id: str) -> tuple[int, int, str]:
    """Order all-digit ids numerically, any other id after them as text.

    Signs, spaces and underscores make an id non-numeric.
    """
    if product_id.isdecimal():
        return (0, int(product_id), "")
    return (1, 0, product_id)


SORT_KEYS: dict[SortKey, Callable[[ResolvedProduct], Any]] = {
    SortKey.PRICE: lambda p: p.display_price,
    SortKey.NAME: lambda p: p.name.casefold(),
    SortKey.STOCK: lambda p: p.total_stock,
    SortKey.ID: lambda p: id_sort_key(p.id),
}


def sort_products(
    products: Iterable[ResolvedProduct],
    sort_key: SortKey | str,
    descending: bool = False,
) -> list[ResolvedProduct]:
    """Sort products stably with an ascending-id tie-break.

    Args:
        products: Products to sort (not mutated).
        sort_key: Key to sort by.
        descending: Reverse the key order (the tie-break stays ascending).

    Returns:
        New sorted list.
    """
    if not isinstance(sort_key, SortKey):
        sort_key = FilterSpec(sort_key=sort_key).sort_key
    ordered = sorted(products, key=lambda p: id_sort_key(p.id))
    # list.sort keeps equal elements in place even with reverse=True
    ordered.sort(key=SORT_KEYS[sort_key], reverse=descending)
    return ordered


def paginate(
    products: Sequence[ResolvedProduct],
    offset: int = 0,
    limit: int | None = None,
) -> tuple[list[ResolvedProduct], int]:
    """Cut a window out of a result list.

    Args:
        products: Filtered and sorted products.
        offset: Items to skip, clamped to [0, total].
        limit: Items to return, None for all.

    Returns:
        Tuple of (page items, clamped offset).
    """
    total = len(products)
    start = min(max(offset, 0), total)
    end = total if limit is None else min(start + max(limit, 0), total)
    return list(products[start:end]), start


# ============================================================================
# Engine
# ============================================================================


class ProductFilterEngine:
    """Filters, sorts and paginates resolved products.

    Example usage:
        engine = ProductFilterEngine()
        result = engine.filter(
            products,
            FilterSpec(in_stock_only=True, sort_key="price", limit=20),
        )
        print(result.total, [p.name for p in result.items])
    """

    def filter(
        self,
        products: Iterable[ResolvedProduct],
        spec: FilterSpec | Mapping[str, Any] | None = None,
    ) -> FilterResult:
        """Apply a filter specification.

        Args:
            products: Resolved products.
            spec: FilterSpec, or a plain mapping validated into one.

        Returns:
            FilterResult with the requested page and the total match count.

        Raises:
            InvalidFilterSpecError: If a filter field is invalid.
        """
        spec = self._coerce_spec(spec)
        matched = [p for p in products if self.matches(p, spec)]
        if spec.sort_key is not None:
            matched = sort_products(matched, spec.sort_key, spec.descending)

        items, offset = paginate(matched, spec.offset, spec.limit)
        logger.debug(
            "Products filtered",
            total=len(matched),
            returned=len(items),
            offset=offset,
            limit=spec.limit,
            sort_key=spec.sort_key.value if spec.sort_key else None,
        )
        return FilterResult(items=items, total=len(matched), offset=offset, limit=spec.limit)

    def matches(self, product: ResolvedProduct, spec: FilterSpec) -> bool:
        """Check one product against every predicate of a spec."""
        return all(predicate(product, spec) for predicate in PREDICATES)

    def count(
        self,
        products: Iterable[ResolvedProduct],
        spec: FilterSpec | Mapping[str, Any] | None = None,
    ) -> int:
        """Count matches without sorting or paginating."""
        spec = self._coerce_spec(spec)
        return sum(1 for p in products if self.matches(p, spec))

    # ------------------------------------------------------------------
    # Single-purpose filters
    # ------------------------------------------------------------------

    @staticmethod
    def filter_by_price_range(
        products: Iterable[ResolvedProduct],
        price_min: Decimal | int | float | None = None,
        price_max: Decimal | int | float | None = None,
    ) -> list[ResolvedProduct]:
        """Keep products with any purchasable price within bounds."""
        spec = FilterSpec(price_min=price_min, price_max=price_max)
        return [p for p in products if _price_ok(p, spec)]

    @staticmethod
    def filter_by_stock(
        products: Iterable[ResolvedProduct],
        any_in_stock: bool = True,
        all_in_stock: bool = False,
    ) -> list[ResolvedProduct]:
        """Keep products by stock availability."""
        if all_in_stock:
            return [p for p in products if p.all_in_stock]
        if any_in_stock:
            return [p for p in products if p.has_stock]
        return list(products)

    @staticmethod
    def filter_by_attributes(
        products: Iterable[ResolvedProduct],
        attribute_filters: Mapping[str, Iterable[str] | str],
        mode: AttributeGroupsMode | str = AttributeGroupsMode.ALL,
    ) -> list[ResolvedProduct]:
        """Keep products where one variant satisfies the attribute constraints."""
        spec = FilterSpec(attribute_filters=attribute_filters, attribute_groups_mode=mode)
        return [p for p in products if _attributes_ok(p, spec)]

    @staticmethod
    def sort_products(
        products: Iterable[ResolvedProduct],
        sort_key: SortKey | str,
        descending: bool = False,
    ) -> list[ResolvedProduct]:
        """Sort products; see ``sort_products``."""
        return sort_products(products, sort_key, descending)

    @staticmethod
    def _coerce_spec(spec: FilterSpec | Mapping[str, Any] | None) -> FilterSpec:
        if spec is None:
            return FilterSpec()
        if isinstance(spec, FilterSpec):
            return spec
        if isinstance(spec, Mapping):
            return FilterSpec.from_mapping(spec)
        raise InvalidFilterSpecError("spec", "expected a FilterSpec or a mapping", spec)
