"""Facet helpers for building filter UIs.

Read-only summaries of a product collection (available attribute
values, overall price range, stock counts) and the variant-picker
helpers that grey out attribute combinations with no stock-keeping
unit behind them.
"""

import hashlib
from collections import OrderedDict
from collections.abc import Callable, Hashable, Iterable, Mapping, Sequence
from typing import Any, TypeVar

import structlog

from storefront.catalog.models import ResolvedProduct, ResolvedVariant
from storefront.domain.value_objects import PriceRange, StockStatistics
from storefront.infrastructure.config import settings

logger = structlog.get_logger()

T = TypeVar("T")


def available_attributes(products: Iterable[ResolvedProduct]) -> dict[str, list[str]]:
    """Collect attribute values offered across all variants.

    Args:
        products: Resolved products.

    Returns:
        Group name to sorted distinct value names,
        e.g. {"Size": ["L", "M", "S"], "Color": ["Blue", "Red"]}.
    """
    values: dict[str, set[str]] = {}
    for product in products:
        for variant in product.variants:
            for attr in variant.attributes:
                values.setdefault(attr.group_name, set()).add(attr.value_name)
    return {group: sorted(names) for group, names in values.items()}


def available_attribute_ids(products: Iterable[ResolvedProduct]) -> dict[str, set[str]]:
    """Collect attribute value ids offered across all variants, keyed by group id."""
    values: dict[str, set[str]] = {}
    for product in products:
        for variant in product.variants:
            for attr in variant.attributes:
                values.setdefault(attr.group_id, set()).add(attr.value_id)
    return values


def price_range_of(products: Iterable[ResolvedProduct]) -> PriceRange:
    """Overall price range of a collection.

    Args:
        products: Resolved products.

    Returns:
        Range spanning every product's price range; 0-0 when empty.
    """
    overall: PriceRange | None = None
    for product in products:
        overall = product.price_range if overall is None else overall.union(product.price_range)
    return overall or PriceRange.empty()


def stock_statistics(products: Iterable[ResolvedProduct]) -> StockStatistics:
    """Count in-stock and out-of-stock products.

    Args:
        products: Resolved products.

    Returns:
        StockStatistics; total_stock sums the in-stock products.
    """
    total = in_stock = total_stock = 0
    for product in products:
        total += 1
        if product.has_stock:
            in_stock += 1
            total_stock += product.total_stock
    return StockStatistics(
        total_products=total,
        in_stock_products=in_stock,
        out_of_stock_products=total - in_stock,
        total_stock=total_stock,
    )


def _has_selection(variant: ResolvedVariant, group_id: str, value_id: str) -> bool:
    attr = variant.attribute_for(group_id)
    return attr is not None and attr.value_id == value_id


def filter_variants(
    variants: Iterable[ResolvedVariant],
    selections: Mapping[str, str],
) -> list[ResolvedVariant]:
    """Keep variants carrying every selected group -> value id.

    Args:
        variants: Variants of one product.
        selections: Group id to selected value id.

    Returns:
        Matching variants in input order.
    """
    return [
        variant
        for variant in variants
        if all(_has_selection(variant, group, value) for group, value in selections.items())
    ]


def available_attribute_values(
    variants: Iterable[ResolvedVariant],
    group_id: str,
    other_selections: Mapping[str, str],
) -> set[str]:
    """Values still selectable for a group given the other selections.

    Args:
        variants: Variants of one product.
        group_id: Group whose options are being rendered.
        other_selections: Current group id -> value id selections; the
            target group's own entry is ignored.

    Returns:
        Value ids of group_id carried by a variant compatible with the
        other selections.
    """
    constraints = {g: v for g, v in other_selections.items() if g != group_id}
    values = set()
    for variant in filter_variants(variants, constraints):
        attr = variant.attribute_for(group_id)
        if attr is not None:
            values.add(attr.value_id)
    return values


# ============================================================================
# Caller-owned facet cache
# ============================================================================


def fingerprint(products: Sequence[ResolvedProduct]) -> str:
    """Content hash of the fields facets are derived from."""
    digest = hashlib.sha256()
    for product in products:
        digest.update(
            f"{product.id}|{product.price_range.min}|{product.price_range.max}|"
            f"{product.has_stock}|{product.total_stock}\n".encode()
        )
        for variant in product.variants:
            attrs = ",".join(
                f"{a.group_id}:{a.group_name}={a.value_id}:{a.value_name}"
                for a in variant.attributes
            )
            digest.update(f" {variant.id}|{attrs}\n".encode())
    return digest.hexdigest()


class FacetCache:
    """Memoizes facets of a product collection.

    Owned by the caller (one per screen, request or test); entries are
    keyed by facet name and either an explicit revision token or a
    content fingerprint of the products. Least recently used entries
    are evicted beyond ``max_entries``.

    Example usage:
        cache = FacetCache()
        attrs = cache.available_attributes(products)
        bounds = cache.price_range_of(products, revision=catalog_version)
    """

    def __init__(self, max_entries: int | None = None) -> None:
        """Initialize cache.

        Args:
            max_entries: Capacity, defaults to settings.facet_cache_size.

        Raises:
            ValueError: If max_entries is below 1.
        """
        if max_entries is None:
            max_entries = settings.facet_cache_size
        if max_entries < 1:
            raise ValueError(f"Facet cache capacity must be at least 1, got {max_entries}")
        self.max_entries = max_entries
        self._entries: OrderedDict[tuple[str, Hashable], Any] = OrderedDict()
        self.hits = 0
        self.misses = 0

    def get_or_compute(
        self,
        facet: str,
        products: Sequence[ResolvedProduct],
        compute: Callable[[Sequence[ResolvedProduct]], T],
        revision: Hashable | None = None,
    ) -> T:
        """Return a cached facet or compute and store it.

        Args:
            facet: Facet name.
            products: Products the facet is derived from.
            compute: Function deriving the facet.
            revision: Token identifying the collection; a content
                fingerprint is used when omitted.

        Returns:
            Facet value.
        """
        key = (facet, revision if revision is not None else fingerprint(products))
        if key in self._entries:
            self.hits += 1
            self._entries.move_to_end(key)
            return self._entries[key]

        self.misses += 1
        logger.debug("Facet cache miss", facet=facet, entries=len(self._entries))
        value = compute(products)
        self._entries[key] = value
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)
        return value

    def available_attributes(
        self,
        products: Sequence[ResolvedProduct],
        revision: Hashable | None = None,
    ) -> dict[str, list[str]]:
        """Cached ``available_attributes`` (returns a copy)."""
        cached = self.get_or_compute("available_attributes", products, available_attributes, revision)
        return {group: list(values) for group, values in cached.items()}

    def price_range_of(
        self,
        products: Sequence[ResolvedProduct],
        revision: Hashable | None = None,
    ) -> PriceRange:
        """Cached ``price_range_of``."""
        return self.get_or_compute("price_range", products, price_range_of, revision)

    def stock_statistics(
        self,
        products: Sequence[ResolvedProduct],
        revision: Hashable | None = None,
    ) -> StockStatistics:
        """Cached ``stock_statistics``."""
        return self.get_or_compute("stock_statistics", products, stock_statistics, revision)

    def clear(self) -> None:
        """Drop every entry and reset counters."""
        self._entries.clear()
        self.hits = 0
        self.misses = 0

    def stats(self) -> dict[str, int]:
        """Get cache counters.

        Returns:
            Entries, hits and misses.
        """
        return {"entries": len(self._entries), "hits": self.hits, "misses": self.misses}

    def __len__(self) -> int:
        return len(self._entries)
