"""Product Catalog core.

Provides price and stock resolution, the product filter engine and
facet helpers over products already fetched from the shop webservice.
"""

from storefront.catalog.engine import FilterResult, ProductFilterEngine, sort_products
from storefront.catalog.facets import (
    FacetCache,
    available_attribute_ids,
    available_attribute_values,
    available_attributes,
    filter_variants,
    price_range_of,
    stock_statistics,
)
from storefront.catalog.filters import AttributeGroupsMode, FilterSpec, SortDirection, SortKey
from storefront.catalog.models import (
    AttributeAssignment,
    PriceRule,
    RawProduct,
    RawVariant,
    ReductionType,
    ResolvedProduct,
    ResolvedVariant,
    RuleScope,
)
from storefront.catalog.pricing import PriceResolver, PricingTarget, select_rule

__all__ = [
    # Models
    "AttributeAssignment",
    "PriceRule",
    "RawProduct",
    "RawVariant",
    "ReductionType",
    "ResolvedProduct",
    "ResolvedVariant",
    "RuleScope",
    # Pricing
    "PriceResolver",
    "PricingTarget",
    "select_rule",
    # Filtering
    "AttributeGroupsMode",
    "FilterResult",
    "FilterSpec",
    "ProductFilterEngine",
    "SortDirection",
    "SortKey",
    "sort_products",
    # Facets
    "FacetCache",
    "available_attribute_ids",
    "available_attribute_values",
    "available_attributes",
    "filter_variants",
    "price_range_of",
    "stock_statistics",
]
