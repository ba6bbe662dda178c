"""Declarative filter specification for the product filter engine.

A FilterSpec is validated on construction: an invalid field raises
InvalidFilterSpecError naming that field, so the engine never has to
guess between an empty and an unfiltered result.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, fields, replace
from decimal import Decimal, InvalidOperation
from enum import Enum
from types import MappingProxyType
from typing import Any, Self

from storefront.domain.exceptions import InvalidFilterSpecError
from storefront.domain.value_objects import ZERO, to_decimal


class SortKey(str, Enum):
    """Product attribute to order results by."""

    PRICE = "price"
    NAME = "name"
    STOCK = "stock"
    ID = "id"


class SortDirection(str, Enum):
    """Order of the sort key."""

    ASC = "asc"
    DESC = "desc"


class AttributeGroupsMode(str, Enum):
    """How requested attribute groups combine on one variant."""

    ALL = "all"
    ANY = "any"


# Higher ids are more recent upstream (auto-increment).
SORT_KEY_ALIASES: dict[str, SortKey] = {"recency": SortKey.ID, "newest": SortKey.ID}
SORT_DIRECTION_ALIASES: dict[str, SortDirection] = {
    "ascending": SortDirection.ASC,
    "descending": SortDirection.DESC,
}


def _parse_enum(field_name: str, value: Any, enum_type: type[Enum], aliases: Mapping[str, Any]) -> Any:
    if isinstance(value, enum_type):
        return value
    if not isinstance(value, str):
        raise InvalidFilterSpecError(field_name, "expected a string", value)
    key = value.strip().lower()
    if key in aliases:
        return aliases[key]
    try:
        return enum_type(key)
    except ValueError:
        allowed = sorted([member.value for member in enum_type] + list(aliases))
        raise InvalidFilterSpecError(field_name, f"must be one of {allowed}", value) from None


def _parse_ids(field_name: str, value: Any) -> frozenset[str] | None:
    if value is None:
        return None
    if isinstance(value, (str, int)):
        value = [value]
    if not isinstance(value, Iterable):
        raise InvalidFilterSpecError(field_name, "expected an id or a collection of ids", value)
    ids = frozenset(str(item) for item in value)
    return ids or None


def _parse_price(field_name: str, value: Any) -> Decimal | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise InvalidFilterSpecError(field_name, "expected a number", value)
    try:
        amount = to_decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidFilterSpecError(field_name, "expected a number", value) from None
    if not amount.is_finite():
        raise InvalidFilterSpecError(field_name, "must be finite", value)
    if amount < ZERO:
        raise InvalidFilterSpecError(field_name, "must not be negative", value)
    return amount


def _parse_window(field_name: str, value: Any, default: int | None) -> int | None:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidFilterSpecError(field_name, "expected an integer", value)
    return max(0, value)


def _parse_attributes(value: Any) -> Mapping[str, frozenset[str]]:
    if value is None:
        return MappingProxyType({})
    if not isinstance(value, Mapping):
        raise InvalidFilterSpecError(
            "attribute_filters", "expected a mapping of group to values", value
        )
    parsed = {}
    for group, values in value.items():
        if isinstance(values, str):
            values = [values]
        if not isinstance(values, Iterable):
            raise InvalidFilterSpecError(
                "attribute_filters", f"values for group '{group}' must be a collection", values
            )
        accepted = frozenset(str(v) for v in values)
        # A group with nothing selected does not constrain anything.
        if accepted:
            parsed[str(group)] = accepted
    return MappingProxyType(parsed)


def _parse_flag(field_name: str, value: Any) -> bool:
    if value is None:
        return False
    if not isinstance(value, bool):
        raise InvalidFilterSpecError(field_name, "expected a boolean", value)
    return value


@dataclass(frozen=True)
class FilterSpec:
    """Filter, sort and pagination parameters.

    Attributes:
        category_ids: Accepted primary categories.
        manufacturer_ids: Accepted manufacturers.
        price_min: Lower bound on any purchasable price.
        price_max: Upper bound on any purchasable price.
        in_stock_only: Require at least one unit in stock.
        all_variants_in_stock_only: Require every variant in stock.
        on_sale_only: Require a reduced displayed price.
        search_text: Case-insensitive text in name, description or reference.
        attribute_filters: Group (name or id) to accepted values (names or ids).
        attribute_groups_mode: "all" groups on one variant, or "any" group.
        sort_key: Sort key, None keeps input order.
        sort_direction: Sort direction.
        offset: Items to skip.
        limit: Maximum items returned, None for all.
    """

    category_ids: frozenset[str] | None = None
    manufacturer_ids: frozenset[str] | None = None
    price_min: Decimal | None = None
    price_max: Decimal | None = None
    in_stock_only: bool = False
    all_variants_in_stock_only: bool = False
    on_sale_only: bool = False
    search_text: str | None = None
    attribute_filters: Mapping[str, frozenset[str]] = field(default_factory=dict)
    attribute_groups_mode: AttributeGroupsMode = AttributeGroupsMode.ALL
    sort_key: SortKey | None = None
    sort_direction: SortDirection = SortDirection.ASC
    offset: int = 0
    limit: int | None = None

    def __post_init__(self) -> None:
        """Validate and normalize every field."""
        self._set("category_ids", _parse_ids("category_ids", self.category_ids))
        self._set("manufacturer_ids", _parse_ids("manufacturer_ids", self.manufacturer_ids))
        self._set("price_min", _parse_price("price_min", self.price_min))
        self._set("price_max", _parse_price("price_max", self.price_max))
        if (
            self.price_min is not None
            and self.price_max is not None
            and self.price_min > self.price_max
        ):
            raise InvalidFilterSpecError(
                "price_min",
                f"greater than price_max ({self.price_max})",
                self.price_min,
            )

        for flag in ("in_stock_only", "all_variants_in_stock_only", "on_sale_only"):
            self._set(flag, _parse_flag(flag, getattr(self, flag)))

        if self.search_text is not None:
            if not isinstance(self.search_text, str):
                raise InvalidFilterSpecError("search_text", "expected a string", self.search_text)
            self._set("search_text", self.search_text.strip() or None)

        self._set("attribute_filters", _parse_attributes(self.attribute_filters))
        self._set(
            "attribute_groups_mode",
            _parse_enum("attribute_groups_mode", self.attribute_groups_mode, AttributeGroupsMode, {}),
        )
        if self.sort_key is not None:
            self._set("sort_key", _parse_enum("sort_key", self.sort_key, SortKey, SORT_KEY_ALIASES))
        self._set(
            "sort_direction",
            _parse_enum("sort_direction", self.sort_direction, SortDirection, SORT_DIRECTION_ALIASES),
        )
        self._set("offset", _parse_window("offset", self.offset, 0))
        self._set("limit", _parse_window("limit", self.limit, None))

    def __hash__(self) -> int:
        return hash(
            tuple(
                frozenset(self.attribute_filters.items())
                if f.name == "attribute_filters"
                else getattr(self, f.name)
                for f in fields(self)
            )
        )

    def _set(self, name: str, value: Any) -> None:
        object.__setattr__(self, name, value)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Self:
        """Build a spec from a plain mapping such as query parameters.

        Accepts the combined ``sort`` form used by the storefront
        ("price_ASC", "name_DESC", "id_DESC").

        Args:
            data: Field names to values.

        Returns:
            Validated FilterSpec.

        Raises:
            InvalidFilterSpecError: For unknown fields or invalid values.
        """
        known = {f.name for f in fields(cls)}
        values = dict(data)
        combined = values.pop("sort", None)
        if combined is not None:
            if not isinstance(combined, str) or "_" not in combined:
                raise InvalidFilterSpecError("sort", "expected '<key>_<ASC|DESC>'", combined)
            key, _, direction = combined.rpartition("_")
            values.setdefault("sort_key", key)
            values.setdefault("sort_direction", direction)

        unknown = sorted(set(values) - known)
        if unknown:
            raise InvalidFilterSpecError(unknown[0], "unknown filter field", values[unknown[0]])
        return cls(**values)

    @property
    def has_active_filters(self) -> bool:
        """Check whether any predicate (not sort or pagination) is set."""
        return bool(
            self.category_ids
            or self.manufacturer_ids
            or self.price_min is not None
            or self.price_max is not None
            or self.in_stock_only
            or self.all_variants_in_stock_only
            or self.on_sale_only
            or self.search_text
            or self.attribute_filters
        )

    @property
    def descending(self) -> bool:
        """Check whether the sort direction is descending."""
        return self.sort_direction is SortDirection.DESC

    def replace(self, **changes: Any) -> "FilterSpec":
        """Copy the FilterSpec with some fields changed (validated again).

        Args:
            **changes: Field values to change.

        Returns:
            New FilterSpec.
        """
        return replace(self, **changes)

    def reset(self) -> "FilterSpec":
        """Drop every filter, sort and pagination setting.

        Returns:
            An empty FilterSpec.
        """
        return FilterSpec()
