"""Tests for the product filter engine."""

import copy
from decimal import Decimal

import pytest

from storefront.catalog import FilterSpec, ProductFilterEngine, RawProduct, sort_products, stock_statistics
from storefront.catalog.engine import id_sort_key, paginate
from storefront.domain import InvalidFilterSpecError


@pytest.fixture
def engine() -> ProductFilterEngine:
    """Filter engine instance."""
    return ProductFilterEngine()


def ids(products) -> list[str]:
    return [p.id for p in products]


class TestPredicates:
    """Tests for individual filter predicates."""

    def test_no_spec_returns_everything_in_input_order(self, engine, catalog) -> None:
        """An empty spec keeps every product and the input order."""
        result = engine.filter(catalog)

        assert ids(result.items) == ["2", "7", "5", "11"]
        assert result.total == 4

    def test_in_stock_only(self, engine, catalog) -> None:
        """Products without any unit are dropped."""
        result = engine.filter(catalog, FilterSpec(in_stock_only=True))

        assert ids(result.items) == ["2", "7", "11"]

    def test_all_variants_in_stock_only(self, engine, catalog) -> None:
        """A product with one sold-out variant is dropped."""
        result = engine.filter(catalog, FilterSpec(all_variants_in_stock_only=True))

        assert ids(result.items) == ["2", "11"]

    def test_partial_stock_product(self, engine, make_product, make_variant, resolve) -> None:
        """A product with stock [0, 3] passes any-stock but not all-stock."""
        product = resolve(
            make_product(
                variants=[make_variant("a", quantity=0, is_default=True), make_variant("b", quantity=3)]
            )
        )

        assert engine.count([product], FilterSpec(in_stock_only=True)) == 1
        assert engine.count([product], FilterSpec(all_variants_in_stock_only=True)) == 0

    def test_variant_product_without_variants_is_out_of_stock(self, engine, resolver, now) -> None:
        """Stock reported on a variant-bearing product with no variants is ignored."""
        product = resolver.resolve(
            RawProduct(
                id="3", name="Empty", category_id="1", base_price=15, is_simple=False, simple_stock_quantity=5
            ),
            at=now,
        )

        assert engine.count([product], FilterSpec(in_stock_only=True)) == 0
        assert stock_statistics([product]).in_stock_products == 0

    def test_category_membership(self, engine, catalog) -> None:
        """Only the primary category is checked."""
        result = engine.filter(catalog, FilterSpec(category_ids={"3"}))

        assert ids(result.items) == ["7", "11"]

    def test_extra_categories_are_ignored(self, engine, make_product, resolve) -> None:
        """Auxiliary categories do not satisfy the category filter."""
        product = resolve(make_product(category_id="3", extra_category_ids=("8",)))

        assert engine.count([product], FilterSpec(category_ids=["8"])) == 0

    def test_manufacturer_membership(self, engine, catalog) -> None:
        """Manufacturer ids are matched exactly."""
        result = engine.filter(catalog, FilterSpec(manufacturer_ids=["2"]))

        assert ids(result.items) == ["2", "5"]

    def test_price_range_matches_any_variant(self, engine, catalog) -> None:
        """A product matches when any variant price is inside the bounds."""
        result = engine.filter(catalog, FilterSpec(price_min=21, price_max=30))

        # shirt displays 20.00 but its blue variant costs 25.00
        assert ids(result.items) == ["7"]

    def test_price_bounds_are_inclusive(self, engine, catalog) -> None:
        """Bounds equal to a price still match."""
        result = engine.filter(catalog, FilterSpec(price_min=Decimal("12.00"), price_max=15))

        assert ids(result.items) == ["2", "5"]

    def test_price_uses_effective_price(self, engine, catalog) -> None:
        """The discounted price is filtered, not the base price."""
        result = engine.filter(catalog, FilterSpec(price_min=25, price_max=35))

        assert "5" not in ids(result.items)

    def test_on_sale_only(self, engine, catalog) -> None:
        """Only products with a reduced displayed price remain."""
        result = engine.filter(catalog, FilterSpec(on_sale_only=True))

        assert ids(result.items) == ["5"]

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("mug", ["2"]),
            ("MATTE", ["5"]),
            ("mug-cer", ["2"]),
            ("ref-7-72", ["7"]),
            ("  hoodie  ", ["11"]),
            ("nothing like this", []),
        ],
    )
    def test_search(self, engine, catalog, text, expected) -> None:
        """Search looks at name, description and references, ignoring case."""
        result = engine.filter(catalog, FilterSpec(search_text=text))

        assert ids(result.items) == expected


class TestAttributeFilters:
    """Tests for attribute filtering."""

    def test_single_group(self, engine, catalog) -> None:
        """Any variant carrying the value matches."""
        result = engine.filter(catalog, FilterSpec(attribute_filters={"Color": ["Red"]}))

        assert ids(result.items) == ["7", "11"]

    def test_groups_must_hold_on_one_variant(self, engine, catalog) -> None:
        """Red and L must be on the same variant, not spread across two."""
        result = engine.filter(
            catalog, FilterSpec(attribute_filters={"Color": ["Red"], "Size": ["L"]})
        )

        # shirt has Red/S and Blue/L; only the hoodie has a Red/L variant
        assert ids(result.items) == ["11"]

    def test_values_within_group_are_alternatives(self, engine, catalog) -> None:
        """Several values of one group are OR-combined."""
        result = engine.filter(
            catalog, FilterSpec(attribute_filters={"Color": ["Blue", "Green"], "Size": ["L", "M"]})
        )

        assert ids(result.items) == ["7", "11"]

    def test_ids_and_names_are_interchangeable(self, engine, catalog) -> None:
        """Groups and values match by id or case-insensitive name."""
        by_name = engine.filter(catalog, FilterSpec(attribute_filters={"color": ["red"]}))
        by_id = engine.filter(catalog, FilterSpec(attribute_filters={"10": ["101"]}))

        assert ids(by_name.items) == ids(by_id.items) == ["7", "11"]

    def test_any_mode(self, engine, catalog) -> None:
        """In any mode one matching group on a variant is enough."""
        spec = FilterSpec(
            attribute_filters={"Color": ["Blue"], "Size": ["M"]},
            attribute_groups_mode="any",
        )

        assert ids(engine.filter(catalog, spec).items) == ["7", "11"]

    def test_simple_products_never_match(self, engine, catalog) -> None:
        """Products without variants are excluded by any attribute filter."""
        result = engine.filter(catalog, FilterSpec(attribute_filters={"Color": ["Red", "Blue", "Green"]}))

        assert "2" not in ids(result.items)
        assert "5" not in ids(result.items)

    def test_empty_group_does_not_constrain(self, engine, catalog) -> None:
        """A group with no selected value is ignored."""
        result = engine.filter(catalog, FilterSpec(attribute_filters={"Color": []}))

        assert result.total == 4

    def test_adding_filters_only_narrows(self, engine, catalog) -> None:
        """Each additional constraint returns a subset of the previous result."""
        specs = [
            FilterSpec(),
            FilterSpec(in_stock_only=True),
            FilterSpec(in_stock_only=True, category_ids=["3"]),
            FilterSpec(in_stock_only=True, category_ids=["3"], attribute_filters={"Color": ["Red"]}),
            FilterSpec(
                in_stock_only=True,
                category_ids=["3"],
                attribute_filters={"Color": ["Red"], "Size": ["L"]},
            ),
        ]
        previous = set(ids(catalog))
        for spec in specs:
            current = set(ids(engine.filter(catalog, spec).items))
            assert current <= previous
            previous = current

        assert previous == {"11"}


class TestSorting:
    """Tests for result ordering."""

    def test_price_ascending(self, engine, catalog) -> None:
        """Sorting by price uses the displayed price."""
        result = engine.filter(catalog, FilterSpec(sort_key="price"))

        assert ids(result.items) == ["2", "5", "7", "11"]

    def test_price_descending(self, engine, catalog) -> None:
        """Descending reverses the key order."""
        result = engine.filter(catalog, FilterSpec(sort_key="price", sort_direction="desc"))

        assert ids(result.items) == ["11", "7", "5", "2"]

    def test_name_is_case_insensitive(self, engine, catalog) -> None:
        """Lower-case names sort among capitalized ones."""
        result = engine.filter(catalog, FilterSpec(sort_key="name"))

        assert ids(result.items) == ["5", "2", "7", "11"]

    def test_stock(self, engine, catalog) -> None:
        """Sorting by stock uses total units."""
        result = engine.filter(catalog, FilterSpec(sort_key="stock"))

        assert ids(result.items) == ["5", "11", "7", "2"]

    def test_ties_break_by_ascending_id(self, make_product, resolve) -> None:
        """Equal keys are ordered by ascending numeric id in both directions."""
        products = [
            resolve(make_product(product_id, base_price=10))
            for product_id in ("10", "9", "2")
        ]

        assert ids(sort_products(products, "price")) == ["2", "9", "10"]
        assert ids(sort_products(products, "price", descending=True)) == ["2", "9", "10"]

    def test_recency_sorts_by_id(self, engine, catalog) -> None:
        """Recency is approximated by descending id."""
        result = engine.filter(catalog, {"sort": "recency_DESC"})

        assert ids(result.items) == ["11", "7", "5", "2"]

    def test_id_sort_key_puts_text_last(self) -> None:
        """Non-numeric ids sort after numeric ones."""
        assert sorted(["b", "10", "a", "2"], key=id_sort_key) == ["2", "10", "a", "b"]

    @pytest.mark.parametrize("product_id", ["-3", " 7 ", "1_000", "+4"])
    def test_id_sort_key_only_digits_are_numeric(self, product_id) -> None:
        """Signs, padding and underscores sort as text, after numeric ids."""
        assert id_sort_key(product_id) == (1, 0, product_id)
        assert sorted([product_id, "999"], key=id_sort_key) == ["999", product_id]


class TestPagination:
    """Tests for offset and limit."""

    @pytest.fixture
    def many(self, make_product, resolve):
        """Twenty-five products priced 1 to 25."""
        return [resolve(make_product(str(i), base_price=i)) for i in range(25, 0, -1)]

    def test_last_partial_page(self, engine, many) -> None:
        """offset=20, limit=10 over 25 matches returns the last five."""
        result = engine.filter(many, FilterSpec(sort_key="price", offset=20, limit=10))

        assert ids(result.items) == ["21", "22", "23", "24", "25"]
        assert result.total == 25
        assert result.has_more is False
        assert result.has_prev is True

    def test_first_page(self, engine, many) -> None:
        """A full first page reports more results."""
        result = engine.filter(many, FilterSpec(sort_key="price", limit=10))

        assert len(result.items) == 10
        assert result.has_more is True
        assert result.has_prev is False

    def test_offset_beyond_total(self, engine, many) -> None:
        """An offset past the end returns an empty page, not an error."""
        result = engine.filter(many, FilterSpec(offset=100, limit=10))

        assert result.items == []
        assert result.total == 25
        assert result.offset == 25

    def test_total_ignores_pagination(self, engine, many) -> None:
        """total is the same for every page."""
        totals = {
            engine.filter(many, FilterSpec(offset=offset, limit=7)).total
            for offset in range(0, 30, 7)
        }

        assert totals == {25}

    def test_negative_window_is_clamped(self) -> None:
        """Negative offsets and limits are treated as zero."""
        spec = FilterSpec(offset=-5, limit=-1)

        assert (spec.offset, spec.limit) == (0, 0)

    def test_paginate_helper(self) -> None:
        """paginate returns the page and the clamped offset."""
        assert paginate(["a", "b", "c"], 1, 1) == (["b"], 1)
        assert paginate(["a", "b", "c"], 9, None) == ([], 3)


class TestEngineContract:
    """Tests for engine-level guarantees."""

    def test_empty_input(self, engine) -> None:
        """An empty collection yields an empty page."""
        result = engine.filter([], FilterSpec(in_stock_only=True, sort_key="price"))

        assert result.items == []
        assert result.total == 0
        assert result.has_more is False

    def test_input_is_not_mutated(self, engine, catalog) -> None:
        """Filtering and sorting leave the input list untouched."""
        snapshot = copy.copy(catalog)

        engine.filter(catalog, FilterSpec(sort_key="price", sort_direction="desc", limit=2))

        assert catalog == snapshot
        assert ids(catalog) == ["2", "7", "5", "11"]

    def test_mapping_spec(self, engine, catalog) -> None:
        """Plain mappings are validated into a FilterSpec."""
        result = engine.filter(catalog, {"in_stock_only": True, "sort": "price_DESC", "limit": 2})

        assert ids(result.items) == ["11", "7"]
        assert result.total == 3

    def test_invalid_price_bounds(self, engine, catalog) -> None:
        """Inverted price bounds are rejected, never silently emptied."""
        with pytest.raises(InvalidFilterSpecError) as exc_info:
            engine.filter(catalog, {"price_min": 50, "price_max": 10})

        assert exc_info.value.field == "price_min"

    def test_unknown_spec_type(self, engine, catalog) -> None:
        """Anything but a FilterSpec or mapping is rejected."""
        with pytest.raises(InvalidFilterSpecError) as exc_info:
            engine.filter(catalog, 42)

        assert exc_info.value.field == "spec"

    def test_single_purpose_helpers(self, catalog) -> None:
        """The single-purpose filters agree with the full engine."""
        assert ids(ProductFilterEngine.filter_by_price_range(catalog, 21, 30)) == ["7"]
        assert ids(ProductFilterEngine.filter_by_stock(catalog)) == ["2", "7", "11"]
        assert ids(ProductFilterEngine.filter_by_stock(catalog, all_in_stock=True)) == ["2", "11"]
        assert ids(ProductFilterEngine.filter_by_stock(catalog, any_in_stock=False)) == ids(catalog)
        assert ids(ProductFilterEngine.filter_by_attributes(catalog, {"Size": "M"})) == ["11"]
        assert ids(ProductFilterEngine.sort_products(catalog, "name", descending=True)) == [
            "11",
            "7",
            "2",
            "5",
        ]
