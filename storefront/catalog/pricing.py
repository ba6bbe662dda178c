"""Price and stock resolution.

Turns a RawProduct plus its candidate promotional rules into a
ResolvedProduct with effective prices, price range and stock flags.

Rule selection walks an explicit priority list of scope matchers:
a rule scoped to the exact variant wins over a product-wide rule, and
within one scope the first applicable rule in input order wins.
"""

from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

import structlog

from storefront.catalog.models import (
    PriceRule,
    RawProduct,
    RawVariant,
    ReductionType,
    ResolvedProduct,
    ResolvedVariant,
    RuleScope,
)
from storefront.domain.anomalies import AnomalyHook, AnomalyKind, DataAnomaly
from storefront.domain.exceptions import InvalidQuantityError
from storefront.domain.value_objects import HUNDRED, ZERO, PriceRange, round_price
from storefront.infrastructure.config import settings

logger = structlog.get_logger()


# ============================================================================
# Rule matching
# ============================================================================


@dataclass(frozen=True)
class PricingTarget:
    """The thing being priced: the base product or one of its variants.

    Attributes:
        product_id: Product identifier.
        variant_id: Variant identifier, None for the base product.
    """

    product_id: str
    variant_id: str | None = None


ScopeMatcher = Callable[[PriceRule, PricingTarget], bool]


def matches_variant_scope(rule: PriceRule, target: PricingTarget) -> bool:
    """Rule is scoped to exactly this variant."""
    return (
        rule.scope is RuleScope.VARIANT
        and target.variant_id is not None
        and rule.variant_id == target.variant_id
    )


def matches_product_scope(rule: PriceRule, target: PricingTarget) -> bool:
    """Rule applies product-wide."""
    return rule.scope is RuleScope.PRODUCT


SCOPE_PRIORITY: tuple[ScopeMatcher, ...] = (matches_variant_scope, matches_product_scope)


# Upstream webservices call an absolute reduction an "amount".
REDUCTION_ALIASES: dict[str, ReductionType] = {"amount": ReductionType.ABSOLUTE}


def parse_reduction_type(raw: str) -> ReductionType | None:
    """Map a raw reduction type to a known one.

    Args:
        raw: Reduction type as delivered upstream.

    Returns:
        The reduction type, or None if it is unknown.
    """
    key = raw.strip().lower()
    if key in REDUCTION_ALIASES:
        return REDUCTION_ALIASES[key]
    try:
        return ReductionType(key)
    except ValueError:
        return None


def rule_problem(rule: PriceRule) -> str | None:
    """Describe why a rule cannot be applied at all.

    Args:
        rule: Rule to check.

    Returns:
        Reason string for a malformed rule, None for a well-formed one.
    """
    reduction_type = parse_reduction_type(rule.reduction_type)
    if reduction_type is None:
        return f"unknown reduction type '{rule.reduction_type}'"
    if rule.reduction_value < ZERO:
        return f"negative reduction value {rule.reduction_value}"
    if reduction_type is ReductionType.PERCENTAGE and rule.reduction_value > HUNDRED:
        return f"percentage reduction {rule.reduction_value} exceeds 100"
    if rule.scope is RuleScope.VARIANT and not rule.variant_id:
        return "variant-scoped rule without a variant id"
    if rule.valid_from and rule.valid_to and rule.valid_from > rule.valid_to:
        return "validity window ends before it starts"
    return None


def is_rule_active(rule: PriceRule, at: datetime, purchase_quantity: int = 1) -> bool:
    """Check the date window and quantity threshold of a rule.

    Args:
        rule: Well-formed rule.
        at: Evaluation time (timezone-aware).
        purchase_quantity: Quantity being bought.

    Returns:
        True if the rule applies at that time and quantity.
    """
    if rule.valid_from is not None and at < rule.valid_from:
        return False
    if rule.valid_to is not None and at > rule.valid_to:
        return False
    return purchase_quantity >= rule.min_quantity


def select_rule(
    rules: Sequence[PriceRule],
    target: PricingTarget,
    at: datetime,
    purchase_quantity: int = 1,
    matchers: Sequence[ScopeMatcher] = SCOPE_PRIORITY,
) -> PriceRule | None:
    """Pick the single rule that prices a target.

    Args:
        rules: Well-formed candidate rules in input order.
        target: Base product or variant.
        at: Evaluation time.
        purchase_quantity: Quantity being bought.
        matchers: Scope matchers, highest priority first.

    Returns:
        The winning rule, or None if no rule applies.
    """
    for matcher in matchers:
        for rule in rules:
            if matcher(rule, target) and is_rule_active(rule, at, purchase_quantity):
                return rule
    return None


def apply_rule(amount: Decimal, rule: PriceRule | None) -> Decimal:
    """Apply a rule's reduction to an unadjusted amount (unrounded).

    Args:
        amount: Unadjusted price.
        rule: Well-formed rule, or None.

    Returns:
        Reduced amount, never below zero.
    """
    if rule is None:
        return amount
    if parse_reduction_type(rule.reduction_type) is ReductionType.PERCENTAGE:
        return amount * (1 - rule.reduction_value / HUNDRED)
    return max(ZERO, amount - rule.reduction_value)


def discount_percentage(list_price: Decimal, final_price: Decimal, places: int = 2) -> Decimal | None:
    """Compute the reduction of a price in percent.

    Args:
        list_price: Price before the rule.
        final_price: Price after the rule.
        places: Rounding precision.

    Returns:
        Reduction in percent, None when nothing was reduced.
    """
    if list_price <= ZERO or final_price >= list_price:
        return None
    return round_price((list_price - final_price) / list_price * HUNDRED, places)


# ============================================================================
# Resolver
# ============================================================================


class PriceResolver:
    """Resolves raw products into priced, stock-flagged products.

    Resolution never fails on questionable data: malformed rules are
    skipped, negative prices are clamped and a missing default variant
    falls back to the first variant. Each such fallback is recorded as a
    DataAnomaly on the result, logged, and passed to ``anomaly_hook``.

    Example usage:
        resolver = PriceResolver()
        resolved = resolver.resolve(product, rules, at=now)
        print(resolved.display_price, resolved.on_sale)
    """

    def __init__(
        self,
        price_places: int | None = None,
        anomaly_hook: AnomalyHook | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize resolver.

        Args:
            price_places: Currency precision, defaults to settings.
            anomaly_hook: Optional callable receiving each anomaly.
            clock: Source of the evaluation time when none is passed.
        """
        self.price_places = (
            settings.price_decimal_places if price_places is None else price_places
        )
        self.anomaly_hook = anomaly_hook
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def resolve(
        self,
        product: RawProduct,
        rules: Iterable[PriceRule] = (),
        at: datetime | None = None,
        purchase_quantity: int = 1,
    ) -> ResolvedProduct:
        """Resolve one product.

        Args:
            product: Normalized product record.
            rules: Candidate promotional rules for this product.
            at: Evaluation time, defaults to now (UTC).
            purchase_quantity: Quantity tested against rule thresholds.

        Returns:
            Resolved product.

        Raises:
            InvalidQuantityError: If purchase_quantity is below 1.
        """
        if purchase_quantity < 1:
            raise InvalidQuantityError(purchase_quantity)
        at = self._evaluation_time(at)

        anomalies: list[DataAnomaly] = []
        usable_rules = self._usable_rules(product.id, rules, anomalies)

        if product.is_simple or not product.variants:
            if not product.is_simple:
                anomalies.append(
                    DataAnomaly(
                        kind=AnomalyKind.NO_VARIANTS,
                        product_id=product.id,
                        message="Product is not simple but has no variants; priced as simple",
                    )
                )
            resolved = self._resolve_simple(product, usable_rules, at, purchase_quantity, anomalies)
        else:
            resolved = self._resolve_with_variants(
                product, usable_rules, at, purchase_quantity, anomalies
            )

        self._report(anomalies)
        return resolved

    def resolve_many(
        self,
        products: Iterable[RawProduct],
        rules_by_product: Mapping[str, Sequence[PriceRule]] | None = None,
        at: datetime | None = None,
        purchase_quantity: int = 1,
    ) -> list[ResolvedProduct]:
        """Resolve a batch of products at one evaluation time.

        Args:
            products: Normalized product records.
            rules_by_product: Candidate rules keyed by product id.
            at: Evaluation time shared by the whole batch.
            purchase_quantity: Quantity tested against rule thresholds.

        Returns:
            Resolved products in input order.
        """
        at = self._evaluation_time(at)
        rules_by_product = rules_by_product or {}
        resolved = [
            self.resolve(product, rules_by_product.get(product.id, ()), at, purchase_quantity)
            for product in products
        ]
        logger.debug(
            "Resolved product batch",
            products=len(resolved),
            anomalies=sum(len(p.anomalies) for p in resolved),
        )
        return resolved

    def effective_price(
        self,
        product: RawProduct,
        rules: Iterable[PriceRule] = (),
        variant_id: str | None = None,
        at: datetime | None = None,
        purchase_quantity: int = 1,
    ) -> Decimal:
        """Get the effective price of a product or one of its variants.

        Args:
            product: Normalized product record.
            rules: Candidate promotional rules.
            variant_id: Variant to price, None for the displayed price.
            at: Evaluation time.
            purchase_quantity: Quantity tested against rule thresholds.

        Returns:
            Effective price.

        Raises:
            VariantNotFoundError: If variant_id is not part of the product.
        """
        resolved = self.resolve(product, rules, at, purchase_quantity)
        if variant_id is None:
            return resolved.display_price
        return resolved.find_variant(variant_id).final_price

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _evaluation_time(self, at: datetime | None) -> datetime:
        at = at or self.clock()
        if at.tzinfo is None:
            at = at.replace(tzinfo=timezone.utc)
        return at

    def _usable_rules(
        self,
        product_id: str,
        rules: Iterable[PriceRule],
        anomalies: list[DataAnomaly],
    ) -> list[PriceRule]:
        usable = []
        for rule in rules:
            problem = rule_problem(rule)
            if problem is None:
                usable.append(rule)
                continue
            anomalies.append(
                DataAnomaly(
                    kind=AnomalyKind.MALFORMED_RULE,
                    product_id=product_id,
                    message=f"Skipped price rule {rule.label}: {problem}",
                    details={
                        "rule_id": rule.label,
                        "reduction_type": rule.reduction_type,
                        "reduction_value": str(rule.reduction_value),
                    },
                )
            )
        return usable

    def _price_target(
        self,
        unadjusted: Decimal,
        target: PricingTarget,
        rules: Sequence[PriceRule],
        at: datetime,
        purchase_quantity: int,
    ) -> tuple[Decimal, PriceRule | None]:
        rule = select_rule(rules, target, at, purchase_quantity)
        return round_price(apply_rule(unadjusted, rule), self.price_places), rule

    def _resolve_simple(
        self,
        product: RawProduct,
        rules: Sequence[PriceRule],
        at: datetime,
        purchase_quantity: int,
        anomalies: list[DataAnomaly],
    ) -> ResolvedProduct:
        list_price = round_price(product.base_price, self.price_places)
        display_price, rule = self._price_target(
            product.base_price, PricingTarget(product.id), rules, at, purchase_quantity
        )
        # stock of a variant-bearing product lives on its variants only
        total_stock = product.simple_stock_quantity if product.is_simple else 0
        in_stock = total_stock > 0

        return self._build(
            product,
            variants=(),
            default_variant_id=None,
            list_price=list_price,
            display_price=display_price,
            price_range=PriceRange.single(display_price),
            has_stock=in_stock,
            all_in_stock=in_stock,
            total_stock=total_stock,
            rule=rule,
            anomalies=anomalies,
        )

    def _resolve_with_variants(
        self,
        product: RawProduct,
        rules: Sequence[PriceRule],
        at: datetime,
        purchase_quantity: int,
        anomalies: list[DataAnomaly],
    ) -> ResolvedProduct:
        variants = tuple(
            self._resolve_variant(product, variant, rules, at, purchase_quantity, anomalies)
            for variant in product.variants
        )
        default = self._pick_default(product, variants, anomalies)

        return self._build(
            product,
            variants=variants,
            default_variant_id=default.id,
            list_price=default.unadjusted_price,
            display_price=default.final_price,
            price_range=PriceRange.spanning([v.final_price for v in variants]),
            has_stock=any(v.in_stock for v in variants),
            all_in_stock=all(v.in_stock for v in variants),
            total_stock=sum(v.quantity for v in variants),
            rule=None,
            applied_rule_id=default.applied_rule_id,
            anomalies=anomalies,
        )

    def _resolve_variant(
        self,
        product: RawProduct,
        variant: RawVariant,
        rules: Sequence[PriceRule],
        at: datetime,
        purchase_quantity: int,
        anomalies: list[DataAnomaly],
    ) -> ResolvedVariant:
        unadjusted = product.base_price + variant.price_delta
        if unadjusted < ZERO:
            anomalies.append(
                DataAnomaly(
                    kind=AnomalyKind.NEGATIVE_PRICE_CLAMPED,
                    product_id=product.id,
                    message=f"Variant {variant.id} price {unadjusted} clamped to 0",
                    details={
                        "variant_id": variant.id,
                        "base_price": str(product.base_price),
                        "price_delta": str(variant.price_delta),
                    },
                )
            )
            unadjusted = ZERO

        final_price, rule = self._price_target(
            unadjusted,
            PricingTarget(product.id, variant.id),
            rules,
            at,
            purchase_quantity,
        )
        return ResolvedVariant(
            id=variant.id,
            product_id=variant.product_id,
            reference=variant.reference,
            price_delta=variant.price_delta,
            quantity=variant.quantity,
            is_default=variant.is_default,
            attributes=variant.attributes,
            unadjusted_price=round_price(unadjusted, self.price_places),
            final_price=final_price,
            applied_rule_id=rule.label if rule else None,
        )

    def _pick_default(
        self,
        product: RawProduct,
        variants: tuple[ResolvedVariant, ...],
        anomalies: list[DataAnomaly],
    ) -> ResolvedVariant:
        if product.default_variant_id:
            for variant in variants:
                if variant.id == product.default_variant_id:
                    return variant

        flagged = [v for v in variants if v.is_default]
        if len(flagged) > 1:
            anomalies.append(
                DataAnomaly(
                    kind=AnomalyKind.MULTIPLE_DEFAULT_VARIANTS,
                    product_id=product.id,
                    message=f"{len(flagged)} variants flagged default; using {flagged[0].id}",
                    details={"variant_ids": [v.id for v in flagged]},
                )
            )
        if flagged:
            return flagged[0]

        anomalies.append(
            DataAnomaly(
                kind=AnomalyKind.MISSING_DEFAULT_VARIANT,
                product_id=product.id,
                message=f"No default variant; falling back to first variant {variants[0].id}",
                details={"requested_default": product.default_variant_id},
            )
        )
        return variants[0]

    def _build(
        self,
        product: RawProduct,
        *,
        variants: tuple[ResolvedVariant, ...],
        default_variant_id: str | None,
        list_price: Decimal,
        display_price: Decimal,
        price_range: PriceRange,
        has_stock: bool,
        all_in_stock: bool,
        total_stock: int,
        rule: PriceRule | None,
        anomalies: list[DataAnomaly],
        applied_rule_id: str | None = None,
    ) -> ResolvedProduct:
        on_sale = display_price < list_price
        return ResolvedProduct(
            id=product.id,
            name=product.name,
            description=product.description,
            short_description=product.short_description,
            reference=product.reference,
            category_id=product.category_id,
            extra_category_ids=product.extra_category_ids,
            manufacturer_id=product.manufacturer_id,
            manufacturer_name=product.manufacturer_name,
            base_price=product.base_price,
            is_simple=product.is_simple,
            variants=variants,
            simple_stock_quantity=product.simple_stock_quantity,
            default_variant_id=default_variant_id,
            list_price=list_price,
            display_price=display_price,
            price_range=price_range,
            has_stock=has_stock,
            all_in_stock=all_in_stock,
            total_stock=total_stock,
            on_sale=on_sale,
            discount_percentage=(
                discount_percentage(list_price, display_price, self.price_places)
                if on_sale
                else None
            ),
            applied_rule_id=applied_rule_id or (rule.label if rule else None),
            active=product.active,
            anomalies=tuple(anomalies),
        )

    def _report(self, anomalies: list[DataAnomaly]) -> None:
        for anomaly in anomalies:
            logger.warning(
                "Catalog data anomaly",
                kind=anomaly.kind.value,
                product_id=anomaly.product_id,
                message=anomaly.message,
                details=anomaly.details,
            )
            if self.anomaly_hook is None:
                continue
            try:
                self.anomaly_hook(anomaly)
            except Exception:
                logger.exception(
                    "Anomaly hook failed",
                    kind=anomaly.kind.value,
                    product_id=anomaly.product_id,
                )
