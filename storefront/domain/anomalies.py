"""Data anomalies found while resolving products.

An anomaly never aborts resolution. The resolver applies a deterministic
fallback (skip the rule, clamp the price, pick the first variant), keeps
the anomaly on the resolved product and reports it through logging and
an optional caller hook.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar

from storefront.domain.base import DiagnosticRecord


class AnomalyKind(str, Enum):
    """Kinds of questionable product data."""

    MALFORMED_RULE = "malformed_rule"
    NEGATIVE_PRICE_CLAMPED = "negative_price_clamped"
    MISSING_DEFAULT_VARIANT = "missing_default_variant"
    MULTIPLE_DEFAULT_VARIANTS = "multiple_default_variants"
    NO_VARIANTS = "no_variants"


@dataclass(frozen=True)
class DataAnomaly(DiagnosticRecord):
    """A data-quality finding attached to a resolved product.

    Attributes:
        kind: What was wrong.
        product_id: Product being resolved.
        message: Human-readable description including the fallback.
        details: Extra context (rule id, variant id, raw values).
    """

    record_type: ClassVar[str] = "catalog.anomaly"

    kind: AnomalyKind = AnomalyKind.MALFORMED_RULE
    product_id: str = ""
    message: str = ""
    details: dict[str, Any] = field(default_factory=dict, compare=False)

    def _payload(self) -> dict[str, Any]:
        """Get anomaly payload."""
        return {
            "kind": self.kind.value,
            "product_id": self.product_id,
            "message": self.message,
            "details": self.details,
        }


AnomalyHook = Callable[[DataAnomaly], None]
