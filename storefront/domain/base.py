"""Base classes for the domain layer.

Provides the value object base shared by prices, ranges and statistics,
and the base for diagnostic records emitted while resolving products.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, ClassVar


# ============================================================================
# Value Object Base
# ============================================================================


@dataclass(frozen=True)
class ValueObject(ABC):
    """Base class for value objects.

    Value objects are immutable and compared by their attributes.
    They have no lifecycle and are interchangeable when equal.

    Example:
        @dataclass(frozen=True)
        class PriceRange(ValueObject):
            min: Decimal
            max: Decimal
    """

    pass


# ============================================================================
# Diagnostic Record Base
# ============================================================================


@dataclass(frozen=True)
class DiagnosticRecord(ABC):
    """Base class for diagnostics recorded alongside a usable result.

    Diagnostics describe something questionable that was found in the
    input and the deterministic fallback that was applied instead of
    failing. They are immutable and serializable for log sinks.

    Attributes:
        record_type: String identifier for the record type (set by subclass).
        recorded_at: Timestamp when the record was created.
    """

    record_type: ClassVar[str]

    recorded_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc),
        compare=False,
    )

    def to_dict(self) -> dict[str, Any]:
        """Convert record to dictionary for log sinks.

        Returns:
            Dictionary representation of the record.
        """
        return {
            "record_type": self.record_type,
            "recorded_at": self.recorded_at.isoformat(),
            **self._payload(),
        }

    @abstractmethod
    def _payload(self) -> dict[str, Any]:
        """Get record-specific payload data.

        Returns:
            Dictionary with record-specific data.
        """
        pass
