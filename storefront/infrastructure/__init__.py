"""Infrastructure - settings and logging setup."""

from storefront.infrastructure.config import Settings, settings
from storefront.infrastructure.logging_setup import configure_logging

__all__ = ["Settings", "configure_logging", "settings"]
