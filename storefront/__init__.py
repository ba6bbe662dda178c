"""Storefront catalog core.

Resolves promotional prices and stock for products fetched from the
shop webservice, and filters, sorts and paginates them in memory.
"""

__version__ = "0.1.0"
