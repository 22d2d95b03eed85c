"""
Book catalog data-access layer over a MongoDB collection.

This package provides:
- BookCatalogClient, an async façade for lookups, price updates, deletions,
  projection, sorting, pagination, aggregate statistics and index management
- Typed aggregation pipeline builders
- Book and result models
- The catalog error taxonomy
"""

from .client import BookCatalogClient
from .errors import CatalogError, QueryValidationError, StoreConnectionError, StoreError
from .models import AuthorBookCount, Book, BookProjection, DecadeCount, IndexSpec, SortDirection
from .plan import PlanSummary

__version__ = "1.0.0"

__all__ = [
    "BookCatalogClient",
    "CatalogError",
    "QueryValidationError",
    "StoreConnectionError",
    "StoreError",
    "AuthorBookCount",
    "Book",
    "BookProjection",
    "DecadeCount",
    "IndexSpec",
    "SortDirection",
    "PlanSummary",
]
