"""
Error taxonomy for catalog operations.

Not-found is never an error here: updates and deletes report a zero count,
lookups return empty lists or None.
"""

from contextlib import contextmanager
from typing import Any, Iterator, Optional

import structlog
from pydantic import ValidationError
from pymongo.errors import ConnectionFailure, PyMongoError

logger = structlog.get_logger(__name__)


class CatalogError(Exception):
    """Base class for all catalog errors."""


class StoreConnectionError(CatalogError, ConnectionError):
    """The store is unreachable or the client is not connected."""


class QueryValidationError(CatalogError, ValueError):
    """Caller input was rejected before any store request was issued."""


class StoreError(CatalogError):
    """Any other failure reported by the store."""

    def __init__(self, message: str, code: Optional[int] = None, details: Optional[Any] = None):
        super().__init__(message)
        self.code = code
        self.details = details


@contextmanager
def store_errors(operation: str, **context) -> Iterator[None]:
    """
    Translate driver exceptions raised inside the block into catalog errors.

    Args:
        operation: Name of the catalog operation, used in the log event
        **context: Extra fields for the log event
    """
    try:
        yield
    except ConnectionFailure as e:
        logger.error("Store unreachable", operation=operation, error=str(e), **context)
        raise StoreConnectionError(str(e)) from e
    except PyMongoError as e:
        logger.error("Store operation failed", operation=operation, error=str(e), **context)
        raise StoreError(
            str(e),
            code=getattr(e, "code", None),
            details=getattr(e, "details", None),
        ) from e


def invalid_input(error: ValidationError) -> QueryValidationError:
    """Build a QueryValidationError from a pydantic ValidationError."""
    messages = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ()))
        messages.append(f"{location}: {item['msg']}" if location else item["msg"])
    return QueryValidationError("; ".join(messages))
