"""
Async MongoDB façade for the book catalog.
Translates catalog operations into find, update, delete, aggregate,
index and explain requests and maps the responses into typed results.
"""

from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Type, TypeVar, Union

import structlog
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase
from pydantic import ValidationError
from pymongo.errors import OperationFailure

from . import pipeline
from .errors import QueryValidationError, StoreConnectionError, StoreError, invalid_input, store_errors
from .models import (
    AuthorBookCount, Book, BookProjection, DecadeCount, IndexSpec, NonEmptyText,
    PageRequest, PriceUpdate, ProjectionRequest, SortDirection, YearFilter,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")
M = TypeVar("M", Book, BookProjection)

INDEX_NOT_FOUND = 27

DEFAULT_INDEXES = (
    IndexSpec.of("title"),
    IndexSpec.of("author", "published_year"),
)


def _validated(factory: Callable[..., T], **kwargs) -> T:
    """Build a request model, turning pydantic errors into QueryValidationError."""
    try:
        return factory(**kwargs)
    except ValidationError as e:
        raise invalid_input(e) from e


def _to_models(model: Type[M], documents: List[Dict[str, Any]], operation: str) -> List[M]:
    """Map store documents onto ``model``; a document that does not fit is a StoreError."""
    results = []
    for document in documents:
        try:
            results.append(model.from_document(document))
        except ValidationError as e:
            logger.error("Malformed book document", operation=operation,
                         document_id=str(document.get("_id")), error=str(e))
            raise StoreError(
                f"malformed book document {document.get('_id')!r}: {e}",
                details={"document_id": document.get("_id")},
            ) from e
    return results


class BookCatalogClient:
    """
    Typed catalog operations over one MongoDB collection.

    The client is a scoped resource: use ``async with`` or pair ``connect()``
    with ``close()``. It keeps no per-call state, so one connected instance
    may be shared by concurrent tasks.

    Updates and deletes by title affect the first matching document in the
    store's natural order. When several books share a title, which one is
    affected is not defined.
    """

    def __init__(
        self,
        connection_url: str,
        database_name: str,
        collection_name: str,
        timeout_ms: int = 5000
    ):
        """
        Initialize the catalog client.

        Args:
            connection_url: MongoDB connection URL
            database_name: Name of the database
            collection_name: Name of the books collection
            timeout_ms: Server selection timeout passed to the driver
        """
        self.connection_url = connection_url
        self.database_name = database_name
        self.collection_name = collection_name
        self.timeout_ms = timeout_ms
        self.client: Optional[AsyncIOMotorClient] = None
        self.database: Optional[AsyncIOMotorDatabase] = None
        self.collection: Optional[AsyncIOMotorCollection] = None

    @classmethod
    def from_config(cls, config) -> "BookCatalogClient":
        """Create a client from a CatalogConfig."""
        return cls(
            connection_url=config.mongodb_url,
            database_name=config.mongodb_database,
            collection_name=config.mongodb_collection,
            timeout_ms=config.mongodb_timeout_ms,
        )

    async def connect(self) -> None:
        """Open the driver client and verify the server answers a ping."""
        # Reconnecting releases the previous driver client first
        self.close()
        with store_errors("connect", database=self.database_name):
            self.client = AsyncIOMotorClient(self.connection_url, serverSelectionTimeoutMS=self.timeout_ms)
            self.database = self.client[self.database_name]
            self.collection = self.database[self.collection_name]
            try:
                await self.client.admin.command('ping')
            except Exception:
                self.close()
                raise
        logger.info("Connected to MongoDB",
                    database=self.database_name,
                    collection=self.collection_name)

    def close(self) -> None:
        """Release the driver client. Safe to call more than once."""
        if self.client is not None:
            self.client.close()
            logger.info("Disconnected from MongoDB")
        self.client = None
        self.database = None
        self.collection = None

    async def __aenter__(self) -> "BookCatalogClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _books(self) -> AsyncIOMotorCollection:
        if self.collection is None:
            raise StoreConnectionError("Catalog client is not connected")
        return self.collection

    async def _find_books(self, operation: str, filter_query: Dict[str, Any], **context) -> List[Book]:
        collection = self._books()
        with store_errors(operation, filter=filter_query, **context):
            documents = await collection.find(filter_query).to_list(length=None)
        books = _to_models(Book, documents, operation)
        logger.debug("Books retrieved", operation=operation, count=len(books), **context)
        return books

    # Lookups

    async def find_by_genre(self, genre: str) -> List[Book]:
        """Books whose genre equals ``genre``; empty list when none match."""
        genre = _validated(NonEmptyText, value=genre).value
        return await self._find_books("find_by_genre", {"genre": genre}, genre=genre)

    async def find_published_after(self, year: int) -> List[Book]:
        """Books with published_year strictly greater than ``year``."""
        year = _validated(YearFilter, year=year).year
        return await self._find_books(
            "find_published_after", {"published_year": {"$gt": year}}, year=year
        )

    async def find_by_author(self, author: str) -> List[Book]:
        author = _validated(NonEmptyText, value=author).value
        return await self._find_books("find_by_author", {"author": author}, author=author)

    async def find_in_stock_after(self, year: int) -> List[Book]:
        """Books that are in stock and published strictly after ``year``."""
        year = _validated(YearFilter, year=year).year
        return await self._find_books(
            "find_in_stock_after",
            {"in_stock": True, "published_year": {"$gt": year}},
            year=year,
        )

    # Writes

    async def update_price(self, title: str, new_price: Union[Decimal, float, str]) -> int:
        """
        Set the price of the first book with the given title.

        Args:
            title: Title of the book to update
            new_price: New non-negative price

        Returns:
            Number of modified records, 0 when no book has this title
        """
        update = _validated(PriceUpdate, title=title, price=new_price)
        collection = self._books()
        with store_errors("update_price", title=update.title):
            result = await collection.update_one(
                {"title": update.title},
                {"$set": {"price": float(update.price)}}
            )

        if result.modified_count > 0:
            logger.debug("Updated book price", title=update.title, price=str(update.price))
        else:
            logger.warning("No book price modified", title=update.title, matched=result.matched_count)
        return result.modified_count

    async def delete_by_title(self, title: str) -> int:
        """
        Delete the first book with the given title.

        Returns:
            Number of deleted records, 0 when no book has this title
        """
        title = _validated(NonEmptyText, value=title).value
        collection = self._books()
        with store_errors("delete_by_title", title=title):
            result = await collection.delete_one({"title": title})

        if result.deleted_count > 0:
            logger.debug("Deleted book", title=title)
        else:
            logger.warning("Book not found for deletion", title=title)
        return result.deleted_count

    # Listings

    async def list_projected(self, fields: Iterable[str]) -> List[BookProjection]:
        """All books reduced to the given subset of title, author and price."""
        if isinstance(fields, str):
            fields = [fields]
        request = _validated(ProjectionRequest, fields=set(fields))
        projection = request.to_projection()
        collection = self._books()
        with store_errors("list_projected", projection=projection):
            documents = await collection.find({}, projection).to_list(length=None)
        return _to_models(BookProjection, documents, "list_projected")

    async def list_sorted(self, direction: SortDirection = SortDirection.ASCENDING) -> List[Book]:
        """
        All books ordered by price.

        Books with equal prices come back in the store's order, which is not
        guaranteed to be stable between calls.
        """
        try:
            direction = SortDirection(direction)
        except ValueError as e:
            raise QueryValidationError(f"invalid sort direction: {direction!r}") from e
        collection = self._books()
        with store_errors("list_sorted", direction=direction.name):
            documents = await collection.find({}).sort("price", direction.value).to_list(length=None)
        return _to_models(Book, documents, "list_sorted")

    async def list_page(self, page_size: int, page_index: int = 0) -> List[Book]:
        """
        One page of books in natural order.

        A page past the end of the catalog is an empty list.
        """
        page = _validated(PageRequest, page_size=page_size, page_index=page_index)
        collection = self._books()
        with store_errors("list_page", page_size=page.page_size, page_index=page.page_index):
            cursor = collection.find({}).skip(page.skip).limit(page.page_size)
            documents = await cursor.to_list(length=page.page_size)
        logger.debug("Page retrieved", page_index=page.page_index, count=len(documents))
        return _to_models(Book, documents, "list_page")

    async def count_books(self) -> int:
        collection = self._books()
        with store_errors("count_books"):
            return await collection.count_documents({})

    # Aggregations

    async def _aggregate(self, operation: str, stages: pipeline.Pipeline) -> List[Dict[str, Any]]:
        collection = self._books()
        built = stages.build()
        with store_errors(operation, pipeline=built):
            return await collection.aggregate(built).to_list(length=None)

    async def average_price_by_genre(self) -> Dict[str, float]:
        """Mapping of genre to the average price of its books; empty for an empty catalog."""
        groups = await self._aggregate("average_price_by_genre", pipeline.average_price_by_genre())
        return {group["_id"]: group["averagePrice"] for group in groups}

    async def author_with_most_books(self) -> Optional[AuthorBookCount]:
        """
        The author with the largest number of books, or None for an empty catalog.

        When several authors share the maximum, any one of them may be returned.
        """
        groups = await self._aggregate("author_with_most_books", pipeline.author_with_most_books())
        if not groups:
            return None
        top = groups[0]
        return AuthorBookCount(author=top["_id"], count=top["bookCount"])

    async def count_by_decade(self) -> List[DecadeCount]:
        """Book counts per decade (floor(published_year / 10)), ascending by decade."""
        groups = await self._aggregate("count_by_decade", pipeline.count_by_decade())
        # Books without a published_year fall into a null group and belong to no decade
        return [
            DecadeCount(decade=int(group["_id"]), count=group["count"])
            for group in groups
            if group["_id"] is not None
        ]

    # Indexes and plans

    async def ensure_index(self, fields: Iterable[Union[str, Tuple[str, Any]]]) -> str:
        """
        Create an index over the ordered fields if it does not exist yet.

        Args:
            fields: Field names or (field name, direction) pairs, in key order

        Returns:
            Name of the index
        """
        if isinstance(fields, str):
            fields = [fields]
        try:
            if isinstance(fields, IndexSpec):
                spec = fields
            else:
                spec = IndexSpec.of(*fields)
        except ValidationError as e:
            raise invalid_input(e) from e
        except (TypeError, ValueError) as e:
            raise QueryValidationError(f"invalid index specification: {e}") from e

        keys = spec.to_keys()
        collection = self._books()
        with store_errors("ensure_index", keys=keys):
            name = await collection.create_index(keys)
        logger.info("Index ensured", index=name, keys=keys)
        return name

    async def ensure_default_indexes(self) -> List[str]:
        """Create the title index and the author + published_year compound index."""
        return [await self.ensure_index(spec) for spec in DEFAULT_INDEXES]

    async def drop_index(self, fields: Iterable[Union[str, Tuple[str, Any]]]) -> bool:
        """
        Drop the index over the ordered fields.

        Returns:
            True if an index was dropped, False if none existed
        """
        if isinstance(fields, str):
            fields = [fields]
        try:
            spec = fields if isinstance(fields, IndexSpec) else IndexSpec.of(*fields)
        except ValidationError as e:
            raise invalid_input(e) from e
        except (TypeError, ValueError) as e:
            raise QueryValidationError(f"invalid index specification: {e}") from e

        keys = spec.to_keys()
        collection = self._books()
        with store_errors("drop_index", keys=keys):
            try:
                await collection.drop_index(keys)
            except OperationFailure as e:
                if e.code != INDEX_NOT_FOUND:
                    raise
                logger.debug("Index not present", keys=keys)
                return False
        logger.info("Index dropped", keys=keys)
        return True

    async def list_indexes(self) -> Dict[str, Dict[str, Any]]:
        """Index name mapped to the store's index information."""
        collection = self._books()
        with store_errors("list_indexes"):
            return await collection.index_information()

    async def explain_plan(
        self,
        filter_query: Optional[Dict[str, Any]] = None,
        verbosity: str = "executionStats"
    ) -> Dict[str, Any]:
        """
        Ask the store how it would run ``find(filter_query)``.

        The result is the store's own diagnostic document and is meant for
        observation only; see PlanSummary for a condensed view.
        """
        if verbosity not in ("queryPlanner", "executionStats", "allPlansExecution"):
            raise QueryValidationError(f"invalid explain verbosity: {verbosity!r}")
        collection = self._books()
        command = {"find": collection.name, "filter": filter_query or {}}
        with store_errors("explain_plan", filter=command["filter"]):
            return await collection.database.command("explain", command, verbosity=verbosity)
