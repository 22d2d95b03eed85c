"""
Pytest configuration and shared fixtures.
"""

import copy
import math
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from pymongo.errors import OperationFailure

from catalog.client import BookCatalogClient


def _sort_key(value):
    """Order nulls before any value, as MongoDB does."""
    return value is not None, value


class FakeCursor:
    """Cursor over an in-memory result list with find/aggregate cursor methods."""

    def __init__(self, documents):
        self.documents = list(documents)
        self._skip = 0
        self._limit = 0

    def sort(self, key, direction=1):
        self.documents.sort(key=lambda doc: _sort_key(doc.get(key)), reverse=direction == -1)
        return self

    def skip(self, count):
        self._skip = count
        return self

    def limit(self, count):
        self._limit = count
        return self

    async def to_list(self, length=None):
        documents = self.documents[self._skip:]
        if self._limit:
            documents = documents[:self._limit]
        if length is not None:
            documents = documents[:length]
        return [copy.deepcopy(doc) for doc in documents]


def _evaluate(expression, document):
    """Evaluate the small subset of aggregation expressions the client emits."""
    if isinstance(expression, str) and expression.startswith("$"):
        return document.get(expression[1:])
    if isinstance(expression, dict):
        if "$floor" in expression:
            value = _evaluate(expression["$floor"], document)
            return None if value is None else float(math.floor(value))
        if "$divide" in expression:
            numerator, denominator = (_evaluate(part, document) for part in expression["$divide"])
            if numerator is None or denominator is None:
                return None
            return numerator / denominator
    return expression


class FakeCollection:
    """
    In-memory stand-in for a motor collection.

    Understands equality and $gt filters, inclusive projections, $set updates,
    $group/$sort/$limit pipelines and index bookkeeping.
    """

    name = "books"

    def __init__(self, documents=()):
        self.documents = []
        self.indexes = {"_id_": {"v": 2, "key": [("_id", 1)]}}
        self.database = MagicMock()
        self.database.command = AsyncMock(return_value={})
        self.insert_many(documents)

    def insert_many(self, documents):
        for document in documents:
            document = dict(document)
            document.setdefault("_id", len(self.documents) + 1)
            self.documents.append(document)

    @staticmethod
    def _matches(document, filter_query):
        for key, condition in filter_query.items():
            value = document.get(key)
            if isinstance(condition, dict):
                if "$gt" in condition and not (value is not None and value > condition["$gt"]):
                    return False
            elif value != condition:
                return False
        return True

    @staticmethod
    def _project(document, projection):
        if not projection:
            return document
        kept = {key: document[key] for key, flag in projection.items() if flag and key in document}
        if projection.get("_id", 1) and "_id" in document:
            kept["_id"] = document["_id"]
        return kept

    def find(self, filter_query=None, projection=None):
        matched = [doc for doc in self.documents if self._matches(doc, filter_query or {})]
        return FakeCursor(self._project(doc, projection) for doc in matched)

    async def count_documents(self, filter_query):
        return len([doc for doc in self.documents if self._matches(doc, filter_query)])

    async def update_one(self, filter_query, update):
        for document in self.documents:
            if self._matches(document, filter_query):
                changes = update["$set"]
                modified = any(document.get(key) != value for key, value in changes.items())
                document.update(changes)
                return SimpleNamespace(matched_count=1, modified_count=int(modified))
        return SimpleNamespace(matched_count=0, modified_count=0)

    async def delete_one(self, filter_query):
        for position, document in enumerate(self.documents):
            if self._matches(document, filter_query):
                del self.documents[position]
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)

    def aggregate(self, pipeline):
        documents = [dict(doc) for doc in self.documents]
        for stage in pipeline:
            (operator, body), = stage.items()
            if operator == "$group":
                documents = self._group(documents, body)
            elif operator == "$sort":
                for key, direction in reversed(list(body.items())):
                    documents.sort(key=lambda doc: _sort_key(doc.get(key)), reverse=direction == -1)
            elif operator == "$limit":
                documents = documents[:body]
        return FakeCursor(documents)

    @staticmethod
    def _group(documents, body):
        groups = {}
        for document in documents:
            key = _evaluate(body["_id"], document)
            groups.setdefault(key, []).append(document)

        results = []
        for key, members in groups.items():
            result = {"_id": key}
            for output, accumulator in body.items():
                if output == "_id":
                    continue
                (operator, expression), = accumulator.items()
                values = [_evaluate(expression, member) for member in members]
                if operator == "$sum":
                    result[output] = sum(values)
                elif operator == "$avg":
                    result[output] = sum(values) / len(values)
            results.append(result)
        return results

    async def create_index(self, keys):
        name = "_".join(f"{key}_{direction}" for key, direction in keys)
        self.indexes.setdefault(name, {"v": 2, "key": list(keys)})
        return name

    async def drop_index(self, keys):
        name = "_".join(f"{key}_{direction}" for key, direction in keys)
        if name not in self.indexes:
            raise OperationFailure("index not found with name [" + name + "]", code=27)
        del self.indexes[name]

    async def index_information(self):
        return copy.deepcopy(self.indexes)


SAMPLE_BOOKS = [
    {"title": "To Kill a Mockingbird", "author": "Harper Lee", "genre": "Fiction",
     "published_year": 1960, "price": 12.99, "in_stock": True},
    {"title": "1984", "author": "George Orwell", "genre": "Dystopian",
     "published_year": 1949, "price": 10.99, "in_stock": True},
    {"title": "Animal Farm", "author": "George Orwell", "genre": "Political Satire",
     "published_year": 1945, "price": 8.50, "in_stock": False},
    {"title": "The Great Gatsby", "author": "F. Scott Fitzgerald", "genre": "Fiction",
     "published_year": 1925, "price": 9.99, "in_stock": True},
    {"title": "Moby Dick", "author": "Herman Melville", "genre": "Adventure",
     "published_year": 1851, "price": 12.50, "in_stock": False},
    {"title": "The Alchemist", "author": "Paulo Coelho", "genre": "Fiction",
     "published_year": 1988, "price": 10.50, "in_stock": True},
    {"title": "The Midnight Library", "author": "Matt Haig", "genre": "Fiction",
     "published_year": 2020, "price": 15.99, "in_stock": True},
]


def make_catalog(documents=()):
    """Create a catalog client wired to a FakeCollection holding ``documents``."""
    catalog = BookCatalogClient(
        connection_url="mongodb://localhost:27017",
        database_name="plp_bookstore_test",
        collection_name="books"
    )
    catalog.collection = FakeCollection(documents)
    return catalog


@pytest.fixture
def sample_books():
    """Seven book documents across several genres and decades."""
    return copy.deepcopy(SAMPLE_BOOKS)


@pytest.fixture
def book_catalog(sample_books):
    """Catalog client backed by an in-memory collection with the sample books."""
    return make_catalog(sample_books)


@pytest.fixture
def empty_catalog():
    """Catalog client backed by an empty in-memory collection."""
    return make_catalog()


@pytest.fixture
def mock_collection():
    """Create a mock motor collection for request-shape tests."""
    collection = MagicMock()
    collection.name = "books"
    cursor = MagicMock()
    cursor.to_list = AsyncMock(return_value=[])
    cursor.sort.return_value = cursor
    cursor.skip.return_value = cursor
    cursor.limit.return_value = cursor
    collection.find.return_value = cursor
    collection.aggregate.return_value = cursor
    collection.update_one = AsyncMock(return_value=SimpleNamespace(matched_count=0, modified_count=0))
    collection.delete_one = AsyncMock(return_value=SimpleNamespace(deleted_count=0))
    collection.create_index = AsyncMock(return_value="title_1")
    collection.index_information = AsyncMock(return_value={})
    collection.drop_index = AsyncMock(return_value=None)
    collection.count_documents = AsyncMock(return_value=0)
    collection.database.command = AsyncMock(return_value={})
    return collection


@pytest.fixture
def mocked_catalog(mock_collection):
    """Catalog client wired to a MagicMock collection."""
    catalog = BookCatalogClient(
        connection_url="mongodb://localhost:27017",
        database_name="plp_bookstore_test",
        collection_name="books"
    )
    catalog.collection = mock_collection
    return catalog


@pytest.fixture
def catalog_factory():
    """Factory building in-memory catalogs from a list of documents."""
    return make_catalog
