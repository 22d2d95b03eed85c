"""
Pydantic models for book records, query inputs and aggregate results.
"""

from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Tuple

from pydantic import BaseModel, Field, validator


PROJECTABLE_FIELDS = frozenset({"title", "author", "price"})


def _price_from_store(v):
    """Prices are stored as floats; read them back through their shortest repr."""
    if isinstance(v, float):
        return Decimal(repr(v))
    return v


class SortDirection(int, Enum):
    """Sort and index key direction."""
    ASCENDING = 1
    DESCENDING = -1


class Book(BaseModel):
    """
    A book record as stored in the catalog collection.

    The store's ``_id`` is not part of the model; extra document fields are ignored.
    """
    title: str = Field(..., description="Title of the book")
    author: str = Field(..., description="Author of the book")
    genre: str = Field(..., description="Genre of the book")
    published_year: int = Field(..., description="Year of publication")
    price: Decimal = Field(..., ge=0, description="Price in currency units")
    in_stock: bool = Field(..., description="Whether the book is available")

    @validator('price', pre=True)
    def coerce_price(cls, v):
        return _price_from_store(v)

    class Config:
        """Pydantic configuration."""
        extra = "ignore"
        json_schema_extra = {
            "example": {
                "title": "1984",
                "author": "George Orwell",
                "genre": "Dystopian",
                "published_year": 1949,
                "price": 10.99,
                "in_stock": True
            }
        }

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "Book":
        """Build a Book from a raw store document."""
        document = dict(document)
        document.pop("_id", None)
        return cls(**document)

    def to_document(self) -> Dict[str, Any]:
        """Convert to a store document; Decimal becomes float for MongoDB compatibility."""
        document = self.dict()
        document["price"] = float(document["price"])
        return document


class BookProjection(BaseModel):
    """A partial book holding only the projected fields."""
    title: Optional[str] = None
    author: Optional[str] = None
    price: Optional[Decimal] = None

    @validator('price', pre=True)
    def coerce_price(cls, v):
        return _price_from_store(v)

    class Config:
        extra = "ignore"

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "BookProjection":
        document = dict(document)
        document.pop("_id", None)
        return cls(**document)


class AuthorBookCount(BaseModel):
    """Author with the number of books they have in the catalog."""
    author: str
    count: int = Field(..., ge=0)

    def as_tuple(self) -> Tuple[str, int]:
        return self.author, self.count


class DecadeCount(BaseModel):
    """Number of books per decade, where decade is floor(published_year / 10)."""
    decade: int
    count: int = Field(..., ge=0)

    def as_tuple(self) -> Tuple[int, int]:
        return self.decade, self.count


class NonEmptyText(BaseModel):
    """Single lookup key (genre, author or title)."""
    value: str = Field(..., min_length=1)


class YearFilter(BaseModel):
    """Publication year bound; booleans and strings are rejected."""
    year: int = Field(..., strict=True)


class PriceUpdate(BaseModel):
    """Validated input for a price change."""
    title: str = Field(..., min_length=1)
    price: Decimal = Field(..., ge=0)


class PageRequest(BaseModel):
    """
    One page of the catalog.

    Page ``page_index`` starts after ``page_size * page_index`` records.
    """
    page_size: int = Field(..., gt=0)
    page_index: int = Field(0, ge=0)

    @property
    def skip(self) -> int:
        return self.page_size * self.page_index


class ProjectionRequest(BaseModel):
    """Fields to keep in a projected listing."""
    fields: Set[str] = Field(..., min_length=1)

    @validator('fields')
    def validate_fields(cls, v):
        """Only title, author and price may be projected."""
        unknown = set(v) - PROJECTABLE_FIELDS
        if unknown:
            raise ValueError(
                f'cannot project {sorted(unknown)}; allowed fields: {sorted(PROJECTABLE_FIELDS)}'
            )
        return v

    def to_projection(self) -> Dict[str, int]:
        projection = {field: 1 for field in sorted(self.fields)}
        projection["_id"] = 0
        return projection


class IndexField(BaseModel):
    """One key of an index specification."""
    name: str = Field(..., min_length=1)
    direction: SortDirection = SortDirection.ASCENDING

    def as_key(self) -> Tuple[str, int]:
        return self.name, self.direction.value


class IndexSpec(BaseModel):
    """Ordered list of index keys."""
    fields: List[IndexField] = Field(..., min_length=1)

    @validator('fields')
    def validate_unique(cls, v):
        """An index key may not repeat a field."""
        names = [field.name for field in v]
        if len(names) != len(set(names)):
            raise ValueError('index fields must be unique')
        return v

    @classmethod
    def of(cls, *keys) -> "IndexSpec":
        """
        Build a spec from field names or (name, direction) pairs.

        Example:
            IndexSpec.of("author", ("published_year", SortDirection.DESCENDING))
        """
        fields = []
        for key in keys:
            if isinstance(key, IndexField):
                fields.append(key)
            elif isinstance(key, str):
                fields.append(IndexField(name=key))
            else:
                name, direction = key
                fields.append(IndexField(name=name, direction=direction))
        return cls(fields=fields)

    def to_keys(self) -> List[Tuple[str, int]]:
        return [field.as_key() for field in self.fields]
