"""
Typed builders for MongoDB aggregation pipelines.

Stages are composed in order on a Pipeline and rendered with ``build()``:

    Pipeline().group(field("author"), bookCount=Accumulator.count()) \\
              .sort(("bookCount", SortDirection.DESCENDING)) \\
              .limit(1) \\
              .build()
"""

from typing import Any, Dict, List, Tuple, Union

from pydantic import BaseModel, Field

from .models import SortDirection


Expression = Union[str, int, float, Dict[str, Any], List[Any]]


def field(name: str) -> str:
    """Reference a document field inside an expression."""
    return f"${name}"


def floor_divide(name: str, divisor: int) -> Dict[str, Any]:
    """Expression for floor(<field> / divisor)."""
    return {"$floor": {"$divide": [field(name), divisor]}}


class Accumulator(BaseModel):
    """A $group accumulator such as {"$avg": "$price"}."""
    operator: str
    expression: Any

    @classmethod
    def avg(cls, name: str) -> "Accumulator":
        return cls(operator="$avg", expression=field(name))

    @classmethod
    def sum(cls, expression: Expression) -> "Accumulator":
        return cls(operator="$sum", expression=expression)

    @classmethod
    def count(cls) -> "Accumulator":
        return cls.sum(1)

    def to_mongo(self) -> Dict[str, Any]:
        return {self.operator: self.expression}


class GroupStage(BaseModel):
    """Group documents by a key expression and apply accumulators per group."""
    key: Any
    accumulators: Dict[str, Accumulator] = Field(default_factory=dict)

    def to_mongo(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"_id": self.key}
        for output, accumulator in self.accumulators.items():
            body[output] = accumulator.to_mongo()
        return {"$group": body}


class SortStage(BaseModel):
    """Order documents by one or more keys."""
    keys: List[Tuple[str, SortDirection]] = Field(..., min_length=1)

    def to_mongo(self) -> Dict[str, Any]:
        return {"$sort": {name: direction.value for name, direction in self.keys}}


class LimitStage(BaseModel):
    """Keep only the first ``count`` documents."""
    count: int = Field(..., gt=0)

    def to_mongo(self) -> Dict[str, Any]:
        return {"$limit": self.count}


Stage = Union[GroupStage, SortStage, LimitStage]


class Pipeline:
    """Ordered sequence of aggregation stages."""

    def __init__(self) -> None:
        self.stages: List[Stage] = []

    def group(self, key: Expression, **accumulators: Accumulator) -> "Pipeline":
        self.stages.append(GroupStage(key=key, accumulators=accumulators))
        return self

    def sort(self, *keys: Tuple[str, SortDirection]) -> "Pipeline":
        self.stages.append(SortStage(keys=list(keys)))
        return self

    def limit(self, count: int) -> "Pipeline":
        self.stages.append(LimitStage(count=count))
        return self

    def build(self) -> List[Dict[str, Any]]:
        """Render the stages as the list of documents MongoDB expects."""
        return [stage.to_mongo() for stage in self.stages]

    def __len__(self) -> int:
        return len(self.stages)


def average_price_by_genre() -> Pipeline:
    return Pipeline().group(field("genre"), averagePrice=Accumulator.avg("price"))


def author_with_most_books() -> Pipeline:
    # Equal counts keep the store's order, so any top author may come first.
    return (
        Pipeline()
        .group(field("author"), bookCount=Accumulator.count())
        .sort(("bookCount", SortDirection.DESCENDING))
        .limit(1)
    )


def count_by_decade() -> Pipeline:
    return (
        Pipeline()
        .group(floor_divide("published_year", 10), count=Accumulator.count())
        .sort(("_id", SortDirection.ASCENDING))
    )
