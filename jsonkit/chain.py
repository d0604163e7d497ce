from __future__ import annotations
from typing import Any, Callable, Dict, Iterator, List, Mapping, MutableMapping, MutableSequence, Optional, Tuple

from .collection import check_name, get_collection, remove_documents, update_documents
from .errors import MissingFieldError
from .query import (
    MISSING, execute, field_value, is_number, is_operator_set, sort_direction, values_equal,
)


class Chain:
    """
    Fluent query builder over one collection.

        db.chain("users").where("role").eq("admin").and_("age").gt(20).sort_desc("age").get()

    where()/and_() pick the field the next operator applies to. or_() starts a new
    alternative: conditions given before it and after it are OR-ed as whole groups.
    Builder state is kept across terminal calls; every terminal re-reads the live
    collection.
    """

    def __init__(
        self,
        data: MutableMapping[str, Any],
        name: str,
        save: Optional[Callable[[], Any]] = None,
    ) -> None:
        self._data = data
        self.name = check_name(name)
        self._save = save
        self._branches: List[Dict[str, Any]] = [{}]
        self._field: Optional[str] = None
        self._sort: Optional[Tuple[str, int]] = None
        self._skip = 0
        self._limit: Optional[int] = None

    def __repr__(self) -> str:
        return f"Chain({self.name!r}, query={self.query!r}, sort={self._sort!r}, skip={self._skip}, limit={self._limit})"

    @property
    def collection(self) -> MutableSequence[Any]:
        return get_collection(self._data, self.name)

    @property
    def query(self) -> Dict[str, Any]:
        """Accumulated conditions as a plain query mapping (a copy)."""
        branches = [self._copy_branch(b) for b in self._branches if b]
        if not branches:
            return {}
        if len(branches) == 1:
            return branches[0]
        return {"$or": branches}

    @staticmethod
    def _copy_branch(branch: Dict[str, Any]) -> Dict[str, Any]:
        return {k: (dict(v) if is_operator_set(v) else v) for k, v in branch.items()}

    # ----- field selection -----

    def where(self, field: str) -> "Chain":
        self._field = field
        return self

    def select(self, field: str) -> "Chain":
        return self.where(field)

    def and_(self, field: str) -> "Chain":
        return self.where(field)

    def or_(self, field: str) -> "Chain":
        if self._branches[-1]:
            self._branches.append({})
        self._field = field
        return self

    # ----- conditions -----

    def _add(self, operator: str, value: Any) -> "Chain":
        if self._field is None:
            raise MissingFieldError(operator)
        branch = self._branches[-1]
        if operator == "$eq":
            # eq replaces everything previously attached to the field
            branch[self._field] = value
            return self
        current = branch.get(self._field)
        ops = dict(current) if is_operator_set(current) else {}
        ops[operator] = value
        branch[self._field] = ops
        return self

    def eq(self, value: Any) -> "Chain":
        """Collapse the current field to a literal match, dropping its other operators."""
        return self._add("$eq", value)

    def equals(self, value: Any) -> "Chain":
        return self.eq(value)

    def ne(self, value: Any) -> "Chain":
        return self._add("$ne", value)

    def not_equals(self, value: Any) -> "Chain":
        return self.ne(value)

    def gt(self, value: Any) -> "Chain":
        return self._add("$gt", value)

    def greater_than(self, value: Any) -> "Chain":
        return self.gt(value)

    def gte(self, value: Any) -> "Chain":
        return self._add("$gte", value)

    def greater_than_or_equal(self, value: Any) -> "Chain":
        return self.gte(value)

    def lt(self, value: Any) -> "Chain":
        return self._add("$lt", value)

    def less_than(self, value: Any) -> "Chain":
        return self.lt(value)

    def lte(self, value: Any) -> "Chain":
        return self._add("$lte", value)

    def less_than_or_equal(self, value: Any) -> "Chain":
        return self.lte(value)

    def contains(self, value: Any) -> "Chain":
        return self._add("$contains", value)

    def starts_with(self, value: Any) -> "Chain":
        return self._add("$startsWith", value)

    def ends_with(self, value: Any) -> "Chain":
        return self._add("$endsWith", value)

    def matches(self, pattern: Any) -> "Chain":
        return self._add("$regex", pattern)

    def in_(self, values: Any) -> "Chain":
        return self._add("$in", values)

    def not_in(self, values: Any) -> "Chain":
        return self._add("$nin", values)

    def exists(self, flag: bool = True) -> "Chain":
        return self._add("$exists", flag)

    def missing(self) -> "Chain":
        return self.exists(False)

    # ----- ordering and paging -----

    def sort(self, field: str, direction: Any = "asc") -> "Chain":
        # Single key only; a later call replaces the earlier one
        self._sort = (field, sort_direction(direction))
        return self

    def order_by(self, field: str, direction: Any = "asc") -> "Chain":
        return self.sort(field, direction)

    def sort_asc(self, field: str) -> "Chain":
        return self.sort(field, "asc")

    def sort_desc(self, field: str) -> "Chain":
        return self.sort(field, "desc")

    def limit(self, count: Optional[int]) -> "Chain":
        self._limit = count
        return self

    def take(self, count: Optional[int]) -> "Chain":
        return self.limit(count)

    def skip(self, count: int) -> "Chain":
        self._skip = count
        return self

    def offset(self, count: int) -> "Chain":
        return self.skip(count)

    # ----- terminals -----

    def get(self) -> List[Any]:
        return execute(
            self.collection,
            self.query,
            order_by=[self._sort] if self._sort else None,
            skip=self._skip,
            limit=self._limit,
        )

    def __iter__(self) -> Iterator[Any]:
        return iter(self.get())

    def first(self) -> Any:
        results = self.get()
        return results[0] if results else None

    def last(self) -> Any:
        results = self.get()
        return results[-1] if results else None

    def count(self) -> int:
        return len(self.get())

    def any(self) -> bool:
        return self.count() > 0

    def pluck(self, field: str) -> List[Any]:
        values = (field_value(doc, field) for doc in self.get())
        return [v for v in values if v is not MISSING]

    def unique(self, field: str) -> List[Any]:
        out: List[Any] = []
        for v in self.pluck(field):
            if not any(values_equal(v, seen) for seen in out):
                out.append(v)
        return out

    def group_by(self, field: str) -> Dict[Any, List[Any]]:
        groups: Dict[Any, List[Any]] = {}
        for doc in self.get():
            key = field_value(doc, field)
            if key is MISSING:
                key = None
            elif isinstance(key, (dict, list)):
                key = str(key)
            groups.setdefault(key, []).append(doc)
        return groups

    def _numbers(self, field: str) -> List[Any]:
        return [v for v in self.pluck(field) if is_number(v)]

    def sum(self, field: str) -> Any:
        return sum(self._numbers(field))

    def avg(self, field: str) -> float:
        values = self._numbers(field)
        return sum(values) / len(values) if values else 0

    def min(self, field: str) -> Any:
        values = self._numbers(field)
        return min(values) if values else None

    def max(self, field: str) -> Any:
        values = self._numbers(field)
        return max(values) if values else None

    def _saved(self, n: int) -> int:
        if n and self._save is not None:
            self._save()
        return n

    def update(self, patch: Mapping[str, Any]) -> int:
        """Shallow-merge `patch` into every current match; returns how many changed."""
        return self._saved(update_documents(self.collection, self.get(), patch))

    def update_one(self, patch: Mapping[str, Any]) -> int:
        doc = self.first()
        if doc is None:
            return 0
        return self._saved(update_documents(self.collection, [doc], patch))

    def delete(self) -> int:
        return self._saved(remove_documents(self.collection, self.get()))

    def delete_one(self) -> int:
        doc = self.first()
        if doc is None:
            return 0
        return self._saved(remove_documents(self.collection, [doc]))
