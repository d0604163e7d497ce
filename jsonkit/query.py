from __future__ import annotations
import logging
import re
from functools import lru_cache
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from .errors import ConfigurationError, PatternError, QueryError
from .utils import canonical_json, compact_json

logger = logging.getLogger(__name__)

COMBINATORS = ("$and", "$or", "$not")
FIELD_OPERATORS = frozenset({
    "$eq", "$ne", "$gt", "$gte", "$lt", "$lte", "$in", "$nin",
    "$exists", "$regex", "$contains", "$startsWith", "$endsWith",
})

Query = Mapping[str, Any]
OrderBy = Union[str, Mapping[str, Any], Sequence[Tuple[str, Any]]]


class _Missing:
    """Marker for a field that is absent from a document (distinct from None)."""
    __slots__ = ()
    _instance: Optional["_Missing"] = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False

    def __copy__(self) -> "_Missing":
        return self

    def __deepcopy__(self, memo: Dict[int, Any]) -> "_Missing":
        return self


MISSING = _Missing()


def is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def is_sequence(v: Any) -> bool:
    return isinstance(v, (list, tuple))


def field_value(doc: Any, key: str) -> Any:
    if isinstance(doc, Mapping):
        return doc.get(key, MISSING)
    return MISSING


def values_equal(a: Any, b: Any) -> bool:
    """
    Structural, type-strict equality over JSON values.
    True never equals 1, 1 equals 1.0, containers compare element by element.
    """
    if a is MISSING or b is MISSING:
        return a is b
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if is_number(a) and is_number(b):
        return a == b
    if isinstance(a, str) or isinstance(b, str):
        return isinstance(a, str) and isinstance(b, str) and a == b
    if a is None or b is None:
        return a is None and b is None
    if isinstance(a, Mapping) and isinstance(b, Mapping):
        if len(a) != len(b):
            return False
        for k, v in a.items():
            if k not in b or not values_equal(v, b[k]):
                return False
        return True
    if is_sequence(a) and is_sequence(b):
        return len(a) == len(b) and all(values_equal(x, y) for x, y in zip(a, b))
    if isinstance(a, Mapping) or isinstance(b, Mapping) or is_sequence(a) or is_sequence(b):
        return False
    return a == b


def compare(a: Any, b: Any) -> Optional[int]:
    """-1/0/1 for number-number and str-str pairs, None for anything else."""
    if (is_number(a) and is_number(b)) or (isinstance(a, str) and isinstance(b, str)):
        return (a > b) - (a < b)
    return None


def to_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (Mapping, list, tuple)):
        return compact_json(value)
    return str(value)


@lru_cache(maxsize=256)
def _compile(pattern: str) -> "re.Pattern[str]":
    return re.compile(pattern)


def compile_pattern(pattern: Any) -> "re.Pattern[str]":
    if isinstance(pattern, re.Pattern):
        if not isinstance(pattern.pattern, str):
            raise PatternError(pattern.pattern, "bytes patterns cannot match text")
        return pattern
    if not isinstance(pattern, str):
        raise PatternError(pattern, "expected a string or a compiled pattern")
    try:
        return _compile(pattern)
    except re.error as exc:
        raise PatternError(pattern, str(exc)) from exc


def evaluate(value: Any, operator: str, operand: Any) -> bool:
    """
    Apply one field operator. `value` is MISSING when the document lacks the field.
    Unknown operators pass.
    """
    if operator == "$eq":
        return values_equal(value, operand)
    if operator == "$ne":
        return not values_equal(value, operand)
    if operator in ("$gt", "$gte", "$lt", "$lte"):
        c = compare(value, operand)
        if c is None:
            return False
        if operator == "$gt": return c > 0
        if operator == "$gte": return c >= 0
        if operator == "$lt": return c < 0
        return c <= 0
    if operator == "$in":
        return is_sequence(operand) and any(values_equal(value, o) for o in operand)
    if operator == "$nin":
        return is_sequence(operand) and not any(values_equal(value, o) for o in operand)
    if operator == "$exists":
        return (value is not MISSING) if operand else (value is MISSING)
    if operator == "$regex":
        if value is MISSING:
            return False
        try:
            pattern = compile_pattern(operand)
        except PatternError as exc:
            logger.warning("%s; predicate treated as non-match", exc)
            return False
        return pattern.search(to_text(value)) is not None
    if operator == "$contains":
        if isinstance(value, str):
            return to_text(operand) in value
        if is_sequence(value):
            return any(values_equal(item, operand) for item in value)
        return False
    if operator == "$startsWith":
        return value is not MISSING and to_text(value).startswith(to_text(operand))
    if operator == "$endsWith":
        return value is not MISSING and to_text(value).endswith(to_text(operand))
    return True


def is_operator_set(cond: Any) -> bool:
    return isinstance(cond, Mapping) and any(isinstance(k, str) and k.startswith("$") for k in cond)


def match_field(value: Any, cond: Any) -> bool:
    if is_operator_set(cond):
        for op, operand in cond.items():
            if not evaluate(value, op, operand):
                return False
        return True
    # Literal or nested mapping without operators: structural equality
    return values_equal(value, cond)


def _as_query(obj: Any, where: str) -> Query:
    if not isinstance(obj, Mapping):
        raise QueryError(f"{where} expects a query mapping, got {type(obj).__name__}")
    return obj


def _clauses(op: str, cond: Any) -> Iterable[Query]:
    if isinstance(cond, Mapping):
        return [cond]
    if not is_sequence(cond):
        raise QueryError(f"{op} expects a list of queries, got {type(cond).__name__}")
    return [_as_query(c, op) for c in cond]


def matches(doc: Any, query: Optional[Query]) -> bool:
    """
    True when `doc` satisfies every top-level entry of `query`.
    An empty (or None) query matches everything.
    """
    if not query:
        return True
    for key, cond in _as_query(query, "query").items():
        if key == "$and":
            if not all(matches(doc, q) for q in _clauses(key, cond)):
                return False
        elif key == "$or":
            if not any(matches(doc, q) for q in _clauses(key, cond)):
                return False
        elif key == "$not":
            if matches(doc, _as_query(cond, key)):
                return False
        elif isinstance(key, str) and key.startswith("$"):
            continue  # unknown top-level operator
        elif not match_field(field_value(doc, key), cond):
            return False
    return True


def filter_documents(collection: Iterable[Any], query: Optional[Query] = None) -> List[Any]:
    if not query:
        return list(collection)
    _as_query(query, "query")
    return [doc for doc in collection if matches(doc, query)]


def sort_direction(direction: Any) -> int:
    if isinstance(direction, str):
        d = direction.lower()
        if d in ("asc", "ascending"):
            return 1
        if d in ("desc", "descending"):
            return -1
    elif is_number(direction) and direction in (1, -1):
        return int(direction)
    raise ConfigurationError(f"invalid sort direction: {direction!r}")


def normalize_order_by(order_by: Optional[OrderBy]) -> List[Tuple[str, int]]:
    if not order_by:
        return []
    if isinstance(order_by, str):
        return [(order_by, 1)]
    items = order_by.items() if isinstance(order_by, Mapping) else order_by
    return [(field, sort_direction(direction)) for field, direction in items]


def sort_key(value: Any) -> Tuple[int, Any]:
    # missing/null < bool < number < string < everything else
    if value is MISSING or value is None:
        return (0, 0)
    if isinstance(value, bool):
        return (1, value)
    if is_number(value):
        return (2, value)
    if isinstance(value, str):
        return (3, value)
    return (4, canonical_json(value))


def sort_documents(documents: Iterable[Any], order_by: Optional[OrderBy]) -> List[Any]:
    """
    Stable multi-key sort: successive stable passes from the last key to the first.
    Documents with equal keys keep their collection order in both directions.
    """
    out = list(documents)
    for field, direction in reversed(normalize_order_by(order_by)):
        out.sort(key=lambda d: sort_key(field_value(d, field)), reverse=direction < 0)
    return out


def paginate(documents: Sequence[Any], skip: Any = 0, limit: Optional[int] = None) -> List[Any]:
    start = max(0, skip) if is_number(skip) and isinstance(skip, int) else 0
    if limit is None:
        return list(documents[start:])
    return list(documents[start:start + max(0, int(limit))])


def execute(
    collection: Iterable[Any],
    query: Optional[Query] = None,
    *,
    order_by: Optional[OrderBy] = None,
    skip: int = 0,
    limit: Optional[int] = None,
) -> List[Any]:
    """filter -> sort -> skip -> limit, always in this order."""
    docs = filter_documents(collection, query)
    if order_by:
        docs = sort_documents(docs, order_by)
    return paginate(docs, skip, limit)
