from __future__ import annotations
import copy
from typing import Any, Dict, Iterable, List, Mapping, MutableMapping, MutableSequence, Optional, Sequence

from .errors import ConfigurationError
from .observed import ObservedDict
from .query import is_number

# Reserved top-level key holding version/schema bookkeeping; never a collection
META_KEY = "_meta"


def check_name(name: str) -> str:
    if name == META_KEY:
        raise ConfigurationError(f"{META_KEY!r} is reserved and cannot be used as a collection name")
    return name


def get_collection(data: MutableMapping[str, Any], name: str) -> MutableSequence[Any]:
    """
    Return the live list stored under `name`, attaching an empty one when absent.
    Attaching is silent on observed roots: an empty collection is not a change to save.
    """
    check_name(name)
    if data.get(name) is None:
        if isinstance(data, ObservedDict):
            data.attach(name, [])
        else:
            data[name] = []
    # Re-read: observed containers convert the list on assignment
    return data[name]


def find_collection(data: Mapping[str, Any], name: str) -> Sequence[Any]:
    """Read-only lookup: an absent collection reads as empty and is not created."""
    check_name(name)
    coll = data.get(name)
    return [] if coll is None else coll


def collection_names(data: Mapping[str, Any]) -> List[str]:
    return [k for k, v in data.items() if k != META_KEY and isinstance(v, list)]


def json_type(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if is_number(value):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    return "object"


def sniff_schema(documents: Iterable[Any]) -> Optional[Dict[str, str]]:
    """Best-effort field -> JSON type map taken from the first document only."""
    for doc in documents:
        if isinstance(doc, Mapping):
            return {str(k): json_type(v) for k, v in doc.items()}
        return None
    return None


def update_documents(collection: MutableSequence[Any], documents: Iterable[Any], patch: Mapping[str, Any]) -> int:
    """
    Shallow-merge `patch` into each of `documents` that is still part of `collection`.
    Returns the number of documents touched.
    """
    live = {id(d) for d in collection}
    n = 0
    for doc in documents:
        if id(doc) not in live or not isinstance(doc, MutableMapping):
            continue
        # Each document gets its own copy of nested patch values
        doc.update(copy.deepcopy(dict(patch)))
        n += 1
    return n


def remove_documents(collection: MutableSequence[Any], documents: Iterable[Any]) -> int:
    doomed = {id(d) for d in documents}
    if not doomed:
        return 0
    before = len(collection)
    kept = [d for d in collection if id(d) not in doomed]
    if len(kept) == before:
        return 0
    collection[:] = kept
    return before - len(kept)
