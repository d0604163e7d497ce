from __future__ import annotations
import copy
import logging
import os
from typing import Any, Callable, Dict, Iterable, List, Mapping, MutableSequence, Optional, Sequence, Union

from . import __version__
from .chain import Chain
from .collection import (
    META_KEY, collection_names, find_collection, get_collection, remove_documents, sniff_schema,
    update_documents,
)
from .errors import ConfigurationError
from .progress import Progress, ProgressCallback
from .query import (
    MISSING, OrderBy, Query, execute, field_value, filter_documents, is_number, to_text, values_equal,
)
from .storage import DebouncedSaver, FileStorage
from .utils import now_iso

logger = logging.getLogger(__name__)


def _new_meta() -> Dict[str, Any]:
    return {"version": __version__, "created": now_iso(), "schemas": {}}


class Database:
    """
    JSON file database: the whole file is held in memory as
    {collection name: [document, ...]} and rewritten on every save.

    Mutating calls save automatically when auto_save is on. With debounce > 0
    rapid mutations are coalesced into one write; call flush() (or close())
    before relying on the file contents.
    """
    def __init__(
        self,
        path: Union[str, "os.PathLike[str]"],
        *,
        auto_save: bool = True,
        pretty: bool = True,
        indent: int = 2,
        debounce: float = 0.0,
        backup: bool = False,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        self.path = os.fspath(path)
        self.auto_save = auto_save
        self.data: Dict[str, Any] = {}
        self._meta = _new_meta()
        self._progress = Progress(on_progress)
        self._fs = FileStorage(self.path, pretty=pretty, indent=indent, backup=backup, progress=self._progress)
        self._saver = DebouncedSaver(self._write_now, debounce)
        self.load()

    def __repr__(self) -> str:
        return f"Database({self.path!r}, collections={self.collections()!r})"

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ----- lifecycle -----

    def load(self) -> "Database":
        """
        (Re)read the file, replacing in-memory state. A missing file is created.
        """
        self._progress.start("load", self.path)
        existed = self._fs.exists()
        raw = self._fs.load()
        meta = raw.pop(META_KEY, None)
        self._meta = meta if isinstance(meta, dict) else _new_meta()
        self._meta.setdefault("schemas", {})
        # Mutate in place so chains built earlier keep seeing the live data
        self.data.clear()
        self.data.update(raw)
        if not existed:
            self._write_now()
        self._progress.done("load", f"{len(self.collections())} collections")
        return self

    def _document(self) -> Dict[str, Any]:
        return {META_KEY: self._meta, **self.data}

    def _write_now(self) -> None:
        self._fs.save(self._document())

    def save(self) -> "Database":
        self._saver.request()
        return self

    def flush(self) -> None:
        self._saver.flush()

    def close(self) -> None:
        self.flush()

    def _changed(self) -> None:
        if self.auto_save:
            self.save()

    # ----- collections -----

    def collection(self, name: str) -> MutableSequence[Any]:
        return get_collection(self.data, name)

    def collections(self) -> List[str]:
        return collection_names(self.data)

    def schema(self, name: str) -> Optional[Dict[str, str]]:
        return self._meta["schemas"].get(name)

    @property
    def meta(self) -> Dict[str, Any]:
        return self._meta

    def chain(self, name: str) -> Chain:
        return Chain(self.data, name, save=self._changed)

    # ----- CRUD -----

    def _refresh_schema(self, name: str) -> None:
        schema = sniff_schema(find_collection(self.data, name))
        if schema is not None:
            self._meta["schemas"][name] = schema

    def insert(self, name: str, docs: Union[Mapping[str, Any], Iterable[Mapping[str, Any]]]) -> List[Any]:
        items = [docs] if isinstance(docs, Mapping) else list(docs)
        for doc in items:
            if not isinstance(doc, Mapping):
                raise TypeError(f"documents must be mappings, got {type(doc).__name__}")
        if not items:
            return items
        self.collection(name).extend(items)
        self._refresh_schema(name)
        self._changed()
        return items

    def find(
        self,
        name: str,
        query: Optional[Query] = None,
        *,
        order_by: Optional[OrderBy] = None,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> List[Any]:
        return execute(find_collection(self.data, name), query, order_by=order_by, skip=skip, limit=limit)

    def find_one(self, name: str, query: Optional[Query] = None) -> Any:
        got = self.find(name, query, limit=1)
        return got[0] if got else None

    def count(self, name: str, query: Optional[Query] = None) -> int:
        return len(filter_documents(find_collection(self.data, name), query))

    def update(self, name: str, query: Optional[Query], patch: Mapping[str, Any]) -> int:
        self._progress.start("update", name)
        coll = find_collection(self.data, name)
        n = update_documents(coll, filter_documents(coll, query), patch)
        self._progress.done("update", f"{n} updated")
        if n:
            self._changed()
        return n

    def patch(self, name: str, id: Any, patch: Mapping[str, Any]) -> int:
        """update() of the documents whose "id" equals `id`."""
        return self.update(name, {"id": id}, patch)

    def morph(self, name: str, fn: Callable[[Any], Any]) -> int:
        """
        Replace every document with fn(document). fn may return a new mapping
        or edit the one it is given. Returns how many documents came out different.
        """
        coll = find_collection(self.data, name)
        if not coll:
            return 0
        self._progress.start("morph", name)
        before = copy.deepcopy(list(coll))
        results = [fn(doc) for doc in coll]
        for doc in results:
            if not isinstance(doc, Mapping):
                raise TypeError(f"morph must return mappings, got {type(doc).__name__}")
        n = sum(1 for old, new in zip(before, results) if not values_equal(old, new))
        coll[:] = results
        self._progress.done("morph", f"{n} changed")
        if n:
            self._refresh_schema(name)
            self._changed()
        return n

    def transform(self, name: str, field: str, fn: Callable[[Any, Any], Any]) -> int:
        """
        Set doc[field] = fn(doc[field], doc) on every document that has the field.
        Returns how many values changed.
        """
        n = 0
        for doc in find_collection(self.data, name):
            if not isinstance(doc, Mapping) or field not in doc:
                continue
            old = copy.deepcopy(doc[field])
            new = fn(doc[field], doc)
            if not values_equal(old, new):
                doc[field] = new
                n += 1
        if n:
            self._changed()
        return n

    def delete(self, name: str, query: Optional[Query] = None) -> int:
        self._progress.start("delete", name)
        coll = find_collection(self.data, name)
        n = remove_documents(coll, filter_documents(coll, query))
        self._progress.done("delete", f"{n} deleted")
        if n:
            self._changed()
        return n

    def purge(self, name: str, predicate: Callable[[Any], bool]) -> int:
        """Delete the documents for which predicate(document) is true."""
        coll = find_collection(self.data, name)
        n = remove_documents(coll, [doc for doc in coll if predicate(doc)])
        if n:
            self._changed()
        return n

    def clear(self, name: str) -> int:
        if name not in self.data:
            return 0
        n = len(self.data[name])
        self.data[name] = []
        self._changed()
        return n

    def drop(self, name: str) -> bool:
        if name not in self.data:
            return False
        del self.data[name]
        self._meta["schemas"].pop(name, None)
        self._changed()
        return True

    # ----- extraction -----

    def pluck(self, name: str, field: str, query: Optional[Query] = None) -> List[Any]:
        values = (field_value(doc, field) for doc in filter_documents(find_collection(self.data, name), query))
        return [v for v in values if v is not MISSING]

    def unique(self, name: str, field: str, query: Optional[Query] = None) -> List[Any]:
        out: List[Any] = []
        for v in self.pluck(name, field, query):
            if not any(values_equal(v, seen) for seen in out):
                out.append(v)
        return out

    def harvest(self, name: str, fields: Sequence[str], query: Optional[Query] = None) -> List[Dict[str, Any]]:
        """Project each matching document onto `fields`; absent fields are left out."""
        return [
            {f: doc[f] for f in fields if f in doc}
            for doc in filter_documents(find_collection(self.data, name), query)
            if isinstance(doc, Mapping)
        ]

    def search(self, name: str, field: str, term: Any) -> List[Any]:
        """Case-insensitive substring match on the text form of `field`."""
        needle = to_text(term).lower()
        found = []
        for doc in find_collection(self.data, name):
            value = field_value(doc, field)
            text = "" if value is MISSING or value is None else to_text(value)
            if needle in text.lower():
                found.append(doc)
        return found

    def cluster(self, name: str, field: str, bounds: Sequence[Any]) -> Dict[str, List[Any]]:
        """
        Bucket documents by numeric `field` into half-open ranges between consecutive
        bounds, keyed "lo-hi". Values outside every range, or not numbers, are skipped.
        """
        if not all(is_number(b) for b in bounds):
            raise ConfigurationError(f"cluster bounds must be numbers, got {list(bounds)!r}")
        ranges = [(lo, hi, f"{to_text(lo)}-{to_text(hi)}") for lo, hi in zip(bounds, bounds[1:])]
        clusters: Dict[str, List[Any]] = {label: [] for _, _, label in ranges}
        for doc in find_collection(self.data, name):
            value = field_value(doc, field)
            if not is_number(value):
                continue
            for lo, hi, label in ranges:
                if lo <= value < hi:
                    clusters[label].append(doc)
                    break
        return clusters

    # ----- snapshots -----

    def snapshot(self) -> Dict[str, Any]:
        return copy.deepcopy(self._document())

    def restore(self, snapshot: Mapping[str, Any]) -> "Database":
        raw = copy.deepcopy(dict(snapshot))
        meta = raw.pop(META_KEY, None)
        if isinstance(meta, dict):
            self._meta = meta
            self._meta.setdefault("schemas", {})
        self.data.clear()
        self.data.update(raw)
        self._changed()
        return self
