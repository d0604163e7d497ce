from __future__ import annotations
import logging
import os
from typing import Any, Dict, List, Optional, Union

from .chain import Chain
from .collection import collection_names
from .observed import ObservedDict, Path, to_plain
from .progress import Progress, ProgressCallback
from .storage import DebouncedSaver, FileStorage

logger = logging.getLogger(__name__)


class MagicDatabase:
    """
    Reactive access mode: load() hands back the root mapping itself,
    and plain dict/list edits on it (db["users"].append(...), doc["age"] = 3, ...)
    schedule a save through the mutation listener.

        manager = magic("data.json")
        db = manager.load()
        db["users"] = []
        db["users"].append({"name": "Alice", "age": 25})
        manager.chain("users").where("age").gte(18).get()
        manager.flush()
    """
    def __init__(
        self,
        path: Union[str, "os.PathLike[str]"],
        *,
        auto_save: bool = True,
        pretty: bool = True,
        indent: int = 2,
        debounce: float = 0.1,
        backup: bool = False,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        self.path = os.fspath(path)
        self.auto_save = auto_save
        self._progress = Progress(on_progress)
        self._fs = FileStorage(self.path, pretty=pretty, indent=indent, backup=backup, progress=self._progress)
        self._saver = DebouncedSaver(self._write_now, debounce)
        self._root = ObservedDict(listener=self._on_mutation)
        self._loaded = False

    def __enter__(self) -> "MagicDatabase":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def loaded(self) -> bool:
        return self._loaded

    def load(self) -> ObservedDict:
        if self._loaded:
            return self._root
        self._progress.start("load", self.path)
        existed = self._fs.exists()
        raw = self._fs.load()
        # Fill in place without notifications; chains may already hold the root
        dict.update(self._root, ObservedDict(raw, listener=self._on_mutation))
        self._loaded = True
        if not existed:
            self._write_now()
        self._progress.done("load", f"{len(self.collections())} collections")
        return self._root

    def _on_mutation(self, path: Path) -> None:
        logger.debug("mutation at /%s", "/".join(str(p) for p in path))
        if self.auto_save:
            self._saver.request()

    def _write_now(self) -> None:
        self._fs.save(self._root)

    def save(self) -> "MagicDatabase":
        self._saver.request()
        return self

    def flush(self) -> None:
        self._saver.flush()

    def close(self) -> None:
        self.flush()

    def get_data(self) -> ObservedDict:
        return self._root

    def snapshot(self) -> Dict[str, Any]:
        return to_plain(self._root)

    def collections(self) -> List[str]:
        return collection_names(self._root)

    def drop(self, name: str) -> "MagicDatabase":
        if name in self._root:
            del self._root[name]
        return self

    def clear(self, name: str) -> "MagicDatabase":
        self._root[name] = []
        return self

    def _chain_saved(self) -> None:
        # With auto_save on the mutation listener has already scheduled the write
        if not self.auto_save:
            self.save()

    def chain(self, name: str) -> Chain:
        # Chains always persist their mutations, even with auto_save off
        return Chain(self._root, name, save=self._chain_saved)


def magic(path: Union[str, "os.PathLike[str]"], **options: Any) -> MagicDatabase:
    return MagicDatabase(path, **options)
