from __future__ import annotations
import json
import logging
import os
import shutil
import tempfile
import threading
from typing import Any, Callable, Dict, Optional

from .errors import PersistenceError
from .progress import Progress

logger = logging.getLogger(__name__)


class FileStorage:
    """
    Whole-file JSON persistence: load() parses everything, save() overwrites everything.
    Writes go to a temp file in the target directory and are moved into place with os.replace.
    """
    def __init__(
        self,
        path: str,
        *,
        pretty: bool = True,
        indent: int = 2,
        backup: bool = False,
        progress: Optional[Progress] = None,
    ) -> None:
        self.path = os.fspath(path)
        self.pretty = pretty
        self.indent = indent
        self.backup = backup
        self._progress = progress or Progress()

    @property
    def backup_path(self) -> str:
        return self.path + ".bak"

    def exists(self) -> bool:
        return os.path.exists(self.path)

    def load(self) -> Dict[str, Any]:
        if not self.exists():
            logger.debug("%s does not exist, starting empty", self.path)
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                text = f.read()
        except OSError as exc:
            raise PersistenceError(f"failed to read {self.path}: {exc}", self.path) from exc
        if not text.strip():
            return {}
        try:
            obj = json.loads(text)
        except json.JSONDecodeError as exc:
            raise PersistenceError(f"invalid JSON in {self.path}: {exc}", self.path) from exc
        if not isinstance(obj, dict):
            raise PersistenceError(
                f"{self.path}: top-level value must be an object, got {type(obj).__name__}", self.path
            )
        logger.debug("loaded %s (%d bytes)", self.path, len(text))
        return obj

    def dumps(self, data: Any) -> str:
        if self.pretty:
            return json.dumps(data, indent=self.indent, ensure_ascii=False)
        return json.dumps(data, separators=(",", ":"), ensure_ascii=False)

    def save(self, data: Any) -> None:
        self._progress.start("save", self.path)
        try:
            text = self.dumps(data)
        except (TypeError, ValueError) as exc:
            raise PersistenceError(f"cannot serialize database for {self.path}: {exc}", self.path) from exc
        dir_name = os.path.dirname(os.path.abspath(self.path)) or "."
        try:
            os.makedirs(dir_name, exist_ok=True)
            if self.backup and self.exists():
                shutil.copy2(self.path, self.backup_path)
                self._progress.emit("backup.done", 100, self.backup_path)
            fd, tmp_path = tempfile.mkstemp(dir=dir_name, prefix=".tmp_", suffix=".json")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(text)
                os.replace(tmp_path, self.path)
            except BaseException:
                try:
                    os.remove(tmp_path)
                except OSError:
                    pass
                raise
        except OSError as exc:
            raise PersistenceError(f"failed to write {self.path}: {exc}", self.path) from exc
        logger.debug("saved %s (%d bytes)", self.path, len(text))
        self._progress.done("save", self.path)


class DebouncedSaver:
    """
    Coalesces save requests: request() (re)arms a timer and the write runs once
    `delay` seconds after the last request. delay <= 0 writes synchronously.
    flush() forces a pending write and re-raises a failure from a background write.
    """
    def __init__(self, write: Callable[[], None], delay: float = 0.0) -> None:
        self._write = write
        self.delay = float(delay)
        # Reentrant: a progress callback may mutate the database while a write runs
        self._lock = threading.RLock()
        self._timer: Optional[threading.Timer] = None
        self._generation = 0
        self._error: Optional[PersistenceError] = None

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def request(self) -> None:
        if self.delay <= 0:
            self._write()
            return
        with self._lock:
            self._cancel_timer()
            self._generation += 1
            timer = threading.Timer(self.delay, self._fire, args=(self._generation,))
            timer.daemon = True
            self._timer = timer
            timer.start()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self, generation: int) -> None:
        with self._lock:
            # Superseded by a later request or already flushed
            if generation != self._generation or self._timer is None:
                return
            self._timer = None
            try:
                self._write()
            except PersistenceError as exc:
                logger.error("debounced save failed: %s", exc)
                self._error = exc

    def flush(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._cancel_timer()
                self._generation += 1
                self._error = None
                self._write()
                return
            error, self._error = self._error, None
        if error is not None:
            raise error

    def cancel(self) -> None:
        with self._lock:
            self._cancel_timer()
            self._generation += 1
