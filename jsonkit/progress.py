from __future__ import annotations
from typing import Any, Callable, Dict, Optional

ProgressCallback = Callable[[Dict[str, Any]], None]


class Progress:
    """
    Emits progress events to an optional on_progress callback.
    Event shape: {"phase": "save.start", "pct": 0, "msg": "..."}
    """
    def __init__(self, callback: Optional[ProgressCallback] = None) -> None:
        self._cb = callback

    @property
    def enabled(self) -> bool:
        return self._cb is not None

    def emit(self, phase: str, pct: int = 0, msg: str = "") -> None:
        if self._cb is None:
            return
        self._cb({"phase": phase, "pct": int(pct), "msg": msg})

    def start(self, op: str, msg: str = "") -> None:
        self.emit(f"{op}.start", 0, msg)

    def done(self, op: str, msg: str = "") -> None:
        self.emit(f"{op}.done", 100, msg)
