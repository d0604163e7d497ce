from __future__ import annotations
from typing import Any, Dict, Optional

from rich.console import Console

from .progress import ProgressCallback


def progress_printer(console: Optional[Console] = None, *, step: int = 5) -> ProgressCallback:
    """
    Build an on_progress callback that prints events with rich.
    A phase is printed on its first event, at 100%, and whenever it advanced by `step` percent.
    """
    console = console or Console(stderr=True, color_system="standard")
    last: Dict[str, int] = {}

    def printer(evt: Dict[str, Any]) -> None:
        phase = evt.get("phase", "")
        pct = int(evt.get("pct", 0))
        msg = evt.get("msg", "")
        prev = last.get(phase, -1)
        if pct == 100 or prev == -1 or pct - prev >= step:
            parts = [p for p in (phase, f"{pct}%", (f"- {msg}" if msg else "")) if p]
            console.print("[progress] " + " ".join(parts), markup=False, highlight=False)
            last[phase] = pct

    return printer
