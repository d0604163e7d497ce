from __future__ import annotations
import copy
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Tuple

Path = Tuple[Any, ...]
Listener = Callable[[Path], None]


def observe(value: Any, listener: Optional[Listener], path: Path = ()) -> Any:
    """
    Convert dicts/lists (recursively) into observed containers reporting to `listener`.
    Containers already bound to the same listener are returned unchanged.
    """
    if isinstance(value, (ObservedDict, ObservedList)) and value._listener is listener:
        return value
    if isinstance(value, Mapping):
        return ObservedDict(value, listener=listener, path=path)
    if isinstance(value, list):
        return ObservedList(value, listener=listener, path=path)
    return value


def to_plain(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: to_plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [to_plain(v) for v in value]
    return value


class ObservedDict(dict):
    """
    dict that calls listener(path) after every structural write.
    `path` is the key path from the root at the time the container was attached.
    Values stored into it are converted to observed containers, so a plain dict
    passed in is copied rather than referenced.
    """
    __slots__ = ("_listener", "_path")

    def __init__(self, initial: Any = (), *, listener: Optional[Listener] = None, path: Path = ()) -> None:
        super().__init__()
        self._listener = listener
        self._path = tuple(path)
        for k, v in dict(initial).items():
            super().__setitem__(k, self._wrap(k, v))

    @property
    def path(self) -> Path:
        return self._path

    def _wrap(self, key: Any, value: Any) -> Any:
        return observe(value, self._listener, self._path + (key,))

    def _changed(self, *key: Any) -> None:
        if self._listener is not None:
            self._listener(self._path + key)

    def attach(self, key: Any, value: Any) -> Any:
        """Store `value` under `key` without notifying the listener; returns the stored value."""
        super().__setitem__(key, self._wrap(key, value))
        return super().__getitem__(key)

    def __setitem__(self, key: Any, value: Any) -> None:
        super().__setitem__(key, self._wrap(key, value))
        self._changed(key)

    def __delitem__(self, key: Any) -> None:
        super().__delitem__(key)
        self._changed(key)

    def update(self, *args: Any, **kwargs: Any) -> None:
        items = dict(*args, **kwargs)
        for k, v in items.items():
            super().__setitem__(k, self._wrap(k, v))
        if items:
            self._changed()

    def __ior__(self, other: Any) -> "ObservedDict":
        self.update(other)
        return self

    def setdefault(self, key: Any, default: Any = None) -> Any:
        if key not in self:
            self[key] = default
        return self[key]

    def pop(self, key: Any, *default: Any) -> Any:
        if key not in self:
            return super().pop(key, *default)
        value = super().pop(key)
        self._changed(key)
        return value

    def popitem(self) -> Tuple[Any, Any]:
        item = super().popitem()
        self._changed(item[0])
        return item

    def clear(self) -> None:
        if self:
            super().clear()
            self._changed()

    def __copy__(self) -> Dict[Any, Any]:
        return dict(self)

    def __deepcopy__(self, memo: Dict[int, Any]) -> Dict[Any, Any]:
        return copy.deepcopy(to_plain(self), memo)

    def __reduce__(self):
        return (dict, (to_plain(self),))


class ObservedList(list):
    """list counterpart of ObservedDict."""
    __slots__ = ("_listener", "_path")

    def __init__(self, initial: Iterable[Any] = (), *, listener: Optional[Listener] = None, path: Path = ()) -> None:
        super().__init__()
        self._listener = listener
        self._path = tuple(path)
        for v in initial:
            super().append(self._wrap(len(self), v))

    @property
    def path(self) -> Path:
        return self._path

    def _wrap(self, index: Any, value: Any) -> Any:
        return observe(value, self._listener, self._path + (index,))

    def _changed(self, *index: Any) -> None:
        if self._listener is not None:
            self._listener(self._path + index)

    def __setitem__(self, index: Any, value: Any) -> None:
        if isinstance(index, slice):
            start = index.start if isinstance(index.start, int) and index.start >= 0 else 0
            super().__setitem__(index, [self._wrap(start + i, v) for i, v in enumerate(value)])
            self._changed()
            return
        super().__setitem__(index, self._wrap(index, value))
        self._changed(index)

    def __delitem__(self, index: Any) -> None:
        super().__delitem__(index)
        self._changed()

    def append(self, value: Any) -> None:
        super().append(self._wrap(len(self), value))
        self._changed(len(self) - 1)

    def extend(self, values: Iterable[Any]) -> None:
        start = len(self)
        items = [self._wrap(start + i, v) for i, v in enumerate(values)]
        if not items:
            return
        super().extend(items)
        self._changed()

    def __iadd__(self, values: Iterable[Any]) -> "ObservedList":
        self.extend(values)
        return self

    def __imul__(self, n: int) -> "ObservedList":
        if n <= 0:
            self.clear()
        elif n > 1:
            self.extend(list(self) * (n - 1))
        return self

    def insert(self, index: int, value: Any) -> None:
        super().insert(index, self._wrap(index, value))
        self._changed(index)

    def pop(self, index: int = -1) -> Any:
        value = super().pop(index)
        self._changed()
        return value

    def remove(self, value: Any) -> None:
        super().remove(value)
        self._changed()

    def clear(self) -> None:
        if self:
            super().clear()
            self._changed()

    def sort(self, *, key: Any = None, reverse: bool = False) -> None:
        super().sort(key=key, reverse=reverse)
        self._changed()

    def reverse(self) -> None:
        super().reverse()
        self._changed()

    def __copy__(self) -> list:
        return list(self)

    def __deepcopy__(self, memo: Dict[int, Any]) -> list:
        return copy.deepcopy(to_plain(self), memo)

    def __reduce__(self):
        return (list, (to_plain(self),))
