import json
import os
import threading

import pytest
from jsonkit.errors import PersistenceError
from jsonkit.storage import DebouncedSaver, FileStorage

def test_load_missing_and_empty(tmp_path):
    fs = FileStorage(tmp_path / "none.json")
    assert fs.load() == {}
    empty = tmp_path / "empty.json"
    empty.write_text("  \n")
    assert FileStorage(empty).load() == {}

def test_save_pretty_with_indent(tmp_path):
    path = tmp_path / "a" / "b.json"
    fs = FileStorage(str(path), indent=4)
    fs.save({"users": [{"name": "Zoë"}]})
    text = path.read_text(encoding="utf-8")
    assert text.startswith('{\n    "users"')
    assert "Zoë" in text
    assert fs.load() == {"users": [{"name": "Zoë"}]}
    # No temp files left behind
    assert os.listdir(path.parent) == ["b.json"]

def test_backup_keeps_previous_version(tmp_path):
    path = tmp_path / "db.json"
    fs = FileStorage(path, backup=True)
    fs.save({"v": 1})
    assert not os.path.exists(fs.backup_path)
    fs.save({"v": 2})
    assert json.loads(open(fs.backup_path, encoding="utf-8").read()) == {"v": 1}
    assert fs.load() == {"v": 2}

def test_write_failure_is_wrapped(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x")
    fs = FileStorage(blocker / "db.json")
    with pytest.raises(PersistenceError) as ei:
        fs.save({})
    assert isinstance(ei.value.__cause__, OSError)

def test_debounce_zero_writes_immediately():
    calls = []
    saver = DebouncedSaver(lambda: calls.append(1), 0)
    saver.request()
    saver.request()
    assert calls == [1, 1]
    assert not saver.pending

def test_debounce_coalesces_requests():
    done = threading.Event()
    calls = []

    def write():
        calls.append(1)
        done.set()

    saver = DebouncedSaver(write, 0.05)
    for _ in range(5):
        saver.request()
    assert saver.pending
    assert done.wait(5)
    assert calls == [1]
    assert not saver.pending
    saver.flush()
    assert calls == [1]

def test_flush_and_cancel():
    calls = []
    saver = DebouncedSaver(lambda: calls.append(1), 60)
    saver.request()
    saver.flush()
    assert calls == [1]
    saver.request()
    saver.cancel()
    saver.flush()
    assert calls == [1]

def test_background_failure_surfaces_on_flush():
    done = threading.Event()

    def write():
        try:
            raise PersistenceError("disk full")
        finally:
            done.set()

    saver = DebouncedSaver(write, 0.01)
    saver.request()
    assert done.wait(5)
    # The timer thread holds the lock until the error is recorded
    with saver._lock:
        pass
    with pytest.raises(PersistenceError):
        saver.flush()
    saver.flush()

def test_write_may_request_again():
    calls = []

    def write():
        calls.append(1)
        if len(calls) == 1:
            saver.request()

    saver = DebouncedSaver(write, 0)
    saver.request()
    assert calls == [1, 1]

    calls.clear()
    saver = DebouncedSaver(write, 60)
    saver.request()
    saver.flush()
    assert calls == [1]
    assert saver.pending
    saver.cancel()
    assert not saver.pending
