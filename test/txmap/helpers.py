"""
txmap Test Helper Functions
Backing mappings that record or fail the calls the transactional map makes.
"""
import threading
import time
from collections import deque
from collections.abc import MutableMapping
from dataclasses import dataclass, field
from typing import Any, Optional, Tuple

from txmap.read_committed_map import ReadCommittedMap


# ==================== Recording Backing Maps ====================

@dataclass
class CallInfo:
    method_name: str
    parameters: Tuple[Any, ...] = field(default_factory=tuple)


class RecordingMap(MutableMapping):
    """
    Dict-backed mapping that remembers every manipulating call
    (put / remove / clear) in order. Reads are not recorded.
    update() goes through __setitem__, so it shows up as one put per entry.
    """

    def __init__(self, initial=None):
        self._data = dict(initial or {})
        self.calls = deque()

    def _record(self, method_name: str, *parameters):
        self.calls.append(CallInfo(method_name, parameters))

    def __getitem__(self, key):
        return self._data[key]

    def __setitem__(self, key, value):
        self._record("put", key, value)
        self._data[key] = value

    def __delitem__(self, key):
        self._record("remove", key)
        del self._data[key]

    def __iter__(self):
        return iter(self._data)

    def __len__(self):
        return len(self._data)

    def __contains__(self, key):
        return key in self._data

    def pop(self, key, *default):
        self._record("remove", key)
        return self._data.pop(key, *default)

    def clear(self):
        self._record("clear")
        self._data.clear()

    def peek_call(self) -> Optional[CallInfo]:
        """Pop the oldest recorded call, or None when nothing is left."""
        if not self.calls:
            return None
        return self.calls.popleft()

    def method_names(self):
        return [c.method_name for c in self.calls]

    def snapshot(self) -> dict:
        return dict(self._data)


class FailingMap(RecordingMap):
    """RecordingMap whose put of `fail_key` raises."""

    def __init__(self, fail_key, initial=None):
        super().__init__(initial)
        self.fail_key = fail_key

    def __setitem__(self, key, value):
        if key == self.fail_key:
            raise KeyError(f"refusing to store {key!r}")
        super().__setitem__(key, value)


# ==================== Map Factory ====================

def new_map(initial=None, **kwargs) -> Tuple[ReadCommittedMap, RecordingMap]:
    """Create a ReadCommittedMap over a fresh RecordingMap with recorded seed calls dropped."""
    backing = RecordingMap(initial)
    return ReadCommittedMap(backing, **kwargs), backing


# ==================== Thread Helpers ====================

def run_in_thread(fn, timeout: float = 5.0):
    """
    Run fn on a new thread and return (result, exception).
    Fails the test if the thread does not finish in time.
    """
    outcome = {}

    def target():
        try:
            outcome["result"] = fn()
        except BaseException as e:
            outcome["error"] = e

    t = threading.Thread(target=target)
    t.start()
    t.join(timeout)
    assert not t.is_alive(), "worker thread did not finish in time"
    return outcome.get("result"), outcome.get("error")


def wait_until(predicate, timeout: float = 5.0, interval: float = 0.005) -> bool:
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()
