from txmap.impl.locked_store import LockedStore
from txmap.impl.tx_buffer import TxBuffer
from helpers import RecordingMap


def new_buffer(initial=None, replay_all_removes=False):
    backing = RecordingMap(initial)
    store = LockedStore(backing)
    return TxBuffer(store, "tx", replay_all_removes), backing


def test_reads_fall_through_to_store_until_modified():
    buffer, _ = new_buffer({"a": 1})
    assert buffer.get("a") == 1
    assert buffer.get("missing", "dflt") == "dflt"
    assert buffer.contains_key("a")
    assert buffer.keys() == frozenset({"a"})
    assert buffer.is_read_only()


def test_put_then_remove_then_put():
    buffer, backing = new_buffer({"a": 1})

    assert buffer.put("a", 2) == 1
    assert buffer.get("a") == 2
    assert buffer.remove("a") == 2
    assert buffer.get("a") is None
    assert buffer.get("a", "dflt") == "dflt"
    assert not buffer.contains_key("a")
    assert "a" in buffer.removes and "a" not in buffer.puts

    assert buffer.put("a", 3) is None
    assert "a" in buffer.puts and "a" not in buffer.removes
    assert buffer.get("a") == 3

    assert not buffer.is_read_only()
    # nothing reached the backing map yet
    assert backing.snapshot() == {"a": 1}
    assert backing.peek_call() is None


def test_clear_hides_store_and_drops_pending_changes():
    buffer, _ = new_buffer({"a": 1, "b": 2})
    buffer.put("c", 3)
    buffer.remove("a")

    buffer.clear()
    assert buffer.cleared
    assert buffer.puts == {} and buffer.removes == set()
    assert buffer.is_empty()
    assert buffer.get("b") is None
    assert not buffer.contains_key("b")
    assert buffer.get("b", "dflt") == "dflt"

    # removes after clear are not recorded, the clear covers them
    buffer.remove("b")
    assert buffer.removes == set()

    buffer.put("d", 4)
    assert buffer.keys() == frozenset({"d"})
    assert buffer.items() == (("d", 4),)


def test_merged_views():
    buffer, _ = new_buffer({"a": 1, "b": 2})
    buffer.put("c", 3)
    buffer.remove("a")
    buffer.put("b", 20)

    assert buffer.keys() == frozenset({"b", "c"})
    assert sorted(buffer.values()) == [3, 20]
    assert sorted(buffer.items()) == [("b", 20), ("c", 3)]
    assert buffer.size() == 2
    assert buffer.contains_value(20)
    assert not buffer.contains_value(1)


def test_put_all_accepts_mapping_and_pairs():
    buffer, _ = new_buffer()
    buffer.put_all({"a": 1})
    buffer.put_all([("b", 2), ("c", 3)])
    assert buffer.keys() == frozenset({"a", "b", "c"})


def test_minimal_commit_skips_superseded_removes():
    buffer, backing = new_buffer({"a": 1, "b": 2})
    buffer.remove("a")
    buffer.put("a", 10)
    buffer.remove("b")

    buffer.commit()

    calls = list(backing.calls)
    assert [(c.method_name, c.parameters[0]) for c in calls] == [("remove", "b"), ("put", "a")]
    assert backing.snapshot() == {"a": 10}


def test_replay_commit_issues_every_remove_before_puts():
    buffer, backing = new_buffer({"a": 1}, replay_all_removes=True)
    buffer.remove("only_removed")
    buffer.put("a", 2)
    buffer.remove("a")
    buffer.put("a", 3)

    buffer.commit()

    names = backing.method_names()
    removed = {c.parameters[0] for c in backing.calls if c.method_name == "remove"}
    assert removed == {"only_removed", "a"}
    assert names == ["remove", "remove", "put"]
    assert backing.snapshot() == {"a": 3}


def test_replay_log_is_dropped_by_clear():
    buffer, backing = new_buffer({"a": 1}, replay_all_removes=True)
    buffer.remove("a")
    buffer.clear()
    buffer.put("a", 2)

    buffer.commit()

    assert backing.method_names() == ["clear", "put"]
    assert backing.snapshot() == {"a": 2}


def test_read_only_commit_takes_no_lock():
    buffer, backing = new_buffer({"a": 1})
    entered = []
    original = buffer.store.exclusive

    def spy():
        entered.append(True)
        return original()

    buffer.store.exclusive = spy
    buffer.get("a")
    buffer.keys()
    buffer.commit()

    assert entered == []
    assert backing.peek_call() is None


def test_commit_holds_exclusive_lock_once():
    buffer, _ = new_buffer({"a": 1})
    acquisitions = []
    original = buffer.store.lock.acquire_write

    def spy():
        acquisitions.append(True)
        original()

    buffer.store.lock.acquire_write = spy
    buffer.remove("a")
    buffer.put("b", 1)
    buffer.put("c", 2)
    buffer.commit()

    assert len(acquisitions) == 1
