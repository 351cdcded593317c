import logging
from collections.abc import Mapping
from typing import Any, Dict, Iterable, Set, Tuple, Union

from txmap.impl.locked_store import LockedStore

logger = logging.getLogger("txmap")


class TxBuffer:
    """
    Transaction-local write set of a ReadCommittedMap.

    Structure:
        puts     key -> value written in this transaction
        removes  keys whose deletion is pending
        cleared  clear() was called; the store contents no longer count

    Reads merge the buffer with the LockedStore. Nothing reaches the store
    before commit().
    """

    def __init__(self, store: LockedStore, transaction: Any, replay_all_removes: bool = False):
        self.store = store
        self.tx = transaction
        self.replay_all_removes = replay_all_removes

        self.puts: Dict[Any, Any] = {}
        self.removes: Set[Any] = set()
        self.cleared = False
        self.read_only = True
        # replay mode only: every key removed since the last clear, even if put again later
        self.replayed_removes: Set[Any] = set()

    def is_read_only(self) -> bool:
        return self.read_only

    def summary(self) -> dict:
        return {
            "tx": self.tx,
            "cleared": self.cleared,
            "puts": len(self.puts),
            "removes": len(self.removes),
            "read_only": self.read_only,
        }

    # =========================================================
    # Reads
    # =========================================================

    def get(self, key, default=None):
        if key in self.removes:
            # deleted in this tx
            return default
        if key in self.puts:
            return self.puts[key]
        if self.cleared:
            return default
        # not modified in this tx
        return self.store.get(key, default)

    def contains_key(self, key) -> bool:
        if key in self.removes:
            return False
        if key in self.puts:
            return True
        if self.cleared:
            return False
        return self.store.contains_key(key)

    def contains_value(self, value) -> bool:
        return value in self.values()

    def keys(self) -> frozenset:
        keys = set()
        if not self.cleared:
            keys.update(self.store.keys())
            keys.difference_update(self.removes)
        keys.update(self.puts.keys())
        return frozenset(keys)

    def values(self) -> Tuple[Any, ...]:
        values = []
        for key in self.keys():
            value = self.get(key)
            # No isolation against direct writers of the store: the key may be gone by now.
            if value is not None:
                values.append(value)
        return tuple(values)

    def items(self) -> Tuple[Tuple[Any, Any], ...]:
        items = []
        for key in self.keys():
            value = self.get(key)
            if value is not None:
                items.append((key, value))
        return tuple(items)

    def size(self) -> int:
        return len(self.keys())

    def is_empty(self) -> bool:
        return self.size() == 0

    # =========================================================
    # Writes (buffered)
    # =========================================================

    def put(self, key, value):
        self.read_only = False
        old_value = self.get(key)
        self.puts[key] = value
        self.removes.discard(key)
        logger.debug("TxBuffer.put: tx=%s key=%r", self.tx, key)
        return old_value

    def put_all(self, mapping: Union[Mapping, Iterable[Tuple[Any, Any]]]) -> None:
        items = mapping.items() if isinstance(mapping, Mapping) else mapping
        for key, value in items:
            self.put(key, value)

    def remove(self, key):
        old_value = self.get(key)
        self.read_only = False
        self.puts.pop(key, None)
        if not self.cleared:
            self.removes.add(key)
            if self.replay_all_removes:
                self.replayed_removes.add(key)
        logger.debug("TxBuffer.remove: tx=%s key=%r", self.tx, key)
        return old_value

    def clear(self) -> None:
        self.read_only = False
        self.cleared = True
        self.removes.clear()
        self.puts.clear()
        self.replayed_removes.clear()
        logger.debug("TxBuffer.clear: tx=%s", self.tx)

    # =========================================================
    # Commit
    # =========================================================

    def commit(self) -> None:
        """
        Write the buffered changes to the store under one exclusive lock.

        A read-only buffer returns without locking. If the backing mapping
        raises, the store keeps whatever was applied so far and the error
        propagates after the lock is released.
        """
        if self.read_only:
            logger.debug("TxBuffer.commit: tx=%s read-only, nothing to apply", self.tx)
            return

        with self.store.exclusive() as handle:
            if self.cleared:
                logger.debug("TxBuffer.commit apply: tx=%s clear", self.tx)
                handle.clear()
            else:
                if self.replay_all_removes:
                    removed = self.removes | self.replayed_removes
                else:
                    # a key is never in both removes and puts here
                    removed = self.removes
                for key in removed:
                    logger.debug("TxBuffer.commit apply: tx=%s remove key=%r", self.tx, key)
                    handle.remove(key)

            if self.puts:
                logger.debug("TxBuffer.commit apply: tx=%s puts=%d", self.tx, len(self.puts))
                handle.put_all(self.puts)
