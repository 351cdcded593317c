from collections.abc import Mapping, MutableMapping
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Optional, Tuple, Union
import logging
import threading
import weakref

from txmap.base.transactional_map import TransactionalMap
from txmap.config import TxMapConfig, get_config
from txmap.exceptions import (
    BackingStoreError,
    InvalidTransactionError,
    NoActiveTransactionError,
    TransactionAlreadyActiveError,
    TransactionAlreadyAssociatedError,
    TransactionNotSuspendedError,
)
from txmap.impl.locked_store import LockedStore
from txmap.impl.tx_buffer import TxBuffer

logger = logging.getLogger("txmap")

_MISSING = object()


class ReadCommittedMap(TransactionalMap):
    """
    Transactional wrapper around a mutable mapping that applies all changes
    only when the transaction commits.

    Each thread has its own active transaction slot. Suspended transactions
    are kept in a registry shared by all threads, so a transaction can be
    suspended on one thread and resumed on another. Callers without a
    transaction read and write the backing mapping directly, under the
    store lock.
    """

    def __init__(
        self,
        backing: Optional[MutableMapping] = None,
        replay_all_removes: Optional[bool] = None,
        *,
        config: Optional[TxMapConfig] = None,
    ):
        self.config = config if config is not None else get_config()
        if replay_all_removes is None:
            replay_all_removes = self.config.replay_all_removes
        self._replay_all_removes = replay_all_removes

        self.store = LockedStore(backing if backing is not None else {})

        self._active = threading.local()
        self._suspended: Dict[Any, TxBuffer] = {}
        # token -> buffer installed in some thread's slot; entries vanish with the buffer
        self._active_tokens = weakref.WeakValueDictionary()
        self._mutex = threading.Lock()   # protects _suspended + _active_tokens

        logger.info(
            "ReadCommittedMap initialized: backing=%s, replay_all_removes=%s",
            type(backing).__name__ if backing is not None else "dict",
            replay_all_removes,
        )

    # =========================================================
    # Internal helper methods
    # =========================================================

    def _get_active_tx(self) -> Optional[TxBuffer]:
        return getattr(self._active, "buffer", None)

    def _set_active_tx(self, buffer: Optional[TxBuffer]) -> None:
        self._active.buffer = buffer

    def _coalesce_active_tx_or_store(self) -> Union[TxBuffer, LockedStore]:
        buffer = self._get_active_tx()
        return buffer if buffer is not None else self.store

    def _create_buffer(self, transaction: Any) -> TxBuffer:
        return TxBuffer(self.store, transaction, self._replay_all_removes)

    def _check_token(self, transaction: Any, operation: str) -> None:
        if transaction is None:
            logger.warning("TXMAP.%s rejected: transaction token is None", operation)
            raise InvalidTransactionError()
        try:
            hash(transaction)
        except TypeError as e:
            logger.warning("TXMAP.%s rejected: unhashable token %r", operation, transaction)
            raise InvalidTransactionError(
                f"Transaction token must be hashable: {e}", tx=transaction
            ) from e

    def _release_token(self, buffer: TxBuffer) -> None:
        # caller holds _mutex
        if self._active_tokens.get(buffer.tx) is buffer:
            del self._active_tokens[buffer.tx]

    def _end_active_tx(self, buffer: TxBuffer) -> None:
        self._set_active_tx(None)
        with self._mutex:
            self._release_token(buffer)

    # =========================================================
    # Transaction control
    # =========================================================

    def start_transaction(self, transaction: Any) -> None:
        self._check_token(transaction, "start")
        active = self._get_active_tx()
        if active is not None:
            logger.warning(
                "TXMAP.start invalid state: tx=%s while tx=%s is active", transaction, active.tx
            )
            raise TransactionAlreadyActiveError("start", active.tx, tx=transaction)

        buffer = self._create_buffer(transaction)
        with self._mutex:
            if transaction in self._suspended:
                logger.warning("TXMAP.start invalid state: tx=%s is suspended", transaction)
                raise TransactionAlreadyAssociatedError(transaction, "suspended")
            if self.config.strict_token_uniqueness and transaction in self._active_tokens:
                logger.warning(
                    "TXMAP.start invalid state: tx=%s is active on another thread", transaction
                )
                raise TransactionAlreadyAssociatedError(transaction, "active")
            self._active_tokens[transaction] = buffer
        self._set_active_tx(buffer)
        logger.info("TXMAP.start: tx=%s", transaction)

    def commit_transaction(self) -> None:
        buffer = self._get_active_tx()
        if buffer is None:
            logger.warning("TXMAP.commit invalid state: no active transaction")
            raise NoActiveTransactionError("commit")

        logger.info("TXMAP.commit start: %s", buffer.summary())
        try:
            buffer.commit()
        except Exception as e:
            logger.exception("TXMAP.commit failed: tx=%s, backing mapping left as applied so far", buffer.tx)
            raise BackingStoreError(buffer.tx, details=f"{type(e).__name__}: {e}") from e
        finally:
            self._end_active_tx(buffer)
        logger.info("TXMAP.commit done: tx=%s", buffer.tx)

    def rollback_transaction(self) -> None:
        buffer = self._get_active_tx()
        if buffer is None:
            logger.warning("TXMAP.rollback invalid state: no active transaction")
            raise NoActiveTransactionError("rollback")
        self._end_active_tx(buffer)
        logger.info("TXMAP.rollback: tx=%s", buffer.tx)

    def suspend_transaction(self) -> None:
        buffer = self._get_active_tx()
        if buffer is None:
            logger.warning("TXMAP.suspend invalid state: no active transaction")
            raise NoActiveTransactionError("suspend")
        with self._mutex:
            self._release_token(buffer)
            self._suspended[buffer.tx] = buffer
        self._set_active_tx(None)
        logger.info("TXMAP.suspend: tx=%s", buffer.tx)

    def resume_transaction(self, transaction: Any) -> None:
        self._check_token(transaction, "resume")
        active = self._get_active_tx()
        if active is not None:
            logger.warning(
                "TXMAP.resume invalid state: tx=%s while tx=%s is active", transaction, active.tx
            )
            raise TransactionAlreadyActiveError("resume", active.tx, tx=transaction)
        with self._mutex:
            buffer = self._suspended.pop(transaction, None)
            if buffer is None:
                logger.warning("TXMAP.resume invalid state: tx=%s is not suspended", transaction)
                raise TransactionNotSuspendedError(transaction)
            self._active_tokens[transaction] = buffer
        self._set_active_tx(buffer)
        logger.info("TXMAP.resume: tx=%s", transaction)

    def get_associated_transaction(self) -> Optional[Any]:
        buffer = self._get_active_tx()
        if buffer is None:
            return None
        return buffer.tx

    def is_suspended(self, transaction: Any) -> bool:
        with self._mutex:
            return transaction in self._suspended

    @property
    def replay_all_removes(self) -> bool:
        return self._replay_all_removes

    def is_all_remove_operation_replayed_on_commit(self) -> bool:
        return self._replay_all_removes

    @contextmanager
    def transaction(self, transaction: Any):
        """
        Context manager for a transaction on the calling thread.

        Commits on normal exit and rolls back when the body raises. If the
        body already ended or suspended the transaction, nothing more is done.

        Usage:
            with tx_map.transaction("tx-1"):
                tx_map["a"] = 1
        """
        self.start_transaction(transaction)
        buffer = self._get_active_tx()
        try:
            yield self
        except BaseException:
            if self._get_active_tx() is buffer:
                self.rollback_transaction()
            raise
        if self._get_active_tx() is buffer:
            self.commit_transaction()

    # =========================================================
    # Mapping surface
    # =========================================================

    def get(self, key, default=None):
        value = self._coalesce_active_tx_or_store().get(key)
        return default if value is None else value

    def put(self, key, value):
        return self._coalesce_active_tx_or_store().put(key, value)

    def remove(self, key):
        return self._coalesce_active_tx_or_store().remove(key)

    def put_all(self, mapping: Union[Mapping, Iterable[Tuple[Any, Any]]]) -> None:
        self._coalesce_active_tx_or_store().put_all(mapping)

    def update(self, other=(), /, **kwds) -> None:
        entries = dict(other)
        entries.update(kwds)
        self.put_all(entries)

    def clear(self) -> None:
        self._coalesce_active_tx_or_store().clear()

    def contains_key(self, key) -> bool:
        return self._coalesce_active_tx_or_store().contains_key(key)

    def contains_value(self, value) -> bool:
        return self._coalesce_active_tx_or_store().contains_value(value)

    def size(self) -> int:
        return self._coalesce_active_tx_or_store().size()

    def is_empty(self) -> bool:
        return self._coalesce_active_tx_or_store().is_empty()

    def keys(self) -> frozenset:
        return self._coalesce_active_tx_or_store().keys()

    def values(self) -> Tuple[Any, ...]:
        return self._coalesce_active_tx_or_store().values()

    def items(self) -> Tuple[Tuple[Any, Any], ...]:
        return self._coalesce_active_tx_or_store().items()

    def __getitem__(self, key):
        value = self._coalesce_active_tx_or_store().get(key, _MISSING)
        if value is _MISSING:
            raise KeyError(key)
        return value

    def __setitem__(self, key, value) -> None:
        self.put(key, value)

    def __delitem__(self, key) -> None:
        buffer = self._get_active_tx()
        if buffer is None:
            # check and remove under one exclusive lock
            if self.store.remove(key, _MISSING) is _MISSING:
                raise KeyError(key)
            return
        if not buffer.contains_key(key):
            raise KeyError(key)
        buffer.remove(key)

    def __contains__(self, key) -> bool:
        return self.contains_key(key)

    def __iter__(self):
        return iter(self.keys())

    def __len__(self) -> int:
        return self.size()

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(associated={self.get_associated_transaction()!r}, "
            f"size={self.size()})"
        )
