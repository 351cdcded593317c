from abc import abstractmethod
from collections.abc import MutableMapping
from typing import Any, Optional


class TransactionalMap(MutableMapping):
    """
    A mutable mapping whose changes can be grouped into transactions.

    A transaction is identified by a caller-chosen token (any hashable value
    other than None). While a transaction is associated with the calling
    thread, every mapping operation is scoped to it.
    """

    @abstractmethod
    def start_transaction(self, transaction: Any) -> None:
        """Associate a new transaction with the calling thread."""
        pass

    @abstractmethod
    def commit_transaction(self) -> None:
        """Apply the changes of the associated transaction and end it."""
        pass

    @abstractmethod
    def rollback_transaction(self) -> None:
        """Discard the changes of the associated transaction and end it."""
        pass

    @abstractmethod
    def suspend_transaction(self) -> None:
        """
        Detach the associated transaction from the calling thread.
        It can be resumed later, on any thread, by its token.
        """
        pass

    @abstractmethod
    def resume_transaction(self, transaction: Any) -> None:
        """Re-associate a suspended transaction with the calling thread."""
        pass

    @abstractmethod
    def get_associated_transaction(self) -> Optional[Any]:
        """Token of the transaction associated with the calling thread, or None."""
        pass
