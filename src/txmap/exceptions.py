"""
txmap Exceptions

This module defines the exception classes raised by the transactional map.
Every exception carries an ErrCode so callers can branch on the code instead
of the class when convenient.
"""

from typing import Any, Optional

from txmap.base.err_code import ErrCode


class TxMapError(Exception):
    """
    Base exception class for all txmap errors.

    All custom exceptions should inherit from this class.
    """

    def __init__(
        self,
        message: str,
        err: ErrCode = ErrCode.UNKNOWN_ERROR,
        details: Optional[str] = None,
        tx: Any = None,
    ):
        """
        Initialize TxMapError.

        Args:
            message: Human-readable error message
            err: Error code classifying the failure
            details: Additional error details (optional)
            tx: Transaction token associated with this error (optional)
        """
        super().__init__(message)
        self.message = message
        self.err = err
        self.details = details
        self.tx = tx

    def to_dict(self) -> dict:
        """Convert exception to dict, e.g. for structured log records."""
        result = {
            "error": self.message,
            "code": self.err.name,
        }
        if self.details:
            result["details"] = self.details
        if self.tx is not None:
            result["tx"] = repr(self.tx)
        return result


class TransactionStateError(TxMapError, RuntimeError):
    """
    A lifecycle operation was invoked while its preconditions did not hold.

    These are programming errors; the map state is left untouched.
    """

    def __init__(
        self,
        message: str = "Illegal transaction state",
        err: ErrCode = ErrCode.TXN_STATE_ERROR,
        details: Optional[str] = None,
        tx: Any = None,
    ):
        super().__init__(message=message, err=err, details=details, tx=tx)


class NoActiveTransactionError(TransactionStateError):
    """Raised when commit, rollback or suspend finds no active transaction."""

    def __init__(self, operation: str, details: Optional[str] = None):
        super().__init__(
            message=f"There is no active associated transaction to {operation}",
            err=ErrCode.NO_ACTIVE_TXN,
            details=details,
        )
        self.operation = operation


class TransactionAlreadyActiveError(TransactionStateError):
    """Raised when start or resume is called while the thread has an active transaction."""

    def __init__(self, operation: str, active_tx: Any, tx: Any = None):
        super().__init__(
            message=(
                f"Cannot {operation} transaction when there is another "
                f"active associated transaction"
            ),
            err=ErrCode.TXN_ALREADY_ACTIVE,
            details=f"active={active_tx!r}",
            tx=tx,
        )
        self.operation = operation
        self.active_tx = active_tx


class TransactionNotSuspendedError(TransactionStateError):
    """Raised when resume is called with a token that is not suspended."""

    def __init__(self, tx: Any):
        super().__init__(
            message="There is no such suspended associated transaction",
            err=ErrCode.TXN_NOT_FOUND,
            tx=tx,
        )


class TransactionAlreadyAssociatedError(TransactionStateError):
    """
    Raised when start is called with a token that is already in flight,
    either suspended or active on another thread.
    """

    def __init__(self, tx: Any, state: str):
        super().__init__(
            message=f"Transaction is already associated to the map in {state} state",
            err=ErrCode.TXN_ALREADY_ASSOCIATED,
            tx=tx,
        )
        self.state = state


class InvalidTransactionError(TxMapError, ValueError):
    """Raised for a None or unhashable transaction token."""

    def __init__(self, message: str = "Transaction token must not be None", tx: Any = None):
        super().__init__(
            message=message,
            err=ErrCode.INVALID_ARGUMENT,
            tx=tx,
        )


class BackingStoreError(TxMapError):
    """
    Raised by commit when the backing mapping failed while changes were applied.

    The original exception is chained as __cause__. The backing mapping may be
    partially updated; the transaction is over either way.
    """

    def __init__(self, tx: Any, details: Optional[str] = None):
        super().__init__(
            message="Backing mapping failed during commit",
            err=ErrCode.BACKING_FAILURE,
            details=details,
            tx=tx,
        )
