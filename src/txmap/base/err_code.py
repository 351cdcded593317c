import enum

class ErrCode(enum.Enum):
    # ---------- Caller errors (programming mistakes, non-retryable) ----------
    INVALID_ARGUMENT = 10        # None or unhashable transaction token

    TXN_NOT_FOUND = 20           # token is not in the suspended registry
    TXN_STATE_ERROR = 21         # generic lifecycle violation
    NO_ACTIVE_TXN = 22           # commit/rollback/suspend without an active transaction
    TXN_ALREADY_ACTIVE = 23      # start/resume while this thread already has one
    TXN_ALREADY_ASSOCIATED = 24  # token already suspended or active on another thread

    # ---------- Backing mapping ----------
    BACKING_FAILURE = 40         # backing mapping raised while a commit was applied

    UNKNOWN_ERROR = 99
