"""
txmap Configuration

This module provides the configuration model for ReadCommittedMap instances
using Pydantic. Values are only ever set in code; nothing is read from the
environment.
"""

from pydantic import BaseModel, ConfigDict, Field


class TxMapConfig(BaseModel):
    """
    Transactional map configuration

    Example: ReadCommittedMap(backing, config=TxMapConfig(replay_all_removes=True))
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    # ========== Commit Configuration ==========
    replay_all_removes: bool = Field(
        default=False,
        description=(
            "Issue a backing remove at commit for every key a remove was called on, "
            "even when a later put in the same transaction supersedes it"
        )
    )

    # ========== Lifecycle Configuration ==========
    strict_token_uniqueness: bool = Field(
        default=True,
        description=(
            "Reject start_transaction for a token that is currently active "
            "on another thread, not only for suspended tokens"
        )
    )


# Global configuration instance
config = TxMapConfig()


def get_config() -> TxMapConfig:
    """
    Get the global configuration instance.

    Used by ReadCommittedMap when no explicit config is passed.

    Returns:
        TxMapConfig: The global configuration instance
    """
    return config
