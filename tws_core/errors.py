"""
Typed failures raised by the token ledger and the staking engine.

Every ``TWSError`` aborts the operation that raised it with the ledger
and engine left exactly as they were before the call.  ``code`` is a
stable identifier suitable for logs and API responses; the default
message matches the on-chain revert reason.
"""

from __future__ import annotations

from typing import Any


class TWSError(Exception):
    """Base class for all ledger and staking failures."""

    code: str = "tws_error"
    default_message: str = "operation failed"

    def __init__(self, message: str | None = None, **details: Any) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict:
        d: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            d["details"] = self.details
        return d


class InsufficientBalance(TWSError):
    code = "insufficient_balance"
    default_message = "amount is greater than senders balance"


class InsufficientAllowance(TWSError):
    code = "insufficient_allowance"
    default_message = "transfer amount exceeds allowance"


class InvalidRecipient(TWSError):
    code = "invalid_recipient"
    default_message = "transfer to the zero address"


class Unauthorized(TWSError):
    code = "unauthorized"
    default_message = "caller is not authorised"


class StakingDisabled(TWSError):
    code = "staking_disabled"
    default_message = "staking is not enabled"


class BelowMinimum(TWSError):
    code = "below_minimum"
    default_message = "minimum stake amount is 1"


class NotStaked(TWSError):
    code = "not_staked"
    default_message = "user is not staked."


class TooSoon(TWSError):
    code = "too_soon"
    default_message = "only 1 burn every 6 hours"


class RewardPoolTooSmall(TWSError):
    code = "reward_pool_too_small"
    default_message = "reward pool is too small."


class AlreadyClaimed(TWSError):
    code = "already_claimed"
    default_message = "reward from this burn already claimed."


class ClockError(TWSError):
    """Supplied time went backwards; the execution clock is broken."""
    code = "clock_error"
    default_message = "timestamp is earlier than the last accounting time"


class InvariantViolation(TWSError):
    code = "invariant_violation"
    default_message = "ledger invariant violated"
