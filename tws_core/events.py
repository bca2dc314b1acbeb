"""
Event records emitted by the token ledger and the staking engine.

These are the in-process counterparts of the contract log events:

  - Transferred    — ERC20 ``Transfer``
  - Staked         — ``Stake``
  - Unstaked       — ``Unstake``
  - PoolSanitised  — ``SanitisePool``
  - RewardClaimed  — ``ClaimReward``

Events are appended to a shared ``EventLog`` in emission order.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import ClassVar


@dataclass(frozen=True)
class Event:
    name: ClassVar[str] = "Event"

    @property
    def args(self) -> tuple:
        return tuple(asdict(self).values())

    def to_dict(self) -> dict:
        # str() keeps 256-bit integers intact through JSON consumers
        return {
            "event": self.name,
            "args": {k: str(v) if isinstance(v, int) and not isinstance(v, bool) else v
                     for k, v in asdict(self).items()},
        }


@dataclass(frozen=True)
class Transferred(Event):
    name: ClassVar[str] = "Transferred"
    sender: str
    recipient: str
    amount: int


@dataclass(frozen=True)
class Staked(Event):
    name: ClassVar[str] = "Staked"
    staker: str
    amount: int
    staked_tokens: int


@dataclass(frozen=True)
class Unstaked(Event):
    name: ClassVar[str] = "Unstaked"
    staker: str
    amount: int
    tax: int


@dataclass(frozen=True)
class PoolSanitised(Event):
    name: ClassVar[str] = "PoolSanitised"
    caller: str
    burn_amount: int
    user_reward: int
    pool_reward: int
    total_supply: int
    pool_balance: int


@dataclass(frozen=True)
class RewardClaimed(Event):
    name: ClassVar[str] = "RewardClaimed"
    staker: str
    amount: int
    reward_pool: int


@dataclass
class EventLog:
    """Append-only, ordered record of emitted events."""
    _events: list[Event] = field(default_factory=list)

    def emit(self, event: Event) -> Event:
        self._events.append(event)
        return event

    def events(self) -> list[Event]:
        return list(self._events)

    def by_name(self, name: str) -> list[Event]:
        return [e for e in self._events if e.name == name]

    def since(self, index: int) -> list[Event]:
        """Events emitted at or after position ``index``."""
        return self._events[index:]

    def last(self) -> Event | None:
        return self._events[-1] if self._events else None

    def truncate(self, length: int) -> None:
        """Discard events emitted after ``length`` (used on rollback)."""
        del self._events[length:]

    def __len__(self) -> int:
        return len(self._events)
