"""
Serialized, all-or-nothing hosting boundary for the TWS ledger.

``StakingService`` owns one ``TokenLedger`` and one ``StakingEngine``
and applies every operation the way a block applies a transaction:

  1. acquire the single writer lock
  2. snapshot ledger, engine and event-log length
  3. run the operation
  4. verify invariants
  5. on any failure, restore the snapshot and re-raise

Callers receive a ``Receipt`` listing the events the operation emitted.
``now`` defaults to the wall clock when the caller does not supply one.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from tws_core.errors import InvariantViolation, TWSError
from tws_core.events import Event, PoolSanitised
from tws_core.invariants import InvariantChecker
from tws_core.staking import StakingEngine, StakingInfo
from tws_core.token import TokenLedger

logger = logging.getLogger("tws.service")


@dataclass
class Receipt:
    """Outcome of one successfully applied operation."""
    operation: str
    caller: str
    now: int
    result: Any = None
    events: list[Event] = field(default_factory=list)

    def to_dict(self) -> dict:
        result = self.result
        if isinstance(result, Event):
            result = result.to_dict()
        elif isinstance(result, int) and not isinstance(result, bool):
            result = str(result)
        return {
            "operation": self.operation,
            "caller": self.caller,
            "now": self.now,
            "result": result,
            "events": [e.to_dict() for e in self.events],
        }


class StakingService:

    def __init__(
        self,
        ledger: TokenLedger,
        engine: StakingEngine,
        check_invariants: bool = True,
    ) -> None:
        if engine.ledger is not ledger:
            raise ValueError("engine must be bound to the same ledger")
        self.ledger = ledger
        self.engine = engine
        self.check_invariants = check_invariants
        self._lock = threading.RLock()
        self._checker = InvariantChecker()

    @property
    def events(self):
        return self.ledger.events

    # ── transaction boundary ────────────────────────────────────────

    def _apply(
        self,
        operation: str,
        caller: str,
        now: Optional[int],
        fn: Callable[[int], Any],
    ) -> Receipt:
        if now is None:
            now = int(time.time())
        with self._lock:
            ledger_snap = self.ledger.snapshot()
            engine_snap = self.engine.snapshot()
            mark = len(self.events)
            self._checker.capture(self.ledger)
            try:
                result = fn(now)
                if self.check_invariants:
                    ok, msg = self._checker.verify(self.ledger, self.engine)
                    if not ok:
                        raise InvariantViolation(msg, operation=operation)
            except Exception as exc:
                self.ledger.restore(ledger_snap)
                self.engine.restore(engine_snap)
                self.events.truncate(mark)
                if isinstance(exc, InvariantViolation):
                    logger.error(f"{operation} by {caller} rolled back: {exc}")
                elif isinstance(exc, TWSError):
                    logger.warning(f"{operation} by {caller} rejected: {exc.code} ({exc})")
                raise
            emitted = list(self.events.since(mark))
        logger.info(f"{operation} by {caller} applied ({len(emitted)} events)")
        for event in emitted:
            logger.debug(f"event {event.name}", extra={"event": event})
        return Receipt(operation, caller, now, result, emitted)

    # ── token operations ────────────────────────────────────────────

    def transfer(self, caller: str, to: str, amount: int,
                 now: Optional[int] = None) -> Receipt:
        return self._apply("transfer", caller, now,
                           lambda _: self.ledger.transfer(caller, to, amount))

    def transfer_from(self, caller: str, owner: str, to: str, amount: int,
                      now: Optional[int] = None) -> Receipt:
        return self._apply("transfer_from", caller, now,
                           lambda _: self.ledger.transfer_from(caller, owner, to, amount))

    def approve(self, caller: str, spender: str, amount: int,
                now: Optional[int] = None) -> Receipt:
        return self._apply("approve", caller, now,
                           lambda _: self.ledger.approve(caller, spender, amount))

    def set_tax_enabled(self, caller: str, enabled: bool,
                        now: Optional[int] = None) -> Receipt:
        return self._apply("set_tax_enabled", caller, now,
                           lambda _: self.ledger.set_tax_enabled(caller, enabled))

    def set_staking_contract(self, caller: str, address: str,
                             now: Optional[int] = None) -> Receipt:
        return self._apply("set_staking_contract", caller, now,
                           lambda _: self.ledger.set_staking_contract(caller, address))

    # ── staking operations ──────────────────────────────────────────

    def stake(self, caller: str, amount: int, now: Optional[int] = None) -> Receipt:
        return self._apply("stake", caller, now,
                           lambda t: self.engine.stake(caller, amount, t))

    def unstake(self, caller: str, now: Optional[int] = None) -> Receipt:
        return self._apply("unstake", caller, now,
                           lambda t: self.engine.unstake(caller, t))

    def sanitise_pool(self, caller: str, now: Optional[int] = None) -> Receipt:
        return self._apply("sanitise_pool", caller, now,
                           lambda t: self.engine.sanitise_pool(caller, t))

    def claim_reward(self, caller: str, now: Optional[int] = None) -> Receipt:
        return self._apply("claim_reward", caller, now,
                           lambda t: self.engine.claim_reward(caller, t))

    def set_allow_staking(self, caller: str, allowed: bool,
                          now: Optional[int] = None) -> Receipt:
        return self._apply("set_allow_staking", caller, now,
                           lambda _: self.engine.set_allow_staking(caller, allowed))

    # ── queries ─────────────────────────────────────────────────────

    def balance_of(self, account: str) -> int:
        with self._lock:
            return self.ledger.balance_of(account)

    def info(self, staker: str) -> StakingInfo:
        with self._lock:
            return self.engine.info(staker)

    def last_sanitisation(self) -> Optional[PoolSanitised]:
        with self._lock:
            found = self.events.by_name(PoolSanitised.name)
            return found[-1] if found else None

    def state(self) -> dict:
        with self._lock:
            return {
                "token": self.ledger.to_dict(),
                "staking": self.engine.summary(),
                "events": len(self.events),
            }
