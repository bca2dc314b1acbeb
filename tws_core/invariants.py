"""
Post-operation invariant checks for the TWS ledger and staking engine.

  - Sum of all balances equals total supply
  - No balance or allowance is negative
  - Total supply equals initial supply minus everything burned
  - Supply only ever decreases (nothing is minted after genesis)
  - Sum of staked positions equals the global staked total
  - An empty staking slot carries no token-time and no timestamp
  - Global token-time equals the sum of per-staker token-time
  - Engine custody covers every stake plus the reward pool

``StakingService`` captures a snapshot before each operation and calls
``verify`` afterwards; if any invariant fails the operation is rolled
back and rejected.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class LedgerSnapshot:
    """Key figures captured before an operation."""
    total_supply: int = 0
    total_burned: int = 0


class InvariantChecker:

    def __init__(self):
        self._snapshot: LedgerSnapshot | None = None

    def capture(self, ledger) -> None:
        """Take a snapshot of the supply figures before an operation."""
        self._snapshot = LedgerSnapshot(
            total_supply=ledger.total_supply,
            total_burned=ledger.total_burned,
        )

    def verify(self, ledger, engine=None) -> tuple[bool, str]:
        """
        Verify all invariants against the current state.
        Returns (passed, error_message).
        """
        checks = [
            self._check_supply_sum(ledger),
            self._check_no_negative_balances(ledger),
            self._check_supply_formula(ledger),
            self._check_supply_monotonic(ledger),
        ]
        if engine is not None:
            checks += [
                self._check_staked_sum(engine),
                self._check_empty_slots(engine),
                self._check_token_time(engine),
                self._check_custody(ledger, engine),
            ]
        self._snapshot = None
        errors = [msg for ok, msg in checks if not ok]
        if errors:
            return False, "; ".join(errors)
        return True, ""

    # ── token ledger ────────────────────────────────────────────────

    def _check_supply_sum(self, ledger) -> tuple[bool, str]:
        total = sum(ledger.balances.values())
        if total != ledger.total_supply:
            return (False,
                    f"Balance sum {total} != total_supply {ledger.total_supply}")
        return True, ""

    def _check_no_negative_balances(self, ledger) -> tuple[bool, str]:
        for addr, bal in ledger.balances.items():
            if bal < 0:
                return False, f"Negative balance on {addr}: {bal}"
        for (owner, spender), allowed in ledger.allowances.items():
            if allowed < 0:
                return False, f"Negative allowance {owner}->{spender}: {allowed}"
        return True, ""

    def _check_supply_formula(self, ledger) -> tuple[bool, str]:
        """total_supply == initial_supply - total_burned."""
        expected = ledger.initial_supply - ledger.total_burned
        if ledger.total_supply != expected:
            return (False,
                    f"Supply formula violated: {ledger.total_supply} != "
                    f"{ledger.initial_supply} - {ledger.total_burned}")
        return True, ""

    def _check_supply_monotonic(self, ledger) -> tuple[bool, str]:
        snap = self._snapshot
        if snap is None:
            return True, ""
        if ledger.total_supply > snap.total_supply:
            return (False,
                    f"Supply increased: {snap.total_supply} -> {ledger.total_supply}")
        if ledger.total_burned < snap.total_burned:
            return (False,
                    f"total_burned decreased: {snap.total_burned} -> {ledger.total_burned}")
        return True, ""

    # ── staking engine ──────────────────────────────────────────────

    def _check_staked_sum(self, engine) -> tuple[bool, str]:
        total = sum(s.staked_tokens for s in engine.stakers.values())
        if total != engine.total_staked_tokens_global:
            return (False,
                    f"Staking mismatch: total_staked={engine.total_staked_tokens_global} "
                    f"but stake sum={total}")
        return True, ""

    def _check_empty_slots(self, engine) -> tuple[bool, str]:
        for addr, s in engine.stakers.items():
            if s.staked_tokens == 0 and (
                s.total_staked_token_time != 0 or s.last_accounting_timestamp != 0
            ):
                return (False,
                        f"Empty staking slot {addr} carries token-time "
                        f"{s.total_staked_token_time} at {s.last_accounting_timestamp}")
        return True, ""

    def _check_token_time(self, engine) -> tuple[bool, str]:
        """
        Global token-time is advanced for everyone at once, so compare
        against each staker's token-time projected to the same instant.
        """
        ts = engine.global_accounting_timestamp
        total = 0
        for addr, s in engine.stakers.items():
            if s.last_accounting_timestamp > ts:
                return (False,
                        f"Staker {addr} accounted at {s.last_accounting_timestamp} "
                        f"after global accounting {ts}")
            total += s.total_staked_token_time
            if s.staked_tokens:
                total += s.staked_tokens * (ts - s.last_accounting_timestamp)
        if total != engine.total_staked_token_time_global:
            return (False,
                    f"Token-time mismatch: global={engine.total_staked_token_time_global} "
                    f"but staker sum={total}")
        return True, ""

    def _check_custody(self, ledger, engine) -> tuple[bool, str]:
        held = ledger.balance_of(engine.account)
        owed = engine.total_staked_tokens_global + engine.reward_pool
        if held < owed:
            return (False,
                    f"Custody shortfall: engine holds {held} but owes {owed}")
        return True, ""
