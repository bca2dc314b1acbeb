"""
Tests for StakingService: receipts, all-or-nothing rollback, invariant
enforcement, wall-clock default and serialized access.
"""

import threading
from unittest.mock import patch

import pytest

from tws_core.errors import InvariantViolation, NotStaked, TooSoon
from tws_core.events import PoolSanitised, Staked, Transferred
from tws_core.precision import expand_to_18_decimals
from tws_core.service import Receipt, StakingService
from tws_core.staking import SANITISE_INTERVAL, StakingEngine
from tws_core.token import TokenLedger
from tests.conftest import ADMIN, ALICE, BOB, POOL, STAKING, SUPPLY


class TestReceipts:
    def test_receipt_lists_emitted_events(self, staking_env):
        receipt = staking_env.service.stake(ALICE, 1000, now=staking_env.t0 + 5)
        assert isinstance(receipt, Receipt)
        assert receipt.operation == "stake"
        assert receipt.caller == ALICE
        assert receipt.now == staking_env.t0 + 5
        assert receipt.events == [
            Transferred(ALICE, STAKING, 1000),
            Staked(ALICE, 1000, 1000),
        ]

    def test_receipt_to_dict_stringifies_amounts(self, staking_env):
        receipt = staking_env.service.stake(ALICE, 1000, now=staking_env.t0 + 5)
        d = receipt.to_dict()
        assert d["result"] == "1000"
        assert d["events"][-1] == {
            "event": "Staked",
            "args": {"staker": ALICE, "amount": "1000", "staked_tokens": "1000"},
        }

    def test_sanitise_receipt_result_is_event(self, staking_env):
        receipt = staking_env.service.sanitise_pool(
            BOB, now=staking_env.t0 + SANITISE_INTERVAL,
        )
        assert receipt.to_dict()["result"]["event"] == "PoolSanitised"

    def test_approve_result_is_none(self, staking_env):
        receipt = staking_env.service.approve(BOB, STAKING, 5, now=staking_env.t0)
        assert receipt.result is None
        assert receipt.events == []


class TestRollback:
    def test_rejected_operation_leaves_state_untouched(self, staking_env):
        svc = staking_env.service
        ledger_before = staking_env.ledger.snapshot()
        engine_before = staking_env.engine.snapshot()
        events_before = len(svc.events)
        with pytest.raises(NotStaked):
            svc.unstake(BOB, now=staking_env.t0 + 1)
        assert staking_env.ledger.snapshot() == ledger_before
        assert staking_env.engine.snapshot() == engine_before
        assert len(svc.events) == events_before

    def test_partial_failure_is_undone(self, staking_env, monkeypatch):
        svc = staking_env.service
        ledger_before = staking_env.ledger.snapshot()
        engine_before = staking_env.engine.snapshot()
        events_before = len(svc.events)

        def boom(*args, **kwargs):
            raise RuntimeError("reward payout failed")

        monkeypatch.setattr(staking_env.ledger, "transfer_reward", boom)
        with pytest.raises(RuntimeError):
            svc.sanitise_pool(BOB, now=staking_env.t0 + SANITISE_INTERVAL)
        # burn already ran before the failing payout
        assert staking_env.ledger.snapshot() == ledger_before
        assert staking_env.engine.snapshot() == engine_before
        assert len(svc.events) == events_before

    def test_too_soon_is_logged_and_raised(self, staking_env, caplog):
        with caplog.at_level("WARNING", logger="tws.service"):
            with pytest.raises(TooSoon):
                staking_env.service.sanitise_pool(BOB, now=staking_env.t0 + 1)
        assert "too_soon" in caplog.text


class TestInvariantEnforcement:
    def test_violation_rolls_back(self, staking_env, monkeypatch):
        svc = staking_env.service
        engine = staking_env.engine
        original_stake = StakingEngine.stake

        def leaky_stake(self, staker, amount, now):
            result = original_stake(self, staker, amount, now)
            self.total_staked_tokens_global += 1
            return result

        monkeypatch.setattr(StakingEngine, "stake", leaky_stake)
        before = engine.snapshot()
        with pytest.raises(InvariantViolation, match="Staking mismatch"):
            svc.stake(ALICE, 1000, now=staking_env.t0 + 1)
        assert engine.snapshot() == before

    def test_checks_can_be_disabled(self):
        ledger = TokenLedger(owner=ADMIN, initial_supply=SUPPLY, liquidity_pool=POOL)
        engine = StakingEngine(ledger, STAKING, ADMIN)
        svc = StakingService(ledger, engine, check_invariants=False)
        ledger.balances[BOB] = 1
        svc.transfer(ADMIN, ALICE, 10, now=1)
        assert ledger.balance_of(ALICE) == 10

    def test_engine_must_share_ledger(self):
        ledger = TokenLedger(owner=ADMIN, initial_supply=SUPPLY, liquidity_pool=POOL)
        other = TokenLedger(owner=ADMIN, initial_supply=SUPPLY, liquidity_pool=POOL)
        engine = StakingEngine(other, STAKING, ADMIN)
        with pytest.raises(ValueError):
            StakingService(ledger, engine)


class TestClockDefault:
    def test_now_defaults_to_wall_clock(self, staking_env):
        with patch("tws_core.service.time.time", return_value=staking_env.t0 + 42.9):
            receipt = staking_env.service.stake(ALICE, 1000)
        assert receipt.now == staking_env.t0 + 42
        assert staking_env.engine.get_staker(ALICE).last_accounting_timestamp == staking_env.t0 + 42


class TestQueries:
    def test_last_sanitisation(self, staking_env):
        svc = staking_env.service
        assert svc.last_sanitisation() is None
        receipt = svc.sanitise_pool(ALICE, now=staking_env.t0 + SANITISE_INTERVAL)
        last = svc.last_sanitisation()
        assert isinstance(last, PoolSanitised)
        assert last == receipt.result

    def test_state(self, staking_env):
        state = staking_env.service.state()
        assert state["token"]["symbol"] == "TWS"
        assert state["staking"]["allow_staking"] is True
        assert state["events"] == len(staking_env.service.events)

    def test_balance_and_info(self, staking_env):
        svc = staking_env.service
        assert svc.balance_of(ALICE) == expand_to_18_decimals(10_000)
        assert svc.info(ALICE).staked_tokens == 0


class TestConcurrency:
    def test_parallel_stakes_are_serialized(self, staking_env):
        svc = staking_env.service
        now = staking_env.t0 + 100
        errors = []

        def worker():
            try:
                for _ in range(25):
                    svc.stake(ALICE, 10, now=now)
            except Exception as exc:  # pragma: no cover
                errors.append(exc)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert staking_env.engine.get_staker(ALICE).staked_tokens == 4 * 25 * 10
        assert staking_env.ledger.balance_of(STAKING) == 4 * 25 * 10
