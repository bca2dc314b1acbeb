"""
Shared pytest fixtures for the TWS test suite.
"""

import logging
from dataclasses import dataclass

import pytest

from tws_core.precision import expand_to_18_decimals
from tws_core.service import StakingService
from tws_core.staking import StakingEngine
from tws_core.token import TokenLedger

ADMIN = "0xAdmin"
ALICE = "0xAlice"
BOB = "0xBob"
POOL = "0xUniswapPool"
STAKING = "0xStaking"

SUPPLY = expand_to_18_decimals(10_000_000)
POOL_LIQUIDITY = expand_to_18_decimals(3_190_000)
DEPLOYED_AT = 1_700_000_000


@dataclass
class StakingEnv:
    service: StakingService
    ledger: TokenLedger
    engine: StakingEngine
    t0: int


@pytest.fixture(autouse=True)
def reset_tws_logging():
    """setup_logging() detaches the tws hierarchy from root; undo that."""
    yield
    tws = logging.getLogger("tws")
    for handler in list(tws.handlers):
        tws.removeHandler(handler)
        handler.close()
    tws.propagate = True
    tws.setLevel(logging.NOTSET)


@pytest.fixture
def token():
    """Fresh token with the whole 10M supply held by the admin."""
    return TokenLedger(owner=ADMIN, initial_supply=SUPPLY, liquidity_pool=POOL)


@pytest.fixture
def staking_env():
    """
    Token + staking engine wired like a fresh mainnet deployment:
    pool seeded with 3.19M, engine registered and open, admin and Alice
    approved, Alice holding 10k, and the transfer tax switched on last.
    """
    t0 = DEPLOYED_AT
    ledger = TokenLedger(owner=ADMIN, initial_supply=SUPPLY, liquidity_pool=POOL)
    engine = StakingEngine(ledger, STAKING, ADMIN, now=t0)
    service = StakingService(ledger, engine)

    service.transfer(ADMIN, POOL, POOL_LIQUIDITY, now=t0)
    service.set_allow_staking(ADMIN, True, now=t0)
    service.approve(ADMIN, STAKING, SUPPLY, now=t0)
    service.set_staking_contract(ADMIN, STAKING, now=t0)
    service.transfer(ADMIN, ALICE, expand_to_18_decimals(10_000), now=t0)
    service.approve(ALICE, STAKING, SUPPLY, now=t0)
    service.set_tax_enabled(ADMIN, True, now=t0)
    return StakingEnv(service, ledger, engine, t0)
