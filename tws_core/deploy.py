"""
Local deployment of the TWS token and staking engine.

Runs the mainnet deployment sequence in-process:

  1. derive owner / liquidity-pool / staking-contract addresses
  2. create the token with the whole supply credited to the owner
  3. seed the liquidity pool from the owner
  4. create the staking engine and register it as the staking contract
  5. open staking, pay genesis allocations, then apply the tax policy

Usage:
    tws-deploy --config tws.toml
    tws-deploy --log-level DEBUG --log-format json
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from dataclasses import dataclass
from typing import Optional

from tws_core.address import address_from_seed
from tws_core.config import TWSConfig, load_config
from tws_core.errors import TWSError
from tws_core.logging_config import setup_logging
from tws_core.precision import expand_to_18_decimals
from tws_core.service import StakingService
from tws_core.staking import StakingEngine
from tws_core.token import TokenLedger

logger = logging.getLogger("tws.deploy")


@dataclass
class Deployment:
    service: StakingService
    owner: str
    liquidity_pool: str
    staking_contract: str
    deployed_at: int

    @property
    def ledger(self) -> TokenLedger:
        return self.service.ledger

    @property
    def engine(self) -> StakingEngine:
        return self.service.engine

    def to_dict(self) -> dict:
        ledger = self.ledger
        return {
            "owner": self.owner,
            "liquidity_pool": self.liquidity_pool,
            "staking_contract": self.staking_contract,
            "deployed_at": self.deployed_at,
            "token": ledger.to_dict(),
            "staking": self.engine.summary(),
            "balances": {
                addr: str(bal) for addr, bal in sorted(ledger.balances.items()) if bal
            },
        }


def deploy(cfg: Optional[TWSConfig] = None, now: Optional[int] = None) -> Deployment:
    """Build a ready-to-use ledger + engine from ``cfg``."""
    cfg = cfg or TWSConfig()
    if now is None:
        now = int(time.time())

    seed = cfg.deployer.seed
    owner = address_from_seed(seed)
    pool = address_from_seed(f"{seed}/liquidity-pool")
    staking = address_from_seed(f"{seed}/staking")

    ledger = TokenLedger(
        owner=owner,
        initial_supply=expand_to_18_decimals(cfg.token.initial_supply),
        liquidity_pool=pool,
        name=cfg.token.name,
        symbol=cfg.token.symbol,
    )
    logger.info(f"token {cfg.token.symbol} deployed, owner {owner}")

    engine = StakingEngine(ledger, staking, owner, now=now)
    service = StakingService(ledger, engine)
    logger.info(f"staking deployed to {staking}")

    if cfg.pool.liquidity:
        service.transfer(owner, pool, expand_to_18_decimals(cfg.pool.liquidity), now=now)
    service.set_staking_contract(owner, staking, now=now)
    service.set_allow_staking(owner, cfg.staking.allow_staking, now=now)
    for addr, amount in cfg.genesis.accounts.items():
        service.transfer(owner, addr, expand_to_18_decimals(amount), now=now)
    if cfg.token.tax_enabled:
        service.set_tax_enabled(owner, True, now=now)

    return Deployment(service, owner, pool, staking, now)


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="tws-deploy",
        description="Bootstrap a local TWS token + staking deployment",
    )
    parser.add_argument("--config", default=None, help="Path to a TOML config file")
    parser.add_argument("--log-level", default=None, help="Override logging.level")
    parser.add_argument("--log-format", choices=("human", "json"), default=None)
    parser.add_argument("--now", type=int, default=None,
                        help="Deployment timestamp (defaults to the wall clock)")
    args = parser.parse_args(argv)

    cfg = load_config(args.config)
    if args.log_level:
        cfg.logging.level = args.log_level.upper()
    if args.log_format:
        cfg.logging.format = args.log_format
    setup_logging(cfg.logging.level, cfg.logging.format, cfg.logging.file)

    try:
        deployment = deploy(cfg, now=args.now)
    except (TWSError, ValueError) as exc:
        logger.error(f"deployment failed: {exc}")
        return 1

    print(json.dumps(deployment.to_dict(), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
