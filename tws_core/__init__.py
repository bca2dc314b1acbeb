"""
TWS - in-process accounting for the TWS token and staking contracts.

Key features:
- ERC20-style token ledger with an optional 1% transfer tax
- Tax exemption for transfers to or from the staking contract
- Time-weighted (token·seconds) staking with a 7% exit tax
- Periodic liquidity-pool sanitisation that burns and funds rewards
- One reward claim per burn epoch, compounded into the stake
- Serialized, all-or-nothing service boundary with invariant checks
"""

__version__ = "1.0.0"
__all__ = [
    "address",
    "config",
    "deploy",
    "errors",
    "events",
    "invariants",
    "logging_config",
    "precision",
    "service",
    "staking",
    "token",
]
