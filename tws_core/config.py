"""
TOML-based configuration for a local TWS deployment.

Loads settings from a TOML file and/or environment variables.
Environment variables take precedence over file values.

Usage:
    from tws_core.config import load_config
    cfg = load_config("tws.toml")
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib  # type: ignore[import,no-redef]


@dataclass
class TokenConfig:
    """Token metadata and initial policy.  Amounts are whole tokens."""
    name: str = "TWS Token"
    symbol: str = "TWS"
    initial_supply: int = 10_000_000
    tax_enabled: bool = False


@dataclass
class StakingConfig:
    """Staking engine settings."""
    allow_staking: bool = True


@dataclass
class PoolConfig:
    """Liquidity seeded from the owner into the pool account (whole tokens)."""
    liquidity: int = 3_190_000


@dataclass
class DeployerConfig:
    """
    Seeds for the deterministic addresses of a local deployment.

    The owner, liquidity pool and staking contract addresses are derived
    from ``seed`` so repeated runs produce the same accounts.
    """
    seed: str = "tws-admin"


@dataclass
class GenesisConfig:
    """
    Initial allocations paid out of the owner's supply.

    ``accounts`` maps address → whole tokens.
    """
    accounts: dict[str, int] = field(default_factory=dict)


@dataclass
class LoggingConfig:
    """Logging settings."""
    level: str = "INFO"
    format: str = "human"   # "human" or "json"
    file: str | None = None


@dataclass
class TWSConfig:
    """Top-level configuration container."""
    token: TokenConfig = field(default_factory=TokenConfig)
    staking: StakingConfig = field(default_factory=StakingConfig)
    pool: PoolConfig = field(default_factory=PoolConfig)
    deployer: DeployerConfig = field(default_factory=DeployerConfig)
    genesis: GenesisConfig = field(default_factory=GenesisConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _merge(dc: Any, raw: dict[str, Any]) -> None:
    """Merge a raw dict into a dataclass instance (in-place)."""
    for key, value in raw.items():
        key_under = key.replace("-", "_")
        if hasattr(dc, key_under):
            setattr(dc, key_under, value)


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def load_config(path: str | None = None) -> TWSConfig:
    """
    Load configuration from a TOML file, then overlay environment variables.

    Env-var mapping:
        TWS_LOG_LEVEL       -> logging.level
        TWS_LOG_FMT         -> logging.format
        TWS_LOG_FILE        -> logging.file
        TWS_TAX_ENABLED     -> token.tax_enabled
        TWS_INITIAL_SUPPLY  -> token.initial_supply
        TWS_ALLOW_STAKING   -> staking.allow_staking
        TWS_POOL_LIQUIDITY  -> pool.liquidity
        TWS_DEPLOYER_SEED   -> deployer.seed
    """
    cfg = TWSConfig()

    # ── TOML file ────────────────────────────────────────────────
    if path is not None:
        p = Path(path)
        if p.exists():
            with open(p, "rb") as f:
                data = tomllib.load(f)
            for section_name, section_dc in [
                ("token", cfg.token),
                ("staking", cfg.staking),
                ("pool", cfg.pool),
                ("deployer", cfg.deployer),
                ("genesis", cfg.genesis),
                ("logging", cfg.logging),
            ]:
                if section_name in data:
                    _merge(section_dc, data[section_name])

    # ── Environment variable overrides ───────────────────────────
    if v := os.environ.get("TWS_LOG_LEVEL"):
        cfg.logging.level = v.upper()
    if v := os.environ.get("TWS_LOG_FMT"):
        cfg.logging.format = v
    if v := os.environ.get("TWS_LOG_FILE"):
        cfg.logging.file = v
    if v := os.environ.get("TWS_TAX_ENABLED"):
        cfg.token.tax_enabled = _env_bool(v)
    if v := os.environ.get("TWS_INITIAL_SUPPLY"):
        cfg.token.initial_supply = int(v)
    if v := os.environ.get("TWS_ALLOW_STAKING"):
        cfg.staking.allow_staking = _env_bool(v)
    if v := os.environ.get("TWS_POOL_LIQUIDITY"):
        cfg.pool.liquidity = int(v)
    if v := os.environ.get("TWS_DEPLOYER_SEED"):
        cfg.deployer.seed = v

    return cfg
