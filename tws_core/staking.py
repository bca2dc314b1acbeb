"""
Time-weighted staking with pool sanitisation rewards for TWS.

Stakers lock tokens in the engine's custody account.  Every operation
that touches a staker first *accrues* token·seconds for that staker
and for the network as a whole, so rewards are shared in proportion
to amount × duration.

Token-time accounting
─────────────────────
    staker_time  += staked_tokens        × (now − staker.last_accounting)
    global_time  += total_staked_global  × (now − global_accounting)

The global figure is advanced for all stakers at once, so it always
equals the sum of every staker's token-time up to the last global
accounting instant, without iterating stakers.

Exit tax
────────
Unstaking returns the whole position minus a 7 % exit tax.  The tax
stays in custody and is added to the reward pool.

Pool sanitisation (at most once every 6 hours)
──────────────────────────────────────────────
    burn_amount  = pool_balance × 2 %
    user_reward  = burn_amount  × 2 %     → paid to the caller
    pool_reward  = burn_amount  × 48 %    → moved into custody / reward pool
    final_burn   = burn_amount − user_reward − pool_reward   → destroyed

Each successful sanitisation opens a new burn epoch (``current_burn_id``).

Reward claims (once per burn epoch)
───────────────────────────────────
    share_bps = staker_time × 10 000 // global_time
    reward    = reward_pool × share_bps // 10 000

The reward is compounded into the stake: it moves from the reward-pool
bucket to the staker's position inside custody.  Token-time is *not*
back-filled for the added principal; only future time accrues on it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, NamedTuple, Optional

from tws_core.address import is_zero_address
from tws_core.errors import (
    AlreadyClaimed,
    BelowMinimum,
    ClockError,
    InsufficientAllowance,
    InsufficientBalance,
    InvalidRecipient,
    NotStaked,
    RewardPoolTooSmall,
    StakingDisabled,
    TooSoon,
    Unauthorized,
)
from tws_core.events import PoolSanitised, RewardClaimed, Staked, Unstaked
from tws_core.precision import WEI_PER_TWS, check_uint256
from tws_core.token import TokenLedger

logger = logging.getLogger("tws.staking")

# ── Parameters ──────────────────────────────────────────────────────────

MIN_STAKE_AMOUNT: int = 1                 # wei, not whole tokens
UNSTAKE_TAX_PERCENT: int = 7

BURN_RATE_PERCENT: int = 2                # of the pool balance
USER_REWARD_PERCENT: int = 2              # of the burn amount
POOL_REWARD_PERCENT: int = 48             # of the burn amount
SANITISE_INTERVAL: int = 6 * 3600         # seconds

MIN_REWARD_POOL: int = WEI_PER_TWS        # 1 full token
SHARE_PRECISION: int = 10_000             # basis points


# ── Pure helpers ────────────────────────────────────────────────────────

def accrued_token_time(staked_tokens: int, elapsed: int) -> int:
    """Token·seconds earned by ``staked_tokens`` over ``elapsed`` seconds."""
    if elapsed < 0:
        raise ClockError(elapsed=elapsed)
    return staked_tokens * elapsed


def compute_unstake_tax(amount: int) -> int:
    return amount * UNSTAKE_TAX_PERCENT // 100


def compute_burn_split(pool_balance: int) -> tuple[int, int, int, int]:
    """
    Split a sanitisation of ``pool_balance``.

    Returns ``(burn_amount, user_reward, pool_reward, final_burn)``.
    """
    burn_amount = pool_balance * BURN_RATE_PERCENT // 100
    user_reward = burn_amount * USER_REWARD_PERCENT // 100
    pool_reward = burn_amount * POOL_REWARD_PERCENT // 100
    final_burn = burn_amount - user_reward - pool_reward
    return burn_amount, user_reward, pool_reward, final_burn


def compute_reward(staker_time: int, global_time: int, reward_pool: int) -> tuple[int, int]:
    """Return ``(share_bps, reward_amount)``; zero when no time has accrued."""
    if global_time <= 0:
        return 0, 0
    share = staker_time * SHARE_PRECISION // global_time
    return share, reward_pool * share // SHARE_PRECISION


# ── Records ─────────────────────────────────────────────────────────────

@dataclass
class StakerInfo:
    """Per-account staking slot; zeroed (not removed) on full unstake."""
    staked_tokens: int = 0
    total_staked_token_time: int = 0
    last_accounting_timestamp: int = 0
    last_reward_claimed_burn_id: int = 0

    @property
    def is_staked(self) -> bool:
        return self.staked_tokens > 0

    def reset(self) -> None:
        self.staked_tokens = 0
        self.total_staked_token_time = 0
        self.last_accounting_timestamp = 0
        self.last_reward_claimed_burn_id = 0

    def to_dict(self) -> dict:
        return {
            "staked_tokens": str(self.staked_tokens),
            "total_staked_token_time": str(self.total_staked_token_time),
            "last_accounting_timestamp": self.last_accounting_timestamp,
            "last_reward_claimed_burn_id": self.last_reward_claimed_burn_id,
        }


class StakingInfo(NamedTuple):
    """Same field order as the ``info(address)`` view of the contract."""
    staked_tokens: int
    total_staked_token_time: int
    last_accounting_timestamp: int
    last_reward_claimed_burn_id: int
    total_staked_tokens_global: int
    total_staked_token_time_global: int
    reward_pool: int


# ── StakingEngine ───────────────────────────────────────────────────────

class StakingEngine:
    """
    Staking accounting on top of a ``TokenLedger``.

    ``account`` is the engine's custody address.  It must be registered
    as the ledger's staking contract for deposits and payouts to be tax
    free and for sanitisation to be allowed to burn.

    ``now`` at construction plays the role of the deployment block time
    and seeds ``last_sanitise_timestamp``; pass 0 to allow an immediate
    first sanitisation.
    """

    def __init__(
        self,
        ledger: TokenLedger,
        account: str,
        owner: str,
        now: int = 0,
    ) -> None:
        if not account or is_zero_address(account):
            raise ValueError("engine account must be a non-zero address")
        self.ledger = ledger
        self.account = account
        self.owner = owner
        self.stakers: dict[str, StakerInfo] = {}
        self.total_staked_tokens_global: int = 0
        self.total_staked_token_time_global: int = 0
        self.global_accounting_timestamp: int = 0
        self.reward_pool: int = 0
        self.last_sanitise_timestamp: int = now
        self.last_burn_amount: int = 0
        self.current_burn_id: int = 0
        self.allow_staking: bool = False

    @property
    def events(self):
        return self.ledger.events

    # ── accrual ─────────────────────────────────────────────────────

    def _check_clock(self, staker: str, now: int) -> None:
        if now < self.global_accounting_timestamp:
            raise ClockError(now=now, last=self.global_accounting_timestamp)
        info = self.stakers.get(staker)
        if info is not None and now < info.last_accounting_timestamp:
            raise ClockError(now=now, last=info.last_accounting_timestamp)

    def _accrue_global(self, now: int) -> None:
        if now < self.global_accounting_timestamp:
            raise ClockError(now=now, last=self.global_accounting_timestamp)
        self.total_staked_token_time_global += accrued_token_time(
            self.total_staked_tokens_global,
            now - self.global_accounting_timestamp,
        )
        self.global_accounting_timestamp = now

    def accrue(self, staker: str, now: int) -> StakerInfo:
        """
        Bring ``staker`` and the global token-time up to ``now``.

        Calling it twice with the same ``now`` is a no-op the second time.
        """
        self._check_clock(staker, now)
        self._accrue_global(now)
        info = self.stakers.setdefault(staker, StakerInfo())
        if info.staked_tokens > 0:
            info.total_staked_token_time += accrued_token_time(
                info.staked_tokens, now - info.last_accounting_timestamp,
            )
        info.last_accounting_timestamp = now
        return info

    # ── staker operations ───────────────────────────────────────────

    def stake(self, staker: str, amount: int, now: int) -> int:
        """
        Deposit ``amount`` into custody.  Requires a prior
        ``ledger.approve(staker, engine.account, amount)``.

        Returns the staker's new position.
        """
        if not self.allow_staking:
            raise StakingDisabled()
        check_uint256(amount)
        if amount < MIN_STAKE_AMOUNT:
            raise BelowMinimum(amount=amount)
        balance = self.ledger.balance_of(staker)
        if balance < amount:
            raise InsufficientBalance(account=staker, balance=balance, amount=amount)
        allowed = self.ledger.allowance(staker, self.account)
        if allowed < amount:
            raise InsufficientAllowance(
                owner=staker, spender=self.account, allowance=allowed, amount=amount,
            )
        self._check_clock(staker, now)

        info = self.accrue(staker, now)
        received = self.ledger.transfer_from(self.account, staker, self.account, amount)
        info.staked_tokens += received
        self.total_staked_tokens_global += received

        self.events.emit(Staked(staker, received, info.staked_tokens))
        logger.info(f"{staker} staked {received} (position {info.staked_tokens})")
        return info.staked_tokens

    def unstake(self, staker: str, now: int) -> int:
        """
        Withdraw the whole position minus the exit tax.

        Returns the amount paid back to the staker.
        """
        info = self.stakers.get(staker)
        if info is None or not info.is_staked:
            raise NotStaked(staker=staker)
        self._check_clock(staker, now)
        amount = info.staked_tokens
        tax = compute_unstake_tax(amount)
        payout = amount - tax
        custody = self.ledger.balance_of(self.account)
        if custody < payout:
            raise InsufficientBalance(account=self.account, balance=custody, amount=payout)

        self.accrue(staker, now)
        self.ledger.transfer(self.account, staker, payout)
        self.reward_pool += tax
        self.total_staked_tokens_global -= amount
        self.total_staked_token_time_global -= info.total_staked_token_time
        info.reset()

        self.events.emit(Unstaked(staker, amount, tax))
        logger.info(f"{staker} unstaked {amount} (tax {tax}, paid {payout})")
        return payout

    def sanitise_pool(self, caller: str, now: int) -> PoolSanitised:
        """Burn part of the liquidity pool and fund the reward pool."""
        if self.last_sanitise_timestamp != 0 and \
                now - self.last_sanitise_timestamp < SANITISE_INTERVAL:
            raise TooSoon(
                now=now,
                next_allowed=self.last_sanitise_timestamp + SANITISE_INTERVAL,
            )
        if self.ledger.staking_contract != self.account:
            raise Unauthorized("caller is not the staking contract.", caller=self.account)
        if not caller or is_zero_address(caller):
            raise InvalidRecipient(recipient=caller)

        pool = self.ledger.liquidity_pool
        burn_amount, user_reward, pool_reward, final_burn = compute_burn_split(
            self.ledger.balance_of(pool)
        )

        self.ledger.burn(self.account, final_burn)
        self.ledger.transfer_reward(self.account, caller, user_reward)
        self.ledger.transfer_reward(self.account, self.account, pool_reward)
        self.reward_pool += pool_reward
        self.last_burn_amount = burn_amount
        self.last_sanitise_timestamp = now
        self.current_burn_id += 1

        event = PoolSanitised(
            caller,
            final_burn,
            user_reward,
            pool_reward,
            self.ledger.total_supply,
            self.ledger.balance_of(pool),
        )
        self.events.emit(event)
        logger.info(
            f"pool sanitised by {caller}: burn #{self.current_burn_id} "
            f"burned={final_burn} user_reward={user_reward} pool_reward={pool_reward}"
        )
        return event

    def claim_reward(self, staker: str, now: int) -> int:
        """
        Compound the staker's share of the reward pool into their stake.

        One claim per burn epoch.  Returns the reward amount.
        """
        if self.reward_pool < MIN_REWARD_POOL:
            raise RewardPoolTooSmall(reward_pool=self.reward_pool)
        info = self.stakers.get(staker)
        if info is None or not info.is_staked:
            raise NotStaked(staker=staker)
        if info.last_reward_claimed_burn_id == self.current_burn_id:
            raise AlreadyClaimed(burn_id=self.current_burn_id)
        self._check_clock(staker, now)

        self.accrue(staker, now)
        share, reward = compute_reward(
            info.total_staked_token_time,
            self.total_staked_token_time_global,
            self.reward_pool,
        )
        self.reward_pool -= reward
        info.staked_tokens += reward
        self.total_staked_tokens_global += reward
        info.last_reward_claimed_burn_id = self.current_burn_id

        self.events.emit(RewardClaimed(staker, reward, self.reward_pool))
        logger.info(
            f"{staker} claimed {reward} ({share} bps) for burn #{self.current_burn_id}"
        )
        return reward

    # ── admin ───────────────────────────────────────────────────────

    def set_allow_staking(self, caller: str, allowed: bool) -> None:
        if caller != self.owner:
            raise Unauthorized("caller is not the owner", caller=caller)
        self.allow_staking = bool(allowed)
        logger.info(f"staking {'enabled' if self.allow_staking else 'disabled'}")

    # ── queries ─────────────────────────────────────────────────────

    def get_staker(self, staker: str) -> StakerInfo:
        return self.stakers.get(staker) or StakerInfo()

    def info(self, staker: str) -> StakingInfo:
        s = self.get_staker(staker)
        return StakingInfo(
            s.staked_tokens,
            s.total_staked_token_time,
            s.last_accounting_timestamp,
            s.last_reward_claimed_burn_id,
            self.total_staked_tokens_global,
            self.total_staked_token_time_global,
            self.reward_pool,
        )

    def get_burn_amount(self) -> int:
        """Gross burn amount of the most recent sanitisation."""
        return self.last_burn_amount

    def pending_token_time(self, staker: str, now: Optional[int] = None) -> int:
        """Staker token-time as it would be after accruing to ``now``."""
        s = self.get_staker(staker)
        if now is None or not s.is_staked:
            return s.total_staked_token_time
        return s.total_staked_token_time + accrued_token_time(
            s.staked_tokens, max(0, now - s.last_accounting_timestamp),
        )

    def pending_global_token_time(self, now: Optional[int] = None) -> int:
        if now is None:
            return self.total_staked_token_time_global
        return self.total_staked_token_time_global + accrued_token_time(
            self.total_staked_tokens_global,
            max(0, now - self.global_accounting_timestamp),
        )

    def reward_share(self, staker: str, now: Optional[int] = None) -> int:
        """Basis-point share the staker would receive if claiming at ``now``."""
        share, _ = compute_reward(
            self.pending_token_time(staker, now),
            self.pending_global_token_time(now),
            self.reward_pool,
        )
        return share

    def can_sanitise(self, now: int) -> bool:
        return self.last_sanitise_timestamp == 0 or \
            now - self.last_sanitise_timestamp >= SANITISE_INTERVAL

    def summary(self) -> dict:
        active = [s for s in self.stakers.values() if s.is_staked]
        return {
            "total_staked": str(self.total_staked_tokens_global),
            "total_staked_token_time": str(self.total_staked_token_time_global),
            "reward_pool": str(self.reward_pool),
            "current_burn_id": self.current_burn_id,
            "last_sanitise_timestamp": self.last_sanitise_timestamp,
            "last_burn_amount": str(self.last_burn_amount),
            "allow_staking": self.allow_staking,
            "active_stakers": len(active),
        }

    # ── snapshot / restore ──────────────────────────────────────────

    def snapshot(self) -> dict[str, Any]:
        return {
            "stakers": {k: replace(v) for k, v in self.stakers.items()},
            "total_staked_tokens_global": self.total_staked_tokens_global,
            "total_staked_token_time_global": self.total_staked_token_time_global,
            "global_accounting_timestamp": self.global_accounting_timestamp,
            "reward_pool": self.reward_pool,
            "last_sanitise_timestamp": self.last_sanitise_timestamp,
            "last_burn_amount": self.last_burn_amount,
            "current_burn_id": self.current_burn_id,
            "allow_staking": self.allow_staking,
            "owner": self.owner,
        }

    def restore(self, snap: dict[str, Any]) -> None:
        self.stakers = {k: replace(v) for k, v in snap["stakers"].items()}
        self.total_staked_tokens_global = snap["total_staked_tokens_global"]
        self.total_staked_token_time_global = snap["total_staked_token_time_global"]
        self.global_accounting_timestamp = snap["global_accounting_timestamp"]
        self.reward_pool = snap["reward_pool"]
        self.last_sanitise_timestamp = snap["last_sanitise_timestamp"]
        self.last_burn_amount = snap["last_burn_amount"]
        self.current_burn_id = snap["current_burn_id"]
        self.allow_staking = snap["allow_staking"]
        self.owner = snap["owner"]
