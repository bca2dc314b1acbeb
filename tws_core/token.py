"""
TWS token ledger — an ERC20-style balance sheet with an optional
transfer tax.

Tax policy
──────────
When ``tax_enabled`` is set, every transfer loses 1 % of its value:

    tax       = amount // 100
    credited  = amount - tax

The sender is debited the full ``amount``; the tax is burned, so
``total_supply`` and ``total_burned`` both move by ``tax``.  No tax is
taken when either side of the transfer is the registered staking
contract, so stake deposits and payouts always move at full value.

Staking-contract hooks
──────────────────────
``burn`` and ``transfer_reward`` may only be called by the staking
contract and always draw from the liquidity-pool account, never from
the caller.  They back the engine's periodic pool sanitisation.
"""

from __future__ import annotations

import logging
from typing import Any

from tws_core.address import ZERO_ADDRESS, is_zero_address
from tws_core.errors import (
    InsufficientAllowance,
    InsufficientBalance,
    InvalidRecipient,
    Unauthorized,
)
from tws_core.events import EventLog, Transferred
from tws_core.precision import TWS_DECIMALS, check_uint256

logger = logging.getLogger("tws.token")

TRANSFER_TAX_PERCENT: int = 1


def compute_transfer_tax(amount: int) -> int:
    """1 % of ``amount``, truncated toward zero."""
    return amount * TRANSFER_TAX_PERCENT // 100


def _check_address(value: str, name: str) -> str:
    if not isinstance(value, str) or not value:
        raise ValueError(f"{name} must be a non-empty address string")
    return value


class TokenLedger:
    """
    Balances, allowances and supply for the TWS token.

    The whole initial supply is credited to ``owner``.  ``liquidity_pool``
    is the account the staking contract burns from and pays caller
    rewards out of (the Uniswap pair on mainnet).
    """

    def __init__(
        self,
        owner: str,
        initial_supply: int,
        liquidity_pool: str,
        name: str = "TWS Token",
        symbol: str = "TWS",
        event_log: EventLog | None = None,
    ) -> None:
        _check_address(owner, "owner")
        _check_address(liquidity_pool, "liquidity_pool")
        check_uint256(initial_supply, "initial_supply")
        self.name = name
        self.symbol = symbol
        self.decimals: int = TWS_DECIMALS
        self.owner: str = owner
        self.liquidity_pool: str = liquidity_pool
        self.initial_supply: int = initial_supply
        self.total_supply: int = initial_supply
        self.total_burned: int = 0
        self.balances: dict[str, int] = {owner: initial_supply}
        self.allowances: dict[tuple[str, str], int] = {}
        self.tax_enabled: bool = False
        self.staking_contract: str = ZERO_ADDRESS
        self.events: EventLog = event_log if event_log is not None else EventLog()

    # ── queries ─────────────────────────────────────────────────────

    def balance_of(self, account: str) -> int:
        return self.balances.get(account, 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self.allowances.get((owner, spender), 0)

    def is_tax_exempt(self, sender: str, recipient: str) -> bool:
        if not self.tax_enabled:
            return True
        return self.staking_contract in (sender, recipient)

    # ── transfers ───────────────────────────────────────────────────

    def transfer(self, sender: str, to: str, amount: int) -> int:
        """
        Move ``amount`` from ``sender`` to ``to``.

        Returns the amount actually credited to ``to`` (net of tax).
        """
        _check_address(sender, "sender")
        check_uint256(amount)
        self._check_transfer(sender, to, amount)
        return self._move(sender, to, amount)

    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> int:
        """
        Move ``amount`` out of ``owner`` on behalf of ``spender``.

        The allowance is reduced by the full pre-tax ``amount``.
        """
        _check_address(spender, "spender")
        _check_address(owner, "owner")
        check_uint256(amount)
        self._check_transfer(owner, to, amount)
        allowed = self.allowance(owner, spender)
        if allowed < amount:
            raise InsufficientAllowance(
                owner=owner, spender=spender, allowance=allowed, amount=amount,
            )
        self.allowances[(owner, spender)] = allowed - amount
        return self._move(owner, to, amount)

    def approve(self, owner: str, spender: str, amount: int) -> None:
        """Set (not increment) the allowance of ``spender`` over ``owner``."""
        _check_address(owner, "owner")
        _check_address(spender, "spender")
        check_uint256(amount)
        self.allowances[(owner, spender)] = amount

    def _check_transfer(self, sender: str, to: str, amount: int) -> None:
        balance = self.balance_of(sender)
        if balance < amount:
            raise InsufficientBalance(account=sender, balance=balance, amount=amount)
        if not isinstance(to, str) or not to or is_zero_address(to):
            raise InvalidRecipient(recipient=to)

    def _move(self, sender: str, to: str, amount: int) -> int:
        tax = 0 if self.is_tax_exempt(sender, to) else compute_transfer_tax(amount)
        net = amount - tax
        self.balances[sender] = self.balance_of(sender) - amount
        self.balances[to] = self.balance_of(to) + net
        if tax:
            self.total_supply -= tax
            self.total_burned += tax
        self.events.emit(Transferred(sender, to, net))
        logger.debug(f"transfer {sender} -> {to}: {net} (tax {tax})")
        return net

    # ── staking-contract hooks ──────────────────────────────────────

    def _require_staking_contract(self, caller: str) -> None:
        if is_zero_address(self.staking_contract) or caller != self.staking_contract:
            raise Unauthorized("caller is not the staking contract.", caller=caller)

    def burn(self, caller: str, amount: int) -> None:
        """Destroy ``amount`` held by the liquidity pool."""
        check_uint256(amount)
        self._require_staking_contract(caller)
        pool_balance = self.balance_of(self.liquidity_pool)
        if pool_balance < amount:
            raise InsufficientBalance(
                account=self.liquidity_pool, balance=pool_balance, amount=amount,
            )
        self.balances[self.liquidity_pool] = pool_balance - amount
        self.total_supply -= amount
        self.total_burned += amount
        self.events.emit(Transferred(self.liquidity_pool, ZERO_ADDRESS, amount))
        logger.info(f"burned {amount} from liquidity pool")

    def transfer_reward(self, caller: str, to: str, amount: int) -> None:
        """Pay ``amount`` out of the liquidity pool, tax free."""
        check_uint256(amount)
        self._require_staking_contract(caller)
        if not isinstance(to, str) or not to or is_zero_address(to):
            raise InvalidRecipient(recipient=to)
        pool_balance = self.balance_of(self.liquidity_pool)
        if pool_balance < amount:
            raise InsufficientBalance(
                account=self.liquidity_pool, balance=pool_balance, amount=amount,
            )
        self.balances[self.liquidity_pool] = pool_balance - amount
        self.balances[to] = self.balance_of(to) + amount
        self.events.emit(Transferred(self.liquidity_pool, to, amount))

    # ── admin ───────────────────────────────────────────────────────

    def _require_owner(self, caller: str) -> None:
        if caller != self.owner:
            raise Unauthorized("caller is not the owner", caller=caller)

    def set_tax_enabled(self, caller: str, enabled: bool) -> None:
        self._require_owner(caller)
        self.tax_enabled = bool(enabled)
        logger.info(f"transfer tax {'enabled' if self.tax_enabled else 'disabled'}")

    def set_staking_contract(self, caller: str, address: str) -> None:
        self._require_owner(caller)
        _check_address(address, "staking_contract")
        self.staking_contract = address
        logger.info(f"staking contract set to {address}")

    # ── snapshot / restore ──────────────────────────────────────────

    def snapshot(self) -> dict[str, Any]:
        return {
            "total_supply": self.total_supply,
            "total_burned": self.total_burned,
            "balances": dict(self.balances),
            "allowances": dict(self.allowances),
            "tax_enabled": self.tax_enabled,
            "staking_contract": self.staking_contract,
            "owner": self.owner,
        }

    def restore(self, snap: dict[str, Any]) -> None:
        self.total_supply = snap["total_supply"]
        self.total_burned = snap["total_burned"]
        self.balances = dict(snap["balances"])
        self.allowances = dict(snap["allowances"])
        self.tax_enabled = snap["tax_enabled"]
        self.staking_contract = snap["staking_contract"]
        self.owner = snap["owner"]

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "owner": self.owner,
            "liquidity_pool": self.liquidity_pool,
            "total_supply": str(self.total_supply),
            "total_burned": str(self.total_burned),
            "tax_enabled": self.tax_enabled,
            "staking_contract": self.staking_contract,
            "holders": sum(1 for b in self.balances.values() if b > 0),
        }
