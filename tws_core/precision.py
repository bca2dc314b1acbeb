"""
Precision constants and helpers for the TWS token.

TWS uses 18 decimal places, matching the ERC20 convention:

    1 TWS = 10**18 wei (smallest indivisible unit)

Every balance, allowance and stake is held as a Python ``int`` in wei.
Values must stay within the uint256 range of the on-chain token.
"""

from __future__ import annotations

from decimal import Decimal

# Number of decimal places for TWS amounts.
TWS_DECIMALS: int = 18

# Smallest representable unit: 1 wei = 0.000000000000000001 TWS.
WEI_PER_TWS: int = 10 ** TWS_DECIMALS

UINT256_MAX: int = 2 ** 256 - 1


def expand_to_18_decimals(n: int) -> int:
    """Convert a whole-token count to wei.

    >>> expand_to_18_decimals(7)
    7000000000000000000
    """
    return int(n) * WEI_PER_TWS


def remove_18_decimals(value: int) -> int:
    """Drop the fractional part, returning whole tokens (truncating)."""
    return value // WEI_PER_TWS


def check_uint256(value: int, name: str = "amount") -> int:
    """Reject non-integers and values outside ``0 … 2**256-1``."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {type(value).__name__}")
    if value < 0:
        raise ValueError(f"{name} must be non-negative, got {value}")
    if value > UINT256_MAX:
        raise ValueError(f"{name} exceeds uint256 range")
    return value


def format_amount(value: int, symbol: str = "TWS") -> str:
    """Return a human-readable string with all 18 decimal places."""
    whole, frac = divmod(value, WEI_PER_TWS)
    return f"{whole}.{frac:0{TWS_DECIMALS}d} {symbol}"


def to_decimal(value: int) -> Decimal:
    """Token value as a ``Decimal`` for display and reporting."""
    return Decimal(value) / Decimal(WEI_PER_TWS)
