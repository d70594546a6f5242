"""
Formatting and form validation for the terminal panels.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from web3 import Web3

from .tiers import MAX_SCORE, evm_tier_name

U32_MAX = 2**32 - 1


def format_address(address: Optional[str]) -> str:
    """Shorten an address to ``0x1234...abcd``."""
    if not address:
        return ""
    return f"{address[:6]}...{address[-4:]}"


def format_amount(amount: Any) -> str:
    """Compact display of a token amount (``1.5M``, ``2.0K``, ``12.00``)."""
    num = float(amount)
    if num >= 1_000_000:
        return f"{num / 1_000_000:.1f}M"
    if num >= 1_000:
        return f"{num / 1_000:.1f}K"
    return f"{num:.2f}"


def format_fee(fee_bps: int) -> str:
    return f"{fee_bps / 100:.2f}%"


def format_tier(tier: Optional[int]) -> str:
    return f"{evm_tier_name(tier)} ({tier})" if tier is not None else "Unknown"


# ----------------------------------------------------------------------------
# Form validation: raise ValueError with a user-facing message.
# ----------------------------------------------------------------------------


def require_text(value: Optional[str], label: str) -> str:
    text = (value or "").strip()
    if not text:
        raise ValueError(f"{label} is required")
    return text


def validate_eth_address(value: str) -> str:
    address = require_text(value, "Ethereum address")
    if not Web3.is_address(address):
        raise ValueError(f"Invalid Ethereum address: {address}")
    return Web3.to_checksum_address(address)


def validate_amount(value: str) -> str:
    text = require_text(value, "Amount")
    try:
        amount = Decimal(text)
    except InvalidOperation as e:
        raise ValueError(f"Invalid amount: {text}") from e
    if not amount.is_finite() or amount <= 0:
        raise ValueError("Amount must be greater than zero")
    return text


def validate_score(score: int) -> int:
    if score < 0 or score > MAX_SCORE:
        raise ValueError(f"Score must be between 0 and {MAX_SCORE}")
    return score


def validate_expiry(expiry: int) -> int:
    if expiry < 1 or expiry > U32_MAX:
        raise ValueError(f"Expiry must be between 1 and {U32_MAX}")
    return expiry
