"""
Trader tiers.

A tier is derived from a private credit score on Aleo and revealed by
``prove_tier``; the hook contract prices swaps per tier.
"""

from enum import IntEnum
from typing import Optional


class Tier(IntEnum):
    INELIGIBLE = 0
    BASIC = 1
    PRO = 2
    WHALE = 3


TIER_NAMES: dict[int, str] = {
    Tier.INELIGIBLE: "Ineligible",
    Tier.BASIC: "Tier C (Basic)",
    Tier.PRO: "Tier B (Pro)",
    Tier.WHALE: "Tier A (Whale)",
}

# On the hook contract, tier 0 means "no registration".
EVM_TIER_NAMES: dict[int, str] = {**TIER_NAMES, Tier.INELIGIBLE: "Unregistered"}

# (minimum score, tier), highest first
SCORE_THRESHOLDS: tuple[tuple[int, Tier], ...] = (
    (800, Tier.WHALE),
    (700, Tier.PRO),
    (600, Tier.BASIC),
)

MAX_SCORE = 1000


def tier_from_score(score: int) -> Tier:
    """Map a credit score to its tier."""
    for minimum, tier in SCORE_THRESHOLDS:
        if score >= minimum:
            return tier
    return Tier.INELIGIBLE


def tier_name(tier: Optional[int]) -> str:
    return TIER_NAMES.get(tier, "Unknown") if tier is not None else "Unknown"


def evm_tier_name(tier: Optional[int]) -> str:
    return EVM_TIER_NAMES.get(tier, "Unknown") if tier is not None else "Unknown"
