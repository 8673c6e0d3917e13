"""
License tiers and their ordering.

NONE < STARTER < PRO < ELITE. Pure value types, no I/O.
"""

from enum import IntEnum
from typing import Optional


class Tier(IntEnum):
    """Ordered access level."""
    NONE = 0
    STARTER = 1
    PRO = 2
    ELITE = 3

    @property
    def label(self) -> str:
        return self.name.lower()

    @classmethod
    def from_name(cls, value: object) -> Optional["Tier"]:
        """Strict lookup of a canonical tier name; aliases are not handled here."""
        if not isinstance(value, str):
            return None
        try:
            return cls[value.strip().upper()]
        except KeyError:
            return None


def rank(tier: Tier) -> int:
    return int(tier)


def meets(user_tier: Tier, required_tier: Tier) -> bool:
    """
    Whether user_tier satisfies required_tier.

    A NONE requirement is open to everyone; a NONE user satisfies nothing
    else.
    """
    if required_tier == Tier.NONE:
        return True
    if user_tier == Tier.NONE:
        return False
    return rank(user_tier) >= rank(required_tier)
