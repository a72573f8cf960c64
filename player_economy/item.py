"""Tradable item stacks."""

from dataclasses import dataclass
from enum import Enum


class Rarity(str, Enum):
    """Item rarity tiers."""
    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"
    UNIQUE = "unique"


@dataclass(frozen=True)
class Item:
    """
    A stack of identical items offered in a trade or listed in an auction.

    Attributes:
        item_id: Item kind, also the key of its market price record
        name: Display name, matched by market search queries
        item_type: Category (weapon, consumable, ...)
        rarity: Rarity tier
        quantity: Stack size
    """
    item_id: str
    name: str
    item_type: str = "misc"
    rarity: Rarity = Rarity.COMMON
    quantity: int = 1

    def __post_init__(self):
        if not self.item_id:
            raise ValueError("Item id is required")

        if self.quantity <= 0:
            raise ValueError("Quantity must be positive")

    def __repr__(self) -> str:
        return f"Item({self.quantity}x {self.item_id}, {self.rarity.value})"
