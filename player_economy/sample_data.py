"""Sample data generator for trying out the economy."""

from decimal import Decimal
from typing import Dict, Optional

from .currency import CurrencyAmount, CurrencyKind
from .facade import Economy
from .item import Item, Rarity
from .player import PlayerRef
from .settings import EconomySettings

SAMPLE_AREA = "town_square"

SAMPLE_PLAYERS: Dict[str, PlayerRef] = {
    "alice": PlayerRef("alice", level=20, area_id=SAMPLE_AREA),
    "bob": PlayerRef("bob", level=15, area_id=SAMPLE_AREA),
    "carol": PlayerRef("carol", level=55, area_id=SAMPLE_AREA),
    "dave": PlayerRef("dave", level=5, area_id=SAMPLE_AREA),
}

SAMPLE_ITEMS: Dict[str, Item] = {
    "health_potion": Item("health_potion", "Health Potion", "consumable", Rarity.COMMON),
    "mana_potion": Item("mana_potion", "Mana Potion", "consumable", Rarity.COMMON),
    "iron_sword": Item("iron_sword", "Iron Sword", "weapon", Rarity.UNCOMMON),
    "magic_ring": Item("magic_ring", "Magic Ring", "accessory", Rarity.RARE),
}


def sample_item(item_id: str, quantity: int = 1) -> Item:
    """
    Build a stack of a catalog item.

    Raises:
        KeyError: If the item is not in the sample catalog
    """
    template = SAMPLE_ITEMS[item_id]
    return Item(template.item_id, template.name, template.item_type, template.rarity, quantity)


def create_sample_economy(settings: Optional[EconomySettings] = None, clock=None) -> Economy:
    """
    Create an economy with funded players, one open trade and one live auction.

    Returns:
        Economy ready for intents
    """
    economy = Economy(settings=settings, clock=clock)

    wallets = {
        "alice": CurrencyAmount({CurrencyKind.GOLD: 1000}),
        "bob": CurrencyAmount({CurrencyKind.GOLD: 1500, CurrencyKind.SILVER: 50}),
        "carol": CurrencyAmount({CurrencyKind.GOLD: 5000, CurrencyKind.PLATINUM: 10}),
        "dave": CurrencyAmount({CurrencyKind.GOLD: 200}),
    }
    inventories = {
        "alice": [sample_item("iron_sword", 2), sample_item("health_potion", 10)],
        "bob": [sample_item("mana_potion", 5)],
        "carol": [sample_item("magic_ring", 1)],
        "dave": [sample_item("health_potion", 2)],
    }
    for player_id, amount in wallets.items():
        economy.deposit(player_id, amount)
    for player_id, items in inventories.items():
        economy.grant_items(player_id, items)

    seeded = [
        economy.initiate_trade(
            SAMPLE_PLAYERS["alice"],
            SAMPLE_PLAYERS["bob"],
            [sample_item("health_potion", 3)],
            CurrencyAmount.of(CurrencyKind.GOLD, 30),
            "global",
        ),
        economy.list_auction(
            SAMPLE_PLAYERS["carol"],
            sample_item("magic_ring"),
            Decimal("400"),
            economy.settings.min_auction_duration_ms * 24,
            "global",
            buyout_price=Decimal("800"),
        ),
    ]
    for result in seeded:
        if not result.ok:
            raise RuntimeError(f"Sample economy could not be seeded: {result.message}")

    return economy
