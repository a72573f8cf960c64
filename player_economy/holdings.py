"""Player wallets and inventories touched by trade and auction settlement."""

from collections import Counter, defaultdict
from typing import Dict, Iterable

import structlog

from .currency import CurrencyAmount
from .errors import InsufficientFundsError
from .item import Item

logger = structlog.get_logger(__name__)


class Holdings:
    """
    In-memory wallets and item inventories keyed by player id.

    Unknown players have an empty wallet and inventory. Every debit checks
    before it mutates, so a failed debit leaves holdings unchanged.
    """

    def __init__(self):
        self._wallets: Dict[str, CurrencyAmount] = defaultdict(CurrencyAmount)
        self._inventories: Dict[str, Counter] = defaultdict(Counter)

    def balance(self, player_id: str) -> CurrencyAmount:
        return self._wallets.get(player_id, CurrencyAmount())

    def inventory(self, player_id: str) -> Dict[str, int]:
        return dict(self._inventories.get(player_id, Counter()))

    def players(self) -> list:
        return sorted(set(self._wallets) | set(self._inventories))

    # Currency

    def deposit(self, player_id: str, amount: CurrencyAmount) -> CurrencyAmount:
        self._wallets[player_id] = self.balance(player_id) + amount
        return self._wallets[player_id]

    def has_funds(self, player_id: str, amount: CurrencyAmount) -> bool:
        return self.balance(player_id).covers(amount)

    def require_funds(self, player_id: str, amount: CurrencyAmount) -> None:
        if not self.has_funds(player_id, amount):
            raise InsufficientFundsError(
                player_id, f"needs {amount.format()}, holds {self.balance(player_id).format()}"
            )

    def withdraw(self, player_id: str, amount: CurrencyAmount) -> CurrencyAmount:
        """
        Debit a wallet.

        Raises:
            InsufficientFundsError: If the wallet does not cover the amount
        """
        self.require_funds(player_id, amount)
        self._wallets[player_id] = self.balance(player_id) - amount
        return self._wallets[player_id]

    # Items

    def grant_items(self, player_id: str, items: Iterable[Item]) -> None:
        inventory = self._inventories[player_id]
        for item in items:
            inventory[item.item_id] += item.quantity

    def has_items(self, player_id: str, items: Iterable[Item]) -> bool:
        needed = Counter()
        for item in items:
            needed[item.item_id] += item.quantity
        inventory = self._inventories.get(player_id, Counter())
        return all(inventory[item_id] >= quantity for item_id, quantity in needed.items())

    def require_items(self, player_id: str, items: Iterable[Item]) -> None:
        items = list(items)
        if not self.has_items(player_id, items):
            listed = ", ".join(f"{i.quantity}x {i.item_id}" for i in items)
            raise InsufficientFundsError(player_id, f"does not hold {listed}")

    def take_items(self, player_id: str, items: Iterable[Item]) -> None:
        """
        Remove items from an inventory.

        Raises:
            InsufficientFundsError: If any item is missing or short
        """
        items = list(items)
        self.require_items(player_id, items)
        inventory = self._inventories[player_id]
        for item in items:
            inventory[item.item_id] -= item.quantity
            if inventory[item.item_id] == 0:
                del inventory[item.item_id]
