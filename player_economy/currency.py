"""Currency registry and multi-currency amounts."""

from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Iterator, Optional, Union


class CurrencyKind(str, Enum):
    """Currency kinds known to the economy."""
    GOLD = "gold"
    SILVER = "silver"
    COPPER = "copper"
    PLATINUM = "platinum"
    GEMS = "gems"


@dataclass(frozen=True)
class Currency:
    """
    Static description of one currency kind.

    Attributes:
        kind: Registry key
        name: Display name
        symbol: Display symbol
        base_value: Value of one unit expressed in gold
        decimals: Display precision
    """
    kind: CurrencyKind
    name: str
    symbol: str
    base_value: Decimal
    decimals: int

    def format(self, quantity: Decimal) -> str:
        """Render a quantity using this currency's display precision."""
        quantum = Decimal(1).scaleb(-self.decimals)
        return f"{Decimal(quantity).quantize(quantum)}{self.symbol}"


CURRENCY_REGISTRY: Dict[CurrencyKind, Currency] = {
    CurrencyKind.GOLD: Currency(CurrencyKind.GOLD, "Gold", "G", Decimal("1"), 0),
    CurrencyKind.SILVER: Currency(CurrencyKind.SILVER, "Silver", "S", Decimal("0.1"), 2),
    CurrencyKind.COPPER: Currency(CurrencyKind.COPPER, "Copper", "C", Decimal("0.01"), 2),
    CurrencyKind.PLATINUM: Currency(CurrencyKind.PLATINUM, "Platinum", "P", Decimal("10"), 0),
    CurrencyKind.GEMS: Currency(CurrencyKind.GEMS, "Gems", "\U0001f48e", Decimal("100"), 0),
}


def get_currency(kind: Union[CurrencyKind, str]) -> Currency:
    """
    Look up a currency by kind.

    Raises:
        ValueError: If the kind is not registered
    """
    try:
        return CURRENCY_REGISTRY[CurrencyKind(kind)]
    except (ValueError, KeyError):
        raise ValueError(f"Unknown currency kind: {kind!r}") from None


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        value = repr(value)
    try:
        return Decimal(value)
    except (InvalidOperation, TypeError):
        raise ValueError(f"Invalid currency quantity: {value!r}") from None


class CurrencyAmount(Mapping):
    """
    Immutable mapping of currency kind to a non-negative quantity.

    Kinds are validated against the registry at construction. Zero
    quantities are dropped, so two amounts compare equal when they hold
    the same non-zero quantities.
    """

    __slots__ = ("_quantities",)

    def __init__(self, quantities: Optional[Mapping] = None, **kwargs: Any):
        merged: Dict[CurrencyKind, Decimal] = {}
        source = dict(quantities or {})
        source.update(kwargs)
        for key, raw in source.items():
            kind = get_currency(key).kind
            quantity = _to_decimal(raw)
            if not quantity.is_finite():
                raise ValueError(f"Invalid currency quantity: {raw!r}")
            if quantity < 0:
                raise ValueError(f"Currency quantity cannot be negative: {kind.value}={quantity}")
            if quantity:
                merged[kind] = merged.get(kind, Decimal(0)) + quantity
        self._quantities = merged

    @classmethod
    def of(cls, kind: Union[CurrencyKind, str], quantity: Any) -> "CurrencyAmount":
        return cls({kind: quantity})

    def __getitem__(self, kind: Union[CurrencyKind, str]) -> Decimal:
        return self._quantities.get(CurrencyKind(kind), Decimal(0))

    def __iter__(self) -> Iterator[CurrencyKind]:
        return iter(self._quantities)

    def __len__(self) -> int:
        return len(self._quantities)

    def __contains__(self, kind: object) -> bool:
        try:
            return CurrencyKind(kind) in self._quantities
        except ValueError:
            return False

    def __hash__(self) -> int:
        return hash(frozenset(self._quantities.items()))

    def __add__(self, other: "CurrencyAmount") -> "CurrencyAmount":
        result = dict(self._quantities)
        for kind, quantity in other.items():
            result[kind] = result.get(kind, Decimal(0)) + quantity
        return CurrencyAmount(result)

    def __sub__(self, other: "CurrencyAmount") -> "CurrencyAmount":
        """
        Subtract another amount kind by kind.

        Raises:
            ValueError: If any kind would become negative
        """
        result = dict(self._quantities)
        for kind, quantity in other.items():
            remaining = result.get(kind, Decimal(0)) - quantity
            if remaining < 0:
                raise ValueError(
                    f"Cannot subtract {quantity} {kind.value}, only {result.get(kind, Decimal(0))} available"
                )
            result[kind] = remaining
        return CurrencyAmount(result)

    def scale(self, factor: Any) -> "CurrencyAmount":
        """Multiply every quantity by a non-negative factor."""
        factor = _to_decimal(factor)
        return CurrencyAmount({kind: quantity * factor for kind, quantity in self._quantities.items()})

    def covers(self, other: "CurrencyAmount") -> bool:
        """Check that this amount holds at least ``other`` of every kind."""
        return all(self[kind] >= quantity for kind, quantity in other.items())

    def value(self) -> Decimal:
        """Total value expressed in gold."""
        return sum(
            (quantity * CURRENCY_REGISTRY[kind].base_value for kind, quantity in self._quantities.items()),
            Decimal(0),
        )

    @property
    def is_positive(self) -> bool:
        return self.value() > 0

    def to_dict(self) -> Dict[str, str]:
        return {kind.value: str(quantity) for kind, quantity in self._quantities.items()}

    @classmethod
    def from_dict(cls, data: Mapping) -> "CurrencyAmount":
        return cls(data)

    def format(self) -> str:
        if not self._quantities:
            return "0G"
        return " ".join(
            CURRENCY_REGISTRY[kind].format(quantity)
            for kind, quantity in sorted(
                self._quantities.items(), key=lambda kv: CURRENCY_REGISTRY[kv[0]].base_value, reverse=True
            )
        )

    def __repr__(self) -> str:
        return f"CurrencyAmount({self.format()})"
