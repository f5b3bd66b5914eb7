from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
import enum


class ItemCategory(enum.Enum):
    DRINK = 'drink'
    SNACK = 'snack'
    MISCELLANEOUS = 'miscellaneous item'

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Item(ABC):
    """Something the machine sells. Instances are immutable values built by
    vending.factory.create_item, which validates every field."""
    name: str
    item_id: int
    price: Decimal

    @property
    @abstractmethod
    def category(self) -> ItemCategory:
        ...

    @property
    def price_pence(self) -> int:
        return int(self.price * 100)

    def matches(self, item_id: int) -> bool:
        return self.item_id == item_id


@dataclass(frozen=True)
class Drink(Item):
    volume_ml: int

    @property
    def category(self) -> ItemCategory:
        return ItemCategory.DRINK


@dataclass(frozen=True)
class Snack(Item):
    weight_g: int

    @property
    def category(self) -> ItemCategory:
        return ItemCategory.SNACK


@dataclass(frozen=True)
class MiscellaneousItem(Item):
    description: str

    @property
    def category(self) -> ItemCategory:
        return ItemCategory.MISCELLANEOUS
