"""Validation and construction of machines and items. Constructors trust
their arguments; these functions are the only place arguments are
checked."""
from __future__ import annotations
from collections.abc import Mapping
from decimal import Decimal, InvalidOperation
from typing import Union
from .coins import Denomination
from .exceptions import InvalidItem, InvalidSpecification
from .items import Drink, Item, ItemCategory, MiscellaneousItem, Snack
from .machine import VendingMachine

MAX_SLOT_CAPACITY = 30
MAX_NAME_LENGTH = 30

Price = Union[Decimal, int, float, str]


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def create_vending_machine(slot_count: int, slot_capacity: int,
                           coin_capacities: Mapping[Denomination, int]) -> VendingMachine:
    """Builds a machine after checking its physical specification.

    Args:
        slot_count (int): Number of item slots; positive and even so the
        slots form a balanced grid.
        slot_capacity (int): Items per slot, from 1 to 30. More stock of one
        item belongs in more slots.
        coin_capacities (Mapping[Denomination, int]): Accepted coins and how
        many of each can be held. Must not be empty; capacities may be 0.

    Raises:
        InvalidSpecification: Raised if any argument is invalid.

    Returns:
        VendingMachine: A new machine in the IDLE state.
    """
    if not _is_int(slot_count) or slot_count <= 0 or slot_count % 2 != 0:
        raise InvalidSpecification(
            f'Number of item slots must be a positive even number, got {slot_count!r}')
    if not _is_int(slot_capacity) or not 0 < slot_capacity <= MAX_SLOT_CAPACITY:
        raise InvalidSpecification(
            f'Item slot size must be between 1 and {MAX_SLOT_CAPACITY}, got {slot_capacity!r}')
    if not coin_capacities:
        raise InvalidSpecification('Coin storage must accept at least one coin')
    for coin, capacity in coin_capacities.items():
        if not isinstance(coin, Denomination):
            raise InvalidSpecification(f'{coin!r} is not a coin denomination')
        if not _is_int(capacity) or capacity < 0:
            raise InvalidSpecification(
                f'Capacity of {coin} must be a whole number of at least 0, got {capacity!r}')
    return VendingMachine(slot_count, slot_capacity, coin_capacities)


def _validate_name(name: str) -> None:
    if not isinstance(name, str) or not name.strip():
        raise InvalidItem('Name cannot be blank')
    if len(name) > MAX_NAME_LENGTH:
        raise InvalidItem(f'Name must be at most {MAX_NAME_LENGTH} characters long')


def _validate_positive(value: int, what: str) -> None:
    if not _is_int(value) or value <= 0:
        raise InvalidItem(f'{what} must be a positive whole number, got {value!r}')


def _to_price(price: Price) -> Decimal:
    if isinstance(price, bool):
        raise InvalidItem(f'Price must be a number, got {price!r}')
    try:
        # str() keeps a float's shortest repr, so 1.1 stays 1.1.
        amount = Decimal(str(price))
    except InvalidOperation:
        raise InvalidItem(f'Price must be a number, got {price!r}') from None
    if not amount.is_finite():
        raise InvalidItem(f'Price must be finite, got {price!r}')
    if amount < 0:
        raise InvalidItem('Price cannot be negative')
    try:
        quantized = amount.quantize(Decimal('0.01'))
    except InvalidOperation:
        raise InvalidItem(f'Price is out of range, got {price!r}') from None
    if amount != quantized:
        raise InvalidItem('Price cannot have more than 2 decimal places')
    return quantized


def create_item(category: ItemCategory, name: str, item_id: int, price: Price,
                extra: Union[int, str]) -> Item:
    """Builds an item of the given category after validating it.

    Args:
        category (ItemCategory): Which kind of item to build.
        name (str): Non-blank, at most 30 characters.
        item_id (int): Positive; unique within the machine by convention.
        price (Price): Non-negative with at most 2 decimal places.
        extra (Union[int, str]): Volume in ml for a drink, weight in grams
        for a snack, or a description (possibly empty) otherwise.

    Raises:
        InvalidItem: Raised if any argument is invalid.

    Returns:
        Item: The new item.
    """
    _validate_positive(item_id, 'ID')
    amount = _to_price(price)
    _validate_name(name)
    match category:
        case ItemCategory.DRINK:
            _validate_positive(extra, 'Volume')
            return Drink(name, item_id, amount, extra)
        case ItemCategory.SNACK:
            _validate_positive(extra, 'Weight')
            return Snack(name, item_id, amount, extra)
        case ItemCategory.MISCELLANEOUS:
            if not isinstance(extra, str):
                raise InvalidItem(f'Description must be text, got {extra!r}')
            return MiscellaneousItem(name, item_id, amount, extra)
        case other:
            raise InvalidItem(f'Unknown item category {other!r}')
