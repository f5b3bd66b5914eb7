from __future__ import annotations
from typing import NamedTuple, Optional
from .exceptions import (IndexOutOfRange, ItemNotFound, SlotAlreadyAssigned,
                         SlotEmpty, SlotFull, SlotNotEmpty, SlotUnassigned)
from .items import Item
import logging

logger = logging.getLogger(__name__)


class SlotSnapshot(NamedTuple):
    item: Item
    stock: int
    capacity: int


class ItemSlot:
    """A slot bound to one item. Reassigning a slot replaces the ItemSlot
    rather than mutating it."""
    __slots__ = ('capacity', 'item', 'stock')

    def __init__(self, capacity: int, item: Item) -> None:
        self.capacity = capacity
        self.item = item
        self.stock = 0

    @property
    def is_empty(self) -> bool:
        return self.stock == 0

    @property
    def is_full(self) -> bool:
        return self.stock == self.capacity

    def add_item(self) -> None:
        if self.is_full:
            raise SlotFull('Cannot put items in a completely populated slot')
        self.stock += 1

    def remove_item(self) -> None:
        if self.is_empty:
            raise SlotEmpty('Cannot remove items from an empty slot')
        self.stock -= 1

    def snapshot(self) -> SlotSnapshot:
        return SlotSnapshot(self.item, self.stock, self.capacity)


class InventoryStore:
    """A fixed row of slots, any of which may be unassigned. Every slot has
    the same capacity and neither the number of slots nor their capacity
    changes after construction.

    The store cannot tell which item is physically loaded, so it trusts
    the operator to stock the right item in the right slot."""
    __slots__ = ('slot_capacity', '_slots')

    def __init__(self, slot_count: int, slot_capacity: int) -> None:
        """Constructor

        Args:
            slot_count (int): Number of slots.
            slot_capacity (int): Number of items each slot can hold.
        """
        self.slot_capacity = slot_capacity
        self._slots: list[Optional[ItemSlot]] = [None] * slot_count

    @property
    def slot_count(self) -> int:
        return len(self._slots)

    def _check_index(self, slot_number: int) -> None:
        if not 0 <= slot_number < len(self._slots):
            raise IndexOutOfRange(
                f'Slot #{slot_number} is out of range; slots are numbered 0 to {len(self._slots) - 1}')

    def _assigned_slot(self, slot_number: int) -> ItemSlot:
        self._check_index(slot_number)
        slot = self._slots[slot_number]
        if slot is None:
            raise SlotUnassigned(f'Slot #{slot_number} is not assigned to an item')
        return slot

    def assign(self, slot_number: int, item: Item) -> None:
        """Binds an empty slot to an item. The same item may be assigned to
        several slots.

        Args:
            slot_number (int): The slot to assign.
            item (Item): The item the slot will hold.

        Raises:
            IndexOutOfRange: Raised if the slot does not exist.
            SlotAlreadyAssigned: Raised if the slot already holds an item.
        """
        self._check_index(slot_number)
        if self._slots[slot_number] is not None:
            raise SlotAlreadyAssigned(f'Slot #{slot_number} is already assigned')
        self._slots[slot_number] = ItemSlot(self.slot_capacity, item)

    def unassign(self, slot_number: int) -> None:
        """Clears a slot's item. The slot must be physically empty.

        Args:
            slot_number (int): The slot to clear.

        Raises:
            IndexOutOfRange: Raised if the slot does not exist.
            SlotUnassigned: Raised if the slot has no item.
            SlotNotEmpty: Raised if items remain in the slot.
        """
        slot = self._assigned_slot(slot_number)
        if not slot.is_empty:
            raise SlotNotEmpty(
                f'Cannot unassign slot #{slot_number} while it still holds {slot.stock} items')
        self._slots[slot_number] = None

    def restock(self, slot_number: int) -> None:
        self._assigned_slot(slot_number).add_item()
        logger.debug('Stocked one item into slot #%d', slot_number)

    def remove_one(self, slot_number: int) -> None:
        self._assigned_slot(slot_number).remove_item()
        logger.debug('Removed one item from slot #%d', slot_number)

    def dispense_by_item_id(self, item_id: int) -> Item:
        """Dispenses one unit of an item from the lowest numbered slot
        that has the item in stock.

        Args:
            item_id (int): The item to dispense.

        Raises:
            ItemNotFound: Raised if no slot has the item in stock.

        Returns:
            Item: The dispensed item.
        """
        for slot_number, slot in enumerate(self._slots):
            if slot is None or not slot.item.matches(item_id) or slot.is_empty:
                continue
            slot.remove_item()
            logger.debug('Dispensed item %d from slot #%d', item_id, slot_number)
            return slot.item
        raise ItemNotFound(f'Item {item_id} was not found or is out of stock')

    def snapshot(self) -> tuple[Optional[SlotSnapshot], ...]:
        """Returns the state of every slot in order, with None standing in
        for unassigned slots."""
        return tuple(None if slot is None else slot.snapshot() for slot in self._slots)
