from __future__ import annotations
from collections.abc import Mapping
from typing import Optional
from .cash_store import CashStore
from .coins import Denomination
from .exceptions import InvalidMachineState
from .inventory import InventoryStore, SlotSnapshot
from .items import Item
from .state_machine import StateMachineBase
import enum


class MachineState(enum.Enum):
    IDLE = enum.auto()
    ORDERING = enum.auto()
    PAYING = enum.auto()
    DISPENSING = enum.auto()
    REFUNDING = enum.auto()
    MAINTENANCE = enum.auto()


class VendingMachine(StateMachineBase):
    """The physical machine: its current state, coin store and item store.

    Only the move into MAINTENANCE is checked here; it must start from IDLE
    so an operator can never interrupt a customer. Everything else about
    who may do what is decided by the store operations below, each of which
    is allowed in a fixed set of states, and by the sessions driving them.
    """
    __slots__ = ('cash', 'inventory')

    states = MachineState

    def __init__(self, slot_count: int, slot_capacity: int,
                 coin_capacities: Mapping[Denomination, int]) -> None:
        """Constructor. Use vending.factory.create_vending_machine to
        validate the arguments first.

        Args:
            slot_count (int): Number of item slots.
            slot_capacity (int): Items each slot can hold.
            coin_capacities (Mapping[Denomination, int]): Accepted coins and
            how many of each can be held.
        """
        super().__init__()
        self.inventory = InventoryStore(slot_count, slot_capacity)
        self.cash = CashStore(coin_capacities)

    def can_transition(self, from_state: MachineState, to_state: MachineState) -> bool:
        return to_state != MachineState.MAINTENANCE or from_state == MachineState.IDLE

    def change_state(self, new_state: MachineState) -> VendingMachine:
        """Moves the machine to a new state.

        Args:
            new_state (MachineState): The state to move to.

        Raises:
            InvalidStateTransition: Raised when entering MAINTENANCE from
            anywhere but IDLE.

        Returns:
            VendingMachine: The current instance.
        """
        self.transition(new_state)
        return self

    def _require(self, action: str, *allowed: MachineState) -> None:
        if self.state not in allowed:
            names = ' or '.join(state.name for state in allowed)
            raise InvalidMachineState(f'Cannot {action} when not in {names} state')

    def specifications(self) -> tuple[int, int]:
        """Returns the number of slots and the capacity of each slot."""
        return self.inventory.slot_count, self.inventory.slot_capacity

    def coin_capacities(self) -> Mapping[Denomination, int]:
        return self.cash.capacities()

    def coin_counts(self) -> Mapping[Denomination, int]:
        self._require('view coin storage', MachineState.MAINTENANCE)
        return self.cash.counts()

    def insert_coin(self, coin: Denomination) -> None:
        """Takes a coin from a paying customer or an operator. A coin offered
        in any other state is refused before it reaches the coin store."""
        self._require('insert a coin', MachineState.PAYING, MachineState.MAINTENANCE)
        self.cash.deposit(coin)

    def withdraw_coin(self, coin: Denomination) -> None:
        self._require('withdraw a coin', MachineState.REFUNDING, MachineState.MAINTENANCE)
        self.cash.withdraw(coin)

    def item_slots(self) -> tuple[Optional[SlotSnapshot], ...]:
        self._require('view item storage', MachineState.ORDERING, MachineState.MAINTENANCE)
        return self.inventory.snapshot()

    def stock_item(self, slot_number: int) -> None:
        self._require('restock an item', MachineState.MAINTENANCE)
        self.inventory.restock(slot_number)

    def remove_item(self, slot_number: int) -> None:
        self._require('remove an item', MachineState.MAINTENANCE)
        self.inventory.remove_one(slot_number)

    def dispense_item(self, item_id: int) -> Item:
        self._require('dispense an item', MachineState.DISPENSING)
        return self.inventory.dispense_by_item_id(item_id)

    def assign_slot(self, slot_number: int, item: Item) -> None:
        self._require('assign an item slot', MachineState.MAINTENANCE)
        self.inventory.assign(slot_number, item)

    def unassign_slot(self, slot_number: int) -> None:
        self._require('unassign an item slot', MachineState.MAINTENANCE)
        self.inventory.unassign(slot_number)
