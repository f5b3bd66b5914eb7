from __future__ import annotations
from collections.abc import Callable, Mapping
from typing import Optional
from .coins import Denomination
from .events import Notification, NotificationFeed
from .exceptions import (InvalidMachineState, InvalidQuantity,
                         InvalidStateTransition, VendingMachineException)
from .inventory import SlotSnapshot
from .items import Item
from .machine import MachineState, VendingMachine
import logging

logger = logging.getLogger(__name__)


class MaintenanceSession:
    """An operator's dealings with the machine. Apart from the queries and
    starting or stopping maintenance, everything here needs the machine to
    be in MAINTENANCE.

    Bulk operations move one coin or item at a time and stop at the first
    unit that fails, keeping the units that went through: a coin already
    dropped into its tube cannot be taken back out by software."""
    __slots__ = ('machine', 'feed')

    def __init__(self, machine: VendingMachine, feed: Optional[NotificationFeed] = None) -> None:
        self.machine = machine
        self.feed = NotificationFeed() if feed is None else feed

    def start_maintenance(self) -> Notification:
        try:
            self.machine.change_state(MachineState.MAINTENANCE)
        except InvalidStateTransition as e:
            return self.feed.error(e)
        return self.feed.status('Maintenance mode started.')

    def stop_maintenance(self) -> Notification:
        """Returns the machine to IDLE from whatever state it is in, which is
        also how an operator clears a machine left stuck by a fault."""
        if self.machine.state != MachineState.MAINTENANCE:
            logger.warning('Forcing the machine from %s back to IDLE', self.machine.state.name)
        self.machine.reset()
        return self.feed.status('Maintenance mode stopped.')

    def get_state(self) -> MachineState:
        return self.machine.state

    def view_coins(self) -> Mapping[Denomination, int]:
        return self.machine.coin_counts()

    def view_coin_capacities(self) -> Mapping[Denomination, int]:
        return self.machine.coin_capacities()

    def view_items(self) -> tuple[Optional[SlotSnapshot], ...]:
        return self.machine.item_slots()

    def view_specifications(self) -> tuple[int, int]:
        return self.machine.specifications()

    def _require_maintenance(self, action: str) -> None:
        if self.machine.state != MachineState.MAINTENANCE:
            raise InvalidMachineState(f'Cannot {action} when not in MAINTENANCE state')

    def _repeat(self, action: str, amount: int, operation: Callable[[], None],
                unit_message: str, done_message: str) -> Notification:
        try:
            self._require_maintenance(action)
            if amount < 1:
                raise InvalidQuantity(f'Cannot {action} {amount} times; the amount must be at least 1')
        except VendingMachineException as e:
            return self.feed.error(e)

        self.feed.status(f'Attempting to {action} x{amount}...')
        for unit in range(1, amount + 1):
            try:
                operation()
            except VendingMachineException as e:
                return self.feed.error(
                    e, f'Unit {unit} of {amount} failed, {unit - 1} applied: {e}',
                    payload={'unit': unit, 'applied': unit - 1})
            self.feed.status(unit_message)
        return self.feed.status(done_message)

    def deposit_coins(self, coin: Denomination, amount: int) -> Notification:
        return self._repeat(f'deposit {coin}s', amount,
                            lambda: self.machine.insert_coin(coin),
                            f'Deposited one {coin}.',
                            f'All {amount} {coin}s deposited successfully.')

    def withdraw_coins(self, coin: Denomination, amount: int) -> Notification:
        return self._repeat(f'withdraw {coin}s', amount,
                            lambda: self.machine.withdraw_coin(coin),
                            f'Withdrew one {coin}.',
                            f'All {amount} {coin}s withdrawn successfully.')

    def stock_items(self, slot_number: int, amount: int) -> Notification:
        return self._repeat(f'stock items into slot #{slot_number}', amount,
                            lambda: self.machine.stock_item(slot_number),
                            f'Item stocked into slot #{slot_number}.',
                            f'All {amount} items stocked into slot #{slot_number} successfully.')

    def remove_items(self, slot_number: int, amount: int) -> Notification:
        return self._repeat(f'remove items from slot #{slot_number}', amount,
                            lambda: self.machine.remove_item(slot_number),
                            f'Item removed from slot #{slot_number}.',
                            f'All {amount} items removed from slot #{slot_number} successfully.')

    # Assignment is one slot per call so an operator cannot mislabel a
    # whole row by mistake.
    def assign_item_slot(self, slot_number: int, item: Item) -> Notification:
        try:
            self._require_maintenance('assign an item slot')
            self.machine.assign_slot(slot_number, item)
        except VendingMachineException as e:
            return self.feed.error(e)
        return self.feed.status(f'Slot #{slot_number} assigned to item {item.name} successfully.')

    def unassign_item_slot(self, slot_number: int) -> Notification:
        try:
            self._require_maintenance('unassign an item slot')
            self.machine.unassign_slot(slot_number)
        except VendingMachineException as e:
            return self.feed.error(e)
        return self.feed.status(f'Slot #{slot_number} unassigned successfully.')
