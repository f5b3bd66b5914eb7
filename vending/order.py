from __future__ import annotations
from typing import Optional
from .change import make_change
from .coins import Denomination, format_pence
from .events import Notification, NotificationFeed
from .exceptions import (EmptyBasket, InsufficientStock, InvalidMachineState,
                         ItemNotFound, ItemUnavailable, MachineUnderMaintenance,
                         OrderAlreadyInProgress, UnresolvedChange,
                         VendingMachineException)
from .items import Item
from .machine import MachineState, VendingMachine
from .state_machine import StateMachineBase
import enum
import logging

logger = logging.getLogger(__name__)


class OrderPhase(enum.Enum):
    NOT_STARTED = enum.auto()
    SELECTING = enum.auto()
    PAYING = enum.auto()
    FULFILLED = enum.auto()
    CANCELLED = enum.auto()


class Basket:
    """Quantities of the items a customer has selected, keyed by item id."""
    __slots__ = ('_items', '_quantities')

    def __init__(self) -> None:
        self._items: dict[int, Item] = {}
        self._quantities: dict[int, int] = {}

    def __len__(self) -> int:
        return len(self._quantities)

    def __contains__(self, item_id: int) -> bool:
        return item_id in self._quantities

    def quantity(self, item_id: int) -> int:
        return self._quantities.get(item_id, 0)

    def add(self, item: Item) -> int:
        self._items.setdefault(item.item_id, item)
        self._quantities[item.item_id] = self.quantity(item.item_id) + 1
        return self._quantities[item.item_id]

    def remove(self, item_id: int) -> int:
        """Takes one unit of an item out of the basket, dropping the entry
        once none are left.

        Args:
            item_id (int): The item to take out.

        Raises:
            ItemNotFound: Raised if the item is not in the basket.

        Returns:
            int: How many remain in the basket.
        """
        if item_id not in self._quantities:
            raise ItemNotFound(
                f'There is no item with ID {item_id} in the basket; please choose another item ID')
        remaining = self._quantities[item_id] - 1
        if remaining == 0:
            del self._quantities[item_id]
            del self._items[item_id]
        else:
            self._quantities[item_id] = remaining
        return remaining

    def item(self, item_id: int) -> Item:
        return self._items[item_id]

    def lines(self) -> list[tuple[Item, int]]:
        return [(self._items[item_id], quantity) for item_id, quantity in self._quantities.items()]

    def as_dict(self) -> dict[Item, int]:
        return dict(self.lines())

    def total_pence(self) -> int:
        return sum(item.price_pence * quantity for item, quantity in self.lines())

    def clear(self) -> None:
        self._items.clear()
        self._quantities.clear()


class OrderSession(StateMachineBase):
    """A customer's dealings with the machine: choosing items, paying for
    them and getting change or a refund.

    Every operation publishes what happened to the session's feed and
    returns the last notification published. Rejected operations leave the
    session and the machine as they were so the customer can try again.
    The one exception is change that cannot be paid out, which can only
    come from a physical fault; the machine is then put into MAINTENANCE
    with the amount still owed reported so an operator can step in.
    """
    __slots__ = ('machine', 'feed', 'basket', 'amount_due', 'balance', 'denominations')

    states = OrderPhase

    def __init__(self, machine: VendingMachine, feed: Optional[NotificationFeed] = None) -> None:
        """Constructor

        Args:
            machine (VendingMachine): The machine the customer is using.
            feed (NotificationFeed, optional): Where to publish notifications.
            Defaults to a new feed.
        """
        super().__init__()
        self.machine = machine
        self.feed = NotificationFeed() if feed is None else feed
        self.basket = Basket()
        self.amount_due = 0
        self.balance = 0
        self.denominations = machine.cash.denominations

    @property
    def phase(self) -> OrderPhase:
        return self.state

    def _check_not_in_maintenance(self) -> None:
        if self.machine.state == MachineState.MAINTENANCE:
            raise MachineUnderMaintenance(
                'This vending machine is under maintenance and customer actions are disabled; '
                'please come back when the maintainer has finished')

    def _require_machine(self, action: str, *allowed: MachineState) -> None:
        self._check_not_in_maintenance()
        if self.machine.state not in allowed:
            raise InvalidMachineState(
                f'Cannot {action} while the machine is {self.machine.state.name}')

    def _clear(self) -> None:
        self.basket.clear()
        self.amount_due = 0
        self.balance = 0

    def _reset(self, phase: OrderPhase) -> None:
        self._clear()
        self.machine.change_state(MachineState.IDLE)
        self.transition(phase)

    def _fault(self, error: VendingMachineException, phase: OrderPhase) -> Notification:
        # MAINTENANCE can only be entered from IDLE.
        logger.error('Taking the machine out of service: %s', error)
        self._clear()
        self.machine.change_state(MachineState.IDLE)
        self.machine.change_state(MachineState.MAINTENANCE)
        self.transition(phase)
        return self.feed.error(error)

    def _announce_coin(self, coin: Denomination) -> None:
        self.feed.status(f'Dispensed {coin} as change/refund.')

    def _available_stock(self, item_id: int) -> tuple[Optional[Item], int]:
        found = None
        available = 0
        for slot in self.machine.item_slots():
            if slot is None or not slot.item.matches(item_id):
                continue
            if found is None:
                found = slot.item
            available += slot.stock
        return found, available

    def start(self) -> Notification:
        try:
            self._check_not_in_maintenance()
            if self.machine.state != MachineState.IDLE:
                raise OrderAlreadyInProgress(
                    'Cannot start a new order while another is in progress; '
                    'please complete or cancel the ongoing order first')
            self.machine.change_state(MachineState.ORDERING)
        except VendingMachineException as e:
            return self.feed.error(e)
        self._clear()
        self.transition(OrderPhase.SELECTING)
        return self.feed.status('Order started. Please select items to add to your basket.')

    def select_item(self, item_id: int) -> Notification:
        """Adds one unit of an item to the basket, provided the slots
        carrying it hold more than the basket already asks for.

        Args:
            item_id (int): The item to add.

        Returns:
            Notification: The outcome.
        """
        try:
            self._require_machine('select items', MachineState.ORDERING)
            item, available = self._available_stock(item_id)
            if item is None:
                raise ItemUnavailable(
                    f'There is currently no item assigned to ID {item_id}; please use a different ID')
            if self.basket.quantity(item_id) + 1 > available:
                raise InsufficientStock(
                    f'There is not enough {item.name} in stock; please select another item')
        except VendingMachineException as e:
            return self.feed.error(e)
        self.basket.add(item)
        return self.feed.status(f'One {item.name} has been added to your basket.')

    def deselect_item(self, item_id: int) -> Notification:
        try:
            self._require_machine('deselect items', MachineState.ORDERING)
            item = self.basket.item(item_id) if item_id in self.basket else None
            remaining = self.basket.remove(item_id)
        except VendingMachineException as e:
            return self.feed.error(e)
        if remaining == 0:
            return self.feed.status(f'All {item.name} has been removed from your basket.')
        return self.feed.status(f'One {item.name} has been removed from your basket.')

    def checkout(self) -> Notification:
        try:
            self._require_machine('check out', MachineState.ORDERING)
            if not self.basket:
                raise EmptyBasket('Cannot check out with an empty basket; please select items first')
            self.machine.change_state(MachineState.PAYING)
        except VendingMachineException as e:
            return self.feed.error(e)
        self.amount_due = self.basket.total_pence()
        self.transition(OrderPhase.PAYING)
        if self.amount_due == 0:
            return self._fulfil()
        return self.feed.status(
            f'Items in basket total to {format_pence(self.amount_due)}. '
            'Please deposit coins to proceed with payment.')

    def deposit_coin(self, coin: Denomination) -> Notification:
        """Takes one coin towards the amount due. Once the amount is covered
        the basket is dispensed and any overpayment is returned.

        Args:
            coin (Denomination): The coin inserted.

        Returns:
            Notification: The outcome.
        """
        try:
            self._require_machine('insert coins', MachineState.PAYING)
            self.machine.insert_coin(coin)
        except VendingMachineException as e:
            return self.feed.error(e)
        self.amount_due -= coin.pence
        self.balance += coin.pence
        notification = self.feed.status(
            f'Deposited {coin}. Remaining price to pay: {format_pence(max(self.amount_due, 0))}')
        if self.amount_due > 0:
            return notification
        return self._fulfil()

    def _fulfil(self) -> Notification:
        self.feed.status('Dispensing all selected items...')
        self.machine.change_state(MachineState.DISPENSING)
        try:
            for item, quantity in self.basket.lines():
                for _ in range(quantity):
                    self.machine.dispense_item(item.item_id)
                    self.feed.status(f'Dispensed one {item.name}.')
            change = -self.amount_due
            if change > 0:
                self.machine.change_state(MachineState.REFUNDING)
                self.feed.status(f'Returning {format_pence(change)} in change...')
                make_change(self.machine, change, self.denominations, on_coin=self._announce_coin)
        except (ItemNotFound, UnresolvedChange) as e:
            return self._fault(e, OrderPhase.FULFILLED)
        self._reset(OrderPhase.FULFILLED)
        return self.feed.status('All selected items dispensed. Thank you for your purchase!')

    def cancel(self) -> Notification:
        """Abandons the order. Coins already deposited are refunded in full.

        Returns:
            Notification: The outcome.
        """
        try:
            self._check_not_in_maintenance()
        except VendingMachineException as e:
            return self.feed.error(e)

        match self.machine.state:
            case MachineState.ORDERING:
                # Nothing has been paid yet.
                self._reset(OrderPhase.CANCELLED)
                return self.feed.status('Order cancelled and basket cleared. Sorry to see you go!')
            case MachineState.PAYING:
                refund = self.balance
                if refund > 0:
                    self.feed.status('Order cancelled during payment. Refund processing...')
                    self.machine.change_state(MachineState.REFUNDING)
                    try:
                        make_change(self.machine, refund, self.denominations,
                                    on_coin=self._announce_coin)
                    except UnresolvedChange as e:
                        return self._fault(e, OrderPhase.CANCELLED)
                self._reset(OrderPhase.CANCELLED)
                return self.feed.status(
                    f'Order cancelled during payment. Balance ({format_pence(refund)}) refunded. '
                    'Sorry to see you go!')
            case _:
                return self.feed.status('There is no ongoing order to cancel.')

    def view_basket(self) -> Notification:
        try:
            self._require_machine('view the basket', MachineState.ORDERING, MachineState.PAYING)
        except VendingMachineException as e:
            return self.feed.error(e)
        return self.feed.listing('Basket', self.basket.as_dict())

    def view_item_stock(self) -> Notification:
        """Lists every item on offer with its stock summed over all the slots
        carrying it. Items that have sold out are included."""
        try:
            self._check_not_in_maintenance()
            slots = self.machine.item_slots()
        except VendingMachineException as e:
            return self.feed.error(e)
        first_seen: dict[int, Item] = {}
        stock: dict[Item, int] = {}
        for slot in slots:
            if slot is None:
                continue
            item = first_seen.setdefault(slot.item.item_id, slot.item)
            stock[item] = stock.get(item, 0) + slot.stock
        return self.feed.listing('Items', stock)
