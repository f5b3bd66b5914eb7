from __future__ import annotations
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Optional, TextIO
from .coins import format_pence
from .events import Notification, NotificationFeed, NotificationKind
from .exceptions import InvalidMachineState, InvalidStateTransition
from .items import Drink, Item, MiscellaneousItem, Snack
from .machine import MachineState
from .maintenance import MaintenanceSession
from .string_builder import StringBuilder
import sys


def render_item(item: Item) -> str:
    """Describes an item on one line, e.g.
    'Coke (drink, ID 26) £1.50 - 330ml'."""
    match item:
        case Drink(volume_ml=volume):
            detail = f'{volume}ml'
        case Snack(weight_g=weight):
            detail = f'{weight}g'
        case MiscellaneousItem(description=description):
            detail = description
        case _:
            detail = ''
    line = f'{item.name} ({item.category}, ID {item.item_id}) {format_pence(item.price_pence)}'
    return f'{line} - {detail}' if detail else line


def _render_quantities(quantities: Mapping[Item, int]) -> str:
    with StringBuilder() as sb:
        for item, quantity in quantities.items():
            sb.append_line(f'{render_item(item)} x{quantity}')
        return sb.build()


class _Display(ABC):
    __slots__ = ('_stream',)

    def __init__(self, feed: NotificationFeed, stream: Optional[TextIO]) -> None:
        self._stream = stream
        feed.subscribe(self.update)

    @abstractmethod
    def update(self, notification: Notification) -> None:
        ...

    def _write(self, text: str) -> None:
        stream = sys.stdout if self._stream is None else self._stream
        stream.write(text)


class CustomerDisplay(_Display):
    """Friendly, uncluttered rendering of an order session's feed."""
    __slots__ = ()

    def update(self, notification: Notification) -> None:
        match notification.kind:
            case NotificationKind.ERROR:
                self.display(f'Something went wrong - {notification.message}')
            case NotificationKind.LISTING:
                self.display(f'{notification.message}:\n'
                             f'{_render_quantities(notification.payload)}'.rstrip('\n'))
            case _:
                self.display(f'Notice - {notification.message}')

    def display(self, message: str) -> None:
        with StringBuilder() as sb:
            sb.append_line("~Welcome to the Snack 'n' Drinks vending machine~")
            sb.append_line(message)
            sb.append_line('~-----------------------------------------------~')
            self._write(sb.build())


class AdminDisplay(_Display):
    """Full disclosure of the machine's condition alongside every message
    from a maintenance session's feed. Coin counts and slots can only be
    read in MAINTENANCE, so they are left out in other states."""
    __slots__ = ('session',)

    def __init__(self, session: MaintenanceSession, stream: Optional[TextIO] = None) -> None:
        super().__init__(session.feed, stream)
        self.session = session

    def update(self, notification: Notification) -> None:
        if not notification.is_error:
            self.display(f'NOTICE - {notification.message}')
        elif isinstance(notification.error, (InvalidMachineState, InvalidStateTransition)):
            self.display(f'INVALID STATE - {notification.message}')
        else:
            self.display(f'INVALID OPERATION - {notification.message}')

    def display(self, message: str) -> None:
        slot_count, slot_capacity = self.session.view_specifications()
        capacities = self.session.view_coin_capacities()
        state = self.session.get_state()
        with StringBuilder() as sb:
            sb.append_line('=' * 33 + ' ADMIN CONSOLE DISPLAY ' + '=' * 33)
            sb.append_line(f'Specifications: max slots - {slot_count}, '
                           f'max items per slot - {slot_capacity}.')
            sb.append_line('Accepted coins - ' + ', '.join(
                f'{coin} (capacity {capacity})' for coin, capacity in capacities.items()) + '.')
            sb.append_line(f'Current mode - {state.name}.')
            if state == MachineState.MAINTENANCE:
                counts = self.session.view_coins()
                sb.append_line('Current coin storage - ' + ', '.join(
                    f'{coin}: {count}/{capacities[coin]}' for coin, count in counts.items()) + '.')
                sb.append_line('Current item slots:')
                for number, slot in enumerate(self.session.view_items()):
                    if slot is None:
                        sb.append_line(f'  #{number}: unassigned')
                    else:
                        sb.append_line(
                            f'  #{number}: {render_item(slot.item)} - {slot.stock}/{slot.capacity}')
            sb.append_line(message)
            sb.append_line('=' * 89)
            self._write(sb.build())
