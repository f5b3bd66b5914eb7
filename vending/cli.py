"""Drive a vending machine from a script of commands.

Usage:
    vending-machine [--slots N] [--slot-capacity N] [--coin NAME=CAPACITY ...]
                    [--log-level LEVEL] [SCRIPT]

Commands are read one per line from SCRIPT, or stdin when it is omitted:

    admin start | stop | state | coins | items
    admin deposit COIN N        admin withdraw COIN N
    admin stock SLOT N          admin remove SLOT N
    admin assign SLOT drink|snack|misc NAME ID PRICE EXTRA
    admin unassign SLOT
    order start | checkout | cancel | basket | stock
    order select ID             order deselect ID
    order pay COIN

COIN is a denomination name such as FIFTY_PENCE.
"""
from __future__ import annotations
from collections.abc import Mapping, Sequence
from typing import Optional, TextIO
from .coins import Denomination
from .display import AdminDisplay, CustomerDisplay, render_item
from .events import Notification
from .exceptions import InvalidSpecification, VendingMachineException
from .factory import create_item, create_vending_machine
from .io import each_command_of
from .items import ItemCategory
from .machine import VendingMachine
from .maintenance import MaintenanceSession
from .order import OrderSession
import argparse
import logging
import sys

logger = logging.getLogger(__name__)

DEFAULT_COIN_CAPACITY = 50

CATEGORIES = {
    'drink': ItemCategory.DRINK,
    'snack': ItemCategory.SNACK,
    'misc': ItemCategory.MISCELLANEOUS,
}


class CommandError(Exception):
    pass


def parse_coin(word: str) -> Denomination:
    try:
        return Denomination[word.upper()]
    except KeyError:
        raise CommandError(f'Unknown coin {word}') from None


def parse_number(word: str) -> int:
    try:
        return int(word)
    except ValueError:
        raise CommandError(f'Expected a whole number but got {word}') from None


class ScriptRunner:
    """Owns one order session and one maintenance session on a machine,
    each rendered by its own display, and feeds commands to them."""
    __slots__ = ('machine', 'order', 'maintenance')

    def __init__(self, machine: VendingMachine, stream: Optional[TextIO] = None) -> None:
        self.machine = machine
        self.order = OrderSession(machine)
        self.maintenance = MaintenanceSession(machine)
        CustomerDisplay(self.order.feed, stream)
        AdminDisplay(self.maintenance, stream)

    def run(self, script: TextIO) -> int:
        """Executes every command in the script. Malformed commands are
        logged and skipped.

        Args:
            script (TextIO): The commands to run.

        Returns:
            int: The number of commands skipped.
        """
        skipped = 0
        for line_number, words in each_command_of(script):
            try:
                self.execute(words)
            except CommandError as e:
                logger.error('Line %d: %s', line_number, e)
                skipped += 1
        return skipped

    def execute(self, words: Sequence[str]) -> Notification:
        match words:
            case ['admin', *rest]:
                return self._admin(rest)
            case ['order', *rest]:
                return self._order(rest)
            case _:
                raise CommandError(f'Unknown command: {" ".join(words)}')

    def _admin(self, words: Sequence[str]) -> Notification:
        session = self.maintenance
        match words:
            case ['start']:
                return session.start_maintenance()
            case ['stop']:
                return session.stop_maintenance()
            case ['state']:
                return session.feed.status(f'Current mode - {session.get_state().name}.')
            case ['coins']:
                return self._query(lambda: 'Coin storage - ' + ', '.join(
                    f'{coin}: {count}' for coin, count in session.view_coins().items()))
            case ['items']:
                return self._query(lambda: 'Item slots - ' + ', '.join(
                    'unassigned' if slot is None else f'{render_item(slot.item)} x{slot.stock}'
                    for slot in session.view_items()))
            case ['deposit', coin, amount]:
                return session.deposit_coins(parse_coin(coin), parse_number(amount))
            case ['withdraw', coin, amount]:
                return session.withdraw_coins(parse_coin(coin), parse_number(amount))
            case ['stock', slot, amount]:
                return session.stock_items(parse_number(slot), parse_number(amount))
            case ['remove', slot, amount]:
                return session.remove_items(parse_number(slot), parse_number(amount))
            case ['assign', slot, category, name, item_id, price, extra]:
                if category not in CATEGORIES:
                    raise CommandError(f'Unknown item category {category}')
                kind = CATEGORIES[category]
                if kind != ItemCategory.MISCELLANEOUS:
                    extra = parse_number(extra)
                try:
                    item = create_item(kind, name, parse_number(item_id), price, extra)
                except VendingMachineException as e:
                    return session.feed.error(e)
                return session.assign_item_slot(parse_number(slot), item)
            case ['unassign', slot]:
                return session.unassign_item_slot(parse_number(slot))
            case _:
                raise CommandError(f'Unknown admin command: {" ".join(words)}')

    def _query(self, describe) -> Notification:
        try:
            message = describe()
        except VendingMachineException as e:
            return self.maintenance.feed.error(e)
        return self.maintenance.feed.status(message)

    def _order(self, words: Sequence[str]) -> Notification:
        session = self.order
        match words:
            case ['start']:
                return session.start()
            case ['select', item_id]:
                return session.select_item(parse_number(item_id))
            case ['deselect', item_id]:
                return session.deselect_item(parse_number(item_id))
            case ['checkout']:
                return session.checkout()
            case ['pay', coin]:
                return session.deposit_coin(parse_coin(coin))
            case ['cancel']:
                return session.cancel()
            case ['basket']:
                return session.view_basket()
            case ['stock']:
                return session.view_item_stock()
            case _:
                raise CommandError(f'Unknown order command: {" ".join(words)}')


def parse_coin_capacities(values: Optional[Sequence[str]]) -> Mapping[Denomination, int]:
    """Turns NAME=CAPACITY options into coin capacities. Every coin is
    accepted with the default capacity when no option is given."""
    if not values:
        return {coin: DEFAULT_COIN_CAPACITY for coin in Denomination}
    capacities = {}
    for value in values:
        name, sep, capacity = value.partition('=')
        if not sep:
            raise CommandError(f'Expected NAME=CAPACITY but got {value}')
        capacities[parse_coin(name)] = parse_number(capacity)
    return capacities


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='vending-machine',
        description='Run a script of customer and operator commands against a vending machine.')
    parser.add_argument('script', nargs='?', help='command script to run (default: stdin)')
    parser.add_argument('--slots', type=int, default=12, help='number of item slots (even)')
    parser.add_argument('--slot-capacity', type=int, default=10, help='items per slot (1-30)')
    parser.add_argument('--coin', action='append', metavar='NAME=CAPACITY',
                        help='accepted coin and its capacity; repeat for each coin')
    parser.add_argument('--log-level', default='WARNING',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'])
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(stream=sys.stderr, level=getattr(logging, args.log_level))

    try:
        capacities = parse_coin_capacities(args.coin)
        machine = create_vending_machine(args.slots, args.slot_capacity, capacities)
    except (CommandError, InvalidSpecification) as e:
        parser.error(str(e))

    if args.script is None:
        ScriptRunner(machine).run(sys.stdin)
        return 0
    try:
        script = open(args.script, 'r')
    except OSError as e:
        parser.error(f"can't open '{args.script}': {e.strerror}")
    with script:
        ScriptRunner(machine).run(script)
    return 0


if __name__ == '__main__':
    sys.exit(main())
