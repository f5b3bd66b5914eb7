import vending.cash_store as CS
import vending.change as CH
import vending.cli as CLI
import vending.coins as C
import vending.display as D
import vending.events as E
import vending.exceptions as X
import vending.factory as F
import vending.inventory as INV
import vending.io as VIO
import vending.items as IT
import vending.machine as M
import vending.maintenance as MS
import vending.order as O
import vending.state_machine as SM
import vending.string_builder as SB
import contextlib
import dataclasses
import functools
import io
import logging
import os
import random
import sys
import tempfile
import unittest
from decimal import Decimal


logging.basicConfig(stream=sys.stderr, level=logging.INFO)
logger = logging.getLogger(__name__)

Coin = C.Denomination
State = M.MachineState
ALL_COINS = {coin: 50 for coin in Coin}


def stocked_machine(slot_count, slot_capacity, coins, deposits, assignments):
    """Builds a machine and loads it through a maintenance session.

    deposits maps coins to how many to load; assignments is a list of
    (slot, item, stock) tuples."""
    machine = F.create_vending_machine(slot_count, slot_capacity, coins)
    admin = MS.MaintenanceSession(machine)
    admin.start_maintenance()
    for coin, amount in deposits.items():
        admin.deposit_coins(coin, amount)
    for slot, item, stock in assignments:
        admin.assign_item_slot(slot, item)
        if stock > 0:
            admin.stock_items(slot, stock)
    admin.stop_maintenance()
    return machine


class StringBuilderTest(unittest.TestCase):
    def setUp(self):
        self.builder = SB.StringBuilder()

    def test(self):
        self.builder.append('Foo').append('Bar')
        self.assertEqual('FooBar', str(self.builder))
        self.assertEqual(6, len(self.builder))

        self.builder.append_line('Baz').append_line()
        self.assertEqual('FooBarBaz\n\n', self.builder.build())

        self.builder.clear()
        self.assertEqual(0, len(self.builder))
        self.assertEqual('', str(self.builder))

        self.builder.append('Nyuk')
        self.assertEqual('Nyuk', str(self.builder))

    def test_initial_value_is_kept(self):
        with SB.StringBuilder('Hello') as builder:
            builder.append(' world')
            self.assertEqual('Hello world', builder.build())

    def tearDown(self):
        self.builder.__exit__(None, None, None)


class InvalidStateMachineTest(unittest.TestCase):
    def test_failure(self):
        def with_no_states():
            class NoStates(SM.StateMachineBase):
                pass

        def with_non_enum_states():
            class NonEnumStates(SM.StateMachineBase):
                states = ('One', 'Two')

        def with_bad_initial_state():
            class BadInitialState(SM.StateMachineBase):
                states = M.MachineState
                initial_state = O.OrderPhase.PAYING

        self.assertRaises(TypeError, with_no_states)
        self.assertRaises(TypeError, with_non_enum_states)
        self.assertRaises(TypeError, with_bad_initial_state)
        with self.assertRaises(RuntimeError) as ctx:
            SM.StateMachineBase()
        self.assertTrue(str(ctx.exception).startswith(
            'StateMachineBase cannot'))

    def test_foreign_state_is_rejected(self):
        machine = M.VendingMachine(2, 5, ALL_COINS)
        with self.assertRaises(TypeError):
            machine.transition(O.OrderPhase.PAYING)
        self.assertEqual(State.IDLE, machine.state)


class MachineStateMachineTest(unittest.TestCase):
    def setUp(self):
        self.machine = F.create_vending_machine(4, 10, ALL_COINS)

    def test_initial_state(self):
        self.assertEqual(State.IDLE, M.VendingMachine.initial_state)
        self.assertEqual(State.IDLE, self.machine.state)

    def test_reset_returns_to_idle(self):
        self.machine.change_state(State.REFUNDING)
        self.machine.reset()
        self.assertEqual(State.IDLE, self.machine.state)

    def test_maintenance_only_from_idle(self):
        self.machine.change_state(State.ORDERING)
        with self.assertRaises(X.InvalidStateTransition):
            self.machine.change_state(State.MAINTENANCE)
        self.assertEqual(State.ORDERING, self.machine.state)

        self.machine.change_state(State.IDLE)
        self.machine.change_state(State.MAINTENANCE)
        self.assertEqual(State.MAINTENANCE, self.machine.state)

        with self.assertRaises(X.InvalidStateTransition):
            self.machine.change_state(State.MAINTENANCE)

    def test_other_transitions_are_unchecked(self):
        self.machine.change_state(State.DISPENSING)
        self.assertEqual(State.DISPENSING, self.machine.state)
        self.machine.change_state(State.PAYING).change_state(State.REFUNDING)
        self.assertEqual(State.REFUNDING, self.machine.state)

    def test_transitions_are_logged(self):
        with self.assertLogs('vending.state_machine', level='INFO') as logs:
            self.machine.change_state(State.ORDERING)
        self.assertIn('VendingMachine is transitioning from IDLE to ORDERING', logs.output[0])

    def test_coin_gating(self):
        with self.assertRaises(X.InvalidMachineState):
            self.machine.insert_coin(Coin.ONE_POUND)
        self.assertEqual(0, self.machine.cash.counts()[Coin.ONE_POUND])

        self.machine.change_state(State.PAYING)
        self.machine.insert_coin(Coin.ONE_POUND)
        with self.assertRaises(X.InvalidMachineState):
            self.machine.withdraw_coin(Coin.ONE_POUND)
        with self.assertRaises(X.InvalidMachineState):
            self.machine.coin_counts()

        self.machine.change_state(State.REFUNDING)
        self.machine.withdraw_coin(Coin.ONE_POUND)
        self.assertEqual(0, self.machine.cash.counts()[Coin.ONE_POUND])

    def test_item_gating(self):
        item = F.create_item(IT.ItemCategory.DRINK, 'Water', 1, '0.80', 500)
        self.assertRaises(X.InvalidMachineState, self.machine.item_slots)
        self.assertRaises(X.InvalidMachineState, functools.partial(self.machine.assign_slot, 0, item))
        self.assertRaises(X.InvalidMachineState, functools.partial(self.machine.stock_item, 0))
        self.assertRaises(X.InvalidMachineState, functools.partial(self.machine.dispense_item, 1))

        self.machine.change_state(State.MAINTENANCE)
        self.machine.assign_slot(0, item)
        self.machine.stock_item(0)
        self.assertRaises(X.InvalidMachineState, functools.partial(self.machine.dispense_item, 1))
        self.machine.change_state(State.IDLE).change_state(State.ORDERING)
        self.assertEqual(1, self.machine.item_slots()[0].stock)
        self.machine.change_state(State.DISPENSING)
        self.assertEqual(item, self.machine.dispense_item(1))

    def test_always_available_queries(self):
        self.assertEqual((4, 10), self.machine.specifications())
        self.assertEqual(ALL_COINS, dict(self.machine.coin_capacities()))


class CashStoreTest(unittest.TestCase):
    def test_deposit_at_capacity_fails_without_change(self):
        store = CS.CashStore({coin: 2 for coin in Coin})
        for coin in Coin:
            store.deposit(coin).deposit(coin)
            with self.assertRaises(X.CapacityExceeded):
                store.deposit(coin)
            self.assertEqual(2, store.counts()[coin])

    def test_unsupported_denomination(self):
        store = CS.CashStore({Coin.TEN_PENCE: 5})
        self.assertFalse(store.accepts(Coin.ONE_POUND))
        self.assertRaises(X.UnsupportedDenomination, functools.partial(store.deposit, Coin.ONE_POUND))
        self.assertRaises(X.UnsupportedDenomination, functools.partial(store.withdraw, Coin.ONE_POUND))
        self.assertNotIn(Coin.ONE_POUND, store.counts())

    def test_withdraw_from_empty(self):
        store = CS.CashStore({Coin.TEN_PENCE: 5})
        with self.assertRaises(X.InsufficientStock):
            store.withdraw(Coin.TEN_PENCE)
        self.assertEqual(0, store.counts()[Coin.TEN_PENCE])

    def test_zero_capacity_accepts_nothing(self):
        store = CS.CashStore({Coin.ONE_PENNY: 0})
        self.assertRaises(X.CapacityExceeded, functools.partial(store.deposit, Coin.ONE_PENNY))

    def test_negative_capacity(self):
        self.assertRaises(ValueError, functools.partial(CS.CashStore, {Coin.ONE_PENNY: -1}))

    def test_count_stays_in_bounds(self):
        capacity = 7
        store = CS.CashStore({Coin.FIVE_PENCE: capacity})
        rng = random.Random(7)
        for _ in range(500):
            operation = store.deposit if rng.random() < 0.5 else store.withdraw
            try:
                operation(Coin.FIVE_PENCE)
            except (X.CapacityExceeded, X.InsufficientStock):
                pass
            self.assertTrue(0 <= store.counts()[Coin.FIVE_PENCE] <= capacity)

    def test_snapshots_are_read_only(self):
        store = CS.CashStore({Coin.TWO_POUNDS: 3})
        counts = store.counts()
        with self.assertRaises(TypeError):
            counts[Coin.TWO_POUNDS] = 3
        with self.assertRaises(TypeError):
            store.capacities()[Coin.TWO_POUNDS] = 10
        store.deposit(Coin.TWO_POUNDS)
        self.assertEqual(0, counts[Coin.TWO_POUNDS])
        self.assertEqual(1, store.counts()[Coin.TWO_POUNDS])

    def test_denominations_and_balance(self):
        store = CS.CashStore({Coin.TEN_PENCE: 5, Coin.ONE_POUND: 5, Coin.TWO_PENCE: 5})
        self.assertEqual((Coin.ONE_POUND, Coin.TEN_PENCE, Coin.TWO_PENCE), store.denominations)
        store.deposit(Coin.ONE_POUND).deposit(Coin.TEN_PENCE).deposit(Coin.TWO_PENCE)
        self.assertEqual(112, store.balance())


class CoinsTest(unittest.TestCase):
    def test_values_and_labels(self):
        self.assertEqual(20, Coin.TWENTY_PENCE.pence)
        self.assertEqual('twenty pence coin', str(Coin.TWENTY_PENCE))
        self.assertEqual('two pounds coin', str(Coin.TWO_POUNDS))

    def test_format_pence(self):
        self.assertEqual('£1.50', C.format_pence(150))
        self.assertEqual('£0.05', C.format_pence(5))
        self.assertEqual('-£0.50', C.format_pence(-50))


class InventoryStoreTest(unittest.TestCase):
    def setUp(self):
        self.store = INV.InventoryStore(4, 3)
        self.coke = F.create_item(IT.ItemCategory.DRINK, 'Coke', 26, '1.50', 330)
        self.crisps = F.create_item(IT.ItemCategory.SNACK, 'Crisps', 12, '0.85', 40)

    def test_assign(self):
        self.assertRaises(X.IndexOutOfRange, functools.partial(self.store.assign, -1, self.coke))
        self.assertRaises(X.IndexOutOfRange, functools.partial(self.store.assign, 4, self.coke))
        self.store.assign(0, self.coke)
        self.assertRaises(X.SlotAlreadyAssigned, functools.partial(self.store.assign, 0, self.crisps))
        # The same item may sit in several slots.
        self.store.assign(1, self.coke)
        self.assertEqual(INV.SlotSnapshot(self.coke, 0, 3), self.store.snapshot()[1])

    def test_restock_and_remove(self):
        self.assertRaises(X.SlotUnassigned, functools.partial(self.store.restock, 2))
        self.assertRaises(X.SlotUnassigned, functools.partial(self.store.remove_one, 2))
        self.store.assign(2, self.crisps)
        self.assertRaises(X.SlotEmpty, functools.partial(self.store.remove_one, 2))
        for _ in range(3):
            self.store.restock(2)
        self.assertRaises(X.SlotFull, functools.partial(self.store.restock, 2))
        self.store.remove_one(2)
        self.assertEqual(2, self.store.snapshot()[2].stock)
        self.assertRaises(X.IndexOutOfRange, functools.partial(self.store.restock, 9))

    def test_unassign_requires_empty_slot(self):
        self.store.assign(0, self.coke)
        self.store.restock(0)
        with self.assertRaises(X.SlotNotEmpty):
            self.store.unassign(0)
        self.store.remove_one(0)
        self.store.unassign(0)
        self.assertIsNone(self.store.snapshot()[0])
        self.assertRaises(X.SlotUnassigned, functools.partial(self.store.unassign, 0))
        self.assertRaises(X.IndexOutOfRange, functools.partial(self.store.unassign, 4))

    def test_dispense_drains_lowest_slot_first(self):
        for slot in (0, 1, 3):
            self.store.assign(slot, self.coke)
        for slot in (1, 3):
            self.store.restock(slot)
            self.store.restock(slot)

        self.assertEqual(self.coke, self.store.dispense_by_item_id(26))
        self.store.dispense_by_item_id(26)
        self.store.dispense_by_item_id(26)
        stocks = [slot.stock for slot in self.store.snapshot() if slot is not None]
        self.assertEqual([0, 0, 1], stocks)

    def test_dispense_missing_item(self):
        self.store.assign(0, self.crisps)
        self.assertRaises(X.ItemNotFound, functools.partial(self.store.dispense_by_item_id, 12))
        self.assertRaises(X.ItemNotFound, functools.partial(self.store.dispense_by_item_id, 99))

    def test_snapshot_keeps_gaps(self):
        self.store.assign(1, self.crisps)
        snapshot = self.store.snapshot()
        self.assertEqual(4, len(snapshot))
        self.assertEqual([None, None, None], [snapshot[0], snapshot[2], snapshot[3]])
        with self.assertRaises(AttributeError):
            snapshot[1].stock = 3


class FactoryTest(unittest.TestCase):
    def test_invalid_machines(self):
        for slots, capacity, coins in [(9, 10, ALL_COINS), (0, 10, ALL_COINS), (-2, 10, ALL_COINS),
                                       (12, 0, ALL_COINS), (12, 31, ALL_COINS), (12, 10, {}),
                                       (12, 10, {Coin.ONE_POUND: -1}),
                                       (12, 10, {Coin.ONE_POUND: None}),
                                       (12, 10, {'ONE_POUND': 5})]:
            with self.assertRaises(X.InvalidSpecification):
                F.create_vending_machine(slots, capacity, coins)
        self.assertTrue(issubclass(X.InvalidSpecification, ValueError))

    def test_valid_machine(self):
        machine = F.create_vending_machine(12, 30, {Coin.ONE_POUND: 0, Coin.FIFTY_PENCE: 50})
        self.assertEqual(State.IDLE, machine.state)
        self.assertEqual((12, 30), machine.specifications())
        self.assertEqual((Coin.ONE_POUND, Coin.FIFTY_PENCE), machine.cash.denominations)

    def test_items(self):
        drink = F.create_item(IT.ItemCategory.DRINK, 'Coke', 26, 1.5, 330)
        self.assertIsInstance(drink, IT.Drink)
        self.assertEqual(Decimal('1.50'), drink.price)
        self.assertEqual(150, drink.price_pence)
        self.assertEqual(IT.ItemCategory.DRINK, drink.category)

        snack = F.create_item(IT.ItemCategory.SNACK, 'Crisps', 12, '0.85', 40)
        self.assertEqual(40, snack.weight_g)
        self.assertEqual(85, snack.price_pence)

        misc = F.create_item(IT.ItemCategory.MISCELLANEOUS, 'Napkin', 3, 0, '')
        self.assertEqual(0, misc.price_pence)
        self.assertEqual('miscellaneous item', str(misc.category))

        self.assertEqual(110, F.create_item(IT.ItemCategory.SNACK, 'Gum', 4, 1.1, 10).price_pence)

    def test_invalid_items(self):
        cases = [
            (IT.ItemCategory.DRINK, 'Coke', 26, '1.505', 330),
            (IT.ItemCategory.DRINK, 'Coke', 26, '1e30', 330),
            (IT.ItemCategory.DRINK, 'Coke', 26, -1, 330),
            (IT.ItemCategory.DRINK, 'Coke', 26, 'abc', 330),
            (IT.ItemCategory.DRINK, 'Coke', 26, True, 330),
            (IT.ItemCategory.DRINK, '   ', 26, 1, 330),
            (IT.ItemCategory.DRINK, 'x' * 31, 26, 1, 330),
            (IT.ItemCategory.DRINK, 'Coke', 0, 1, 330),
            (IT.ItemCategory.DRINK, 'Coke', 26, 1, 0),
            (IT.ItemCategory.DRINK, 'Coke', 26, 1, '330'),
            (IT.ItemCategory.SNACK, 'Crisps', 12, 1, -40),
            (IT.ItemCategory.MISCELLANEOUS, 'Napkin', 3, 1, 7),
            ('drink', 'Coke', 26, 1, 330),
        ]
        for args in cases:
            with self.assertRaises(X.InvalidItem, msg=repr(args)):
                F.create_item(*args)

    def test_items_are_immutable_values(self):
        first = F.create_item(IT.ItemCategory.DRINK, 'Coke', 26, '1.50', 330)
        second = F.create_item(IT.ItemCategory.DRINK, 'Coke', 26, 1.5, 330)
        self.assertEqual(first, second)
        self.assertEqual(hash(first), hash(second))
        with self.assertRaises(dataclasses.FrozenInstanceError):
            first.price = Decimal('0.10')
        self.assertRaises(TypeError, functools.partial(IT.Item, 'Thing', 1, Decimal('1')))


class ChangeMakingTest(unittest.TestCase):
    def _refunding_machine(self, coins, deposits):
        machine = stocked_machine(2, 10, coins, deposits, [])
        machine.change_state(State.REFUNDING)
        return machine

    def test_largest_coins_first(self):
        machine = self._refunding_machine(ALL_COINS, {coin: 5 for coin in Coin})
        paid = CH.make_change(machine, 388, machine.cash.denominations)
        self.assertEqual([Coin.TWO_POUNDS, Coin.ONE_POUND, Coin.FIFTY_PENCE, Coin.TWENTY_PENCE,
                          Coin.TEN_PENCE, Coin.FIVE_PENCE, Coin.TWO_PENCE, Coin.ONE_PENNY], paid)

    def test_exhausted_coin_is_skipped(self):
        machine = self._refunding_machine(ALL_COINS, {Coin.TWENTY_PENCE: 5, Coin.TEN_PENCE: 5})
        seen = []
        paid = CH.make_change(machine, 50, machine.cash.denominations, on_coin=seen.append)
        self.assertEqual([Coin.TWENTY_PENCE, Coin.TWENTY_PENCE, Coin.TEN_PENCE], paid)
        self.assertEqual(paid, seen)

    def test_nothing_owed(self):
        machine = self._refunding_machine(ALL_COINS, {})
        self.assertEqual([], CH.make_change(machine, 0, machine.cash.denominations))

    def test_greedy_failure_reports_residual(self):
        coins = {coin: 50 for coin in Coin if coin != Coin.ONE_PENNY}
        machine = self._refunding_machine(coins, {coin: 10 for coin in coins})
        with self.assertRaises(X.UnresolvedChange) as ctx:
            CH.make_change(machine, 106, machine.cash.denominations)
        self.assertEqual(1, ctx.exception.residual)
        self.assertIn('£0.01', str(ctx.exception))
        # Coins paid out before the failure stay paid out.
        counts = machine.cash.counts()
        self.assertEqual(9, counts[Coin.ONE_POUND])
        self.assertEqual(9, counts[Coin.FIVE_PENCE])
        self.assertEqual(10, counts[Coin.TWO_PENCE])


class OrderSessionTest(unittest.TestCase):
    def setUp(self):
        self.coke = F.create_item(IT.ItemCategory.DRINK, 'Coke', 26, '1.50', 330)
        self.crisps = F.create_item(IT.ItemCategory.SNACK, 'Crisps', 12, '0.85', 40)
        self.machine = stocked_machine(4, 10, ALL_COINS, {coin: 5 for coin in Coin},
                                       [(0, self.coke, 10), (1, self.crisps, 2)])
        self.session = O.OrderSession(self.machine)
        self.messages = []
        self.session.feed.subscribe(lambda notification: self.messages.append(notification.message))

    def _counts(self):
        return dict(self.machine.cash.counts())

    def _stock(self, slot):
        return self.machine.inventory.snapshot()[slot].stock

    def test_overpayment_returns_change(self):
        before = self._counts()
        self.assertEqual(O.OrderPhase.NOT_STARTED, self.session.phase)
        self.session.start()
        self.assertEqual(O.OrderPhase.SELECTING, self.session.phase)
        self.session.select_item(26)
        self.session.checkout()
        self.assertEqual(150, self.session.amount_due)
        self.assertEqual(State.PAYING, self.machine.state)

        result = self.session.deposit_coin(Coin.TWO_POUNDS)
        self.assertFalse(result.is_error)
        self.assertIn('Thank you for your purchase', result.message)
        self.assertIn('Dispensed one Coke.', self.messages)
        self.assertIn('Dispensed fifty pence coin as change/refund.', self.messages)

        after = self._counts()
        self.assertEqual(before[Coin.TWO_POUNDS] + 1, after[Coin.TWO_POUNDS])
        self.assertEqual(before[Coin.FIFTY_PENCE] - 1, after[Coin.FIFTY_PENCE])
        self.assertEqual(9, self._stock(0))
        self.assertEqual(State.IDLE, self.machine.state)
        self.assertEqual(O.OrderPhase.FULFILLED, self.session.phase)
        self.assertEqual((0, 0, 0), (self.session.amount_due, self.session.balance, len(self.session.basket)))

    def test_exact_payment_gives_no_change(self):
        before = self._counts()
        self.session.start()
        self.session.select_item(26)
        self.session.select_item(12)
        self.session.checkout()
        self.assertEqual(235, self.session.amount_due)
        for coin in (Coin.TWO_POUNDS, Coin.TWENTY_PENCE, Coin.TEN_PENCE):
            self.session.deposit_coin(coin)
        self.assertEqual(5, self.session.amount_due)
        self.session.deposit_coin(Coin.FIVE_PENCE)

        self.assertIn('Deposited five pence coin. Remaining price to pay: £0.00', self.messages)
        self.assertFalse(any('as change/refund' in message for message in self.messages))
        self.assertEqual(before[Coin.ONE_PENNY], self._counts()[Coin.ONE_PENNY])
        self.assertEqual(self.machine.cash.balance(),
                         sum(coin.pence * count for coin, count in before.items()) + 235)
        self.assertEqual((9, 1), (self._stock(0), self._stock(1)))
        self.assertEqual(State.IDLE, self.machine.state)

    def test_multiple_units_are_all_dispensed(self):
        self.session.start()
        self.session.select_item(12)
        self.session.select_item(12)
        self.session.checkout()
        self.session.deposit_coin(Coin.TWO_POUNDS)
        self.assertEqual(0, self._stock(1))
        self.assertEqual(2, self.messages.count('Dispensed one Crisps.'))
        # 30p change
        self.assertIn('Dispensed twenty pence coin as change/refund.', self.messages)
        self.assertIn('Dispensed ten pence coin as change/refund.', self.messages)

    def test_select_then_deselect_restores_basket(self):
        self.session.start()
        self.session.select_item(26)
        before = self.session.basket.as_dict()
        self.session.select_item(12)
        self.session.deselect_item(12)
        self.assertEqual(before, self.session.basket.as_dict())
        self.assertNotIn(12, self.session.basket)

        result = self.session.deselect_item(26)
        self.assertEqual('All Coke has been removed from your basket.', result.message)
        self.assertEqual(0, len(self.session.basket))

    def test_cannot_select_beyond_stock(self):
        self.session.start()
        self.session.select_item(12)
        self.session.select_item(12)
        result = self.session.select_item(12)
        self.assertIsInstance(result.error, X.InsufficientStock)
        self.assertEqual(2, self.session.basket.quantity(12))

    def test_stock_is_summed_across_slots(self):
        machine = stocked_machine(2, 10, ALL_COINS, {},
                                  [(0, self.coke, 1), (1, self.coke, 1)])
        session = O.OrderSession(machine)
        session.start()
        self.assertFalse(session.select_item(26).is_error)
        self.assertFalse(session.select_item(26).is_error)
        self.assertTrue(session.select_item(26).is_error)

    def test_unknown_item(self):
        self.session.start()
        result = self.session.select_item(99)
        self.assertIsInstance(result.error, X.ItemUnavailable)
        self.assertIsInstance(self.session.deselect_item(99).error, X.ItemNotFound)

    def test_operations_out_of_order(self):
        self.assertIsInstance(self.session.select_item(26).error, X.InvalidMachineState)
        self.assertIsInstance(self.session.checkout().error, X.InvalidMachineState)
        self.assertIsInstance(self.session.deposit_coin(Coin.ONE_POUND).error, X.InvalidMachineState)
        self.assertEqual(5, self._counts()[Coin.ONE_POUND])

        self.session.start()
        self.assertIsInstance(self.session.start().error, X.OrderAlreadyInProgress)
        self.assertIsInstance(self.session.checkout().error, X.EmptyBasket)
        self.assertEqual(State.ORDERING, self.machine.state)
        self.assertIsInstance(self.session.deposit_coin(Coin.ONE_POUND).error, X.InvalidMachineState)
        self.assertEqual(5, self._counts()[Coin.ONE_POUND])

    def test_rejected_coin_keeps_amount_due(self):
        machine = stocked_machine(2, 10, {Coin.ONE_POUND: 1, Coin.FIFTY_PENCE: 5}, {},
                                  [(0, self.coke, 2)])
        session = O.OrderSession(machine)
        session.start()
        session.select_item(26)
        session.checkout()
        self.assertIsInstance(session.deposit_coin(Coin.TWO_POUNDS).error, X.UnsupportedDenomination)
        self.assertFalse(session.deposit_coin(Coin.ONE_POUND).is_error)
        self.assertIsInstance(session.deposit_coin(Coin.ONE_POUND).error, X.CapacityExceeded)
        self.assertEqual((50, 100), (session.amount_due, session.balance))
        self.assertEqual(State.PAYING, machine.state)

    def test_customer_locked_out_during_maintenance(self):
        MS.MaintenanceSession(self.machine).start_maintenance()
        for operation in (self.session.start, self.session.checkout, self.session.cancel,
                          self.session.view_basket, self.session.view_item_stock,
                          functools.partial(self.session.select_item, 26),
                          functools.partial(self.session.deposit_coin, Coin.ONE_POUND)):
            self.assertIsInstance(operation().error, X.MachineUnderMaintenance)

    def test_cancel_while_ordering(self):
        self.assertEqual('There is no ongoing order to cancel.', self.session.cancel().message)
        self.session.start()
        self.session.select_item(26)
        self.session.cancel()
        self.assertEqual(State.IDLE, self.machine.state)
        self.assertEqual(O.OrderPhase.CANCELLED, self.session.phase)
        self.assertEqual(0, len(self.session.basket))

    def test_cancel_while_paying_refunds_balance(self):
        before = self._counts()
        self.session.start()
        self.session.select_item(26)
        self.session.checkout()
        self.session.deposit_coin(Coin.ONE_POUND)
        result = self.session.cancel()
        self.assertIn('Balance (£1.00) refunded', result.message)
        self.assertIn('Dispensed one pound coin as change/refund.', self.messages)
        self.assertEqual(before, self._counts())
        self.assertEqual(10, self._stock(0))
        self.assertEqual(State.IDLE, self.machine.state)
        self.assertEqual(O.OrderPhase.CANCELLED, self.session.phase)
        self.assertEqual((0, 0), (self.session.amount_due, self.session.balance))

    def test_cancel_with_nothing_paid(self):
        self.session.start()
        self.session.select_item(26)
        self.session.checkout()
        result = self.session.cancel()
        self.assertIn('Balance (£0.00) refunded', result.message)
        self.assertEqual(State.IDLE, self.machine.state)

    def test_refund_failure_takes_machine_out_of_service(self):
        item = F.create_item(IT.ItemCategory.SNACK, 'Flapjack', 7, '1.00', 90)
        machine = stocked_machine(2, 10, {Coin.FIFTY_PENCE: 10, Coin.TWENTY_PENCE: 10},
                                  {Coin.FIFTY_PENCE: 1}, [(0, item, 1)])
        session = O.OrderSession(machine)
        session.start()
        session.select_item(7)
        session.checkout()
        for _ in range(3):
            session.deposit_coin(Coin.TWENTY_PENCE)

        with self.assertLogs('vending.order', level='ERROR'):
            result = session.cancel()
        self.assertIsInstance(result.error, X.UnresolvedChange)
        self.assertEqual(10, result.error.residual)
        self.assertEqual(State.MAINTENANCE, machine.state)
        self.assertEqual(O.OrderPhase.CANCELLED, session.phase)
        self.assertEqual(0, len(session.basket))
        self.assertEqual({Coin.FIFTY_PENCE: 0, Coin.TWENTY_PENCE: 3}, dict(machine.cash.counts()))
        self.assertIsInstance(session.start().error, X.MachineUnderMaintenance)

        MS.MaintenanceSession(machine).stop_maintenance()
        self.assertFalse(session.start().is_error)

    def test_change_failure_after_dispensing(self):
        machine = stocked_machine(2, 10, {Coin.TWO_POUNDS: 10, Coin.FIFTY_PENCE: 10}, {},
                                  [(0, self.coke, 1)])
        session = O.OrderSession(machine)
        session.start()
        session.select_item(26)
        session.checkout()
        result = session.deposit_coin(Coin.TWO_POUNDS)
        self.assertIsInstance(result.error, X.UnresolvedChange)
        self.assertEqual(50, result.error.residual)
        self.assertEqual(0, machine.inventory.snapshot()[0].stock)
        self.assertEqual(State.MAINTENANCE, machine.state)
        self.assertEqual(O.OrderPhase.FULFILLED, session.phase)

    def test_dispense_failure_takes_machine_out_of_service(self):
        self.session.start()
        self.session.select_item(26)
        self.session.checkout()
        # Stock lost between checkout and dispensing.
        for _ in range(10):
            self.machine.inventory.remove_one(0)
        self.session.deposit_coin(Coin.ONE_POUND)
        with self.assertLogs('vending.order', level='ERROR'):
            result = self.session.deposit_coin(Coin.FIFTY_PENCE)
        self.assertIsInstance(result.error, X.ItemNotFound)
        self.assertEqual(State.MAINTENANCE, self.machine.state)
        self.assertEqual(O.OrderPhase.FULFILLED, self.session.phase)
        self.assertEqual(0, len(self.session.basket))

    def test_free_items_need_no_payment(self):
        napkin = F.create_item(IT.ItemCategory.MISCELLANEOUS, 'Napkin', 3, 0, 'Paper')
        machine = stocked_machine(2, 10, ALL_COINS, {}, [(0, napkin, 4)])
        session = O.OrderSession(machine)
        session.start()
        session.select_item(3)
        result = session.checkout()
        self.assertIn('Thank you', result.message)
        self.assertEqual(3, machine.inventory.snapshot()[0].stock)
        self.assertEqual(State.IDLE, machine.state)

    def test_views(self):
        self.assertIsInstance(self.session.view_basket().error, X.InvalidMachineState)
        self.session.start()
        self.session.select_item(12)
        self.session.select_item(12)
        basket = self.session.view_basket()
        self.assertEqual(E.NotificationKind.LISTING, basket.kind)
        self.assertEqual({self.crisps: 2}, basket.payload)

        stock = self.session.view_item_stock().payload
        self.assertEqual({self.coke: 10, self.crisps: 2}, stock)

    def test_item_stock_sums_slots_and_keeps_sold_out(self):
        machine = stocked_machine(4, 10, ALL_COINS, {},
                                  [(0, self.coke, 3), (2, self.coke, 2), (3, self.crisps, 0)])
        session = O.OrderSession(machine)
        session.start()
        self.assertEqual({self.coke: 5, self.crisps: 0}, session.view_item_stock().payload)

    def test_session_can_be_reused(self):
        self.session.start()
        self.session.cancel()
        self.session.start()
        self.session.select_item(26)
        self.session.checkout()
        self.session.deposit_coin(Coin.TWO_POUNDS)
        self.assertEqual(O.OrderPhase.FULFILLED, self.session.phase)
        self.assertEqual(9, self._stock(0))


class MaintenanceSessionTest(unittest.TestCase):
    def setUp(self):
        self.machine = F.create_vending_machine(4, 5, {Coin.ONE_POUND: 50, Coin.TEN_PENCE: 20})
        self.session = MS.MaintenanceSession(self.machine)
        self.coke = F.create_item(IT.ItemCategory.DRINK, 'Coke', 26, '1.50', 330)

    def test_start_and_stop(self):
        self.assertFalse(self.session.start_maintenance().is_error)
        self.assertEqual(State.MAINTENANCE, self.session.get_state())
        self.assertIsInstance(self.session.start_maintenance().error, X.InvalidStateTransition)
        self.session.stop_maintenance()
        self.assertEqual(State.IDLE, self.session.get_state())

    def test_cannot_interrupt_customer(self):
        O.OrderSession(self.machine).start()
        result = self.session.start_maintenance()
        self.assertIsInstance(result.error, X.InvalidStateTransition)
        self.assertEqual(State.ORDERING, self.machine.state)

    def test_stop_recovers_stuck_machine(self):
        self.machine.change_state(State.REFUNDING)
        with self.assertLogs('vending.maintenance', level='WARNING'):
            self.session.stop_maintenance()
        self.assertEqual(State.IDLE, self.machine.state)

    def test_bulk_deposit_applies_partially(self):
        self.session.start_maintenance()
        result = self.session.deposit_coins(Coin.ONE_POUND, 51)
        self.assertIsInstance(result.error, X.CapacityExceeded)
        self.assertEqual({'unit': 51, 'applied': 50}, result.payload)
        self.assertTrue(result.message.startswith('Unit 51 of 51 failed, 50 applied'))
        self.assertEqual(50, self.session.view_coins()[Coin.ONE_POUND])

    def test_bulk_withdraw_applies_partially(self):
        self.session.start_maintenance()
        self.assertFalse(self.session.deposit_coins(Coin.TEN_PENCE, 3).is_error)
        result = self.session.withdraw_coins(Coin.TEN_PENCE, 5)
        self.assertIsInstance(result.error, X.InsufficientStock)
        self.assertEqual(4, result.payload['unit'])
        self.assertEqual(0, self.session.view_coins()[Coin.TEN_PENCE])

    def test_unsupported_coin(self):
        self.session.start_maintenance()
        result = self.session.deposit_coins(Coin.TWO_POUNDS, 2)
        self.assertIsInstance(result.error, X.UnsupportedDenomination)
        self.assertEqual(0, result.payload['applied'])

    def test_guarded_outside_maintenance(self):
        operations = [
            functools.partial(self.session.deposit_coins, Coin.ONE_POUND, 1),
            functools.partial(self.session.withdraw_coins, Coin.ONE_POUND, 1),
            functools.partial(self.session.stock_items, 0, 1),
            functools.partial(self.session.remove_items, 0, 1),
            functools.partial(self.session.assign_item_slot, 0, self.coke),
            functools.partial(self.session.unassign_item_slot, 0),
        ]
        for operation in operations:
            self.assertIsInstance(operation().error, X.InvalidMachineState)
        self.assertEqual(0, self.machine.cash.counts()[Coin.ONE_POUND])
        self.assertRaises(X.InvalidMachineState, self.session.view_coins)
        self.assertRaises(X.InvalidMachineState, self.session.view_items)
        self.assertEqual({Coin.ONE_POUND: 50, Coin.TEN_PENCE: 20}, dict(self.session.view_coin_capacities()))
        self.assertEqual((4, 5), self.session.view_specifications())

    def test_invalid_amount(self):
        self.session.start_maintenance()
        self.assertIsInstance(self.session.deposit_coins(Coin.ONE_POUND, 0).error, X.InvalidQuantity)

    def test_slot_lifecycle(self):
        self.session.start_maintenance()
        self.assertFalse(self.session.assign_item_slot(0, self.coke).is_error)
        self.assertIsInstance(self.session.assign_item_slot(0, self.coke).error, X.SlotAlreadyAssigned)
        self.assertIsInstance(self.session.assign_item_slot(4, self.coke).error, X.IndexOutOfRange)

        result = self.session.stock_items(0, 6)
        self.assertIsInstance(result.error, X.SlotFull)
        self.assertEqual(5, self.session.view_items()[0].stock)

        self.assertIsInstance(self.session.unassign_item_slot(0).error, X.SlotNotEmpty)
        self.assertIsInstance(self.session.remove_items(0, 6).error, X.SlotEmpty)
        self.assertEqual(0, self.session.view_items()[0].stock)
        self.assertEqual('Slot #0 unassigned successfully.', self.session.unassign_item_slot(0).message)
        self.assertIsNone(self.session.view_items()[0])

    def test_every_unit_is_reported(self):
        messages = []
        self.session.feed.subscribe(lambda notification: messages.append(notification.message))
        self.session.start_maintenance()
        self.session.deposit_coins(Coin.TEN_PENCE, 2)
        self.assertEqual(['Maintenance mode started.',
                          'Attempting to deposit ten pence coins x2...',
                          'Deposited one ten pence coin.',
                          'Deposited one ten pence coin.',
                          'All 2 ten pence coins deposited successfully.'], messages)


class NotificationFeedTest(unittest.TestCase):
    def setUp(self):
        self.feed = E.NotificationFeed()

    def test_subscribers(self):
        first, second = [], []
        self.feed.subscribe(first.append)
        self.feed.subscribe(second.append)
        notification = self.feed.status('hello')
        self.assertEqual([notification], first)
        self.assertEqual([notification], second)
        self.assertEqual(E.NotificationKind.STATUS, notification.kind)

        self.feed.unsubscribe(first.append)
        self.feed.status('again')
        self.assertEqual(1, len(first))
        self.assertEqual(2, len(second))

    def test_error(self):
        error = X.SlotFull('Slot is full')
        with self.assertLogs('vending.events', level='WARNING'):
            notification = self.feed.error(error)
        self.assertTrue(notification.is_error)
        self.assertIs(error, notification.error)
        self.assertEqual('Slot is full', notification.message)


class DisplayTest(unittest.TestCase):
    def setUp(self):
        self.out = io.StringIO()
        self.coke = F.create_item(IT.ItemCategory.DRINK, 'Coke', 26, '1.50', 330)

    def test_render_item(self):
        self.assertEqual('Coke (drink, ID 26) £1.50 - 330ml', D.render_item(self.coke))
        crisps = F.create_item(IT.ItemCategory.SNACK, 'Crisps', 12, '0.85', 40)
        self.assertEqual('Crisps (snack, ID 12) £0.85 - 40g', D.render_item(crisps))
        napkin = F.create_item(IT.ItemCategory.MISCELLANEOUS, 'Napkin', 3, 0, '')
        self.assertEqual('Napkin (miscellaneous item, ID 3) £0.00', D.render_item(napkin))

    def test_base_display_is_abstract(self):
        self.assertRaises(TypeError, functools.partial(D._Display, E.NotificationFeed(), self.out))

    def test_customer_display(self):
        feed = E.NotificationFeed()
        D.CustomerDisplay(feed, self.out)
        feed.status('Order started.')
        feed.error(X.ItemUnavailable('No such item'))
        feed.listing('Basket', {self.coke: 2})
        text = self.out.getvalue()
        self.assertIn("~Welcome to the Snack 'n' Drinks vending machine~\nNotice - Order started.\n", text)
        self.assertIn('Something went wrong - No such item', text)
        self.assertIn('Basket:\nCoke (drink, ID 26) £1.50 - 330ml x2\n~---', text)

    def test_admin_display(self):
        machine = F.create_vending_machine(2, 5, {Coin.ONE_POUND: 10})
        session = MS.MaintenanceSession(machine)
        D.AdminDisplay(session, self.out)

        session.stock_items(0, 1)
        text = self.out.getvalue()
        self.assertIn('Current mode - IDLE.', text)
        self.assertNotIn('Current coin storage', text)
        self.assertIn('INVALID STATE - Cannot stock items into slot #0', text)

        session.start_maintenance()
        session.assign_item_slot(1, self.coke)
        session.deposit_coins(Coin.ONE_POUND, 11)
        text = self.out.getvalue()
        self.assertIn('Specifications: max slots - 2, max items per slot - 5.', text)
        self.assertIn('Accepted coins - one pound coin (capacity 10).', text)
        self.assertIn('Current coin storage - one pound coin: 10/10.', text)
        self.assertIn('  #0: unassigned', text)
        self.assertIn('  #1: Coke (drink, ID 26) £1.50 - 330ml - 0/5', text)
        self.assertIn('NOTICE - Slot #1 assigned to item Coke successfully.', text)
        self.assertIn('INVALID OPERATION - Unit 11 of 11 failed', text)


class CommandReaderTest(unittest.TestCase):
    def test_each_command_of(self):
        script = io.StringIO('# set up\n\nadmin start\nadmin assign 0 drink "Coke Zero" 26 1.50 330  # slot 0\n'
                             'order "unbalanced\norder start\n')
        with self.assertLogs('vending.io', level='ERROR'):
            commands = list(VIO.each_command_of(script))
        self.assertEqual([
            (3, ['admin', 'start']),
            (4, ['admin', 'assign', '0', 'drink', 'Coke Zero', '26', '1.50', '330']),
            (6, ['order', 'start']),
        ], commands)


class CliTest(unittest.TestCase):
    SCRIPT = '\n'.join([
        'admin coins',
        'admin start',
        'admin deposit FIFTY_PENCE 5',
        'admin assign 0 drink "Coke Zero" 26 1.50 330',
        'admin assign 1 snack Crisps 12 abc 40',
        'admin stock 0 3',
        'admin coins',
        'admin items',
        'admin stop',
        'order start',
        'order select 26',
        'order basket',
        'order checkout',
        'order pay two_pounds',
        'order dance',
        'admin state',
    ]) + '\n'

    def test_script_runner(self):
        out = io.StringIO()
        machine = F.create_vending_machine(2, 10, ALL_COINS)
        runner = CLI.ScriptRunner(machine, out)
        with self.assertLogs('vending.cli', level='ERROR') as logs:
            skipped = runner.run(io.StringIO(self.SCRIPT))
        self.assertEqual(1, skipped)
        self.assertIn('Line 15: Unknown order command: dance', logs.output[0])

        text = out.getvalue()
        self.assertIn('INVALID STATE - Cannot view coin storage when not in MAINTENANCE state', text)
        self.assertIn('NOTICE - Slot #0 assigned to item Coke Zero successfully.', text)
        self.assertIn('INVALID OPERATION - Price must be a number', text)
        self.assertIn('NOTICE - Coin storage -', text)
        self.assertIn('fifty pence coin: 5', text)
        self.assertIn('NOTICE - Item slots - Coke Zero (drink, ID 26) £1.50 - 330ml x3, unassigned', text)
        self.assertIn('Coke Zero (drink, ID 26) £1.50 - 330ml x1', text)
        self.assertIn('Notice - All selected items dispensed. Thank you for your purchase!', text)
        self.assertIn('NOTICE - Current mode - IDLE.', text)

        self.assertEqual(2, machine.inventory.snapshot()[0].stock)
        self.assertEqual(4, machine.cash.counts()[Coin.FIFTY_PENCE])
        self.assertEqual(1, machine.cash.counts()[Coin.TWO_POUNDS])

    def test_bad_arguments(self):
        runner = CLI.ScriptRunner(F.create_vending_machine(2, 10, ALL_COINS), io.StringIO())
        for words in (['admin', 'deposit', 'GOLD', '1'], ['admin', 'stock', 'zero', '1'],
                      ['admin', 'assign', '0', 'meal', 'Soup', '1', '1', '1'], ['refund']):
            self.assertRaises(CLI.CommandError, functools.partial(runner.execute, words))

    def test_coin_capacities(self):
        self.assertEqual({coin: CLI.DEFAULT_COIN_CAPACITY for coin in Coin}, CLI.parse_coin_capacities(None))
        self.assertEqual({Coin.FIFTY_PENCE: 10, Coin.ONE_POUND: 0},
                         CLI.parse_coin_capacities(['fifty_pence=10', 'ONE_POUND=0']))
        self.assertRaises(CLI.CommandError, functools.partial(CLI.parse_coin_capacities, ['FIFTY_PENCE']))
        self.assertRaises(CLI.CommandError, functools.partial(CLI.parse_coin_capacities, ['NICKEL=5']))

    def test_main(self):
        with tempfile.TemporaryDirectory() as directory:
            path = os.path.join(directory, 'script.txt')
            with open(path, 'w') as f:
                f.write('admin start\nadmin state\n')
            with contextlib.redirect_stdout(io.StringIO()) as out:
                code = CLI.main(['--slots', '2', '--coin', 'FIFTY_PENCE=10', path])
        self.assertEqual(0, code)
        self.assertIn('NOTICE - Current mode - MAINTENANCE.', out.getvalue())
        self.assertIn('Accepted coins - fifty pence coin (capacity 10).', out.getvalue())

    def test_out_of_range_price_is_reported(self):
        out = io.StringIO()
        machine = F.create_vending_machine(2, 10, ALL_COINS)
        runner = CLI.ScriptRunner(machine, out)
        skipped = runner.run(io.StringIO('admin start\nadmin assign 0 drink Coke 1 1e30 330\nadmin state\n'))
        self.assertEqual(0, skipped)
        self.assertIn('INVALID OPERATION - Price is out of range', out.getvalue())
        self.assertIn('NOTICE - Current mode - MAINTENANCE.', out.getvalue())

    def test_main_rejects_missing_script(self):
        with tempfile.TemporaryDirectory() as directory:
            path = os.path.join(directory, 'missing.txt')
            with contextlib.redirect_stderr(io.StringIO()) as err:
                with self.assertRaises(SystemExit):
                    CLI.main(['--slots', '2', path])
        self.assertIn("can't open", err.getvalue())

    def test_main_rejects_invalid_machine(self):
        with contextlib.redirect_stderr(io.StringIO()) as err:
            with self.assertRaises(SystemExit):
                CLI.main(['--slots', '3'])
        self.assertIn('Number of item slots must be a positive even number', err.getvalue())


if __name__ == '__main__':
    unittest.main()
