from __future__ import annotations
from collections.abc import Mapping
from types import MappingProxyType
from .coins import Denomination
from .exceptions import CapacityExceeded, InsufficientStock, UnsupportedDenomination
import logging

logger = logging.getLogger(__name__)


class CashStore:
    """Holds the machine's coins. Each accepted denomination has its own
    capacity because coins differ in size; a denomination missing from the
    capacities given at construction is not accepted at all.

    Coins move one at a time. Bulk loading is the caller's loop so that the
    exact coin which overflowed a tube can be reported."""
    __slots__ = ('_capacities', '_counts', 'denominations')

    def __init__(self, capacities: Mapping[Denomination, int]) -> None:
        """Constructor

        Args:
            capacities (Mapping[Denomination, int]): How many of each accepted
            coin the machine can hold.

        Raises:
            ValueError: Raised when a capacity is negative.
        """
        for coin, capacity in capacities.items():
            if capacity < 0:
                raise ValueError(f'Capacity of {coin} cannot be less than 0')
        self._capacities = dict(capacities)
        self._counts = {coin: 0 for coin in self._capacities}
        self.denominations = Denomination.descending(self._capacities)

    def accepts(self, coin: Denomination) -> bool:
        return coin in self._capacities

    def _check_supported(self, coin: Denomination) -> None:
        if not self.accepts(coin):
            raise UnsupportedDenomination(
                f'This vending machine does not accept {coin}s; use another coin')

    def deposit(self, coin: Denomination) -> CashStore:
        """Stores one coin.

        Args:
            coin (Denomination): The coin to store.

        Raises:
            UnsupportedDenomination: Raised if the coin is not accepted.
            CapacityExceeded: Raised if there is no room for another one.

        Returns:
            CashStore: The current instance.
        """
        self._check_supported(coin)
        if self._counts[coin] + 1 > self._capacities[coin]:
            raise CapacityExceeded(f'Capacity of {coin} would be exceeded')
        self._counts[coin] += 1
        logger.debug('Deposited %s, now holding %d', coin, self._counts[coin])
        return self

    def withdraw(self, coin: Denomination) -> CashStore:
        """Releases one coin.

        Args:
            coin (Denomination): The coin to release.

        Raises:
            UnsupportedDenomination: Raised if the coin is not accepted.
            InsufficientStock: Raised if none of that coin are held.

        Returns:
            CashStore: The current instance.
        """
        self._check_supported(coin)
        if self._counts[coin] - 1 < 0:
            raise InsufficientStock(f'There are no {coin}s to withdraw')
        self._counts[coin] -= 1
        logger.debug('Withdrew %s, now holding %d', coin, self._counts[coin])
        return self

    def counts(self) -> Mapping[Denomination, int]:
        """Returns a read-only snapshot of how many of each coin are held."""
        return MappingProxyType(dict(self._counts))

    def capacities(self) -> Mapping[Denomination, int]:
        return MappingProxyType(self._capacities)

    def balance(self) -> int:
        """Returns the total value held, in pence."""
        return sum(coin.pence * count for coin, count in self._counts.items())
