from __future__ import annotations
from collections.abc import Iterable
import enum


class Denomination(enum.Enum):
    """British coins accepted by the machine hardware. Each value is the
    coin's worth in pence so that sums never suffer from floating point
    error."""
    ONE_PENNY = 1
    TWO_PENCE = 2
    FIVE_PENCE = 5
    TEN_PENCE = 10
    TWENTY_PENCE = 20
    FIFTY_PENCE = 50
    ONE_POUND = 100
    TWO_POUNDS = 200

    @property
    def pence(self) -> int:
        return self.value

    def __str__(self) -> str:
        return _LABELS[self]

    @classmethod
    def descending(cls, denominations: Iterable[Denomination]) -> tuple[Denomination, ...]:
        """Orders denominations from the most valuable to the least.

        Args:
            denominations (Iterable[Denomination]): The coins to order.

        Returns:
            tuple[Denomination, ...]: The coins, largest first.
        """
        return tuple(sorted(denominations, key=lambda coin: coin.pence, reverse=True))


_LABELS = {
    Denomination.ONE_PENNY: 'one penny coin',
    Denomination.TWO_PENCE: 'two pence coin',
    Denomination.FIVE_PENCE: 'five pence coin',
    Denomination.TEN_PENCE: 'ten pence coin',
    Denomination.TWENTY_PENCE: 'twenty pence coin',
    Denomination.FIFTY_PENCE: 'fifty pence coin',
    Denomination.ONE_POUND: 'one pound coin',
    Denomination.TWO_POUNDS: 'two pounds coin',
}


def format_pence(amount: int) -> str:
    """Formats an amount of pence as pounds, e.g. 150 -> '£1.50'.

    Args:
        amount (int): The amount in pence. May be negative.

    Returns:
        str: The formatted amount.
    """
    sign = '-' if amount < 0 else ''
    pounds, pence = divmod(abs(amount), 100)
    return f'{sign}£{pounds}.{pence:02d}'
