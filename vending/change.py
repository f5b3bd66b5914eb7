from __future__ import annotations
from collections.abc import Callable, Sequence
from typing import Optional
from .coins import Denomination
from .exceptions import InsufficientStock, UnresolvedChange
from .machine import VendingMachine
import logging

logger = logging.getLogger(__name__)


def make_change(machine: VendingMachine, amount: int,
                denominations: Sequence[Denomination],
                on_coin: Optional[Callable[[Denomination], None]] = None) -> list[Denomination]:
    """Pays out an amount using the largest coins available first.

    Each round scans the denominations from the top and withdraws a single
    coin of the first one that fits the remaining amount and is in stock,
    then starts again from the top. Coins paid out before a failure stay
    paid out.

    Args:
        machine (VendingMachine): A machine in the REFUNDING state.
        amount (int): The amount to pay out, in pence.
        denominations (Sequence[Denomination]): The accepted coins, largest
        first.
        on_coin (Callable[[Denomination], None], optional): Called after each
        coin is paid out. Defaults to None.

    Raises:
        UnresolvedChange: Raised when no coin in stock fits what is left.

    Returns:
        list[Denomination]: The coins paid out, in order.
    """
    remaining = amount
    paid_out = []
    while remaining > 0:
        for coin in denominations:
            if coin.pence > remaining:
                continue
            try:
                machine.withdraw_coin(coin)
            except InsufficientStock:
                continue
            remaining -= coin.pence
            paid_out.append(coin)
            if on_coin is not None:
                on_coin(coin)
            break
        else:
            logger.error('Could not make up %d of %d pence in change', remaining, amount)
            raise UnresolvedChange(remaining)
    return paid_out
