from .coins import format_pence


class VendingMachineException(Exception):
    pass


class InvalidStateTransition(VendingMachineException):
    pass


class InvalidMachineState(VendingMachineException):
    pass


class UnsupportedDenomination(VendingMachineException):
    pass


class CapacityExceeded(VendingMachineException):
    pass


class InsufficientStock(VendingMachineException):
    pass


class IndexOutOfRange(VendingMachineException):
    pass


class SlotAlreadyAssigned(VendingMachineException):
    pass


class SlotNotEmpty(VendingMachineException):
    pass


class SlotUnassigned(VendingMachineException):
    pass


class SlotFull(VendingMachineException):
    pass


class SlotEmpty(VendingMachineException):
    pass


class ItemNotFound(VendingMachineException):
    pass


class ItemUnavailable(VendingMachineException):
    pass


class OrderAlreadyInProgress(VendingMachineException):
    pass


class EmptyBasket(VendingMachineException):
    pass


class MachineUnderMaintenance(VendingMachineException):
    pass


class InvalidQuantity(VendingMachineException):
    pass


class InvalidSpecification(VendingMachineException, ValueError):
    pass


class InvalidItem(VendingMachineException, ValueError):
    pass


class UnresolvedChange(VendingMachineException):
    """Raised when the coins held cannot make up an amount owed to a
    customer. The amount still owed, in pence, is kept on residual."""

    def __init__(self, residual: int) -> None:
        super().__init__(
            f'Unable to return the remaining {format_pence(residual)}; '
            'please call a maintenance technician and show them this message')
        self.residual = residual
