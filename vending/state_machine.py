from abc import ABCMeta
from inspect import isclass
from .exceptions import InvalidStateTransition
import enum
import logging


logger = logging.getLogger(__name__)


class StateMachineMeta(ABCMeta):
    """Validates expectations for subclasses of StateMachineBase. Subclasses
    must define a states property on the class referencing an enumeration of
    all possible states. Optionally, one can also define an initial_state.
    By default, an initial_state is the first value in the enumeration."""

    def __new__(metacls, name, bases, attrs):
        # StateMachineBase itself has no states of its own.
        if len(bases) > 0:
            states = attrs.get('states', None)
            initial_state = attrs.get('initial_state', None)
            if states is None or not isclass(states) or not issubclass(states, enum.Enum):
                raise TypeError(f'states on {name} must be an enumeration')

            if initial_state is None:
                first_state = next(iter(states.__members__.values()))
                attrs['initial_state'] = first_state
            elif not isinstance(initial_state, states):
                raise TypeError(
                    f'initial_state {initial_state} of {name} must be from the enumeration specified by states')

        return super().__new__(metacls, name, bases, attrs)


class StateMachineBase(metaclass=StateMachineMeta):
    """Base class tracking a current state drawn from the enumeration named by
    the states class attribute. Subclasses decide which moves are legal by
    overriding can_transition and may observe moves through the before and
    after hooks."""
    __slots__ = ('state',)

    def __init__(self) -> None:
        self.state = getattr(self.__class__, 'initial_state', None)
        if self.state is None:
            raise RuntimeError(f'{self.__class__.__name__} cannot be instantiated')

    def can_transition(self, from_state: enum.Enum, to_state: enum.Enum) -> bool:
        """Override in a subclass to forbid particular moves. Every move is
        allowed by default.

        Args:
            from_state (enum.Enum): The current state.
            to_state (enum.Enum): The requested state.

        Returns:
            bool: True when the move may go ahead.
        """
        return True

    def after_transition(self, from_state: enum.Enum, to_state: enum.Enum) -> None:
        """Override in a subclass to run code after the new state takes effect.

        Args:
            from_state (enum.Enum): The old state.
            to_state (enum.Enum): The new state.
        """
        pass

    def before_transition(self, from_state: enum.Enum, to_state: enum.Enum) -> None:
        """Runs before the new state takes effect. The default behavior emits
        an INFO log recording the old state and the new one.

        Args:
            from_state (enum.Enum): The old state.
            to_state (enum.Enum): The new state.
        """
        logger.info('%s is transitioning from %s to %s',
                    self.__class__.__name__, from_state.name, to_state.name)

    def transition(self, to_state: enum.Enum) -> None:
        """Transitions to a new internal state.

        Args:
            to_state (enum.Enum): The new internal state.

        Raises:
            TypeError: Raised if to_state is not one of the states.
            InvalidStateTransition: Raised if can_transition rejects the move.
        """
        if not isinstance(to_state, self.__class__.states):
            raise TypeError(
                f'{to_state!r} is not a valid state in {self.__class__.__name__}')
        from_state = self.state
        if not self.can_transition(from_state, to_state):
            raise InvalidStateTransition(
                f'{self.__class__.__name__} cannot move from {from_state.name} to {to_state.name}')
        self.before_transition(from_state, to_state)
        self.state = to_state
        self.after_transition(from_state, to_state)

    def reset(self) -> None:
        """Resets the state machine to the initial state."""
        self.transition(self.__class__.initial_state)
