"""State machine for per-item finalization."""

from enum import Enum

import structlog


logger = structlog.get_logger()


class ItemState(str, Enum):
    """State of an item during import.

    - ITEM_FRESH: Only API-decoded fields are populated
    - ITEM_FINALIZED: Index assigned and tidy pass applied
    """

    ITEM_FRESH = "ITEM_FRESH"
    ITEM_FINALIZED = "ITEM_FINALIZED"


class TraversalState(str, Enum):
    """State of an item's link traversal.

    - TRAVERSAL_NOT_ATTEMPTED: Link has not been looked at
    - TRAVERSAL_ATTEMPTED: Traversal was decided on (and run, if traversable)
    """

    TRAVERSAL_NOT_ATTEMPTED = "TRAVERSAL_NOT_ATTEMPTED"
    TRAVERSAL_ATTEMPTED = "TRAVERSAL_ATTEMPTED"


# Valid state transitions
_VALID_TRANSITIONS: dict[Enum, set[Enum]] = {
    ItemState.ITEM_FRESH: {ItemState.ITEM_FINALIZED},
    ItemState.ITEM_FINALIZED: set(),  # Terminal state
    TraversalState.TRAVERSAL_NOT_ATTEMPTED: {TraversalState.TRAVERSAL_ATTEMPTED},
    TraversalState.TRAVERSAL_ATTEMPTED: set(),  # Terminal state
}


class ItemStateTransitionError(Exception):
    """Raised when an illegal state transition is attempted."""

    def __init__(
        self,
        item_id: str,
        from_state: ItemState | TraversalState,
        to_state: ItemState | TraversalState,
    ) -> None:
        """Initialize the transition error.

        Args:
            item_id: Identifier of the item.
            from_state: Current state.
            to_state: Attempted target state.
        """
        self.item_id = item_id
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Illegal state transition for item '{item_id}': "
            f"{from_state.value} -> {to_state.value}"
        )


class ItemStateMachine:
    """Tracks the finalize and traversal phases of one item.

    Both phases are write-once: each can move forward exactly one step.
    """

    def __init__(self, item_id: str) -> None:
        """Initialize the state machine.

        Args:
            item_id: Identifier for the item.
        """
        self._item_id = item_id
        self._state = ItemState.ITEM_FRESH
        self._traversal_state = TraversalState.TRAVERSAL_NOT_ATTEMPTED
        self._log = logger.bind(component="item", item_id=item_id)

    @property
    def state(self) -> ItemState:
        """Get the current finalize state."""
        return self._state

    @property
    def traversal_state(self) -> TraversalState:
        """Get the current traversal state."""
        return self._traversal_state

    @property
    def is_finalized(self) -> bool:
        """Check if the item has been finalized."""
        return self._state == ItemState.ITEM_FINALIZED

    @property
    def is_traversal_attempted(self) -> bool:
        """Check if link traversal has been attempted."""
        return self._traversal_state == TraversalState.TRAVERSAL_ATTEMPTED

    def _check(
        self,
        current: ItemState | TraversalState,
        target: ItemState | TraversalState,
    ) -> None:
        if target not in _VALID_TRANSITIONS.get(current, set()):
            self._log.error(
                "illegal_state_transition",
                from_state=current.value,
                to_state=target.value,
            )
            raise ItemStateTransitionError(self._item_id, current, target)
        self._log.debug(
            "state_transition",
            from_state=current.value,
            to_state=target.value,
        )

    def to_finalized(self) -> None:
        """Transition to ITEM_FINALIZED state.

        Raises:
            ItemStateTransitionError: If the item is already finalized.
        """
        self._check(self._state, ItemState.ITEM_FINALIZED)
        self._state = ItemState.ITEM_FINALIZED

    def to_traversal_attempted(self) -> None:
        """Transition to TRAVERSAL_ATTEMPTED state.

        Raises:
            ItemStateTransitionError: If traversal was already attempted.
        """
        self._check(self._traversal_state, TraversalState.TRAVERSAL_ATTEMPTED)
        self._traversal_state = TraversalState.TRAVERSAL_ATTEMPTED
