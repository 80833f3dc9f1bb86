"""View states of the note overlay and the transitions allowed between them."""
from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet


class OverlayState(Enum):
    UNINSTANTIATED = "uninstantiated"
    HIDDEN = "hidden"
    EXPANDED = "expanded"
    MINIMIZED = "minimized"
    EDITING = "editing"

    @property
    def instantiated(self) -> bool:
        return self is not OverlayState.UNINSTANTIATED

    @property
    def displayed(self) -> bool:
        return self in (OverlayState.EXPANDED, OverlayState.MINIMIZED, OverlayState.EDITING)


TRANSITIONS: Dict[OverlayState, FrozenSet[OverlayState]] = {
    OverlayState.UNINSTANTIATED: frozenset(
        {OverlayState.EXPANDED, OverlayState.MINIMIZED, OverlayState.HIDDEN}
    ),
    OverlayState.HIDDEN: frozenset(
        {OverlayState.EXPANDED, OverlayState.MINIMIZED, OverlayState.UNINSTANTIATED}
    ),
    OverlayState.EXPANDED: frozenset(
        {OverlayState.MINIMIZED, OverlayState.HIDDEN, OverlayState.EDITING, OverlayState.UNINSTANTIATED}
    ),
    OverlayState.MINIMIZED: frozenset(
        {OverlayState.EXPANDED, OverlayState.HIDDEN, OverlayState.EDITING, OverlayState.UNINSTANTIATED}
    ),
    OverlayState.EDITING: frozenset(
        {OverlayState.EXPANDED, OverlayState.MINIMIZED, OverlayState.HIDDEN, OverlayState.UNINSTANTIATED}
    ),
}


class InvalidTransition(RuntimeError):
    """Raised when an action would move the overlay along a forbidden edge."""

    def __init__(self, current: OverlayState, target: OverlayState, action: str) -> None:
        super().__init__(f"{action}: cannot go from {current.value} to {target.value}")
        self.current = current
        self.target = target
        self.action = action


def can_transition(current: OverlayState, target: OverlayState) -> bool:
    return target in TRANSITIONS[current]
