"""Undo/redo history over a single value.

The history knows nothing about trees.  It holds a ``present`` value plus
two stacks:

    past    — earlier values, oldest first
    future  — undone values, the next one to redo first

Every transition returns a new ``HistoryState``; a state is never modified
in place.  Transitions that have nothing to do (undo with no past, redo with
no future, an update to an equal value) return the state they were given.

Typical wiring:

    state = create(forest)
    state = update(state, rebuilt_forest)   # after a confirmed edit
    state = undo(state)
    state = reset(state, reloaded_forest)   # after a full reload
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class HistoryState(Generic[T]):
    """Immutable snapshot of the undo/redo stacks."""
    past: tuple[T, ...]
    present: T
    future: tuple[T, ...]

    @property
    def can_undo(self) -> bool:
        return len(self.past) > 0

    @property
    def can_redo(self) -> bool:
        return len(self.future) > 0


def create(initial: T) -> HistoryState[T]:
    """Start a history with ``initial`` as the present value."""
    return HistoryState(past=(), present=initial, future=())


def update(
    state: HistoryState[T],
    next_value: T,
    limit: Optional[int] = None,
) -> HistoryState[T]:
    """Make ``next_value`` the present value.

    The old present moves onto ``past`` and ``future`` is cleared, since a
    fresh edit invalidates anything that could have been redone.

    Values are compared with ``==``, so a rebuilt value that is equal to the
    present one leaves the history untouched.

    Args:
        state: The current history.
        next_value: The new present value.
        limit: Optional cap on the number of ``past`` entries.  The oldest
               entries are dropped first.
    """
    if next_value == state.present:
        return state

    past = state.past + (state.present,)
    if limit is not None and len(past) > limit:
        past = past[len(past) - limit:] if limit > 0 else ()

    return HistoryState(past=past, present=next_value, future=())


def undo(state: HistoryState[T]) -> HistoryState[T]:
    """Step back to the most recent past value."""
    if not state.past:
        return state

    return HistoryState(
        past=state.past[:-1],
        present=state.past[-1],
        future=(state.present,) + state.future,
    )


def redo(state: HistoryState[T]) -> HistoryState[T]:
    """Step forward to the nearest undone value."""
    if not state.future:
        return state

    return HistoryState(
        past=state.past + (state.present,),
        present=state.future[0],
        future=state.future[1:],
    )


def reset(state: HistoryState[T], next_value: T) -> HistoryState[T]:
    """Replace the present value and drop all history.

    Used after a full reload: once the stored data has changed underneath
    us, the old undo stack no longer describes anything reachable.
    """
    return create(next_value)
