"""In-memory seminar store: the get/update accessor pair the engine writes through."""

from collections.abc import Callable
from dataclasses import fields, replace
from typing import Any

from polymath.models import SeminarState


Listener = Callable[[SeminarState], None]

_STATE_FIELDS = {f.name for f in fields(SeminarState)}


class SeminarStore:
    """Holds the current SeminarState and notifies subscribers on every update.

    Each update produces a new SeminarState object, so a snapshot taken by a
    listener is never changed underneath it.
    """

    def __init__(self, initial: SeminarState | None = None) -> None:
        self._state = initial if initial is not None else SeminarState()
        self._listeners: list[Listener] = []

    def get(self) -> SeminarState:
        return self._state

    def update(self, changes: dict[str, Any]) -> None:
        unknown = set(changes) - _STATE_FIELDS
        if unknown:
            raise KeyError(f"Unknown seminar state field(s): {', '.join(sorted(unknown))}")
        self._state = replace(self._state, **changes)
        for listener in list(self._listeners):
            listener(self._state)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def reset(self) -> None:
        """Return to an idle, empty state (keeps the last config)."""
        self.update({"topic": "", "rounds": [], "status": "idle", "current_round_index": 0, "error": None})
