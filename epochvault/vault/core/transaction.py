"""
Atomic, non-reentrant execution of vault operations.

Every state-mutating vault entry point runs inside ``atomic_operation``:
the vault's state is snapshotted up front, a held in-progress flag rejects
nested entry, and any exception restores the snapshot before propagating.
Events emitted during a failed call are discarded.
"""

import copy
import logging
from functools import wraps
from typing import Any, Dict, Iterable

from epochvault.vault.errors import ReentrancyError

logger = logging.getLogger(__name__)


class StateSnapshot:
    """
    Deep copy of a set of stateful components, restorable in place.

    Components are restored by replacing their attribute dictionaries, so
    other objects holding references to them keep seeing the same instances.
    Objects listed in ``shared`` are kept by reference rather than copied.
    """

    def __init__(self, components: Dict[str, Any], shared: Iterable[Any] = ()):
        self._components = components
        memo = {id(obj): obj for obj in shared}
        self._saved = copy.deepcopy({name: vars(obj) for name, obj in components.items()}, memo)

    def restore(self):
        for name, obj in self._components.items():
            state = vars(obj)
            state.clear()
            state.update(self._saved[name])


class ReentrancyGuard:
    """Held mutual-exclusion flag for one vault instance."""

    def __init__(self):
        self.entered = False

    def __enter__(self):
        if self.entered:
            raise ReentrancyError()
        self.entered = True
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.entered = False
        return False


def atomic_operation(func):
    """
    Decorator for vault entry points.

    The decorated method's owner must provide ``_guard`` (a
    ``ReentrancyGuard``), ``_snapshot()`` returning a ``StateSnapshot``,
    ``_pending_events`` (a list) and ``_publish_events()``.
    """
    @wraps(func)
    def wrapper(self, *args, **kwargs):
        with self._guard:
            snapshot = self._snapshot()
            self._pending_events = []
            try:
                result = func(self, *args, **kwargs)
            except Exception as e:
                snapshot.restore()
                self._pending_events = []
                logger.error(f"{func.__name__} reverted: {e}")
                raise
        self._publish_events()
        return result

    return wrapper
