"""Bounded navigation history.

MemoryHistory keeps the most recent States of a session, oldest first. It is
guarded by its own lock and can be used from several tasks or threads while
a navigation is in flight.
"""

import threading
from abc import ABC, abstractmethod
from typing import List, Optional

from .state import State


class History(ABC):
    """Contract for a store of visited States."""

    @abstractmethod
    def __len__(self) -> int:
        pass

    @abstractmethod
    def set_capacity(self, capacity: int) -> None:
        pass

    @abstractmethod
    def push(self, state: State) -> int:
        pass

    @abstractmethod
    def pop(self) -> Optional[State]:
        pass

    @abstractmethod
    def top(self) -> Optional[State]:
        pass


class MemoryHistory(History):
    """In-memory, capacity-bounded LIFO of States.

    A capacity of 0 disables history: pushes are ignored.
    """

    def __init__(self, capacity: int = 0):
        if capacity < 0:
            raise ValueError("capacity must not be negative")
        self._lock = threading.Lock()
        self._states: List[State] = []
        self._capacity = capacity

    def __len__(self) -> int:
        with self._lock:
            return len(self._states)

    @property
    def capacity(self) -> int:
        return self._capacity

    def set_capacity(self, capacity: int) -> None:
        """Change the capacity, evicting the oldest entries if needed."""
        if capacity < 0:
            raise ValueError("capacity must not be negative")
        with self._lock:
            self._capacity = capacity
            if len(self._states) > capacity:
                del self._states[:len(self._states) - capacity]

    def push(self, state: State) -> int:
        """Append a State, evicting the oldest one once over capacity.

        Returns the resulting length.
        """
        with self._lock:
            if self._capacity > 0:
                self._states.append(state)
                if len(self._states) > self._capacity:
                    del self._states[0]
            return len(self._states)

    def pop(self) -> Optional[State]:
        """Return the most recent State, removing it unless it is the last one."""
        with self._lock:
            if not self._states:
                return None
            if len(self._states) > 1:
                return self._states.pop()
            return self._states[-1]

    def top(self) -> Optional[State]:
        """Return the most recent State without removing it."""
        with self._lock:
            return self._states[-1] if self._states else None

    def states(self) -> List[State]:
        """Return a snapshot of the stored States, oldest first."""
        with self._lock:
            return list(self._states)
