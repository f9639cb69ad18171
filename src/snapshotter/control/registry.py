"""Processing registry - snapshot names whose provisioning is in flight.

A name is marked from the moment provisioning is decided until the attempt
finishes (success or failure). Absence means it is safe to start
provisioning or to delete the claim.

The registry is the only state shared between the reconciler's concurrent
tasks. Operations on one name are atomic; a check on one side and an
action on the other are not, which is why the deferred deletion re-checks
on every poll tick.
"""

import threading

from snapshotter.app.metrics.collector import PROVISIONS_IN_FLIGHT


class ProcessingRegistry:
    """Thread-safe set of snapshot names currently being provisioned."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._names: set[str] = set()

    def mark(self, name: str) -> None:
        with self._lock:
            self._names.add(name)
            PROVISIONS_IN_FLIGHT.set(len(self._names))

    def try_mark(self, name: str) -> bool:
        """Mark name unless already marked. Returns True if this call marked it."""
        with self._lock:
            if name in self._names:
                return False
            self._names.add(name)
            PROVISIONS_IN_FLIGHT.set(len(self._names))
            return True

    def clear(self, name: str) -> None:
        with self._lock:
            self._names.discard(name)
            PROVISIONS_IN_FLIGHT.set(len(self._names))

    def is_marked(self, name: str) -> bool:
        with self._lock:
            return name in self._names

    def __len__(self) -> int:
        with self._lock:
            return len(self._names)
