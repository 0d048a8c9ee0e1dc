import threading
from typing import FrozenSet, Iterable

from device import MacAddress


class JustWokeState:
    """MACs woken by the most recent heartbeat, replaced as a whole each cycle."""

    def __init__(self):
        self._lock = threading.Lock()
        self._macs: FrozenSet[MacAddress] = frozenset()

    def publish(self, macs: Iterable[MacAddress]) -> None:
        snapshot = frozenset(macs)
        with self._lock:
            self._macs = snapshot

    def was_just_woken(self, mac: MacAddress) -> bool:
        with self._lock:
            return mac in self._macs

    def snapshot(self) -> FrozenSet[MacAddress]:
        with self._lock:
            return self._macs
