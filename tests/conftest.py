"""Shared fakes for the wake controller tests."""
import threading
from datetime import datetime, timedelta, timezone

import pytest

from device import MacAddress, ReportedState
from errors import DataUnavailable, StoreWriteError
from network.base import NetworkGateway

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


def mac(text):
    return MacAddress.parse(text)


def state(mac_text, status, wake, age_minutes=0.0):
    return ReportedState(mac(mac_text), status, wake, NOW - timedelta(minutes=age_minutes))


class FakeStore:
    """In-memory stand-in for InfluxStore."""

    def __init__(self, statuses=None, means=None, fail_writes=()):
        self.statuses = list(statuses or [])
        self.means = dict(means or {})
        self.fail_writes = {mac(m) for m in fail_writes}
        self.writes = []
        self.mean_queries = []
        self.history_queries = []
        self.status_error = None

    def query_latest_statuses(self):
        if self.status_error:
            raise self.status_error
        return list(self.statuses)

    def write_status(self, mac_address, status, wake, when=None):
        if mac_address in self.fail_writes:
            raise StoreWriteError(f"write of {mac_address} refused")
        self.writes.append((mac_address, status, wake))

    def mean_over_window(self, field, window):
        self.mean_queries.append((field, window))
        value = self.means.get(field)
        if value is None:
            raise DataUnavailable(f"no {field} data")
        if isinstance(value, Exception):
            raise value
        return value

    def query_history(self, start, stop, mac_address=None):
        self.history_queries.append((start, stop, mac_address))
        return {"pvstatus": [], "workerstatus": []} if mac_address else {"pvstatus": []}

    def written(self):
        return {m: (status, wake) for m, status, wake in self.writes}


class FakeGateway(NetworkGateway):
    """Scripted neighbor table and ping answers keyed by address text."""

    def __init__(self, neigh="", ping=None):
        self.neigh = neigh
        self.ping_answers = dict(ping or {})
        self.neigh_calls = 0
        self.pinged = []
        self._lock = threading.Lock()

    def ip_neigh(self):
        self.neigh_calls += 1
        if isinstance(self.neigh, Exception):
            raise self.neigh
        return self.neigh

    def ping(self, address):
        with self._lock:
            self.pinged.append(str(address))
        answer = self.ping_answers.get(str(address), False)
        if isinstance(answer, Exception):
            raise answer
        return answer


class RecordingSocket:
    def __init__(self, fail_at=None):
        self.sent = []
        self.fail_at = fail_at
        self.closed = False

    def sendto(self, payload, destination):
        if self.fail_at is not None and len(self.sent) == self.fail_at:
            raise OSError("Network is unreachable")
        self.sent.append((payload, destination))

    def close(self):
        self.closed = True


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def sockets():
    """Socket factory recording every socket it creates."""
    created = []

    def factory(timeout):
        sock = RecordingSocket()
        created.append(sock)
        return sock

    factory.created = created
    return factory
