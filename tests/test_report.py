from datetime import timedelta

import pytest

from device import WorkerStatus
from errors import (BadRequest, Forbidden, ResolutionError, StoreQueryError,
                    UpstreamQueryFailed)
from excess import ExcessStatus
from just_woke import JustWokeState
from report import MAX_QUERY_DAYS, ReportRequest, ReportService, validate_interval
from conftest import NOW, FakeGateway, FakeStore, mac

NEIGH = "192.168.1.10 dev eth0 lladdr aa:aa:aa:aa:aa:aa REACHABLE\n"
A = mac("aa:aa:aa:aa:aa:aa")


def service(store=None, neigh=NEIGH):
    just_woke = JustWokeState()
    return ReportService(store or FakeStore(), FakeGateway(neigh), just_woke), just_woke


class TestReportRequest:

    def test_from_json(self):
        assert ReportRequest.from_json({"status": "Working", "wake": True}) == \
            ReportRequest(WorkerStatus.WORKING, True)
        assert ReportRequest.from_json({"status": 0, "wake": False}) == \
            ReportRequest(WorkerStatus.SLEEP, False)

    @pytest.mark.parametrize("body", [
        [], {"wake": True}, {"status": "Dreaming", "wake": True},
        {"status": "Awake"}, {"status": "Awake", "wake": "yes"},
    ])
    def test_invalid(self, body):
        with pytest.raises(BadRequest) as err:
            ReportRequest.from_json(body)
        assert err.value.status_code == 400


class TestReport:

    def test_logs_status_and_answers_woken(self):
        store = FakeStore()
        reports, just_woke = service(store)
        assert reports.report("192.168.1.10", ReportRequest(WorkerStatus.INQUISITIVE, True)) == {"woken": False}
        assert store.writes == [(A, WorkerStatus.INQUISITIVE, True)]
        just_woke.publish({A})
        assert reports.report("192.168.1.10", ReportRequest(WorkerStatus.WORKING, False)) == {"woken": True}

    def test_unknown_requester_is_forbidden(self):
        reports, _ = service()
        with pytest.raises(Forbidden) as err:
            reports.report("192.168.1.99", ReportRequest(WorkerStatus.AWAKE, True))
        assert err.value.status_code == 403
        with pytest.raises(Forbidden):
            reports.report("127.0.0.1", ReportRequest(WorkerStatus.AWAKE, True))

    def test_write_failure(self):
        reports, _ = service(FakeStore(fail_writes=[str(A)]))
        with pytest.raises(UpstreamQueryFailed) as err:
            reports.report("192.168.1.10", ReportRequest(WorkerStatus.AWAKE, True))
        assert err.value.status_code == 502

    def test_neighbor_failure(self):
        reports, _ = service(neigh=ResolutionError("ip neigh timed out"))
        with pytest.raises(UpstreamQueryFailed):
            reports.report("192.168.1.10", ReportRequest(WorkerStatus.AWAKE, True))

    def test_invalid_remote_address(self):
        reports, _ = service()
        with pytest.raises(BadRequest):
            reports.report("localhost", ReportRequest(WorkerStatus.AWAKE, True))


class TestExcess:

    def test_verdict(self):
        reports, _ = service(FakeStore(means={"pv_current": 30.0, "battery_voltage": 13.1}))
        assert reports.excess() is ExcessStatus.YES

    def test_failure_is_user_visible(self):
        reports, _ = service(FakeStore(means={"pv_current": StoreQueryError("influx down")}))
        with pytest.raises(UpstreamQueryFailed) as err:
            reports.excess()
        assert "Failed to query pv excess" in str(err.value)


class TestInterval:

    def test_validation(self):
        validate_interval(NOW, NOW + timedelta(days=MAX_QUERY_DAYS))
        with pytest.raises(BadRequest):
            validate_interval(NOW, NOW + timedelta(days=MAX_QUERY_DAYS + 1))
        with pytest.raises(BadRequest):
            validate_interval(NOW, NOW - timedelta(seconds=1))

    def test_uses_requester_mac(self):
        store = FakeStore()
        reports, _ = service(store)
        history = reports.interval(NOW, NOW + timedelta(days=7), remote_addr="192.168.1.10")
        assert store.history_queries == [(NOW, NOW + timedelta(days=7), A)]
        assert "workerstatus" in history

    def test_explicit_mac(self):
        store = FakeStore()
        reports, _ = service(store)
        other = mac("11:11:11:11:11:11")
        reports.interval(NOW, NOW + timedelta(days=1), mac=other, remote_addr="192.168.1.10")
        assert store.history_queries[0][2] == other

    def test_without_mac(self):
        store = FakeStore()
        reports, _ = service(store)
        assert reports.interval(NOW, NOW + timedelta(days=1)) == {"pvstatus": []}

    def test_query_failure(self):
        store = FakeStore()

        def failing(start, stop, mac_address=None):
            raise StoreQueryError("influx down")

        store.query_history = failing
        reports, _ = service(store)
        with pytest.raises(UpstreamQueryFailed):
            reports.interval(NOW, NOW + timedelta(days=1))
