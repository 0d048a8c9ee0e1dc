"""Answers worker reports, on-demand excess checks and history requests.

This is the transport-free side of the reporting boundary: an HTTP layer
passes the caller's address and the decoded body, and maps ``ReportError``
subclasses to their ``status_code``.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from device import MacAddress, WorkerStatus
from errors import (BadRequest, Forbidden, ResolutionError, StoreQueryError,
                    StoreWriteError, UpstreamQueryFailed)
from excess import ExcessStatus, ExcessThresholds, query_pv_excess
from just_woke import JustWokeState
from neighbor import addr_to_mac
from network.base import NetworkGateway
from utils import parse_address

logger = logging.getLogger(__name__)

MAX_QUERY_DAYS = 20


@dataclass(frozen=True)
class ReportRequest:
    status: WorkerStatus
    wake: bool

    @classmethod
    def from_json(cls, body: dict) -> "ReportRequest":
        """Parses ``{"status": "Working", "wake": true}``."""
        if not isinstance(body, dict):
            raise BadRequest("[JSON-Error] expected an object")
        try:
            status = WorkerStatus.parse(body["status"])
        except KeyError:
            raise BadRequest("[JSON-Error] missing field 'status'") from None
        except ValueError as err:
            raise BadRequest(f"[JSON-Error] {err}") from err
        wake = body.get("wake")
        if not isinstance(wake, bool):
            raise BadRequest("[JSON-Error] field 'wake' must be a boolean")
        return cls(status=status, wake=wake)


def validate_interval(start: datetime, stop: datetime) -> None:
    if stop < start:
        raise BadRequest(f"Interval stop {stop} is before start {start}!")
    duration = stop - start
    if duration > timedelta(days=MAX_QUERY_DAYS):
        raise BadRequest(f"'{duration}' exceeded max query duration!")


class ReportService:

    def __init__(self, store, gateway: NetworkGateway, just_woke: JustWokeState,
                 thresholds: ExcessThresholds = ExcessThresholds()):
        self.store = store
        self.gateway = gateway
        self.just_woke = just_woke
        self.thresholds = thresholds

    def remote_mac(self, remote_addr: str) -> Optional[MacAddress]:
        address = parse_address(remote_addr)
        if address is None:
            raise BadRequest(f"Invalid remote address '{remote_addr}'")
        try:
            return addr_to_mac(address, self.gateway)
        except ResolutionError as err:
            raise UpstreamQueryFailed(f"Failed to find mac for {address}! {err}") from err

    def report(self, remote_addr: str, request: ReportRequest) -> Dict[str, bool]:
        """Logs the reported status of the caller and tells it whether it was just woken."""
        mac = self.remote_mac(remote_addr)
        if mac is None:
            raise Forbidden("mac address of requestor not found!")
        try:
            self.store.write_status(mac, request.status, request.wake)
        except StoreWriteError as err:
            raise UpstreamQueryFailed(f"Failed to log reported status! {err}") from err
        return {"woken": self.just_woke.was_just_woken(mac)}

    def excess(self) -> ExcessStatus:
        try:
            return query_pv_excess(self.store, self.thresholds)
        except StoreQueryError as err:
            raise UpstreamQueryFailed(f"Failed to query pv excess! {err}") from err

    def interval(self, start: datetime, stop: datetime, mac: Optional[MacAddress] = None,
                 remote_addr: Optional[str] = None) -> Dict[str, List[dict]]:
        """History between start and stop; worker statuses of ``mac`` or else the caller."""
        if mac is None and remote_addr is not None:
            mac = self.remote_mac(remote_addr)
        validate_interval(start, stop)
        try:
            return self.store.query_history(start, stop, mac)
        except StoreQueryError as err:
            raise UpstreamQueryFailed(f"Query failed! {err}") from err
