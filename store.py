"""InfluxDB gateway for worker statuses and photo-voltaic aggregates."""
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

import requests
from influxdb import InfluxDBClient
from influxdb.exceptions import InfluxDBClientError, InfluxDBServerError

from device import MacAddress, ReportedState, WorkerStatus
from errors import DataUnavailable, StoreQueryError, StoreWriteError

logger = logging.getLogger(__name__)

_STORE_ERRORS = (InfluxDBClientError, InfluxDBServerError, requests.RequestException, ValueError)


class InfluxStore:
    """Reads and writes the ``workerstatus`` and ``pvstatus`` measurements."""

    def __init__(self, client: InfluxDBClient, workerstatus: str = "workerstatus",
                 pvstatus: str = "pvstatus"):
        self.client = client
        self.workerstatus = workerstatus
        self.pvstatus = pvstatus

    @classmethod
    def from_config(cls, section) -> "InfluxStore":
        """Creates the store from the ``[influxdb]`` settings section."""
        section = section or {}
        client = InfluxDBClient.from_dsn(
            section.get("dsn", "influxdb://127.0.0.1:8086/pv"),
            timeout=section.get("timeout", 10),
        )
        return cls(client,
                   workerstatus=section.get("workerstatus", "workerstatus"),
                   pvstatus=section.get("pvstatus", "pvstatus"))

    def _query(self, query: str):
        try:
            return self.client.query(query, epoch="ms")
        except _STORE_ERRORS as err:
            raise StoreQueryError(f"Query '{query}' failed: {err}") from err

    def query_latest_statuses(self) -> List[ReportedState]:
        """Returns the most recent reported state of every worker."""
        result = self._query(
            f'SELECT last("status") AS status,wake,time FROM {self.workerstatus} GROUP BY mac')
        states: List[ReportedState] = []
        for (_, tags), points in result.items():
            mac_tag = (tags or {}).get("mac", "")
            for point in points:
                try:
                    states.append(ReportedState(
                        mac=MacAddress.parse(mac_tag),
                        status=WorkerStatus.from_ordinal(int(point["status"])),
                        wake=bool(point["wake"]),
                        observed_at=_from_epoch_ms(point["time"]),
                    ))
                except (KeyError, TypeError, ValueError) as err:
                    logger.warning(f"Ignoring unreadable status of '{mac_tag}': {err}")
                break
        return states

    def write_status(self, mac: MacAddress, status: WorkerStatus, wake: bool,
                     when: Optional[datetime] = None) -> None:
        """Logs a worker status point.

        Raises:
            StoreWriteError: if the point could not be written.
        """
        when = when or datetime.now(timezone.utc)
        point = {
            "measurement": self.workerstatus,
            "tags": {"mac": str(mac)},
            "time": when,
            "fields": {"status": status.ordinal, "wake": bool(wake)},
        }
        logger.info(f"[{mac}] status: {status.value} ({status.ordinal}), wake: {wake}")
        try:
            self.client.write_points([point])
        except _STORE_ERRORS as err:
            raise StoreWriteError(f"Failed writing status of {mac}: {err}") from err

    def mean_over_window(self, field: str, window: str) -> float:
        """Mean of ``field`` over the last ``window`` (e.g. '30m').

        Raises:
            DataUnavailable: if there are no points in the window.
            StoreQueryError: if the query fails.
        """
        result = self._query(
            f'SELECT mean("{field}") AS mean FROM {self.pvstatus} WHERE time > now() - {window}')
        for point in result.get_points():
            if point.get("mean") is not None:
                return float(point["mean"])
        raise DataUnavailable(f"No {field} data in the last {window}")

    def query_history(self, start: datetime, stop: datetime,
                      mac: Optional[MacAddress] = None) -> Dict[str, List[dict]]:
        """Returns pv readings and, for a given MAC, its statuses between start and stop."""
        condition = f"time > '{_rfc3339(start)}' AND time < '{_rfc3339(stop)}'"
        result = self._query(
            "SELECT battery_voltage, pv_voltage, pv_current, temperature "
            f"FROM {self.pvstatus} WHERE {condition} ORDER BY time ASC")
        history = {self.pvstatus: list(result.get_points())}
        if mac is not None:
            result = self._query(
                f"SELECT status, wake FROM {self.workerstatus} "
                f"WHERE {condition} AND mac = '{mac}' ORDER BY time ASC")
            history[self.workerstatus] = list(result.get_points())
        return history


def _from_epoch_ms(value) -> datetime:
    return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)


def _rfc3339(when: datetime) -> str:
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return when.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
