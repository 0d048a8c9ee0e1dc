"""Wake heartbeat: periodically wakes sleeping workers when PV power is in excess.

One cycle selects the workers that stopped reporting or asked to be woken,
resolves and pings those that want to be woken, logs the inferred status of
every touched worker, decides the power excess and, on YES, sends magic
packets to the workers that did not answer. The MACs that were sent a packet
are published to the ``JustWokeState`` so reporting workers can learn that
they were woken.
"""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import FrozenSet, List, Optional, Set

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from device import MacAddress, WorkerStatus
from errors import DispatchError, ResolutionError, StoreQueryError, StoreWriteError
from excess import ExcessStatus, ExcessThresholds, query_pv_excess
from just_woke import JustWokeState
from liveness import sleeping_macs
from neighbor import MacIpMapping, macs_to_addrs
from network.base import NetworkGateway
from selector import select_stale_workers
from wake import WakeDispatcher

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HeartbeatSettings:
    interval_seconds: float = 600
    stale_minutes: float = 10
    max_workers: int = 8
    enabled: bool = True

    @property
    def stale_window(self) -> timedelta:
        return timedelta(minutes=self.stale_minutes)

    @classmethod
    def from_config(cls, section) -> "HeartbeatSettings":
        section = section or {}
        return cls(
            interval_seconds=float(section.get("interval_seconds", 600)),
            stale_minutes=float(section.get("stale_minutes", 10)),
            max_workers=int(section.get("max_workers", 8)),
            enabled=bool(section.get("enabled", True)),
        )


@dataclass
class CycleResult:
    immediate_sleep: List[MacAddress] = field(default_factory=list)
    candidates: List[MacAddress] = field(default_factory=list)
    resolved: Optional[MacIpMapping] = None
    asleep: Set[MacAddress] = field(default_factory=set)
    verdict: ExcessStatus = ExcessStatus.NO
    woken: FrozenSet[MacAddress] = frozenset()


class Heartbeat:
    """Runs wake cycles; cycles never overlap."""

    def __init__(self, store, gateway: NetworkGateway, dispatcher: WakeDispatcher,
                 just_woke: JustWokeState,
                 thresholds: ExcessThresholds = ExcessThresholds(),
                 settings: HeartbeatSettings = HeartbeatSettings()):
        self.store = store
        self.gateway = gateway
        self.dispatcher = dispatcher
        self.just_woke = just_woke
        self.thresholds = thresholds
        self.settings = settings
        self._cycle_lock = threading.Lock()

    def run_cycle(self, now: Optional[datetime] = None) -> CycleResult:
        """Runs one cycle, waiting for a cycle in progress to finish first."""
        with self._cycle_lock:
            result = CycleResult()
            try:
                self._run(result, now or datetime.now(timezone.utc))
            except Exception:  # pylint: disable=broad-except
                logger.exception("Wake heartbeat failed!")
                result.woken = frozenset()
            finally:
                self.just_woke.publish(result.woken)
            return result

    def _run(self, result: CycleResult, now: datetime) -> None:
        selected = select_stale_workers(self.store, self.settings.stale_window, now)
        result.immediate_sleep = [mac for mac, wake in selected if not wake]
        result.candidates = [mac for mac, wake in selected if wake]

        try:
            result.resolved = macs_to_addrs(result.candidates, self.gateway)
        except ResolutionError as err:
            logger.error(f"Exception while IP-addr lookup of wake candidates! {err}")
        if result.resolved is not None:
            result.asleep = sleeping_macs(result.resolved, self.gateway, self.settings.max_workers)

        self._log_statuses(result, now)

        try:
            result.verdict = query_pv_excess(self.store, self.thresholds)
            logger.info(f"PV excess: {result.verdict.name} ({result.verdict.value})")
        except StoreQueryError as err:
            logger.error(f"PV excess query failed! {err}")
            result.verdict = ExcessStatus.NO

        if result.verdict is ExcessStatus.YES and result.resolved is not None and result.asleep:
            try:
                self.dispatcher.dispatch(result.asleep, result.resolved)
                result.woken = frozenset(result.asleep)
            except DispatchError as err:
                logger.error(f"Waking failed! {err}")
                result.woken = frozenset()

    def _log_statuses(self, result: CycleResult, now: datetime) -> None:
        updates = [(mac, WorkerStatus.SLEEP, False) for mac in result.immediate_sleep]
        if result.resolved is not None:
            updates += [(mac, WorkerStatus.SLEEP if mac in result.asleep else WorkerStatus.AWAKE, True)
                        for mac in result.candidates]
        if not updates:
            return

        def write(update):
            mac, status, wake = update
            try:
                self.store.write_status(mac, status, wake, now)
            except StoreWriteError as err:
                logger.error(f"Failed logging workerstatus! {err}")

        with ThreadPoolExecutor(max_workers=max(1, min(self.settings.max_workers, len(updates)))) as pool:
            list(pool.map(write, updates))


class HeartbeatService:
    """Schedules the heartbeat at a fixed interval; late ticks are skipped."""

    JOB_ID = "wake_heartbeat"

    def __init__(self, heartbeat: Heartbeat, settings: HeartbeatSettings = HeartbeatSettings(),
                 scheduler: Optional[BackgroundScheduler] = None):
        self.heartbeat = heartbeat
        self.settings = settings
        self.scheduler = scheduler or BackgroundScheduler(timezone=timezone.utc)

    def start(self) -> bool:
        """Starts the schedule; returns False when the heartbeat is disabled."""
        if not self.settings.enabled:
            logger.info("Wake heartbeat disabled")
            return False
        self.scheduler.add_job(
            self.heartbeat.run_cycle,
            IntervalTrigger(seconds=self.settings.interval_seconds),
            id=self.JOB_ID,
            name="Wake sleeping workers on PV excess",
            max_instances=1,
            coalesce=True,
            next_run_time=datetime.now(timezone.utc),
        )
        self.scheduler.start()
        logger.info(f"Wake heartbeat every {self.settings.interval_seconds:.0f}s")
        return True

    def run_once(self) -> CycleResult:
        """Runs a cycle synchronously, serialized behind a scheduled one."""
        return self.heartbeat.run_cycle()

    def shutdown(self) -> None:
        """Stops scheduling and waits for a running cycle to finish."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=True)
