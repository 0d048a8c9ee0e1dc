import logging
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional, Tuple

from device import MacAddress, ReportedState
from errors import StoreQueryError

logger = logging.getLogger(__name__)

WORKER_STALE_MINUTES = 10


def is_stale(state: ReportedState, now: datetime, stale_window: timedelta) -> bool:
    """Whether a worker needs action this cycle.

    Active workers are due once they stopped reporting for longer than the
    stale window; inactive workers are due whenever they asked to be woken.
    """
    if state.status.is_active():
        return now - state.observed_at > stale_window
    return state.wake


def classify(states: Iterable[ReportedState], now: datetime,
             stale_window: timedelta) -> List[Tuple[MacAddress, bool]]:
    """Picks (mac, wake) pairs of the due workers, each MAC at most once."""
    selected: List[Tuple[MacAddress, bool]] = []
    seen = set()
    for state in states:
        if state.mac in seen:
            continue
        seen.add(state.mac)
        if is_stale(state, now, stale_window):
            selected.append((state.mac, state.wake))
    return selected


def select_stale_workers(store, stale_window: timedelta = timedelta(minutes=WORKER_STALE_MINUTES),
                         now: Optional[datetime] = None) -> List[Tuple[MacAddress, bool]]:
    """Reads the latest statuses and selects the workers due for evaluation.

    A failing query yields an empty selection.
    """
    try:
        states = store.query_latest_statuses()
    except StoreQueryError as err:
        logger.error(f"Wake candidate query failed! {err}")
        return []
    selected = classify(states, now or datetime.now(timezone.utc), stale_window)
    logger.debug(f"{len(selected)} of {len(states)} workers selected for evaluation")
    return selected
