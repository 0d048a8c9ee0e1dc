"""Power-excess verdict from photo-voltaic aggregates.

The verdict is derived from two time-windowed means: the mean generation
current decides the *sun level* (how many of the ascending ``sun_levels``
it reaches) and the sun level selects the battery voltage thresholds the
mean voltage has to exceed. Without sun the voltage is never queried.
"""
import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, Optional, Sequence, Tuple

from errors import ConfigError, DataUnavailable

logger = logging.getLogger(__name__)

SUN_LEVELS = (7.0, 25.0, 40.0)
MAYBE_VOLTAGE_THRESHOLDS = (12.7, 12.5, 12.2)
YES_VOLTAGE_THRESHOLDS = (13.2, 13.0, 12.7)


class ExcessStatus(IntEnum):
    NO = 0
    MAYBE = 1
    YES = 2


@dataclass(frozen=True)
class ExcessThresholds:
    sun_levels: Tuple[float, ...] = SUN_LEVELS
    maybe_voltage: Tuple[float, ...] = MAYBE_VOLTAGE_THRESHOLDS
    yes_voltage: Tuple[float, ...] = YES_VOLTAGE_THRESHOLDS
    current_field: str = "pv_current"
    current_window: str = "30m"
    voltage_field: str = "battery_voltage"
    voltage_window: str = "15m"

    def __post_init__(self):
        if not self.sun_levels:
            raise ConfigError("At least one sun level is required")
        if list(self.sun_levels) != sorted(set(self.sun_levels)):
            raise ConfigError(f"Sun levels must be strictly ascending: {self.sun_levels}")
        if not len(self.sun_levels) == len(self.maybe_voltage) == len(self.yes_voltage):
            raise ConfigError("Every sun level needs a maybe and a yes voltage threshold")
        for tier, (maybe, yes) in enumerate(zip(self.maybe_voltage, self.yes_voltage), start=1):
            if yes <= maybe:
                raise ConfigError(f"Yes threshold {yes} must exceed maybe threshold {maybe} (tier {tier})")
        for name, values in (("maybe_voltage", self.maybe_voltage), ("yes_voltage", self.yes_voltage)):
            if any(higher > lower for lower, higher in zip(values, values[1:])):
                raise ConfigError(f"{name} must not rise with the sun level: {values}")

    @classmethod
    def from_config(cls, section) -> "ExcessThresholds":
        """Builds thresholds from the ``[excess]`` settings section."""
        section = section or {}
        defaults = cls()
        return cls(
            sun_levels=_floats(section.get("sun_levels", defaults.sun_levels)),
            maybe_voltage=_floats(section.get("maybe_voltage", defaults.maybe_voltage)),
            yes_voltage=_floats(section.get("yes_voltage", defaults.yes_voltage)),
            current_field=section.get("current_field", defaults.current_field),
            current_window=section.get("current_window", defaults.current_window),
            voltage_field=section.get("voltage_field", defaults.voltage_field),
            voltage_window=section.get("voltage_window", defaults.voltage_window),
        )


def _floats(values: Sequence) -> Tuple[float, ...]:
    try:
        return tuple(float(v) for v in values)
    except (TypeError, ValueError) as err:
        raise ConfigError(f"Invalid threshold list {values!r}: {err}") from err


def sun_level(mean_current: float, levels: Sequence[float] = SUN_LEVELS) -> int:
    """Number of ascending levels the mean current meets or exceeds."""
    level = 0
    for threshold in levels:
        if mean_current < threshold:
            break
        level += 1
    return level


def evaluate(mean_current: Optional[float],
             mean_voltage: Callable[[], Optional[float]],
             thresholds: ExcessThresholds = ExcessThresholds()) -> ExcessStatus:
    """Classifies the current power excess.

    Args:
        mean_current: Mean generation current over the long window, None if
            there is no data.
        mean_voltage: Called at most once, and only when the sun level is at
            least 1, to obtain the mean battery voltage over the short window.
        thresholds: Tunable levels.

    Returns:
        ExcessStatus: NO, MAYBE or YES. Exceptions raised by ``mean_voltage``
        propagate to the caller.
    """
    if mean_current is None:
        logger.warning("Could not determine mean of %s because of missing data!",
                       thresholds.current_field)
        return ExcessStatus.NO
    level = sun_level(mean_current, thresholds.sun_levels)
    if level < 1:
        return ExcessStatus.NO
    voltage = mean_voltage()
    if voltage is None:
        logger.warning("Could not determine mean of %s because of missing data!",
                       thresholds.voltage_field)
        return ExcessStatus.NO
    if voltage > thresholds.yes_voltage[level - 1]:
        return ExcessStatus.YES
    if voltage > thresholds.maybe_voltage[level - 1]:
        return ExcessStatus.MAYBE
    return ExcessStatus.NO


def query_pv_excess(store, thresholds: ExcessThresholds = ExcessThresholds()) -> ExcessStatus:
    """Queries the store for both aggregates and evaluates them.

    Raises:
        StoreQueryError: if either query fails.
    """
    return evaluate(
        _mean_or_none(store, thresholds.current_field, thresholds.current_window),
        lambda: _mean_or_none(store, thresholds.voltage_field, thresholds.voltage_window),
        thresholds,
    )


def _mean_or_none(store, field: str, window: str) -> Optional[float]:
    try:
        return store.mean_over_window(field, window)
    except DataUnavailable:
        return None
