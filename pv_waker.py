import argparse
import logging
import threading

from dynaconf import Dynaconf
from mac_vendor_lookup import MacLookup

from excess import ExcessThresholds
from heartbeat import Heartbeat, HeartbeatService, HeartbeatSettings
from just_woke import JustWokeState
from network import get_gateway
from report import ReportService
from store import InfluxStore
from wake import WakeDispatcher, WakeSettings

logger = logging.getLogger(__name__)


def load_config(settings_files=None) -> Dynaconf:
    """Loads settings; values can be overridden with PVWAKE_ environment variables."""
    return Dynaconf(
        settings_files=settings_files or ['config/settings.toml'],
        envvar_prefix="PVWAKE",
    )


class Waker:
    """Wires the heartbeat and the report service around shared state."""

    def __init__(self, config: Dynaconf):
        self.settings = HeartbeatSettings.from_config(config.get("heartbeat"))
        self.thresholds = ExcessThresholds.from_config(config.get("excess"))
        self.store = InfluxStore.from_config(config.get("influxdb"))
        self.gateway = get_gateway(config)
        self.just_woke = JustWokeState()
        self.heartbeat = Heartbeat(
            self.store, self.gateway,
            WakeDispatcher(WakeSettings.from_config(config.get("wake"))),
            self.just_woke, self.thresholds, self.settings,
        )
        self.service = HeartbeatService(self.heartbeat, self.settings)
        self.reports = ReportService(self.store, self.gateway, self.just_woke, self.thresholds)


def run(config: Dynaconf, once: bool = False, stop: threading.Event = None):
    """Runs a single cycle, or the heartbeat until ``stop`` is set or interrupted."""
    waker = Waker(config)
    if once:
        result = waker.service.run_once()
        logger.info(f"Woken: {', '.join(sorted(map(str, result.woken))) or 'none'}")
        return result
    stop = stop or threading.Event()
    if not waker.service.start():
        return None
    try:
        stop.wait()
    except KeyboardInterrupt:
        logger.info("Interrupted, waiting for the running heartbeat to finish")
    finally:
        waker.service.shutdown()
    return None


def main():
    parser = argparse.ArgumentParser(description="Wake sleeping workers on photo-voltaic power excess")
    parser.add_argument("--once", action="store_true", help="Run a single heartbeat cycle and exit")
    parser.add_argument("--update-mac-db", action="store_true", help="Force update of the MAC vendor database")
    parser.add_argument("--settings", action="append", help="Settings file (default: config/settings.toml)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.debug:
        logging.basicConfig(level=logging.DEBUG, format='%(asctime)s - %(levelname)s - %(message)s')
    else:
        logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')

    if args.update_mac_db:
        MacLookup().update_vendors()

    run(load_config(args.settings), once=args.once)


if __name__ == "__main__":
    main()
