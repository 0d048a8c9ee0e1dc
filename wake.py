import logging
import socket
import time
from dataclasses import dataclass
from typing import Callable, Iterable, Mapping, Optional

from wakeonlan import create_magic_packet

from device import MacAddress
from errors import DispatchError
from utils import IPAddress, broadcast_address, vendor_name

logger = logging.getLogger(__name__)

WAKE_PORT = 9


@dataclass(frozen=True)
class WakeSettings:
    port: int = WAKE_PORT
    pacing: float = 0.01
    send_timeout: float = 2.0
    lookup_vendor: bool = False

    @classmethod
    def from_config(cls, section) -> "WakeSettings":
        """Builds settings from the ``[wake]`` section; pacing is given in ms."""
        section = section or {}
        return cls(
            port=int(section.get("port", WAKE_PORT)),
            pacing=float(section.get("pacing_ms", 10)) / 1000,
            send_timeout=float(section.get("send_timeout", 2.0)),
            lookup_vendor=bool(section.get("lookup_vendor", False)),
        )


def _broadcast_socket(timeout: float) -> socket.socket:
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
    sock.settimeout(timeout)
    return sock


class WakeDispatcher:
    """Sends magic packets to the broadcast address of sleeping workers."""

    def __init__(self, settings: WakeSettings = WakeSettings(),
                 socket_factory: Callable[[float], socket.socket] = _broadcast_socket,
                 sleep: Callable[[float], None] = time.sleep):
        self.settings = settings
        self.socket_factory = socket_factory
        self.sleep = sleep

    def dispatch(self, targets: Iterable[MacAddress],
                 resolved: Mapping[MacAddress, Optional[IPAddress]]) -> None:
        """Wakes every target, pacing the sends.

        Raises:
            DispatchError: on the first failing send; remaining targets are skipped.
        """
        targets = sorted(targets, key=str)
        if not targets:
            return
        try:
            sock = self.socket_factory(self.settings.send_timeout)
        except OSError as err:
            raise DispatchError(f"Could not open broadcast socket: {err}") from err
        try:
            for index, mac in enumerate(targets):
                if index:
                    self.sleep(self.settings.pacing)
                address = resolved.get(mac)
                destination = broadcast_address(address)
                try:
                    sock.sendto(create_magic_packet(str(mac)), (str(destination), self.settings.port))
                except OSError as err:
                    raise DispatchError(f"Waking {mac} via {destination} failed: {err}") from err
                logger.info("Waking %s%s with %s (%s)", mac, self._label(mac), destination,
                            address if address is not None else "ip not available")
        finally:
            sock.close()

    def _label(self, mac: MacAddress) -> str:
        if not self.settings.lookup_vendor:
            return ""
        vendor = vendor_name(str(mac))
        return f" [{vendor}]" if vendor else ""
