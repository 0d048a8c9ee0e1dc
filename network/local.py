import subprocess

from errors import ProbeError, ResolutionError
from utils import IPAddress
from .base import NetworkGateway


class LocalGateway(NetworkGateway):
    """Implementation of NetworkGateway running iproute2 and ping on this host."""

    def __init__(self, neigh_timeout: float = 5.0, ping_timeout: int = 1):
        self.neigh_timeout = neigh_timeout
        self.ping_timeout = ping_timeout

    def ip_neigh(self) -> str:
        try:
            result = subprocess.run(["ip", "neigh"], capture_output=True, text=True,
                                    timeout=self.neigh_timeout, check=True)
        except (OSError, subprocess.SubprocessError) as err:
            raise ResolutionError(f"'ip neigh' failed: {err}") from err
        return result.stdout

    def ping(self, address: IPAddress) -> bool:
        command = ["ping", "-c", "1", "-W", str(self.ping_timeout), str(address)]
        try:
            result = subprocess.run(command, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL,
                                    timeout=self.ping_timeout + 1)
        except (OSError, subprocess.SubprocessError) as err:
            raise ProbeError(f"ping {address} failed: {err}") from err
        return result.returncode == 0
