from abc import ABC, abstractmethod

from utils import IPAddress


class NetworkGateway(ABC):
    """Abstract base class for the neighbor table and liveness probes."""

    @abstractmethod
    def ip_neigh(self) -> str:
        """Returns one snapshot of the neighbor table as printed by 'ip neigh'.

        Lines look like
        '192.168.178.26 dev enp4s0 lladdr 12:34:56:78:9a:bc REACHABLE'.

        Raises:
            ResolutionError: if the table could not be fetched in time.
        """

    @abstractmethod
    def ping(self, address: IPAddress) -> bool:
        """Sends a single echo request; True if the host answered.

        Raises:
            ProbeError: if the probe could not be run.
        """
