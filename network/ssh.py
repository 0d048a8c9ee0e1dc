import threading
from typing import Optional

import paramiko

from errors import ProbeError, ResolutionError
from utils import IPAddress, SSHClient
from .base import NetworkGateway


class SshGateway(NetworkGateway):
    """Implementation of NetworkGateway for a router reachable over SSH.

    Used when the controller does not share a network segment with the
    workers: the router's neighbor table and ping are used instead.
    """

    def __init__(self, config):
        self.config = config
        self.router_ip = config.get("router_ip")
        self.router_user = config.get("router_user")
        self.router_password = config.get("router_password")
        self.ssh_timeout = config.get("ssh_timeout", 10)
        self.ping_timeout = config.get("ping_timeout", 1)
        self._client: Optional[SSHClient] = None
        self._lock = threading.Lock()

    def _connected(self) -> SSHClient:
        with self._lock:
            if self._client is None:
                client = SSHClient(hostname=self.router_ip, username=self.router_user,
                                   password=self.router_password, timeout=self.ssh_timeout)
                if not client.connect():
                    raise paramiko.SSHException(f"Could not connect to {self.router_ip}")
                self._client = client
            return self._client

    def _reset(self, client: SSHClient):
        """Drops ``client`` unless another call already replaced it."""
        with self._lock:
            if self._client is not client:
                return
            self._client = None
        client.close()

    def _run(self, command: str, timeout=None):
        client = self._connected()
        try:
            return client.run(command, timeout=timeout)
        except (paramiko.SSHException, OSError):
            self._reset(client)
            raise

    def ip_neigh(self) -> str:
        try:
            status, output = self._run("ip neigh")
        except (paramiko.SSHException, OSError) as err:
            raise ResolutionError(f"'ip neigh' on {self.router_ip} failed: {err}") from err
        if status != 0:
            raise ResolutionError(f"'ip neigh' on {self.router_ip} exited with {status}")
        return output

    def ping(self, address: IPAddress) -> bool:
        command = f"ping -c 1 -W {self.ping_timeout} {address}"
        try:
            status, _ = self._run(command, timeout=self.ping_timeout + self.ssh_timeout)
        except (paramiko.SSHException, OSError) as err:
            raise ProbeError(f"{command} on {self.router_ip} failed: {err}") from err
        return status == 0

    def close(self):
        with self._lock:
            client, self._client = self._client, None
        if client is not None:
            client.close()
