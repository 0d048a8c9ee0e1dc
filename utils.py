import asyncio
import ipaddress
import logging
import re
from typing import Optional, Tuple, Union

import paramiko
from mac_vendor_lookup import AsyncMacLookup

logger = logging.getLogger(__name__)

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

GLOBAL_BROADCAST = ipaddress.IPv4Address("255.255.255.255")

_MAC_PATTERN = re.compile(r"^[0-9A-F]{2}(:[0-9A-F]{2}){5}$")


def format_mac(mac: str) -> str:
    """Formats a MAC address to uppercase with colons.

    Raises:
        ValueError: if the result is not six colon-separated hex octets.
    """
    formatted = mac.strip().upper().replace("-", ":")
    if not _MAC_PATTERN.match(formatted):
        raise ValueError(f"Invalid MAC address: {mac!r}")
    return formatted


def parse_address(text: str) -> Optional[IPAddress]:
    """Parses an IPv4 or IPv6 address, returning None if the text is not one."""
    try:
        return ipaddress.ip_address(text.strip())
    except ValueError:
        return None


def broadcast_address(address: Optional[IPAddress]) -> ipaddress.IPv4Address:
    """Returns the /24 broadcast for an IPv4 address, else the global broadcast."""
    if isinstance(address, ipaddress.IPv4Address):
        network = ipaddress.IPv4Network(f"{address}/24", strict=False)
        return network.broadcast_address
    return GLOBAL_BROADCAST


def vendor_name(mac: str) -> Optional[str]:
    """Looks up the NIC vendor of a MAC address, None if unknown.

    Runs its own event loop, so it can be called from scheduler threads.
    """
    try:
        return asyncio.run(AsyncMacLookup().lookup(mac))
    except Exception as e:  # pylint: disable=broad-except
        logger.debug(f"Could not determine vendor for MAC {mac}: {e}")
        return None


class SSHClient:
    """A utility class for handling SSH connections and command execution."""

    def __init__(self, hostname: str, username: str, password: Optional[str] = None,
                  timeout: float = 10):
        self.hostname = hostname
        self.username = username
        self.password = password
        self.timeout = timeout
        self.client: Optional[paramiko.SSHClient] = None

    def connect(self) -> bool:
        """Connects to the SSH server, using default SSH keys and agent."""
        self.client = paramiko.SSHClient()
        self.client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        try:
            if self.password:
                self.client.connect(hostname=self.hostname, username=self.username,
                                    password=self.password, timeout=self.timeout)
            else:
                self.client.connect(hostname=self.hostname, username=self.username,
                                    timeout=self.timeout, look_for_keys=True, allow_agent=True)
            return True
        except (paramiko.SSHException, OSError) as e:
            logger.error(f"Error connecting to {self.hostname}: {e}")
            self.client = None
            return False

    def run(self, command: str, timeout: Optional[float] = None) -> Tuple[int, str]:
        """Executes a command and returns its exit status and stdout.

        Raises:
            paramiko.SSHException, OSError: on connection problems or when the
                command does not finish within the timeout.
        """
        if not self.client:
            raise paramiko.SSHException("SSH client not connected. Call connect() first.")
        _, stdout, stderr = self.client.exec_command(command, timeout=timeout or self.timeout)
        output = stdout.read().decode()
        error = stderr.read().decode().strip()
        status = stdout.channel.recv_exit_status()
        if error:
            logger.debug(f"Command '{command}' returned error: {error}")
        return status, output

    def close(self):
        """Closes the SSH connection."""
        if self.client:
            self.client.close()
            self.client = None
