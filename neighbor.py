import logging
from typing import Dict, Iterable, Iterator, Optional, Tuple

from device import MacAddress
from errors import ResolutionError
from network.base import NetworkGateway
from utils import IPAddress, parse_address

logger = logging.getLogger(__name__)

MacIpMapping = Dict[MacAddress, Optional[IPAddress]]

LLADDR_MARKER = "lladdr"


def _neigh_entries(neigh_output: str) -> Iterator[Tuple[str, str, str]]:
    """Yields (address token, link-layer address token, line) of every entry with an lladdr."""
    for line in neigh_output.splitlines():
        segments = line.split()
        if len(segments) < 3:
            continue
        address_token, rest = segments[0], segments[1:]
        for marker, token in zip(rest, rest[1:]):
            if marker == LLADDR_MARKER:
                yield address_token, token, line.strip()
                break


def _entry_mac(token: str, line: str) -> MacAddress:
    try:
        return MacAddress.parse(token)
    except ValueError as err:
        raise ResolutionError(f"Malformed neighbor entry '{line}': {err}") from err


def macs_to_addrs(macs: Iterable[MacAddress], gateway: NetworkGateway) -> MacIpMapping:
    """Maps every requested MAC to its address in the current neighbor table.

    Returns:
        MacIpMapping: exactly one entry per requested MAC, None when the MAC is
        not in the table or its address cannot be parsed.

    Raises:
        ResolutionError: if the table cannot be fetched or is malformed.
    """
    addrs: MacIpMapping = {mac: None for mac in macs}
    if not addrs:
        return addrs
    for address_token, mac_token, line in _neigh_entries(gateway.ip_neigh()):
        mac = _entry_mac(mac_token, line)
        if mac not in addrs:
            continue
        address = parse_address(address_token)
        if address is None:
            logger.debug(f"Ignoring unparseable address '{address_token}' of {mac}")
        elif addrs[mac] is None:
            addrs[mac] = address
    return addrs


def addr_to_mac(address: IPAddress, gateway: NetworkGateway) -> Optional[MacAddress]:
    """Finds the MAC of a neighbor by its address.

    Only the entry of ``address`` is parsed; malformed entries of other
    neighbors are ignored. No lookup happens for loopback and multicast
    addresses.

    Raises:
        ResolutionError: if the table cannot be fetched or the entry of
        ``address`` is malformed.
    """
    if address.is_loopback or address.is_multicast:
        return None
    for address_token, mac_token, line in _neigh_entries(gateway.ip_neigh()):
        if parse_address(address_token) == address:
            return _entry_mac(mac_token, line)
    return None
