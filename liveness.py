import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Set, Tuple

from device import MacAddress
from errors import ProbeError
from neighbor import MacIpMapping
from network.base import NetworkGateway
from utils import IPAddress

logger = logging.getLogger(__name__)


def _is_asleep(mac: MacAddress, address: Optional[IPAddress], gateway: NetworkGateway) -> bool:
    if address is None:
        logger.debug(f"{mac} has no known address, presumed asleep")
        return True
    try:
        awake = gateway.ping(address)
    except ProbeError as err:
        logger.debug(f"Probing {mac} ({address}) failed, presumed asleep: {err}")
        return True
    logger.debug(f"{mac} ({address}) is {'awake' if awake else 'asleep'}")
    return not awake


def sleeping_macs(mapping: MacIpMapping, gateway: NetworkGateway, max_workers: int = 8) -> Set[MacAddress]:
    """Returns the MACs that did not answer a single ping.

    MACs without an address are presumed asleep. Probes run concurrently and
    one failing probe does not affect the others.
    """
    if not mapping:
        return set()

    def probe(item) -> Tuple[MacAddress, bool]:
        mac, address = item
        return mac, _is_asleep(mac, address, gateway)

    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(mapping)))) as pool:
        return {mac for mac, asleep in pool.map(probe, mapping.items()) if asleep}
