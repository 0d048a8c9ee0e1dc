from dynaconf import Dynaconf

from .base import NetworkGateway
from .local import LocalGateway
from .ssh import SshGateway


def get_gateway(config: Dynaconf) -> NetworkGateway:
    """Gateway factory: returns an instance of the configured network backend."""

    backend = config.get("general", {}).get("network_backend", "local")
    network = config.get("network", {})

    if backend == "local":
        return LocalGateway(neigh_timeout=network.get("neigh_timeout", 5.0),
                            ping_timeout=network.get("ping_timeout", 1))
    elif backend == "ssh":
        section = dict(config.get("ssh_router", {}))
        section.setdefault("ping_timeout", network.get("ping_timeout", 1))
        return SshGateway(section)
    else:
        raise ValueError(f"Unsupported network backend: {backend}")
