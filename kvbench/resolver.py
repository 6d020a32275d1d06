from __future__ import annotations

import ipaddress
import logging
import random
import socket
from dataclasses import dataclass
from typing import Callable

from .errors import ResolutionError

LOGGER = logging.getLogger("kvbench.resolver")


@dataclass(frozen=True)
class ConnectionTarget:
    address: str
    port: int

    def __str__(self) -> str:
        if ":" in self.address:
            return f"[{self.address}]:{self.port}"
        return f"{self.address}:{self.port}"


class EndpointResolver:
    """Pick a random server address per dial out of everything the hostname resolves to.

    Every call re-resolves the hostname, so long runs follow changes in the
    answer set and connections spread over all of its members. The answer is
    sorted before the random draw, which keeps index ``k`` pointing at the
    same address for identical answers regardless of the order the system
    resolver returned them in.
    """

    def __init__(
        self,
        lookup: Callable[..., list] = socket.getaddrinfo,
        rng: random.Random | None = None,
    ) -> None:
        self._lookup = lookup
        self._rng = rng or random.Random()

    def resolve(self, host: str) -> list[str]:
        try:
            answers = self._lookup(host, None, 0, socket.SOCK_STREAM)
        except (OSError, UnicodeError) as exc:
            raise ResolutionError(f"failed to resolve {host!r}: {exc}") from exc

        addresses = {
            ipaddress.ip_address(sockaddr[0].split("%", 1)[0])
            for _family, _type, _proto, _canonname, sockaddr in answers
        }
        if not addresses:
            raise ResolutionError(f"no addresses found for {host!r}")
        ordered = sorted(addresses, key=lambda addr: (addr.version, addr.packed))
        return [str(addr) for addr in ordered]

    def select(self, host: str, port: int) -> ConnectionTarget:
        addresses = self.resolve(host)
        index = self._rng.randrange(len(addresses))
        target = ConnectionTarget(address=addresses[index], port=port)
        LOGGER.info("Dialing: %s", target)
        return target


__all__ = ["ConnectionTarget", "EndpointResolver"]
