"""Target resolution helper for the prober."""

import ipaddress
import logging
import socket

logger = logging.getLogger(__name__)


def resolve_target(target: str) -> tuple[int, str]:
    """Resolve a target to exactly one address.

    Wraps ``socket.getaddrinfo``.  When the target has both A and AAAA
    records the first IPv4 address wins, otherwise the first IPv6
    address is used.  IP literals resolve to themselves without a DNS
    lookup.  An IPv4-mapped IPv6 address (``::ffff:a.b.c.d``) counts
    as IPv4, so it is probed over the IPv4 socket.

    Args:
        target: IP literal or hostname (e.g. ``"192.0.2.1"``,
            ``"anycast.example.net"``).

    Returns:
        ``(family, ip)`` where *family* is ``socket.AF_INET`` or
        ``socket.AF_INET6``.

    Raises:
        socket.gaierror: If resolution fails or yields no usable address.
    """
    logger.debug("Resolving %s", target)

    results = socket.getaddrinfo(
        target,
        None,
        family=socket.AF_UNSPEC,
        type=socket.SOCK_DGRAM,
    )

    first_v6: str | None = None
    for family, _type, _proto, _canonname, sockaddr in results:
        # sockaddr is (ip, port) for AF_INET, (ip, port, flow, scope) for AF_INET6
        if family == socket.AF_INET:
            logger.debug("Resolved %s → %s", target, sockaddr[0])
            return socket.AF_INET, sockaddr[0]
        if family == socket.AF_INET6 and first_v6 is None:
            first_v6 = sockaddr[0]

    if first_v6 is None:
        raise socket.gaierror(
            socket.EAI_NONAME, f"No IPv4 or IPv6 address for {target!r}"
        )

    mapped = ipaddress.IPv6Address(first_v6.split("%", 1)[0]).ipv4_mapped
    if mapped is not None:
        logger.debug("Resolved %s → %s (IPv4-mapped)", target, mapped)
        return socket.AF_INET, str(mapped)

    logger.debug("Resolved %s → %s", target, first_v6)
    return socket.AF_INET6, first_v6
