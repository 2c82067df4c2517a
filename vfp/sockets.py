"""Raw ICMP sockets: one per address family, shared by prober and listener."""

import errno
import logging
import socket
import struct

from vfp.errors import SocketSetupError, TruncatedPacketError
from vfp.icmp import PROTO_ICMP, PROTO_ICMPV6

logger = logging.getLogger(__name__)

DEFAULT_SOURCE4 = "0.0.0.0"
DEFAULT_SOURCE6 = "::"

# Large enough for a standard-MTU ICMP datagram.
RECV_BUFSIZE = 1500

_IPV4_MIN_HEADER = 20

_FAMILY_NAMES = {socket.AF_INET: "IPv4", socket.AF_INET6: "IPv6"}


class IcmpSocket:
    """A raw ICMP endpoint bound to one local address of one family.

    Receives always return ICMP bytes: on IPv4 the kernel hands raw
    sockets the IP header too, which :meth:`recv_from` strips.
    """

    def __init__(self, sock: socket.socket) -> None:
        if sock.family not in _FAMILY_NAMES:
            raise ValueError(f"Unsupported address family: {sock.family!r}")
        self._sock = sock
        self._closed = False

    @classmethod
    def open(cls, family: int, source: str) -> "IcmpSocket":
        """Open a raw ICMP socket for *family* and bind it to *source*.

        Raises:
            SocketSetupError: If the socket cannot be created or bound
                (typically missing ``CAP_NET_RAW``).
        """
        name = _FAMILY_NAMES.get(family, str(family))
        proto = socket.IPPROTO_ICMP if family == socket.AF_INET else socket.IPPROTO_ICMPV6
        try:
            sock = socket.socket(family, socket.SOCK_RAW, proto)
        except OSError as exc:
            raise SocketSetupError(f"unable to listen on {name}: {exc}") from exc

        try:
            sock.bind((source, 0))
        except OSError as exc:
            sock.close()
            raise SocketSetupError(
                f"unable to bind {name} socket to {source}: {exc}"
            ) from exc

        logger.debug("Opened %s raw ICMP socket on %s", name, source)
        return cls(sock)

    @property
    def family(self) -> int:
        return self._sock.family

    @property
    def family_name(self) -> str:
        return _FAMILY_NAMES[self.family]

    @property
    def protocol(self) -> int:
        """ICMP protocol number for parsing, from the family we opened."""
        return PROTO_ICMP if self.family == socket.AF_INET else PROTO_ICMPV6

    @property
    def closed(self) -> bool:
        return self._closed

    def send_to(self, data: bytes, address: str) -> int:
        """Send *data* to *address*; returns the number of bytes accepted."""
        return self._sock.sendto(data, (address, 0))

    def recv_from(self, bufsize: int = RECV_BUFSIZE) -> tuple[bytes, str]:
        """Block until a datagram arrives.

        Returns:
            ``(icmp_bytes, source_ip)``.

        Raises:
            OSError: If the read fails (including after :meth:`close`).
            TruncatedPacketError: If an IPv4 datagram can't hold its own
                IP header.
        """
        data, addr = self._sock.recvfrom(bufsize)
        if self._closed:
            raise OSError(errno.EBADF, "socket closed")
        if self.family == socket.AF_INET:
            data = strip_ipv4_header(data)
        return data, addr[0]

    def close(self) -> None:
        """Close the socket, waking a reader blocked in :meth:`recv_from`."""
        if self._closed:
            return
        self._closed = True
        try:
            self._sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            # Unconnected raw sockets report ENOTCONN but readers still wake.
            pass
        self._sock.close()
        logger.debug("Closed %s raw ICMP socket", self.family_name)


def strip_ipv4_header(data: bytes) -> bytes:
    """Return the payload of an IPv4 datagram, using its IHL field."""
    if len(data) < _IPV4_MIN_HEADER:
        raise TruncatedPacketError(
            f"IPv4 datagram too short: {len(data)} bytes"
        )
    (ver_ihl,) = struct.unpack_from("!B", data)
    header_len = (ver_ihl & 0x0F) * 4
    if header_len < _IPV4_MIN_HEADER or len(data) < header_len:
        raise TruncatedPacketError(
            f"IPv4 header length {header_len} invalid for {len(data)}-byte datagram"
        )
    return data[header_len:]


class SocketPair:
    """Exactly one IPv4 and one IPv6 :class:`IcmpSocket`.

    Use as a context manager: both sockets are closed on exit, whatever
    the exit path.
    """

    def __init__(self, v4: IcmpSocket, v6: IcmpSocket) -> None:
        self.v4 = v4
        self.v6 = v6

    def for_family(self, family: int) -> IcmpSocket:
        """Return the socket that sends and receives *family*."""
        if family == socket.AF_INET:
            return self.v4
        if family == socket.AF_INET6:
            return self.v6
        raise ValueError(f"Unsupported address family: {family!r}")

    def close(self) -> None:
        try:
            self.v4.close()
        finally:
            self.v6.close()

    def __enter__(self) -> "SocketPair":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def open_socket_pair(
    source4: str = DEFAULT_SOURCE4,
    source6: str = DEFAULT_SOURCE6,
) -> SocketPair:
    """Open and bind both raw ICMP sockets.

    Raises:
        SocketSetupError: If either socket fails; nothing is left open.
    """
    v4 = IcmpSocket.open(socket.AF_INET, source4)
    try:
        v6 = IcmpSocket.open(socket.AF_INET6, source6)
    except SocketSetupError:
        v4.close()
        raise
    return SocketPair(v4, v6)
