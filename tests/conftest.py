"""Shared fixtures: in-memory stand-ins for the raw ICMP sockets."""

import queue
import socket

import pytest

from vfp.icmp import PROTO_ICMP, PROTO_ICMPV6

_END = object()


class FakeSocket:
    """In-memory replacement for ``vfp.sockets.IcmpSocket``.

    ``deliver()`` queues a datagram for ``recv_from``; ``end()`` queues an
    end-of-stream marker that closes the socket when it is read, so a
    listener drains everything delivered before it and then terminates.
    """

    def __init__(self, family: int) -> None:
        self.family = family
        self.sent: list[tuple[bytes, str]] = []
        self.send_error: OSError | None = None
        self.closed = False
        self._inbox: queue.Queue = queue.Queue()

    @property
    def family_name(self) -> str:
        return "IPv4" if self.family == socket.AF_INET else "IPv6"

    @property
    def protocol(self) -> int:
        return PROTO_ICMP if self.family == socket.AF_INET else PROTO_ICMPV6

    def send_to(self, data: bytes, address: str) -> int:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append((data, address))
        return len(data)

    def deliver(self, data: bytes, source: str) -> None:
        self._inbox.put((data, source))

    def deliver_error(self, exc: Exception) -> None:
        self._inbox.put(exc)

    def end(self) -> None:
        self._inbox.put(_END)

    def recv_from(self, bufsize: int = 1500) -> tuple[bytes, str]:
        try:
            item = self._inbox.get(timeout=5)
        except queue.Empty:
            raise OSError("fake socket read timed out") from None
        if item is _END:
            self.closed = True
            raise OSError("socket closed")
        if isinstance(item, Exception):
            raise item
        return item

    def close(self) -> None:
        self.closed = True
        self._inbox.put(_END)


class FakeSocketPair:
    """Pair of ``FakeSocket`` with the ``SocketPair`` interface."""

    def __init__(self) -> None:
        self.v4 = FakeSocket(socket.AF_INET)
        self.v6 = FakeSocket(socket.AF_INET6)

    def for_family(self, family: int) -> FakeSocket:
        return self.v4 if family == socket.AF_INET else self.v6

    def close(self) -> None:
        self.v4.close()
        self.v6.close()

    def __enter__(self) -> "FakeSocketPair":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


@pytest.fixture
def fake_pair() -> FakeSocketPair:
    return FakeSocketPair()
