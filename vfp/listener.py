"""Reply listener: receives echo replies on one socket and counts them by origin."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from vfp import icmp
from vfp.errors import (
    BodyMismatchError,
    ReceiveError,
    ReplyError,
    UnexpectedTypeError,
)
from vfp.models import EchoReply
from vfp.sockets import RECV_BUFSIZE

if TYPE_CHECKING:
    from vfp.metrics import MetricsSink
    from vfp.models import NodeRegistry
    from vfp.sockets import IcmpSocket

logger = logging.getLogger(__name__)


class ReplyListener:
    """Blocking receive loop for one address family.

    Every datagram is parsed with the protocol number of the socket's own
    family, checked to be an echo reply, and its identifier resolved
    through the registry.  Nothing that happens to a single datagram
    stops the loop; only closing the socket (or :meth:`stop`) does.

    Args:
        sock: The socket to read; shared with the prober.
        registry: Maps echo identifiers to node names.
        metrics: Sink that counts replies per origin.
    """

    def __init__(
        self,
        sock: IcmpSocket,
        registry: NodeRegistry,
        metrics: MetricsSink,
    ) -> None:
        self._sock = sock
        self._registry = registry
        self._metrics = metrics
        self._stopped = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def read_echo_reply(self) -> EchoReply:
        """Receive one datagram and turn it into a counted :class:`EchoReply`.

        Raises:
            ReceiveError: If the socket read fails.
            ParseError: If the datagram isn't a well-formed ICMP message.
            UnexpectedTypeError: If it is ICMP but not an echo reply.
            BodyMismatchError: If an echo-reply type carries another body.
        """
        try:
            data, source = self._sock.recv_from(RECV_BUFSIZE)
        except OSError as exc:
            raise ReceiveError(f"unable to read from {self._sock.family_name} socket: {exc}") from exc

        proto = self._sock.protocol
        message = icmp.parse_message(proto, data)

        if message.type != icmp.ECHO_REPLY[proto]:
            raise UnexpectedTypeError(
                f"unexpected ICMP message type {message.type} code {message.code} from {source}"
            )

        body = message.body
        if not isinstance(body, icmp.Echo):
            raise BodyMismatchError(
                f"echo reply from {source} has a {type(body).__name__} body"
            )

        node = self._registry.resolve(body.identifier)
        self._metrics.record_reply_received(node)
        return EchoReply(source=source, identifier=body.identifier, node=node)

    def run(self) -> None:
        """Process datagrams until the socket is closed or :meth:`stop` is called."""
        logger.debug("Listening for %s echo replies", self._sock.family_name)
        while not self._should_exit():
            try:
                reply = self.read_echo_reply()
            except ReplyError as exc:
                if self._should_exit():
                    break
                logger.warning("%s", exc)
                continue
            logger.debug(
                "ICMP echo reply from %s id %d (%s)",
                reply.source,
                reply.identifier,
                reply.node,
            )
        logger.debug("%s listener terminated", self._sock.family_name)

    def start(self) -> threading.Thread:
        """Run :meth:`run` on a daemon thread and return it."""
        self._thread = threading.Thread(
            target=self.run,
            name=f"listener-{self._sock.family_name.lower()}",
            daemon=True,
        )
        self._thread.start()
        return self._thread

    def stop(self) -> None:
        """Ask the loop to exit after the current receive returns."""
        self._stopped.set()

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def _should_exit(self) -> bool:
        return self._stopped.is_set() or self._sock.closed
