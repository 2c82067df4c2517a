"""Prober: builds and sends one tagged echo request per selected target."""

from __future__ import annotations

import logging
import random
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING

from vfp import icmp
from vfp.dns import resolve_target
from vfp.errors import ProbeError, ResolutionError, TransmitError
from vfp.models import MAX_NODE_ID

if TYPE_CHECKING:
    from vfp.metrics import MetricsSink
    from vfp.sockets import SocketPair

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Target-selection policies
# ---------------------------------------------------------------------------


class TargetPolicy(ABC):
    """Decides which targets get probed on a tick."""

    @abstractmethod
    def select(self, targets: Sequence[str]) -> list[str]:
        """Return the targets to probe this tick, in send order."""


class AllTargets(TargetPolicy):
    """Probe every target, in list order, on every tick."""

    def select(self, targets: Sequence[str]) -> list[str]:
        return list(targets)


class RandomTarget(TargetPolicy):
    """Probe one uniformly random target per tick."""

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    def select(self, targets: Sequence[str]) -> list[str]:
        if not targets:
            return []
        return [self._rng.choice(targets)]


POLICIES: dict[str, type[TargetPolicy]] = {
    "all": AllTargets,
    "random": RandomTarget,
}

DEFAULT_POLICY = "all"


def get_policy(name: str) -> TargetPolicy:
    """Look up and instantiate the target policy called *name*.

    Raises:
        ValueError: If *name* is not a known policy.
    """
    policy_cls = POLICIES.get(name)
    if policy_cls is None:
        known = ", ".join(sorted(POLICIES))
        raise ValueError(f"Unknown target policy {name!r}. Known policies: {known}")
    return policy_cls()


# ---------------------------------------------------------------------------
# Prober
# ---------------------------------------------------------------------------


class Prober:
    """Sends echo requests tagged with the local node id.

    The socket for each probe is chosen by the family the target
    resolves to, so an IPv4 target is only ever written to the IPv4
    socket and an IPv6 target to the IPv6 one.

    Args:
        sockets: The process-wide :class:`~vfp.sockets.SocketPair`.
        metrics: Sink that counts transmitted probes.
        node_id: Local node identifier (0-255), used as echo identifier.
        resolver: ``target -> (family, ip)``; defaults to
            :func:`vfp.dns.resolve_target`.
    """

    def __init__(
        self,
        sockets: SocketPair,
        metrics: MetricsSink,
        node_id: int,
        resolver: Callable[[str], tuple[int, str]] = resolve_target,
    ) -> None:
        if not 0 <= node_id <= MAX_NODE_ID:
            raise ValueError(f"Node id {node_id} out of range 0-{MAX_NODE_ID}")
        self.node_id = node_id
        self._sockets = sockets
        self._metrics = metrics
        self._resolve = resolver

    def send_probe(self, target: str) -> None:
        """Resolve *target* and send it one echo request.

        The echo identifier is always ``self.node_id``, the local node
        id given at construction.  The probes-sent counter goes up once
        the probe reaches the socket write, whether or not the OS accepts
        it; a target that fails to resolve is never counted.

        Raises:
            ResolutionError: If *target* doesn't resolve.
            TransmitError: If the socket write fails.
        """
        try:
            family, ip = self._resolve(target)
        except (OSError, UnicodeError) as exc:
            raise ResolutionError(target, f"unable to resolve: {exc}") from exc

        sock = self._sockets.for_family(family)
        message = icmp.echo_request(sock.protocol, self.node_id)
        packet = icmp.marshal(message, sock.protocol)

        self._metrics.record_probe_sent()
        try:
            sock.send_to(packet, ip)
        except OSError as exc:
            raise TransmitError(target, f"unable to send to {ip}: {exc}") from exc

        logger.debug("Sent echo request to %s (%s) id %d", target, ip, self.node_id)

    def run_round(self, targets: Sequence[str], policy: TargetPolicy) -> int:
        """Probe the targets *policy* selects, one after another.

        Per-target failures are logged and skipped.

        Returns:
            Number of probes the OS accepted this round.
        """
        sent = 0
        for target in policy.select(targets):
            try:
                self.send_probe(target)
            except ProbeError as exc:
                logger.warning("Probe failed: %s", exc)
                continue
            sent += 1
        return sent
