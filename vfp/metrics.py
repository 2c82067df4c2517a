"""Metrics sink contract and the in-process counter backend."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod


class MetricsSink(ABC):
    """Receives probe and reply events from the core.

    The core only increments; reading and exposition belong to the
    concrete backend.
    """

    @abstractmethod
    def record_probe_sent(self) -> None:
        """Count one echo request accepted by the OS."""

    @abstractmethod
    def record_reply_received(self, origin: str) -> None:
        """Count one echo reply whose identifier resolved to *origin*."""


class Counters(MetricsSink):
    """Thread-safe monotonic counters.

    ``probes_sent`` is scoped to this process (labelled with *source*,
    the local node's name); ``replies_received`` is partitioned by origin
    label.  Prober and listeners increment from different threads, so
    every update happens under one lock.

    Attributes:
        source: Name of the local node, attached to every snapshot.
    """

    def __init__(self, source: str = "") -> None:
        self.source = source
        self._lock = threading.Lock()
        self._probes_sent = 0
        self._replies: dict[str, int] = {}

    def record_probe_sent(self) -> None:
        with self._lock:
            self._probes_sent += 1

    def record_reply_received(self, origin: str) -> None:
        with self._lock:
            self._replies[origin] = self._replies.get(origin, 0) + 1

    def snapshot(self) -> dict:
        """Return a consistent copy of all counters.

        Returns:
            A dict with keys ``source``, ``probes_sent`` and
            ``replies_received`` (origin label → count, sorted by count
            descending).
        """
        with self._lock:
            probes_sent = self._probes_sent
            replies = dict(self._replies)
        return {
            "source": self.source,
            "probes_sent": probes_sent,
            "replies_received": dict(
                sorted(replies.items(), key=lambda item: item[1], reverse=True)
            ),
        }
