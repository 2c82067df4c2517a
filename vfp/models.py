"""Data models: NodeRegistry, EchoReply."""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType

MAX_NODE_ID = 255


class NodeRegistry(Mapping):
    """Immutable mapping from node id (0-255) to human-readable node name.

    Lookups through :meth:`resolve` never fail: an id that isn't
    configured resolves to a placeholder that embeds the id, so replies
    from unknown origins are still counted.
    """

    def __init__(self, nodes: Mapping[int, str] | None = None) -> None:
        entries: dict[int, str] = {}
        for node_id, name in (nodes or {}).items():
            if isinstance(node_id, bool) or not isinstance(node_id, int):
                raise ValueError(f"Node id must be an integer, got {node_id!r}")
            if not 0 <= node_id <= MAX_NODE_ID:
                raise ValueError(
                    f"Node id {node_id} out of range 0-{MAX_NODE_ID}"
                )
            if not isinstance(name, str) or not name:
                raise ValueError(
                    f"Node name for id {node_id} must be a non-empty string"
                )
            entries[node_id] = name
        self._nodes = MappingProxyType(entries)

    def resolve(self, node_id: int) -> str:
        """Return the configured name for *node_id*, or a placeholder."""
        name = self._nodes.get(node_id)
        if name is None:
            return placeholder_name(node_id)
        return name

    def __getitem__(self, node_id: int) -> str:
        return self._nodes[node_id]

    def __iter__(self) -> Iterator[int]:
        return iter(self._nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    def __repr__(self) -> str:
        return f"NodeRegistry({dict(self._nodes)!r})"


def placeholder_name(node_id: int) -> str:
    """Name used for ids missing from the registry."""
    return f"unknown (id {node_id})"


@dataclass(frozen=True)
class EchoReply:
    """An accepted echo reply, as observed by a listener.

    Attributes:
        source: Address the reply came from (the anycast target).
        identifier: Echo identifier, i.e. the id of the node that probed.
        node: Registry name resolved from *identifier*.
    """

    source: str
    identifier: int
    node: str
