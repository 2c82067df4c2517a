"""YAML configuration file loading."""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from vfp.errors import ConfigError
from vfp.models import MAX_NODE_ID, NodeRegistry
from vfp.prober import DEFAULT_POLICY, POLICIES
from vfp.sockets import DEFAULT_SOURCE4, DEFAULT_SOURCE6

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config.yml")
DEFAULT_INTERVAL = 1.0

__all__ = [
    "ConfigError",
    "ProbeConfig",
    "VfpConfig",
    "load_config",
    "parse_duration",
]


@dataclass(frozen=True)
class ProbeConfig:
    """The ``probe:`` section.

    Attributes:
        interval: Seconds between probe rounds.
        source4: Local IPv4 address the ICMP socket binds to.
        source6: Local IPv6 address the ICMPv6 socket binds to.
        policy: Target-selection policy, ``"all"`` or ``"random"``.
        immediate: Send the first round at startup rather than after
            one interval.
    """

    interval: float = DEFAULT_INTERVAL
    source4: str = DEFAULT_SOURCE4
    source6: str = DEFAULT_SOURCE6
    policy: str = DEFAULT_POLICY
    immediate: bool = True


@dataclass(frozen=True)
class VfpConfig:
    """Top-level configuration, immutable for the process lifetime.

    Attributes:
        id: Local node identifier (0-255), sent as the echo identifier.
        probe: Probe timing, source addresses and policy.
        nodes: Registry of every node's id and name.
    """

    id: int
    probe: ProbeConfig = field(default_factory=ProbeConfig)
    nodes: NodeRegistry = field(default_factory=NodeRegistry)

    @property
    def node_name(self) -> str:
        """Registry name of the local node."""
        return self.nodes.resolve(self.id)


_TOP_LEVEL_KEYS = {"id", "probe", "nodes"}
_PROBE_KEYS = {"interval", "source4", "source6", "policy", "immediate"}


def load_config(path: Path | str = DEFAULT_CONFIG_PATH) -> VfpConfig:
    """Load configuration from a YAML file.

    Args:
        path: Path to the YAML config file (default: ``./config.yml``).

    Returns:
        A populated ``VfpConfig`` instance.

    Raises:
        FileNotFoundError: If *path* doesn't exist.
        ConfigError: If the file contains invalid YAML, has an unexpected
            structure, or holds an invalid value.
    """
    resolved = Path(path).expanduser()
    if not resolved.is_file():
        raise FileNotFoundError(f"Config file not found: {resolved}")

    logger.debug("Loading config from %s", resolved)
    text = resolved.read_text(encoding="utf-8")

    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {resolved}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError(
            f"Expected a YAML mapping at the top level in {resolved}, "
            f"got {type(raw).__name__}"
        )

    return _build_config(raw, source=resolved)


# Go-style durations: "300ms", "1.5s", "1m30s".
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")
_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def parse_duration(value: object) -> float:
    """Convert a duration to seconds.

    Accepts a plain number of seconds or a Go-style duration string
    made of ``<number><unit>`` parts (``ns``, ``us``, ``ms``, ``s``,
    ``m``, ``h``).

    Raises:
        ConfigError: If *value* is unparseable or not positive.
    """
    if isinstance(value, bool):
        raise ConfigError(f"Invalid duration: {value!r}")

    if isinstance(value, (int, float)):
        seconds = float(value)
    elif isinstance(value, str):
        text = value.strip()
        pos = 0
        seconds = 0.0
        while pos < len(text):
            match = _DURATION_PART.match(text, pos)
            if match is None:
                raise ConfigError(f"Invalid duration: {value!r}")
            seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
            pos = match.end()
        if pos == 0:
            raise ConfigError(f"Invalid duration: {value!r}")
    else:
        raise ConfigError(f"Invalid duration: {value!r}")

    if seconds <= 0:
        raise ConfigError(f"Duration must be positive: {value!r}")
    return seconds


# ------------------------------------------------------------------
# Internal helpers
# ------------------------------------------------------------------


def _build_config(raw: dict, source: Path) -> VfpConfig:
    """Map raw YAML dict to a ``VfpConfig``, ignoring unknown keys."""
    _warn_unknown(raw, _TOP_LEVEL_KEYS, source, section="")

    if "id" not in raw:
        raise ConfigError(f"Missing required key 'id' in {source}")
    node_id = _parse_node_id(raw["id"])

    probe_raw = raw.get("probe") or {}
    if not isinstance(probe_raw, dict):
        raise ConfigError(f"'probe' must be a mapping in {source}")
    probe = _build_probe(probe_raw, source)

    nodes_raw = raw.get("nodes") or {}
    if not isinstance(nodes_raw, dict):
        raise ConfigError(f"'nodes' must be a mapping of id to name in {source}")
    nodes = _build_registry(nodes_raw)

    return VfpConfig(id=node_id, probe=probe, nodes=nodes)


def _build_probe(raw: dict, source: Path) -> ProbeConfig:
    _warn_unknown(raw, _PROBE_KEYS, source, section="probe.")
    kwargs: dict[str, object] = {}

    if "interval" in raw:
        kwargs["interval"] = parse_duration(raw["interval"])

    for key, wildcard in (("source4", DEFAULT_SOURCE4), ("source6", DEFAULT_SOURCE6)):
        if key in raw:
            if not isinstance(raw[key], str):
                raise ConfigError(f"'probe.{key}' must be an address string")
            # Empty means listen on all addresses.
            kwargs[key] = raw[key] or wildcard

    if "policy" in raw:
        policy = str(raw["policy"]).lower()
        if policy not in POLICIES:
            known = ", ".join(sorted(POLICIES))
            raise ConfigError(
                f"Unknown target policy {raw['policy']!r}. Known policies: {known}"
            )
        kwargs["policy"] = policy

    if "immediate" in raw:
        if not isinstance(raw["immediate"], bool):
            raise ConfigError("'probe.immediate' must be true or false")
        kwargs["immediate"] = raw["immediate"]

    return ProbeConfig(**kwargs)


def _parse_node_id(value: object) -> int:
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ConfigError(f"Invalid node id: {value!r}")
    try:
        node_id = int(value)  # type: ignore[call-overload]
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid node id: {value!r}") from None
    if not 0 <= node_id <= MAX_NODE_ID:
        raise ConfigError(f"Node id {node_id} out of range 0-{MAX_NODE_ID}")
    return node_id


def _build_registry(raw: dict) -> NodeRegistry:
    nodes: dict[int, str] = {}
    for key, name in raw.items():
        node_id = _parse_node_id(key)
        if node_id in nodes:
            raise ConfigError(f"Duplicate node id {node_id} in 'nodes'")
        nodes[node_id] = name
    try:
        return NodeRegistry(nodes)
    except ValueError as exc:
        raise ConfigError(f"Invalid 'nodes' entry: {exc}") from exc


def _warn_unknown(raw: dict, known: set[str], source: Path, section: str) -> None:
    unknown = set(map(str, raw)) - known
    if unknown:
        logger.warning(
            "Ignoring unknown config keys in %s: %s",
            source,
            ", ".join(section + key for key in sorted(unknown)),
        )
