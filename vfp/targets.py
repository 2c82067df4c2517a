"""Targets file loading."""

import logging
from pathlib import Path

from vfp.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_TARGETS_PATH = Path("targets.txt")


def load_targets(path: Path | str = DEFAULT_TARGETS_PATH) -> list[str]:
    """Read probe targets, one IP address or hostname per line.

    Surrounding whitespace is stripped; blank lines and lines starting
    with ``#`` are skipped.  Order is preserved.

    Raises:
        FileNotFoundError: If *path* doesn't exist.
        ConfigError: If the file holds no targets.
    """
    p = Path(path).expanduser()
    if not p.is_file():
        raise FileNotFoundError(f"Targets file not found: {p}")

    targets = []
    for line in p.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        targets.append(line)

    if not targets:
        raise ConfigError(f"No targets in {p}")

    logger.debug("Loaded %d target(s) from %s", len(targets), p)
    return targets
