"""CLI entry point for the vfp probe agent."""

import logging
import signal
import sys

import click

from vfp import __version__
from vfp.config import VfpConfig, load_config
from vfp.errors import ConfigError, SocketSetupError
from vfp.listener import ReplyListener
from vfp.metrics import Counters
from vfp.output import render
from vfp.prober import POLICIES, Prober, get_policy
from vfp.scheduler import Scheduler
from vfp.sockets import SocketPair, open_socket_pair
from vfp.targets import load_targets

logger = logging.getLogger(__name__)

FORMATS = ("table", "json")

# How long shutdown waits for each listener thread to notice its socket closed.
_LISTENER_JOIN_TIMEOUT = 1.0


@click.command()
@click.option(
    "--config",
    "-c",
    "config_path",
    default="config.yml",
    show_default=True,
    type=click.Path(dir_okay=False),
    help="Path to YAML config file.",
)
@click.option(
    "--targets",
    "-t",
    "targets_path",
    default="targets.txt",
    show_default=True,
    type=click.Path(dir_okay=False),
    help="File with one target address or hostname per line.",
)
@click.option(
    "--policy",
    "-p",
    default=None,
    type=click.Choice(sorted(POLICIES), case_sensitive=False),
    help="Target-selection policy (overrides probe.policy in the config).",
)
@click.option(
    "--format",
    "-f",
    "output_format",
    default="table",
    type=click.Choice(FORMATS, case_sensitive=False),
    show_default=True,
    help="Format of the counter summary printed on exit.",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def main(
    config_path: str,
    targets_path: str,
    policy: str | None,
    output_format: str,
    verbose: bool,
) -> None:
    """Map anycast catchments with node-tagged ICMP echo probes."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )

    try:
        cfg = load_config(config_path)
        targets = load_targets(targets_path)
    except (ConfigError, FileNotFoundError) as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    logger.debug("Config loaded: %s", cfg)

    counters = Counters(source=cfg.node_name)

    logger.info(
        "Starting vfp %s id %d source %s and %s probing %d targets every %ss",
        __version__,
        cfg.id,
        cfg.probe.source4,
        cfg.probe.source6,
        len(targets),
        cfg.probe.interval,
    )

    try:
        sockets = open_socket_pair(cfg.probe.source4, cfg.probe.source6)
    except SocketSetupError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    with sockets:
        _run_agent(cfg, targets, sockets, counters, policy or cfg.probe.policy)

    render(counters.snapshot(), output_format)


def _run_agent(
    cfg: VfpConfig,
    targets: list[str],
    sockets: SocketPair,
    counters: Counters,
    policy_name: str,
) -> None:
    """Start both listeners and drive the prober until interrupted.

    Returns after Ctrl-C or SIGTERM, with both sockets closed and the
    listeners given a moment to exit.

    Args:
        cfg: Loaded ``VfpConfig`` instance.
        targets: Targets to probe.
        sockets: Open socket pair, shared by prober and listeners.
        counters: Metrics sink for probes and replies.
        policy_name: Target-selection policy name.
    """
    listeners = [
        ReplyListener(sockets.v4, cfg.nodes, counters),
        ReplyListener(sockets.v6, cfg.nodes, counters),
    ]
    for listener in listeners:
        listener.start()

    prober = Prober(sockets, counters, cfg.id)
    target_policy = get_policy(policy_name.lower())
    scheduler = Scheduler(
        cfg.probe.interval,
        lambda: prober.run_round(targets, target_policy),
        immediate=cfg.probe.immediate,
    )

    def _on_sigterm(signum: int, frame: object) -> None:
        logger.info("Received signal %d, shutting down", signum)
        scheduler.stop()

    previous = signal.signal(signal.SIGTERM, _on_sigterm)
    try:
        scheduler.run()
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    finally:
        signal.signal(signal.SIGTERM, previous)
        scheduler.stop()
        for listener in listeners:
            listener.stop()
        sockets.close()
        for listener in listeners:
            listener.join(_LISTENER_JOIN_TIMEOUT)

    logger.info("Stopped after %d probe round(s)", scheduler.ticks)
