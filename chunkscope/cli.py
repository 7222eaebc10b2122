"""Command-line entry point: ``chunk-analysis run``."""

from __future__ import annotations

import argparse
import signal
import sys
import threading
from collections.abc import Iterator, Sequence
from contextlib import contextmanager

from chunkscope.config import load_config
from chunkscope.engine import Engine
from chunkscope.logger import get_logger

DEFAULT_CONFIG_DIR = "./configs"
_POLL_SECONDS = 0.2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chunk-analysis",
        description=(
            "Chunk-analysis is a CLI tool that allows you to analyze "
            "bytecode chunks on Ethereum mainnet."
        ),
    )
    commands = parser.add_subparsers(dest="command", metavar="command")
    commands.add_parser("run", help="Run the chunk analysis", description="Run the chunk analysis")
    return parser


@contextmanager
def _shutdown_signals() -> Iterator[threading.Event]:
    """Yield an event that is set on SIGINT or SIGTERM while the block runs."""
    received = threading.Event()
    if threading.current_thread() is not threading.main_thread():
        yield received
        return

    def handler(signum, frame) -> None:
        received.set()

    previous = {sig: signal.signal(sig, handler) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        yield received
    finally:
        for sig, old in previous.items():
            signal.signal(sig, old)


def run_command(config_dir: str = DEFAULT_CONFIG_DIR) -> int:
    """Load the configuration and run the engine until done or signalled."""
    log = get_logger("run")
    try:
        config = load_config(config_dir)
    except ValueError as exc:
        log.error("Configuration validation failed", error=exc)
        return 1
    log.info("Configuration loaded", config=str(config))

    cancel = threading.Event()
    engine = Engine(config)
    failures: list[BaseException] = []

    def target() -> None:
        try:
            engine.run(cancel)
        except BaseException as exc:  # surfaced in the calling thread
            failures.append(exc)
            return
        log.info("Engine finished processing all blocks")

    worker = threading.Thread(target=target, name="engine", daemon=True)
    with _shutdown_signals() as received:
        worker.start()
        while worker.is_alive() and not received.is_set():
            worker.join(_POLL_SECONDS)
        if received.is_set():
            log.info("Received shutdown signal, stopping all services...")
            cancel.set()
            worker.join()
        else:
            log.info("Analysis completed successfully, shutting down...")

    if failures:
        raise failures[0]
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command == "run":
        return run_command()
    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())