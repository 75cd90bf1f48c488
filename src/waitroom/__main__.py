"""CLI entry point for waitroom.

Runs the queue synchronizer (continuously with a Prometheus metrics server,
or once to print the current queue) and exposes the three request actions.

Examples:
    ```bash
    python -m waitroom synchronizer
    python -m waitroom synchronizer --once --log-level DEBUG
    python -m waitroom submit "Ada Lovelace" --topic recursion
    python -m waitroom mark-seen 4b7c...
    python -m waitroom remove 4b7c...
    ```
"""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Any

from waitroom.core import QueueStore, start_metrics_server
from waitroom.core.exceptions import WaitroomError
from waitroom.core.logger import Logger, StructuredFormatter
from waitroom.core.yaml import load_yaml
from waitroom.models.constants import ServiceName
from waitroom.services.common import ActionResult, create_request, delete_request, mark_seen
from waitroom.services.synchronizer import QueueSynchronizer


CONFIG_BASE = Path("config")
STORE_CONFIG = CONFIG_BASE / "store.yaml"
SYNCHRONIZER_CONFIG = CONFIG_BASE / "services" / "synchronizer.yaml"

ACTION_COMMANDS = ("submit", "mark-seen", "remove")

logger = Logger("cli")


async def run_synchronizer(
    store: QueueStore,
    service_dict: dict[str, Any],
    *,
    once: bool,
) -> int:
    """Run the synchronizer in one-shot or continuous mode.

    In one-shot mode the synchronizer activates (performing the initial
    load), logs the queue and exits. In continuous mode a Prometheus metrics
    server is started and the synchronizer stays active until a shutdown
    signal is received.

    Returns:
        Exit code: 0 for success, 1 for failure.
    """
    if service_dict:
        service = QueueSynchronizer.from_dict(service_dict, store=store)
    else:
        service = QueueSynchronizer(store=store)

    # One-shot mode: initial load only, no metrics server
    if once:
        try:
            async with service:
                if service.last_error is not None:
                    logger.error("synchronizer_failed", error=service.last_error)
                    return 1
                for position, entry in enumerate(service.entries, start=1):
                    logger.info(
                        "queue_entry",
                        position=position,
                        status=entry.status,
                        student=entry.student_name,
                        topic=entry.topic_area or "",
                        created_at=entry.created_at.isoformat(),
                        id=entry.id,
                    )
            logger.info("synchronizer_completed", entries=len(service.entries))
            return 0
        except Exception as e:  # Intentionally broad: CLI error boundary for one-shot mode
            logger.error("synchronizer_failed", error=str(e))
            return 1

    # Continuous mode: metrics server + indefinite operation
    metrics_config = service.config.metrics
    metrics_server = await start_metrics_server(metrics_config)

    if metrics_config.enabled:
        logger.info(
            "metrics_server_started",
            host=metrics_config.host,
            port=metrics_config.port,
            path=metrics_config.path,
        )

    # Signal handling for graceful shutdown
    def handle_signal(sig: signal.Signals) -> None:
        logger.info("shutdown_signal", signal=sig.name)
        service.request_shutdown()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_signal, sig)

    try:
        async with service:
            await service.wait_for_shutdown()
        return 0
    except Exception as e:  # Intentionally broad: CLI error boundary for continuous mode
        logger.error("synchronizer_failed", error=str(e))
        return 1
    finally:
        await metrics_server.stop()
        if metrics_config.enabled:
            logger.info("metrics_server_stopped")


async def run_action(store: QueueStore, args: argparse.Namespace) -> int:
    """Run one request action and report its outcome."""
    result: ActionResult
    if args.command == "submit":
        result = await create_request(store, args.student_name, args.topic)
    elif args.command == "mark-seen":
        result = await mark_seen(store, args.entry_id)
    else:
        result = await delete_request(store, args.entry_id)

    if not result.ok:
        logger.error("action_failed", command=args.command, error=result.error)
        return 1
    if result.entry is not None:
        logger.info("action_completed", command=args.command, id=result.entry.id)
    else:
        logger.info("action_completed", command=args.command)
    return 0


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="waitroom",
        description="Waiting-room queue synchronizer and request actions",
    )

    parser.add_argument(
        "--store-config",
        type=Path,
        default=STORE_CONFIG,
        help=f"Store config path (default: {STORE_CONFIG})",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Log level (default: INFO)",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    sync = commands.add_parser(str(ServiceName.SYNCHRONIZER), help="Run the queue synchronizer")
    sync.add_argument(
        "--config",
        type=Path,
        default=SYNCHRONIZER_CONFIG,
        help=f"Synchronizer config path (default: {SYNCHRONIZER_CONFIG})",
    )
    sync.add_argument(
        "--once",
        action="store_true",
        help="Load and print the queue once, then exit (default: run continuously)",
    )

    submit = commands.add_parser("submit", help="Submit a help request")
    submit.add_argument("student_name", help="Name shown in the queue")
    submit.add_argument("--topic", default=None, help="Optional topic area")

    seen = commands.add_parser("mark-seen", help="Mark a request as seen")
    seen.add_argument("entry_id", help="Request id")

    remove = commands.add_parser("remove", help="Complete or remove a request")
    remove.add_argument("entry_id", help="Request id")

    return parser.parse_args(argv)


def setup_logging(level: str) -> None:
    """Configure the root logger with structured formatting.

    Installs a ``StructuredFormatter`` on the root handler so that all
    log output -- from both ``Logger`` (with ``structured_kv`` extra) and
    plain ``logging.getLogger()`` calls in models -- is unified as
    ``level name message key=value ...``.
    """
    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter())
    logging.root.addHandler(handler)
    logging.root.setLevel(getattr(logging, level))


def _load_yaml_dict(path: Path) -> dict[str, Any]:
    """Load a YAML file as a dict, returning ``{}`` if the file does not exist."""
    if not path.exists():
        logger.warning("config_not_found", path=str(path))
        return {}
    return load_yaml(str(path))


def _apply_pool_overrides(
    store_dict: dict[str, Any],
    pool_overrides: dict[str, Any] | None,
    application_name: str,
) -> None:
    """Merge per-command pool overrides into the shared store configuration.

    Applies ``user``, ``password_env`` to ``pool.database``, ``min_size`` and
    ``max_size`` to ``pool.limits``, and auto-sets ``application_name``
    (unless explicitly provided in overrides).
    """
    pool = store_dict.setdefault("pool", {})

    server_settings = pool.setdefault("server_settings", {})
    if "application_name" not in server_settings:
        server_settings["application_name"] = application_name

    if not pool_overrides:
        return

    if "application_name" in pool_overrides:
        server_settings["application_name"] = pool_overrides["application_name"]

    db_keys = ("user", "password_env")
    db_overrides = {k: pool_overrides[k] for k in db_keys if k in pool_overrides}
    if db_overrides:
        pool.setdefault("database", {}).update(db_overrides)

    limits_keys = ("min_size", "max_size")
    limits_overrides = {k: pool_overrides[k] for k in limits_keys if k in pool_overrides}
    if limits_overrides:
        pool.setdefault("limits", {}).update(limits_overrides)


async def main(argv: list[str] | None = None) -> int:
    """Main entry point: parse args, open the store and run the command."""
    args = parse_args(argv)
    setup_logging(args.log_level)

    store_dict = _load_yaml_dict(args.store_config)
    service_dict: dict[str, Any] = {}
    if args.command == ServiceName.SYNCHRONIZER:
        service_dict = _load_yaml_dict(args.config)
    pool_overrides = service_dict.pop("pool", None)
    _apply_pool_overrides(store_dict, pool_overrides, f"waitroom-{args.command}")

    try:
        store = QueueStore.from_dict(store_dict)
        async with store:
            if args.command in ACTION_COMMANDS:
                return await run_action(store, args)
            return await run_synchronizer(store, service_dict, once=args.once)
    except (ConnectionError, WaitroomError, ValueError) as e:
        logger.error("startup_failed", error=str(e))
        return 1
    except KeyboardInterrupt:
        logger.info("interrupted")
        return 130


def cli() -> None:
    """Synchronous entry point for console_scripts."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
