"""
Command-line interface for screenclip.

Subcommands:
    run        the pipeline worker (watch, settle, copy)
    supervise  keep a worker running, restarting it with backoff
    install    register the supervisor with launchd / systemd
    uninstall  stop and remove the registered service
    status     report the supervised service state
    check      validate and print the resolved configuration
"""

import argparse
import asyncio
import logging
import os
import sys
import time
from pathlib import Path
from typing import List, Optional

from .. import __version__
from ..config import get_config, set_config_path
from ..config.validators import default_state_dir
from ..models.config import AppConfig
from ..orchestration import ExitCodes, StatusStore, run_supervisor, run_worker
from ..service import InstallOutcome, create_installer
from ..validation import ConfigurationError, ServiceInstallError, handle_cli_error

LOG_FORMAT = "%(asctime)s [%(levelname)-5.5s] %(name)s:%(filename)s:%(lineno)d\t %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO", log_file: Optional[Path] = None) -> None:
    """
    Configure root logging. stdout is left free for the worker's READY line.
    """
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file is not None:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
        except OSError as e:
            print(f"Cannot open log file {log_file}: {e}", file=sys.stderr)
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        handlers=handlers,
        force=True,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="screenclip",
        description="Copy the path of every new screenshot to the clipboard.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        help="Path to config.toml (default: $SCREENCLIP_CONFIG or ~/.config/screenclip/config.toml).",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging."
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True
    subparsers.add_parser("run", help="Run the screenshot pipeline in the foreground.")
    subparsers.add_parser("supervise", help="Run the pipeline under a restarting supervisor.")
    subparsers.add_parser("install", help="Start screenclip automatically at login.")
    subparsers.add_parser("uninstall", help="Stop screenclip and remove the login service.")
    subparsers.add_parser("status", help="Show the state of the installed service.")
    subparsers.add_parser("check", help="Validate the configuration and print it.")

    # Accept global options after the subcommand too.
    for subparser in subparsers.choices.values():
        subparser.add_argument("-c", "--config", type=Path, default=argparse.SUPPRESS)
        subparser.add_argument("-v", "--verbose", action="store_true", default=argparse.SUPPRESS)
    return parser


def load_app_config(args: argparse.Namespace) -> AppConfig:
    """Load configuration or exit with the configuration error code."""
    set_config_path(args.config)
    try:
        config = get_config()
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        handle_cli_error(
            error=e,
            context="configuration loading",
            exit_code=ExitCodes.CONFIGURATION_ERROR,
            logger=logger,
        )
    if not args.verbose:
        setup_logging(config.logging.level, config.logging.file)
    elif config.logging.file is not None:
        setup_logging("DEBUG", config.logging.file)
    return config


def cmd_run(args: argparse.Namespace) -> int:
    config = load_app_config(args)
    return asyncio.run(run_worker(config))


def cmd_supervise(args: argparse.Namespace) -> int:
    config = load_app_config(args)
    logger.info(f"Supervisor started (PID: {os.getpid()})")
    return asyncio.run(run_supervisor(config))


def cmd_install(args: argparse.Namespace) -> int:
    config = load_app_config(args)
    try:
        installer = create_installer(
            args.config or config.source_path, config.supervisor.state_dir
        )
        outcome = installer.install()
    except ServiceInstallError as e:
        print(f"Install failed: {e}", file=sys.stderr)
        return 1

    if outcome is InstallOutcome.ALREADY_INSTALLED:
        print(f"screenclip is already installed ({installer.descriptor_path})")
        return ExitCodes.ALREADY_INSTALLED
    verb = "Updated" if outcome is InstallOutcome.UPDATED else "Installed"
    print(f"{verb} {installer.manager_name} service: {installer.descriptor_path}")
    print(f"Watching: {config.watch.watch_directory}")
    return ExitCodes.SUCCESS


def cmd_uninstall(args: argparse.Namespace) -> int:
    # Uninstall must work even when the configuration no longer validates.
    set_config_path(args.config)
    try:
        state_dir = get_config().supervisor.state_dir
    except ConfigurationError:
        state_dir = default_state_dir()

    try:
        installer = create_installer(args.config, state_dir)
        removed = installer.uninstall()
    except ServiceInstallError as e:
        print(f"Uninstall failed: {e}", file=sys.stderr)
        return 1

    if removed:
        print(f"Removed {installer.manager_name} service: {installer.descriptor_path}")
    else:
        print("screenclip is not installed")
    return ExitCodes.SUCCESS


def _format_timestamp(value: float) -> str:
    if not value:
        return "never"
    return time.strftime(LOG_DATE_FORMAT, time.localtime(value))


def cmd_status(args: argparse.Namespace) -> int:
    set_config_path(args.config)
    config_error: Optional[ConfigurationError] = None
    try:
        config = get_config()
        state_dir = config.supervisor.state_dir
    except ConfigurationError as e:
        config_error = e
        state_dir = default_state_dir()

    status = StatusStore(state_dir / "status.json").read_live()
    try:
        installed = "yes" if create_installer(args.config, state_dir).is_installed() else "no"
    except ServiceInstallError:
        installed = "unsupported platform"

    print(f"Installed:      {installed}")
    print(f"State:          {status.state.value}")
    print(f"Supervisor PID: {status.supervisor_pid or '-'}")
    print(f"Worker PID:     {status.worker_pid or '-'}")
    print(f"Restarts:       {status.restart_count}")
    print(f"Last error:     {status.last_error or '-'}")
    print(f"Updated:        {_format_timestamp(status.updated_at)}")

    if config_error is not None:
        print(f"\nConfiguration problem: {config_error}")
        return ExitCodes.CONFIGURATION_ERROR
    return ExitCodes.SUCCESS


def cmd_check(args: argparse.Namespace) -> int:
    config = load_app_config(args)
    watch = config.watch
    print(f"Config file:      {config.source_path or '(defaults)'}")
    print(f"Watch directory:  {watch.watch_directory}")
    print(f"Extensions:       {', '.join(sorted(watch.recognized_extensions))}")
    print(f"Settle delay:     {watch.settle_delay_millis} ms")
    print(f"Notifications:    {'on' if watch.notification_enabled else 'off'}")
    print(f"Clipboard:        {config.clipboard.backend}")
    print(f"Notifier:         {config.notification.backend}")
    print(f"Status file:      {config.supervisor.status_file}")
    print(f"Log level:        {config.logging.level}")
    return ExitCodes.SUCCESS


COMMANDS = {
    "run": cmd_run,
    "supervise": cmd_supervise,
    "install": cmd_install,
    "uninstall": cmd_uninstall,
    "status": cmd_status,
    "check": cmd_check,
}


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging("DEBUG" if args.verbose else "INFO")
    return COMMANDS[args.command](args)


def main_cli() -> None:
    """
    Main command-line entry point for screenclip.

    Raises:
        SystemExit: With the command's exit code.
    """
    sys.exit(main())
