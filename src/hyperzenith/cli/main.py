"""
Command-line interface for the HyperZenith build accelerator.

This module provides the ``hyperzenith`` entry point: hardware profiling,
local Android and remote iOS builds with live output, archive management,
remote recovery and project scanning.
"""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from ..config import get_config, set_config_path
from ..models.build import BuildRequest, BuildTarget, Platform, RemoteCredential, RemoteTarget
from ..orchestration import BuildOrchestrationEngine, SignalHandler
from ..validation import (
    BuildEngineError,
    ValidationError,
    handle_cli_error,
    validate_enum_choice,
)

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)-5.5s] %(name)s:%(filename)s:%(lineno)d\t %(message)s"

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_CANCELLED = 130

DEFAULT_PASSWORD_ENV = "HYPERZENITH_SSH_PASSWORD"


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )


def _add_remote_arguments(parser: argparse.ArgumentParser, required: bool) -> None:
    group = parser.add_argument_group("remote host")
    group.add_argument("--host", required=required, help="Remote host, as 'host' or 'host:port'.")
    group.add_argument("--user", required=required, help="SSH user on the remote host.")
    group.add_argument("--remote-path", required=required, help="Project directory on the remote host.")
    group.add_argument("--ssh-key", help="Path to an SSH private key.")
    group.add_argument(
        "--password-env",
        default=DEFAULT_PASSWORD_ENV,
        help=f"Environment variable holding the SSH password (default: {DEFAULT_PASSWORD_ENV}).",
    )
    group.add_argument("--scheme", default="", help="Xcode scheme; defaults to the first workspace in ios/.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hyperzenith",
        description="Hardware-aware build accelerator for React Native / Expo projects.",
    )
    parser.add_argument("--config", type=Path, help="Path to a config.toml file.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("profile", help="Show the hardware profile and derived build plan.")

    build = subparsers.add_parser("build", help="Run a build and stream its output.")
    build.add_argument("project", type=Path, help="Project root directory.")
    build.add_argument(
        "-t", "--target",
        default=BuildTarget.APK.value,
        help="apk or aab (local Android); simulator or device (remote iOS).",
    )
    build.add_argument("--no-turbo", action="store_true", help="Use the plain Gradle task without acceleration flags.")
    build.add_argument("-o", "--output", type=Path, help="Archive directory for the built artifact.")
    _add_remote_arguments(build, required=False)

    archive = subparsers.add_parser("archive", help="Manage archived artifacts.")
    archive_commands = archive.add_subparsers(dest="archive_command", required=True)
    for name, help_text in (
        ("locate", "Print the archive directory of a project."),
        ("list", "List archived artifacts, newest first."),
        ("clear", "Delete archived artifacts."),
    ):
        sub = archive_commands.add_parser(name, help=help_text)
        sub.add_argument("project", type=Path, help="Project root directory.")
        sub.add_argument("-o", "--output", type=Path, help="Custom archive directory.")

    reset = subparsers.add_parser("remote-reset", help="Run the nuclear recovery sequence on the remote host.")
    _add_remote_arguments(reset, required=True)

    scan = subparsers.add_parser("scan", help="Find Android projects.")
    scan.add_argument("path", type=Path, nargs="?", default=Path.cwd(), help="Start directory.")
    scan.add_argument("--root", type=Path, action="append", dest="roots", help="Additional root to scan.")

    prewarm = subparsers.add_parser("prewarm", help="Start the Gradle daemon ahead of the first build.")
    prewarm.add_argument("project", type=Path, help="Project root directory.")

    return parser


def remote_target_from_args(args: argparse.Namespace) -> Optional[RemoteTarget]:
    if not args.host:
        return None
    password = os.environ.get(args.password_env) if args.password_env else None
    return RemoteTarget(
        host=args.host,
        user=args.user or "",
        credential=RemoteCredential(key_path=args.ssh_key, password=password),
        remote_project_path=args.remote_path or "",
        scheme=args.scheme,
    )


def build_request_from_args(args: argparse.Namespace) -> BuildRequest:
    target_value = validate_enum_choice(
        args.target,
        [target.value for target in BuildTarget],
        field_name="--target",
        case_sensitive=False,
    )
    target = BuildTarget(target_value.lower())
    remote = remote_target_from_args(args)

    if target.is_ios and remote is None:
        raise ValidationError(f"Target '{target.value}' needs --host, --user and --remote-path", field_name="--host")

    return BuildRequest(
        working_dir=args.project,
        target=target,
        turbo=not args.no_turbo,
        custom_output_path=args.output,
        platform=Platform.REMOTE if target.is_ios else Platform.LOCAL,
        remote=remote,
    )


async def run_build(engine: BuildOrchestrationEngine, request: BuildRequest) -> int:
    """Run one build with live output; returns the process exit code."""
    handler = SignalHandler()
    handler.register_engine(engine, asyncio.get_running_loop())
    try:
        with handler:
            handle = await engine.request_build(request)
            async for line in handle:
                print(f"[{line.progress:5.1f}%] {line.text}", flush=True)
            result = await handle.wait()
    finally:
        handler.unregister_engine(engine)

    if result.cancelled:
        logger.warning(f"Build cancelled after {result.duration_seconds:.1f}s")
        return EXIT_CANCELLED

    if not result.succeeded:
        logger.error(f"{result.message}")
        if result.diagnostic_log_path:
            logger.error(f"Full build log: {result.diagnostic_log_path}")
        return EXIT_FAILURE

    logger.info(f"{result.message} in {result.duration_seconds:.1f}s")
    if result.artifact is not None:
        print(result.artifact.final_path)
    if result.archive_error is not None:
        logger.warning(f"Artifact was not archived: {result.archive_error}")
    return EXIT_SUCCESS


async def run_remote_reset(engine: BuildOrchestrationEngine, target: RemoteTarget) -> int:
    report = await engine.remote_reset(target, on_line=lambda line: print(line, flush=True))
    if report.clean:
        logger.info(f"Recovery finished: {len(report.steps_run)} steps run")
        return EXIT_SUCCESS
    logger.warning(f"Recovery finished with failed steps: {', '.join(report.steps_failed)}")
    return EXIT_FAILURE


async def run_prewarm(engine: BuildOrchestrationEngine, project: Path) -> int:
    pid = await engine.prewarm(project)
    print(f"Gradle warm-up started (PID {pid})")
    return EXIT_SUCCESS


def dispatch(args: argparse.Namespace, engine: BuildOrchestrationEngine) -> int:
    if args.command == "profile":
        print(engine.profile().describe())
        return EXIT_SUCCESS

    if args.command == "build":
        return asyncio.run(run_build(engine, build_request_from_args(args)))

    if args.command == "archive":
        directory = engine.archive_locate(args.project, args.output)
        if args.archive_command == "locate":
            print(directory)
        elif args.archive_command == "list":
            for artifact in engine.archive_list(directory):
                print(artifact)
        else:
            removed = engine.archive_clear(directory)
            print(f"Removed {removed} artifact(s) from {directory}")
        return EXIT_SUCCESS

    if args.command == "remote-reset":
        return asyncio.run(run_remote_reset(engine, remote_target_from_args(args)))

    if args.command == "scan":
        for project in engine.scan_for_projects(args.path, args.roots):
            print(project)
        return EXIT_SUCCESS

    if args.command == "prewarm":
        return asyncio.run(run_prewarm(engine, args.project))

    raise ValidationError(f"Unknown command: {args.command}", field_name="command")


def main_cli(argv: Optional[List[str]] = None) -> None:
    """
    Main command-line interface for HyperZenith.

    Exits with 0 on success, 1 on failures and invalid input, and 130 when a
    build was cancelled by SIGINT / SIGTERM.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    if args.config:
        set_config_path(args.config)

    try:
        engine = BuildOrchestrationEngine(get_config())
    except (ValidationError, ValueError, OSError) as e:
        handle_cli_error(error=e, context="configuration loading", exit_code=EXIT_FAILURE, logger=logger)

    try:
        exit_code = dispatch(args, engine)
    except (BuildEngineError, ValidationError) as e:
        handle_cli_error(error=e, context=f"'{args.command}'", exit_code=EXIT_FAILURE, logger=logger)
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        exit_code = EXIT_CANCELLED

    sys.exit(exit_code)
