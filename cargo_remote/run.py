from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from . import __version__
from .config import ConfigError, load_config_sources, resolve_options
from .metadata import MetadataError, resolve_project_root
from .models import ProjectContext
from .pipeline import (
    EXIT_METADATA_FAILED,
    EXIT_NO_REMOTE,
    PipelineContext,
    RemoteExec,
    RemotePipeline,
    Transfer,
    derive_build_path,
)
from .transport import RsyncTransfer, SshRemoteExec

logger = logging.getLogger(__name__)

LOG_LEVEL_ENV = "CARGO_REMOTE_LOG"


def _configure_logging() -> None:
    level_name = os.environ.get(LOG_LEVEL_ENV, "info").upper()
    level = getattr(logging, level_name, None)
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(
        level=level,
        stream=sys.stderr,
        format="[%(asctime)s %(levelname)s %(name)s] %(message)s",
    )


def _overrides(args: argparse.Namespace) -> Dict[str, Any]:
    return {
        "remote": args.remote,
        "build-env": args.build_env,
        "rustup-default": args.rustup_default,
        "env": args.env,
        "copy-back": args.copy_back,
        "copy-lock": False if args.no_copy_lock else None,
        "transfer-hidden": True if args.transfer_hidden else None,
    }


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cargo",
        description="Build a cargo project on a remote machine",
    )
    parser.add_argument("--version", action="version", version=f"cargo-remote {__version__}")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # -h is taken by --transfer-hidden
    remote = subparsers.add_parser("remote", add_help=False, help="Run a cargo command remotely")
    remote.add_argument("--help", action="help", help="Show this help message and exit.")
    remote.add_argument("-r", "--remote", help="Remote ssh build server.")
    remote.add_argument(
        "-b",
        "--build-env",
        action="append",
        metavar="KEY=VALUE",
        help="Set remote environment variables. RUST_BACKTRACE, CC, LIB, etc. (default: RUST_BACKTRACE=1)",
    )
    remote.add_argument(
        "-d",
        "--rustup-default",
        metavar="CHANNEL",
        help="Rustup default (stable|beta|nightly) (default: stable)",
    )
    remote.add_argument(
        "-e",
        "--env",
        metavar="PATH",
        help="Environment profile. (default: /etc/profile)",
    )
    remote.add_argument(
        "-c",
        "--copy-back",
        nargs="?",
        const="",
        metavar="SELECTOR",
        help="Transfer the target folder or specific file from that folder back to the local machine.",
    )
    remote.add_argument(
        "--no-copy-lock",
        action="store_true",
        help="Don't transfer the Cargo.lock file back to the local machine.",
    )
    remote.add_argument(
        "--manifest-path",
        default="Cargo.toml",
        type=Path,
        help="Path to the manifest to execute.",
    )
    remote.add_argument(
        "-h",
        "--transfer-hidden",
        action="store_true",
        help="Transfer hidden files and directories to the build server.",
    )
    remote.add_argument(
        "remote_command",
        nargs=argparse.REMAINDER,
        metavar="COMMAND",
        help="Cargo subcommand and arguments passed to the remote cargo.",
    )
    remote.set_defaults(parser=remote)
    return parser


def main(
    argv: list[str] | None = None,
    *,
    transfer: Optional[Transfer] = None,
    remote_exec: Optional[RemoteExec] = None,
) -> int:
    _configure_logging()
    parser = build_parser()
    args = parser.parse_args(argv)
    remote_command = list(args.remote_command)
    if remote_command[:1] == ["--"]:
        remote_command = remote_command[1:]
    if not remote_command:
        args.parser.error("a cargo subcommand is required")

    try:
        project_root = resolve_project_root(args.manifest_path)
    except MetadataError as exc:
        logger.error("Failed to read project metadata (error: %s)", exc)
        return EXIT_METADATA_FAILED
    logger.info("Project dir: %s", project_root)

    sources = load_config_sources(project_root)
    try:
        options = resolve_options(_overrides(args), sources, remote_command)
    except ConfigError as exc:
        logger.error("%s", exc)
        return EXIT_NO_REMOTE

    project = ProjectContext(
        root=project_root,
        build_path=derive_build_path(project_root),
        manifest_path=args.manifest_path,
    )
    context = PipelineContext(
        project=project,
        options=options,
        transfer=transfer or RsyncTransfer(),
        remote_exec=remote_exec or SshRemoteExec(),
    )
    outcome = RemotePipeline(context).run()
    logger.debug("Pipeline outcome: %s", json.dumps(outcome.to_dict(), indent=2))
    return outcome.exit_code


def cli() -> None:  # pragma: no cover
    sys.exit(main())


if __name__ == "__main__":  # pragma: no cover
    cli()
