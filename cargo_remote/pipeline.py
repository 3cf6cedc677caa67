from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from enum import Enum, auto
from pathlib import Path
from typing import Callable, Dict, Iterable, Optional

from .models import BuildOptions, PipelineOutcome, ProjectContext, StageResult
from .transport import TransferOptions, TransportError

logger = logging.getLogger(__name__)

EXIT_METADATA_FAILED = -2
EXIT_NO_REMOTE = -3
EXIT_TRANSFER_FAILED = -4
EXIT_REMOTE_EXEC_FAILED = -5
EXIT_COPY_ARTIFACTS_FAILED = -6
EXIT_COPY_LOCK_FAILED = -7

REMOTE_BUILDS_DIR = "~/remote-builds"
BUILD_OUTPUT_DIR = "target"
LOCKFILE_NAME = "Cargo.lock"
BUILD_TOOL = "cargo"

Transfer = Callable[[str, str, TransferOptions], int]
RemoteExec = Callable[..., int]


class Stage(Enum):
    TRANSFER = auto()
    REMOTE_EXECUTE = auto()
    COPY_ARTIFACTS = auto()
    COPY_LOCK = auto()

    @classmethod
    def ordered(cls) -> Iterable["Stage"]:
        return (
            cls.TRANSFER,
            cls.REMOTE_EXECUTE,
            cls.COPY_ARTIFACTS,
            cls.COPY_LOCK,
        )

    @property
    def label(self) -> str:
        return self.name.lower().replace("_", "-")

    @property
    def failure_code(self) -> int:
        return _FAILURE_CODES[self]


_FAILURE_CODES: Dict[Stage, int] = {
    Stage.TRANSFER: EXIT_TRANSFER_FAILED,
    Stage.REMOTE_EXECUTE: EXIT_REMOTE_EXEC_FAILED,
    Stage.COPY_ARTIFACTS: EXIT_COPY_ARTIFACTS_FAILED,
    Stage.COPY_LOCK: EXIT_COPY_LOCK_FAILED,
}


def derive_build_path(project_root: str | Path) -> str:
    """Map a local project directory to its working directory on the build server.

    The name is the first 64 bits of a SHA-256 over the path string, so it is
    stable across runs and machines. It only namespaces projects; it is not
    meant to hide or protect anything.
    """

    digest = hashlib.sha256(str(project_root).encode("utf-8")).hexdigest()[:16]
    return f"{REMOTE_BUILDS_DIR}/{digest}/"


def render_remote_command(
    options: BuildOptions,
    build_path: str,
) -> str:
    """Render the login-shell command run on the build server.

    Build env entries and cargo arguments are joined with single spaces and
    are not quoted; callers must pass shell-safe values.
    """

    return "source {}; rustup default {}; cd {}; {} {} {}".format(
        options.env_profile,
        options.toolchain,
        build_path,
        " ".join(options.build_env),
        BUILD_TOOL,
        " ".join(options.pass_through_args),
    )


def remote_target(options: BuildOptions, build_path: str, *parts: str) -> str:
    path = build_path.rstrip("/")
    if parts:
        path = "/".join([path, *parts])
    return f"{options.build_server}:{path}"


def build_exit_status(returncode: Optional[int]) -> int:
    """Exit status for the process once every transport stage has succeeded."""

    if returncode is None or returncode == 0:
        return 0
    if returncode < 0:
        # killed by a signal; the remote status is unknown
        return 1
    return returncode


@dataclass
class PipelineContext:
    project: ProjectContext
    options: BuildOptions
    transfer: Transfer
    remote_exec: RemoteExec


StageHandler = Callable[[PipelineContext], StageResult]


def _run_transfer(
    context: PipelineContext,
    stage: Stage,
    source: str,
    destination: str,
    options: TransferOptions,
) -> StageResult:
    details: Dict[str, object] = {"source": source, "destination": destination}
    try:
        returncode = context.transfer(source, destination, options)
    except TransportError as exc:
        details["message"] = str(exc)
        return StageResult(stage.label, "failed", details)
    details["returncode"] = returncode
    if returncode != 0:
        details["message"] = f"rsync exited with status {returncode}"
        return StageResult(stage.label, "failed", details)
    return StageResult(stage.label, "completed", details)


def _stage_transfer(context: PipelineContext) -> StageResult:
    logger.info("Transferring sources to build server.")
    options = TransferOptions(
        mirror_deletes=True,
        exclude_hidden=not context.options.transfer_hidden,
        exclude_paths=(BUILD_OUTPUT_DIR,),
        create_remote_parent=True,
    )
    return _run_transfer(
        context,
        Stage.TRANSFER,
        f"{context.project.root}/",
        remote_target(context.options, context.project.build_path) + "/",
        options,
    )


def _stage_remote_execute(context: PipelineContext) -> StageResult:
    options = context.options
    logger.info("Build ENV: %s", list(options.build_env))
    logger.info("Environment profile: %s", options.env_profile)
    logger.info("Build path: %s", context.project.build_path)
    command = render_remote_command(options, context.project.build_path)

    logger.info("Starting build process.")
    details: Dict[str, object] = {"command": command}
    try:
        returncode = context.remote_exec(options.build_server, command, pty=True)
    except TransportError as exc:
        details["message"] = str(exc)
        return StageResult(Stage.REMOTE_EXECUTE.label, "failed", details)
    details["returncode"] = returncode
    if returncode != 0:
        logger.warning("Remote build exited with status %s", returncode)
    return StageResult(Stage.REMOTE_EXECUTE.label, "completed", details)


def _stage_copy_artifacts(context: PipelineContext) -> StageResult:
    logger.info("Transferring artifacts back to client.")
    copy_back = context.options.copy_back
    selector = copy_back.selector if copy_back is not None else ""
    return _run_transfer(
        context,
        Stage.COPY_ARTIFACTS,
        remote_target(context.options, context.project.build_path, BUILD_OUTPUT_DIR, selector),
        f"{context.project.root}/{BUILD_OUTPUT_DIR}/{selector}",
        TransferOptions(mirror_deletes=True),
    )


def _stage_copy_lock(context: PipelineContext) -> StageResult:
    logger.info("Transferring %s file back to client.", LOCKFILE_NAME)
    return _run_transfer(
        context,
        Stage.COPY_LOCK,
        remote_target(context.options, context.project.build_path, LOCKFILE_NAME),
        str(context.project.lockfile),
        TransferOptions(mirror_deletes=True),
    )


_STAGE_HANDLERS: Dict[Stage, StageHandler] = {
    Stage.TRANSFER: _stage_transfer,
    Stage.REMOTE_EXECUTE: _stage_remote_execute,
    Stage.COPY_ARTIFACTS: _stage_copy_artifacts,
    Stage.COPY_LOCK: _stage_copy_lock,
}


class RemotePipeline:
    """Runs the transfer, build and copy-back stages once each, in order."""

    def __init__(self, context: PipelineContext) -> None:
        self.context = context

    def should_run(self, stage: Stage) -> bool:
        if stage is Stage.COPY_ARTIFACTS:
            return self.context.options.copy_back is not None
        if stage is Stage.COPY_LOCK:
            return self.context.options.copy_lock
        return True

    def run_stage(self, stage: Stage) -> StageResult:
        handler = _STAGE_HANDLERS[stage]
        result = handler(self.context)
        if result.failed:
            logger.error(
                "Stage %s failed (error: %s)", stage.label, result.details.get("message", "unknown")
            )
        return result

    def run(self) -> PipelineOutcome:
        outcome = PipelineOutcome(exit_code=0)
        for stage in Stage.ordered():
            if not self.should_run(stage):
                outcome.results.append(StageResult(stage.label, "skipped"))
                continue
            result = self.run_stage(stage)
            outcome.results.append(result)
            if result.failed:
                outcome.exit_code = stage.failure_code
                return outcome
            if stage is Stage.REMOTE_EXECUTE:
                outcome.build_returncode = result.details.get("returncode")
        outcome.exit_code = build_exit_status(outcome.build_returncode)
        return outcome
