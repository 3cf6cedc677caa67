from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pytest

from cargo_remote.models import BuildOptions, ProjectContext
from cargo_remote.pipeline import PipelineContext, derive_build_path
from cargo_remote.transport import TransferOptions, TransportError


class RecordingTransfer:
    """Stands in for rsync; ``returncodes`` maps a destination suffix to a status."""

    def __init__(self, returncodes: Optional[Dict[str, int]] = None, broken: bool = False) -> None:
        self.calls: List[Tuple[str, str, TransferOptions]] = []
        self.returncodes = returncodes or {}
        self.broken = broken

    def __call__(self, source: str, destination: str, options: TransferOptions) -> int:
        self.calls.append((source, destination, options))
        if self.broken:
            raise TransportError("rsync: command not found")
        for suffix, code in self.returncodes.items():
            if destination.endswith(suffix) or source.endswith(suffix):
                return code
        return 0


class RecordingRemoteExec:
    def __init__(self, returncode: int = 0, broken: bool = False) -> None:
        self.calls: List[Tuple[str, str, bool]] = []
        self.returncode = returncode
        self.broken = broken

    def __call__(self, host: str, command: str, pty: bool = True) -> int:
        self.calls.append((host, command, pty))
        if self.broken:
            raise TransportError("ssh: command not found")
        return self.returncode


@pytest.fixture
def project(tmp_path: Path) -> ProjectContext:
    return ProjectContext(
        root=tmp_path,
        build_path=derive_build_path(tmp_path),
        manifest_path=tmp_path / "Cargo.toml",
    )


@pytest.fixture
def make_context(project: ProjectContext):
    def _make(
        transfer: RecordingTransfer,
        remote_exec: RecordingRemoteExec,
        **option_overrides,
    ) -> PipelineContext:
        option_overrides.setdefault("build_server", "builder@build-box")
        option_overrides.setdefault("pass_through_args", ("build", "--release"))
        options = BuildOptions(**option_overrides)
        return PipelineContext(
            project=project,
            options=options,
            transfer=transfer,
            remote_exec=remote_exec,
        )

    return _make
