from __future__ import annotations

import json
from pathlib import Path

from .utils import CommandError, run_command


class MetadataError(RuntimeError):
    """Raised when the workspace root cannot be determined from the manifest."""


def resolve_project_root(manifest_path: str | Path, *, cargo: str = "cargo") -> Path:
    """Ask ``cargo metadata`` for the workspace root of ``manifest_path``."""

    command = [
        cargo,
        "metadata",
        "--no-deps",
        "--format-version",
        "1",
        "--manifest-path",
        str(manifest_path),
    ]
    try:
        result = run_command(command, capture=True)
    except CommandError as exc:
        raise MetadataError(str(exc)) from exc

    try:
        metadata = json.loads(result.stdout)
    except json.JSONDecodeError as exc:
        raise MetadataError(f"cargo metadata returned invalid JSON: {exc}") from exc

    workspace_root = metadata.get("workspace_root") if isinstance(metadata, dict) else None
    if not workspace_root:
        raise MetadataError("cargo metadata did not report a workspace_root")
    return Path(workspace_root)
