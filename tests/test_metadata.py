from __future__ import annotations

import json
import subprocess
from pathlib import Path

import pytest

from cargo_remote import metadata
from cargo_remote.metadata import MetadataError, resolve_project_root


def _fake_run(stdout: str):
    def _run(command, **kwargs):
        assert command[:2] == ["cargo", "metadata"]
        assert "--no-deps" in command
        return subprocess.CompletedProcess(command, 0, stdout=stdout, stderr="")

    return _run


def test_workspace_root_from_metadata(monkeypatch: pytest.MonkeyPatch) -> None:
    payload = json.dumps({"workspace_root": "/home/dev/ws", "packages": []})
    monkeypatch.setattr(metadata, "run_command", _fake_run(payload))
    assert resolve_project_root("Cargo.toml") == Path("/home/dev/ws")


def test_invalid_metadata_output(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(metadata, "run_command", _fake_run("not json"))
    with pytest.raises(MetadataError):
        resolve_project_root("Cargo.toml")


def test_missing_workspace_root(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(metadata, "run_command", _fake_run("{}"))
    with pytest.raises(MetadataError, match="workspace_root"):
        resolve_project_root("Cargo.toml")


def test_missing_cargo_binary() -> None:
    with pytest.raises(MetadataError):
        resolve_project_root("Cargo.toml", cargo="cargo-remote-missing-cargo")
