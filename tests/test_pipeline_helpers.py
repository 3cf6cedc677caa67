from __future__ import annotations

import re
from pathlib import Path

from cargo_remote.models import BuildOptions
from cargo_remote.pipeline import (
    Stage,
    build_exit_status,
    derive_build_path,
    remote_target,
    render_remote_command,
)


def test_build_path_is_deterministic() -> None:
    assert derive_build_path("/home/dev/project") == derive_build_path("/home/dev/project")
    assert derive_build_path(Path("/home/dev/project")) == derive_build_path("/home/dev/project")


def test_build_path_differs_per_project() -> None:
    paths = {derive_build_path(f"/home/dev/project-{index}") for index in range(500)}
    assert len(paths) == 500


def test_build_path_shape() -> None:
    assert re.fullmatch(r"~/remote-builds/[0-9a-f]{16}/", derive_build_path("/srv/app"))


def test_render_remote_command_order() -> None:
    options = BuildOptions(
        build_server="host",
        build_env=("RUST_BACKTRACE=1",),
        toolchain="stable",
        env_profile="/etc/profile",
        pass_through_args=("build", "--release"),
    )
    command = render_remote_command(options, "~/remote-builds/123/")
    assert command == (
        "source /etc/profile; rustup default stable; cd ~/remote-builds/123/; "
        "RUST_BACKTRACE=1 cargo build --release"
    )


def test_render_remote_command_keeps_duplicates_and_does_not_quote() -> None:
    options = BuildOptions(
        build_server="host",
        build_env=("CC=clang", "CC=gcc"),
        toolchain="nightly",
        env_profile="~/.profile",
        pass_through_args=("test", "--", "tests/*.rs"),
    )
    command = render_remote_command(options, "~/remote-builds/9/")
    assert command.endswith("; CC=clang CC=gcc cargo test -- tests/*.rs")
    assert command.startswith("source ~/.profile; rustup default nightly; ")


def test_remote_target_joins_parts() -> None:
    options = BuildOptions(build_server="me@box")
    assert remote_target(options, "~/remote-builds/1/") == "me@box:~/remote-builds/1"
    assert remote_target(options, "~/remote-builds/1/", "Cargo.lock") == "me@box:~/remote-builds/1/Cargo.lock"
    assert remote_target(options, "~/remote-builds/1/", "target", "") == "me@box:~/remote-builds/1/target/"


def test_build_exit_status() -> None:
    assert build_exit_status(None) == 0
    assert build_exit_status(0) == 0
    assert build_exit_status(101) == 101
    assert build_exit_status(-9) == 1


def test_stage_failure_codes_are_distinct() -> None:
    codes = [stage.failure_code for stage in Stage.ordered()]
    assert codes == [-4, -5, -6, -7]
