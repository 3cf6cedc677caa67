"""rsync and ssh backed transports used by the pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

from .utils import CommandError, run_command

RSYNC_FLAGS: Tuple[str, ...] = ("-a", "--compress", "--info=progress2")
REMOTE_PARENT = "remote-builds"


class TransportError(RuntimeError):
    """Raised when a transport process cannot be started."""


@dataclass(frozen=True)
class TransferOptions:
    mirror_deletes: bool = True
    exclude_hidden: bool = False
    exclude_paths: Tuple[str, ...] = ()
    create_remote_parent: bool = False


@dataclass
class RsyncTransfer:
    """Push or pull a directory tree with rsync over ssh."""

    executable: str = "rsync"
    extra_args: Sequence[str] = field(default_factory=tuple)

    def build_command(self, source: str, destination: str, options: TransferOptions) -> List[str]:
        command = [self.executable, *RSYNC_FLAGS]
        if options.mirror_deletes:
            command.insert(2, "--delete")
        for excluded in options.exclude_paths:
            command.extend(["--exclude", excluded])
        if options.exclude_hidden:
            command.extend(["--exclude", ".*"])
        if options.create_remote_parent:
            command.extend(["--rsync-path", f"mkdir -p {REMOTE_PARENT} && rsync"])
        command.extend(self.extra_args)
        command.extend([source, destination])
        return command

    def __call__(self, source: str, destination: str, options: TransferOptions) -> int:
        command = self.build_command(source, destination, options)
        try:
            result = run_command(command, check=False)
        except CommandError as exc:
            raise TransportError(str(exc)) from exc
        return result.returncode


@dataclass
class SshRemoteExec:
    """Run a command string on the build server, streaming the local terminal through."""

    executable: str = "ssh"
    extra_args: Sequence[str] = field(default_factory=tuple)

    def build_command(self, host: str, command: str, pty: bool = True) -> List[str]:
        argv = [self.executable]
        if pty:
            argv.append("-t")
        argv.extend(self.extra_args)
        argv.extend([host, command])
        return argv

    def __call__(self, host: str, command: str, pty: bool = True) -> int:
        argv = self.build_command(host, command, pty=pty)
        try:
            result = run_command(argv, check=False)
        except CommandError as exc:
            raise TransportError(str(exc)) from exc
        return result.returncode
