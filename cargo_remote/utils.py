from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path
from typing import Mapping, Optional, Sequence

logger = logging.getLogger(__name__)


class CommandError(RuntimeError):
    """Raised when a subprocess cannot be started or exits with a non-zero status code."""

    def __init__(
        self,
        command: Sequence[str],
        returncode: Optional[int],
        reason: str = "",
        stderr: str = "",
    ) -> None:
        self.command = list(command)
        self.returncode = returncode
        self.reason = reason
        self.stderr = stderr
        if returncode is None:
            message = f"Command {' '.join(command)} could not be started: {reason}"
        else:
            message = f"Command {' '.join(command)} failed with exit code {returncode}"
            if stderr:
                message += f"\nSTDERR:{stderr}"
        super().__init__(message)


def run_command(
    command: Sequence[str],
    *,
    cwd: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    capture: bool = False,
    check: bool = True,
) -> subprocess.CompletedProcess[str]:
    """Execute a subprocess command and return the completed process.

    Without ``capture`` the child inherits stdin, stdout and stderr, so
    interactive output (rsync progress, a remote pty) reaches the terminal.
    """

    process_env = os.environ.copy()
    if env:
        process_env.update(env)

    pipe = subprocess.PIPE if capture else None
    logger.debug("Running %s", " ".join(command))
    try:
        result = subprocess.run(
            list(command),
            cwd=str(cwd) if cwd else None,
            env=process_env,
            stdout=pipe,
            stderr=pipe,
            text=True,
            check=False,
        )
    except OSError as exc:
        raise CommandError(command, None, str(exc)) from exc
    if check and result.returncode != 0:
        raise CommandError(command, result.returncode, stderr=result.stderr or "")
    return result
