"""Thin subprocess wrapper for external tools (git, cloc, setup commands).

Commands are executed directly, never through a shell: pass the executable
and its arguments as a list and use ``cwd`` instead of ``cd``.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from pathlib import Path
from typing import List, Optional, Union

from . import config
from .models import SetupCommand

logger = logging.getLogger(__name__)


class ShellError(Exception):
    """Raised when an external command cannot be run or exits non-zero."""

    def __init__(self, command: List[str], message: str, returncode: Optional[int] = None) -> None:
        self.command = command
        self.returncode = returncode
        super().__init__(f"Command failed: {' '.join(command)}\n{message}".rstrip())


def run(
    args: List[str],
    cwd: Optional[Union[str, Path]] = None,
    timeout: Optional[float] = None,
) -> str:
    """Run *args* to completion and return stripped stdout."""
    logger.debug("$ %s (cwd=%s)", " ".join(args), cwd or ".")
    try:
        result = subprocess.run(
            args,
            cwd=str(cwd) if cwd is not None else None,
            capture_output=True,
            text=True,
            timeout=timeout if timeout is not None else config.COMMAND_TIMEOUT,
        )
    except FileNotFoundError as exc:
        raise ShellError(args, f"Executable not found: {args[0]}") from exc
    except subprocess.TimeoutExpired as exc:
        raise ShellError(args, f"Timed out after {exc.timeout} seconds") from exc

    if result.returncode != 0:
        error_msg = (result.stderr or "").strip() or (result.stdout or "").strip()
        raise ShellError(args, error_msg, returncode=result.returncode)
    return result.stdout.strip()


def run_setup_command(command: SetupCommand, root: Union[str, Path]) -> Optional[str]:
    """Run a user supplied setup command inside the checked-out tree.

    Failures of optional commands are logged and swallowed; required
    commands raise :class:`ShellError`.
    """
    args = shlex.split(command.command)
    if not args:
        return None
    cwd = Path(root)
    if command.working_directory:
        cwd = cwd / command.working_directory
    try:
        return run(args, cwd=cwd)
    except ShellError as exc:
        if command.optional:
            logger.warning("Optional setup command failed, continuing: %s", exc)
            return None
        raise
