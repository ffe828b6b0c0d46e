"""
Git layer: the single working tree that every analysis reads from.

The revision source is the only writer of the working tree. It is passed
explicitly into the orchestrator so tests can swap in an in-memory fake.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Union

from . import shell
from .models import RepairOptions

logger = logging.getLogger(__name__)


class GitError(Exception):
    """Exception raised for Git operation failures."""
    pass


class GitRepositoryError(GitError):
    """Exception raised when the path is not a usable Git repository."""
    pass


class GitCheckoutError(GitError):
    """Exception raised for Git checkout failures."""
    pass


class GitCommandError(GitError):
    """Exception raised when any other git command exits non-zero."""
    pass


class RevisionSource(ABC):
    """Supplies revisions and mutates the one shared working tree."""

    root: Path

    @abstractmethod
    def current_revision(self) -> str:
        """Return the commit currently checked out."""
        ...

    @abstractmethod
    def checkout(self, revision: str) -> None:
        ...

    @abstractmethod
    def repair_working_tree(self, options: RepairOptions) -> None:
        ...

    @abstractmethod
    def commit_date(self, revision: str) -> str:
        """Return the commit timestamp as ISO-8601 UTC (``2025-01-15T07:30:00Z``)."""
        ...


def format_utc(raw: str) -> str:
    """Normalize an ISO-8601 timestamp with offset to UTC ``Z`` form."""
    try:
        parsed = datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
    except ValueError as exc:
        raise GitError(
            f"Invalid date format: {raw!r} (expected ISO 8601, e.g. 2024-12-01T11:51:11+03:00)"
        ) from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class GitRepository(RevisionSource):
    """Revision source backed by the ``git`` executable."""

    def __init__(self, root: Union[str, Path]) -> None:
        self.root = Path(root).resolve()
        if not self.root.is_dir():
            raise GitRepositoryError(f"Repository path does not exist: {self.root}")

    def _git(self, args: List[str]) -> str:
        try:
            return shell.run(["git"] + args, cwd=self.root)
        except shell.ShellError as exc:
            message = str(exc)
            if "not a git repository" in message.lower():
                raise GitRepositoryError(f"Not a Git repository: {self.root}") from exc
            raise GitCommandError(message) from exc

    # ------------------------------------------------------------------
    # Revisions
    # ------------------------------------------------------------------

    def current_revision(self) -> str:
        return self._git(["rev-parse", "HEAD"])

    def checkout(self, revision: str) -> None:
        logger.debug("Checking out %s", revision)
        try:
            self._git(["checkout", "--quiet", revision])
        except GitRepositoryError:
            raise
        except GitError as exc:
            raise GitCheckoutError(f"Failed to checkout '{revision}': {exc}") from exc

    def commit_date(self, revision: str) -> str:
        return format_utc(self._git(["show", "-s", "--format=%cI", revision]))

    # ------------------------------------------------------------------
    # Working tree repair
    # ------------------------------------------------------------------

    def repair_working_tree(self, options: RepairOptions) -> None:
        if options.clean:
            self._clean_and_reset()
        if options.fix_lfs:
            self._fix_broken_lfs()
        if options.initialize_submodules:
            self._fix_submodules()

    def _clean_and_reset(self) -> None:
        logger.debug("Cleaning untracked files and resetting working directory")
        self._git(["clean", "-ffdx"])
        self._git(["reset", "--hard", "HEAD"])

    def _fix_broken_lfs(self) -> None:
        # Files tracked by LFS whose content never reached LFS storage show up
        # as modified pointer files after checkout; commit them so the tree is clean.
        modified = self._git(["ls-files", "-m"])
        if modified:
            logger.debug("Found modified files (possibly broken LFS), committing fix")
            self._git(["add", "-A"])
            self._git([
                "-c", "user.name=codescout", "-c", "user.email=codescout@localhost",
                "commit", "--quiet", "-m", "LFS Fix",
            ])

    def _fix_submodules(self) -> None:
        self._git(["reset", "--hard", "HEAD"])
        status = self._git(["submodule", "status", "--recursive"])
        # Lines starting with '-' are uninitialized submodules
        initialized = any(
            line.strip() and not line.strip().startswith("-")
            for line in status.splitlines()
        )
        if initialized:
            self._git(["submodule", "foreach", "--recursive", "git", "reset", "--hard", "HEAD"])
        self._git(["submodule", "update", "--init", "--recursive"])
