"""Pytest configuration and fixtures for codescout tests."""

import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Dict, Generator, List, Tuple

import pytest

from codescout.git import GitCheckoutError, RevisionSource
from codescout.models import RepairOptions


class FakeRevisionSource(RevisionSource):
    """In-memory revision source recording every call made on it."""

    def __init__(self, root: Path, head: str = "c0ffee0", missing: Tuple[str, ...] = ()):
        self.root = root
        self.head = head
        self.missing = set(missing)
        self.checked_out = None
        self.calls: List[tuple] = []

    def current_revision(self) -> str:
        self.calls.append(("current_revision",))
        return self.head

    def checkout(self, revision: str) -> None:
        self.calls.append(("checkout", revision))
        if revision in self.missing:
            raise GitCheckoutError(f"Failed to checkout '{revision}'")
        self.checked_out = revision

    def repair_working_tree(self, options: RepairOptions) -> None:
        self.calls.append(("repair", options))

    def commit_date(self, revision: str) -> str:
        self.calls.append(("commit_date", revision))
        return "2025-01-15T07:30:00Z"


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp()).resolve()
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def sample_project_path() -> Path:
    """Get path to sample test project."""
    return (Path(__file__).parent / "fixtures" / "sample_project").resolve()


@pytest.fixture
def fake_source(temp_dir: Path) -> FakeRevisionSource:
    return FakeRevisionSource(temp_dir)


def _git(cwd: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", "-c", "user.name=Test", "-c", "user.email=test@example.com",
         "-c", "commit.gpgsign=false", *args],
        cwd=cwd,
        check=True,
        capture_output=True,
        text=True,
    )
    return result.stdout.strip()


@pytest.fixture
def git_repo(temp_dir: Path) -> Tuple[Path, Dict[str, str]]:
    """A small Python repository with three commits.

    c1: Base, Child(Base)
    c2: + GrandChild(Child)
    c3: + Service(Base) in services.py
    """
    if shutil.which("git") is None:
        pytest.skip("git is not installed")

    repo = temp_dir / "repo"
    repo.mkdir()
    _git(repo, "init", "--quiet")

    commits: Dict[str, str] = {}
    models = repo / "models.py"

    models.write_text("class Base:\n    pass\n\n\nclass Child(Base):\n    pass\n")
    _git(repo, "add", "-A")
    _git(repo, "commit", "--quiet", "-m", "Add base models")
    commits["c1"] = _git(repo, "rev-parse", "HEAD")

    with models.open("a") as handle:
        handle.write("\n\nclass GrandChild(Child):\n    pass\n")
    _git(repo, "add", "-A")
    _git(repo, "commit", "--quiet", "-m", "Add grandchild")
    commits["c2"] = _git(repo, "rev-parse", "HEAD")

    (repo / "services.py").write_text("import models\n\n\nclass Service(models.Base):\n    pass\n\n\nclass Worker(Base):\n    pass\n")
    _git(repo, "add", "-A")
    _git(repo, "commit", "--quiet", "-m", "Add services")
    commits["c3"] = _git(repo, "rev-parse", "HEAD")

    return repo, commits
