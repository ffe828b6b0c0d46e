"""Integration tests for CLI commands against a temporary git repository."""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from codescout import __version__
from codescout.cli import app
from codescout.storage import load_outputs


runner = CliRunner()


@pytest.fixture(autouse=True)
def _isolated_cwd(temp_dir: Path, monkeypatch):
    """Run every command from an empty directory without CI side effects."""
    workdir = temp_dir / "cwd"
    workdir.mkdir()
    monkeypatch.chdir(workdir)
    monkeypatch.delenv("GITHUB_STEP_SUMMARY", raising=False)
    monkeypatch.delenv("GITHUB_ACTIONS", raising=False)
    return workdir


class TestVersion:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout


class TestTypesCommand:
    """Tests for 'codescout types'."""

    def test_types_across_commits(self, git_repo, temp_dir: Path):
        repo, commits = git_repo
        out = temp_dir / "types.json"

        result = runner.invoke(app, [
            "types", "Base",
            "--repo-path", str(repo),
            "--extensions", "py",
            "-c", commits["c1"], "-c", commits["c3"],
            "--output", str(out),
        ])

        assert result.exit_code == 0, result.output
        outputs = load_outputs(out)
        assert [o.commit for o in outputs] == [commits["c1"], commits["c3"]]
        assert outputs[0].results[0].matches == ["Child"]
        # models.Base is not the bare edge Base
        assert outputs[1].results[0].matches == ["Child", "GrandChild", "Worker"]
        assert outputs[1].date.endswith("Z")

    def test_head_is_default(self, git_repo, temp_dir: Path):
        repo, commits = git_repo
        out = temp_dir / "head.json"

        result = runner.invoke(app, ["types", "Child", "-r", str(repo), "-e", "py", "-o", str(out)])

        assert result.exit_code == 0, result.output
        [output] = load_outputs(out)
        assert output.commit == commits["c3"]
        assert output.results[0].matches == ["GrandChild"]

    def test_failed_checkout_keeps_earlier_results(self, git_repo, temp_dir: Path):
        repo, commits = git_repo
        out = temp_dir / "partial.json"

        result = runner.invoke(app, [
            "types", "Base", "-r", str(repo), "-e", "py",
            "-c", commits["c1"], "-c", "no-such-revision",
            "-o", str(out),
        ])

        assert result.exit_code == 1
        assert [o.commit for o in load_outputs(out)] == [commits["c1"]]

    def test_no_metrics_is_usage_error(self, git_repo):
        repo, _ = git_repo
        result = runner.invoke(app, ["types", "-r", str(repo)])
        assert result.exit_code == 2

    def test_missing_explicit_config(self, git_repo, temp_dir: Path):
        repo, _ = git_repo
        result = runner.invoke(app, ["types", "-r", str(repo), "--config", str(temp_dir / "nope.json")])
        assert result.exit_code == 2

    def test_missing_repository(self, temp_dir: Path):
        result = runner.invoke(app, ["types", "Base", "-r", str(temp_dir / "nowhere")])
        assert result.exit_code == 2

    def test_default_config_file(self, git_repo, temp_dir: Path, _isolated_cwd: Path):
        repo, commits = git_repo
        (_isolated_cwd / "codescout.json").write_text(json.dumps({
            "git": {"repo_path": str(repo)},
            "types": {
                "extensions": ["py"],
                "metrics": [
                    {"type": "Child", "commits": [commits["c2"]]},
                    {"type": "Base", "commits": [commits["c1"], commits["c2"]]},
                ],
            },
        }))
        out = temp_dir / "config.json"

        result = runner.invoke(app, ["types", "-o", str(out)])

        assert result.exit_code == 0, result.output
        outputs = load_outputs(out)
        assert [o.commit for o in outputs] == [commits["c2"], commits["c1"]]
        assert [item.label for item in outputs[0].results] == ["Child", "Base"]
        assert [item.label for item in outputs[1].results] == ["Base"]


class TestSiblingCommands:
    def test_files(self, git_repo, temp_dir: Path):
        repo, commits = git_repo
        out = temp_dir / "files.json"
        result = runner.invoke(app, ["files", "py", "-r", str(repo), "-c", commits["c1"], "-c", commits["c3"], "-o", str(out)])

        assert result.exit_code == 0, result.output
        outputs = load_outputs(out)
        assert outputs[0].results[0].matches == ["models.py"]
        assert outputs[1].results[0].matches == ["models.py", "services.py"]

    def test_imports(self, git_repo, temp_dir: Path):
        repo, _ = git_repo
        out = temp_dir / "imports.json"
        result = runner.invoke(app, ["imports", "models", "-r", str(repo), "-e", "py", "-o", str(out)])

        assert result.exit_code == 0, result.output
        assert load_outputs(out)[0].results[0].matches == ["services.py"]

    def test_pattern(self, git_repo, temp_dir: Path):
        repo, _ = git_repo
        out = temp_dir / "pattern.json"
        result = runner.invoke(app, ["pattern", "class Base", "-r", str(repo), "-e", "py", "-o", str(out)])

        assert result.exit_code == 0, result.output
        assert load_outputs(out)[0].results[0].matches == ["models.py:1"]

    def test_step_summary_written(self, git_repo, temp_dir: Path, monkeypatch):
        repo, _ = git_repo
        summary_file = temp_dir / "summary.md"
        monkeypatch.setenv("GITHUB_STEP_SUMMARY", str(summary_file))

        result = runner.invoke(app, ["files", "py", "-r", str(repo)])

        assert result.exit_code == 0, result.output
        text = summary_file.read_text()
        assert "| Commit | Extension | Count |" in text
        assert "| `py` | 2 |" in text

    def test_loc_without_cloc(self, git_repo, monkeypatch):
        repo, _ = git_repo
        monkeypatch.setattr("codescout.analyzers.shutil.which", lambda name: None)
        result = runner.invoke(app, ["loc", "-l", "Python", "-r", str(repo)])
        assert result.exit_code == 2
