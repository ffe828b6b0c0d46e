"""Configuration file loading and CLI > file > default merging.

The configuration file is JSON (or TOML when its suffix is ``.toml``). Each
metric kind has its own section; git and setup settings are shared::

    {
      "git": {"repo_path": ".", "clean": false, "fix_lfs": false,
              "initialize_submodules": false},
      "setup_commands": [{"command": "make generate", "optional": true}],
      "workers": 4,
      "types": {"extensions": ["swift"],
                "metrics": [{"type": "UIView", "commits": ["HEAD"]}]}
    }
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import toml

from . import config
from .analyzers import format_loc_name
from .models import MetricInput, RepairOptions, SetupCommand

logger = logging.getLogger(__name__)

# Section key holding the query of a metric, per metric kind
QUERY_KEYS: Dict[str, str] = {
    "types": "type",
    "files": "extension",
    "imports": "import",
    "pattern": "pattern",
}


class ConfigError(Exception):
    """Raised for missing or malformed configuration, before any commit runs."""
    pass


@dataclass
class CLIInputs:
    """Values given on the command line; ``None`` / empty means "not given"."""

    queries: List[str] = field(default_factory=list)
    repo_path: Optional[str] = None
    commits: List[str] = field(default_factory=list)
    extensions: List[str] = field(default_factory=list)
    workers: Optional[int] = None
    git_clean: Optional[bool] = None
    fix_lfs: Optional[bool] = None
    initialize_submodules: Optional[bool] = None
    languages: List[str] = field(default_factory=list)
    include: List[str] = field(default_factory=list)
    exclude: List[str] = field(default_factory=list)
    name_template: Optional[str] = None


@dataclass
class RunConfig:
    kind: str
    repo_path: Path
    repair: RepairOptions = RepairOptions()
    setup_commands: List[SetupCommand] = field(default_factory=list)
    workers: int = config.DEFAULT_WORKERS
    extensions: List[str] = field(default_factory=lambda: list(config.DEFAULT_EXTENSIONS))
    metrics: List[MetricInput] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

def load_config_file(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load the configuration file.

    Without *path* the default ``codescout.json`` is read when present and
    silently skipped otherwise; an explicit *path* must exist.
    """
    if path is None:
        path = config.DEFAULT_CONFIG_FILE
        if not path.exists():
            logger.debug("No configuration file at %s, using defaults", path)
            return {}
    elif not path.is_file():
        raise ConfigError(f"Configuration file not found: {path}")

    try:
        text = path.read_text(encoding="utf-8")
        data = toml.loads(text) if path.suffix == ".toml" else json.loads(text)
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Cannot read configuration file {path}: {exc}") from exc
    except (json.JSONDecodeError, toml.TomlDecodeError) as exc:
        raise ConfigError(f"Malformed configuration file {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"Configuration file {path} must contain an object at the top level")
    logger.debug("Loaded configuration from %s", path)
    return data


def _section(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{key}' must be an object")
    return value


def _string_list(value: Any, where: str) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ConfigError(f"{where} must be a list of strings")
    return list(value)


def _pick(cli_value: Optional[bool], file_value: Any, default: bool = False) -> bool:
    if cli_value is not None:
        return cli_value
    if file_value is not None:
        return bool(file_value)
    return default


# ---------------------------------------------------------------------------
# Parsing individual entries
# ---------------------------------------------------------------------------

def parse_setup_commands(raw: Any) -> List[SetupCommand]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ConfigError("'setup_commands' must be a list")
    commands = []
    for index, entry in enumerate(raw):
        if isinstance(entry, str):
            entry = {"command": entry}
        if not isinstance(entry, dict) or not isinstance(entry.get("command"), str):
            raise ConfigError(f"setup_commands[{index}] needs a 'command' string")
        commands.append(SetupCommand(
            command=entry["command"],
            working_directory=entry.get("working_directory"),
            optional=bool(entry.get("optional", False)),
        ))
    return commands


def metric_from_entry(kind: str, entry: Any) -> MetricInput:
    """Build a metric from one ``metrics`` entry of a section."""
    if not isinstance(entry, dict):
        raise ConfigError(f"Every '{kind}' metric must be an object")

    commits_raw = entry.get("commits")
    commits = (
        list(config.DEFAULT_COMMITS) if commits_raw is None
        else _string_list(commits_raw, f"'{kind}' metric commits")
    )

    if kind == "loc":
        languages = _string_list(entry.get("languages"), "loc 'languages'")
        include = _string_list(entry.get("include"), "loc 'include'")
        exclude = _string_list(entry.get("exclude"), "loc 'exclude'")
        name = format_loc_name(languages, include, exclude, entry.get("name_template"))
        return MetricInput(
            query=name,
            commits=commits,
            options={"languages": languages, "include": include, "exclude": exclude},
        )

    key = QUERY_KEYS[kind]
    query = entry.get(key)
    if not isinstance(query, str) or not query.strip():
        raise ConfigError(f"Every '{kind}' metric needs a non-empty '{key}'")
    return MetricInput(query=query, commits=commits)


# ---------------------------------------------------------------------------
# Merging
# ---------------------------------------------------------------------------

def _cli_metrics(kind: str, cli: CLIInputs) -> List[MetricInput]:
    commits = list(cli.commits) or list(config.DEFAULT_COMMITS)
    if kind == "loc":
        if not cli.languages:
            return []
        name = format_loc_name(cli.languages, cli.include, cli.exclude, cli.name_template)
        return [MetricInput(
            query=name,
            commits=commits,
            options={
                "languages": list(cli.languages),
                "include": list(cli.include),
                "exclude": list(cli.exclude),
            },
        )]
    return [MetricInput(query=query, commits=list(commits)) for query in cli.queries]


def build_run_config(kind: str, cli: CLIInputs, file_data: Optional[Dict[str, Any]] = None) -> RunConfig:
    """Merge CLI input over the configuration file over defaults."""
    if kind not in QUERY_KEYS and kind != "loc":
        raise ConfigError(f"Unknown metric kind: {kind}")
    file_data = file_data or {}
    git = _section(file_data, "git")
    section = _section(file_data, kind)

    metrics = _cli_metrics(kind, cli)
    if not metrics:
        entries = section.get("metrics") or []
        if not isinstance(entries, list):
            raise ConfigError(f"'{kind}.metrics' must be a list")
        for entry in entries:
            metric = metric_from_entry(kind, entry)
            if not metric.commits:
                logger.debug("Skipping '%s' metric %s: no commits requested", kind, metric.query)
                continue
            if cli.commits:
                metric = metric.with_commits(cli.commits)
            metrics.append(metric)
    if not metrics:
        raise ConfigError(f"No {kind} metrics given on the command line or in the configuration file")

    workers = cli.workers if cli.workers is not None else file_data.get("workers", config.DEFAULT_WORKERS)
    if not isinstance(workers, int) or isinstance(workers, bool) or workers < 1:
        raise ConfigError("'workers' must be a positive integer")

    extensions = (
        list(cli.extensions)
        or _string_list(section.get("extensions"), f"'{kind}.extensions'")
        or list(config.DEFAULT_EXTENSIONS)
    )

    return RunConfig(
        kind=kind,
        repo_path=Path(cli.repo_path or git.get("repo_path") or "."),
        repair=RepairOptions(
            clean=_pick(cli.git_clean, git.get("clean")),
            fix_lfs=_pick(cli.fix_lfs, git.get("fix_lfs")),
            initialize_submodules=_pick(cli.initialize_submodules, git.get("initialize_submodules")),
        ),
        setup_commands=parse_setup_commands(file_data.get("setup_commands")),
        workers=workers,
        extensions=[ext.lstrip(".") for ext in extensions],
        metrics=metrics,
    )
