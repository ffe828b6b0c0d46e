"""Typer-based CLI: one command per metric kind."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console

from . import __version__
from .analyzers import (
    Analyzer,
    ClocNotInstalledError,
    FilesAnalyzer,
    ImportsAnalyzer,
    LOCAnalyzer,
    PatternAnalyzer,
    TypesAnalyzer,
)
from .config_manager import CLIInputs, ConfigError, RunConfig, build_run_config, load_config_file
from .git import GitError, GitRepository, GitRepositoryError
from .logging_setup import setup_logging
from .orchestrator import CommitOrchestrator
from .shell import ShellError
from .storage import IncrementalJSONWriter, MemorySink, ResultSink
from .summary import summary_lines, summary_markdown, summary_table, write_step_summary

logger = logging.getLogger(__name__)
console = Console()

app = typer.Typer(
    help="codescout: measure a codebase across git history.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"codescout v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    )
):
    """Count types, files, imports, text patterns and lines of code per commit."""
    pass


# ---------------------------------------------------------------------------
# Shared options
# ---------------------------------------------------------------------------

RepoPathOption = typer.Option(None, "--repo-path", "-r", help="Path to repository (default: current directory).")
ConfigOption = typer.Option(None, "--config", help="Path to configuration file (JSON or TOML).")
CommitsOption = typer.Option(None, "--commits", "-c", help="Commit to analyze; repeat for several (default: HEAD).")
OutputOption = typer.Option(None, "--output", "-o", help="Path to save JSON results, updated after every commit.")
VerboseOption = typer.Option(False, "--verbose", "-v", help="Enable debug logging.")
GitCleanOption = typer.Option(False, "--git-clean", help="Run 'git clean -ffdx && git reset --hard HEAD' after checkout.")
FixLfsOption = typer.Option(False, "--fix-lfs", help="Commit files left modified by broken LFS pointers after checkout.")
SubmodulesOption = typer.Option(False, "--initialize-submodules", help="Reset and update submodules after checkout.")
ExtensionsOption = typer.Option(None, "--extensions", "-e", help="Comma separated file extensions to scan (default: swift).")


def _split_csv(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def _flag(value: bool) -> Optional[bool]:
    # Unset flags defer to the configuration file
    return True if value else None


def _make_analyzer(run_config: RunConfig) -> Analyzer:
    if run_config.kind == "types":
        return TypesAnalyzer(run_config.extensions, workers=run_config.workers)
    if run_config.kind == "files":
        return FilesAnalyzer()
    if run_config.kind == "imports":
        return ImportsAnalyzer(run_config.extensions)
    if run_config.kind == "pattern":
        return PatternAnalyzer(run_config.extensions)
    return LOCAnalyzer()


def _report(kind: str, sink: MemorySink) -> None:
    for line in summary_lines(sink.outputs, kind):
        logger.info(line)
    if sink.outputs:
        console.print(summary_table(sink.outputs, kind))
    write_step_summary(summary_markdown(sink.outputs, kind))


def _run(kind: str, cli_inputs: CLIInputs, config_path: Optional[Path], output: Optional[Path], verbose: bool) -> None:
    setup_logging(verbose)

    try:
        run_config = build_run_config(kind, cli_inputs, load_config_file(config_path))
        source = GitRepository(run_config.repo_path)
    except ConfigError as exc:
        raise typer.BadParameter(str(exc))
    except GitRepositoryError as exc:
        raise typer.BadParameter(str(exc), param_hint="'--repo-path'")

    memory = MemorySink()
    sinks: List[ResultSink] = [memory]
    if output is not None:
        sinks.append(IncrementalJSONWriter(output))

    orchestrator = CommitOrchestrator(
        source,
        _make_analyzer(run_config),
        repair=run_config.repair,
        setup_commands=run_config.setup_commands,
    )
    try:
        orchestrator.execute(run_config.metrics, sinks)
    except ClocNotInstalledError as exc:
        raise typer.BadParameter(str(exc))
    except (GitError, ShellError) as exc:
        logger.error("%s", exc)
        _report(kind, memory)
        if memory.outputs:
            logger.error("Stopped after %d commit(s); results so far were kept", len(memory.outputs))
        raise typer.Exit(code=1)

    _report(kind, memory)
    if output is not None:
        logger.info("Results saved to %s", output)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

@app.command("types")
def types_command(
    types: Optional[List[str]] = typer.Argument(None, help="Types to count, e.g. UIView or 'Base<*>'."),
    repo_path: Optional[str] = RepoPathOption,
    config: Optional[Path] = ConfigOption,
    commits: Optional[List[str]] = CommitsOption,
    output: Optional[Path] = OutputOption,
    verbose: bool = VerboseOption,
    git_clean: bool = GitCleanOption,
    fix_lfs: bool = FixLfsOption,
    initialize_submodules: bool = SubmodulesOption,
    extensions: Optional[str] = ExtensionsOption,
    workers: Optional[int] = typer.Option(None, "--workers", min=1, help="Parallel parser workers per commit."),
):
    """Count declarations inheriting from or conforming to the given types."""
    _run("types", CLIInputs(
        queries=list(types or []),
        repo_path=repo_path,
        commits=list(commits or []),
        extensions=_split_csv(extensions),
        workers=workers,
        git_clean=_flag(git_clean),
        fix_lfs=_flag(fix_lfs),
        initialize_submodules=_flag(initialize_submodules),
    ), config, output, verbose)


@app.command("files")
def files_command(
    filetypes: Optional[List[str]] = typer.Argument(None, help="File extensions to count, e.g. swift storyboard."),
    repo_path: Optional[str] = RepoPathOption,
    config: Optional[Path] = ConfigOption,
    commits: Optional[List[str]] = CommitsOption,
    output: Optional[Path] = OutputOption,
    verbose: bool = VerboseOption,
    git_clean: bool = GitCleanOption,
    fix_lfs: bool = FixLfsOption,
    initialize_submodules: bool = SubmodulesOption,
):
    """Count files by extension."""
    _run("files", CLIInputs(
        queries=[ext.lstrip(".") for ext in filetypes or []],
        repo_path=repo_path,
        commits=list(commits or []),
        git_clean=_flag(git_clean),
        fix_lfs=_flag(fix_lfs),
        initialize_submodules=_flag(initialize_submodules),
    ), config, output, verbose)


@app.command("imports")
def imports_command(
    imports: Optional[List[str]] = typer.Argument(None, help="Module names to count, e.g. UIKit."),
    repo_path: Optional[str] = RepoPathOption,
    config: Optional[Path] = ConfigOption,
    commits: Optional[List[str]] = CommitsOption,
    output: Optional[Path] = OutputOption,
    verbose: bool = VerboseOption,
    git_clean: bool = GitCleanOption,
    fix_lfs: bool = FixLfsOption,
    initialize_submodules: bool = SubmodulesOption,
    extensions: Optional[str] = ExtensionsOption,
):
    """Count files importing the given modules."""
    _run("imports", CLIInputs(
        queries=list(imports or []),
        repo_path=repo_path,
        commits=list(commits or []),
        extensions=_split_csv(extensions),
        git_clean=_flag(git_clean),
        fix_lfs=_flag(fix_lfs),
        initialize_submodules=_flag(initialize_submodules),
    ), config, output, verbose)


@app.command("pattern")
def pattern_command(
    patterns: Optional[List[str]] = typer.Argument(None, help="Literal text to search for, e.g. '// TODO:'."),
    repo_path: Optional[str] = RepoPathOption,
    config: Optional[Path] = ConfigOption,
    commits: Optional[List[str]] = CommitsOption,
    output: Optional[Path] = OutputOption,
    verbose: bool = VerboseOption,
    git_clean: bool = GitCleanOption,
    fix_lfs: bool = FixLfsOption,
    initialize_submodules: bool = SubmodulesOption,
    extensions: Optional[str] = ExtensionsOption,
):
    """Count lines containing the given text patterns."""
    _run("pattern", CLIInputs(
        queries=list(patterns or []),
        repo_path=repo_path,
        commits=list(commits or []),
        extensions=_split_csv(extensions),
        git_clean=_flag(git_clean),
        fix_lfs=_flag(fix_lfs),
        initialize_submodules=_flag(initialize_submodules),
    ), config, output, verbose)


@app.command("loc")
def loc_command(
    languages: Optional[str] = typer.Option(None, "--languages", "-l", help="Comma separated cloc language names, e.g. Swift,Objective-C."),
    include: Optional[str] = typer.Option(None, "--include", help="Comma separated folder suffixes to analyze (default: repository root)."),
    exclude: Optional[str] = typer.Option(None, "--exclude", help="Comma separated path fragments to skip (case-insensitive)."),
    name_template: Optional[str] = typer.Option(None, "--name-template", help="Metric name template with %langs%, %include%, %exclude%."),
    repo_path: Optional[str] = RepoPathOption,
    config: Optional[Path] = ConfigOption,
    commits: Optional[List[str]] = CommitsOption,
    output: Optional[Path] = OutputOption,
    verbose: bool = VerboseOption,
    git_clean: bool = GitCleanOption,
    fix_lfs: bool = FixLfsOption,
    initialize_submodules: bool = SubmodulesOption,
):
    """Count lines of code per language with cloc."""
    _run("loc", CLIInputs(
        repo_path=repo_path,
        commits=list(commits or []),
        git_clean=_flag(git_clean),
        fix_lfs=_flag(fix_lfs),
        initialize_submodules=_flag(initialize_submodules),
        languages=_split_csv(languages),
        include=_split_csv(include),
        exclude=_split_csv(exclude),
        name_template=name_template,
    ), config, output, verbose)
