"""Tests for run summaries and logging setup."""

import io
import logging
from pathlib import Path

from rich.console import Console

from codescout.logging_setup import GitHubActionsHandler, setup_logging
from codescout.models import Output, ResultItem
from codescout.summary import summary_lines, summary_markdown, summary_table, write_step_summary


OUTPUTS = [
    Output("abc1234def567", "2025-01-15T07:30:00Z", [ResultItem("UIView", ["A", "B", "C"])]),
    Output("fff0000aaa111", "2025-01-16T07:30:00Z", [ResultItem("UIView", ["A"])]),
]


class TestSummary:
    def test_text_lines(self):
        assert summary_lines(OUTPUTS, "types") == [
            "Type counts:",
            "  - abc1234: UIView: 3",
            "  - fff0000: UIView: 1",
        ]

    def test_text_lines_empty(self):
        assert summary_lines([], "types") == []

    def test_markdown(self):
        markdown = summary_markdown(OUTPUTS, "types")
        assert markdown.startswith("## codescout types summary")
        assert "| Commit | Type | Count |" in markdown
        assert "| `abc1234` | `UIView` | 3 |" in markdown

    def test_markdown_escapes_pipes(self):
        outputs = [Output("abc1234", "2025-01-15T07:30:00Z", [ResultItem("Swift | Sources", value=10)])]
        assert "`Swift \\| Sources`" in summary_markdown(outputs, "loc")

    def test_table(self):
        console = Console(file=io.StringIO(), width=120)
        console.print(summary_table(OUTPUTS, "types"))
        rendered = console.file.getvalue()
        assert "abc1234" in rendered
        assert "UIView" in rendered

    def test_step_summary_appends(self, temp_dir: Path):
        path = temp_dir / "summary.md"
        path.write_text("existing\n")
        assert write_step_summary("## new\n", str(path)) is True
        assert path.read_text() == "existing\n## new\n"

    def test_step_summary_not_configured(self, monkeypatch):
        monkeypatch.delenv("GITHUB_STEP_SUMMARY", raising=False)
        assert write_step_summary("## nothing\n") is False


class TestGitHubActionsHandler:
    def _record(self, level, message):
        return logging.LogRecord("codescout.parser", level, "/src/codescout/parser.py", 42, message, None, None, func="parse")

    def test_levels(self):
        handler = GitHubActionsHandler()
        handler.setFormatter(logging.Formatter("%(message)s"))

        assert handler.format_record(self._record(logging.INFO, "plain")) == "plain"
        assert handler.format_record(self._record(logging.DEBUG, "details")) == "::debug::details"
        warning = handler.format_record(self._record(logging.WARNING, "Failed to parse x"))
        assert warning.startswith("::warning file=parser.py,line=42,title=codescout.parser%3A parse::")
        assert warning.endswith("Failed to parse x")
        assert handler.format_record(self._record(logging.ERROR, "boom")).startswith("::error ")

    def test_multiline_messages_are_escaped(self):
        handler = GitHubActionsHandler()
        handler.setFormatter(logging.Formatter("%(message)s"))
        assert handler.format_record(self._record(logging.ERROR, "a\nb")).endswith("::a%0Ab")

    def test_emit_writes_to_stream(self):
        stream = io.StringIO()
        handler = GitHubActionsHandler(stream)
        handler.setFormatter(logging.Formatter("%(message)s"))
        handler.emit(self._record(logging.WARNING, "careful"))
        assert stream.getvalue().endswith("::careful\n")


class TestSetupLogging:
    def test_github_actions_handler_selected(self):
        logger = setup_logging(verbose=True, github_actions=True)
        assert [type(h) for h in logger.handlers] == [GitHubActionsHandler]
        assert logger.level == logging.DEBUG

    def test_rich_handler_selected(self):
        from rich.logging import RichHandler

        logger = setup_logging(verbose=False, github_actions=False)
        assert [type(h) for h in logger.handlers] == [RichHandler]
        assert logger.level == logging.INFO
