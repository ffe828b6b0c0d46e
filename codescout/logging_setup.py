"""Logging configuration for the ``codescout`` logger tree.

Locally, records go through :class:`rich.logging.RichHandler` on stderr.
Inside GitHub Actions (``GITHUB_ACTIONS=true``) they are printed as
workflow commands so warnings and errors show up as run annotations.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "codescout"


def _escape(value: str) -> str:
    return (
        value.replace("%", "%25")
        .replace("\r", "%0D")
        .replace("\n", "%0A")
    )


def _escape_property(value: str) -> str:
    return _escape(value).replace(":", "%3A").replace(",", "%2C")


class GitHubActionsHandler(logging.Handler):
    """Formats records as GitHub Actions workflow commands.

    INFO records are printed as plain lines; DEBUG becomes ``::debug::``,
    WARNING ``::warning``, ERROR and above ``::error`` with file, line and
    title properties.
    """

    def __init__(self, stream=None) -> None:
        super().__init__()
        self.stream = stream

    @staticmethod
    def command_for(levelno: int) -> str:
        if levelno >= logging.ERROR:
            return "error"
        if levelno >= logging.WARNING:
            return "warning"
        if levelno >= logging.INFO:
            return ""
        return "debug"

    def format_record(self, record: logging.LogRecord) -> str:
        message = self.format(record)
        command = self.command_for(record.levelno)
        if not command:
            return message
        if command == "debug":
            return f"::debug::{_escape(message)}"
        title = _escape_property(f"{record.name}: {record.funcName}")
        params = f"file={os.path.basename(record.pathname)},line={record.lineno},title={title}"
        return f"::{command} {params}::{_escape(message)}"

    def emit(self, record: logging.LogRecord) -> None:
        try:
            stream = self.stream or sys.stdout
            stream.write(self.format_record(record) + "\n")
            stream.flush()
        except Exception:
            self.handleError(record)


def setup_logging(verbose: bool = False, github_actions: Optional[bool] = None) -> logging.Logger:
    """Configure the ``codescout`` logger once; repeated calls replace the handler."""
    if github_actions is None:
        github_actions = os.environ.get("GITHUB_ACTIONS", "").lower() == "true"

    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler: logging.Handler
    if github_actions:
        handler = GitHubActionsHandler()
        handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        handler = RichHandler(
            console=Console(stderr=True),
            show_path=verbose,
            rich_tracebacks=True,
            markup=False,
        )
        handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))

    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.propagate = False
    return logger
