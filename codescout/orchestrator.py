"""Commit orchestrator: runs an analyzer across an ordered list of revisions.

The working tree is a single shared resource, so commits are processed one
at a time: checkout, repair, setup, analyze, then emit. Each output is
handed out before the next checkout starts, which means a failure at a
later commit never loses results that were already produced.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Sequence

from . import shell
from .analyzers import Analyzer
from .git import RevisionSource
from .models import MetricInput, Output, RepairOptions, SetupCommand
from .storage import ResultSink

logger = logging.getLogger(__name__)

HEAD = "HEAD"


def group_by_commit(metrics: Iterable[MetricInput]) -> Dict[str, List[MetricInput]]:
    """Map each commit to the metrics requested there, in first-seen order.

    ``[c1, c2]`` and ``[c1, c3]`` group as ``c1 -> both, c2 -> first,
    c3 -> second``; commits are never re-sorted.
    """
    grouped: Dict[str, List[MetricInput]] = {}
    for metric in metrics:
        for commit in metric.commits:
            bucket = grouped.setdefault(commit, [])
            if not any(existing is metric for existing in bucket):
                bucket.append(metric)
    return grouped


def resolve_head(metrics: Sequence[MetricInput], source: RevisionSource) -> List[MetricInput]:
    """Replace ``HEAD`` with the concrete revision checked out right now."""
    if not any(HEAD in metric.commits for metric in metrics):
        return list(metrics)
    head = source.current_revision()
    logger.debug("Resolved HEAD to %s", head)
    return [
        metric.with_commits([head if commit == HEAD else commit for commit in metric.commits])
        for metric in metrics
    ]


class CommitOrchestrator:
    """Drives one analyzer over the commits its metrics request."""

    def __init__(
        self,
        source: RevisionSource,
        analyzer: Analyzer,
        repair: RepairOptions = RepairOptions(),
        setup_commands: Sequence[SetupCommand] = (),
        runner: Optional[Callable[..., Optional[str]]] = None,
    ) -> None:
        self.source = source
        self.analyzer = analyzer
        self.repair = repair
        self.setup_commands = list(setup_commands)
        self.runner = runner or shell.run_setup_command
        self._lock = threading.Lock()

    def run(self, metrics: Sequence[MetricInput]) -> Iterator[Output]:
        """Yield one :class:`Output` per commit, in first-seen commit order.

        Checkout, repair and required setup failures propagate to the
        caller; outputs yielded before the failure stay with the caller.
        """
        if not self._lock.acquire(blocking=False):
            raise RuntimeError("This orchestrator is already running; the working tree has one owner")
        try:
            self.analyzer.prepare()
            plan = group_by_commit(resolve_head(metrics, self.source))
            logger.info(
                "Will analyze %d commit(s) for %d %s metric(s)",
                len(plan), len(metrics), self.analyzer.kind or "analysis",
            )
            for commit, commit_metrics in plan.items():
                yield self._process_commit(commit, commit_metrics)
        finally:
            self._lock.release()

    def execute(self, metrics: Sequence[MetricInput], sinks: Sequence[ResultSink] = ()) -> List[Output]:
        """Run to completion, appending every output to every sink as it arrives."""
        outputs: List[Output] = []
        for output in self.run(metrics):
            for sink in sinks:
                sink.append(output)
            outputs.append(output)
        logger.info("Summary: analyzed %d commit(s)", len(outputs))
        return outputs

    # ------------------------------------------------------------------
    # Per-commit pipeline
    # ------------------------------------------------------------------

    def _process_commit(self, commit: str, metrics: List[MetricInput]) -> Output:
        logger.info("Processing commit: %s (%d metric(s))", commit, len(metrics))
        self.source.checkout(commit)
        if self.repair.enabled:
            self.source.repair_working_tree(self.repair)
        for command in self.setup_commands:
            logger.debug("Running setup command: %s", command.command)
            self.runner(command, self.source.root)

        results = self.analyzer.analyze(self.source.root, metrics)
        for item in results:
            logger.info("Found %d for '%s' at %s", item.count, item.label, commit)
        return Output(commit=commit, date=self.source.commit_date(commit), results=results)
