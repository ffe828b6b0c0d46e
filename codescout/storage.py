"""Result sinks: where per-commit outputs go as soon as they are produced."""

from __future__ import annotations

import json
import logging
import os
import stat
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Union

from .models import Output

logger = logging.getLogger(__name__)

_UMASK_LOCK = threading.Lock()


def _current_umask() -> int:
    # os.umask can only be read by setting it
    with _UMASK_LOCK:
        mask = os.umask(0o022)
        os.umask(mask)
    return mask


class ResultSink(ABC):
    """Receives outputs one commit at a time, in processing order."""

    @abstractmethod
    def append(self, output: Output) -> None:
        ...


class MemorySink(ResultSink):
    """Keeps every output in memory (summaries, tests)."""

    def __init__(self) -> None:
        self.outputs: List[Output] = []

    def append(self, output: Output) -> None:
        self.outputs.append(output)


class IncrementalJSONWriter(ResultSink):
    """Rewrites the full JSON array after every append.

    The file is replaced atomically, so a run interrupted at any point
    leaves a complete, loadable array of the commits finished so far.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        self._outputs: List[Output] = []

    @property
    def outputs(self) -> List[Output]:
        return list(self._outputs)

    def append(self, output: Output) -> None:
        self._outputs.append(output)
        self._save()
        logger.debug("Results saved incrementally to %s (%d commits)", self.path, len(self._outputs))

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(
            [output.to_dict() for output in self._outputs],
            indent=2,
            sort_keys=True,
            ensure_ascii=False,
        )
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload + "\n")
            # mkstemp creates 0600; keep the mode a plain open() would give
            os.chmod(tmp_name, self._file_mode())
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _file_mode(self) -> int:
        if self.path.exists():
            return stat.S_IMODE(self.path.stat().st_mode)
        return 0o666 & ~_current_umask()


def load_outputs(path: Union[str, Path]) -> List[Output]:
    """Read back a file written by :class:`IncrementalJSONWriter`."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    return [Output.from_dict(item) for item in data]
