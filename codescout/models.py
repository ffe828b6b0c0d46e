"""Core data models shared by extraction, resolution, and orchestration layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class DeclarationRecord:
    name: str
    inherited_types: Tuple[str, ...] = ()
    full_name: str = ""
    file_path: str = ""
    kind: str = "class"

    def __post_init__(self) -> None:
        if not self.full_name:
            object.__setattr__(self, "full_name", self.name)

    @property
    def is_typealias(self) -> bool:
        return self.kind == "typealias"


@dataclass(frozen=True)
class TypeQuery:
    base_name: str
    wildcard: bool = False

    def __str__(self) -> str:
        return f"{self.base_name}<*>" if self.wildcard else self.base_name


@dataclass
class MetricInput:
    """One logical question paired with the revisions it is evaluated at."""

    query: str
    commits: List[str] = field(default_factory=lambda: ["HEAD"])
    options: Dict[str, Any] = field(default_factory=dict)

    def with_commits(self, commits: List[str]) -> "MetricInput":
        return MetricInput(query=self.query, commits=list(commits), options=dict(self.options))


@dataclass
class ResultItem:
    label: str
    matches: List[str] = field(default_factory=list)
    value: Optional[int] = None

    @property
    def count(self) -> int:
        return self.value if self.value is not None else len(self.matches)

    def to_dict(self) -> Dict[str, Any]:
        return {"label": self.label, "matches": list(self.matches), "count": self.count}

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ResultItem":
        matches = list(payload.get("matches", []))
        count = payload.get("count")
        value = count if count is not None and count != len(matches) else None
        return cls(label=payload["label"], matches=matches, value=value)


@dataclass
class Output:
    commit: str
    date: str
    results: List[ResultItem] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "commit": self.commit,
            "date": self.date,
            "results": [item.to_dict() for item in self.results],
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Output":
        return cls(
            commit=payload["commit"],
            date=payload["date"],
            results=[ResultItem.from_dict(item) for item in payload.get("results", [])],
        )


@dataclass(frozen=True)
class RepairOptions:
    clean: bool = False
    fix_lfs: bool = False
    initialize_submodules: bool = False

    @property
    def enabled(self) -> bool:
        return self.clean or self.fix_lfs or self.initialize_submodules


@dataclass(frozen=True)
class SetupCommand:
    command: str
    working_directory: Optional[str] = None
    optional: bool = False
