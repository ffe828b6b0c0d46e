"""Tests for result sinks and output serialization."""

import json
import os
import stat
from pathlib import Path

from codescout.models import Output, ResultItem
from codescout.storage import IncrementalJSONWriter, MemorySink, load_outputs


def make_output(commit: str, *matches: str) -> Output:
    return Output(
        commit=commit,
        date="2025-01-15T07:30:00Z",
        results=[ResultItem(label="UIView", matches=list(matches))],
    )


class TestResultItem:
    def test_count_defaults_to_matches(self):
        assert ResultItem("A", ["x", "y"]).count == 2

    def test_value_overrides_count(self):
        item = ResultItem("Swift | Sources", ["Sources"], value=1200)
        assert item.to_dict() == {"label": "Swift | Sources", "matches": ["Sources"], "count": 1200}


class TestMemorySink:
    def test_keeps_order(self):
        sink = MemorySink()
        sink.append(make_output("c1"))
        sink.append(make_output("c2"))
        assert [o.commit for o in sink.outputs] == ["c1", "c2"]


class TestIncrementalJSONWriter:
    """The file on disk is a complete JSON array after every append."""

    def test_loadable_after_each_append(self, temp_dir: Path):
        path = temp_dir / "out" / "results.json"
        writer = IncrementalJSONWriter(path)

        writer.append(make_output("c1", "HomeView"))
        assert [o.commit for o in load_outputs(path)] == ["c1"]

        writer.append(make_output("c2", "HomeView", "CardView"))
        loaded = load_outputs(path)
        assert [o.commit for o in loaded] == ["c1", "c2"]
        assert loaded[1].results[0].matches == ["HomeView", "CardView"]

    def test_file_shape(self, temp_dir: Path):
        path = temp_dir / "results.json"
        IncrementalJSONWriter(path).append(make_output("abc", "HomeView"))

        data = json.loads(path.read_text())
        assert data == [{
            "commit": "abc",
            "date": "2025-01-15T07:30:00Z",
            "results": [{"count": 1, "label": "UIView", "matches": ["HomeView"]}],
        }]
        # Pretty printed with sorted keys
        assert path.read_text().startswith("[\n  {\n    \"commit\"")

    def test_no_temp_files_left(self, temp_dir: Path):
        writer = IncrementalJSONWriter(temp_dir / "results.json")
        writer.append(make_output("c1"))
        writer.append(make_output("c2"))
        assert [p.name for p in temp_dir.iterdir()] == ["results.json"]

    def test_round_trip_value(self, temp_dir: Path):
        path = temp_dir / "loc.json"
        output = Output("c1", "2025-01-15T07:30:00Z", [ResultItem("Swift | .", ["."], value=42)])
        IncrementalJSONWriter(path).append(output)
        assert load_outputs(path)[0].results[0].count == 42

    def test_file_mode_follows_umask(self, temp_dir: Path):
        path = temp_dir / "results.json"
        previous = os.umask(0o022)
        try:
            IncrementalJSONWriter(path).append(make_output("c1"))
        finally:
            os.umask(previous)
        assert stat.S_IMODE(path.stat().st_mode) == 0o644

    def test_existing_file_mode_is_kept(self, temp_dir: Path):
        path = temp_dir / "results.json"
        path.write_text("[]\n")
        path.chmod(0o664)
        IncrementalJSONWriter(path).append(make_output("c1"))
        assert stat.S_IMODE(path.stat().st_mode) == 0o664
