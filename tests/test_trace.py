"""Tests for solve traces."""

import json

from zzle_synth.core.trace import JSONLTraceWriter, SolveTrace, TraceEntry, read_traces


class TestSolveTrace:
    """Tests for the in-memory trace."""

    def test_log_and_finalize(self):
        trace = SolveTrace.start("7", strategy="beam_search", function_budgets=(4, 2))
        trace.log("depth_started", "engine", depth=1, candidates_tested=12, beam=3)
        trace.finalize(success=True, program="F0: FW", metrics={"steps": 1})

        data = trace.to_dict()
        assert data["level_id"] == "7"
        assert data["strategy"] == "beam_search"
        assert data["function_budgets"] == [4, 2]
        assert data["success"] is True
        assert data["final_program"] == "F0: FW"
        assert data["final_metrics"] == {"steps": 1}
        assert data["end_time"] is not None

        entry = data["entries"][0]
        assert entry["event_type"] == "depth_started"
        assert entry["depth"] == 1
        assert entry["candidates_tested"] == 12
        assert entry["details"] == {"beam": 3}

    def test_entry_now(self):
        entry = TraceEntry.now("solution_found", "engine", program="F0: FW")
        assert entry.component == "engine"
        assert entry.depth == 0
        assert entry.candidates_tested == 0
        assert entry.details["program"] == "F0: FW"

    def test_events_filter(self):
        trace = SolveTrace.start("1")
        trace.log("depth_started", "engine", depth=1)
        trace.log("depth_started", "engine", depth=2)
        trace.log("solution_found", "engine", depth=2, program="F0: FW")

        assert [e.depth for e in trace.events("depth_started")] == [1, 2]
        assert len(trace.events()) == 3
        assert trace.events("tier_started") == []


class TestJSONLTraceWriter:
    """Tests for writing and reading trace files."""

    def test_append_and_read(self, tmp_path):
        writer = JSONLTraceWriter(str(tmp_path / "traces"))
        ok = SolveTrace.start("1")
        ok.finalize(success=True, program="F0: FW")
        failed = SolveTrace.start("2")
        failed.finalize(success=False)

        path = writer.write_trace(ok)
        assert writer.write_trace(failed) == path
        assert path.name.startswith("traces_")

        assert [t["level_id"] for t in read_traces(path)] == ["1", "2"]
        assert [t["level_id"] for t in read_traces(path, success_only=True)] == ["1"]

    def test_explicit_session(self, tmp_path):
        writer = JSONLTraceWriter(str(tmp_path))
        path = writer.write_trace(SolveTrace.start("1"), session_id="run42")
        assert path == tmp_path / "traces_run42.jsonl"
        assert json.loads(path.read_text())["level_id"] == "1"

    def test_read_skips_bad_lines(self, tmp_path):
        path = tmp_path / "traces_x.jsonl"
        path.write_text('{"level_id": "1", "success": true}\nnot json\n\n')
        assert len(read_traces(path)) == 1

    def test_read_missing_file(self, tmp_path):
        assert read_traces(tmp_path / "missing.jsonl") == []
