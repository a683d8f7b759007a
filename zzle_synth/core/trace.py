"""
Solve traces: a per-level audit trail of what the search engine did.

Each synthesize() call with tracing enabled produces one SolveTrace. The
engine appends a TraceEntry whenever a depth or tier starts and whenever a
solution is recorded; the finished trace is appended to a JSONL session file.
"""

import json
from dataclasses import dataclass, field, asdict
from datetime import datetime
from pathlib import Path
from typing import List, Dict, Any, Optional, Sequence


@dataclass
class TraceEntry:
    """
    One engine event.

    ``depth`` and ``candidates_tested`` snapshot the search counters when the
    event fired; anything event-specific (step cap, program text) goes in
    ``details``.
    """
    timestamp: str
    event_type: str  # "search_started", "depth_started", "tier_started", "solution_found"
    component: str   # "engine", "runner"
    depth: int = 0
    candidates_tested: int = 0
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def now(
        cls,
        event_type: str,
        component: str,
        depth: int = 0,
        candidates_tested: int = 0,
        **details: Any,
    ) -> "TraceEntry":
        return cls(
            timestamp=datetime.now().isoformat(),
            event_type=event_type,
            component=component,
            depth=depth,
            candidates_tested=candidates_tested,
            details=details,
        )


@dataclass
class SolveTrace:
    """Everything recorded while searching one level."""
    level_id: str
    start_time: str
    strategy: Optional[str] = None
    function_budgets: List[int] = field(default_factory=list)
    end_time: Optional[str] = None
    success: bool = False
    entries: List[TraceEntry] = field(default_factory=list)
    final_program: Optional[str] = None
    final_metrics: Dict[str, Any] = field(default_factory=dict)

    def log(
        self,
        event_type: str,
        component: str,
        depth: int = 0,
        candidates_tested: int = 0,
        **details: Any
    ) -> TraceEntry:
        """Append an event stamped with the current time."""
        entry = TraceEntry.now(event_type, component, depth, candidates_tested, **details)
        self.entries.append(entry)
        return entry

    def events(self, event_type: Optional[str] = None) -> List[TraceEntry]:
        """Entries in order, optionally only those of one type."""
        if event_type is None:
            return list(self.entries)
        return [e for e in self.entries if e.event_type == event_type]

    def finalize(
        self,
        success: bool,
        program: Optional[str] = None,
        metrics: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Stamp the end time and the outcome."""
        self.end_time = datetime.now().isoformat()
        self.success = success
        self.final_program = program
        if metrics:
            self.final_metrics = dict(metrics)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level_id": self.level_id,
            "strategy": self.strategy,
            "function_budgets": list(self.function_budgets),
            "start_time": self.start_time,
            "end_time": self.end_time,
            "success": self.success,
            "final_program": self.final_program,
            "final_metrics": self.final_metrics,
            "entries": [asdict(e) for e in self.entries],
        }

    @classmethod
    def start(
        cls,
        level_id: str,
        strategy: Optional[str] = None,
        function_budgets: Sequence[int] = (),
    ) -> "SolveTrace":
        """Open a trace for a level about to be searched."""
        return cls(
            level_id=level_id,
            start_time=datetime.now().isoformat(),
            strategy=strategy,
            function_budgets=list(function_budgets),
        )


class JSONLTraceWriter:
    """
    Appends finished traces to ``traces_<session>.jsonl``, one per line.

    The session id defaults to the time of the first write, so every level
    of one runner invocation lands in the same file.
    """

    def __init__(self, trace_dir: str = "traces"):
        self.trace_dir = Path(trace_dir)
        self.trace_dir.mkdir(parents=True, exist_ok=True)
        self._session: Optional[str] = None

    def session_path(self, session_id: Optional[str] = None) -> Path:
        if session_id is None:
            if self._session is None:
                self._session = datetime.now().strftime("%Y%m%d_%H%M%S")
            session_id = self._session
        return self.trace_dir / f"traces_{session_id}.jsonl"

    def write_trace(
        self,
        trace: SolveTrace,
        session_id: Optional[str] = None,
    ) -> Path:
        """Append one trace and return the file it went to."""
        path = self.session_path(session_id)
        with open(path, "a") as f:
            f.write(json.dumps(trace.to_dict(), separators=(",", ":")))
            f.write("\n")
        return path


def read_traces(trace_path: Path, success_only: bool = False) -> List[Dict[str, Any]]:
    """Read every trace in a JSONL file, skipping unreadable lines."""
    if not trace_path.exists():
        return []

    traces = []
    with open(trace_path, "r") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                trace = json.loads(line)
            except json.JSONDecodeError:
                continue
            if success_only and not trace.get("success", False):
                continue
            traces.append(trace)
    return traces
