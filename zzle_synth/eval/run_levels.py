#!/usr/bin/env python3
"""
Run the zzle_synth solver on level files.

Usage:
    python -m zzle_synth.eval.run_levels <level_or_dir> [--output <dir>] [--csv <file>]

Examples:
    python -m zzle_synth.eval.run_levels levels/1.json --show-board
    python -m zzle_synth.eval.run_levels levels/ --preset fast --csv solutions.csv
"""

import argparse
import csv
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..config import ConfigValidationError, create_config
from ..core.trace import JSONLTraceWriter
from ..core.types import LevelSpec, LevelValidationError, validate_level
from ..cre.synthesizer import SearchStrategy, SynthesisConfig, create_synthesizer
from ..dsl.prettyprint import board_to_text, program_to_listing

logger = logging.getLogger(__name__)

CSV_COLUMNS = [
    "Level",
    "Solved",
    "Steps",
    "Instructions",
    "Solution",
    "Start_X",
    "Start_Y",
    "Start_Direction",
    "Stars",
    "Tested",
]


def load_level(filepath: Path) -> LevelSpec:
    """Load and validate a level from a JSON file."""
    with open(filepath) as f:
        data = json.load(f)

    return validate_level(LevelSpec.from_dict(filepath.stem, data))


def _level_sort_key(path: Path):
    # "2.json" before "10.json"
    return (0, int(path.stem), "") if path.stem.isdigit() else (1, 0, path.stem)


def load_levels_from_dir(dirpath: Path) -> List[LevelSpec]:
    """Load all valid levels from a directory, skipping broken files."""
    levels = []
    for filepath in sorted(dirpath.glob("*.json"), key=_level_sort_key):
        try:
            levels.append(load_level(filepath))
        except (OSError, json.JSONDecodeError, LevelValidationError) as e:
            logger.warning("Skipping %s: %s", filepath, e)
    return levels


def run_single_level(
    level: LevelSpec,
    config: SynthesisConfig,
    verbose: bool = True,
    show_board: bool = False,
    trace_writer: Optional[JSONLTraceWriter] = None,
) -> Dict[str, Any]:
    """Run the solver on a single level."""
    if verbose:
        print(f"Solving level: {level.level_id}")
        print(f"  Board: {level.height}x{level.width}, stars: {level.star_count}")
        print(f"  Functions: {list(level.function_budgets)}")
        print(f"  Instructions: {' '.join(sorted(level.allowed_instructions))}")
        if show_board:
            print(board_to_text(
                level.board,
                robot=level.start_position,
                direction=level.start_direction,
            ))

    on_progress = None
    if verbose:
        def on_progress(tested: int, descriptor: str) -> None:
            logger.debug("%s: %d candidates tested (%s)", level.level_id, tested, descriptor)

    synthesizer = create_synthesizer(config.strategy, config, trace_writer=trace_writer)
    result = synthesizer.synthesize(level, on_progress=on_progress)

    if verbose:
        print(f"  Result: {result.status.value.upper()}")
        if result.success:
            print("  Program:")
            for line in program_to_listing(result.solution.program, level.function_budgets).splitlines():
                print(f"    {line}")
            print(f"  Steps: {result.solution.steps}")
        print(f"  Candidates tested: {result.candidates_tested} "
              f"(pruned: {result.candidates_pruned}) in {result.synthesis_time_ms / 1000:.2f}s")

    x, y = level.start_position
    solution = result.solution
    return {
        "level_id": level.level_id,
        "success": result.success,
        "status": result.status.value,
        "program": result.program_source,
        "encoded_program": solution.program.encode() if solution else None,
        "steps": solution.steps if solution else None,
        "instructions": solution.instruction_count if solution else None,
        "candidates_tested": result.candidates_tested,
        "candidates_pruned": result.candidates_pruned,
        "depth_reached": result.depth_reached,
        "outcome_counts": result.outcome_counts,
        "runtime_seconds": result.synthesis_time_ms / 1000,
        "start_x": x,
        "start_y": y,
        "start_direction": int(level.start_direction),
        "stars": level.star_count,
    }


def run_evaluation(
    levels: List[LevelSpec],
    config: SynthesisConfig,
    output_dir: Optional[Path] = None,
    csv_path: Optional[Path] = None,
    verbose: bool = True,
    show_board: bool = False,
) -> Dict[str, Any]:
    """Run the solver on multiple levels and summarize."""
    trace_writer = JSONLTraceWriter(config.trace_dir) if config.write_traces else None

    results = []
    for i, level in enumerate(levels):
        if verbose:
            print(f"\n[{i+1}/{len(levels)}] ", end="")
        results.append(run_single_level(level, config, verbose, show_board, trace_writer))

    total = len(levels)
    successes = sum(1 for r in results if r["success"])
    status_counts: Dict[str, int] = {}
    for r in results:
        status_counts[r["status"]] = status_counts.get(r["status"], 0) + 1
    runtimes = [r["runtime_seconds"] for r in results]

    summary = {
        "total_levels": total,
        "successes": successes,
        "failures": total - successes,
        "success_rate": successes / total if total > 0 else 0.0,
        "status_distribution": status_counts,
        "average_runtime_seconds": sum(runtimes) / len(runtimes) if runtimes else 0.0,
        "strategy": config.strategy.value,
        "timestamp": datetime.now().isoformat(),
        "results": results,
    }

    if verbose:
        print(f"\n{'='*50}")
        print("SUMMARY")
        print(f"{'='*50}")
        print(f"Total levels: {total}")
        print(f"Solved: {successes}")
        print(f"Unsolved: {total - successes}")
        print(f"Success rate: {summary['success_rate']:.1%}")
        print(f"Average runtime: {summary['average_runtime_seconds']:.2f}s")
        for status, count in sorted(status_counts.items()):
            print(f"  {status}: {count}")

    if output_dir:
        output_dir.mkdir(parents=True, exist_ok=True)
        output_file = output_dir / f"results_{datetime.now().strftime('%Y%m%d_%H%M%S')}.json"
        with open(output_file, "w") as f:
            json.dump(summary, f, indent=2)
        if verbose:
            print(f"\nResults saved to: {output_file}")

    if csv_path:
        write_csv(results, csv_path)
        if verbose:
            print(f"CSV saved to: {csv_path}")

    return summary


def write_csv(results: List[Dict[str, Any]], csv_path: Path) -> None:
    """Write one row per level in the solutions CSV format."""
    csv_path.parent.mkdir(parents=True, exist_ok=True)
    with open(csv_path, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(CSV_COLUMNS)
        for r in results:
            writer.writerow([
                r["level_id"],
                "YES" if r["success"] else "NO",
                r["steps"] if r["steps"] is not None else "",
                r["instructions"] if r["instructions"] is not None else "",
                r["program"] or "",
                r["start_x"],
                r["start_y"],
                r["start_direction"],
                r["stars"],
                r["candidates_tested"],
            ])


def build_config(args: argparse.Namespace) -> SynthesisConfig:
    """Preset plus command-line overrides, as an engine config."""
    overrides: Dict[str, Any] = {}
    if args.strategy:
        overrides.setdefault("search", {})["strategy"] = args.strategy
    if args.no_pruning:
        overrides.setdefault("search", {})["use_pruning"] = False
    if args.max_steps is not None:
        overrides.setdefault("vm", {})["max_steps"] = args.max_steps
    if args.no_loop_detection:
        overrides.setdefault("vm", {})["loop_detection"] = False
    if args.timeout is not None:
        overrides.setdefault("performance", {})["timeout_seconds"] = args.timeout
    if args.trace_dir is not None:
        overrides.setdefault("performance", {}).update(
            write_traces=True, trace_dir=str(args.trace_dir),
        )

    project_config = create_config(preset=args.preset, overrides=overrides)
    return SynthesisConfig.from_project_config(project_config)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Run the zzle_synth solver on level files"
    )
    parser.add_argument(
        "input",
        type=Path,
        help="Path to a level JSON file or a directory of levels",
    )
    parser.add_argument(
        "--output",
        "-o",
        type=Path,
        default=None,
        help="Output directory for the JSON summary",
    )
    parser.add_argument(
        "--csv",
        type=Path,
        default=None,
        help="Write a solutions CSV to this file",
    )
    parser.add_argument(
        "--preset",
        choices=["fast", "balanced", "thorough"],
        default="balanced",
        help="Configuration preset (default: balanced)",
    )
    parser.add_argument(
        "--strategy",
        choices=[s.value for s in SearchStrategy],
        default=None,
        help="Override the preset's search strategy",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Time budget per level in seconds",
    )
    parser.add_argument(
        "--max-steps",
        type=int,
        default=None,
        help="Step cap per program run",
    )
    parser.add_argument(
        "--no-pruning",
        action="store_true",
        help="Disable sequence pruning",
    )
    parser.add_argument(
        "--no-loop-detection",
        action="store_true",
        help="Disable loop detection in the interpreter",
    )
    parser.add_argument(
        "--show-board",
        action="store_true",
        help="Print each board before solving",
    )
    parser.add_argument(
        "--trace-dir",
        type=Path,
        default=None,
        help="Write JSONL solve traces to this directory",
    )
    parser.add_argument(
        "--quiet",
        "-q",
        action="store_true",
        help="Suppress verbose output",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point. Returns the process exit code."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.WARNING if args.quiet else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.input.is_file():
        try:
            levels = [load_level(args.input)]
        except (json.JSONDecodeError, LevelValidationError) as e:
            print(f"Invalid level file {args.input}: {e}")
            return 1
    elif args.input.is_dir():
        levels = load_levels_from_dir(args.input)
        if not levels:
            print(f"No levels found in {args.input}")
            return 1
    else:
        print(f"Invalid input path: {args.input}")
        return 1

    try:
        config = build_config(args)
    except ConfigValidationError as e:
        print(f"Invalid configuration: {e}")
        for err in e.errors:
            print(f"  {'.'.join(str(p) for p in err['loc'])}: {err['msg']}")
        return 1

    summary = run_evaluation(
        levels,
        config,
        output_dir=args.output,
        csv_path=args.csv,
        verbose=not args.quiet,
        show_board=args.show_board,
    )

    return 0 if summary["successes"] > 0 else 1


if __name__ == "__main__":
    sys.exit(main())
