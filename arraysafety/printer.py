# arraysafety/printer.py
"""
Result files of an analysis run.

    Output_<Class>_<method>.txt                   per-statement verdicts
    Output_<Class>_points_to_analysis_<method>.txt  points-to fact per point
    <Class>.<method>.fulloutput.txt               interval trace (optional)
"""
from __future__ import annotations

from pathlib import Path
from typing import Mapping

from loguru import logger

from arraysafety.abstract_interpreter import SEPARATOR, AnalysisTrace
from arraysafety.abstract_state import IntervalState, LatticeElement
from arraysafety.analysis import AnalysisResult
from arraysafety.bounds_checker import Verdict
from arraysafety.errors import ReportError


def safety_report_name(class_name: str, method_name: str) -> str:
    return f"Output_{class_name}_{method_name}.txt"


def points_to_report_name(class_name: str, method_name: str) -> str:
    return f"Output_{class_name}_points_to_analysis_{method_name}.txt"


def trace_report_name(class_name: str, method_name: str) -> str:
    return f"{class_name}.{method_name}.fulloutput.txt"


def format_safety(class_name: str, method_name: str, verdicts: Mapping[int, Verdict]) -> str:
    return "".join(
        f"{class_name}.{method_name}: {point:02d}: {verdict}\n"
        for point, verdict in sorted(verdicts.items())
    )


def format_points_to(facts: Mapping[int, LatticeElement]) -> str:
    return "".join(f"{point:02d} : {facts[point]!r}\n" for point in sorted(facts))


def format_trace(class_name: str, method_name: str, trace: AnalysisTrace) -> str:
    """
    One ``Class.method: inNN: var:[lo, hi]`` line per variable of each
    update, variables by name.  Bottom updates are skipped; a round boundary
    becomes one blank line (never two in a row).
    """
    lines: list[str] = []
    last_blank = False
    for entry in trace:
        if entry is SEPARATOR:
            if not last_blank:
                lines.append("")
                last_blank = True
            continue
        if not isinstance(entry.element, IntervalState):
            continue
        for name, itv in entry.element.items:
            lines.append(f"{class_name}.{method_name}: in{entry.point:02d}: {name}:{itv}")
            last_blank = False
    return "".join(line + "\n" for line in lines)


def _write(path: Path, text: str) -> Path:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    except OSError as e:
        logger.error("Error writing to file {}: {}", path, e)
        raise ReportError(f"cannot write {path}: {e}") from e
    logger.debug("wrote {}", path)
    return path


def write_safety_report(result: AnalysisResult, out_dir: Path) -> Path:
    path = Path(out_dir) / safety_report_name(result.class_name, result.method_name)
    return _write(path, format_safety(result.class_name, result.method_name, result.verdicts))


def write_points_to_report(result: AnalysisResult, out_dir: Path) -> Path:
    path = Path(out_dir) / points_to_report_name(result.class_name, result.method_name)
    return _write(path, format_points_to(result.pointer_facts))


def write_trace_report(result: AnalysisResult, out_dir: Path) -> Path:
    if result.interval_trace is None:
        raise ReportError("no interval trace recorded; enable record_trace")
    path = Path(out_dir) / trace_report_name(result.class_name, result.method_name)
    return _write(path, format_trace(result.class_name, result.method_name, result.interval_trace))


def write_reports(result: AnalysisResult, out_dir: Path) -> list[Path]:
    """Write every report the result supports; returns the written paths."""
    written = [
        write_safety_report(result, out_dir),
        write_points_to_report(result, out_dir),
    ]
    if result.interval_trace is not None:
        written.append(write_trace_report(result, out_dir))
    return written
