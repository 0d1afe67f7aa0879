# arraysafety/analysis.py
"""
End-to-end array-safety analysis of one method body.

    points    = number program points (once)
    intervals = worklist fixpoint over IntervalDomain
    pointers  = worklist fixpoint over PointsToDomain
    verdicts  = BoundsChecker(intervals, pointers, allocation sizes)
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional

from loguru import logger

from arraysafety.abstract_domain import IntervalDomain
from arraysafety.abstract_interpreter import AnalysisTrace, run_worklist
from arraysafety.abstract_state import AllocationSite, Interval, LatticeElement
from arraysafety.bounds_checker import AccessReport, BoundsChecker, Verdict, allocation_sizes
from arraysafety.cfg_builder import CFGBuilder, ProgramPoints
from arraysafety.config import AnalysisConfig
from arraysafety.ir import MethodBody, Stmt
from arraysafety.pointer_domain import PointsToDomain, collect_allocation_sites


@dataclass
class AnalysisResult:
    """Everything one run produces, for reporting and inspection."""
    body: MethodBody
    points: ProgramPoints
    interval_facts: Dict[int, LatticeElement]
    pointer_facts: Dict[int, LatticeElement]
    sites: Dict[Stmt, AllocationSite]
    sizes: Dict[AllocationSite, Interval]
    verdicts: Dict[int, Verdict]
    accesses: list[AccessReport] = field(default_factory=list)
    interval_trace: Optional[AnalysisTrace] = None
    pointer_trace: Optional[AnalysisTrace] = None

    @property
    def class_name(self) -> str:
        return self.body.class_name

    @property
    def method_name(self) -> str:
        return self.body.method_name

    def is_safe(self) -> bool:
        return all(v is Verdict.SAFE for v in self.verdicts.values())

    def unsafe_points(self) -> list[int]:
        return [p for p, v in self.verdicts.items() if v is Verdict.POTENTIALLY_UNSAFE]


class ArraySafetyAnalyzer:
    """
    Runs both fixpoints and the checker on a method body.

    Example:
        analyzer = ArraySafetyAnalyzer(AnalysisConfig(lower_bound=0, upper_bound=10))
        result = analyzer.analyze(body)
        result.verdicts   # {4: Verdict.SAFE, ...}
    """

    def __init__(self, config: AnalysisConfig | None = None):
        self.config = config or AnalysisConfig()

    def analyze(self, body: MethodBody) -> AnalysisResult:
        logger.info(
            "analyzing {} with window [{}, {}]",
            body.qualified_name, self.config.lower_bound, self.config.upper_bound,
        )
        points = CFGBuilder(body).build()

        # interval fixpoint
        int_vars = [l.name for l in body.integer_locals()]
        interval_domain = IntervalDomain(
            int_vars, self.config.lower_bound, self.config.upper_bound
        )
        interval_trace = AnalysisTrace() if self.config.record_trace else None
        intervals = run_worklist(
            points, interval_domain, interval_domain.top_state(), interval_trace
        )

        # points-to fixpoint
        sites = collect_allocation_sites(body)
        arrays = [l.name for l in body.array_locals()]
        pointer_domain = PointsToDomain(arrays, sites)
        pointer_trace = AnalysisTrace() if self.config.record_trace else None
        pointers = run_worklist(
            points, pointer_domain, pointer_domain.null_state(), pointer_trace
        )

        sizes = allocation_sizes(points, sites, intervals.facts)
        checker = BoundsChecker(points, intervals.facts, pointers.facts, sizes, arrays)
        accesses = checker.reports()
        verdicts = checker.check()

        result = AnalysisResult(
            body=body,
            points=points,
            interval_facts=intervals.facts,
            pointer_facts=pointers.facts,
            sites=sites,
            sizes=sizes,
            verdicts=verdicts,
            accesses=accesses,
            interval_trace=interval_trace,
            pointer_trace=pointer_trace,
        )
        logger.info(
            "{}: {} array statements, {} potentially unsafe",
            body.qualified_name, len(verdicts), len(result.unsafe_points()),
        )
        return result
