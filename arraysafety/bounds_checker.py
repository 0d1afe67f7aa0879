# arraysafety/bounds_checker.py
"""
Array-access safety checker.

Combines the interval and points-to fixpoints: an access ``a[i]`` is safe
when ``a`` cannot be null and ``i`` stays below the smallest possible size
of every array ``a`` may reference.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Mapping

from loguru import logger

from arraysafety.abstract_state import (
    NULL,
    AllocationSite,
    Bottom,
    Interval,
    IntervalState,
    LatticeElement,
    PointsToState,
)
from arraysafety.cfg_builder import ProgramPoints
from arraysafety.errors import InvalidAbstractStateError
from arraysafety.ir import (
    ArrayRef,
    IntConstant,
    Local,
    NewArrayExpr,
    Stmt,
    Value,
    array_accesses,
)


class Verdict(str, Enum):
    SAFE = "Safe"
    POTENTIALLY_UNSAFE = "Potentially Unsafe"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class AccessReport:
    """Verdict for one array access at one program point."""
    point: int
    access: ArrayRef
    verdict: Verdict

    def __str__(self) -> str:
        return f"{self.point:02d}: {self.access}: {self.verdict}"


def _interval_of(state: IntervalState, value: Value) -> Interval:
    match value:
        case IntConstant(value=c):
            return Interval.point(c)
        case Local(name=name):
            return state.get(name) or Interval.top()
        case _:
            return Interval.top()


def allocation_sizes(
    points: ProgramPoints,
    sites: Mapping[Stmt, AllocationSite],
    interval_facts: Mapping[int, LatticeElement],
) -> dict[AllocationSite, Interval]:
    """
    Size interval of every allocation site.

    A literal size is a point; a variable size is read from the interval
    fact just before the allocation; any other size expression is top.
    """
    sizes: dict[AllocationSite, Interval] = {}
    for stmt, site in sites.items():
        size = stmt.right.size if isinstance(stmt.right, NewArrayExpr) else None
        fact = interval_facts.get(points.point_of[stmt])
        match size:
            case IntConstant(value=c):
                sizes[site] = Interval.point(c)
            case Local() if isinstance(fact, IntervalState):
                sizes[site] = _interval_of(fact, size)
            case _:
                sizes[site] = Interval.top()
    return sizes


class BoundsChecker:
    """
    Classifies every statement that accesses a tracked array.

    Args:
        points: Program points of the method
        interval_facts: Interval fixpoint, keyed by point
        pointer_facts: Points-to fixpoint, keyed by point
        sizes: Size interval per allocation site
        arrays: Names of the tracked array variables
    """

    def __init__(
        self,
        points: ProgramPoints,
        interval_facts: Mapping[int, LatticeElement],
        pointer_facts: Mapping[int, LatticeElement],
        sizes: Mapping[AllocationSite, Interval],
        arrays: Iterable[str],
    ):
        self.points = points
        self.interval_facts = interval_facts
        self.pointer_facts = pointer_facts
        self.sizes = dict(sizes)
        self.arrays = frozenset(arrays)

    def check_access(
        self, intervals: LatticeElement, pointers: LatticeElement, access: ArrayRef
    ) -> Verdict:
        match intervals, pointers:
            case (Bottom(), Bottom() | PointsToState()) | (IntervalState(), Bottom()):
                # unreachable point: vacuously safe
                return Verdict.SAFE
            case IntervalState(), PointsToState():
                pass
            case _:
                raise InvalidAbstractStateError(
                    f"expected interval and points-to facts, got {intervals!r} and {pointers!r}"
                )

        aliases = pointers.get(access.base.name)
        if aliases is None or NULL in aliases:
            return Verdict.POTENTIALLY_UNSAFE

        index = _interval_of(intervals, access.index)
        for site in aliases:
            size = self.sizes.get(site, Interval.top())
            if index.upper >= size.lower:
                return Verdict.POTENTIALLY_UNSAFE
        return Verdict.SAFE

    def check_point(self, point: int) -> list[AccessReport]:
        stmt = self.points.statement_at(point)
        intervals = self.interval_facts[point]
        pointers = self.pointer_facts[point]
        return [
            AccessReport(point, access, self.check_access(intervals, pointers, access))
            for access in array_accesses(stmt)
            if access.base.name in self.arrays
        ]

    def reports(self) -> list[AccessReport]:
        return [r for p in self.points for r in self.check_point(p)]

    def check(self) -> dict[int, Verdict]:
        """Program point -> verdict, in point order; unsafe if any access is."""
        verdicts: dict[int, Verdict] = {}
        for report in self.reports():
            if verdicts.get(report.point) is Verdict.POTENTIALLY_UNSAFE:
                continue
            verdicts[report.point] = report.verdict
        unsafe = sum(v is Verdict.POTENTIALLY_UNSAFE for v in verdicts.values())
        logger.debug("checked {} statements, {} potentially unsafe", len(verdicts), unsafe)
        return verdicts
