# arraysafety/abstract_interpreter.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterator, Optional, Union

from loguru import logger

from arraysafety.abstract_domain import Lattice
from arraysafety.abstract_state import LatticeElement
from arraysafety.cfg_builder import ProgramPoints


class _Separator:
    def __repr__(self) -> str:
        return "SEPARATOR"


SEPARATOR = _Separator()


@dataclass(frozen=True)
class TraceEntry:
    """Fact of ``point`` changed to ``element``."""
    point: int
    element: LatticeElement


@dataclass
class AnalysisTrace:
    """
    Ordered record of every fact update.

    A ``SEPARATOR`` follows the updates made while processing one dequeued
    point, so the trace can be read back round by round.
    """
    entries: list[Union[TraceEntry, _Separator]] = field(default_factory=list)

    def record(self, point: int, element: LatticeElement) -> None:
        self.entries.append(TraceEntry(point, element))

    def separate(self) -> None:
        self.entries.append(SEPARATOR)

    def updates(self) -> list[TraceEntry]:
        return [e for e in self.entries if isinstance(e, TraceEntry)]

    def __iter__(self) -> Iterator[Union[TraceEntry, _Separator]]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)


@dataclass
class FixpointResult:
    """Final facts per program point, plus how many points were dequeued."""
    facts: Dict[int, LatticeElement]
    iterations: int = 0

    def __getitem__(self, point: int) -> LatticeElement:
        return self.facts[point]

    def __len__(self) -> int:
        return len(self.facts)


def run_worklist(
    points: ProgramPoints,
    domain: Lattice,
    initial: LatticeElement,
    trace: Optional[AnalysisTrace] = None,
) -> FixpointResult:
    """
    Kildall-style worklist iteration to a fixpoint.

    Every point starts at bottom except the entry, which holds ``initial``.
    All points are seeded onto the worklist; a point is re-enqueued whenever
    its fact grows.  Termination relies on the domain having finite height
    for the run (interval window and site universe are fixed).

    Args:
        points: Program points and labelled edges of the method
        domain: Lattice supplying bottom, join and transfer
        initial: Element holding on method entry
        trace: Optional sink recording every update

    Returns:
        FixpointResult with the final fact of every point

    Example:
        >>> result = run_worklist(points, IntervalDomain(names, 0, 10), init)
        >>> result[3]
        {i:[0, 2]}
    """
    facts: Dict[int, LatticeElement] = {p: domain.bottom() for p in points}
    facts[points.entry] = initial

    worklist: list[int] = list(points)
    iterations = 0

    while worklist:
        p = worklist.pop(0)  # FIFO
        iterations += 1

        for edge in points.edges_from(p):
            s = edge.target
            candidate = domain.transfer(facts[p], edge.statement, edge.is_true_branch)
            updated = domain.join(facts[s], candidate)
            if domain.equals(updated, facts[s]):
                continue

            facts[s] = updated
            logger.debug("in{:02d} <- {!r} (via '{}')", s, updated, edge.statement)
            if trace is not None:
                trace.record(s, updated)
            if s not in worklist:
                worklist.append(s)

        if trace is not None:
            trace.separate()

    logger.debug(
        "{} fixpoint reached after {} iterations over {} points",
        type(domain).__name__, iterations, len(facts),
    )
    return FixpointResult(facts, iterations)
