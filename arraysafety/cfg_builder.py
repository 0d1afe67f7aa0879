"""
arraysafety/cfg_builder.py

Program-point numbering over a statement-level control-flow graph.

A program point is the state just before a statement.  The builder assigns:

- point 0 to the entry statement, then 1, 2, ... to the remaining
  statements in graph iteration order
- one Edge per (statement, successor) pair, carrying the statement whose
  transfer function labels the edge
- the is_true_branch flag on the edge from a conditional to its jump target

Every other edge is the default (false / fall-through) edge.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Iterator

from loguru import logger

from arraysafety.ir import ControlFlowGraph, IfStmt, Stmt


@dataclass(frozen=True)
class Edge:
    """Flow from ``source`` to ``target`` across ``statement``."""
    source: int
    target: int
    statement: Stmt = field(compare=False)
    is_true_branch: bool = False


@dataclass
class ProgramPoints:
    """
    Numbering result consumed by the fixpoint driver and the checker.

    Attributes:
        statements: Statement before which each point sits, indexed by point
        point_of: Statement (by identity) -> point
        edges: Outgoing edges per point, false edge before true edge
    """
    statements: list[Stmt] = field(default_factory=list)
    point_of: dict[Stmt, int] = field(default_factory=dict)
    edges: dict[int, list[Edge]] = field(default_factory=lambda: defaultdict(list))

    @property
    def entry(self) -> int:
        return 0

    def __len__(self) -> int:
        return len(self.statements)

    def __iter__(self) -> Iterator[int]:
        return iter(range(len(self.statements)))

    def statement_at(self, point: int) -> Stmt:
        return self.statements[point]

    def edges_from(self, point: int) -> list[Edge]:
        return list(self.edges.get(point, ()))

    def all_edges(self) -> list[Edge]:
        return [e for p in self for e in self.edges_from(p)]

    @property
    def enclosing(self) -> dict[tuple[int, int], Stmt]:
        """(source, target) -> statement labelling that edge."""
        return {(e.source, e.target): e.statement for e in self.all_edges()}

    @property
    def true_branches(self) -> set[tuple[int, int]]:
        return {(e.source, e.target) for e in self.all_edges() if e.is_true_branch}

    def describe(self) -> str:
        """Debug listing of successors, edge statements and true branches."""
        lines = []
        for p in self:
            succs = sorted({e.target for e in self.edges_from(p)})
            lines.append(f"Program-point: {p} -> {{{', '.join(map(str, succs))}}}")
        for (src, dst), stmt in self.enclosing.items():
            lines.append(f"Pair: ({src}, {dst}) -> {stmt}")
        for src, dst in sorted(self.true_branches):
            lines.append(f"True branch: ({src}, {dst})")
        return "\n".join(lines)


class CFGBuilder:
    """
    Numbers the program points of a control-flow graph.

    Example:
        points = CFGBuilder(body).build()
        for edge in points.edges_from(points.entry):
            ...
    """

    def __init__(self, cfg: ControlFlowGraph):
        self.cfg = cfg

    def build(self) -> ProgramPoints:
        points = ProgramPoints()
        self._number(points)
        for stmt in points.statements:
            self._connect(points, stmt)
        logger.debug(
            "numbered {} program points, {} edges",
            len(points), len(points.all_edges()),
        )
        return points

    def _number(self, points: ProgramPoints) -> None:
        entry = self.cfg.entry
        points.statements.append(entry)
        points.point_of[entry] = 0
        for stmt in self.cfg:
            if stmt is entry:
                continue
            points.point_of[stmt] = len(points.statements)
            points.statements.append(stmt)

    def _connect(self, points: ProgramPoints, stmt: Stmt) -> None:
        src = points.point_of[stmt]
        succs = self.cfg.successors(stmt)
        for succ in succs:
            dst = points.point_of[succ]
            if isinstance(stmt, IfStmt) and succ is stmt.target:
                if len(succs) == 1:
                    # jump target is also the fall-through
                    points.edges[src].append(Edge(src, dst, stmt, False))
                points.edges[src].append(Edge(src, dst, stmt, True))
            else:
                points.edges[src].append(Edge(src, dst, stmt, False))
