# arraysafety/pointer_domain.py
"""
Allocation-site points-to domain for integer arrays.

Each tracked array variable maps to the set of allocation sites it may
reference, plus ``NULL`` when it may be null.  The site universe is fixed
for a run: it is every ``a = new int[n]`` statement of the method.
"""
from __future__ import annotations

from typing import Iterable, Mapping, Optional

from loguru import logger

from arraysafety.abstract_domain import Lattice
from arraysafety.abstract_state import (
    BOTTOM,
    NULL,
    AllocationSite,
    Bottom,
    LatticeElement,
    PointsToState,
    Target,
)
from arraysafety.errors import InvalidAbstractStateError
from arraysafety.ir import (
    AssignStmt,
    BinaryOperator,
    IfStmt,
    Local,
    MethodBody,
    NullConstant,
    Stmt,
)


def collect_allocation_sites(body: MethodBody) -> dict[Stmt, AllocationSite]:
    """Label every allocation statement ``new00``, ``new01``, ... in body order."""
    sites: dict[Stmt, AllocationSite] = {}
    for n, stmt in enumerate(body.allocation_statements()):
        sites[stmt] = AllocationSite(stmt.position, f"new{n:02d}")
    return sites


class PointsToDomain(Lattice):
    """
    Lattice of alias sets over a fixed allocation-site universe.

    ``sites`` maps each allocation statement to its site; assignments from
    any other statement never introduce a site.
    """

    def __init__(self, variables: Iterable[str], sites: Mapping[Stmt, AllocationSite]) -> None:
        self.variables = tuple(variables)
        self.sites = dict(sites)
        self.universe = frozenset(self.sites.values())

    def __repr__(self) -> str:
        return f"PointsToDomain({len(self.variables)} vars, sites={sorted(self.universe)})"

    def make(self, mapping: Mapping[str, Iterable[Target]]) -> PointsToState:
        return PointsToState.from_mapping(mapping, self.universe)

    def null_state(self) -> PointsToState:
        """Every tracked array variable is ``null``: the state on method entry."""
        return self.make({v: {NULL} for v in self.variables})

    # Lattice -----------------------------------------------------------------

    def bottom(self) -> LatticeElement:
        return BOTTOM

    def join(self, a: LatticeElement, b: LatticeElement) -> LatticeElement:
        match a, b:
            case Bottom(), _:
                return b
            case _, Bottom():
                return a
            case PointsToState(), PointsToState():
                if a.universe != b.universe:
                    raise InvalidAbstractStateError(
                        "cannot join points-to states over different allocation sites"
                    )
                if a.variables != b.variables:
                    raise InvalidAbstractStateError(
                        f"cannot join points-to states over {a.variables} and {b.variables}"
                    )
                return PointsToState(
                    tuple((name, x | y) for (name, x), (_, y) in zip(a.items, b.items)),
                    a.universe,
                )
            case _:
                raise InvalidAbstractStateError(
                    f"incompatible elements for points-to join: {a!r}, {b!r}"
                )

    def transfer(
        self, a: LatticeElement, stmt: Stmt, is_true_branch: bool
    ) -> LatticeElement:
        match a:
            case Bottom():
                return BOTTOM
            case PointsToState():
                pass
            case _:
                raise InvalidAbstractStateError(
                    f"points-to transfer applied to a non-points-to element: {a!r}"
                )

        match stmt:
            case AssignStmt(left=Local(name=name), right=rhs) if name in a:
                return self._assign(a, stmt, name, rhs)
            case IfStmt(condition=cond) if cond.op in (BinaryOperator.EQ, BinaryOperator.NE):
                may_equal = (cond.op is BinaryOperator.EQ) == is_true_branch
                return self._guard(a, cond.op1, cond.op2, may_equal)
            case _:
                return a

    # Transfer helpers --------------------------------------------------------

    def _assign(self, a: PointsToState, stmt: Stmt, name: str, rhs) -> PointsToState:
        match rhs:
            case Local(name=src) if src in a:
                targets: Optional[frozenset[Target]] = a[src]
            case NullConstant():
                targets = frozenset({NULL})
            case _ if stmt in self.sites:
                targets = frozenset({self.sites[stmt]})
            case _:
                targets = None

        if targets is None:
            return a
        updated = a.as_dict()
        updated[name] = targets
        return self.make(updated)

    def _guard(self, a: PointsToState, x, y, may_equal: bool) -> LatticeElement:
        x_var = x.name if isinstance(x, Local) and x.name in a else None
        y_var = y.name if isinstance(y, Local) and y.name in a else None

        if x_var is None and y_var is None:
            return a
        if x_var is None and not isinstance(x, NullConstant):
            return a
        if y_var is None and not isinstance(y, NullConstant):
            return a

        if x_var is None or y_var is None:
            var = x_var if x_var is not None else y_var
            return self._against_null(a, var, may_equal)
        return self._against_var(a, x_var, y_var, may_equal)

    def _against_null(self, a: PointsToState, var: str, may_equal: bool) -> LatticeElement:
        targets = a[var]
        updated = a.as_dict()
        if may_equal:
            if NULL not in targets:
                return BOTTOM
            updated[var] = frozenset({NULL})
            return self.make(updated)

        if NULL not in targets:
            return a
        if len(targets) == 1:
            return BOTTOM
        updated[var] = targets - {NULL}
        return self.make(updated)

    def _against_var(
        self, a: PointsToState, x: str, y: str, may_equal: bool
    ) -> LatticeElement:
        xs, ys = a[x], a[y]
        updated = a.as_dict()
        if may_equal:
            common = xs & ys
            if not common:
                return BOTTOM
            updated[x] = common
            updated[y] = common
            return self.make(updated)

        x_null_only = xs == {NULL}
        y_null_only = ys == {NULL}
        if x_null_only and y_null_only:
            return BOTTOM
        if x_null_only and NULL in ys:
            updated[y] = ys - {NULL}
            return self.make(updated)
        if y_null_only and NULL in xs:
            updated[x] = xs - {NULL}
            return self.make(updated)
        if x_null_only or y_null_only:
            return a
        logger.trace("no disjointness reasoning for {} != {}", x, y)
        return a
