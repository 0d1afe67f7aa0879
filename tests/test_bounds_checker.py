"""
Test suite for the array-bounds checker and the end-to-end analyzer on
hand-built method bodies.
"""

import sys
from pathlib import Path

import pytest

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from arraysafety.abstract_domain import IntervalDomain
from arraysafety.abstract_state import BOTTOM, NULL, Interval
from arraysafety.analysis import ArraySafetyAnalyzer
from arraysafety.bounds_checker import BoundsChecker, Verdict, allocation_sizes
from arraysafety.cfg_builder import CFGBuilder
from arraysafety.config import AnalysisConfig
from arraysafety.errors import InvalidAbstractStateError
from arraysafety.ir import (
    INT,
    INT_ARRAY,
    ArrayRef,
    AssignStmt,
    BinaryOperator,
    BinopExpr,
    GotoStmt,
    IdentityStmt,
    IfStmt,
    IntConstant,
    Local,
    MethodBody,
    NewArrayExpr,
    NullConstant,
    ParameterRef,
    ReturnStmt,
)
from arraysafety.pointer_domain import PointsToDomain, collect_allocation_sites

A = Local("a", INT_ARRAY)
I = Local("i")
N = Local("n")
X = Local("x")


class Fixture:
    """``a = new int[size]; x = a[index]; return`` with facts set by hand."""

    def __init__(self, size=IntConstant(3), index=I):
        self.alloc = AssignStmt(A, NewArrayExpr(INT, size))
        self.access = AssignStmt(X, ArrayRef(A, index))
        self.body = MethodBody("T", "m", [A, I, N, X], [self.alloc, self.access, ReturnStmt()])
        self.points = CFGBuilder(self.body).build()
        self.sites = collect_allocation_sites(self.body)
        self.site = self.sites[self.alloc]
        self.intervals = IntervalDomain(["i", "n", "x"], 0, 10)
        self.pointers = PointsToDomain(["a"], self.sites)

    def ints(self, **bounds):
        mapping = {v: Interval.top() for v in ("i", "n", "x")}
        mapping.update({k: Interval(*b) for k, b in bounds.items()})
        return self.intervals.make(mapping)

    def check(self, interval_at_access, alias_set, interval_at_alloc=None):
        interval_facts = {0: interval_at_alloc or self.ints(), 1: interval_at_access, 2: BOTTOM}
        pointer_facts = {
            0: self.pointers.null_state(),
            1: self.pointers.make({"a": alias_set}) if alias_set is not None else BOTTOM,
            2: BOTTOM,
        }
        sizes = allocation_sizes(self.points, self.sites, interval_facts)
        checker = BoundsChecker(self.points, interval_facts, pointer_facts, sizes, ["a"])
        return checker.check()


class TestChecker:
    """Test per-statement verdicts."""

    def test_index_below_size_is_safe(self):
        f = Fixture()
        assert f.check(f.ints(i=(0, 2)), {f.site}) == {1: Verdict.SAFE}

    def test_index_reaching_size_is_unsafe(self):
        f = Fixture()
        assert f.check(f.ints(i=(0, 3)), {f.site}) == {1: Verdict.POTENTIALLY_UNSAFE}

    def test_maybe_null_is_unsafe(self):
        f = Fixture()
        assert f.check(f.ints(i=(0, 0)), {f.site, NULL}) == {1: Verdict.POTENTIALLY_UNSAFE}

    def test_bottom_is_vacuously_safe(self):
        f = Fixture()
        assert f.check(BOTTOM, {NULL}) == {1: Verdict.SAFE}
        assert f.check(f.ints(i=(0, 9)), None) == {1: Verdict.SAFE}

    @pytest.mark.parametrize("index,verdict", [
        (2, Verdict.SAFE),
        (3, Verdict.POTENTIALLY_UNSAFE),
        (5, Verdict.POTENTIALLY_UNSAFE),
    ])
    def test_constant_index(self, index, verdict):
        f = Fixture(index=IntConstant(index))
        assert f.check(f.ints(), {f.site}) == {1: verdict}

    def test_variable_size_read_at_allocation(self):
        f = Fixture(size=N)
        assert f.check(f.ints(i=(0, 3)), {f.site}, f.ints(n=(4, 8))) == {1: Verdict.SAFE}
        assert f.check(f.ints(i=(0, 4)), {f.site}, f.ints(n=(4, 8))) == {1: Verdict.POTENTIALLY_UNSAFE}

    def test_only_upper_bound_checked(self):
        f = Fixture()
        assert f.check(f.ints(i=(-1, 2)), {f.site}) == {1: Verdict.SAFE}

    def test_any_unsafe_access_makes_statement_unsafe(self):
        f = Fixture()
        stmt = AssignStmt(ArrayRef(A, IntConstant(0)), ArrayRef(A, IntConstant(7)))
        body = MethodBody("T", "m", [A], [f.alloc, stmt, ReturnStmt()])
        points = CFGBuilder(body).build()
        sites = collect_allocation_sites(body)
        site = sites[f.alloc]
        pointers = PointsToDomain(["a"], sites)
        state = f.ints()
        checker = BoundsChecker(
            points,
            {0: state, 1: state, 2: state},
            {0: pointers.null_state(), 1: pointers.make({"a": {site}}), 2: BOTTOM},
            {site: Interval(3, 3)},
            ["a"],
        )
        reports = checker.check_point(1)
        assert [r.verdict for r in reports] == [Verdict.SAFE, Verdict.POTENTIALLY_UNSAFE]
        assert checker.check() == {1: Verdict.POTENTIALLY_UNSAFE}

    def test_swapped_fact_maps_rejected(self):
        f = Fixture()
        interval_facts = {0: f.ints(), 1: f.ints(i=(7, 7)), 2: BOTTOM}
        pointer_facts = {0: f.pointers.null_state(), 1: f.pointers.null_state(), 2: BOTTOM}
        sizes = allocation_sizes(f.points, f.sites, interval_facts)
        checker = BoundsChecker(f.points, pointer_facts, interval_facts, sizes, ["a"])
        with pytest.raises(InvalidAbstractStateError):
            checker.check()

    def test_bottom_beside_foreign_element_rejected(self):
        f = Fixture()
        checker = BoundsChecker(f.points, {}, {}, {}, ["a"])
        with pytest.raises(InvalidAbstractStateError):
            checker.check_access(BOTTOM, f.ints(), f.access.right)

    def test_untracked_base_ignored(self):
        f = Fixture()
        interval_facts = {0: f.ints(), 1: f.ints(), 2: f.ints()}
        pointer_facts = {p: f.pointers.null_state() for p in range(3)}
        checker = BoundsChecker(f.points, interval_facts, pointer_facts, {}, [])
        assert checker.check() == {}


class TestAllocationSizes:
    """Test size intervals derived for each site."""

    def test_constant_and_variable_sizes(self):
        f = Fixture(size=N)
        sizes = allocation_sizes(f.points, f.sites, {0: f.ints(n=(2, 5))})
        assert sizes == {f.site: Interval(2, 5)}

    def test_unreachable_allocation_is_top(self):
        f = Fixture(size=N)
        sizes = allocation_sizes(f.points, f.sites, {0: BOTTOM})
        assert sizes[f.site].is_top()


def null_check_body():
    """
    00: n := @parameter0: int
    01: if n == 0 goto 03
    02: a = new int[4]
    03: if a == null goto 05
    04: a[0] = 1
    05: return
    """
    ret = ReturnStmt()
    null_test = IfStmt(BinopExpr(BinaryOperator.EQ, A, NullConstant()), ret)
    return MethodBody("T", "m", [N, A], [
        IdentityStmt(N, ParameterRef(0, INT)),
        IfStmt(BinopExpr(BinaryOperator.EQ, N, IntConstant(0)), null_test),
        AssignStmt(A, NewArrayExpr(INT, IntConstant(4))),
        null_test,
        AssignStmt(ArrayRef(A, IntConstant(0)), IntConstant(1)),
        ret,
    ])


class TestAnalyzer:
    """End-to-end runs of ArraySafetyAnalyzer on hand-built bodies."""

    def test_null_check_else_edge_is_safe(self):
        result = ArraySafetyAnalyzer(AnalysisConfig(lower_bound=0, upper_bound=10)).analyze(
            null_check_body()
        )
        site = next(iter(result.sites.values()))
        assert result.pointer_facts[3]["a"] == {site, NULL}
        assert result.pointer_facts[4]["a"] == {site}
        assert result.verdicts == {4: Verdict.SAFE}
        assert result.is_safe()

    def test_guarded_loop(self):
        # a = new int[3]; i = 0; while (i < 3) { a[i] = 0; i = i + 1; }
        ret = ReturnStmt()
        test = IfStmt(BinopExpr(BinaryOperator.GE, I, IntConstant(3)), ret)
        body_stmts = [
            AssignStmt(A, NewArrayExpr(INT, IntConstant(3))),
            AssignStmt(I, IntConstant(0)),
            test,
            AssignStmt(ArrayRef(A, I), IntConstant(0)),
            AssignStmt(I, BinopExpr(BinaryOperator.ADD, I, IntConstant(1))),
        ]
        body = MethodBody("T", "m", [A, I], body_stmts + [GotoStmt(test), ret])
        result = ArraySafetyAnalyzer(AnalysisConfig(lower_bound=0, upper_bound=10)).analyze(body)
        assert result.interval_facts[3]["i"] == Interval(0, 2)
        assert result.verdicts == {3: Verdict.SAFE}
        assert result.unsafe_points() == []

    def test_traces_recorded_when_enabled(self):
        config = AnalysisConfig(lower_bound=0, upper_bound=10, record_trace=True)
        result = ArraySafetyAnalyzer(config).analyze(null_check_body())
        assert result.interval_trace is not None and len(result.interval_trace) > 0
        assert result.pointer_trace is not None and len(result.pointer_trace) > 0

    def test_traces_absent_by_default(self):
        result = ArraySafetyAnalyzer().analyze(null_check_body())
        assert result.interval_trace is None
        assert result.pointer_trace is None
