# arraysafety/abstract_domain.py
"""
Abstract domains for the array-safety analysis.

This module provides:
- Lattice: the contract every domain implements for the fixpoint driver
- IntervalArithmetic: interval images of +, -, *, / and comparison narrowing
- IntervalDomain: the bounded integer-interval domain

The points-to domain lives in ``arraysafety.pointer_domain``.
"""
from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import Iterable, Mapping, Optional

from loguru import logger

from arraysafety.abstract_state import (
    BOTTOM,
    INF,
    Bottom,
    Interval,
    IntervalState,
    LatticeElement,
)
from arraysafety.errors import ConfigError, InvalidAbstractStateError
from arraysafety.ir import (
    NEGATED_COMPARISON,
    AssignStmt,
    BinaryOperator,
    BinopExpr,
    IdentityStmt,
    IfStmt,
    IntConstant,
    Local,
    NegExpr,
    Stmt,
    Value,
)


# --- Lattice contract ---------------------------------------------------------


class Lattice(ABC):
    """
    Everything the worklist driver knows about a domain.

    Laws every implementation keeps:

      join(BOTTOM, x) == x                (identity)
      join is commutative, associative and idempotent
      transfer(BOTTOM, s, b) == BOTTOM    (absorbing)
    """

    @abstractmethod
    def bottom(self) -> LatticeElement:
        """The least element."""

    @abstractmethod
    def join(self, a: LatticeElement, b: LatticeElement) -> LatticeElement:
        """Least upper bound of two elements."""

    @abstractmethod
    def transfer(
        self, a: LatticeElement, stmt: Stmt, is_true_branch: bool
    ) -> LatticeElement:
        """
        Abstract effect of executing ``stmt`` on ``a``.

        ``is_true_branch`` selects the edge of a conditional; it is False for
        every non-conditional statement.
        """

    def equals(self, a: LatticeElement, b: LatticeElement) -> bool:
        return a == b


# --- Interval arithmetic ------------------------------------------------------


def _mul(a: float, b: float) -> float:
    # 0 * inf is 0 for interval corners, not nan
    if a == 0 or b == 0:
        return 0
    return a * b


def _quot(a: float, b: float) -> float:
    """Java-style (truncating) quotient extended to infinite endpoints."""
    if math.isinf(b):
        return 0
    if math.isinf(a):
        return a if b > 0 else -a
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b > 0) else -q


def _corners(x: Interval, divisors: Iterable[float]) -> list[float]:
    return [_quot(n, d) for n in (x.lower, x.upper) for d in divisors]


class IntervalArithmetic:
    """
    Interval images of the binary operators, computed from endpoint
    combinations.  Results are raw: the domain normalizes them.
    """

    @staticmethod
    def add(a: Interval, b: Interval) -> Interval:
        return Interval(a.lower + b.lower, a.upper + b.upper)

    @staticmethod
    def sub(a: Interval, b: Interval) -> Interval:
        return Interval(a.lower - b.upper, a.upper - b.lower)

    @staticmethod
    def mul(a: Interval, b: Interval) -> Interval:
        products = [
            _mul(a.lower, b.lower),
            _mul(a.lower, b.upper),
            _mul(a.upper, b.lower),
            _mul(a.upper, b.upper),
        ]
        return Interval(min(products), max(products))

    @staticmethod
    def div(a: Interval, b: Interval) -> Optional[Interval]:
        """
        Division a / b.

        Returns None when the divisor is exactly {0}: no execution gets past
        such a division.  A zero endpoint of the divisor is replaced by the
        nearest non-zero integer (1 or -1); a divisor straddling zero is split
        into its negative and positive parts and the two images are joined.
        """
        lo, hi = b.lower, b.upper
        if lo == 0 and hi == 0:
            return None
        if lo == 0:
            quotients = _corners(a, (1, hi))
        elif hi == 0:
            quotients = _corners(a, (lo, -1))
        elif lo < 0 < hi:
            quotients = _corners(a, (lo, -1)) + _corners(a, (1, hi))
        else:
            quotients = _corners(a, (lo, hi))
        return Interval(min(quotients), max(quotients))

    @staticmethod
    def neg(a: Interval) -> Interval:
        return Interval(-a.upper, -a.lower)

    @staticmethod
    def apply(op: BinaryOperator, a: Interval, b: Interval) -> Optional[Interval]:
        """
        Image of ``a op b``; None if the operation cannot complete.
        Operators without an interval rule give top.
        """
        match op:
            case BinaryOperator.ADD:
                return IntervalArithmetic.add(a, b)
            case BinaryOperator.SUB:
                return IntervalArithmetic.sub(a, b)
            case BinaryOperator.MUL:
                return IntervalArithmetic.mul(a, b)
            case BinaryOperator.DIV:
                return IntervalArithmetic.div(a, b)
            case _:
                return Interval.top()

    @staticmethod
    def refine(
        op: BinaryOperator, a: Interval, b: Interval
    ) -> Optional[tuple[Interval, Interval]]:
        """
        Narrow both operands of ``a op b`` assuming the comparison holds.

        Returns None when it cannot hold.
        """
        match op:
            case BinaryOperator.LT:
                if a.lower >= b.upper:
                    return None
                return (
                    Interval(a.lower, min(a.upper, b.upper - 1)),
                    Interval(max(a.lower + 1, b.lower), b.upper),
                )
            case BinaryOperator.GT:
                swapped = IntervalArithmetic.refine(BinaryOperator.LT, b, a)
                return None if swapped is None else (swapped[1], swapped[0])
            case BinaryOperator.LE:
                if a.lower > b.upper:
                    return None
                return (
                    Interval(a.lower, min(a.upper, b.upper)),
                    Interval(max(a.lower, b.lower), b.upper),
                )
            case BinaryOperator.GE:
                swapped = IntervalArithmetic.refine(BinaryOperator.LE, b, a)
                return None if swapped is None else (swapped[1], swapped[0])
            case BinaryOperator.EQ:
                if a.lower > b.upper or a.upper < b.lower:
                    return None
                meet = Interval(max(a.lower, b.lower), min(a.upper, b.upper))
                return (meet, meet)
            case BinaryOperator.NE:
                if a.is_point() and b.is_point() and a.lower == b.lower:
                    return None
                a_lo, a_hi, b_lo, b_hi = a.lower, a.upper, b.lower, b.upper
                # Only a single excluded point at an endpoint can be cut off.
                if a.is_point() and a.lower == b.lower:
                    b_lo += 1
                elif a.is_point() and a.lower == b.upper:
                    b_hi -= 1
                elif b.is_point() and b.lower == a.lower:
                    a_lo += 1
                elif b.is_point() and b.lower == a.upper:
                    a_hi -= 1
                return (Interval(a_lo, a_hi), Interval(b_lo, b_hi))
            case _:
                return (a, b)


# --- Interval domain ----------------------------------------------------------


class IntervalDomain(Lattice):
    """
    Bounded interval domain over a fixed set of integer variables.

    The window ``[lower_bound, upper_bound]`` is the finite range the domain
    tracks precisely.  Every newly built state is normalized in three steps:

      1. an empty interval anywhere makes the whole state BOTTOM
      2. bounds are contracted to integers (ceil lower, floor upper);
         an interval that becomes empty makes the state BOTTOM
      3. a lower bound below the window becomes -inf, an upper bound above
         the window becomes +inf

    Step 3 keeps the lattice finite-height for a fixed variable set, which
    is what makes the worklist terminate without a widening operator.
    """

    def __init__(
        self,
        variables: Iterable[str],
        lower_bound: float,
        upper_bound: float,
    ) -> None:
        if lower_bound > upper_bound:
            raise ConfigError(
                f"interval window is empty: [{lower_bound}, {upper_bound}]"
            )
        self.variables = tuple(variables)
        self.lower_bound = lower_bound
        self.upper_bound = upper_bound

    def __repr__(self) -> str:
        return (
            f"IntervalDomain({len(self.variables)} vars, "
            f"window=[{self.lower_bound}, {self.upper_bound}])"
        )

    # Construction ------------------------------------------------------------

    def make(self, mapping: Mapping[str, Interval]) -> LatticeElement:
        """Build a normalized element from a raw variable -> interval map."""
        if any(itv.is_empty() for itv in mapping.values()):
            return BOTTOM

        contracted: dict[str, Interval] = {}
        for name, itv in mapping.items():
            lo = itv.lower if math.isinf(itv.lower) else math.ceil(itv.lower)
            hi = itv.upper if math.isinf(itv.upper) else math.floor(itv.upper)
            if lo > hi:
                return BOTTOM
            contracted[name] = Interval(lo, hi)

        clamped = {
            name: Interval(
                itv.lower if itv.lower >= self.lower_bound else -INF,
                itv.upper if itv.upper <= self.upper_bound else INF,
            )
            for name, itv in contracted.items()
        }
        return IntervalState.from_mapping(clamped)

    def top_state(self) -> LatticeElement:
        """Every tracked variable unconstrained."""
        return self.make({v: Interval.top() for v in self.variables})

    # Lattice -----------------------------------------------------------------

    def bottom(self) -> LatticeElement:
        return BOTTOM

    def join(self, a: LatticeElement, b: LatticeElement) -> LatticeElement:
        match a, b:
            case Bottom(), _:
                return b
            case _, Bottom():
                return a
            case IntervalState(), IntervalState():
                if a.variables != b.variables:
                    raise InvalidAbstractStateError(
                        f"cannot join interval states over {a.variables} and {b.variables}"
                    )
                return self.make({
                    name: Interval(min(x.lower, y.lower), max(x.upper, y.upper))
                    for (name, x), (_, y) in zip(a.items, b.items)
                })
            case _:
                raise InvalidAbstractStateError(
                    f"incompatible elements for interval join: {a!r}, {b!r}"
                )

    def transfer(
        self, a: LatticeElement, stmt: Stmt, is_true_branch: bool
    ) -> LatticeElement:
        match a:
            case Bottom():
                return BOTTOM
            case IntervalState():
                pass
            case _:
                raise InvalidAbstractStateError(
                    f"interval transfer applied to a non-interval element: {a!r}"
                )

        match stmt:
            case AssignStmt(left=Local(name=name), right=rhs) if name in a:
                return self._assign(a, name, rhs)
            case IdentityStmt(left=Local(name=name)) if name in a:
                updated = a.as_dict()
                updated[name] = Interval.top()
                return self.make(updated)
            case IfStmt(condition=cond) if cond.is_comparison():
                return self._guard(a, cond, is_true_branch)
            case _:
                return a

    # Transfer helpers --------------------------------------------------------

    def _operand(self, a: IntervalState, v: Value) -> Optional[Interval]:
        match v:
            case IntConstant(value=c):
                return Interval.point(c)
            case Local(name=name):
                return a.get(name)
            case _:
                return None

    def _assign(self, a: IntervalState, name: str, rhs: Value) -> LatticeElement:
        match rhs:
            case IntConstant(value=c):
                result: Optional[Interval] = Interval.point(c)
            case Local():
                result = self._operand(a, rhs) or Interval.top()
            case NegExpr(op=op):
                src = self._operand(a, op)
                result = Interval.top() if src is None else IntervalArithmetic.neg(src)
            case BinopExpr(op=op, op1=x, op2=y):
                i1, i2 = self._operand(a, x), self._operand(a, y)
                if i1 is None or i2 is None:
                    result = Interval.top()
                else:
                    result = IntervalArithmetic.apply(op, i1, i2)
                    if result is None:
                        logger.debug("division by {{0}} in '{} = {}'", name, rhs)
                        return BOTTOM
            case _:
                # array reads, lengths, casts, calls: value unknown
                result = Interval.top()

        if result.is_empty():
            return BOTTOM
        updated = a.as_dict()
        updated[name] = result
        return self.make(updated)

    def _guard(
        self, a: IntervalState, cond: BinopExpr, is_true_branch: bool
    ) -> LatticeElement:
        op = cond.op if is_true_branch else NEGATED_COMPARISON[cond.op]
        x, y = cond.op1, cond.op2
        x_tracked = isinstance(x, Local) and x.name in a
        y_tracked = isinstance(y, Local) and y.name in a
        if not (x_tracked or y_tracked):
            return a

        i1, i2 = self._operand(a, x), self._operand(a, y)
        if i1 is None or i2 is None:
            return a

        refined = IntervalArithmetic.refine(op, i1, i2)
        if refined is None:
            return BOTTOM

        updated = a.as_dict()
        if x_tracked:
            updated[x.name] = refined[0]
        if y_tracked:
            updated[y.name] = refined[1]
        return self.make(updated)
