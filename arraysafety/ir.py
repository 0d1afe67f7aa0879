"""
arraysafety/ir.py

Statement-level intermediate representation consumed by the analysis.

The model is a small three-address code in the spirit of Jimple:

- Values: locals, integer/null constants and one-operator expressions
- Statements: assignments, parameter binds, conditional and unconditional
  jumps, returns, calls
- MethodBody: the statements of one method, their successors and the typed
  local catalogue

Any front-end (bytecode reader, source lowering, hand-built tests) only has to
produce a MethodBody, or more generally something satisfying the
ControlFlowGraph protocol, for the core analysis to run on it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Optional, Protocol, Union


# --- Types --------------------------------------------------------------------

INTEGER_TYPE_NAMES = frozenset({"int", "long", "short", "byte"})


@dataclass(frozen=True)
class JavaType:
    """A Java type reduced to its element name and array dimensions."""
    name: str
    dimensions: int = 0

    def is_integer(self) -> bool:
        return self.dimensions == 0 and self.name in INTEGER_TYPE_NAMES

    def is_int_array(self) -> bool:
        return self.dimensions == 1 and self.name in INTEGER_TYPE_NAMES

    def element(self) -> "JavaType":
        return JavaType(self.name, max(self.dimensions - 1, 0))

    def __str__(self) -> str:
        return self.name + "[]" * self.dimensions


INT = JavaType("int")
INT_ARRAY = JavaType("int", 1)
BOOLEAN = JavaType("boolean")
UNKNOWN = JavaType("?")


# --- Values -------------------------------------------------------------------


class BinaryOperator(str, Enum):
    """Operators that may appear in a BinopExpr."""
    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "/"
    REM = "%"
    AND = "&"
    OR = "|"
    XOR = "^"
    SHL = "<<"
    SHR = ">>"
    USHR = ">>>"
    LT = "<"
    GT = ">"
    LE = "<="
    GE = ">="
    EQ = "=="
    NE = "!="

    def __str__(self) -> str:
        return self.value


COMPARISON_OPERATORS = frozenset({
    BinaryOperator.LT, BinaryOperator.GT, BinaryOperator.LE,
    BinaryOperator.GE, BinaryOperator.EQ, BinaryOperator.NE,
})

# Operator that holds exactly when the given one does not.
NEGATED_COMPARISON = {
    BinaryOperator.LT: BinaryOperator.GE,
    BinaryOperator.GE: BinaryOperator.LT,
    BinaryOperator.GT: BinaryOperator.LE,
    BinaryOperator.LE: BinaryOperator.GT,
    BinaryOperator.EQ: BinaryOperator.NE,
    BinaryOperator.NE: BinaryOperator.EQ,
}


@dataclass(frozen=True)
class Local:
    """A method-local variable (source local or lowering temporary)."""
    name: str
    type: JavaType = INT

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class IntConstant:
    value: int

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class NullConstant:
    def __str__(self) -> str:
        return "null"


@dataclass(frozen=True)
class BinopExpr:
    op: BinaryOperator
    op1: "Value"
    op2: "Value"

    def is_comparison(self) -> bool:
        return self.op in COMPARISON_OPERATORS

    def negated(self) -> "BinopExpr":
        """The comparison that holds exactly when this one does not."""
        return BinopExpr(NEGATED_COMPARISON[self.op], self.op1, self.op2)

    def __str__(self) -> str:
        return f"{self.op1} {self.op} {self.op2}"


@dataclass(frozen=True)
class NegExpr:
    op: "Value"

    def __str__(self) -> str:
        return f"-{self.op}"


@dataclass(frozen=True)
class NewArrayExpr:
    element_type: JavaType
    size: "Value"

    def __str__(self) -> str:
        return f"new {self.element_type}[{self.size}]"


@dataclass(frozen=True)
class ArrayRef:
    base: Local
    index: "Value"

    def __str__(self) -> str:
        return f"{self.base}[{self.index}]"


@dataclass(frozen=True)
class LengthExpr:
    base: "Value"

    def __str__(self) -> str:
        return f"lengthof {self.base}"


@dataclass(frozen=True)
class CastExpr:
    type: JavaType
    op: "Value"

    def __str__(self) -> str:
        return f"({self.type}) {self.op}"


@dataclass(frozen=True)
class InvokeExpr:
    name: str
    args: tuple["Value", ...] = ()

    def __str__(self) -> str:
        return f"{self.name}({', '.join(str(a) for a in self.args)})"


@dataclass(frozen=True)
class ParameterRef:
    index: int
    type: JavaType = INT

    def __str__(self) -> str:
        return f"@parameter{self.index}: {self.type}"


@dataclass(frozen=True)
class OtherExpr:
    """Any expression the IR has no dedicated shape for (kept as text)."""
    text: str

    def __str__(self) -> str:
        return self.text


Value = Union[
    Local, IntConstant, NullConstant, BinopExpr, NegExpr, NewArrayExpr,
    ArrayRef, LengthExpr, CastExpr, InvokeExpr, ParameterRef, OtherExpr,
]


def is_immediate(value: object) -> bool:
    return isinstance(value, (Local, IntConstant, NullConstant))


def iter_values(value: Value) -> Iterator[Value]:
    """Preorder walk over a value and every value nested in it."""
    yield value
    match value:
        case BinopExpr(op1=a, op2=b):
            yield from iter_values(a)
            yield from iter_values(b)
        case NegExpr(op=a) | CastExpr(op=a) | LengthExpr(base=a):
            yield from iter_values(a)
        case NewArrayExpr(size=a):
            yield from iter_values(a)
        case ArrayRef(base=a, index=b):
            yield from iter_values(a)
            yield from iter_values(b)
        case InvokeExpr(args=args):
            for a in args:
                yield from iter_values(a)


# --- Statements ---------------------------------------------------------------


@dataclass(eq=False)
class Stmt:
    """
    Base class of all statements.

    Statements compare by identity: two textually equal assignments at
    different places are different statements (and different allocation
    sites).  ``position`` is the index inside the owning MethodBody.
    """
    position: int = field(default=-1, kw_only=True, repr=False)

    def values(self) -> Iterator[Value]:
        return iter(())

    def falls_through(self) -> bool:
        return True


@dataclass(eq=False)
class AssignStmt(Stmt):
    left: Union[Local, ArrayRef]
    right: Value

    def values(self) -> Iterator[Value]:
        yield from iter_values(self.left)
        yield from iter_values(self.right)

    def __str__(self) -> str:
        return f"{self.left} = {self.right}"


@dataclass(eq=False)
class IdentityStmt(Stmt):
    """Binds a parameter to a local on method entry."""
    left: Local
    right: ParameterRef

    def values(self) -> Iterator[Value]:
        yield self.left
        yield self.right

    def __str__(self) -> str:
        return f"{self.left} := {self.right}"


@dataclass(eq=False)
class IfStmt(Stmt):
    """Jumps to ``target`` when ``condition`` holds, falls through otherwise."""
    condition: BinopExpr
    target: Optional[Stmt] = None

    def values(self) -> Iterator[Value]:
        yield from iter_values(self.condition)

    def __str__(self) -> str:
        return f"if {self.condition} goto {_target_str(self.target)}"


@dataclass(eq=False)
class GotoStmt(Stmt):
    target: Optional[Stmt] = None

    def falls_through(self) -> bool:
        return False

    def __str__(self) -> str:
        return f"goto {_target_str(self.target)}"


@dataclass(eq=False)
class ReturnStmt(Stmt):
    value: Optional[Value] = None

    def values(self) -> Iterator[Value]:
        if self.value is not None:
            yield from iter_values(self.value)

    def falls_through(self) -> bool:
        return False

    def __str__(self) -> str:
        return "return" if self.value is None else f"return {self.value}"


@dataclass(eq=False)
class ThrowStmt(Stmt):
    value: Value

    def values(self) -> Iterator[Value]:
        yield from iter_values(self.value)

    def falls_through(self) -> bool:
        return False

    def __str__(self) -> str:
        return f"throw {self.value}"


@dataclass(eq=False)
class InvokeStmt(Stmt):
    expr: InvokeExpr

    def values(self) -> Iterator[Value]:
        yield from iter_values(self.expr)

    def __str__(self) -> str:
        return str(self.expr)


@dataclass(eq=False)
class NopStmt(Stmt):
    def __str__(self) -> str:
        return "nop"


def _target_str(target: Optional[Stmt]) -> str:
    if target is None:
        return "?"
    return f"{target.position:02d}" if target.position >= 0 else "?"


def array_accesses(stmt: Stmt) -> list[ArrayRef]:
    """Every array-element access (read or write) inside ``stmt``."""
    return [v for v in stmt.values() if isinstance(v, ArrayRef)]


# --- Control-flow graph interface -----------------------------------------------


class ControlFlowGraph(Protocol):
    """What program-point numbering needs from a front-end."""

    @property
    def entry(self) -> Stmt: ...

    def __iter__(self) -> Iterator[Stmt]: ...

    def successors(self, stmt: Stmt) -> list[Stmt]: ...


@dataclass
class MethodBody:
    """
    The statements of a single method together with its typed locals.

    Attributes:
        class_name: Simple or qualified name of the declaring class
        method_name: Name of the method
        locals: Every local (parameters, source locals, temporaries)
        units: Statements in body order; the first one is the entry
    """
    class_name: str
    method_name: str
    locals: list[Local] = field(default_factory=list)
    units: list[Stmt] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.units:
            raise ValueError(f"method {self.method_name} has no statements")
        for i, unit in enumerate(self.units):
            unit.position = i
        members = {id(u) for u in self.units}
        for unit in self.units:
            if isinstance(unit, (IfStmt, GotoStmt)):
                if unit.target is None or id(unit.target) not in members:
                    raise ValueError(f"unresolved jump target in '{unit}'")

    # CFG -----------------------------------------------------------------------

    @property
    def entry(self) -> Stmt:
        return self.units[0]

    def __iter__(self) -> Iterator[Stmt]:
        return iter(self.units)

    def __len__(self) -> int:
        return len(self.units)

    def successors(self, stmt: Stmt) -> list[Stmt]:
        """
        Successors in the brief-graph sense: fall-through first, then the
        jump target.  A target equal to the fall-through is listed once.
        """
        out: list[Stmt] = []
        nxt = stmt.position + 1
        if stmt.falls_through() and nxt < len(self.units):
            out.append(self.units[nxt])
        if isinstance(stmt, (IfStmt, GotoStmt)) and stmt.target is not None:
            if not any(s is stmt.target for s in out):
                out.append(stmt.target)
        return out

    # Locals catalogue ------------------------------------------------------------

    def integer_locals(self) -> list[Local]:
        return [l for l in self.locals if l.type.is_integer()]

    def array_locals(self) -> list[Local]:
        return [l for l in self.locals if l.type.is_int_array()]

    # Queries ---------------------------------------------------------------------

    def array_accesses(self, stmt: Stmt) -> list[ArrayRef]:
        """Every array-element access (read or write) inside ``stmt``."""
        return array_accesses(stmt)

    def allocation_statements(self) -> list[AssignStmt]:
        """Statements of the shape ``a = new int[n]`` on a tracked array local."""
        return [
            u for u in self.units
            if isinstance(u, AssignStmt)
            and isinstance(u.left, Local)
            and u.left.type.is_int_array()
            and isinstance(u.right, NewArrayExpr)
        ]

    @property
    def qualified_name(self) -> str:
        return f"{self.class_name}.{self.method_name}"

    def listing(self) -> str:
        """Numbered statement listing, one ``NN: stmt`` line per unit."""
        return "\n".join(f"{u.position:02d}: {u}" for u in self.units)
