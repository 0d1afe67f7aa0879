"""
arraysafety/source_parser.py

Tree-sitter based Java front-end.

Parses a Java compilation unit and lowers one method into a MethodBody of
three-address statements:

- parameters are bound with IdentityStmt
- nested expressions are flattened into ``$tN`` temporaries
- structured control flow (if/else, while, do, for, for-each, break,
  continue, labels, &&, ||, !, ?:) becomes IfStmt/GotoStmt
- a trailing ``return`` is appended so every jump target exists

Unsupported expressions degrade to OtherExpr; unsupported statements that
would change control flow (switch, try) raise SourceParseError.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Optional, Union

import tree_sitter
import tree_sitter_java
from loguru import logger

from arraysafety.errors import MethodNotFoundError, SourceParseError
from arraysafety.ir import (
    BOOLEAN,
    INT,
    UNKNOWN,
    ArrayRef,
    AssignStmt,
    BinaryOperator,
    BinopExpr,
    CastExpr,
    GotoStmt,
    IdentityStmt,
    IfStmt,
    InvokeExpr,
    InvokeStmt,
    IntConstant,
    JavaType,
    LengthExpr,
    Local,
    MethodBody,
    NegExpr,
    NewArrayExpr,
    NullConstant,
    OtherExpr,
    ParameterRef,
    ReturnStmt,
    Stmt,
    ThrowStmt,
    Value,
    is_immediate,
)


# --- Tree-sitter helpers --------------------------------------------------------


def create_java_parser() -> tree_sitter.Parser:
    """
    Create a Tree-sitter parser configured for Java.

    Supports both the modern bindings (Parser(language)) and older releases
    that expect ``set_language``.
    """
    language = tree_sitter.Language(tree_sitter_java.language())
    try:
        parser = tree_sitter.Parser(language)
    except TypeError:
        parser = tree_sitter.Parser()
        parser.set_language(language)
    return parser


def node_text(node: tree_sitter.Node, source_bytes: bytes) -> str:
    """Decode the bytes that correspond to a node."""
    return source_bytes[node.start_byte:node.end_byte].decode("utf-8", errors="replace")


def iter_nodes(root: tree_sitter.Node) -> Iterator[tree_sitter.Node]:
    """Iterative preorder traversal of the syntax tree."""
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def _line(node: tree_sitter.Node) -> int:
    return node.start_point[0] + 1


def parse_java(source: Union[str, bytes]) -> tuple[tree_sitter.Tree, bytes]:
    """Parse Java source; raises SourceParseError on syntax errors."""
    source_bytes = source.encode("utf-8") if isinstance(source, str) else source
    tree = create_java_parser().parse(source_bytes)
    if tree.root_node.has_error:
        for node in iter_nodes(tree.root_node):
            if node.type == "ERROR" or node.is_missing:
                raise SourceParseError(
                    f"syntax error at line {_line(node)}: {node_text(node, source_bytes)!r}"
                )
        raise SourceParseError("syntax error in Java source")
    return tree, source_bytes


CLASS_NODE_TYPES = {"class_declaration", "interface_declaration", "enum_declaration"}


def list_methods(root: tree_sitter.Node, source_bytes: bytes) -> list[tuple[str, str]]:
    """(class name, method name) for every method declared in the tree."""
    found = []
    for node in iter_nodes(root):
        if node.type not in CLASS_NODE_TYPES:
            continue
        cname = node_text(node.child_by_field_name("name"), source_bytes)
        body = node.child_by_field_name("body")
        for member in body.named_children if body is not None else ():
            if member.type == "method_declaration":
                found.append((cname, node_text(member.child_by_field_name("name"), source_bytes)))
    return found


def find_method(
    root: tree_sitter.Node, source_bytes: bytes, class_name: str, method_name: str
) -> tree_sitter.Node:
    """
    Locate ``class_name.method_name``.  ``class_name`` may be qualified; only
    its simple name is compared.  The first of several overloads wins.
    """
    simple = class_name.rsplit(".", 1)[-1]
    class_seen = False
    matches = []
    for node in iter_nodes(root):
        if node.type not in CLASS_NODE_TYPES:
            continue
        if node_text(node.child_by_field_name("name"), source_bytes) != simple:
            continue
        class_seen = True
        body = node.child_by_field_name("body")
        for member in body.named_children if body is not None else ():
            if member.type != "method_declaration":
                continue
            if node_text(member.child_by_field_name("name"), source_bytes) == method_name:
                matches.append(member)

    if not class_seen:
        raise MethodNotFoundError(f"class not found: {class_name}")
    if not matches:
        raise MethodNotFoundError(f"method not found: {class_name}.{method_name}")
    if len(matches) > 1:
        logger.warning(
            "{}.{} is overloaded ({} declarations); analyzing the first",
            class_name, method_name, len(matches),
        )
    return matches[0]


# --- Lowering -------------------------------------------------------------------


@dataclass(eq=False)
class _Label:
    """A jump destination bound to the next statement emitted after it."""
    stmt: Optional[Stmt] = None
    jumps: list[Union[IfStmt, GotoStmt]] = field(default_factory=list)


@dataclass
class _Breakable:
    end: _Label
    continue_to: Optional[_Label]
    name: Optional[str] = None


COMPARISONS = {"<", ">", "<=", ">=", "==", "!="}
ARITHMETIC = {"+", "-", "*", "/", "%", "&", "|", "^", "<<", ">>", ">>>"}
INTEGER_LITERALS = {
    "decimal_integer_literal": 10,
    "hex_integer_literal": 16,
    "octal_integer_literal": 8,
    "binary_integer_literal": 2,
}
CHAR_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "b": "\b", "f": "\f", "0": "\0",
                "'": "'", '"': '"', "\\": "\\"}


def _int_literal(text: str, base: int) -> int:
    return int(text.replace("_", "").rstrip("lL"), base)


class MethodLowering:
    """
    Lowers one ``method_declaration`` node into a MethodBody.

    Example:
        tree, src = parse_java(text)
        node = find_method(tree.root_node, src, "BasicTest", "foo")
        body = MethodLowering("BasicTest", node, src).lower()
    """

    def __init__(self, class_name: str, method: tree_sitter.Node, source_bytes: bytes):
        self.class_name = class_name
        self.method = method
        self.src = source_bytes
        self.method_name = self.text(method.child_by_field_name("name"))
        self.units: list[Stmt] = []
        self.locals: dict[str, Local] = {}
        self.temp_count = 0
        self.pending: list[_Label] = []
        self.labels: list[_Label] = []
        self.breakables: list[_Breakable] = []
        self.next_loop_name: Optional[str] = None

    def text(self, node: tree_sitter.Node) -> str:
        return node_text(node, self.src)

    # Driver ------------------------------------------------------------------

    def lower(self) -> MethodBody:
        body = self.method.child_by_field_name("body")
        if body is None:
            raise SourceParseError(f"{self.class_name}.{self.method_name} has no body")

        self.parameters(self.method.child_by_field_name("parameters"))
        self.statement(body)
        if self.pending or not self.units or self.units[-1].falls_through():
            self.emit(ReturnStmt())

        for label in self.labels:
            for jump in label.jumps:
                jump.target = label.stmt

        logger.debug(
            "lowered {}.{} into {} statements ({} locals)",
            self.class_name, self.method_name, len(self.units), len(self.locals),
        )
        return MethodBody(self.class_name, self.method_name, list(self.locals.values()), self.units)

    # Emission ----------------------------------------------------------------

    def emit(self, stmt: Stmt) -> Stmt:
        self.units.append(stmt)
        for label in self.pending:
            label.stmt = stmt
        self.pending.clear()
        return stmt

    def new_label(self) -> _Label:
        label = _Label()
        self.labels.append(label)
        return label

    def place(self, label: _Label) -> None:
        self.pending.append(label)

    def jump(self, stmt: Union[IfStmt, GotoStmt], label: _Label) -> None:
        label.jumps.append(stmt)
        self.emit(stmt)

    def goto(self, label: _Label) -> None:
        self.jump(GotoStmt(), label)

    # Locals ------------------------------------------------------------------

    def declare(self, name: str, jtype: JavaType) -> Local:
        local = self.locals.get(name)
        if local is not None and local.type != jtype:
            logger.warning("local {} redeclared as {} (was {})", name, jtype, local.type)
        if local is None or local.type != jtype:
            local = Local(name, jtype)
            self.locals[name] = local
        return local

    def temp(self, jtype: JavaType) -> Local:
        name = f"$t{self.temp_count}"
        self.temp_count += 1
        return self.declare(name, jtype)

    def java_type(self, node: Optional[tree_sitter.Node], extra_dims: int = 0) -> JavaType:
        if node is None:
            return UNKNOWN
        if node.type == "array_type":
            element = self.java_type(node.child_by_field_name("element"))
            dims = self.text(node.child_by_field_name("dimensions")).count("[")
            return JavaType(element.name, element.dimensions + dims + extra_dims)
        if node.type == "generic_type":
            return JavaType(self.text(node).split("<", 1)[0], extra_dims)
        return JavaType(self.text(node), extra_dims)

    def type_of(self, value: Value) -> JavaType:
        match value:
            case Local(type=t):
                return t
            case IntConstant():
                return INT
            case BinopExpr() if value.is_comparison():
                return BOOLEAN
            case BinopExpr(op1=a):
                return self.type_of(a)
            case NegExpr(op=a):
                return self.type_of(a)
            case ArrayRef(base=b):
                return b.type.element()
            case NewArrayExpr(element_type=t):
                return JavaType(t.name, t.dimensions + 1)
            case LengthExpr():
                return INT
            case CastExpr(type=t):
                return t
            case _:
                return UNKNOWN

    # Parameters --------------------------------------------------------------

    def parameters(self, node: Optional[tree_sitter.Node]) -> None:
        if node is None:
            return
        index = 0
        for param in node.named_children:
            if param.type not in ("formal_parameter", "spread_parameter"):
                continue
            if param.type == "spread_parameter":
                # varargs: T... name
                type_node = next(c for c in param.named_children if c.type != "modifiers")
                ptype = self.java_type(type_node, 1)
                name_node = param.named_children[-1]
                if name_node.type == "variable_declarator":
                    name_node = name_node.child_by_field_name("name")
            else:
                dims = param.child_by_field_name("dimensions")
                extra = self.text(dims).count("[") if dims is not None else 0
                ptype = self.java_type(param.child_by_field_name("type"), extra)
                name_node = param.child_by_field_name("name")
            local = self.declare(self.text(name_node), ptype)
            self.emit(IdentityStmt(local, ParameterRef(index, ptype)))
            index += 1

    # Statements --------------------------------------------------------------

    def statement(self, node: tree_sitter.Node) -> None:
        kind = node.type
        match kind:
            case "block":
                for child in node.named_children:
                    self.statement(child)
            case "local_variable_declaration":
                self.local_declaration(node)
            case "expression_statement":
                self.effect(node.named_children[0])
            case "if_statement":
                self.if_statement(node)
            case "while_statement":
                self.while_statement(node)
            case "do_statement":
                self.do_statement(node)
            case "for_statement":
                self.for_statement(node)
            case "enhanced_for_statement":
                self.foreach_statement(node)
            case "labeled_statement":
                self.labeled_statement(node)
            case "break_statement":
                self.goto(self.breakable_for(node).end)
            case "continue_statement":
                target = self.breakable_for(node, loops_only=True).continue_to
                self.goto(target)
            case "return_statement":
                value = node.named_children[0] if node.named_children else None
                self.emit(ReturnStmt(None if value is None else self.immediate(value)))
            case "throw_statement":
                self.emit(ThrowStmt(self.immediate(node.named_children[0])))
            case "assert_statement":
                self.assert_statement(node)
            case "synchronized_statement":
                self.statement(node.child_by_field_name("body"))
            case "line_comment" | "block_comment" | ";":
                pass
            case ("switch_expression" | "switch_statement" | "try_statement"
                  | "try_with_resources_statement" | "yield_statement"):
                raise SourceParseError(
                    f"unsupported statement '{kind}' at line {_line(node)}"
                )
            case _:
                logger.warning("ignoring {} at line {}", kind, _line(node))

    def local_declaration(self, node: tree_sitter.Node) -> None:
        base = node.child_by_field_name("type")
        for decl in node.children_by_field_name("declarator"):
            dims = decl.child_by_field_name("dimensions")
            extra = self.text(dims).count("[") if dims is not None else 0
            jtype = self.java_type(base, extra)
            name = self.text(decl.child_by_field_name("name"))
            value = decl.child_by_field_name("value")
            if jtype.name == "var" and value is not None:
                # local type inference: the initializer decides
                rhs = self.rvalue(value)
                local = self.declare(name, self.type_of(rhs))
                self.emit(AssignStmt(local, rhs))
                continue
            local = self.declare(name, jtype)
            if value is not None:
                self.assign_to(local, value)

    def assign_to(self, local: Local, value_node: tree_sitter.Node) -> None:
        if value_node.type == "array_initializer":
            self.emit(AssignStmt(local, self.array_initializer(value_node, local.type)))
            return
        value = self.rvalue(value_node)
        self.emit(AssignStmt(local, value))

    def if_statement(self, node: tree_sitter.Node) -> None:
        else_label = self.new_label()
        self.branch(node.child_by_field_name("condition"), else_label, when=False)
        self.statement(node.child_by_field_name("consequence"))
        alternative = node.child_by_field_name("alternative")
        if alternative is None:
            self.place(else_label)
            return
        end = self.new_label()
        self.goto(end)
        self.place(else_label)
        self.statement(alternative)
        self.place(end)

    def enter_loop(self, end: _Label, continue_to: _Label) -> None:
        self.breakables.append(_Breakable(end, continue_to, self.next_loop_name))
        self.next_loop_name = None

    def while_statement(self, node: tree_sitter.Node) -> None:
        head, end = self.new_label(), self.new_label()
        self.place(head)
        self.branch(node.child_by_field_name("condition"), end, when=False)
        self.enter_loop(end, head)
        self.statement(node.child_by_field_name("body"))
        self.breakables.pop()
        self.goto(head)
        self.place(end)

    def do_statement(self, node: tree_sitter.Node) -> None:
        top, cont, end = self.new_label(), self.new_label(), self.new_label()
        self.place(top)
        self.enter_loop(end, cont)
        self.statement(node.child_by_field_name("body"))
        self.breakables.pop()
        self.place(cont)
        self.branch(node.child_by_field_name("condition"), top, when=True)
        self.place(end)

    def for_statement(self, node: tree_sitter.Node) -> None:
        for init in node.children_by_field_name("init"):
            if init.type == "local_variable_declaration":
                self.local_declaration(init)
            else:
                self.effect(init)
        head, cont, end = self.new_label(), self.new_label(), self.new_label()
        self.place(head)
        condition = node.child_by_field_name("condition")
        if condition is not None:
            self.branch(condition, end, when=False)
        self.enter_loop(end, cont)
        self.statement(node.child_by_field_name("body"))
        self.breakables.pop()
        self.place(cont)
        for update in node.children_by_field_name("update"):
            self.effect(update)
        self.goto(head)
        self.place(end)

    def foreach_statement(self, node: tree_sitter.Node) -> None:
        """``for (T x : arr) body`` over an array, lowered to an index loop."""
        dims = node.child_by_field_name("dimensions")
        extra = self.text(dims).count("[") if dims is not None else 0
        var = self.declare(
            self.text(node.child_by_field_name("name")),
            self.java_type(node.child_by_field_name("type"), extra),
        )
        array = self.to_local(self.rvalue(node.child_by_field_name("value")))
        index = self.temp(INT)
        length = self.temp(INT)
        self.emit(AssignStmt(index, IntConstant(0)))
        self.emit(AssignStmt(length, LengthExpr(array)))

        head, cont, end = self.new_label(), self.new_label(), self.new_label()
        self.place(head)
        self.jump(IfStmt(BinopExpr(BinaryOperator.GE, index, length)), end)
        self.emit(AssignStmt(var, ArrayRef(array, index)))
        self.enter_loop(end, cont)
        self.statement(node.child_by_field_name("body"))
        self.breakables.pop()
        self.place(cont)
        self.emit(AssignStmt(index, BinopExpr(BinaryOperator.ADD, index, IntConstant(1))))
        self.goto(head)
        self.place(end)

    def labeled_statement(self, node: tree_sitter.Node) -> None:
        name = self.text(node.named_children[0])
        inner = node.named_children[-1]
        if inner.type in ("while_statement", "do_statement", "for_statement",
                          "enhanced_for_statement"):
            self.next_loop_name = name
            self.statement(inner)
            return
        end = self.new_label()
        self.breakables.append(_Breakable(end, None, name))
        self.statement(inner)
        self.breakables.pop()
        self.place(end)

    def breakable_for(self, node: tree_sitter.Node, loops_only: bool = False) -> _Breakable:
        ident = next((c for c in node.named_children if c.type == "identifier"), None)
        name = None if ident is None else self.text(ident)
        for entry in reversed(self.breakables):
            if name is not None and entry.name != name:
                continue
            if (name is None or loops_only) and entry.continue_to is None:
                continue
            return entry
        raise SourceParseError(f"'{self.text(node)}' outside a loop at line {_line(node)}")

    def assert_statement(self, node: tree_sitter.Node) -> None:
        ok = self.new_label()
        self.branch(node.named_children[0], ok, when=True)
        self.emit(ThrowStmt(OtherExpr("new java.lang.AssertionError")))
        self.place(ok)

    # Conditions --------------------------------------------------------------

    def branch(self, node: tree_sitter.Node, target: _Label, when: bool) -> None:
        """Emit jumps to ``target`` taken exactly when ``node`` evaluates to ``when``."""
        kind = node.type
        if kind == "parenthesized_expression":
            self.branch(node.named_children[0], target, when)
            return
        if kind in ("true", "false"):
            if (kind == "true") == when:
                self.goto(target)
            return
        if kind == "unary_expression" and self.text(node.child_by_field_name("operator")) == "!":
            self.branch(node.child_by_field_name("operand"), target, not when)
            return
        if kind == "binary_expression":
            op = self.text(node.child_by_field_name("operator"))
            left = node.child_by_field_name("left")
            right = node.child_by_field_name("right")
            if op in ("&&", "||"):
                # a && b jumps on true only if both hold; a || b on false only if both fail
                short_circuit = (op == "&&") == when
                if short_circuit:
                    skip = self.new_label()
                    self.branch(left, skip, not when)
                    self.branch(right, target, when)
                    self.place(skip)
                else:
                    self.branch(left, target, when)
                    self.branch(right, target, when)
                return
            if op in COMPARISONS:
                a = self.immediate(left)
                b = self.immediate(right)
                cond = BinopExpr(BinaryOperator(op), a, b)
                self.jump(IfStmt(cond if when else cond.negated()), target)
                return

        value = self.immediate(node)
        op = BinaryOperator.NE if when else BinaryOperator.EQ
        self.jump(IfStmt(BinopExpr(op, value, IntConstant(0))), target)

    def boolean_value(self, node: tree_sitter.Node) -> Local:
        result = self.temp(BOOLEAN)
        true_label, end = self.new_label(), self.new_label()
        self.branch(node, true_label, when=True)
        self.emit(AssignStmt(result, IntConstant(0)))
        self.goto(end)
        self.place(true_label)
        self.emit(AssignStmt(result, IntConstant(1)))
        self.place(end)
        return result

    # Expressions -------------------------------------------------------------

    def effect(self, node: tree_sitter.Node) -> None:
        """Lower an expression evaluated only for its side effects."""
        match node.type:
            case "assignment_expression":
                self.assignment(node)
            case "update_expression":
                self.update(node, want_value=False)
            case "method_invocation":
                self.emit(InvokeStmt(self.invocation(node)))
            case "parenthesized_expression":
                self.effect(node.named_children[0])
            case _:
                self.immediate(node)

    def immediate(self, node: tree_sitter.Node) -> Value:
        value = self.rvalue(node)
        if is_immediate(value):
            return value
        t = self.temp(self.type_of(value))
        self.emit(AssignStmt(t, value))
        return t

    def to_local(self, value: Value) -> Local:
        if isinstance(value, Local):
            return value
        t = self.temp(self.type_of(value))
        self.emit(AssignStmt(t, value))
        return t

    def rvalue(self, node: tree_sitter.Node) -> Value:
        """
        Lower ``node`` to a single IR value whose operands are immediates,
        emitting whatever statements computing those operands needs.
        """
        kind = node.type
        if kind == "parenthesized_expression":
            return self.rvalue(node.named_children[0])
        if kind == "identifier":
            name = self.text(node)
            if name in self.locals:
                return self.locals[name]
            return OtherExpr(name)
        if kind in INTEGER_LITERALS:
            return IntConstant(_int_literal(self.text(node), INTEGER_LITERALS[kind]))
        if kind == "character_literal":
            return self.char_literal(node)
        if kind in ("true", "false"):
            return IntConstant(1 if kind == "true" else 0)
        if kind == "null_literal":
            return NullConstant()
        if kind == "binary_expression":
            op = self.text(node.child_by_field_name("operator"))
            if op in ("&&", "||") or op in COMPARISONS:
                return self.boolean_value(node)
            if op in ARITHMETIC:
                a = self.immediate(node.child_by_field_name("left"))
                b = self.immediate(node.child_by_field_name("right"))
                return BinopExpr(BinaryOperator(op), a, b)
        if kind == "unary_expression":
            op = self.text(node.child_by_field_name("operator"))
            operand = node.child_by_field_name("operand")
            if op == "-":
                return NegExpr(self.immediate(operand))
            if op == "+":
                return self.rvalue(operand)
            if op == "~":
                return BinopExpr(BinaryOperator.XOR, self.immediate(operand), IntConstant(-1))
            if op == "!":
                return self.boolean_value(node)
        if kind == "update_expression":
            return self.update(node, want_value=True)
        if kind == "assignment_expression":
            return self.assignment(node)
        if kind == "array_access":
            return self.array_ref(node)
        if kind == "array_creation_expression":
            return self.array_creation(node)
        if kind == "field_access":
            field_name = self.text(node.child_by_field_name("field"))
            if field_name == "length":
                return LengthExpr(self.to_local(self.rvalue(node.child_by_field_name("object"))))
        if kind == "method_invocation":
            return self.invocation(node)
        if kind == "cast_expression":
            target = self.java_type(node.child_by_field_name("type"))
            value = self.immediate(node.child_by_field_name("value"))
            if target.is_integer() and self.type_of(value).is_integer():
                return value
            return CastExpr(target, value)
        if kind == "ternary_expression":
            return self.ternary(node)

        logger.debug("unmodelled expression {} at line {}", kind, _line(node))
        return OtherExpr(self.text(node))

    def char_literal(self, node: tree_sitter.Node) -> Value:
        body = self.text(node)[1:-1]
        if len(body) == 1:
            return IntConstant(ord(body))
        if len(body) == 2 and body[0] == "\\" and body[1] in CHAR_ESCAPES:
            return IntConstant(ord(CHAR_ESCAPES[body[1]]))
        if body.startswith("\\u"):
            return IntConstant(int(body[2:].lstrip("u"), 16))
        return OtherExpr(self.text(node))

    def lvalue(self, node: tree_sitter.Node) -> Union[Local, ArrayRef, None]:
        if node.type == "parenthesized_expression":
            return self.lvalue(node.named_children[0])
        if node.type == "identifier" and self.text(node) in self.locals:
            return self.locals[self.text(node)]
        if node.type == "array_access":
            return self.array_ref(node)
        return None

    def array_ref(self, node: tree_sitter.Node) -> ArrayRef:
        base = self.to_local(self.rvalue(node.child_by_field_name("array")))
        index = self.immediate(node.child_by_field_name("index"))
        return ArrayRef(base, index)

    def assignment(self, node: tree_sitter.Node) -> Value:
        op = self.text(node.child_by_field_name("operator"))
        left_node = node.child_by_field_name("left")
        right_node = node.child_by_field_name("right")
        left = self.lvalue(left_node)
        if left is None:
            logger.warning(
                "assignment to {} at line {} is not tracked",
                self.text(left_node), _line(node),
            )
            return self.immediate(right_node)

        if op == "=":
            if isinstance(left, Local):
                self.assign_to(left, right_node)
                return left
            value = self.immediate(right_node)
            self.emit(AssignStmt(left, value))
            return value

        binop = BinaryOperator(op[:-1])
        if isinstance(left, Local):
            rhs = self.immediate(right_node)
            self.emit(AssignStmt(left, BinopExpr(binop, left, rhs)))
            return left
        current = self.to_local(left)
        rhs = self.immediate(right_node)
        result = self.temp(current.type)
        self.emit(AssignStmt(result, BinopExpr(binop, current, rhs)))
        self.emit(AssignStmt(left, result))
        return result

    def update(self, node: tree_sitter.Node, want_value: bool) -> Value:
        operator = next(c for c in node.children if c.type in ("++", "--"))
        operand = next(c for c in node.children if c.is_named)
        prefix = node.children[0].type in ("++", "--")
        binop = BinaryOperator.ADD if operator.type == "++" else BinaryOperator.SUB

        target = self.lvalue(operand)
        if target is None:
            logger.warning("update of {} at line {} is not tracked", self.text(operand), _line(node))
            return OtherExpr(self.text(node))

        if isinstance(target, Local):
            old: Value = target
            if want_value and not prefix:
                old = self.temp(target.type)
                self.emit(AssignStmt(old, target))
            self.emit(AssignStmt(target, BinopExpr(binop, target, IntConstant(1))))
            return target if prefix else old

        current = self.to_local(target)
        updated = self.temp(current.type)
        self.emit(AssignStmt(updated, BinopExpr(binop, current, IntConstant(1))))
        self.emit(AssignStmt(target, updated))
        return updated if prefix else current

    def array_creation(self, node: tree_sitter.Node) -> Value:
        element = self.java_type(node.child_by_field_name("type"))
        sizes = [d for d in node.children_by_field_name("dimensions") if d.type == "dimensions_expr"]
        empty = [d for d in node.children_by_field_name("dimensions") if d.type == "dimensions"]
        total = len(sizes) + sum(self.text(d).count("[") for d in empty)
        initializer = node.child_by_field_name("value")
        array_type = JavaType(element.name, total)
        if initializer is not None:
            return self.array_initializer(initializer, array_type)
        size = self.immediate(sizes[0].named_children[-1])
        return NewArrayExpr(JavaType(element.name, total - 1), size)

    def array_initializer(self, node: tree_sitter.Node, array_type: JavaType) -> Value:
        """``{e0, e1, ...}``: allocate, then store every element."""
        elements = [c for c in node.named_children if not c.type.endswith("comment")]
        array = self.temp(array_type)
        self.emit(AssignStmt(array, NewArrayExpr(array_type.element(), IntConstant(len(elements)))))
        for i, element in enumerate(elements):
            if element.type == "array_initializer":
                value: Value = self.array_initializer(element, array_type.element())
            else:
                value = self.immediate(element)
            self.emit(AssignStmt(ArrayRef(array, IntConstant(i)), value))
        return array

    def invocation(self, node: tree_sitter.Node) -> InvokeExpr:
        name = self.text(node.child_by_field_name("name"))
        obj = node.child_by_field_name("object")
        if obj is not None:
            name = f"{self.text(obj)}.{name}"
        args_node = node.child_by_field_name("arguments")
        args = tuple(
            self.immediate(a) for a in (args_node.named_children if args_node is not None else ())
            if not a.type.endswith("comment")
        )
        return InvokeExpr(name, args)

    def ternary(self, node: tree_sitter.Node) -> Value:
        else_label, end = self.new_label(), self.new_label()
        self.branch(node.child_by_field_name("condition"), else_label, when=False)
        first = self.rvalue(node.child_by_field_name("consequence"))
        result = self.temp(self.type_of(first))
        self.emit(AssignStmt(result, first))
        self.goto(end)
        self.place(else_label)
        self.emit(AssignStmt(result, self.rvalue(node.child_by_field_name("alternative"))))
        self.place(end)
        return result


# --- Entry points ---------------------------------------------------------------


def lower_method(source: Union[str, bytes], class_name: str, method_name: str) -> MethodBody:
    """Parse ``source`` and lower ``class_name.method_name``."""
    tree, source_bytes = parse_java(source)
    node = find_method(tree.root_node, source_bytes, class_name, method_name)
    return MethodLowering(class_name, node, source_bytes).lower()


def load_method(path: Union[str, Path], class_name: str, method_name: str) -> MethodBody:
    """Read a ``.java`` file and lower one of its methods."""
    path = Path(path)
    try:
        source = path.read_bytes()
    except OSError as e:
        raise SourceParseError(f"cannot read {path}: {e}") from e
    logger.debug("parsing {}", path)
    return lower_method(source, class_name, method_name)
