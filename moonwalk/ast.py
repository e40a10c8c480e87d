"""Abstract Syntax Tree (AST) definitions for the moonwalk language.

The AST classes defined in this module represent the syntactic structure
of parsed programs. The parser produces them and the interpreter walks
them; the interpreter never looks at source text. Each node corresponds
to a construct in the grammar. Every node carries the source line it
started on (``line``), which the interpreter uses for error positions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Any, FrozenSet


@dataclass
class Node:
    """Base class for all AST nodes."""
    # not a dataclass field: set by the parser after construction
    line = 0


@dataclass
class Block(Node):
    statements: List[Node]
    # label name -> index into statements, filled in by the parser
    labels: dict = field(default_factory=dict, repr=False, compare=False)


# Statements

@dataclass
class LocalStmt(Node):
    names: List[str]
    values: List[Node]


@dataclass
class Assign(Node):
    targets: List[Node]  # Ident or Index
    values: List[Node]


@dataclass
class ExprStmt(Node):
    expr: Node  # Call or MethodCall


@dataclass
class DoStmt(Node):
    body: Block


@dataclass
class WhileStmt(Node):
    condition: Node
    body: Block


@dataclass
class RepeatStmt(Node):
    body: Block
    condition: Node


@dataclass
class IfStmt(Node):
    clauses: List[Tuple[Node, Block]]  # if + elseif branches, in order
    else_block: Optional[Block]


@dataclass
class NumericFor(Node):
    var: str
    start: Node
    stop: Node
    step: Optional[Node]
    body: Block


@dataclass
class GenericFor(Node):
    names: List[str]
    exprs: List[Node]
    body: Block


@dataclass
class LocalFunction(Node):
    name: str
    func: 'FunctionExpr'


@dataclass
class ReturnStmt(Node):
    values: List[Node]


@dataclass
class BreakStmt(Node):
    pass


@dataclass
class GotoStmt(Node):
    label: str


@dataclass
class LabelStmt(Node):
    name: str


# Expressions

@dataclass
class Literal(Node):
    value: Any  # None, bool, float or str


@dataclass
class Vararg(Node):
    pass


@dataclass
class Ident(Node):
    name: str


@dataclass
class Index(Node):
    target: Node
    index: Node


@dataclass
class Call(Node):
    func: Node
    args: List[Node]


@dataclass
class MethodCall(Node):
    target: Node
    name: str
    args: List[Node]


@dataclass
class Paren(Node):
    expr: Node


@dataclass
class TableLit(Node):
    # (key, value); key is None for positional entries
    fields: List[Tuple[Optional[Node], Node]]


@dataclass
class FunctionExpr(Node):
    params: List[str]
    is_vararg: bool
    body: Block
    name: str = 'anonymous'
    # identifiers referenced anywhere in the body; computed by the parser
    free_names: FrozenSet[str] = field(default=frozenset(), repr=False, compare=False)


@dataclass
class BinaryOp(Node):
    op: str
    left: Node
    right: Node


@dataclass
class UnaryOp(Node):
    op: str
    operand: Node


MULTI_VALUE_NODES = (Call, MethodCall, Vararg)
