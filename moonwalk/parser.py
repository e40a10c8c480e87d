"""Parser for the moonwalk language.

The source text is fed into a Lark LALR parser configured with a grammar
for the language, and the resulting parse tree is transformed into the
abstract syntax tree defined in :mod:`moonwalk.ast` by a custom
transformer. The interpreter only ever sees the AST.

Two details of the language do not fit a context-free grammar directly
and are settled in the transformer instead:

* A statement that starts with an expression is either an assignment
  (the expression list is followed by ``=``) or a call. The grammar
  accepts any suffixed expression in both places; the transformer rejects
  targets that cannot be assigned to and expression statements that are
  not calls.
* ``goto`` needs to know where each label sits in its block, so blocks
  record a label -> statement index map.

The `parse_program` function is the public entry point and returns the
chunk's top-level `Block`.
"""

from __future__ import annotations

import dataclasses
import re

from lark import Lark, Transformer, v_args
from lark.exceptions import UnexpectedInput, VisitError

from .errors import LuaSyntaxError
from .ast import (
    Node, Block, LocalStmt, Assign, ExprStmt, DoStmt, WhileStmt, RepeatStmt,
    IfStmt, NumericFor, GenericFor, LocalFunction, ReturnStmt, BreakStmt,
    GotoStmt, LabelStmt, Literal, Vararg, Ident, Index, Call, MethodCall,
    Paren, TableLit, FunctionExpr, BinaryOp, UnaryOp,
)


LUA_GRAMMAR = r"""
    start: block

    block: statement* retstat?
    retstat: "return" [explist] ";"?

    ?statement: ";"                                            -> empty_stat
              | varlist "=" explist                            -> assign_stat
              | suffixedexp                                    -> call_stat
              | "::" NAME "::"                                 -> label_stat
              | "break"                                        -> break_stat
              | "goto" NAME                                    -> goto_stat
              | "do" block "end"                               -> do_stat
              | "while" exp "do" block "end"                   -> while_stat
              | "repeat" block "until" exp                     -> repeat_stat
              | "if" exp "then" block elseif* else_part? "end" -> if_stat
              | "for" NAME "=" exp "," exp ("," exp)? "do" block "end" -> numeric_for
              | "for" namelist "in" explist "do" block "end"   -> generic_for
              | "function" funcname funcbody                   -> function_stat
              | "local" "function" NAME funcbody               -> local_function
              | "local" namelist ("=" explist)?                -> local_stat

    elseif: "elseif" exp "then" block
    else_part: "else" block

    varlist: suffixedexp ("," suffixedexp)*
    namelist: NAME ("," NAME)*
    explist: exp ("," exp)*

    funcname: NAME ("." NAME)* method_name?
    method_name: ":" NAME
    funcbody: "(" [parlist] ")" block "end"
    parlist: NAME ("," NAME)* ("," VARARG)?
           | VARARG

    // Expressions, lowest precedence first
    ?exp: or_exp
    ?or_exp: and_exp | or_exp "or" and_exp -> or_op
    ?and_exp: comparison | and_exp "and" comparison -> and_op
    ?comparison: bor_exp
               | comparison "<" bor_exp  -> lt
               | comparison ">" bor_exp  -> gt
               | comparison "<=" bor_exp -> le
               | comparison ">=" bor_exp -> ge
               | comparison "~=" bor_exp -> ne
               | comparison "==" bor_exp -> eq
    ?bor_exp: bxor_exp | bor_exp "|" bxor_exp -> bor
    ?bxor_exp: band_exp | bxor_exp "~" band_exp -> bxor
    ?band_exp: shift_exp | band_exp "&" shift_exp -> band
    ?shift_exp: concat_exp
              | shift_exp "<<" concat_exp -> shl
              | shift_exp ">>" concat_exp -> shr
    ?concat_exp: sum_exp | sum_exp ".." concat_exp -> concat
    ?sum_exp: product
            | sum_exp "+" product -> add
            | sum_exp "-" product -> sub
    ?product: unary
            | product "*" unary  -> mul
            | product "/" unary  -> div
            | product "//" unary -> idiv
            | product "%" unary  -> mod
    ?unary: power
          | "not" unary -> not_op
          | "-" unary   -> neg
          | "#" unary   -> len_op
          | "~" unary   -> bnot
    ?power: atom | atom "^" unary -> pow
    ?atom: "nil"                    -> nil_lit
         | "true"                   -> true_lit
         | "false"                  -> false_lit
         | NUMBER                   -> number
         | string
         | VARARG                   -> vararg
         | "function" funcbody      -> function_expr
         | tableconstructor
         | suffixedexp

    ?suffixedexp: primaryexp
                | suffixedexp "." NAME             -> field
                | suffixedexp "[" exp "]"          -> index
                | suffixedexp ":" NAME callargs    -> method_call
                | suffixedexp callargs             -> call
    ?primaryexp: NAME                              -> name
               | "(" exp ")"                       -> paren

    callargs: "(" [explist] ")"
            | tableconstructor
            | string

    string: STRING
    tableconstructor: "{" [fieldlist] "}"
    fieldlist: tablefield (("," | ";") tablefield)* ("," | ";")?
    tablefield: "[" exp "]" "=" exp -> keyed_field
         | NAME "=" exp        -> named_field
         | exp                 -> positional_field

    // Tokens
    VARARG: "..."
    NAME: /[A-Za-z_][A-Za-z0-9_]*/
    NUMBER: /0[xX][0-9a-fA-F]*(\.[0-9a-fA-F]*)?([pP][+-]?[0-9]+)?/
          | /[0-9]+(\.[0-9]*)?([eE][+-]?[0-9]+)?/
          | /\.[0-9]+([eE][+-]?[0-9]+)?/
    STRING: /"(?:[^"\\\n]|\\[\s\S])*"/
          | /'(?:[^'\\\n]|\\[\s\S])*'/
          | /\[\[[\s\S]*?\]\]/
          | /\[=\[[\s\S]*?\]=\]/
          | /\[==\[[\s\S]*?\]==\]/

    // Comments
    COMMENT: /--\[\[[\s\S]*?\]\]/
           | /--\[=\[[\s\S]*?\]=\]/
           | /--\[==\[[\s\S]*?\]==\]/
           | /--[^\n]*/
    %ignore COMMENT
    %import common.WS
    %ignore WS
"""


LUA_PARSER = Lark(
    LUA_GRAMMAR,
    parser='lalr',
    lexer='contextual',
    propagate_positions=True,
    maybe_placeholders=True,
)


_BINARY_OPS = {
    'or_op': 'or', 'and_op': 'and',
    'lt': '<', 'gt': '>', 'le': '<=', 'ge': '>=', 'ne': '~=', 'eq': '==',
    'bor': '|', 'bxor': '~', 'band': '&', 'shl': '<<', 'shr': '>>',
    'concat': '..', 'add': '+', 'sub': '-',
    'mul': '*', 'div': '/', 'idiv': '//', 'mod': '%', 'pow': '^',
}

_UNARY_OPS = {'not_op': 'not', 'neg': '-', 'len_op': '#', 'bnot': '~'}

_SIMPLE_ESCAPES = {
    'a': '\a', 'b': '\b', 'f': '\f', 'n': '\n', 'r': '\r', 't': '\t',
    'v': '\v', '\\': '\\', '"': '"', "'": "'", '\n': '\n',
}

_ESCAPE_RE = re.compile(r"\\(x[0-9a-fA-F]{2}|u\{[0-9a-fA-F]+\}|[0-9]{1,3}|z\s*|[\s\S])")


def _unescape(body: str) -> str:
    def replace(match: re.Match) -> str:
        esc = match.group(1)
        if esc[0] == 'x':
            return chr(int(esc[1:], 16))
        if esc[0] == 'u':
            return chr(int(esc[2:-1], 16))
        if esc[0].isdigit():
            code = int(esc)
            if code > 255:
                raise ValueError(f"decimal escape too large near '\\{esc}'")
            return chr(code)
        if esc[0] == 'z':
            return ''
        if esc in _SIMPLE_ESCAPES:
            return _SIMPLE_ESCAPES[esc]
        raise ValueError(f"invalid escape sequence '\\{esc}'")
    return _ESCAPE_RE.sub(replace, body)


def parse_string_token(raw: str) -> str:
    """Turn a STRING token (quotes or long brackets included) into its value."""
    if raw[0] in '"\'':
        return _unescape(raw[1:-1])
    # long bracket: [[...]], [=[...]=], ...
    level = raw.index('[', 1) - 1
    body = raw[level + 2:len(raw) - level - 2]
    # a newline right after the opening bracket is skipped
    if body.startswith('\r\n'):
        body = body[2:]
    elif body.startswith('\n'):
        body = body[1:]
    return body


def parse_number_token(raw: str) -> float:
    """Convert a NUMBER token to a float."""
    text = raw.lower()
    if text.startswith('0x'):
        if '.' in text or 'p' in text:
            if 'p' not in text:
                text += 'p0'
            return float.fromhex(text)
        return float(int(text, 16))
    return float(text)


def collect_names(node) -> set:
    """Collect every identifier referenced anywhere below `node`.

    Nested function literals contribute their own free names so that an
    enclosing closure captures what its inner closures will need.
    """
    names = set()
    stack = [node]
    while stack:
        current = stack.pop()
        if isinstance(current, Ident):
            names.add(current.name)
        elif isinstance(current, FunctionExpr):
            names.update(current.free_names)
        elif isinstance(current, Node):
            for f in dataclasses.fields(current):
                if f.name == 'labels':
                    continue
                stack.append(getattr(current, f.name))
        elif isinstance(current, (list, tuple)):
            stack.extend(current)
    return names


@v_args(meta=True)
class ASTTransformer(Transformer):
    """Transforms the raw parse tree into an AST."""

    def __init__(self, chunk: str = '?'):
        super().__init__()
        self.chunk = chunk

    def _at(self, node: Node, meta) -> Node:
        node.line = getattr(meta, 'line', 0)
        return node

    def _error(self, message: str, meta) -> LuaSyntaxError:
        return LuaSyntaxError(message, getattr(meta, 'line', 0), getattr(meta, 'column', 0), self.chunk)

    def start(self, meta, items):
        return items[0]

    def block(self, meta, items):
        statements = [item for item in items if item is not None]
        block = self._at(Block(statements), meta)
        for position, stmt in enumerate(statements):
            if isinstance(stmt, LabelStmt):
                if stmt.name in block.labels:
                    raise self._error(f"label '{stmt.name}' already defined", meta)
                block.labels[stmt.name] = position
        return block

    def retstat(self, meta, items):
        values = items[0] if items and items[0] is not None else []
        return self._at(ReturnStmt(values), meta)

    # Statements

    def empty_stat(self, meta, items):
        return None

    def assign_stat(self, meta, items):
        targets, values = items
        for target in targets:
            if not isinstance(target, (Ident, Index)):
                raise self._error('syntax error: cannot assign to this expression', meta)
        return self._at(Assign(targets, values), meta)

    def call_stat(self, meta, items):
        expr = items[0]
        if not isinstance(expr, (Call, MethodCall)):
            raise self._error('syntax error: expression is not a statement', meta)
        return self._at(ExprStmt(expr), meta)

    def label_stat(self, meta, items):
        return self._at(LabelStmt(str(items[0])), meta)

    def break_stat(self, meta, items):
        return self._at(BreakStmt(), meta)

    def goto_stat(self, meta, items):
        return self._at(GotoStmt(str(items[0])), meta)

    def do_stat(self, meta, items):
        return self._at(DoStmt(items[0]), meta)

    def while_stat(self, meta, items):
        return self._at(WhileStmt(items[0], items[1]), meta)

    def repeat_stat(self, meta, items):
        return self._at(RepeatStmt(items[0], items[1]), meta)

    def if_stat(self, meta, items):
        clauses = [(items[0], items[1])]
        else_block = None
        for item in items[2:]:
            if isinstance(item, Block):
                else_block = item
            else:
                clauses.append(item)
        return self._at(IfStmt(clauses, else_block), meta)

    def elseif(self, meta, items):
        return (items[0], items[1])

    def else_part(self, meta, items):
        return items[0]

    def numeric_for(self, meta, items):
        if len(items) == 5:
            name, start, stop, step, body = items
        else:
            name, start, stop, body = items
            step = None
        return self._at(NumericFor(str(name), start, stop, step, body), meta)

    def generic_for(self, meta, items):
        names, exprs, body = items
        return self._at(GenericFor(names, exprs, body), meta)

    def function_stat(self, meta, items):
        (path, method), func = items
        target = self._at(Ident(path[0]), meta)
        for key in path[1:]:
            target = self._at(Index(target, Literal(key)), meta)
        if method is not None:
            target = self._at(Index(target, Literal(method)), meta)
            func.params.insert(0, 'self')
        func.name = '.'.join(path) + (':' + method if method else '')
        return self._at(Assign([target], [func]), meta)

    def local_function(self, meta, items):
        name, func = items
        func.name = str(name)
        return self._at(LocalFunction(str(name), func), meta)

    def local_stat(self, meta, items):
        names = items[0]
        values = items[1] if len(items) > 1 else []
        return self._at(LocalStmt(names, values), meta)

    def varlist(self, meta, items):
        return list(items)

    def namelist(self, meta, items):
        return [str(item) for item in items]

    def explist(self, meta, items):
        return list(items)

    def funcname(self, meta, items):
        method = None
        if items and isinstance(items[-1], tuple):
            method = items[-1][1]
            items = items[:-1]
        return [str(item) for item in items], method

    def method_name(self, meta, items):
        return ('method', str(items[0]))

    def funcbody(self, meta, items):
        params, body = items
        names, is_vararg = params if params is not None else ([], False)
        func = self._at(FunctionExpr(list(names), is_vararg, body), meta)
        func.free_names = frozenset(collect_names(body))
        return func

    def parlist(self, meta, items):
        names = [str(item) for item in items if item.type == 'NAME']
        is_vararg = any(item.type == 'VARARG' for item in items)
        return names, is_vararg

    # Expressions

    def nil_lit(self, meta, items):
        return self._at(Literal(None), meta)

    def true_lit(self, meta, items):
        return self._at(Literal(True), meta)

    def false_lit(self, meta, items):
        return self._at(Literal(False), meta)

    def number(self, meta, items):
        return self._at(Literal(parse_number_token(str(items[0]))), meta)

    def string(self, meta, items):
        try:
            value = parse_string_token(str(items[0]))
        except ValueError as exc:
            raise self._error(str(exc), meta)
        return self._at(Literal(value), meta)

    def vararg(self, meta, items):
        return self._at(Vararg(), meta)

    def function_expr(self, meta, items):
        return items[0]

    def name(self, meta, items):
        return self._at(Ident(str(items[0])), meta)

    def paren(self, meta, items):
        return self._at(Paren(items[0]), meta)

    def field(self, meta, items):
        target, key = items
        return self._at(Index(target, Literal(str(key))), meta)

    def index(self, meta, items):
        return self._at(Index(items[0], items[1]), meta)

    def method_call(self, meta, items):
        target, name, args = items
        return self._at(MethodCall(target, str(name), args), meta)

    def call(self, meta, items):
        return self._at(Call(items[0], items[1]), meta)

    def callargs(self, meta, items):
        arg = items[0] if items else None
        if arg is None:
            return []
        if isinstance(arg, list):
            return arg
        return [arg]

    def tableconstructor(self, meta, items):
        fields = items[0] if items and items[0] is not None else []
        return self._at(TableLit(fields), meta)

    def fieldlist(self, meta, items):
        return list(items)

    def keyed_field(self, meta, items):
        return (items[0], items[1])

    def named_field(self, meta, items):
        return (Literal(str(items[0])), items[1])

    def positional_field(self, meta, items):
        return (None, items[0])

    # Operators share one shape, so they are dispatched by alias name
    def __default__(self, data, children, meta):
        if data in _BINARY_OPS:
            return self._at(BinaryOp(_BINARY_OPS[data], children[0], children[1]), meta)
        if data in _UNARY_OPS:
            return self._at(UnaryOp(_UNARY_OPS[data], children[0]), meta)
        return Transformer.__default__(self, data, children, meta)


def parse_program(source: str, chunk: str = '?') -> Block:
    """Parse source code into the chunk's top-level block.

    Syntax errors, including those detected while building the AST, are
    raised as `LuaSyntaxError` carrying the line and column.
    """
    if source.startswith('#'):
        # skip a shebang line but keep line numbers intact
        newline = source.find('\n')
        source = '' if newline < 0 else source[newline:]
    try:
        tree = LUA_PARSER.parse(source)
    except UnexpectedInput as exc:
        token = getattr(exc, 'token', None)
        near = f" near '{token}'" if token else ''
        raise LuaSyntaxError(f"syntax error{near}", exc.line, exc.column, chunk) from None
    try:
        return ASTTransformer(chunk).transform(tree)
    except VisitError as exc:
        if isinstance(exc.orig_exc, LuaSyntaxError):
            raise exc.orig_exc from None
        raise
