import pytest

from moonwalk.ast import (
    Assign, BinaryOp, Block, Call, ExprStmt, FunctionExpr, Ident, Index,
    LabelStmt, Literal, LocalStmt, MethodCall, UnaryOp,
)
from moonwalk.errors import LuaSyntaxError
from moonwalk.parser import parse_program


def test_operator_precedence():
    block = parse_program('local x = 1 + 2 * 3')
    assert block.statements == [
        LocalStmt(['x'], [BinaryOp('+', Literal(1.0), BinaryOp('*', Literal(2.0), Literal(3.0)))]),
    ]


def test_concat_and_power_are_right_associative():
    block = parse_program('x = a .. b .. c\ny = -2 ^ 2')
    concat, power = block.statements
    assert concat.values[0] == BinaryOp('..', Ident('a'), BinaryOp('..', Ident('b'), Ident('c')))
    assert power.values[0] == UnaryOp('-', BinaryOp('^', Literal(2.0), Literal(2.0)))


def test_statement_lines_are_recorded():
    block = parse_program('local a = 1\n\nprint(a)')
    assert [stmt.line for stmt in block.statements] == [1, 3]


def test_method_definition_adds_self():
    block = parse_program('function obj.inner:m(a) return a end')
    stmt = block.statements[0]
    assert isinstance(stmt, Assign)
    assert stmt.targets == [Index(Index(Ident('obj'), Literal('inner')), Literal('m'))]
    func = stmt.values[0]
    assert isinstance(func, FunctionExpr)
    assert func.params == ['self', 'a']
    assert func.name == 'obj.inner:m'


def test_call_forms():
    block = parse_program('f "x"\ng {1}\nobj:m(1, 2)')
    first, second, third = block.statements
    assert first == ExprStmt(Call(Ident('f'), [Literal('x')]))
    assert isinstance(second.expr.args[0].fields[0][1], Literal)
    assert third == ExprStmt(MethodCall(Ident('obj'), 'm', [Literal(1.0), Literal(2.0)]))


def test_string_literals():
    block = parse_program('a = "tab\\tA\\65"\nb = [[\nlong]]\nc = [==[x]]y]==]\nd = 0x10')
    values = [stmt.values[0].value for stmt in block.statements]
    assert values == ['tab\tAA', 'long', 'x]]y', 16.0]


def test_free_names_include_nested_functions():
    block = parse_program('local f = function(a) return function() return a + b end end')
    func = block.statements[0].values[0]
    assert {'a', 'b'} <= func.free_names


def test_labels_are_indexed_per_block():
    block = parse_program('::top::\nx = 1\n::bottom::')
    assert block.labels == {'top': 0, 'bottom': 2}
    assert isinstance(block.statements[2], LabelStmt)


def test_duplicate_label_is_rejected():
    with pytest.raises(LuaSyntaxError, match="label 'a' already defined"):
        parse_program('::a::\n::a::')


def test_expression_is_not_a_statement():
    with pytest.raises(LuaSyntaxError, match='expression is not a statement'):
        parse_program('x')


def test_cannot_assign_to_call():
    with pytest.raises(LuaSyntaxError, match='cannot assign'):
        parse_program('f() = 1')


def test_syntax_error_carries_position():
    with pytest.raises(LuaSyntaxError) as info:
        parse_program('local x = 1\nx = = 2', 'chunk.lua')
    assert info.value.line == 2
    assert info.value.chunk == 'chunk.lua'
    assert str(info.value).startswith('chunk.lua:2: syntax error')


def test_shebang_is_skipped():
    block = parse_program('#!/usr/bin/env moonwalk\nprint(1)')
    assert isinstance(block, Block)
    assert block.statements[0].line == 2
