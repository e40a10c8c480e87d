import pytest

from moonwalk.errors import IndexingError, LuaError, LuaTypeError
from moonwalk.interpreter import Interpreter


def run(source):
    interp = Interpreter()
    interp.run(source)
    return interp


def output(capsys):
    return capsys.readouterr().out.strip().split('\n')


def test_three_level_index_chain(capsys):
    run('local base = {greet = function() return "hello" end, n = 1}\n'
        'local middle = setmetatable({}, {__index = base})\n'
        'local top = setmetatable({}, {__index = middle})\n'
        'local obj = setmetatable({}, {__index = top})\n'
        'print(obj.greet(), obj.n, obj.missing, rawget(obj, "n"))')
    assert output(capsys) == ['hello\t1\tnil\tnil']


def test_index_function_receives_table_and_key(capsys):
    run('local seen\n'
        'local t = setmetatable({}, {__index = function(tbl, key) seen = tbl return key .. "?" end})\n'
        'print(t.what, seen == t)')
    assert output(capsys) == ['what?\ttrue']


def test_newindex_only_for_absent_keys(capsys):
    run('local store = {}\n'
        'local t = setmetatable({present = 1}, {__newindex = store})\n'
        't.present = 2\n'
        't.absent = 3\n'
        'print(rawget(t, "present"), rawget(t, "absent"), store.absent)')
    assert output(capsys) == ['2\tnil\t3']


def test_call_metamethod_receives_object_first(capsys):
    run('local obj = setmetatable({tag = "me"}, {__call = function(self, a, b) return self.tag, a + b end})\n'
        'print(obj(1, 2))')
    assert output(capsys) == ['me\t3']


def test_arithmetic_falls_back_to_right_operand(capsys):
    run('local mt = {__add = function(a, b) return "added" end,\n'
        '            __concat = function(a, b) return "joined" end,\n'
        '            __unm = function(a) return "negated" end}\n'
        'local v = setmetatable({}, mt)\n'
        'print(1 + v, v + 1, "x" .. v, -v)')
    assert output(capsys) == ['added\tadded\tjoined\tnegated']


def test_comparison_metamethods(capsys):
    run('local mt = {__lt = function(a, b) return a.v < b.v end,\n'
        '            __le = function(a, b) return a.v <= b.v end}\n'
        'local a = setmetatable({v = 1}, mt)\n'
        'local b = setmetatable({v = 1}, mt)\n'
        'print(a < b, a <= b, a > b, a >= b, a == b)')
    assert output(capsys) == ['false\ttrue\tfalse\ttrue\tfalse']


def test_tostring_and_name(capsys):
    run('local p = setmetatable({}, {__tostring = function() return "point" end})\n'
        'local named = setmetatable({}, {__name = "Thing"})\n'
        'print(p, tostring(named):sub(1, 6))')
    assert output(capsys) == ['point\tThing:']


def test_pairs_metamethod(capsys):
    run('local t = setmetatable({}, {__pairs = function(t)\n'
        '  local done = false\n'
        '  return function() if done then return nil end done = true return "k", "v" end, t, nil\n'
        'end})\n'
        'for k, v in pairs(t) do print(k, v) end')
    assert output(capsys) == ['k\tv']


def test_protected_metatable(capsys):
    run('local t = setmetatable({}, {__metatable = "locked"})\n'
        'print(getmetatable(t))\n'
        'print(pcall(setmetatable, t, {}))')
    assert output(capsys) == ['locked', 'false\tcannot change a protected metatable']


def test_string_methods_through_shared_metatable(capsys):
    run('local s = "Hello"\n'
        'print(s:upper(), s:len(), ("abc"):rep(2, "-"), s:sub(2, -2))')
    assert output(capsys) == ['HELLO\t5\tabc-abc\tell']


def test_index_loop_is_reported():
    with pytest.raises(IndexingError, match="'__index' chain too long"):
        run('local t = {}\n'
            'setmetatable(t, {__index = t})\n'
            'local x = t.missing')


def test_indexing_non_table_without_metamethod():
    with pytest.raises(IndexingError, match='attempt to index a number value'):
        run('local n = 5\nlocal x = n.field')


def test_concatenating_table_without_metamethod():
    with pytest.raises(LuaTypeError, match='attempt to concatenate a table value'):
        run('local x = "a" .. {}')


def test_tostring_must_return_string():
    with pytest.raises(LuaError, match="'__tostring' must return a string"):
        run('print(setmetatable({}, {__tostring = function() return {} end}))')
