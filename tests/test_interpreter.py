import pytest

from moonwalk.errors import (
    ArityMismatch, BreakOutsideLoop, CallError, DivisionByZero, IndexingError,
    LuaError, LuaTypeError, StackOverflow, UndefinedLabel, UndefinedVariable,
)
from moonwalk.interpreter import Interpreter, run_program
from moonwalk.types import LuaFunction, LuaTable


def run(source, **options):
    interp = Interpreter(**options)
    interp.run(source)
    return interp


def output(capsys):
    return capsys.readouterr().out.strip().split('\n')


def test_short_circuit_skips_right_operand(capsys):
    run('local calls = 0\n'
        'local function f() calls = calls + 1 return true end\n'
        'local a = false and f()\n'
        'local b = true or f()\n'
        'local c = nil and f()\n'
        'local d = true and f()\n'
        'print(calls, a, b, c, d)')
    assert output(capsys) == ['1\tfalse\ttrue\tnil\ttrue']


def test_closure_counters_are_independent(capsys):
    run('local function make()\n'
        '  local n = 0\n'
        '  return function() n = n + 1 return n end\n'
        'end\n'
        'local a, b = make(), make()\n'
        'a() a() b()\n'
        'print(a(), b())')
    assert output(capsys) == ['3\t2']


def test_closure_mutation_is_visible_to_defining_scope(capsys):
    run('local count = 0\n'
        'local function bump() count = count + 1 end\n'
        'bump() bump()\n'
        'print(count)')
    assert output(capsys) == ['2']


def test_globals_are_not_captured(capsys):
    run('function get() return value end\n'
        'value = "late"\n'
        'print(get())')
    assert output(capsys) == ['late']


def test_multiple_assignment_evaluates_before_storing(capsys):
    run('local a, b = 1, 2\n'
        'a, b = b, a\n'
        'local t = {}\n'
        'local i = 1\n'
        'i, t[i] = i + 1, "x"\n'
        'print(a, b, i, t[1], t[2])')
    assert output(capsys) == ['2\t1\t2\tx\tnil']


def test_loops(capsys):
    run('local out = {}\n'
        'for i = 10, 1, -3 do out[#out + 1] = i end\n'
        'print(table.concat(out, " "))\n'
        'local n = 0\n'
        'while true do n = n + 1 if n == 4 then break end end\n'
        'print(n)\n'
        'local i = 0\n'
        'repeat local j = i; i = i + 1 until j >= 2\n'
        'print(i)\n'
        'local seen = 0\n'
        'for _, v in ipairs({1, 2, nil, 4}) do seen = seen + v end\n'
        'print(seen)')
    assert output(capsys) == ['10 7 4 1', '4', '3', '3']


def test_numeric_for_evaluates_bounds_once(capsys):
    run('local calls = 0\n'
        'local function limit() calls = calls + 1 return 3 end\n'
        'local sum = 0\n'
        'for i = 1, limit() do sum = sum + i end\n'
        'print(sum, calls)')
    assert output(capsys) == ['6\t1']


def test_for_step_zero_is_an_error():
    with pytest.raises(LuaError, match="'for' step is zero"):
        run('for i = 1, 2, 0 do end')


def test_generic_for_with_pairs(capsys):
    run('local t = {a = 1, b = 2, 10}\n'
        'local total = 0\n'
        'for k, v in pairs(t) do total = total + v end\n'
        'print(total)')
    assert output(capsys) == ['13']


def test_method_call_evaluates_object_once(capsys):
    run('local n = 0\n'
        'local obj = {v = 7}\n'
        'function obj:get() return self.v end\n'
        'local function make() n = n + 1 return obj end\n'
        'print(make():get(), n)')
    assert output(capsys) == ['7\t1']


def test_parenthesised_call_truncates(capsys):
    run('local function two() return 1, 2 end\n'
        'print((two()))\n'
        'print(two(), "end")')
    assert output(capsys) == ['1', '1\tend']


def test_missing_parameters_default_to_nil(capsys):
    run('local function f(a, b, c) return c end\n'
        'print(f(1, 2), f(1, 2, 3, 4))')
    assert output(capsys) == ['nil\t3']


def test_tail_calls_do_not_grow_the_stack(capsys):
    # depth limit of 50 against 100000 calls; the million-step run is marked slow below
    run('local function countdown(n)\n'
        '  if n == 0 then return "done" end\n'
        '  return countdown(n - 1)\n'
        'end\n'
        'print(countdown(100000))', max_call_depth=50)
    assert output(capsys) == ['done']


@pytest.mark.slow
def test_tail_call_countdown_from_one_million(capsys):
    run('local function countdown(n)\n'
        '  if n == 0 then return "done" end\n'
        '  return countdown(n - 1)\n'
        'end\n'
        'print(countdown(1000000))', max_call_depth=50)
    assert output(capsys) == ['done']


def test_mutual_tail_recursion(capsys):
    run('local is_even, is_odd\n'
        'function is_even(n) if n == 0 then return true end return is_odd(n - 1) end\n'
        'function is_odd(n) if n == 0 then return false end return is_even(n - 1) end\n'
        'print(is_even(5001))', max_call_depth=20)
    assert output(capsys) == ['false']


def test_non_tail_recursion_overflows():
    with pytest.raises(StackOverflow, match='stack overflow'):
        run('local function depth(n)\n'
            '  if n == 0 then return 0 end\n'
            '  return 1 + depth(n - 1)\n'
            'end\n'
            'print(depth(100000))')


def test_stack_overflow_is_catchable(capsys):
    run('local function depth(n) return 1 + depth(n + 1) end\n'
        'local ok, err = pcall(depth, 1)\n'
        'print(ok, err)', max_call_depth=30)
    assert output(capsys) == ['false\tmain:1: stack overflow']


def test_recursion_within_limit(capsys):
    run('local function depth(n)\n'
        '  if n == 0 then return 0 end\n'
        '  return 1 + depth(n - 1)\n'
        'end\n'
        'print(depth(150))')
    assert output(capsys) == ['150']


def test_break_outside_loop():
    with pytest.raises(BreakOutsideLoop, match='main:2: break outside a loop'):
        run('local x = 1\nbreak')


def test_break_inside_function_inside_loop():
    with pytest.raises(BreakOutsideLoop):
        run('for i = 1, 2 do\n'
            '  local f = function() break end\n'
            '  f()\n'
            'end')


def test_goto_to_missing_label():
    with pytest.raises(UndefinedLabel, match="no visible label 'nowhere'"):
        run('goto nowhere')


def test_goto_cannot_jump_into_nested_block():
    with pytest.raises(UndefinedLabel):
        run('goto inner\ndo ::inner:: end')


def test_goto_does_not_leave_its_block():
    with pytest.raises(UndefinedLabel, match="main:1: no visible label 'L'"):
        run('do goto L end ::L:: print("jumped")')
    with pytest.raises(UndefinedLabel):
        run('for i = 1, 2 do\n'
            '  if i == 1 then goto continue end\n'
            '  ::continue::\n'
            'end')


def test_goto_within_its_block(capsys):
    run('local n = 0\n'
        'do\n'
        '  goto skip\n'
        '  n = 1\n'
        '  ::skip::\n'
        '  n = n + 10\n'
        'end\n'
        'print(n)')
    assert output(capsys) == ['10']


def test_runtime_errors_carry_position():
    with pytest.raises(IndexingError) as info:
        run('local x = nil\nlocal y = x.field')
    assert str(info.value) == "main:2: attempt to index a nil value (local 'x')"

    with pytest.raises(CallError, match=r"main:2: attempt to call a nil value \(field 'missing'\)"):
        run('local t = {}\nt.missing()')

    with pytest.raises(DivisionByZero, match='main:1: attempt to divide by zero'):
        run('local z = 1 / 0')

    with pytest.raises(LuaTypeError, match='attempt to perform arithmetic on a table value'):
        run('local z = {} + 1')

    with pytest.raises(LuaTypeError, match='attempt to compare number with string'):
        run('local z = 1 < "2"')


def test_native_arity_is_checked():
    with pytest.raises(ArityMismatch, match="bad argument #2 to 'rep'"):
        run('string.rep("x")')


def test_strict_globals():
    with pytest.raises(UndefinedVariable, match="undefined variable 'nope'"):
        run('print(nope)', strict_globals=True)
    with pytest.raises(UndefinedVariable, match="assignment to undeclared variable 'x'"):
        run('x = 1', strict_globals=True)


def test_undefined_global_reads_nil(capsys):
    run('print(nope)')
    assert output(capsys) == ['nil']


def test_arithmetic_and_coercions(capsys):
    run('print(7 // 2, -7 % 3, 2 ^ 10, 10 / 4)\n'
        'print(5 & 3, 5 | 3, 5 ~ 3, 1 << 4, ~0)\n'
        'print("10" + 5, 1 .. 2, 0.1 + 0.2 == 0.3)\n'
        'print(1 == 1.0, "1" == 1, #"hello")')
    assert output(capsys) == [
        '3\t2\t1024\t2.5',
        '1\t7\t6\t16\t-1',
        '15\t12\tfalse',
        'true\tfalse\t5',
    ]


def test_tables_and_length(capsys):
    run('local t = {1, 2, 3, [10] = "ten", name = "t"}\n'
        't[4] = 4\n'
        't[2] = nil\n'
        'print(#"abc", t[10], t.name, t[4])\n'
        'local bools = {}\n'
        'bools[true] = "yes"\n'
        'bools[1] = "one"\n'
        'print(bools[true], bools[1])')
    assert output(capsys) == ['3\tten\tt\t4', 'yes\tone']


def test_length_follows_writes_and_removals():
    t = LuaTable.from_list([1.0, 2.0, 3.0])
    assert t.length() == 3.0
    t.set(4, 'four')
    t.set(6, 'six')
    assert t.length() == 4.0
    t.set(5, 'five')
    assert t.length() == 6.0
    t.set(2, None)
    assert t.length() == 1.0
    t.set(2, 'two')
    assert t.length() == 6.0
    t.set(1.5, 'half')
    t.set(0, 'zero')
    assert t.length() == 6.0


def test_appending_through_length(capsys):
    run('local t = {}\n'
        'for i = 1, 20000 do t[#t + 1] = i end\n'
        'for i = 1, 1000 do table.insert(t, i) end\n'
        'print(#t, t[20000], t[#t])')
    assert output(capsys) == ['21000\t20000\t1000']


def test_nil_table_key_is_an_error():
    with pytest.raises(IndexingError, match='table index is nil'):
        run('local t = {}\nt[nil] = 1')


def test_host_call_and_registration(capsys):
    interp = Interpreter()
    interp.register('double', lambda args: [args[0] * 2], 1)
    interp.run('function add(a, b) return a + b end\nprint(double(21))')
    assert output(capsys) == ['42']
    assert interp.call(interp.lookup('add'), [2, 3]) == [5.0]
    assert isinstance(interp.lookup('add'), LuaFunction)
    with pytest.raises(ArityMismatch, match="bad argument #1 to 'double'"):
        interp.run('double()')


def test_host_define_and_update(capsys):
    interp = Interpreter(strict_globals=True)
    interp.define('greeting', 'hi')
    interp.update('greeting', 'hello')
    interp.run('print(greeting)')
    assert output(capsys) == ['hello']
    with pytest.raises(UndefinedVariable):
        interp.update('undeclared', 1)


def test_run_returns_chunk_values():
    interp = Interpreter()
    assert interp.run('return 1, "two", nil') == [1.0, 'two', None]
    assert interp.run('local x = 1') == []
    assert run_program('return 6 * 7') == [42.0]


def test_chunk_varargs():
    interp = Interpreter()
    assert interp.run('return ...', args=['a', 2]) == ['a', 2.0]


def test_vararg_outside_vararg_function():
    with pytest.raises(LuaError, match="cannot use '...' outside a vararg function"):
        run('local function f() return ... end\nf()')


def test_collect_garbage_follows_cycles():
    interp = Interpreter()
    interp.run('a = {}\n'
               'b = {other = a}\n'
               'a.other = b\n'
               'setmetatable(a, a)\n'
               'local hidden = {}\n'
               'keep = function() return hidden end')
    reachable = interp.collect_garbage()
    ids = {id(obj) for obj in reachable}
    assert id(interp.lookup('a')) in ids
    assert id(interp.lookup('b')) in ids
    hidden = interp.call(interp.lookup('keep'))[0]
    assert isinstance(hidden, LuaTable)
    assert id(hidden) in ids


def test_collectgarbage_count(capsys):
    run('print(collectgarbage("count") > 0, collectgarbage())')
    assert output(capsys) == ['true\t0']


def test_debug_log(tmp_path):
    debug_file = tmp_path / 'debug.txt'
    with Interpreter(debug_level=3, debug_file=str(debug_file)) as interp:
        interp.run('local function sq(x) return x * x end\n'
                   'for i = 1, 2 do sq(i) end')
    log = debug_file.read_text(encoding='utf-8')
    assert 'define function sq' in log
    assert 'call sq with 1 args' in log
    assert 'for i = 2' in log
