from pathlib import Path

from moonwalk.interpreter import parse_program, Interpreter

PROGRAMS = Path(__file__).parent / 'programs'


def run_program_file(name):
    source = (PROGRAMS / name).read_text(encoding='utf-8')
    ast = parse_program(source)
    interp = Interpreter()
    interp.run(ast)


def test_program_closures(capsys):
    run_program_file('closures.lua')
    out = capsys.readouterr().out.strip().split('\n')
    assert out == ['3\t1', '2', '5', '1\t2\t3']


def test_program_metatables(capsys):
    run_program_file('metatables.lua')
    out = capsys.readouterr().out.strip().split('\n')
    assert out == [
        '(4, 6)',
        'true\tfalse',
        'true\ttrue',
        '2\t25',
        '10',
        '42',
        'hi!',
    ]


def test_program_inheritance(capsys):
    run_program_file('inheritance.lua')
    out = capsys.readouterr().out.strip().split('\n')
    assert out == ['Rex says woof', 'Rex fetches', 'true\tnil']


def test_program_generators(capsys):
    run_program_file('generators.lua')
    out = capsys.readouterr().out.strip().split('\n')
    assert out == [
        'suspended',
        'true\titem1\tsuspended',
        'true\titem2\tsuspended',
        'true\titem3\tsuspended',
        'true\tdone\tdead',
        'false\tcannot resume dead coroutine',
        '1\t2',
    ]


def test_program_goto(capsys):
    run_program_file('goto.lua')
    out = capsys.readouterr().out.strip().split('\n')
    assert out == [
        'before 1', 'before 2', 'before 3',
        'n=0',
        "false\tmain:18: no visible label 'next' for goto",
        'done',
    ]


def test_program_errors(capsys):
    run_program_file('errors.lua')
    out = capsys.readouterr().out.strip().split('\n')
    assert out == [
        'false\tplain',
        'false\ttable\t7',
        'true\t7\t12',
        '2',
        "false\tcaught: main:7: attempt to index a nil value (local 't')",
        'false\tmain:9: attempt to divide by zero',
        'main:11: with level',
    ]


def test_program_varargs(capsys):
    run_program_file('varargs.lua')
    out = capsys.readouterr().out.strip().split('\n')
    assert out == [
        '0\t2\t3',
        '1\t2\t3',
        '1',
        '3\t1\t3\t4',
        'a\t2',
        '1\t2\t3',
        '3\t6',
    ]


def test_program_fib(capsys):
    run_program_file('fib.lua')
    out = capsys.readouterr().out.strip()
    assert out == '12586269025'
