from pathlib import Path

import pytest

from moonwalk.errors import ModuleLoadError, ModuleNotFound
from moonwalk.interpreter import Interpreter
from moonwalk.module_loader import ModuleLoader

MODULES = Path(__file__).parent / 'programs' / 'modules'


def make_interpreter():
    return Interpreter(search_paths=[str(MODULES)])


def output(capsys):
    return capsys.readouterr().out.strip().split('\n')


def test_require_caches_result_and_runs_body_once(capsys):
    interp = make_interpreter()
    interp.run('local a = require("counter")\n'
               'local b = require("counter")\n'
               'print(a == b, loads, a.value())')
    assert output(capsys) == ['true\t1\t1']
    assert interp.loader.is_cached('counter')
    assert interp.loader.cached_count() == 1


def test_clear_cache_reloads(capsys):
    interp = make_interpreter()
    interp.run('require("counter")')
    interp.loader.clear_cache()
    interp.run('require("counter")\nprint(loads)')
    assert output(capsys) == ['2']


def test_circular_require_gets_placeholder(capsys):
    interp = make_interpreter()
    interp.run('local a = require("cycle_a")\n'
               'print(a.name, a.peer, a.saw)\n'
               'print(require("cycle_b").name)')
    assert output(capsys) == ['a\tb\ttable', 'b']
    assert not interp.loader.is_loading('cycle_a')


def test_module_sees_globals_but_not_requirer_locals(capsys):
    make_interpreter().run('local secret = 1\nprint(require("hidden"))')
    assert output(capsys) == ['nil']


def test_exports_binding_is_used_without_return(capsys):
    make_interpreter().run('print(require("exports_only").answer)')
    assert output(capsys) == ['42']


def test_global_exports_does_not_leak_into_next_module(capsys):
    interp = make_interpreter()
    interp.run('local a = require("setter")\n'
               'local b = require("blank")\n'
               'print(a.tag, b == a, b, exports)')
    assert output(capsys) == ['setter\tfalse\tnil\tnil']


def test_module_without_result_is_nil_and_cached(capsys):
    interp = make_interpreter()
    interp.run('print(require("nothing"), nothing_loaded)')
    assert output(capsys) == ['nil\ttrue']
    assert interp.loader.is_cached('nothing')


def test_module_receives_name_and_path(capsys):
    make_interpreter().run('print(require("echo_name"))')
    assert output(capsys) == ['echo_name']


def test_dotted_names_map_to_directories(capsys):
    make_interpreter().run('local strings = require("util.strings")\n'
                           'print(strings.shout("hey"))')
    assert output(capsys) == ['HEY!']


def test_missing_module_lists_candidates():
    interp = make_interpreter()
    with pytest.raises(ModuleNotFound) as info:
        interp.run('require("missing.mod")')
    message = str(info.value)
    assert "module 'missing.mod' not found" in message
    assert str(Path('missing') / 'mod.lua') in message


def test_syntax_error_in_module():
    interp = make_interpreter()
    with pytest.raises(ModuleLoadError, match="error loading module 'broken'"):
        interp.run('require("broken")')
    assert not interp.loader.is_cached('broken')
    assert not interp.loader.is_loading('broken')


def test_failing_module_is_not_cached(capsys):
    interp = make_interpreter()
    interp.run('print(pcall(require, "failing"))')
    assert output(capsys) == ['false\tfail while loading']
    assert not interp.loader.is_cached('failing')
    assert not interp.loader.is_loading('failing')


def test_search_paths_are_tried_in_order(tmp_path, capsys):
    first = tmp_path / 'first'
    second = tmp_path / 'second'
    first.mkdir()
    second.mkdir()
    (first / 'shared.lua').write_text('return "from first"', encoding='utf-8')
    (second / 'shared.lua').write_text('return "from second"', encoding='utf-8')
    (second / 'only_second.lua').write_text('return "only second"', encoding='utf-8')

    interp = Interpreter(search_paths=[])
    interp.add_module_search_path(first)
    interp.add_module_search_path(second)
    interp.add_module_search_path(first)
    assert interp.loader.search_paths == [str(first), str(second)]
    interp.run('print(require("shared"), require("only_second"))')
    assert output(capsys) == ['from first\tonly second']


def test_resolve_and_candidates():
    loader = ModuleLoader(None, [str(MODULES), 'elsewhere'])
    assert loader.candidates('a.b') == [MODULES / 'a' / 'b.lua', Path('elsewhere') / 'a' / 'b.lua']
    assert loader.resolve('counter') == MODULES / 'counter.lua'
    assert loader.resolve('nope') is None
