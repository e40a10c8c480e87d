from typing import Any, List

from ..builtin_function import BuiltinFunction
from ..coroutines import Coroutine
from ..types import LuaTable, type_name
from .args import arg, arg_error


def populate_coroutine_library(interp) -> LuaTable:
    scheduler = interp.scheduler
    lib = LuaTable()

    def check_coroutine(args: List[Any], fname: str) -> Coroutine:
        value = arg(args, 1)
        if not isinstance(value, Coroutine):
            raise arg_error(1, fname, f"coroutine expected, got {type_name(value)}")
        return value

    def co_create(args: List[Any]) -> Any:
        return [scheduler.create(args[0])]

    def co_resume(args: List[Any]) -> Any:
        co = check_coroutine(args, 'resume')
        ok, values = scheduler.resume(co, args[1:])
        return [ok] + values

    def co_yield(args: List[Any]) -> Any:
        return (yield from scheduler.yield_values(args))

    def co_status(args: List[Any]) -> Any:
        return [scheduler.status(check_coroutine(args, 'status'))]

    def co_wrap(args: List[Any]) -> Any:
        return [scheduler.wrap(args[0])]

    def co_running(args: List[Any]) -> Any:
        co = scheduler.running()
        return [co, co is None]

    def co_isyieldable(args: List[Any]) -> Any:
        return [scheduler.is_yieldable()]

    def co_close(args: List[Any]) -> Any:
        return scheduler.close(check_coroutine(args, 'close'))

    lib.set('create', BuiltinFunction('create', 1, co_create))
    lib.set('resume', BuiltinFunction('resume', 1, co_resume))
    lib.set('yield', BuiltinFunction('yield', 0, co_yield))
    lib.set('status', BuiltinFunction('status', 1, co_status))
    lib.set('wrap', BuiltinFunction('wrap', 1, co_wrap))
    lib.set('running', BuiltinFunction('running', 0, co_running))
    lib.set('isyieldable', BuiltinFunction('isyieldable', 0, co_isyieldable))
    lib.set('close', BuiltinFunction('close', 1, co_close))
    return lib
