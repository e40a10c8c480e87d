from typing import Any, List

from .. import metatables
from ..builtin_function import BuiltinFunction
from ..errors import LuaError, UserRaised
from ..types import LuaTable, is_truthy, str_to_number, type_name
from .args import arg, arg_error, check_integer, check_string, check_table, opt_integer


def populate_base_library(interp) -> LuaTable:
    """Build the global functions (print, pairs, pcall, require, ...)."""
    lib = LuaTable()

    def lua_print(args: List[Any]) -> Any:
        parts = []
        for value in args:
            parts.append((yield from metatables.tostring(interp, value)))
        print('\t'.join(parts))

    def lua_type(args: List[Any]) -> Any:
        return [type_name(args[0])]

    def lua_tostring(args: List[Any]) -> Any:
        return [(yield from metatables.tostring(interp, args[0]))]

    def lua_tonumber(args: List[Any]) -> Any:
        value = args[0]
        if arg(args, 2) is None:
            if type(value) is float:
                return [value]
            if isinstance(value, str):
                return [str_to_number(value)]
            return [None]
        base = check_integer(args, 2, 'tonumber')
        if not 2 <= base <= 36:
            raise arg_error(2, 'tonumber', 'base out of range')
        text = check_string(args, 1, 'tonumber').strip().lower()
        if not text or not all(c.isalnum() or c == '-' for c in text):
            return [None]
        try:
            return [float(int(text, base))]
        except ValueError:
            return [None]

    def lua_next(args: List[Any]) -> Any:
        table = check_table(args, 1, 'next')
        entry = table.next(arg(args, 2))
        if entry is None:
            return [None]
        return list(entry)

    next_builtin = BuiltinFunction('next', 1, lua_next)

    def lua_pairs(args: List[Any]) -> Any:
        value = args[0]
        handler = metatables.get_metamethod(interp, value, '__pairs')
        if handler is not None:
            return (yield from interp.invoke(handler, [value], 3))
        if not isinstance(value, LuaTable):
            raise arg_error(1, 'pairs', f"table expected, got {type_name(value)}")
        return [next_builtin, value, None]

    def ipairs_step(args: List[Any]) -> Any:
        table, i = args[0], args[1] + 1
        if isinstance(table, LuaTable) and table.metatable is None:
            value = table.get(i)
        else:
            value = yield from metatables.index(interp, table, i)
        if value is None:
            return [None]
        return [i, value]

    ipairs_builtin = BuiltinFunction('ipairs_iterator', 2, ipairs_step)

    def lua_ipairs(args: List[Any]) -> Any:
        return [ipairs_builtin, args[0], 0.0]

    def lua_select(args: List[Any]) -> Any:
        if args[0] == '#':
            return [float(len(args) - 1)]
        n = check_integer(args, 1, 'select')
        rest = args[1:]
        if n < 0:
            if -n > len(rest):
                raise arg_error(1, 'select', 'index out of range')
            return rest[len(rest) + n:]
        if n == 0:
            raise arg_error(1, 'select', 'index out of range')
        return rest[n - 1:]

    def lua_rawget(args: List[Any]) -> Any:
        return [check_table(args, 1, 'rawget').get(arg(args, 2))]

    def lua_rawset(args: List[Any]) -> Any:
        table = check_table(args, 1, 'rawset')
        table.set(args[1], args[2])
        return [table]

    def lua_rawequal(args: List[Any]) -> Any:
        return [metatables.raw_equal(args[0], args[1])]

    def lua_rawlen(args: List[Any]) -> Any:
        value = args[0]
        if isinstance(value, LuaTable):
            return [value.length()]
        if isinstance(value, str):
            return [float(len(value))]
        raise arg_error(1, 'rawlen', 'table or string expected')

    def lua_setmetatable(args: List[Any]) -> Any:
        table = check_table(args, 1, 'setmetatable')
        mt = arg(args, 2)
        if mt is not None and not isinstance(mt, LuaTable):
            raise arg_error(2, 'setmetatable', 'nil or table expected')
        if table.metatable is not None and table.metatable.get('__metatable') is not None:
            raise LuaError('cannot change a protected metatable')
        table.metatable = mt
        return [table]

    def lua_getmetatable(args: List[Any]) -> Any:
        mt = metatables.get_metatable(interp, arg(args, 1))
        if mt is None:
            return [None]
        protected = mt.get('__metatable')
        return [protected if protected is not None else mt]

    def lua_assert(args: List[Any]) -> Any:
        if is_truthy(args[0]):
            return args
        message = args[1] if len(args) > 1 else 'assertion failed!'
        raise UserRaised(message)

    def lua_error(args: List[Any]) -> Any:
        value = arg(args, 1)
        level = opt_integer(args, 2, 'error', 1)
        if isinstance(value, str) and level > 0:
            frames = interp.context.frames
            if level <= len(frames):
                frame = frames[-level]
                value = f"{frame.chunk}:{frame.line}: {value}"
        raise UserRaised(value)

    def lua_pcall(args: List[Any]) -> Any:
        try:
            results = yield from interp.invoke(args[0], args[1:])
        except LuaError as err:
            if interp.debug_level >= 2:
                interp.debug(f"pcall caught: {err}")
            return [False, err.value]
        return [True] + results

    def lua_xpcall(args: List[Any]) -> Any:
        handler = args[1]
        try:
            results = yield from interp.invoke(args[0], args[2:])
        except LuaError as err:
            if interp.debug_level >= 2:
                interp.debug(f"xpcall caught: {err}")
            handled = yield from interp.invoke(handler, [err.value], 1)
            return [False, handled[0]]
        return [True] + results

    def lua_require(args: List[Any]) -> Any:
        name = check_string(args, 1, 'require')
        return [(yield from interp.loader.require(name))]

    def lua_collectgarbage(args: List[Any]) -> Any:
        option = arg(args, 1) or 'collect'
        if option == 'count':
            # counted in reachable objects
            return [float(len(interp.collect_garbage()))]
        if option == 'collect':
            interp.collect_cycles()
            return [0.0]
        if option in ('step', 'isrunning'):
            return [True]
        raise arg_error(1, 'collectgarbage', f"invalid option '{option}'")

    lib.set('print', BuiltinFunction('print', 0, lua_print))
    lib.set('type', BuiltinFunction('type', 1, lua_type))
    lib.set('tostring', BuiltinFunction('tostring', 1, lua_tostring))
    lib.set('tonumber', BuiltinFunction('tonumber', 1, lua_tonumber))
    lib.set('next', next_builtin)
    lib.set('pairs', BuiltinFunction('pairs', 1, lua_pairs))
    lib.set('ipairs', BuiltinFunction('ipairs', 1, lua_ipairs))
    lib.set('select', BuiltinFunction('select', 1, lua_select))
    lib.set('rawget', BuiltinFunction('rawget', 2, lua_rawget))
    lib.set('rawset', BuiltinFunction('rawset', 3, lua_rawset))
    lib.set('rawequal', BuiltinFunction('rawequal', 2, lua_rawequal))
    lib.set('rawlen', BuiltinFunction('rawlen', 1, lua_rawlen))
    lib.set('setmetatable', BuiltinFunction('setmetatable', 1, lua_setmetatable))
    lib.set('getmetatable', BuiltinFunction('getmetatable', 1, lua_getmetatable))
    lib.set('assert', BuiltinFunction('assert', 1, lua_assert))
    lib.set('error', BuiltinFunction('error', 0, lua_error))
    lib.set('pcall', BuiltinFunction('pcall', 1, lua_pcall))
    lib.set('xpcall', BuiltinFunction('xpcall', 2, lua_xpcall))
    lib.set('require', BuiltinFunction('require', 1, lua_require))
    lib.set('collectgarbage', BuiltinFunction('collectgarbage', 0, lua_collectgarbage))
    return lib
