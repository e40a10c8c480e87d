from typing import Any, Callable, List

from .. import metatables
from ..builtin_function import BuiltinFunction
from ..errors import LuaError
from ..types import LuaTable, format_number, is_truthy
from .args import arg, arg_error, check_integer, check_table, opt_integer, opt_string

# refuse to build result lists larger than this
MAX_UNPACK = 1_000_000


def merge_sort(items: List[Any], less: Callable):
    """Stable merge sort whose comparison may call back into guest code."""
    if len(items) <= 1:
        return items
    mid = len(items) // 2
    left = yield from merge_sort(items[:mid], less)
    right = yield from merge_sort(items[mid:], less)
    merged = []
    i = j = 0
    while i < len(left) and j < len(right):
        if (yield from less(right[j], left[i])):
            merged.append(right[j])
            j += 1
        else:
            merged.append(left[i])
            i += 1
    merged.extend(left[i:])
    merged.extend(right[j:])
    return merged


def populate_table_library(interp) -> LuaTable:
    lib = LuaTable()

    def t_insert(args: List[Any]) -> Any:
        table = check_table(args, 1, 'insert')
        n = int(table.length())
        if len(args) == 2:
            table.set(float(n + 1), args[1])
            return None
        if len(args) != 3:
            raise LuaError("wrong number of arguments to 'insert'")
        pos = check_integer(args, 2, 'insert')
        if pos < 1 or pos > n + 1:
            raise arg_error(2, 'insert', 'position out of bounds')
        for i in range(n, pos - 1, -1):
            table.set(float(i + 1), table.get(float(i)))
        table.set(float(pos), args[2])
        return None

    def t_remove(args: List[Any]) -> Any:
        table = check_table(args, 1, 'remove')
        n = int(table.length())
        pos = opt_integer(args, 2, 'remove', n)
        if pos != n and not 1 <= pos <= n + 1:
            raise arg_error(2, 'remove', 'position out of bounds')
        value = table.get(float(pos))
        for i in range(pos, n):
            table.set(float(i), table.get(float(i + 1)))
        if 1 <= pos <= n:
            table.set(float(n), None)
        return [value]

    def t_concat(args: List[Any]) -> Any:
        table = check_table(args, 1, 'concat')
        sep = opt_string(args, 2, 'concat', '')
        i = opt_integer(args, 3, 'concat', 1)
        j = opt_integer(args, 4, 'concat', int(table.length()))
        parts = []
        for k in range(i, j + 1):
            value = table.get(float(k))
            if isinstance(value, str):
                parts.append(value)
            elif isinstance(value, float):
                parts.append(format_number(value))
            else:
                raise LuaError(f"invalid value (at index {k}) in table for 'concat'")
        return [sep.join(parts)]

    def t_unpack(args: List[Any]) -> Any:
        table = check_table(args, 1, 'unpack')
        i = opt_integer(args, 2, 'unpack', 1)
        j = opt_integer(args, 3, 'unpack', int(table.length()))
        if j - i >= MAX_UNPACK:
            raise LuaError("too many results to unpack")
        return [table.get(float(k)) for k in range(i, j + 1)]

    def t_pack(args: List[Any]) -> Any:
        table = LuaTable.from_list(args)
        table.set('n', float(len(args)))
        return [table]

    def t_sort(args: List[Any]) -> Any:
        table = check_table(args, 1, 'sort')
        comp = arg(args, 2)

        def less(a, b):
            if comp is not None:
                result = yield from interp.invoke(comp, [a, b], 1)
                return is_truthy(result[0])
            return (yield from metatables.lt(interp, a, b))

        ordered = yield from merge_sort(table.sequence(), less)
        for i, value in enumerate(ordered, 1):
            table.set(float(i), value)

    lib.set('insert', BuiltinFunction('insert', 2, t_insert))
    lib.set('remove', BuiltinFunction('remove', 1, t_remove))
    lib.set('concat', BuiltinFunction('concat', 1, t_concat))
    lib.set('unpack', BuiltinFunction('unpack', 1, t_unpack))
    lib.set('pack', BuiltinFunction('pack', 0, t_pack))
    lib.set('sort', BuiltinFunction('sort', 1, t_sort))
    return lib
