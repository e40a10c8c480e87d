"""Metatable dispatch.

Every operation that a metatable can override goes through this module:
indexing, assignment to a missing key, arithmetic, concatenation,
comparison, length, unary minus, bitwise operators and string
conversion. The default (primitive) behaviour is applied first when it
is defined for the operand types; otherwise the metamethod of the left
operand is consulted, then that of the right operand, and finally a type
error is raised.

Metamethods are guest functions and may suspend the running coroutine,
so every dispatcher that may call one is a generator to be driven with
``yield from`` by the executor.
"""

from __future__ import annotations

import math
from typing import Any, Optional

from .errors import LuaTypeError, IndexingError, DivisionByZero
from .types import (
    LuaTable, UserData, is_callable, is_truthy, type_name, to_number,
    to_integer, to_display, format_number,
)

# Bound on __index/__newindex hops, so a metatable loop fails instead of hanging
MAX_CHAIN = 2000

ARITH_EVENTS = {
    '+': '__add', '-': '__sub', '*': '__mul', '/': '__div', '%': '__mod',
    '^': '__pow', '//': '__idiv',
    '&': '__band', '|': '__bor', '~': '__bxor', '<<': '__shl', '>>': '__shr',
}

BITWISE_OPS = frozenset(['&', '|', '~', '<<', '>>'])


def get_metatable(interp, value: Any) -> Optional[LuaTable]:
    if isinstance(value, (LuaTable, UserData)):
        return value.metatable
    if isinstance(value, str):
        return interp.string_meta
    return None


def get_metamethod(interp, value: Any, event: str) -> Any:
    mt = get_metatable(interp, value)
    if mt is None:
        return None
    return mt.get(event)


def _call_metamethod(interp, handler, args):
    if interp.debug_level >= 4:
        interp.debug(f"metamethod {to_display(handler)} with {len(args)} args")
    results = yield from interp.invoke(handler, args, 1)
    return results[0]


def index(interp, obj: Any, key: Any, desc: Optional[str] = None):
    """Read ``obj[key]``, following ``__index`` chains."""
    for _ in range(MAX_CHAIN):
        if isinstance(obj, LuaTable):
            value = obj.get(key)
            if value is not None:
                return value
            mt = obj.metatable
            if mt is None:
                return None
            handler = mt.get('__index')
            if handler is None:
                return None
        else:
            handler = get_metamethod(interp, obj, '__index')
            if handler is None:
                suffix = f" ({desc})" if desc else ''
                raise IndexingError(f"attempt to index a {type_name(obj)} value{suffix}")
        if is_callable(handler):
            return (yield from _call_metamethod(interp, handler, [obj, key]))
        obj = handler
    raise IndexingError("'__index' chain too long; possible loop")


def setindex(interp, obj: Any, key: Any, value: Any, desc: Optional[str] = None):
    """Write ``obj[key] = value``, following ``__newindex`` chains."""
    for _ in range(MAX_CHAIN):
        if isinstance(obj, LuaTable):
            mt = obj.metatable
            handler = mt.get('__newindex') if mt is not None else None
            if handler is None or obj.get(key) is not None:
                obj.set(key, value)
                return
        else:
            handler = get_metamethod(interp, obj, '__newindex')
            if handler is None:
                suffix = f" ({desc})" if desc else ''
                raise IndexingError(f"attempt to index a {type_name(obj)} value{suffix}")
        if is_callable(handler):
            if interp.debug_level >= 4:
                interp.debug(f"metamethod __newindex for key {to_display(key)}")
            yield from interp.invoke(handler, [obj, key, value], 0)
            return
        obj = handler
    raise IndexingError("'__newindex' chain too long; possible loop")


def _to_int_operand(value: float) -> int:
    n = to_integer(value)
    if n is None:
        raise LuaTypeError('number has no integer representation')
    return n


def _wrap64(n: int) -> float:
    n &= 0xFFFFFFFFFFFFFFFF
    if n >= 0x8000000000000000:
        n -= 0x10000000000000000
    return float(n)


def raw_arith(op: str, a: float, b: float) -> float:
    """Arithmetic on two numbers, without metamethods."""
    if op == '+':
        return a + b
    if op == '-':
        return a - b
    if op == '*':
        return a * b
    if op == '/':
        if b == 0:
            raise DivisionByZero('attempt to divide by zero')
        return a / b
    if op == '%':
        if b == 0:
            raise DivisionByZero("attempt to perform 'n%0'")
        m = math.fmod(a, b)
        if m != 0 and (m < 0) != (b < 0):
            m += b
        return m
    if op == '//':
        if b == 0:
            raise DivisionByZero("attempt to perform 'n//0'")
        return float(math.floor(a / b))
    if op == '^':
        try:
            return math.pow(a, b)
        except OverflowError:
            return math.inf
        except ValueError:
            return math.nan
    if op in BITWISE_OPS:
        x = _to_int_operand(a)
        y = _to_int_operand(b)
        if op == '&':
            return _wrap64(x & y)
        if op == '|':
            return _wrap64(x | y)
        if op == '~':
            return _wrap64(x ^ y)
        if op == '<<':
            return _wrap64(x << y) if 0 <= y < 64 else (_wrap64(x >> -y) if -64 < y < 0 else 0.0)
        if op == '>>':
            x &= 0xFFFFFFFFFFFFFFFF
            return _wrap64(x >> y) if 0 <= y < 64 else (_wrap64(x << -y) if -64 < y < 0 else 0.0)
    raise LuaTypeError(f"unknown arithmetic operator '{op}'")


def arith(interp, op: str, a: Any, b: Any):
    x = to_number(a)
    y = to_number(b)
    if x is not None and y is not None:
        return raw_arith(op, x, y)
    event = ARITH_EVENTS[op]
    handler = get_metamethod(interp, a, event)
    if handler is None:
        handler = get_metamethod(interp, b, event)
    if handler is not None:
        return (yield from _call_metamethod(interp, handler, [a, b]))
    bad = b if x is not None else a
    if op in BITWISE_OPS:
        raise LuaTypeError(f"attempt to perform bitwise operation on a {type_name(bad)} value")
    raise LuaTypeError(f"attempt to perform arithmetic on a {type_name(bad)} value")


def concat(interp, a: Any, b: Any):
    if isinstance(a, (str, float)) and isinstance(b, (str, float)):
        left = a if isinstance(a, str) else format_number(a)
        right = b if isinstance(b, str) else format_number(b)
        return left + right
    handler = get_metamethod(interp, a, '__concat')
    if handler is None:
        handler = get_metamethod(interp, b, '__concat')
    if handler is not None:
        return (yield from _call_metamethod(interp, handler, [a, b]))
    bad = b if isinstance(a, (str, float)) else a
    raise LuaTypeError(f"attempt to concatenate a {type_name(bad)} value")


def raw_equal(a: Any, b: Any) -> bool:
    if a is b:
        return True
    # bool and number never compare equal
    if type(a) is not type(b):
        if isinstance(a, (int, float)) and isinstance(b, (int, float)) \
                and not isinstance(a, bool) and not isinstance(b, bool):
            return a == b
        return False
    if isinstance(a, (float, str, bool)):
        return a == b
    return False


def eq(interp, a: Any, b: Any):
    if raw_equal(a, b):
        return True
    both_tables = isinstance(a, LuaTable) and isinstance(b, LuaTable)
    both_userdata = isinstance(a, UserData) and isinstance(b, UserData)
    if not (both_tables or both_userdata):
        return False
    handler = get_metamethod(interp, a, '__eq')
    if handler is None:
        handler = get_metamethod(interp, b, '__eq')
    if handler is None:
        return False
    result = yield from _call_metamethod(interp, handler, [a, b])
    return is_truthy(result)


def _compare_error(a: Any, b: Any) -> LuaTypeError:
    ta, tb = type_name(a), type_name(b)
    if ta == tb:
        return LuaTypeError(f"attempt to compare two {ta} values")
    return LuaTypeError(f"attempt to compare {ta} with {tb}")


def lt(interp, a: Any, b: Any):
    if type(a) is float and type(b) is float:
        return a < b
    if isinstance(a, str) and isinstance(b, str):
        return a < b
    handler = get_metamethod(interp, a, '__lt')
    if handler is None:
        handler = get_metamethod(interp, b, '__lt')
    if handler is None:
        raise _compare_error(a, b)
    result = yield from _call_metamethod(interp, handler, [a, b])
    return is_truthy(result)


def le(interp, a: Any, b: Any):
    if type(a) is float and type(b) is float:
        return a <= b
    if isinstance(a, str) and isinstance(b, str):
        return a <= b
    handler = get_metamethod(interp, a, '__le')
    if handler is None:
        handler = get_metamethod(interp, b, '__le')
    if handler is not None:
        result = yield from _call_metamethod(interp, handler, [a, b])
        return is_truthy(result)
    # a <= b  is  not (b < a)
    handler = get_metamethod(interp, b, '__lt') or get_metamethod(interp, a, '__lt')
    if handler is None:
        raise _compare_error(a, b)
    result = yield from _call_metamethod(interp, handler, [b, a])
    return not is_truthy(result)


def unm(interp, a: Any):
    x = to_number(a)
    if x is not None:
        return -x
    handler = get_metamethod(interp, a, '__unm')
    if handler is None:
        raise LuaTypeError(f"attempt to perform arithmetic on a {type_name(a)} value")
    return (yield from _call_metamethod(interp, handler, [a, a]))


def bnot(interp, a: Any):
    x = to_number(a)
    if x is not None:
        return _wrap64(~_to_int_operand(x))
    handler = get_metamethod(interp, a, '__bnot')
    if handler is None:
        raise LuaTypeError(f"attempt to perform bitwise operation on a {type_name(a)} value")
    return (yield from _call_metamethod(interp, handler, [a, a]))


def length(interp, a: Any, desc: Optional[str] = None):
    if isinstance(a, str):
        return float(len(a))
    handler = get_metamethod(interp, a, '__len')
    if handler is not None:
        return (yield from _call_metamethod(interp, handler, [a]))
    if isinstance(a, LuaTable):
        return a.length()
    suffix = f" ({desc})" if desc else ''
    raise LuaTypeError(f"attempt to get length of a {type_name(a)} value{suffix}")


def tostring(interp, value: Any):
    """String conversion honouring ``__tostring`` and ``__name``."""
    mt = get_metatable(interp, value)
    if mt is not None and not isinstance(value, str):
        handler = mt.get('__tostring')
        if handler is not None:
            result = yield from _call_metamethod(interp, handler, [value])
            if not isinstance(result, str):
                if isinstance(result, float):
                    return format_number(result)
                raise LuaTypeError("'__tostring' must return a string")
            return result
        name = mt.get('__name')
        if isinstance(name, str):
            return f"{name}: 0x{id(value):08x}"
    return to_display(value)
