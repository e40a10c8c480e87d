"""Argument checking helpers shared by the native libraries.

Argument positions are 1-based, as they appear in guest error messages.
"""

from typing import Any, List, Optional

from ..errors import LuaTypeError
from ..types import LuaTable, to_number, to_integer, type_name, format_number


def arg_error(n: int, fname: str, msg: str) -> LuaTypeError:
    return LuaTypeError(f"bad argument #{n} to '{fname}' ({msg})")


def arg(args: List[Any], n: int) -> Any:
    return args[n - 1] if len(args) >= n else None


def check_table(args: List[Any], n: int, fname: str) -> LuaTable:
    value = arg(args, n)
    if not isinstance(value, LuaTable):
        raise arg_error(n, fname, f"table expected, got {_got(args, n)}")
    return value


def check_number(args: List[Any], n: int, fname: str) -> float:
    value = to_number(arg(args, n))
    if value is None:
        raise arg_error(n, fname, f"number expected, got {_got(args, n)}")
    return value


def check_integer(args: List[Any], n: int, fname: str) -> int:
    value = check_number(args, n, fname)
    result = to_integer(value)
    if result is None:
        raise arg_error(n, fname, 'number has no integer representation')
    return result


def check_string(args: List[Any], n: int, fname: str) -> str:
    value = arg(args, n)
    if isinstance(value, str):
        return value
    if isinstance(value, float):
        return format_number(value)
    raise arg_error(n, fname, f"string expected, got {_got(args, n)}")


def opt_integer(args: List[Any], n: int, fname: str, default: Optional[int]) -> Optional[int]:
    if arg(args, n) is None:
        return default
    return check_integer(args, n, fname)


def opt_string(args: List[Any], n: int, fname: str, default: str) -> str:
    if arg(args, n) is None:
        return default
    return check_string(args, n, fname)


def _got(args: List[Any], n: int) -> str:
    return 'no value' if len(args) < n else type_name(args[n - 1])
