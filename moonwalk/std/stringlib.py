import re
from typing import Any, List

from .. import metatables
from ..builtin_function import BuiltinFunction
from ..errors import LuaError
from ..types import LuaTable, to_number, to_integer, to_display, type_name
from .args import arg_error, check_integer, check_string, opt_integer, opt_string

FORMAT_SPEC_RE = re.compile(r'%([-+ #0]*)(\d{0,2})(?:\.(\d{0,2}))?([a-zA-Z%])')


def string_range(length: int, i: int, j: int):
    """Clamp 1-based, possibly negative, inclusive indices to a slice."""
    if i < 0:
        i = max(length + i + 1, 1)
    elif i == 0:
        i = 1
    if j < 0:
        j = length + j + 1
    elif j > length:
        j = length
    return i - 1, j


def quote_string(value: str) -> str:
    out = ['"']
    for i, ch in enumerate(value):
        if ch in '"\\':
            out.append('\\' + ch)
        elif ch == '\n':
            out.append('\\\n')
        elif ch == '\r':
            out.append('\\r')
        elif ch == '\0':
            nxt = value[i + 1:i + 2]
            out.append('\\000' if nxt.isdigit() else '\\0')
        elif ord(ch) < 32 or ord(ch) == 127:
            out.append(f"\\{ord(ch)}")
        else:
            out.append(ch)
    out.append('"')
    return ''.join(out)


def populate_string_library(interp) -> LuaTable:
    """Build the string library and install the shared string metatable."""
    lib = LuaTable()

    def s_len(args: List[Any]) -> Any:
        return [float(len(check_string(args, 1, 'len')))]

    def s_sub(args: List[Any]) -> Any:
        s = check_string(args, 1, 'sub')
        start, end = string_range(len(s), opt_integer(args, 2, 'sub', 1), opt_integer(args, 3, 'sub', -1))
        return [s[start:end] if start < end else '']

    def s_upper(args: List[Any]) -> Any:
        return [check_string(args, 1, 'upper').upper()]

    def s_lower(args: List[Any]) -> Any:
        return [check_string(args, 1, 'lower').lower()]

    def s_rep(args: List[Any]) -> Any:
        s = check_string(args, 1, 'rep')
        n = check_integer(args, 2, 'rep')
        sep = opt_string(args, 3, 'rep', '')
        if n <= 0:
            return ['']
        return [sep.join([s] * n)]

    def s_reverse(args: List[Any]) -> Any:
        return [check_string(args, 1, 'reverse')[::-1]]

    def s_byte(args: List[Any]) -> Any:
        s = check_string(args, 1, 'byte')
        i = opt_integer(args, 2, 'byte', 1)
        start, end = string_range(len(s), i, opt_integer(args, 3, 'byte', i))
        return [float(ord(c)) for c in s[start:end]]

    def s_char(args: List[Any]) -> Any:
        chars = []
        for n in range(1, len(args) + 1):
            code = check_integer(args, n, 'char')
            if not 0 <= code <= 0x10FFFF:
                raise arg_error(n, 'char', 'value out of range')
            chars.append(chr(code))
        return [''.join(chars)]

    def s_format(args: List[Any]) -> Any:
        fmt = check_string(args, 1, 'format')
        out = []
        pos = 0
        argn = 1
        for match in FORMAT_SPEC_RE.finditer(fmt):
            out.append(fmt[pos:match.start()])
            pos = match.end()
            flags, width, precision, conv = match.groups()
            if conv == '%':
                out.append('%')
                continue
            argn += 1
            if argn > len(args):
                raise arg_error(argn, 'format', 'no value')
            value = args[argn - 1]
            spec = '%' + flags + width + ('.' + precision if precision is not None else '')
            if conv in 'diucxXo':
                number = to_number(value)
                if number is None:
                    raise arg_error(argn, 'format', f"number expected, got {type_name(value)}")
                n = to_integer(number)
                if n is None:
                    raise arg_error(argn, 'format', 'number has no integer representation')
                if conv == 'c':
                    out.append(chr(n))
                elif conv in 'xXo':
                    out.append((spec + conv) % (n & 0xFFFFFFFFFFFFFFFF if n < 0 else n))
                else:
                    out.append((spec + 'd') % n)
            elif conv in 'eEfFgG':
                number = to_number(value)
                if number is None:
                    raise arg_error(argn, 'format', f"number expected, got {type_name(value)}")
                out.append((spec + conv) % number)
            elif conv in 'aA':
                number = to_number(value)
                if number is None:
                    raise arg_error(argn, 'format', f"number expected, got {type_name(value)}")
                text = number.hex()
                out.append(text.upper() if conv == 'A' else text)
            elif conv == 'q':
                if isinstance(value, str):
                    out.append(quote_string(value))
                elif isinstance(value, float) and to_integer(value) is not None:
                    out.append('%d' % value)
                elif isinstance(value, float):
                    out.append(value.hex())
                else:
                    out.append(to_display(value))
            elif conv == 's':
                text = yield from metatables.tostring(interp, value)
                out.append((spec + 's') % text)
            else:
                raise LuaError(f"invalid conversion '%{conv}' to 'format'")
        out.append(fmt[pos:])
        return [''.join(out)]

    lib.set('len', BuiltinFunction('len', 1, s_len))
    lib.set('sub', BuiltinFunction('sub', 1, s_sub))
    lib.set('upper', BuiltinFunction('upper', 1, s_upper))
    lib.set('lower', BuiltinFunction('lower', 1, s_lower))
    lib.set('rep', BuiltinFunction('rep', 2, s_rep))
    lib.set('reverse', BuiltinFunction('reverse', 1, s_reverse))
    lib.set('byte', BuiltinFunction('byte', 1, s_byte))
    lib.set('char', BuiltinFunction('char', 0, s_char))
    lib.set('format', BuiltinFunction('format', 1, s_format))

    interp.string_meta = LuaTable({'__index': lib})
    return lib
