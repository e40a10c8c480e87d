import math
import random
from typing import Any, List

from ..builtin_function import BuiltinFunction
from ..types import LuaTable, to_integer
from .args import arg, arg_error, check_integer, check_number

MAX_INTEGER = 2 ** 63 - 1
MIN_INTEGER = -2 ** 63


def _floor(x: float) -> float:
    return float(math.floor(x)) if math.isfinite(x) else x


def _ceil(x: float) -> float:
    return float(math.ceil(x)) if math.isfinite(x) else x


def populate_math_library(interp) -> LuaTable:
    lib = LuaTable()
    rng = random.Random()

    def m_floor(args: List[Any]) -> Any:
        return [_floor(check_number(args, 1, 'floor'))]

    def m_ceil(args: List[Any]) -> Any:
        return [_ceil(check_number(args, 1, 'ceil'))]

    def m_abs(args: List[Any]) -> Any:
        return [abs(check_number(args, 1, 'abs'))]

    def m_sqrt(args: List[Any]) -> Any:
        x = check_number(args, 1, 'sqrt')
        return [math.sqrt(x) if x >= 0 else math.nan]

    def m_max(args: List[Any]) -> Any:
        best = check_number(args, 1, 'max')
        for n in range(2, len(args) + 1):
            x = check_number(args, n, 'max')
            if x > best:
                best = x
        return [best]

    def m_min(args: List[Any]) -> Any:
        best = check_number(args, 1, 'min')
        for n in range(2, len(args) + 1):
            x = check_number(args, n, 'min')
            if x < best:
                best = x
        return [best]

    def m_fmod(args: List[Any]) -> Any:
        a = check_number(args, 1, 'fmod')
        b = check_number(args, 2, 'fmod')
        if b == 0:
            raise arg_error(2, 'fmod', 'zero')
        return [math.fmod(a, b)]

    def m_modf(args: List[Any]) -> Any:
        x = check_number(args, 1, 'modf')
        if math.isinf(x):
            return [x, 0.0]
        frac, whole = math.modf(x)
        return [whole, frac]

    def m_exp(args: List[Any]) -> Any:
        try:
            return [math.exp(check_number(args, 1, 'exp'))]
        except OverflowError:
            return [math.inf]

    def m_log(args: List[Any]) -> Any:
        x = check_number(args, 1, 'log')
        if x == 0:
            return [-math.inf]
        if x < 0:
            return [math.nan]
        if arg(args, 2) is None:
            return [math.log(x)]
        base = check_number(args, 2, 'log')
        if base == 2:
            return [math.log2(x)]
        if base == 10:
            return [math.log10(x)]
        return [math.log(x) / math.log(base)]

    def m_sin(args: List[Any]) -> Any:
        return [math.sin(check_number(args, 1, 'sin'))]

    def m_cos(args: List[Any]) -> Any:
        return [math.cos(check_number(args, 1, 'cos'))]

    def m_tan(args: List[Any]) -> Any:
        return [math.tan(check_number(args, 1, 'tan'))]

    def m_random(args: List[Any]) -> Any:
        if not args:
            return [rng.random()]
        if len(args) == 1:
            low, high = 1, check_integer(args, 1, 'random')
        else:
            low, high = check_integer(args, 1, 'random'), check_integer(args, 2, 'random')
        if low > high:
            raise arg_error(len(args), 'random', 'interval is empty')
        return [float(rng.randint(low, high))]

    def m_randomseed(args: List[Any]) -> Any:
        rng.seed(arg(args, 1))

    def m_tointeger(args: List[Any]) -> Any:
        x = arg(args, 1)
        if isinstance(x, float) and to_integer(x) is not None:
            return [x]
        return [None]

    def m_type(args: List[Any]) -> Any:
        x = args[0]
        if not isinstance(x, float):
            return [None]
        return ['integer' if to_integer(x) is not None else 'float']

    lib.set('floor', BuiltinFunction('floor', 1, m_floor))
    lib.set('ceil', BuiltinFunction('ceil', 1, m_ceil))
    lib.set('abs', BuiltinFunction('abs', 1, m_abs))
    lib.set('sqrt', BuiltinFunction('sqrt', 1, m_sqrt))
    lib.set('max', BuiltinFunction('max', 1, m_max))
    lib.set('min', BuiltinFunction('min', 1, m_min))
    lib.set('fmod', BuiltinFunction('fmod', 2, m_fmod))
    lib.set('modf', BuiltinFunction('modf', 1, m_modf))
    lib.set('exp', BuiltinFunction('exp', 1, m_exp))
    lib.set('log', BuiltinFunction('log', 1, m_log))
    lib.set('sin', BuiltinFunction('sin', 1, m_sin))
    lib.set('cos', BuiltinFunction('cos', 1, m_cos))
    lib.set('tan', BuiltinFunction('tan', 1, m_tan))
    lib.set('random', BuiltinFunction('random', 0, m_random))
    lib.set('randomseed', BuiltinFunction('randomseed', 0, m_randomseed))
    lib.set('tointeger', BuiltinFunction('tointeger', 1, m_tointeger))
    lib.set('type', BuiltinFunction('type', 1, m_type))
    lib.set('huge', math.inf)
    lib.set('pi', math.pi)
    lib.set('maxinteger', float(MAX_INTEGER))
    lib.set('mininteger', float(MIN_INTEGER))
    return lib
