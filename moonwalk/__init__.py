# moonwalk language package
# This package provides a parser and tree-walking interpreter for a Lua-like language.
from .interpreter import run_program, Interpreter
from .errors import LuaError, LuaSyntaxError
from .parser import parse_program

__all__ = [
    'run_program',
    'parse_program',
    'Interpreter',
    'LuaError',
    'LuaSyntaxError',
]
