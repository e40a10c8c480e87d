from typing import Any


class LuaError(Exception):
    """Exception type used to propagate guest runtime errors.

    `value` is the guest-visible error value (usually a string, but any
    value can be raised with ``error``). Engine errors are raised without
    a position and get ``chunk:line:`` prepended by the executor once, at
    the innermost statement that was running.
    """
    kind = 'RuntimeError'

    def __init__(self, value: Any, positioned: bool = False):
        super().__init__(value)
        self.value = value
        self.positioned = positioned

    def locate(self, chunk: str, line: int) -> None:
        if not self.positioned:
            if isinstance(self.value, str):
                self.value = f"{chunk}:{line}: {self.value}"
            self.positioned = True

    def __str__(self) -> str:
        value = self.value
        if isinstance(value, str):
            return value
        if value is None:
            return 'nil'
        if isinstance(value, float):
            return '%.14g' % value
        kind = getattr(value, 'lua_type', type(value).__name__)
        return f"(error object is a {kind} value)"


class UndefinedVariable(LuaError):
    kind = 'UndefinedVariable'


class UndefinedLabel(LuaError):
    kind = 'UndefinedLabel'


class BreakOutsideLoop(LuaError):
    kind = 'BreakOutsideLoop'


class StackOverflow(LuaError):
    kind = 'StackOverflow'


class ArityMismatch(LuaError):
    kind = 'ArityMismatch'


class DivisionByZero(LuaError):
    kind = 'DivisionByZero'


class IndexingError(LuaError):
    kind = 'IndexError'


class CallError(LuaError):
    kind = 'CallError'


class ModuleNotFound(LuaError):
    kind = 'ModuleNotFound'


class ModuleLoadError(LuaError):
    kind = 'ModuleLoadError'


class UserRaised(LuaError):
    """Raised by the guest ``error`` function; the value is used as-is."""
    kind = 'UserRaised'

    def __init__(self, value: Any):
        super().__init__(value, positioned=True)


class LuaTypeError(LuaError):
    kind = 'TypeError'


class CoroutineError(LuaError):
    kind = 'CoroutineError'


class EmptyStack(LuaError):
    kind = 'EmptyStack'


class LuaSyntaxError(LuaError):
    """Raised when source text cannot be parsed."""
    kind = 'SyntaxError'

    def __init__(self, message: str, line: int = 0, column: int = 0, chunk: str = '?'):
        super().__init__(f"{chunk}:{line}: {message}", positioned=True)
        self.message = message
        self.line = line
        self.column = column
        self.chunk = chunk
