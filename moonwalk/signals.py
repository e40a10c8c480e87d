"""Control-flow signals.

Executing a statement or block returns ``None`` for normal completion or
one of the signal objects below. Blocks stop at the first signal and hand
it to their caller unchanged; loops consume `BREAK`, the block that owns the
target label consumes `GotoSignal` (any other block raises
`UndefinedLabel`), and the call engine consumes
`ReturnSignal` and `TailCall`.
"""

from typing import Any, List


class ReturnSignal:
    __slots__ = ('values',)

    def __init__(self, values: List[Any]):
        self.values = values


class TailCall:
    """A ``return f(args)``: the caller's frame is reused to call `func`."""
    __slots__ = ('func', 'args')

    def __init__(self, func: Any, args: List[Any]):
        self.func = func
        self.args = args


class GotoSignal:
    __slots__ = ('label',)

    def __init__(self, label: str):
        self.label = label


class _Break:
    def __repr__(self) -> str:
        return 'BREAK'


BREAK = _Break()
