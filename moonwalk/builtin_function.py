from dataclasses import dataclass
from typing import Any, Callable, List


@dataclass(eq=False)
class BuiltinFunction:
    """A native function.

    `fn` takes the ordered argument list and returns the result values as a
    list (``None`` for no results; a single non-list value is treated as
    one result). `fn` may also be a generator function, in which case the
    call engine delegates to it with ``yield from`` so that it can call
    back into guest code or suspend the running coroutine. `arity` is the
    minimum number of arguments.
    """
    name: str
    arity: int
    fn: Callable[[List[Any]], Any]

    lua_type = 'function'

    def __repr__(self) -> str:
        return f"<builtin {self.name}>"
