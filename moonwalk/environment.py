from typing import Any, Dict, Iterable, List, Optional

from .errors import EmptyStack, UndefinedVariable
from .types import LuaTable


class Cell:
    """A variable binding. Closures share cells with the scope they capture."""
    __slots__ = ('value',)

    def __init__(self, value: Any = None):
        self.value = value

    def __repr__(self) -> str:
        return f"Cell({self.value!r})"


class ScopeManager:
    """Stack of lexical frames over a single global table.

    Each frame maps identifiers to cells. Lookups scan the frames from the
    innermost outwards and then fall back to the globals. Calling a user
    function swaps the whole frame list out (`enter`) so the callee only
    sees its captured bindings and parameters, and swaps it back (`leave`)
    on return.
    """
    def __init__(self, globals_table: LuaTable, strict: bool = False):
        self.globals = globals_table
        self.strict = strict
        self.frames: List[Dict[str, Cell]] = []
        # frame lists of the callers, innermost call last
        self.saved: List[List[Dict[str, Cell]]] = []

    @property
    def depth(self) -> int:
        return len(self.frames)

    def push(self) -> int:
        self.frames.append({})
        return len(self.frames)

    def pop(self) -> Dict[str, Any]:
        if not self.frames:
            raise EmptyStack('scope stack is empty')
        frame = self.frames.pop()
        return {name: cell.value for name, cell in frame.items()}

    def define(self, name: str, value: Any) -> None:
        if self.frames:
            self.frames[-1][name] = Cell(value)
        else:
            self.globals.set(name, value)

    def resolve(self, name: str) -> Optional[Cell]:
        """The nearest local binding for `name`, ignoring globals."""
        for frame in reversed(self.frames):
            cell = frame.get(name)
            if cell is not None:
                return cell
        return None

    def lookup(self, name: str) -> Any:
        cell = self.resolve(name)
        if cell is not None:
            return cell.value
        value = self.globals.get(name)
        if value is None and self.strict:
            raise UndefinedVariable(f"undefined variable '{name}'")
        return value

    def update(self, name: str, value: Any) -> None:
        cell = self.resolve(name)
        if cell is not None:
            cell.value = value
            return
        if self.strict and self.globals.get(name) is None:
            raise UndefinedVariable(f"assignment to undeclared variable '{name}'")
        self.globals.set(name, value)

    def capture(self, names: Iterable[str]) -> Dict[str, Cell]:
        """Bindings of `names` visible in the local frames, for a new closure."""
        captured = {}
        for name in names:
            cell = self.resolve(name)
            if cell is not None:
                captured[name] = cell
        return captured

    def enter(self, bindings: Dict[str, Cell]) -> None:
        """Replace the frame stack with a single frame holding `bindings`."""
        self.saved.append(self.frames)
        self.frames = [bindings]

    def leave(self) -> None:
        self.frames = self.saved.pop()

    def all_frames(self):
        for frames in self.saved:
            yield from frames
        yield from self.frames
