from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Set

from .errors import LuaError, LuaSyntaxError, ModuleLoadError, ModuleNotFound
from .parser import parse_program
from .types import LuaTable

DEFAULT_SEARCH_PATHS = ['.', 'modules', 'lib']
MODULE_EXTENSION = '.lua'


class ModuleLoader:
    """Resolves, executes and caches modules for ``require``.

    A module name maps to a file by replacing dots with path separators
    and appending the extension, tried against each search directory in
    order. The module body runs in a fresh scope that only sees globals;
    its result is its returned value, else its ``exports`` binding (a
    local, or a global the module itself assigned), else nil. The global
    ``exports`` is restored once the module finishes. A module that is
    required again while it is still loading gets a fresh empty table
    instead of recursing.
    """

    def __init__(self, interpreter: Any, search_paths: Optional[List[str]] = None,
                 extension: str = MODULE_EXTENSION):
        self.interpreter = interpreter
        self.search_paths: List[str] = list(search_paths if search_paths is not None else DEFAULT_SEARCH_PATHS)
        self.extension = extension
        # name -> result; a module may legitimately evaluate to nil
        self.cache: Dict[str, Any] = {}
        self.loading: Set[str] = set()

    def add_search_path(self, path: str | Path) -> None:
        path = str(path)
        if path not in self.search_paths:
            self.search_paths.append(path)

    def candidates(self, name: str) -> List[Path]:
        relative = name.replace('.', '/') + self.extension
        return [Path(directory) / relative for directory in self.search_paths]

    def resolve(self, name: str) -> Optional[Path]:
        for candidate in self.candidates(name):
            if candidate.is_file():
                return candidate
        return None

    def is_cached(self, name: str) -> bool:
        return name in self.cache

    def is_loading(self, name: str) -> bool:
        return name in self.loading

    def cached_count(self) -> int:
        return len(self.cache)

    def clear_cache(self) -> None:
        self.cache.clear()

    def require(self, name: str):
        """Load module `name` (a generator driven by the call engine)."""
        interp = self.interpreter
        if name in self.cache:
            return self.cache[name]
        if name in self.loading:
            if interp.debug_level >= 1:
                interp.debug(f"require '{name}': circular dependency, returning placeholder")
            return LuaTable()

        path = self.resolve(name)
        if path is None:
            tried = ''.join(f"\n\tno file '{candidate}'" for candidate in self.candidates(name))
            raise ModuleNotFound(f"module '{name}' not found:{tried}")
        if interp.debug_level >= 1:
            interp.debug(f"require '{name}': loading {path}")

        self.loading.add(name)
        try:
            try:
                source = path.read_text(encoding='utf-8')
            except OSError as exc:
                raise ModuleLoadError(f"error loading module '{name}' from file '{path}': {exc.strerror}")
            try:
                block = parse_program(source, str(path))
            except LuaSyntaxError as exc:
                raise ModuleLoadError(f"error loading module '{name}' from file '{path}':\n\t{exc.value}")
            # a global `exports` only counts when this chunk assigned it
            previous = interp.globals.get('exports')
            try:
                values, top_frame = yield from interp.execute_chunk(block, str(path), [name, str(path)])
                current = interp.globals.get('exports')
            finally:
                interp.globals.set('exports', previous)
            if values is not None:
                result = values[0] if values else None
            elif 'exports' in top_frame:
                result = top_frame['exports'].value
            elif current is not previous:
                result = current
            else:
                result = None
            self.cache[name] = result
        except LuaError:
            if interp.debug_level >= 1:
                interp.debug(f"require '{name}': failed")
            raise
        finally:
            self.loading.discard(name)

        if interp.debug_level >= 1:
            interp.debug(f"require '{name}': cached")
        return result
