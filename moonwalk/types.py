"""Runtime value model for moonwalk.

Guest values map onto Python objects as follows:

========== =========================================
nil        ``None``
boolean    ``bool``
number     ``float`` (every number is a double)
string     ``str``
table      :class:`LuaTable`
function   :class:`LuaFunction` or ``BuiltinFunction``
thread     ``Coroutine`` (see :mod:`moonwalk.coroutines`)
userdata   :class:`UserData`
========== =========================================

The helpers here implement truthiness, type names, number/string
coercions and the default (metamethod-free) string rendering of values.
"""

from __future__ import annotations

import math
import re
from typing import Any, Dict, List, Optional, Tuple

from .errors import IndexingError


# Booleans are stored under a tagged key so that ``t[true]`` and ``t[1]``
# stay distinct even though ``True == 1`` in Python.
_BOOL_TAG = '\x00bool'


def _normalize_key(key: Any) -> Any:
    if key is True or key is False:
        return (_BOOL_TAG, key)
    if type(key) is int:
        return float(key)
    return key


def _denormalize_key(key: Any) -> Any:
    if type(key) is tuple:
        return key[1]
    return key


class LuaTable:
    """A guest table: a hash part plus an optional metatable.

    The table does not distinguish an array part. The border used by the
    length operator is found by scanning integer keys from 1 once, then
    kept up to date by `set`.
    """
    lua_type = 'table'
    __slots__ = ('hash', 'metatable', '_order', '_positions', '_border', '__weakref__')

    def __init__(self, hash: Optional[Dict[Any, Any]] = None, metatable: Optional['LuaTable'] = None):
        self.hash: Dict[Any, Any] = {}
        self.metatable = metatable
        self._order: Optional[List[Any]] = None
        self._positions: Dict[Any, int] = {}
        # 1.._border are all present and _border + 1 is absent; None until first needed
        self._border: Optional[int] = None
        if hash:
            for key, value in hash.items():
                self.set(key, value)

    @classmethod
    def from_list(cls, items: List[Any]) -> 'LuaTable':
        table = cls()
        for i, item in enumerate(items, 1):
            if item is not None:
                table.hash[float(i)] = item
        return table

    def get(self, key: Any) -> Any:
        """Raw read. Missing keys (and nil/NaN keys) read as nil."""
        if key is True or key is False:
            key = (_BOOL_TAG, key)
        try:
            return self.hash.get(key)
        except TypeError:
            return None

    def set(self, key: Any, value: Any) -> None:
        """Raw write. Assigning nil removes the key."""
        if key is None:
            raise IndexingError('table index is nil')
        if type(key) is float and key != key:
            raise IndexingError('table index is NaN')
        key = _normalize_key(key)
        border = self._border
        if value is None:
            self.hash.pop(key, None)
            if border is not None and type(key) is float and 1 <= key <= border and key.is_integer():
                self._border = int(key) - 1
            return
        if key not in self.hash:
            self._order = None
        self.hash[key] = value
        if border is not None and key == border + 1:
            self._border = self._scan_border(border + 1)

    def _scan_border(self, n: int) -> int:
        hash = self.hash
        while float(n + 1) in hash:
            n += 1
        return n

    def length(self) -> float:
        """Border of the sequence part: largest n with t[1..n] all non-nil."""
        if self._border is None:
            self._border = self._scan_border(0)
        return float(self._border)

    def next(self, key: Any) -> Optional[Tuple[Any, Any]]:
        """Return the entry after `key` in traversal order, or None at the end."""
        if key is None or self._order is None:
            self._order = list(self.hash)
            self._positions = {k: i for i, k in enumerate(self._order)}
        if key is None:
            start = 0
        else:
            norm = _normalize_key(key)
            position = self._positions.get(norm)
            if position is None:
                raise IndexingError("invalid key to 'next'")
            start = position + 1
        order = self._order
        hash = self.hash
        for i in range(start, len(order)):
            k = order[i]
            if k in hash:
                return _denormalize_key(k), hash[k]
        return None

    def items(self):
        """Iterate over (key, value) pairs with guest-visible keys."""
        for key, value in list(self.hash.items()):
            yield _denormalize_key(key), value

    def sequence(self) -> List[Any]:
        """Values of t[1..#t]."""
        return [self.hash.get(float(i)) for i in range(1, int(self.length()) + 1)]

    def __repr__(self) -> str:
        return f"table: 0x{id(self):08x}"


class LuaFunction:
    """A user closure: the function literal plus its captured bindings."""
    lua_type = 'function'
    __slots__ = ('name', 'params', 'is_vararg', 'body', 'captured', 'chunk')

    def __init__(self, name: str, params: List[str], is_vararg: bool, body: Any,
                 captured: Dict[str, Any], chunk: str = '?'):
        self.name = name
        self.params = params
        self.is_vararg = is_vararg
        self.body = body
        # name -> Cell, shared with the scope the closure was created in
        self.captured = captured
        self.chunk = chunk

    def __repr__(self) -> str:
        return f"function: 0x{id(self):08x}"


class UserData:
    """Opaque host value, optionally with a metatable."""
    lua_type = 'userdata'
    __slots__ = ('value', 'metatable')

    def __init__(self, value: Any, metatable: Optional[LuaTable] = None):
        self.value = value
        self.metatable = metatable

    def __repr__(self) -> str:
        return f"userdata: 0x{id(self):08x}"


def is_truthy(value: Any) -> bool:
    return value is not None and value is not False


def is_callable(value: Any) -> bool:
    return getattr(value, 'lua_type', None) == 'function'


def type_name(value: Any) -> str:
    """Return the guest type name of a runtime value."""
    if value is None:
        return 'nil'
    if value is True or value is False:
        return 'boolean'
    if isinstance(value, (float, int)):
        return 'number'
    if isinstance(value, str):
        return 'string'
    return getattr(value, 'lua_type', 'userdata')


def format_number(value: float) -> str:
    """Render a number the way the guest language prints it."""
    if value != value:
        return 'nan' if math.copysign(1.0, value) > 0 else '-nan'
    if value == math.inf:
        return 'inf'
    if value == -math.inf:
        return '-inf'
    return '%.14g' % value


def to_display(value: Any) -> str:
    """Default string form of a value, ignoring metamethods."""
    if value is None:
        return 'nil'
    if value is True:
        return 'true'
    if value is False:
        return 'false'
    if isinstance(value, (float, int)):
        return format_number(float(value))
    if isinstance(value, str):
        return value
    return f"{type_name(value)}: 0x{id(value):08x}"


_DECIMAL_RE = re.compile(r'^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$')
_HEX_RE = re.compile(r'^([+-]?)0[xX]([0-9a-fA-F]*)(?:\.([0-9a-fA-F]*))?(?:[pP]([+-]?\d+))?$')


def str_to_number(text: str) -> Optional[float]:
    """Parse a numeric string (decimal or hex); None when malformed."""
    text = text.strip()
    if _DECIMAL_RE.match(text):
        return float(text)
    match = _HEX_RE.match(text)
    if match:
        sign, whole, frac, exp = match.groups()
        if not whole and not frac:
            return None
        value = float(int(whole or '0', 16))
        if frac:
            value += int(frac, 16) / (16 ** len(frac))
        if exp:
            value = math.ldexp(value, int(exp))
        return -value if sign == '-' else value
    return None


def to_number(value: Any) -> Optional[float]:
    """Coerce a value to a number for arithmetic; None if not convertible."""
    if type(value) is float:
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        return float(value)
    if isinstance(value, str):
        return str_to_number(value)
    return None


def to_integer(value: float) -> Optional[int]:
    """Exact integer representation of a float, or None."""
    if value != value or value in (math.inf, -math.inf):
        return None
    if value != math.floor(value):
        return None
    return int(value)


def to_lua(value: Any) -> Any:
    """Normalise a host value for the guest (ints become floats)."""
    if isinstance(value, int) and not isinstance(value, bool):
        return float(value)
    return value
