"""Standard library natives installed into the global frame."""

from .base import populate_base_library
from .coroutinelib import populate_coroutine_library
from .mathlib import populate_math_library
from .stringlib import populate_string_library
from .tablelib import populate_table_library


def install_stdlib(interp) -> None:
    g = interp.globals
    for name, value in populate_base_library(interp).items():
        g.set(name, value)
    g.set('_G', g)
    g.set('_VERSION', 'Lua 5.4')
    g.set('string', populate_string_library(interp))
    g.set('math', populate_math_library(interp))
    table_lib = populate_table_library(interp)
    g.set('table', table_lib)
    g.set('unpack', table_lib.get('unpack'))
    g.set('coroutine', populate_coroutine_library(interp))
