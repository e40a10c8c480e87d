"""Cooperative coroutine scheduler.

Guest code runs inside Python generators: the executor, the call engine
and every native that can call back into guest code are generators
chained with ``yield from``. A coroutine's body is one such generator
chain. ``coroutine.yield`` yields a `YieldRequest` that travels up the
chain to `CoroutineScheduler.resume`, which drives the coroutine's
generator with ``send`` and therefore regains control exactly at the
yield point. Resuming sends the new arguments back down the chain, where
they become the results of the ``coroutine.yield`` call.

Each coroutine owns an execution context (scope stack and call frames);
resume and yield swap the interpreter's current context wholesale, so
only one logical context is ever running.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, List, Optional, Tuple

from .builtin_function import BuiltinFunction
from .errors import LuaError, CoroutineError, StackOverflow
from .types import is_callable, type_name


class CoroutineStatus(Enum):
    SUSPENDED = 'suspended'
    RUNNING = 'running'
    DEAD = 'dead'


class YieldRequest:
    """Travels up the generator chain from ``coroutine.yield`` to ``resume``."""
    __slots__ = ('values',)

    def __init__(self, values: List[Any]):
        self.values = values


class Coroutine:
    lua_type = 'thread'

    def __init__(self, func: Any):
        self.func = func
        self.status = CoroutineStatus.SUSPENDED
        self.context = None
        self.generator = None
        # values exchanged at the last resume/yield boundary
        self.transfer: List[Any] = []

    def __repr__(self) -> str:
        return f"thread: 0x{id(self):08x}"


class CoroutineScheduler:
    def __init__(self, interpreter):
        self.interp = interpreter

    def create(self, func: Any) -> Coroutine:
        if not is_callable(func):
            raise CoroutineError(f"bad argument #1 to 'create' (function expected, got {type_name(func)})")
        co = Coroutine(func)
        if self.interp.debug_level >= 1:
            self.interp.debug(f"coroutine {co!r} created")
        return co

    def _transition(self, co: Coroutine, status: CoroutineStatus) -> None:
        if self.interp.debug_level >= 1:
            self.interp.debug(f"coroutine {co!r} {co.status.value} -> {status.value}")
        co.status = status

    def resume(self, co: Coroutine, args: List[Any]) -> Tuple[bool, List[Any]]:
        """Run `co` until it yields, returns or fails.

        Returns ``(True, values)`` for a yield or a normal return and
        ``(False, [error])`` when the body raised or `co` cannot be resumed.
        A failing coroutine never unwinds the resumer.
        """
        if co.status is CoroutineStatus.DEAD:
            return False, ['cannot resume dead coroutine']
        if co.status is CoroutineStatus.RUNNING:
            return False, ['cannot resume non-suspended coroutine']
        interp = self.interp
        previous = interp.context
        if co.generator is None:
            co.context = interp.new_context(co)
            co.generator = interp.invoke(co.func, list(args))
            send_value = None
        else:
            send_value = list(args)
        co.transfer = list(args)
        self._transition(co, CoroutineStatus.RUNNING)
        interp.context = co.context
        try:
            request = co.generator.send(send_value)
        except StopIteration as stop:
            self._finish(co)
            co.transfer = list(stop.value or [])
            return True, co.transfer
        except LuaError as err:
            self._finish(co)
            co.transfer = [err.value]
            return False, co.transfer
        except RecursionError:
            self._finish(co)
            co.transfer = [StackOverflow('stack overflow').value]
            return False, co.transfer
        finally:
            interp.context = previous
        self._transition(co, CoroutineStatus.SUSPENDED)
        co.transfer = request.values
        return True, request.values

    def _finish(self, co: Coroutine) -> None:
        self._transition(co, CoroutineStatus.DEAD)
        co.generator = None
        co.context = None

    def yield_values(self, values: List[Any]):
        """Suspend the running coroutine; evaluates to the next resume's arguments."""
        if self.interp.context.coroutine is None:
            raise CoroutineError('attempt to yield from outside a coroutine')
        resumed = yield YieldRequest(list(values))
        return resumed

    def status(self, co: Coroutine) -> str:
        """Status as reported to guest code.

        A coroutine that is running but has resumed another one is
        reported as ``normal``.
        """
        if co.status is CoroutineStatus.RUNNING and co is not self.interp.context.coroutine:
            return 'normal'
        return co.status.value

    def running(self) -> Optional[Coroutine]:
        return self.interp.context.coroutine

    def is_yieldable(self) -> bool:
        return self.interp.context.coroutine is not None

    def close(self, co: Coroutine) -> List[Any]:
        """Kill a suspended coroutine, unwinding its pending frames."""
        if co.status is CoroutineStatus.RUNNING:
            raise CoroutineError('cannot close a running coroutine')
        if co.status is CoroutineStatus.SUSPENDED:
            if co.generator is not None:
                co.generator.close()
            self._finish(co)
        return [True]

    def wrap(self, func: Any) -> BuiltinFunction:
        co = self.create(func)

        def resume_wrapped(args: List[Any]) -> List[Any]:
            resumable = co.status is CoroutineStatus.SUSPENDED
            ok, values = self.resume(co, args)
            if not ok:
                if not resumable:
                    raise CoroutineError(values[0])
                # the body's own error, already positioned
                raise LuaError(values[0], positioned=True)
            return values

        return BuiltinFunction('wrap', 0, resume_wrapped)
