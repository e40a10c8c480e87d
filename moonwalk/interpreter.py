"""Interpreter for the moonwalk language.

This module holds the executor that walks the AST produced by
:mod:`moonwalk.parser`, the call/return engine, and the host-facing
`Interpreter` API. The executor is written as a family of generators
(`execute_block`, `execute`, `evaluate`, `invoke`, ...) chained with
``yield from``: normal execution never yields, but a ``coroutine.yield``
deep inside a call chain can suspend the whole chain and hand control
back to the scheduler (see :mod:`moonwalk.coroutines`).

Statement execution returns ``None`` for normal completion or a control
signal from :mod:`moonwalk.signals`.
"""

from __future__ import annotations

import gc
import inspect
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from . import metatables
from .ast import (
    Block, LocalStmt, Assign, ExprStmt, DoStmt, WhileStmt, RepeatStmt, IfStmt,
    NumericFor, GenericFor, LocalFunction, ReturnStmt, BreakStmt, GotoStmt,
    LabelStmt, Literal, Vararg, Ident, Index, Call, MethodCall, Paren, TableLit,
    FunctionExpr, BinaryOp, UnaryOp, Node, MULTI_VALUE_NODES,
)
from .builtin_function import BuiltinFunction
from .coroutines import Coroutine, CoroutineScheduler
from .environment import Cell, ScopeManager
from .errors import (
    LuaError, ArityMismatch, BreakOutsideLoop, CallError, CoroutineError,
    LuaTypeError, StackOverflow, UndefinedLabel,
)
from .module_loader import ModuleLoader
from .parser import parse_program
from .signals import BREAK, GotoSignal, ReturnSignal, TailCall
from .std import install_stdlib
from .types import LuaTable, LuaFunction, UserData, is_callable, type_name, to_display, to_lua


class CallFrame:
    """Bookkeeping for one active guest call (or top-level chunk)."""
    __slots__ = ('func', 'varargs', 'chunk', 'line', 'nresults')

    def __init__(self, func: Optional[LuaFunction], varargs: List[Any], chunk: str, nresults: int = -1):
        self.func = func
        self.varargs = varargs
        self.chunk = chunk
        self.line = 0
        # number of results the caller expects; -1 means all of them
        self.nresults = nresults


class ExecutionContext:
    """Scope stack and call frames of one thread of execution.

    The main program has one context and every coroutine gets its own; all
    of them share the interpreter's global table.
    """
    def __init__(self, globals_table: LuaTable, strict: bool = False, coroutine: Optional[Coroutine] = None):
        self.scopes = ScopeManager(globals_table, strict)
        self.frames: List[CallFrame] = []
        self.coroutine = coroutine


def adjust(values: List[Any], n: int) -> List[Any]:
    """Pad with nils or truncate `values` to exactly `n` entries."""
    if n < 0 or len(values) == n:
        return values
    if len(values) > n:
        return values[:n]
    return values + [None] * (n - len(values))


def native_results(result: Any) -> List[Any]:
    if result is None:
        return []
    if isinstance(result, list):
        return result
    if isinstance(result, tuple):
        return list(result)
    return [result]


class Interpreter:
    """Core interpreter that executes moonwalk ASTs."""
    def __init__(self, debug_level: int = 0, debug_file: Optional[str] = 'debug.txt',
                 max_call_depth: int = 200, strict_globals: bool = False,
                 search_paths: Optional[List[str]] = None, stdlib: bool = True):
        self.globals = LuaTable()
        # shared metatable of all strings, installed by the string library
        self.string_meta: Optional[LuaTable] = None
        self.debug_level = debug_level
        self.debug_fp = open(debug_file, 'w', encoding='utf-8') if debug_level > 0 and debug_file else None
        self.max_call_depth = max_call_depth
        self.strict_globals = strict_globals
        self.main_context = ExecutionContext(self.globals, strict_globals)
        self.context = self.main_context
        self.loader = ModuleLoader(self, search_paths)
        self.scheduler = CoroutineScheduler(self)
        # each guest call nests a handful of Python frames
        needed = max_call_depth * 50 + 1000
        if sys.getrecursionlimit() < needed:
            sys.setrecursionlimit(needed)
        if stdlib:
            install_stdlib(self)

    def debug(self, msg: str):
        if self.debug_level > 0:
            if self.debug_fp:
                self.debug_fp.write(msg + '\n')
                self.debug_fp.flush()
            else:
                print(msg)

    def close(self) -> None:
        if self.debug_fp:
            self.debug_fp.close()
            self.debug_fp = None

    def __enter__(self) -> 'Interpreter':
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def new_context(self, coroutine: Optional[Coroutine] = None) -> ExecutionContext:
        return ExecutionContext(self.globals, self.strict_globals, coroutine)

    # Host API

    def run(self, source: Union[str, Block], chunk_name: str = 'main', args=()) -> List[Any]:
        """Execute a chunk (source text or parsed block); returns its return values."""
        block = parse_program(source, chunk_name) if isinstance(source, str) else source
        values, _ = self._drive(self.execute_chunk(block, chunk_name, [to_lua(a) for a in args]))
        return values or []

    def run_file(self, path: Union[str, Path], args=()) -> List[Any]:
        path = Path(path)
        source = path.read_text(encoding='utf-8')
        return self.run(source, str(path), args)

    def call(self, func: Any, args=()) -> List[Any]:
        """Call a guest value from the host and return all of its results."""
        return self._drive(self.invoke(func, [to_lua(a) for a in args]))

    def lookup(self, name: str) -> Any:
        return self.main_context.scopes.lookup(name)

    def define(self, name: str, value: Any) -> None:
        self.main_context.scopes.define(name, to_lua(value))

    def update(self, name: str, value: Any) -> None:
        self.main_context.scopes.update(name, to_lua(value))

    def register(self, name: str, fn, arity: Optional[int] = None) -> BuiltinFunction:
        """Install a native function into the global frame."""
        builtin = BuiltinFunction(name, arity or 0, fn)
        self.globals.set(name, builtin)
        return builtin

    def add_module_search_path(self, path: Union[str, Path]) -> None:
        self.loader.add_search_path(path)

    def _drive(self, gen):
        try:
            gen.send(None)
            while True:
                # a yield reached the host: fail it at the point it was made
                gen.throw(CoroutineError('attempt to yield across a native call boundary'))
        except StopIteration as stop:
            return stop.value

    def collect_garbage(self) -> List[Any]:
        """Mark every heap object reachable from the interpreter's roots.

        Roots are the globals, the string metatable, the module cache and
        every execution context in use. Cycles through tables, metatables
        and closures are followed once.
        """
        reachable: Dict[int, Any] = {}
        pending: List[Any] = [self.globals, self.string_meta]
        pending.extend(self.loader.cache.values())
        contexts = [self.main_context, self.context]
        visited_contexts = set()
        while pending or contexts:
            while contexts:
                ctx = contexts.pop()
                if id(ctx) in visited_contexts:
                    continue
                visited_contexts.add(id(ctx))
                for frame in ctx.scopes.all_frames():
                    pending.extend(cell.value for cell in frame.values())
                for call_frame in ctx.frames:
                    pending.append(call_frame.func)
                    pending.extend(call_frame.varargs)
            if not pending:
                break
            obj = pending.pop()
            if obj is None or isinstance(obj, (bool, float, int, str, tuple)) or id(obj) in reachable:
                continue
            reachable[id(obj)] = obj
            if isinstance(obj, LuaTable):
                for key, value in obj.hash.items():
                    pending.append(key)
                    pending.append(value)
                pending.append(obj.metatable)
            elif isinstance(obj, LuaFunction):
                pending.extend(cell.value for cell in obj.captured.values())
            elif isinstance(obj, Coroutine):
                pending.append(obj.func)
                pending.extend(obj.transfer)
                if obj.context is not None:
                    contexts.append(obj.context)
            elif isinstance(obj, UserData):
                pending.append(obj.metatable)
        if self.debug_level >= 1:
            self.debug(f"collect_garbage: {len(reachable)} reachable objects")
        return list(reachable.values())

    def collect_cycles(self) -> int:
        """Reachability pass plus Python's own cycle collector."""
        self.collect_garbage()
        return gc.collect()

    # Call/return engine

    def execute_chunk(self, block: Block, chunk_name: str, varargs: Optional[List[Any]] = None):
        """Run a top-level block in a fresh scope that only sees globals.

        Returns ``(values, top_frame)`` where `values` is None when the
        chunk did not return, and `top_frame` holds its top-level locals.
        """
        ctx = self.context
        if len(ctx.frames) >= self.max_call_depth:
            raise StackOverflow('stack overflow')
        frame = CallFrame(None, list(varargs or []), chunk_name)
        top: Dict[str, Cell] = {}
        ctx.frames.append(frame)
        ctx.scopes.enter(top)
        try:
            signal = yield from self.execute_block(block, ctx, new_scope=False)
        finally:
            ctx.scopes.leave()
            ctx.frames.pop()
        if signal is None:
            return None, top
        if isinstance(signal, ReturnSignal):
            return signal.values, top
        if isinstance(signal, TailCall):
            values = yield from self.invoke(signal.func, signal.args)
            return values, top
        raise self._break_outside_loop(frame)

    def _break_outside_loop(self, frame: CallFrame) -> LuaError:
        err = BreakOutsideLoop('break outside a loop')
        err.locate(frame.chunk, frame.line)
        return err

    def invoke(self, func: Any, args: List[Any], nresults: int = -1):
        """Call `func` with `args`; evaluates to the list of results.

        A ``return f(...)`` in the callee comes back as a `TailCall`
        signal and is run by this same loop, so tail calls do not nest
        frames. `nresults` >= 0 pads or truncates the results.
        """
        ctx = self.context
        while True:
            if isinstance(func, LuaFunction):
                if len(ctx.frames) >= self.max_call_depth:
                    raise StackOverflow('stack overflow')
                bindings = dict(func.captured)
                params = func.params
                for i, name in enumerate(params):
                    bindings[name] = Cell(args[i] if i < len(args) else None)
                varargs = args[len(params):] if func.is_vararg else []
                frame = CallFrame(func, varargs, func.chunk, nresults)
                if self.debug_level >= 2:
                    self.debug(f"call {func.name} with {len(args)} args (depth {len(ctx.frames) + 1})")
                ctx.frames.append(frame)
                ctx.scopes.enter(bindings)
                try:
                    signal = yield from self.execute_block(func.body, ctx, new_scope=False)
                except RecursionError:
                    raise StackOverflow('stack overflow') from None
                finally:
                    ctx.scopes.leave()
                    ctx.frames.pop()
                if signal is None:
                    results = []
                elif isinstance(signal, ReturnSignal):
                    results = signal.values
                elif isinstance(signal, TailCall):
                    if self.debug_level >= 2:
                        self.debug(f"tail call from {func.name}")
                    func, args = signal.func, signal.args
                    continue
                else:
                    raise self._break_outside_loop(frame)
            elif isinstance(func, BuiltinFunction):
                if len(args) < func.arity:
                    raise ArityMismatch(f"bad argument #{len(args) + 1} to '{func.name}' (value expected)")
                if self.debug_level >= 2:
                    self.debug(f"call builtin {func.name} with {len(args)} args")
                result = func.fn(args)
                if inspect.isgenerator(result):
                    result = yield from result
                results = native_results(result)
            else:
                handler = metatables.get_metamethod(self, func, '__call')
                if handler is None:
                    raise CallError(f"attempt to call a {type_name(func)} value")
                args = [func] + list(args)
                func = handler
                continue
            return adjust(results, nresults)

    def make_closure(self, node: FunctionExpr, ctx: ExecutionContext) -> LuaFunction:
        captured = ctx.scopes.capture(node.free_names)
        func = LuaFunction(node.name, node.params, node.is_vararg, node.body, captured, ctx.frames[-1].chunk)
        if self.debug_level >= 2:
            self.debug(f"define function {node.name} capturing {sorted(captured)}")
        return func

    # Statements

    def execute_block(self, block: Block, ctx: ExecutionContext, new_scope: bool = True):
        scopes = ctx.scopes
        frame = ctx.frames[-1]
        statements = block.statements
        count = len(statements)
        if new_scope:
            scopes.push()
        try:
            i = 0
            while i < count:
                stmt = statements[i]
                frame.line = stmt.line
                signal = yield from self.execute(stmt, ctx)
                if signal is not None:
                    if isinstance(signal, GotoSignal):
                        # only labels in this block's own statement list are visible
                        if signal.label not in block.labels:
                            raise UndefinedLabel(f"no visible label '{signal.label}' for goto")
                        if self.debug_level >= 3:
                            self.debug(f"goto {signal.label}")
                        i = block.labels[signal.label]
                        continue
                    return signal
                i += 1
            return None
        except LuaError as err:
            err.locate(frame.chunk, frame.line)
            raise
        finally:
            if new_scope:
                scopes.pop()

    def execute(self, node: Node, ctx: ExecutionContext):
        if isinstance(node, ExprStmt):
            yield from self.call_expr(node.expr, ctx, 0)
            return None
        if isinstance(node, LocalStmt):
            values = yield from self.evaluate_list(node.values, ctx, len(node.names))
            scopes = ctx.scopes
            for name, value in zip(node.names, values):
                scopes.define(name, value)
            if self.debug_level >= 2:
                self.debug(f"local {', '.join(node.names)} = {', '.join(to_display(v) for v in values)}")
            return None
        if isinstance(node, Assign):
            yield from self.assign(node, ctx)
            return None
        if isinstance(node, IfStmt):
            for condition, body in node.clauses:
                value = yield from self.evaluate(condition, ctx)
                if self.debug_level >= 3:
                    self.debug(f"if condition at line {condition.line}: {to_display(value)}")
                if value is not None and value is not False:
                    return (yield from self.execute_block(body, ctx))
            if node.else_block is not None:
                return (yield from self.execute_block(node.else_block, ctx))
            return None
        if isinstance(node, ReturnStmt):
            return (yield from self.return_signal(node, ctx))
        if isinstance(node, WhileStmt):
            while True:
                value = yield from self.evaluate(node.condition, ctx)
                if self.debug_level >= 3:
                    self.debug(f"while condition at line {node.line}: {to_display(value)}")
                if value is None or value is False:
                    break
                signal = yield from self.execute_block(node.body, ctx)
                if signal is not None:
                    if signal is BREAK:
                        break
                    return signal
            return None
        if isinstance(node, NumericFor):
            return (yield from self.numeric_for(node, ctx))
        if isinstance(node, GenericFor):
            return (yield from self.generic_for(node, ctx))
        if isinstance(node, RepeatStmt):
            scopes = ctx.scopes
            while True:
                # the condition is evaluated inside the body's scope
                scopes.push()
                try:
                    signal = yield from self.execute_block(node.body, ctx, new_scope=False)
                    if signal is None:
                        value = yield from self.evaluate(node.condition, ctx)
                finally:
                    scopes.pop()
                if signal is not None:
                    if signal is BREAK:
                        break
                    return signal
                if self.debug_level >= 3:
                    self.debug(f"until condition at line {node.condition.line}: {to_display(value)}")
                if value is not None and value is not False:
                    break
            return None
        if isinstance(node, DoStmt):
            return (yield from self.execute_block(node.body, ctx))
        if isinstance(node, LocalFunction):
            # bound before the closure is built so the body can recurse
            ctx.scopes.define(node.name, None)
            cell = ctx.scopes.resolve(node.name)
            cell.value = self.make_closure(node.func, ctx)
            return None
        if isinstance(node, BreakStmt):
            return BREAK
        if isinstance(node, GotoStmt):
            return GotoSignal(node.label)
        if isinstance(node, LabelStmt):
            return None
        raise LuaError(f"cannot execute {type(node).__name__}")

    def numeric_for(self, node: NumericFor, ctx: ExecutionContext):
        start = yield from self.evaluate(node.start, ctx)
        stop = yield from self.evaluate(node.stop, ctx)
        step = 1.0
        if node.step is not None:
            step = yield from self.evaluate(node.step, ctx)
        for what, value in (('initial', start), ('limit', stop), ('step', step)):
            if type(value) is not float:
                raise LuaTypeError(f"'for' {what} value must be a number")
        if step == 0:
            raise LuaError("'for' step is zero")
        scopes = ctx.scopes
        i = start
        while (i <= stop) if step > 0 else (i >= stop):
            if self.debug_level >= 3:
                self.debug(f"for {node.var} = {to_display(i)}")
            scopes.push()
            try:
                scopes.define(node.var, i)
                signal = yield from self.execute_block(node.body, ctx, new_scope=False)
            finally:
                scopes.pop()
            if signal is not None:
                if signal is BREAK:
                    break
                return signal
            i += step
        return None

    def generic_for(self, node: GenericFor, ctx: ExecutionContext):
        iterator, state, control = yield from self.evaluate_list(node.exprs, ctx, 3)
        names = node.names
        scopes = ctx.scopes
        while True:
            results = yield from self.invoke(iterator, [state, control], len(names))
            if results[0] is None:
                break
            control = results[0]
            if self.debug_level >= 3:
                self.debug(f"for {', '.join(names)} = {', '.join(to_display(v) for v in results)}")
            scopes.push()
            try:
                for name, value in zip(names, results):
                    scopes.define(name, value)
                signal = yield from self.execute_block(node.body, ctx, new_scope=False)
            finally:
                scopes.pop()
            if signal is not None:
                if signal is BREAK:
                    break
                return signal
        return None

    def return_signal(self, node: ReturnStmt, ctx: ExecutionContext):
        values = node.values
        if len(values) == 1 and isinstance(values[0], (Call, MethodCall)):
            func, args = yield from self.prepare_call(values[0], ctx)
            return TailCall(func, args)
        return ReturnSignal((yield from self.evaluate_list(values, ctx)))

    def assign(self, node: Assign, ctx: ExecutionContext):
        targets = node.targets
        places = []
        for target in targets:
            if isinstance(target, Index):
                obj = yield from self.evaluate(target.target, ctx)
                key = yield from self.evaluate(target.index, ctx)
                places.append((target, obj, key))
            else:
                places.append((target, None, None))
        values = yield from self.evaluate_list(node.values, ctx, len(targets))
        for (target, obj, key), value in zip(places, values):
            if isinstance(target, Ident):
                yield from self.assign_name(target.name, value, ctx)
            elif isinstance(obj, LuaTable) and obj.metatable is None:
                obj.set(key, value)
            else:
                yield from metatables.setindex(self, obj, key, value, self.describe(target.target, ctx))

    def assign_name(self, name: str, value: Any, ctx: ExecutionContext):
        scopes = ctx.scopes
        cell = scopes.resolve(name)
        if cell is not None:
            cell.value = value
            return
        if self.globals.metatable is not None and self.globals.get(name) is None:
            yield from metatables.setindex(self, self.globals, name, value)
            return
        scopes.update(name, value)

    # Expressions

    def evaluate(self, node: Node, ctx: ExecutionContext):
        if isinstance(node, Literal):
            return node.value
        if isinstance(node, Ident):
            cell = ctx.scopes.resolve(node.name)
            if cell is not None:
                return cell.value
            return (yield from self.lookup_global(node.name, ctx))
        if isinstance(node, BinaryOp):
            return (yield from self.binary_op(node, ctx))
        if isinstance(node, Index):
            obj = yield from self.evaluate(node.target, ctx)
            key = yield from self.evaluate(node.index, ctx)
            if isinstance(obj, LuaTable):
                value = obj.get(key)
                if value is not None or obj.metatable is None:
                    return value
            return (yield from metatables.index(self, obj, key, self.describe(node.target, ctx)))
        if isinstance(node, (Call, MethodCall)):
            results = yield from self.call_expr(node, ctx, 1)
            return results[0]
        if isinstance(node, UnaryOp):
            return (yield from self.unary_op(node, ctx))
        if isinstance(node, FunctionExpr):
            return self.make_closure(node, ctx)
        if isinstance(node, TableLit):
            return (yield from self.table_constructor(node, ctx))
        if isinstance(node, Paren):
            return (yield from self.evaluate(node.expr, ctx))
        if isinstance(node, Vararg):
            varargs = self.current_varargs(ctx)
            return varargs[0] if varargs else None
        raise LuaError(f"cannot evaluate {type(node).__name__}")

    def lookup_global(self, name: str, ctx: ExecutionContext):
        value = self.globals.get(name)
        if value is None and self.globals.metatable is not None:
            return (yield from metatables.index(self, self.globals, name))
        if value is None:
            # strict mode raises here
            return ctx.scopes.lookup(name)
        return value

    def current_varargs(self, ctx: ExecutionContext) -> List[Any]:
        frame = ctx.frames[-1]
        if frame.func is not None and not frame.func.is_vararg:
            raise LuaError("cannot use '...' outside a vararg function")
        return frame.varargs

    def evaluate_multi(self, node: Node, ctx: ExecutionContext):
        """All values of a call or ``...``; any other expression gives one."""
        if isinstance(node, (Call, MethodCall)):
            return (yield from self.call_expr(node, ctx, -1))
        if isinstance(node, Vararg):
            return list(self.current_varargs(ctx))
        return [(yield from self.evaluate(node, ctx))]

    def evaluate_list(self, exprs: List[Node], ctx: ExecutionContext, want: int = -1):
        """Evaluate an expression list; the last expression may expand."""
        values: List[Any] = []
        last = len(exprs) - 1
        for i, expr in enumerate(exprs):
            if i == last and isinstance(expr, MULTI_VALUE_NODES):
                values.extend((yield from self.evaluate_multi(expr, ctx)))
            else:
                values.append((yield from self.evaluate(expr, ctx)))
        return adjust(values, want)

    def prepare_call(self, node: Node, ctx: ExecutionContext):
        """Evaluate the callee and arguments of a call expression."""
        if isinstance(node, MethodCall):
            obj = yield from self.evaluate(node.target, ctx)
            func = yield from metatables.index(self, obj, node.name, self.describe(node.target, ctx))
            args = [obj]
            desc = f"method '{node.name}'"
        else:
            func = yield from self.evaluate(node.func, ctx)
            args = []
            desc = None
        args.extend((yield from self.evaluate_list(node.args, ctx)))
        if not is_callable(func) and metatables.get_metamethod(self, func, '__call') is None:
            if desc is None:
                desc = self.describe(node.func, ctx)
            suffix = f" ({desc})" if desc else ''
            raise CallError(f"attempt to call a {type_name(func)} value{suffix}")
        return func, args

    def call_expr(self, node: Node, ctx: ExecutionContext, nresults: int):
        func, args = yield from self.prepare_call(node, ctx)
        return (yield from self.invoke(func, args, nresults))

    def binary_op(self, node: BinaryOp, ctx: ExecutionContext):
        op = node.op
        left = yield from self.evaluate(node.left, ctx)
        # short-circuit: the right operand is only evaluated when needed
        if op == 'and':
            if left is None or left is False:
                return left
            return (yield from self.evaluate(node.right, ctx))
        if op == 'or':
            if left is not None and left is not False:
                return left
            return (yield from self.evaluate(node.right, ctx))
        right = yield from self.evaluate(node.right, ctx)
        if type(left) is float and type(right) is float:
            if op == '+':
                return left + right
            if op == '-':
                return left - right
            if op == '*':
                return left * right
            if op == '==':
                return left == right
            if op == '~=':
                return left != right
            if op == '<':
                return left < right
            if op == '<=':
                return left <= right
            if op == '>':
                return left > right
            if op == '>=':
                return left >= right
        return (yield from self.apply_binary_op(op, left, right))

    def apply_binary_op(self, op: str, a: Any, b: Any):
        if op == '==':
            return (yield from metatables.eq(self, a, b))
        if op == '~=':
            return not (yield from metatables.eq(self, a, b))
        if op == '<':
            return (yield from metatables.lt(self, a, b))
        if op == '>':
            return (yield from metatables.lt(self, b, a))
        if op == '<=':
            return (yield from metatables.le(self, a, b))
        if op == '>=':
            return (yield from metatables.le(self, b, a))
        if op == '..':
            return (yield from metatables.concat(self, a, b))
        return (yield from metatables.arith(self, op, a, b))

    def unary_op(self, node: UnaryOp, ctx: ExecutionContext):
        operand = yield from self.evaluate(node.operand, ctx)
        op = node.op
        if op == 'not':
            return operand is None or operand is False
        if op == '-':
            if type(operand) is float:
                return -operand
            return (yield from metatables.unm(self, operand))
        if op == '#':
            if isinstance(operand, LuaTable) and operand.metatable is None:
                return operand.length()
            return (yield from metatables.length(self, operand, self.describe(node.operand, ctx)))
        if op == '~':
            return (yield from metatables.bnot(self, operand))
        raise LuaError(f"unknown unary operator '{op}'")

    def table_constructor(self, node: TableLit, ctx: ExecutionContext):
        table = LuaTable()
        n = 1
        last = len(node.fields) - 1
        for i, (key, value) in enumerate(node.fields):
            if key is None:
                if i == last and isinstance(value, MULTI_VALUE_NODES):
                    for item in (yield from self.evaluate_multi(value, ctx)):
                        table.set(float(n), item)
                        n += 1
                else:
                    table.set(float(n), (yield from self.evaluate(value, ctx)))
                    n += 1
            else:
                k = yield from self.evaluate(key, ctx)
                v = yield from self.evaluate(value, ctx)
                table.set(k, v)
        return table

    def describe(self, node: Node, ctx: ExecutionContext) -> Optional[str]:
        """Name an expression for error messages, e.g. ``global 'x'``."""
        if isinstance(node, Ident):
            kind = 'local' if ctx.scopes.resolve(node.name) is not None else 'global'
            return f"{kind} '{node.name}'"
        if isinstance(node, Index) and isinstance(node.index, Literal) and isinstance(node.index.value, str):
            return f"field '{node.index.value}'"
        if isinstance(node, MethodCall):
            return f"method '{node.name}'"
        return None


def run_program(source: str, debug_level: int = 0) -> List[Any]:
    """Convenience function to run a moonwalk program from source string."""
    interpreter = Interpreter(debug_level=debug_level)
    try:
        return interpreter.run(source)
    finally:
        interpreter.close()
