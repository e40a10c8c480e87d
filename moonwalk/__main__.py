"""CLI entry point for the moonwalk interpreter.

Usage:
    python -m moonwalk [-v|-vv|-vvv|-vvvv] [-I DIR]... [--max-depth N] [--strict] <program_file> [args...]

Options:
  -v            Increase debug verbosity (can be repeated)
  -I DIR        Add DIR to the module search path (can be repeated)
  --max-depth   Maximum depth of nested guest calls
  --strict      Treat reads and writes of undeclared globals as errors

Debug information is written to `debug.txt` in the current directory when
verbosity is greater than zero. The directory of the program file is added
to the module search path so that `require` finds modules next to it.
"""

import argparse
import sys
from pathlib import Path

from .errors import LuaError, LuaSyntaxError
from .interpreter import Interpreter


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog='moonwalk', description="moonwalk language interpreter")
    parser.add_argument('-v', action='count', default=0, help='increase debug verbosity (can be repeated)')
    parser.add_argument('-I', dest='include', action='append', default=[], metavar='DIR',
                        help='add a directory to the module search path')
    parser.add_argument('--max-depth', type=int, default=200, help='maximum nested call depth')
    parser.add_argument('--strict', action='store_true', help='undeclared globals are errors')
    parser.add_argument('program', help='program file (.lua) to execute')
    parser.add_argument('args', nargs='*', help='arguments passed to the program as ...')
    args = parser.parse_args(argv)

    program_file = Path(args.program)
    if not program_file.exists():
        print(f"Error: file {program_file} not found", file=sys.stderr)
        sys.exit(1)

    interpreter = Interpreter(debug_level=args.v, max_call_depth=args.max_depth, strict_globals=args.strict)
    interpreter.add_module_search_path(program_file.parent)
    for directory in args.include:
        interpreter.add_module_search_path(directory)
    try:
        interpreter.run_file(program_file, args.args)
    except LuaSyntaxError as e:
        print(f"Syntax error: {e}", file=sys.stderr)
        sys.exit(1)
    except LuaError as e:
        print(f"Runtime error: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        interpreter.close()


if __name__ == '__main__':
    main()
