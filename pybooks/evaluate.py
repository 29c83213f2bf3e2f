"""Evaluate embedded expressions and write their outputs to the cache.

All expressions run in one ``Environment``, in document order, so a block can
use names defined by any block before it, also in earlier documents. Nothing
is sandboxed.
"""

import ast
import linecache
import logging
import os
import tempfile
import traceback
from collections import namedtuple
from pathlib import Path

from . import paths
from .outputs import code_block, convert_output

# Evaluated expressions show up in tracebacks as "<pybooks-expr-N>", with N
# counting the runs of an environment.
EXPR_FILENAME_PREFIX = "<pybooks-expr"
PACKAGE_DIR = Path(__file__).resolve().parent
# Number of frames below the expression's own frame kept in error reports.
TRACE_DEPTH = 5

SUCCEEDED = "succeeded"
FAILED = "failed"
INTERRUPTED = "interrupted"

Outcome = namedtuple("Outcome", ["status", "message"])


class Environment:
    """Namespace shared by every expression evaluated during a session."""

    def __init__(self, namespace=None):
        if namespace is None:
            namespace = {"__name__": "__main__"}
        self.namespace = namespace
        self.runs = 0

    def run(self, expr: str):
        """Execute ``expr`` and return the value of its last expression.

        Like a notebook cell, a trailing assignment or other statement gives
        ``None``.
        """
        self.runs += 1
        filename = f"{EXPR_FILENAME_PREFIX}-{self.runs}>"
        # Functions defined here may fail during a later run, so every run
        # keeps its own source lines for the tracebacks.
        lines = expr.splitlines(keepends=True)
        linecache.cache[filename] = (len(expr), None, lines, filename)
        module = ast.parse(expr, filename=filename, mode="exec")
        last = None
        if module.body and isinstance(module.body[-1], ast.Expr):
            last = ast.Expression(module.body.pop().value)
        exec(compile(module, filename, "exec"), self.namespace)
        if last is None:
            return None
        return eval(compile(last, filename, "eval"), self.namespace)


_session = None


def session_environment():
    """Return the environment that lives as long as this process."""
    global _session
    if _session is None:
        _session = Environment()
    return _session


def write_atomic(path, text):
    """Write ``text`` to ``path`` completely or not at all."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=".", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fp:
            fp.write(text)
        os.replace(tmp, path)
    except BaseException:
        os.unlink(tmp)
        raise


def newlines(out):
    # Pandoc sometimes needs blank lines around the output to parse it.
    return f"\n{out}\n"


def indent(markdown, indentation):
    spaces = " " * indentation
    return "\n".join(spaces + line for line in markdown.split("\n"))


def render(env, userexpr) -> str:
    """Evaluate ``userexpr`` in ``env`` and return the Markdown to cache."""
    expr = userexpr.expr
    path = paths.escape_expr(expr)
    out = env.run(expr)
    markdown = newlines(convert_output(expr, path, out))
    if userexpr.indentation > 0:
        markdown = indent(markdown, userexpr.indentation)
    return markdown


def evaluate_and_write(env, userexpr):
    markdown = render(env, userexpr)
    write_atomic(paths.escape_expr(userexpr.expr), markdown)


def evaluate_function(func):
    """Call ``func`` without arguments and cache its output as ``name()``."""
    expr = f"{func.__name__}()"
    path = paths.escape_expr(expr)
    out = func()
    write_atomic(path, newlines(convert_output(expr, path, out)))


def _in_package(filename):
    return PACKAGE_DIR in Path(filename).resolve().parents


def clean_stacktrace(exc) -> str:
    """Return the traceback of ``exc`` from the evaluated expression down.

    Frames of pyBooks itself are dropped and at most ``TRACE_DEPTH`` deeper
    frames are kept.
    """
    frames = traceback.extract_tb(exc.__traceback__)
    for i, frame in enumerate(frames):
        if frame.filename.startswith(EXPR_FILENAME_PREFIX):
            start = i
            break
    else:
        # Failed before the expression ran, for example while compiling it.
        frames = [f for f in frames if not _in_package(f.filename)]
        start = 0
    kept = frames[start : start + 1 + TRACE_DEPTH]
    lines = ["Traceback (most recent call last):\n"]
    lines += traceback.format_list(kept)
    lines.append(" [...]\n")
    lines += traceback.format_exception_only(type(exc), exc)
    return "".join(lines).rstrip("\n")


def report_error(userexpr, exc, callpath, block_number) -> str:
    """Log the failure and write it to the cache entry of ``userexpr``."""
    expr = userexpr.expr
    stacktrace = clean_stacktrace(exc)
    msg = (
        f'Failed to run block {block_number} in "{callpath}".\n'
        f"Code:\n{expr}\n\nDetails:\n{stacktrace}\n"
    )
    logging.error(msg)
    write_atomic(paths.escape_expr(expr), code_block(msg))
    return msg


def evaluate_include(env, userexpr, fail_on_error, callpath, block_number):
    """Evaluate one expression and return its ``Outcome``.

    With ``fail_on_error`` exceptions propagate to the caller. Otherwise a
    failure is written to the cache in place of the output.
    """
    if fail_on_error:
        evaluate_and_write(env, userexpr)
        return Outcome(SUCCEEDED, None)
    try:
        evaluate_and_write(env, userexpr)
    except KeyboardInterrupt:
        # newline to end the progress line
        print()
        print(
            "Process was stopped by a terminal interrupt (CTRL+C)", flush=True
        )
        return Outcome(INTERRUPTED, None)
    except Exception as e:
        print()
        msg = report_error(userexpr, e, callpath, block_number)
        return Outcome(FAILED, msg)
    return Outcome(SUCCEEDED, None)
