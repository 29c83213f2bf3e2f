"""Evaluate the ``py`` blocks of documents and fill the output cache."""

import logging
import os
import queue
from collections import namedtuple
from pathlib import Path

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from . import build, paths
from .command_registry import register_command
from .config import inputs
from .evaluate import (
    FAILED,
    INTERRUPTED,
    SUCCEEDED,
    evaluate_include,
    session_environment,
)
from .extract import ExtractionParseError, extract_expr

ExprPosition = namedtuple(
    "ExprPosition", ["path", "userexpr", "block_number"]
)


def included_expressions(documents):
    """Return every expression of ``documents`` with its 1-based block number.

    Documents keep the given order; within a document the order is the one
    of ``extract_expr``.
    """
    exprs = []
    for path in documents:
        text = Path(path).read_text(encoding="utf-8")
        for block_number, userexpr in enumerate(extract_expr(text), start=1):
            exprs.append(ExprPosition(Path(path), userexpr, block_number))
    return exprs


def print_progress(position, i, n):
    expr = position.userexpr.expr.replace("\n", " ")
    print(
        f"{paths.callpath(position.path)} block {position.block_number}"
        f" ({i} / {n}): {expr}",
        flush=True,
    )


def print_rerun_hint(position):
    name = Path(paths.callpath(position.path)).with_suffix("").as_posix()
    print(
        "To re-run the code block that threw the error, use\n"
        f'    gen("{name}", {position.block_number})\n'
        "or\n"
        f"    pybooks gen {name} --block-number {position.block_number}",
        flush=True,
    )


def run_render(render, project):
    print("Updating html", flush=True)
    try:
        render(project=project)
    except KeyboardInterrupt:
        return INTERRUPTED
    except Exception:
        # The outputs are cached already; only the page is out of date.
        logging.exception("Failed to update HTML")
    return SUCCEEDED


def gen(
    documents=None,
    block_number=None,
    *,
    call_html=True,
    fail_on_error=False,
    continue_on_error=False,
    project="default",
    env=None,
    progress=print_progress,
    render=None,
):
    """Evaluate the expressions in ``documents`` and write their outputs.

    ``documents`` is a document name such as ``"index"`` (for
    ``contents/index.md``), a path, or a list of those; by default all
    documents of ``project``. With ``block_number`` only that block of the
    single given document runs.

    Evaluation stops at the first failing block unless ``continue_on_error``
    is set. With ``fail_on_error`` the exception is raised instead. After a
    run without failures ``render`` (``build.html`` by default) updates the
    site when ``call_html`` is set.

    Returns ``"succeeded"``, ``"failed"`` or ``"interrupted"``.
    """
    if documents is None:
        documents = inputs(project)
    elif isinstance(documents, (str, os.PathLike)):
        documents = [documents]
    documents = [paths.expand_path(p) for p in documents]
    if block_number is not None and len(documents) != 1:
        raise ValueError(
            "Expected exactly one path when using `block_number`, got"
            f" {len(documents)}"
        )
    if env is None:
        env = session_environment()
    if render is None:
        render = build.html

    paths.GENERATED_DIR.mkdir(parents=True, exist_ok=True)
    exprs = included_expressions(documents)
    if block_number is not None:
        exprs = [e for e in exprs if e.block_number == block_number]
        if not exprs:
            logging.warning(
                f"{documents[0]} has no block with number {block_number}"
            )

    n = len(exprs)
    failed = False
    for i, position in enumerate(exprs, start=1):
        progress(position, i, n)
        outcome = evaluate_include(
            env,
            position.userexpr,
            fail_on_error,
            paths.callpath(position.path),
            position.block_number,
        )
        if outcome.status == INTERRUPTED:
            return INTERRUPTED
        if outcome.status == FAILED:
            print_rerun_hint(position)
            failed = True
            if not continue_on_error:
                return FAILED
    if failed:
        return FAILED
    if call_html:
        return run_render(render, project)
    return SUCCEEDED


@register_command(
    "Evaluate the py blocks and cache their outputs",
    help={
        "documents": (
            "Document names (index for contents/index.md); all by default"
        ),
        "block_number": "Only run this block of the single given document",
        "no_html": "Do not rebuild the HTML afterwards",
        "fail_on_error": "Raise the exception of a failing block",
        "continue_on_error": "Evaluate the remaining blocks after a failure",
        "project": "Project section of config.yml",
    },
    types={"block_number": int},
    name="gen",
)
def gen_command(
    documents=(),
    block_number=None,
    no_html=False,
    fail_on_error=False,
    continue_on_error=False,
    project="default",
):
    return gen(
        list(documents) or None,
        block_number,
        call_html=not no_html,
        fail_on_error=fail_on_error,
        continue_on_error=continue_on_error,
        project=project,
    )


class ContentsHandler(FileSystemEventHandler):
    """Call ``callback`` when a Markdown file changes."""

    def __init__(self, callback):
        self.callback = callback

    def _changed(self, event):
        if event.is_directory or not str(event.src_path).endswith(".md"):
            return
        self.callback()

    def on_modified(self, event):
        self._changed(event)

    def on_created(self, event):
        self._changed(event)


def entr_gen(path, block_number=None, **kwargs):
    """Run ``gen(path, block_number, **kwargs)`` now and whenever a document
    in ``contents/`` changes, until interrupted."""

    def run():
        try:
            gen(path, block_number, **kwargs)
        except ExtractionParseError as e:
            # keep watching so the typo can be fixed
            logging.error(str(e))

    run()
    # gen runs on the main thread, where CTRL+C can interrupt it.
    changes = queue.Queue()
    observer = Observer()
    observer.schedule(
        ContentsHandler(lambda: changes.put(True)),
        path=str(paths.CONTENTS_DIR),
        recursive=True,
    )
    observer.start()
    try:
        while True:
            try:
                changes.get(timeout=1)
            except queue.Empty:
                continue
            # one run for a burst of saves
            while not changes.empty():
                changes.get_nowait()
            run()
    except KeyboardInterrupt:
        observer.stop()
    observer.join()


@register_command(
    "Re-run gen whenever a document in contents/ changes",
    help={
        "path": "Document name, for example index",
        "block_number": "Only run this block of the document",
        "no_html": "Do not rebuild the HTML after each run",
        "project": "Project section of config.yml",
    },
    types={"block_number": int},
)
def watch(path, block_number=None, no_html=False, project="default"):
    entr_gen(path, block_number, call_html=not no_html, project=project)
