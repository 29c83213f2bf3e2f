import threading

import pytest

from pybooks import generate
from pybooks.evaluate import FAILED, INTERRUPTED, SUCCEEDED, Environment
from pybooks.extract import ExtractionParseError
from pybooks.generate import gen, included_expressions
from pybooks.paths import escape_expr

THREE_BLOCKS = (
    "```py\nfirst = 1\nfirst\n```\n\n"
    "```py\nmissing_name + 1\n```\n\n"
    "```py\nthird = 3\nthird\n```\n"
)


def quiet(position, i, n):
    return None


def test_included_expressions(write_doc):
    a = write_doc("a", "```py\n1\n```\nand `py 2`\n")
    b = write_doc("b", "Start `py 3` and `py 4`\n")
    exprs = included_expressions([a, b])
    found = [(e.path.name, e.userexpr.expr, e.block_number) for e in exprs]
    assert found == [
        ("a.md", "1", 1),
        ("a.md", "2", 2),
        ("b.md", "3", 1),
        ("b.md", "4", 2),
    ]


def test_bindings_are_shared_across_documents(write_doc):
    write_doc("setup", "```py\nbase = 41\n```\n")
    write_doc("use", "The answer is `py base + 1`.\n")
    status = gen(
        ["setup", "use"], call_html=False, env=Environment(), progress=quiet
    )
    assert status == SUCCEEDED
    assert escape_expr("base + 1").read_text() == "\n42\n"


def test_failure_stops_the_run(write_doc, capsys):
    write_doc("doc", THREE_BLOCKS)
    env = Environment()
    status = gen("doc", call_html=False, env=env, progress=quiet)
    assert status == FAILED
    assert escape_expr("first = 1\nfirst").read_text() == "\n1\n"
    failure = escape_expr("missing_name + 1").read_text()
    assert 'Failed to run block 2 in "doc.md"' in failure
    assert "missing_name + 1" in failure
    assert "NameError" in failure
    assert not escape_expr("third = 3\nthird").exists()
    assert 'gen("doc", 2)' in capsys.readouterr().out


def test_rerun_single_block(write_doc):
    write_doc("doc", THREE_BLOCKS)
    env = Environment()
    assert gen("doc", call_html=False, env=env, progress=quiet) == FAILED
    env.namespace["missing_name"] = 9
    seen = []

    def record(position, i, n):
        seen.append((position.block_number, i, n))

    status = gen("doc", 2, call_html=False, env=env, progress=record)
    assert status == SUCCEEDED
    assert seen == [(2, 1, 1)]
    assert escape_expr("missing_name + 1").read_text() == "\n10\n"
    assert not escape_expr("third = 3\nthird").exists()


def test_block_number_needs_one_document(write_doc):
    write_doc("a", "`py 1`\n")
    write_doc("b", "`py 2`\n")
    with pytest.raises(ValueError):
        gen(["a", "b"], 1, call_html=False, progress=quiet)


def test_continue_on_error(write_doc):
    write_doc("doc", THREE_BLOCKS)
    status = gen(
        "doc",
        call_html=False,
        continue_on_error=True,
        env=Environment(),
        progress=quiet,
    )
    assert status == FAILED
    assert escape_expr("third = 3\nthird").read_text() == "\n3\n"


def test_fail_on_error_raises(write_doc):
    write_doc("doc", THREE_BLOCKS)
    with pytest.raises(NameError):
        gen(
            "doc",
            call_html=False,
            fail_on_error=True,
            env=Environment(),
            progress=quiet,
        )
    assert not escape_expr("missing_name + 1").exists()


def test_interrupt(write_doc):
    write_doc("doc", "```py\nraise KeyboardInterrupt\n```\nthen `py 1 + 1`\n")
    rendered = []
    status = gen(
        "doc",
        env=Environment(),
        progress=quiet,
        render=lambda project: rendered.append(project),
    )
    assert status == INTERRUPTED
    assert not escape_expr("1 + 1").exists()
    assert rendered == []


def test_parse_error_aborts_before_evaluation(write_doc):
    write_doc("good", "`py 1 + 1`\n")
    write_doc("bad", "```py\ndef broken(:\n```\n")
    with pytest.raises(ExtractionParseError):
        gen(["good", "bad"], call_html=False, progress=quiet)
    assert not escape_expr("1 + 1").exists()


def test_render_after_success(write_doc):
    write_doc("doc", "`py 1 + 1`\n")
    rendered = []
    status = gen(
        "doc",
        project="web",
        env=Environment(),
        progress=quiet,
        render=lambda project: rendered.append(project),
    )
    assert status == SUCCEEDED
    assert rendered == ["web"]


def test_render_for_empty_document(write_doc):
    write_doc("doc", "No code here.\n")
    rendered = []
    status = gen(
        "doc", progress=quiet, render=lambda project: rendered.append(project)
    )
    assert status == SUCCEEDED
    assert rendered == ["default"]


def test_render_failure_does_not_fail_gen(write_doc, caplog):
    write_doc("doc", "`py 1 + 1`\n")

    def broken_render(project):
        raise RuntimeError("pandoc exploded")

    status = gen(
        "doc", env=Environment(), progress=quiet, render=broken_render
    )
    assert status == SUCCEEDED
    assert escape_expr("1 + 1").read_text() == "\n2\n"
    assert "Failed to update HTML" in caplog.text


def test_no_render_after_failure(write_doc):
    write_doc("doc", THREE_BLOCKS)
    rendered = []
    status = gen(
        "doc",
        env=Environment(),
        progress=quiet,
        render=lambda project: rendered.append(project),
    )
    assert status == FAILED
    assert rendered == []


def test_documents_from_config(project, write_doc):
    (project / "config.yml").write_text(
        "projects:\n  default:\n    contents: [chapter]\n"
    )
    write_doc("index", "```py\nstart = 1\n```\n")
    write_doc("chapter", "Next: `py start + 1`\n")
    status = gen(call_html=False, env=Environment(), progress=quiet)
    assert status == SUCCEEDED
    assert escape_expr("start + 1").read_text() == "\n2\n"


def test_default_progress(write_doc, capsys):
    write_doc("doc", "```py\nx = 1\nx\n```\n")
    gen("doc", call_html=False, env=Environment())
    out = capsys.readouterr().out
    assert "doc.md block 1 (1 / 1): x = 1 x" in out


def test_contents_handler_filters_events():
    calls = []
    handler = generate.ContentsHandler(lambda: calls.append(1))

    class Event:
        def __init__(self, src_path, is_directory=False):
            self.src_path = src_path
            self.is_directory = is_directory

    handler.on_modified(Event("contents/a.md"))
    handler.on_created(Event("contents/b.md"))
    handler.on_modified(Event("contents/.a.md.swp"))
    handler.on_modified(Event("contents/sub", is_directory=True))
    assert calls == [1, 1]


class FakeObserver:
    """Observer that reports a burst of saves as soon as it starts."""

    def __init__(self, saves=1):
        self.saves = saves
        self.stopped = False
        self.joined = False

    def schedule(self, handler, path=".", recursive=False):
        self.handler = handler
        self.path = path

    def start(self):
        for _ in range(self.saves):
            self.handler.callback()

    def stop(self):
        self.stopped = True

    def join(self):
        self.joined = True


def test_entr_gen_runs_on_main_thread_until_interrupt(project, monkeypatch):
    observer = FakeObserver(saves=3)
    calls = []

    def fake_gen(*args, **kwargs):
        calls.append((args, kwargs, threading.current_thread()))
        if len(calls) == 2:
            raise KeyboardInterrupt

    monkeypatch.setattr(generate, "Observer", lambda: observer)
    monkeypatch.setattr(generate, "gen", fake_gen)

    generate.entr_gen("index", 2, call_html=False)

    # the first run plus one for the burst of saves
    assert [c[:2] for c in calls] == [(("index", 2), {"call_html": False})] * 2
    assert all(c[2] is threading.main_thread() for c in calls)
    assert observer.path == "contents"
    assert observer.stopped and observer.joined


def test_entr_gen_survives_parse_errors(project, monkeypatch, caplog):
    observer = FakeObserver()
    calls = []

    def broken_gen(*args, **kwargs):
        calls.append(args)
        if len(calls) == 2:
            raise KeyboardInterrupt
        raise ExtractionParseError("Exception occurred when parsing `1 +`")

    monkeypatch.setattr(generate, "Observer", lambda: observer)
    monkeypatch.setattr(generate, "gen", broken_gen)

    generate.entr_gen("index")
    assert "`1 +`" in caplog.text
    assert len(calls) == 2
    assert observer.stopped
