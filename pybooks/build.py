"""Combine the documents, embed the cached outputs and run Pandoc."""

import logging
import re
import shutil
import subprocess
import time
from pathlib import Path

from jinja2 import Environment, FileSystemLoader

from . import paths
from .command_registry import register_command
from .config import config, inputs
from .embed import embed_output

# Files in this project directory override the bundled templates.
USER_TEMPLATE_DIR = Path("pandoc")
TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"
PAGE_TEMPLATE = "page.html"
UNRESOLVED_REFERENCE = re.compile(r"<strong>¿([^<]*)\?</strong>")


def template_dirs():
    return [str(USER_TEMPLATE_DIR), str(TEMPLATE_DIR)]


def write_input_markdown(project="default", skip_index=False) -> Path:
    """Embed the outputs into all documents and write them to one file.

    Return the path of that file.
    """
    files = inputs(project)
    if skip_index:
        files = files[1:]
    texts = [embed_output(f.read_text(encoding="utf-8")) for f in files]
    # Blank line so that Pandoc doesn't glue the end of one document to the
    # start of the next.
    text = "\n\n".join(texts)
    if not paths.GENERATED_DIR.is_dir():
        logging.warning(
            f"{paths.GENERATED_DIR} directory doesn't exist. Did you run gen?"
        )
        paths.GENERATED_DIR.mkdir(parents=True)
    markdown_path = paths.GENERATED_DIR / "input.md"
    markdown_path.write_text(text, encoding="utf-8")
    return markdown_path


def ensure_pandoc_available():
    """Make sure pandoc is discoverable on PATH."""
    if shutil.which("pandoc"):
        return
    raise RuntimeError(
        "Pandoc not found. Install it from https://pandoc.org/installing.html"
    )


def ensure_pandoc_crossref():
    """Verify pandoc-crossref is installed for reference handling."""
    if shutil.which("pandoc-crossref"):
        return
    raise RuntimeError(
        "pandoc-crossref not found. Install it from"
        " https://github.com/lierdakil/pandoc-crossref"
    )


def call_pandoc(args) -> str:
    """Run pandoc with ``args`` and return what it wrote to stdout."""
    ensure_pandoc_available()
    if "pandoc-crossref" in args:
        ensure_pandoc_crossref()
    cmd = ["pandoc"] + [str(a) for a in args]
    print(f"Running pandoc on {args[0]}...", flush=True)
    start = time.time()
    try:
        proc = subprocess.run(
            cmd,
            check=True,
            capture_output=True,
            text=True,
            encoding="utf-8",
        )
    except subprocess.CalledProcessError as e:
        raise RuntimeError(f"{e.stderr}\nwhen trying to run:{' '.join(cmd)}")
    duration = time.time() - start
    print(f"Finished pandoc on {args[0]} in {duration:.1f}s", flush=True)
    return proc.stdout


def verify_cross_references(body):
    """Raise if pandoc-crossref left references it could not resolve.

    Those show up as, for example, ``<strong>¿sec:about?</strong>``.
    """
    missing = UNRESOLVED_REFERENCE.findall(body)
    if missing:
        refs = "\n".join(f"- {ref}" for ref in missing)
        raise RuntimeError(
            f"Output contains undefined cross-references:\n\n{refs}\n"
        )


@register_command(
    "Embed the generated outputs and build the HTML version",
    help={
        "project": "Project section of config.yml to build",
        "fail_on_error": "Fail on undefined cross-references",
    },
)
def html(project="default", fail_on_error=False):
    settings = config(project)
    input_path = write_input_markdown(project)
    args = [
        input_path,
        "--from",
        "markdown",
        "--to",
        "html",
        "--filter",
        "pandoc-crossref",
        "--citeproc",
        "--mathjax",
    ] + list(settings["extra_args"])
    body = call_pandoc(args)
    if fail_on_error:
        verify_cross_references(body)
    env = Environment(loader=FileSystemLoader(template_dirs()))
    tmpl = env.get_template(PAGE_TEMPLATE)
    rendered = tmpl.render(title=settings["title"], body=body)
    paths.BUILD_DIR.mkdir(parents=True, exist_ok=True)
    output_path = paths.BUILD_DIR / "index.html"
    output_path.write_text(rendered, encoding="utf-8")
    print(f"Built {output_path}", flush=True)
    return output_path


@register_command(
    "Embed the generated outputs and build the PDF version",
    help={"project": "Project section of config.yml to build"},
)
def pdf(project="default"):
    settings = config(project)
    input_path = write_input_markdown(project, skip_index=True)
    paths.BUILD_DIR.mkdir(parents=True, exist_ok=True)
    output_path = paths.BUILD_DIR / f"{settings['output_filename']}.pdf"
    args = [
        input_path,
        "--filter",
        "pandoc-crossref",
        "--citeproc",
        f"--resource-path={paths.BUILD_DIR}",
    ]
    latex_template = USER_TEMPLATE_DIR / "template.tex"
    if latex_template.exists():
        args.append(f"--template={latex_template}")
    args += list(settings["extra_args"])
    args += ["--output", output_path]
    call_pandoc(args)
    print(f"Built {output_path}", flush=True)
    return output_path


@register_command(
    "Build the HTML and then the PDF version",
    help={
        "project": "Project section of config.yml to build",
        "fail_on_error": "Fail on undefined cross-references",
    },
)
def build_all(project="default", fail_on_error=False):
    html(project, fail_on_error=fail_on_error)
    pdf(project)


@register_command("Remove the generated outputs and the build directory")
def cleanup():
    for d in [paths.GENERATED_DIR, paths.BUILD_DIR]:
        shutil.rmtree(d, ignore_errors=True)
        d.mkdir(parents=True)
