"""Books written in Markdown with embedded, evaluated Python.

The build and watch helpers pull in jinja2 and watchdog, so they are imported
lazily; extracting, evaluating and embedding only need the standard library
and PyYAML.
"""

__all__ = [
    "Code",
    "Environment",
    "Options",
    "cleanup",
    "embed_output",
    "entr_gen",
    "escape_expr",
    "extract_expr",
    "gen",
    "html",
    "pdf",
]


def __getattr__(name):
    if name in ["Code", "Options"]:
        from . import outputs

        return getattr(outputs, name)
    if name == "Environment":
        from .evaluate import Environment

        return Environment
    if name == "embed_output":
        from .embed import embed_output

        return embed_output
    if name == "escape_expr":
        from .paths import escape_expr

        return escape_expr
    if name == "extract_expr":
        from .extract import extract_expr

        return extract_expr
    if name in ["gen", "entr_gen"]:
        from . import generate

        return getattr(generate, name)
    if name in ["html", "pdf", "cleanup"]:
        from . import build

        return getattr(build, name)
    raise AttributeError(name)
