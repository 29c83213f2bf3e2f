import re
from pathlib import Path

CONTENTS_DIR = Path("contents")
GENERATED_DIR = Path("_gen")
BUILD_DIR = Path("_build")
IMAGES_DIR = BUILD_DIR / "im"

# Only this many characters of an expression end up in its cache filename.
# Expressions sharing this prefix share a cache entry.
MAX_KEY_LENGTH = 80

_unsafe_run = re.compile(r"[^a-zA-Z0-9]+")


def escape_expr(expr: str) -> Path:
    """Return the cache file for ``expr``.

    The embedding pass resolves cached outputs through this same function, so
    any change here invalidates every existing cache entry.
    """
    escaped = expr[:MAX_KEY_LENGTH]
    escaped = _unsafe_run.sub("_", escaped)
    return GENERATED_DIR / f"{escaped}.md"


def method_name(expr: str) -> str:
    """Return a short name for ``expr``, for example ``foo(3)`` -> ``foo_3``.

    Used to name files, such as images, that belong to an expression.
    """
    if expr.startswith("("):
        expr = expr.strip("()")
    expr = re.sub(r"^[A-Za-z_][A-Za-z0-9_]*\.", "", expr)
    for old, new in [
        ("(", "_"),
        (")", ""),
        (";", "_"),
        (",", "_"),
        (" ", ""),
        ('"', "-"),
        ("'", "-"),
        ("=", "is"),
        (".", ""),
    ]:
        expr = expr.replace(old, new)
    return expr.strip("_")


def expand_path(p):
    """Allow ``index`` to stand for ``contents/index.md``."""
    p = Path(p)
    if CONTENTS_DIR.name in p.parent.parts:
        return p
    if p.suffix != ".md":
        p = Path(f"{p}.md")
    return CONTENTS_DIR / p


def callpath(path) -> str:
    """Return the document path as the user knows it, below ``contents/``."""
    path = Path(path)
    parts = path.parts
    if CONTENTS_DIR.name not in parts:
        raise ValueError(f"{path} is not inside {CONTENTS_DIR}/")
    idx = parts.index(CONTENTS_DIR.name)
    return Path(*parts[idx + 1 :]).as_posix()
