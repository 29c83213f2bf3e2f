import re
from dataclasses import dataclass

# Tag marking a code block or inline code span as something to evaluate.
EXEC_TAG = "py"

# Fenced ``py`` blocks. The spaces in front of the closing fence set the
# indentation of the output. This pattern also matches blocks whose closing
# fence is indented by four spaces; those are documentation examples and are
# filtered out after matching.
CODEBLOCK_PATTERN = re.compile(
    r"```" + EXEC_TAG + r"(?![\w-])\s*([^`]*)\n([ ]*)```\n"
)
INLINE_CODEBLOCK_PATTERN = re.compile(r" `" + EXEC_TAG + r" ([^`]*)`")

DOC_EXAMPLE_INDENTATION = 4


class ExtractionParseError(ValueError):
    """Raised when an embedded expression is not valid Python."""


@dataclass(frozen=True)
class UserExpr:
    """Expression text and the number of spaces its output is indented by."""

    expr: str
    indentation: int = 0


def clean_match(match, indented=True) -> UserExpr:
    """Turn a pattern match into a ``UserExpr``.

    Lines after the first keep their own indentation minus the indentation of
    the closing fence, so blocks nested in lists still parse.
    """
    expr = match.group(1).strip()
    if not indented:
        return UserExpr(expr, 0)
    indentation = len(match.group(2))
    prefix = " " * indentation
    lines = expr.split("\n")
    lines = [lines[0]] + [
        line[indentation:] if line.startswith(prefix) else line
        for line in lines[1:]
    ]
    return UserExpr("\n".join(lines), indentation)


def check_parse(expr: str):
    # compile, unlike ast.parse, also rejects a top level return or yield.
    try:
        compile(expr, "<pybooks-check>", "exec", dont_inherit=True)
    except SyntaxError as e:
        raise ExtractionParseError(
            f"Exception occurred when trying to parse `{expr}`: {e.msg}"
        ) from e


def extract_expr(text: str) -> list[UserExpr]:
    """Return the expressions embedded in the Markdown ``text``.

    All fenced blocks come first, in document order, followed by all inline
    expressions. The two are not interleaved. Every expression must parse,
    otherwise ``ExtractionParseError`` is raised and nothing is returned.
    """
    matches = CODEBLOCK_PATTERN.finditer(text)
    from_codeblocks = [clean_match(m) for m in matches]
    # These blocks are examples in the documentation of pyBooks itself.
    from_codeblocks = [
        e
        for e in from_codeblocks
        if e.indentation != DOC_EXAMPLE_INDENTATION
    ]
    from_inline = [
        clean_match(m, indented=False)
        for m in INLINE_CODEBLOCK_PATTERN.finditer(text)
    ]
    exprs = from_codeblocks + from_inline
    for e in exprs:
        check_parse(e.expr)
    return exprs
