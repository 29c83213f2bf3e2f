from . import paths
from .extract import (
    CODEBLOCK_PATTERN,
    DOC_EXAMPLE_INDENTATION,
    INLINE_CODEBLOCK_PATTERN,
    clean_match,
)
from .outputs import code_block


def missing_output(output_path, expr):
    msg = (
        f"Cannot find file at {output_path.as_posix()} for {expr}.\n"
        "Did you run pybooks gen (or gen() in Python) for this document?\n"
    )
    return code_block(msg)


def codeblock2output(match) -> str:
    userexpr = clean_match(match)
    if userexpr.indentation == DOC_EXAMPLE_INDENTATION:
        return match.group(0)
    output_path = paths.escape_expr(userexpr.expr)
    if not output_path.is_file():
        return missing_output(output_path, userexpr.expr)
    output = output_path.read_text(encoding="utf-8")
    # The text in front of the opening fence already indents the first line.
    return output.lstrip() + "\n"


def inlinecodeblock2output(match) -> str:
    userexpr = clean_match(match, indented=False)
    output_path = paths.escape_expr(userexpr.expr)
    if not output_path.is_file():
        return missing_output(output_path, userexpr.expr)
    output = output_path.read_text(encoding="utf-8")
    return " " + output.strip()


def embed_output(text: str) -> str:
    """Replace the ``py`` blocks in ``text`` by their cached outputs."""
    text = CODEBLOCK_PATTERN.sub(codeblock2output, text)
    text = INLINE_CODEBLOCK_PATTERN.sub(inlinecodeblock2output, text)
    return text
