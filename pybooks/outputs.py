"""Conversion of evaluation results into Markdown.

Converters are looked up by the type of the result, walking its MRO, and then
by capability (``savefig``, ``_repr_markdown_``, ``to_markdown``) so that
figures and tables from plotting and dataframe libraries work without
importing those libraries here.
"""

import numbers
import re
from dataclasses import dataclass

from . import paths


class ConverterRegistrationError(Exception):
    """Raised when a type already has an output converter."""


# Converters keyed by result type.
_CONVERTERS = {}
# (attribute, converter) pairs tried in order when no type matches.
_CAPABILITIES = []


def register_output(*types):
    """Register ``func(expr, path, value) -> str`` for ``types``."""

    def decorator(func):
        for typ in types:
            if typ in _CONVERTERS:
                raise ConverterRegistrationError(
                    f"Output converter for {typ.__name__} already registered"
                )
            _CONVERTERS[typ] = func
        return func

    return decorator


def register_capability(attribute):
    """Register a converter for values that have ``attribute``."""

    def decorator(func):
        _CAPABILITIES.append((attribute, func))
        return func

    return decorator


def fence(s):
    """Return a backtick fence longer than any backtick run in ``s``."""
    longest = max((len(run) for run in re.findall("`+", s)), default=0)
    return "`" * max(3, longest + 1)


def code_block(s):
    """Wrap ``s`` in a Python code block."""
    f = fence(s)
    return f"{f}language-python\n{s}\n{f}\n"


def output_block(s):
    """Wrap ``s`` in a code block with the language ``output``."""
    f = fence(s)
    return f"{f}output\n{s}\n{f}\n"


@dataclass(frozen=True)
class Code:
    """Result that shows ``text`` as code instead of evaluating it."""

    text: str


@dataclass(frozen=True)
class Options:
    """Attach a caption and a cross-reference label to a result."""

    value: object
    caption: str = None
    label: str = None


def find_converter(value):
    for cls in type(value).__mro__:
        if cls in _CONVERTERS:
            return _CONVERTERS[cls]
    # Abstract base classes such as numbers.Number are not in the MRO.
    for typ, func in _CONVERTERS.items():
        if isinstance(value, typ):
            return func
    for attribute, func in _CAPABILITIES:
        if hasattr(value, attribute):
            return func
    return convert_fallback


def convert_output(expr, path, value) -> str:
    """Return the Markdown for ``value``, the result of ``expr``.

    ``path`` is the cache file the Markdown will be written to.
    """
    return find_converter(value)(expr, path, value)


@register_output(str)
def convert_str(expr, path, value):
    return value


@register_output(type(None))
def convert_none(expr, path, value):
    return ""


@register_output(numbers.Number)
def convert_number(expr, path, value):
    return str(value)


@register_output(Code)
def convert_code(expr, path, value):
    return code_block(value.text.strip())


def _caption_suffix(prefix, options):
    if options.label is None:
        return ""
    return f" {{#{prefix}:{options.label}}}"


def image_path(expr, options=None):
    if options is not None and options.label is not None:
        name = options.label
    else:
        name = paths.method_name(expr)
    return paths.IMAGES_DIR / f"{name}.png"


@register_output(Options)
def convert_options(expr, path, value):
    inner = value.value
    if hasattr(inner, "savefig"):
        im_path = image_path(expr, value)
        link = save_figure(inner, im_path)
        caption = value.caption or ""
        suffix = _caption_suffix("fig", value)
        return f"![{caption}]({link}){suffix}"
    markdown = convert_output(expr, path, inner)
    if value.caption is None and value.label is None:
        return markdown
    # Pandoc table captions go on their own paragraph after the table.
    caption = value.caption or ""
    suffix = _caption_suffix("tbl", value)
    return f"{markdown.rstrip()}\n\n: {caption}{suffix}\n"


def save_figure(figure, im_path):
    """Write ``figure`` and return its link relative to the build directory."""
    im_path.parent.mkdir(parents=True, exist_ok=True)
    figure.savefig(im_path)
    return im_path.relative_to(paths.BUILD_DIR).as_posix()


@register_capability("savefig")
def convert_figure(expr, path, value):
    im_path = image_path(expr)
    link = save_figure(value, im_path)
    return f"![{paths.method_name(expr)}]({link})"


@register_capability("_repr_markdown_")
def convert_repr_markdown(expr, path, value):
    return value._repr_markdown_()


@register_capability("to_markdown")
def convert_table(expr, path, value):
    return value.to_markdown()


def convert_fallback(expr, path, value):
    return output_block(str(value))
