"""
Formatting helpers shared by prompts and reports.

Two report styles are supported: "cli" (plain console text, optionally bold
headings via ANSI codes, wrapped to a maximum line length) and "markdown"
(headed document with configurable heading depth).
"""

import textwrap

__all__ = [
    "format_loading",
    "format_percent",
    "heading",
    "wrap",
    "bullet",
    "PLACEHOLDER_NOTICE",
    "word_target",
]

_BOLD = "\033[1m"
_RESET = "\033[0m"

PLACEHOLDER_NOTICE = (
    "NOTE: the language model reply could not be parsed. The names and interpretations below "
    "are generic placeholders, not an interpretation of this model."
)


def format_loading(value: float, digits: int = 3) -> str:
    """
    Format a loading/correlation without the leading zero.

    Examples:
        >>> format_loading(0.4567)
        '.457'
        >>> format_loading(-0.4567)
        '-.457'
        >>> format_loading(1.0)
        '1.000'
    """
    text = f"{value:.{digits}f}"
    if text.startswith("0."):
        return text[1:]
    if text.startswith("-0."):
        return "-" + text[2:]
    return text


def format_percent(value: float, digits: int = 1) -> str:
    """0.1234 -> '12.3%'."""
    return f"{value * 100:.{digits}f}%"


def heading(text: str, output_format: str, level: int = 1, use_color: bool = False) -> str:
    """Render a heading in the requested style."""
    if output_format == "markdown":
        return f"{'#' * level} {text}"
    if use_color:
        return f"{_BOLD}{text}{_RESET}"
    return text.upper() if level <= 1 else text


def wrap(text: str, output_format: str, width: int, indent: str = "") -> str:
    """Wrap console text to ``width``; markdown is left to the renderer."""
    if output_format == "markdown":
        return text
    paragraphs = text.split("\n")
    return "\n".join(
        textwrap.fill(p, width=width, initial_indent=indent, subsequent_indent=indent) if p.strip() else ""
        for p in paragraphs
    )


def bullet(text: str, output_format: str, width: int) -> str:
    if output_format == "markdown":
        return f"- {text}"
    return textwrap.fill(text, width=width, initial_indent="  - ", subsequent_indent="    ")


def word_target(word_limit: int) -> tuple[int, int]:
    """Lower/upper bound of the requested length band (80-100% of the limit)."""
    return round(0.8 * word_limit), word_limit
