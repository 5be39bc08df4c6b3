"""
Common utility functions and helpers.
"""
from typing import Any
import re


def strip_markdown(text: str) -> str:
    """
    Remove markdown syntax, leaving readable plain text.

    Args:
        text: Markdown-formatted text

    Returns:
        Plain text
    """
    if not text:
        return ""

    # Code blocks first so their contents are not touched by the rules below
    text = re.sub(r"```[\s\S]*?```", "", text)
    text = re.sub(r"`([^`]+)`", r"\1", text)
    # Images before links
    text = re.sub(r"!\[([^\]]*)\]\([^)]+\)", "", text)
    text = re.sub(r"\[([^\]]+)\]\([^)]+\)", r"\1", text)
    # Horizontal rules before bullets and emphasis
    text = re.sub(r"^[ \t]*(\*{3,}|_{3,}|-{3,})[ \t]*$", "", text, flags=re.MULTILINE)
    text = re.sub(r"^#{1,6}\s+", "", text, flags=re.MULTILINE)
    text = re.sub(r"^[ \t]*[\*\-\+]\s+", "• ", text, flags=re.MULTILINE)
    text = re.sub(r"^[ \t]*\d+\.\s+", "", text, flags=re.MULTILINE)
    text = re.sub(r"^[ \t]*>\s+", "", text, flags=re.MULTILINE)
    text = re.sub(r"(\*\*|__)(.+?)\1", r"\2", text)
    text = re.sub(r"(?<![\w*])\*(?!\s)(.+?)(?<!\s)\*(?![\w*])", r"\1", text)
    # Collapse runs of blank lines
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def clamp(value: Any, lo: float = 0.0, hi: float = 1.0, default: float = 0.5) -> float:
    """
    Coerce a value to float and clamp it into [lo, hi].

    Args:
        value: Anything float() accepts
        lo: Lower bound
        hi: Upper bound
        default: Returned when the value cannot be converted

    Returns:
        Clamped float
    """
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return max(lo, min(hi, number))


def truncate_text(text: str, max_length: int = 200, suffix: str = "...") -> str:
    """
    Truncate text to maximum length.

    Args:
        text: Text to truncate
        max_length: Maximum length
        suffix: Suffix to add if truncated

    Returns:
        Truncated text
    """
    if len(text) <= max_length:
        return text
    return text[:max_length - len(suffix)] + suffix
