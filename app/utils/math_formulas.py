"""
Protect LaTeX math from LLM rewriting and tidy it up for rendering.

Math is swapped for opaque ``[[MATH_BLOCK_n]]`` / ``[[MATH_INLINE_n]]`` tokens
before text goes to a provider, and swapped back afterwards.
"""
import re
from typing import Dict, Tuple

_DISPLAY_PATTERNS = (
    re.compile(r"\$\$[\s\S]*?\$\$"),
    re.compile(r"\\\[[\s\S]*?\\\]"),
)
_INLINE_PATTERNS = (
    re.compile(r"\\\([\s\S]*?\\\)"),
    # No whitespace just inside the dollars, so "$5 and $10" is left alone
    re.compile(r"\$([^\s$][^$]*?[^\s$]|[^\s$])\$"),
)


def protect_math_formulas(text: str) -> Tuple[str, Dict[str, str]]:
    """
    Replace math expressions with placeholder tokens.

    Args:
        text: Text possibly containing LaTeX math.

    Returns:
        (processed_text, blocks) where blocks maps token → original formula.
    """
    blocks: Dict[str, str] = {}
    counter = 0

    def _swap(kind: str):
        def _replace(match: re.Match) -> str:
            nonlocal counter
            token = f"[[MATH_{kind}_{counter}]]"
            blocks[token] = match.group(0)
            counter += 1
            return token
        return _replace

    for pattern in _DISPLAY_PATTERNS:
        text = pattern.sub(_swap("BLOCK"), text)
    for pattern in _INLINE_PATTERNS:
        text = pattern.sub(_swap("INLINE"), text)

    return text, blocks


def restore_math_formulas(text: str, blocks: Dict[str, str]) -> str:
    """Put original formulas back in place of their tokens."""
    for token, formula in blocks.items():
        text = text.replace(token, formula)
    return text


def normalize_latex(text: str) -> str:
    """Light regex clean-up of common LaTeX slips."""
    text = re.sub(r"\\log_(\w+)", r"\\log_{\1}", text)
    text = re.sub(r"\\sum_([^{\s])", r"\\sum_{\1}", text)
    text = re.sub(r"\\int_([^{\s])", r"\\int_{\1}", text)
    text = re.sub(r"\\\[\s+", r"\\[", text)
    text = re.sub(r"\s+\\\]", r"\\]", text)
    return text


def prepare_math_for_html(text: str) -> str:
    """Convert LaTeX display/inline delimiters to the ones the MathJax page expects."""
    text = normalize_latex(text)
    text = re.sub(r"\\\[([\s\S]*?)\\\]", lambda m: f"$${m.group(1)}$$", text)
    text = re.sub(r"\\\(([\s\S]*?)\\\)", lambda m: f"${m.group(1)}$", text)
    return re.sub(r"\n{3,}", "\n\n", text)
