"""
Export processed text to downloadable formats.

Formats: txt, html (MathJax page), latex, docx (python-docx), pdf (PyMuPDF Story).
Every exporter returns (bytes, media_type, filename).
"""
from __future__ import annotations

import html
import io
import logging
import re
from typing import Callable, Dict, List, Tuple

import fitz  # PyMuPDF
from docx import Document as DocxDocument
from docx.shared import Pt

from app.utils.helpers import strip_markdown
from app.utils.math_formulas import (
    prepare_math_for_html,
    protect_math_formulas,
    restore_math_formulas,
)

logger = logging.getLogger(__name__)

ExportResult = Tuple[bytes, str, str]

_HTML_TEMPLATE = """\
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <title>{title}</title>
    <script>
        window.MathJax = {{
            tex: {{
                inlineMath: [['$', '$'], ['\\\\(', '\\\\)']],
                displayMath: [['$$', '$$'], ['\\\\[', '\\\\]']],
                processEscapes: true
            }}
        }};
    </script>
    <script id="MathJax-script" async src="https://cdn.jsdelivr.net/npm/mathjax@3/es5/tex-mml-chtml.js"></script>
    <style>
        body {{ font-family: Georgia, serif; line-height: 1.6; max-width: 800px; margin: 40px auto; padding: 20px; color: #333; }}
    </style>
</head>
<body>
{body}
</body>
</html>
"""

_LATEX_TEMPLATE = """\
\\documentclass{{article}}
\\usepackage[utf8]{{inputenc}}
\\usepackage{{amsmath}}
\\usepackage{{amssymb}}
\\title{{{title}}}
\\begin{{document}}
\\maketitle

{body}

\\end{{document}}
"""

_LATEX_SPECIALS = {
    "\\": r"\textbackslash{}",
    "&": r"\&",
    "%": r"\%",
    "$": r"\$",
    "#": r"\#",
    "_": r"\_",
    "{": r"\{",
    "}": r"\}",
    "~": r"\textasciitilde{}",
    "^": r"\textasciicircum{}",
}
_LATEX_SPECIALS_RE = re.compile("|".join(re.escape(k) for k in _LATEX_SPECIALS))

_PDF_CSS = "body { font-family: serif; font-size: 11pt; line-height: 1.4; } p { margin-bottom: 8px; }"


def _paragraphs(content: str) -> List[str]:
    return [p.strip() for p in re.split(r"\n\s*\n", content) if p.strip()]


def _escape_latex(text: str) -> str:
    return _LATEX_SPECIALS_RE.sub(lambda m: _LATEX_SPECIALS[m.group(0)], text)


# ---------------------------------------------------------------------------
# Exporters
# ---------------------------------------------------------------------------

def export_txt(content: str, filename: str) -> ExportResult:
    return strip_markdown(content).encode("utf-8"), "text/plain; charset=utf-8", f"{filename}.txt"


def export_html(content: str, filename: str) -> ExportResult:
    """Standalone HTML page that renders math with MathJax."""
    protected, blocks = protect_math_formulas(prepare_math_for_html(content))
    body = "\n".join(
        "<p>{}</p>".format(html.escape(p).replace("\n", "<br>"))
        for p in _paragraphs(protected)
    )
    body = restore_math_formulas(body, {k: html.escape(v) for k, v in blocks.items()})
    page = _HTML_TEMPLATE.format(title=html.escape(filename), body=body)
    return page.encode("utf-8"), "text/html; charset=utf-8", f"{filename}.html"


def export_latex(content: str, filename: str) -> ExportResult:
    """Article document; math is kept verbatim, everything else is escaped."""
    protected, blocks = protect_math_formulas(content)
    body = "\n\n".join(_escape_latex(p) for p in _paragraphs(protected))
    # Tokens contain no LaTeX specials except '_', which escaping changed
    escaped_blocks = {_escape_latex(token): formula for token, formula in blocks.items()}
    body = restore_math_formulas(body, escaped_blocks)
    document = _LATEX_TEMPLATE.format(title=_escape_latex(filename), body=body)
    return document.encode("utf-8"), "application/x-latex", f"{filename}.tex"


def export_docx(content: str, filename: str) -> ExportResult:
    doc = DocxDocument()
    style = doc.styles["Normal"]
    style.font.name = "Calibri"
    style.font.size = Pt(11)

    doc.add_heading(filename, level=1)
    for paragraph in _paragraphs(content):
        doc.add_paragraph(paragraph)

    buffer = io.BytesIO()
    doc.save(buffer)
    return (
        buffer.getvalue(),
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        f"{filename}.docx",
    )


def export_pdf(content: str, filename: str) -> ExportResult:
    """Lay the text out over as many A4 pages as it needs."""
    body = "".join(
        "<p>{}</p>".format(html.escape(p).replace("\n", "<br/>"))
        for p in _paragraphs(strip_markdown(content))
    )
    story = fitz.Story(html=f"<h2>{html.escape(filename)}</h2>{body}", user_css=_PDF_CSS)

    buffer = io.BytesIO()
    writer = fitz.DocumentWriter(buffer)
    mediabox = fitz.paper_rect("a4")
    where = mediabox + (54, 54, -54, -54)

    more = True
    while more:
        device = writer.begin_page(mediabox)
        more, _ = story.place(where)
        story.draw(device)
        writer.end_page()
    writer.close()

    return buffer.getvalue(), "application/pdf", f"{filename}.pdf"


EXPORTERS: Dict[str, Callable[[str, str], ExportResult]] = {
    "txt": export_txt,
    "html": export_html,
    "latex": export_latex,
    "docx": export_docx,
    "pdf": export_pdf,
}


def export_content(content: str, fmt: str, filename: str = "document") -> ExportResult:
    """
    Export ``content`` in the requested format.

    Raises:
        ValueError: Empty content or unknown format.
    """
    if not content or not content.strip():
        raise ValueError("Content is required")
    exporter = EXPORTERS.get(fmt.lower())
    if exporter is None:
        raise ValueError(f"Unsupported export format {fmt!r}; expected one of {sorted(EXPORTERS)}")

    safe_name = re.sub(r"[^\w\-. ]", "_", filename).strip() or "document"
    data, media_type, out_name = exporter(content, safe_name)
    logger.info("Exported %d chars as %s (%d bytes)", len(content), fmt, len(data))
    return data, media_type, out_name
