"""Tests for the export service and POST /api/export/{format}."""
import io

import fitz
import pytest
from docx import Document as DocxDocument
from httpx import AsyncClient

from app.services.export_service import export_content

CONTENT = "# Results\n\nThe area is $\\pi r^2$ & growing.\n\nSecond paragraph."


def test_txt_strips_markdown():
    data, media_type, filename = export_content(CONTENT, "txt", "report")
    text = data.decode("utf-8")
    assert filename == "report.txt"
    assert media_type.startswith("text/plain")
    assert text.startswith("Results\n\n")


def test_html_keeps_math_unescaped_for_mathjax():
    data, media_type, filename = export_content(CONTENT, "html", "report")
    page = data.decode("utf-8")
    assert filename == "report.html"
    assert "MathJax" in page
    assert "$\\pi r^2$" in page
    assert "&amp; growing" in page
    assert page.count("<p>") == 3


def test_latex_escapes_text_but_not_math():
    data, _, filename = export_content(CONTENT, "latex", "report")
    tex = data.decode("utf-8")
    assert filename == "report.tex"
    assert "\\begin{document}" in tex
    assert "$\\pi r^2$" in tex
    assert "\\& growing" in tex
    assert "MATH_INLINE" not in tex


def test_docx_round_trips_paragraphs():
    data, _, filename = export_content(CONTENT, "docx", "report")
    doc = DocxDocument(io.BytesIO(data))
    texts = [p.text for p in doc.paragraphs]
    assert filename == "report.docx"
    assert "Second paragraph." in texts


def test_pdf_contains_text():
    data, media_type, _ = export_content(CONTENT, "pdf", "report")
    assert media_type == "application/pdf"
    with fitz.open(stream=data, filetype="pdf") as doc:
        text = "".join(page.get_text() for page in doc)
    assert "Second paragraph." in text


def test_empty_content_and_unknown_format_rejected():
    with pytest.raises(ValueError):
        export_content("   ", "txt")
    with pytest.raises(ValueError):
        export_content("hello", "rtf")


def test_unsafe_filename_is_sanitised():
    _, _, filename = export_content("hello", "txt", "../../etc/passwd")
    assert "/" not in filename


# ---------------------------------------------------------------------------
# Route
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_export_route_returns_attachment(client: AsyncClient):
    resp = await client.post("/api/export/html", json={"content": "Hello", "filename": "notes"})
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/html")
    assert 'filename="notes.html"' in resp.headers["content-disposition"]


@pytest.mark.asyncio
async def test_export_route_rejects_unknown_format(client: AsyncClient):
    resp = await client.post("/api/export/rtf", json={"content": "Hello"})
    assert resp.status_code == 400
    assert "Unsupported export format" in resp.json()["detail"]


@pytest.mark.asyncio
async def test_export_route_rejects_empty_content(client: AsyncClient):
    resp = await client.post("/api/export/txt", json={"content": ""})
    assert resp.status_code == 422
