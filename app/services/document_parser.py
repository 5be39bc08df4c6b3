"""
Text extraction for uploaded files (PDF, DOCX, TXT and images via OCR).

Works on in-memory bytes and returns an ExtractedText with the plain text plus
metadata (word count, detected language, page count, title/author when the
format carries them).  Binary parsing is left to PyMuPDF, python-docx and
Tesseract.
"""
from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

import fitz  # PyMuPDF
import pytesseract
from docx import Document as DocxDocument
from langdetect import DetectorFactory
from langdetect import detect as _langdetect_fn
from langdetect.lang_detect_exception import LangDetectException
from PIL import Image, UnidentifiedImageError

from app.config import settings
from app.services.chunking import count_words

logger = logging.getLogger(__name__)

# Deterministic language detection
DetectorFactory.seed = 0

IMAGE_TYPES = frozenset({"png", "jpg", "jpeg", "gif", "bmp", "tiff", "webp"})


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass
class ExtractedText:
    """
    Output of the DocumentParser.

    Attributes:
        text:      Extracted plain text.
        metadata:  Dict with keys: file_type, word_count, detected_language,
                   and format-specific fields (page_count, title, author…).
    """

    text: str
    metadata: Dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------

class DocumentParser:
    """Extracts plain text from uploaded document bytes."""

    def __init__(self) -> None:
        if settings.TESSERACT_CMD:
            pytesseract.pytesseract.tesseract_cmd = settings.TESSERACT_CMD

    async def extract(self, filename: str, data: bytes) -> ExtractedText:
        """
        Extract text from a file's bytes.

        Args:
            filename: Original filename; its extension selects the parser.
            data:     Raw file contents.

        Returns:
            ExtractedText with text and metadata.

        Raises:
            ValueError:   Unsupported file type or empty upload.
            RuntimeError: Corrupt, password-protected or unreadable file.
        """
        if not data:
            raise ValueError("Uploaded file is empty")

        ft = Path(filename).suffix.lower().lstrip(".")
        if ft == "pdf":
            result = self._extract_pdf(data)
        elif ft == "docx":
            result = self._extract_docx(data)
        elif ft == "txt":
            result = self._extract_txt(data)
        elif ft in IMAGE_TYPES:
            result = self._extract_image(data)
        else:
            raise ValueError(f"Unsupported file type: {ft or filename!r}")

        result.metadata["file_type"] = ft
        result.metadata["word_count"] = count_words(result.text)
        result.metadata["detected_language"] = _detect_language(result.text[:3000])
        logger.info(
            "Extracted %d words from %r (%s)", result.metadata["word_count"], filename, ft
        )
        return result

    # ------------------------------------------------------------------
    # PDF
    # ------------------------------------------------------------------

    def _extract_pdf(self, data: bytes) -> ExtractedText:
        """Page text via PyMuPDF, prefixed with any document info fields."""
        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except Exception as exc:
            raise RuntimeError(f"Cannot open PDF file: {exc}") from exc

        try:
            if doc.needs_pass:
                raise RuntimeError(
                    "PDF is password-protected. Please provide an unlocked copy."
                )

            raw_meta = doc.metadata or {}
            page_texts: List[str] = [page.get_text("text") for page in doc]
            page_count = doc.page_count
        finally:
            doc.close()

        header_lines: List[str] = []
        for label, key in (("Title", "title"), ("Author", "author"),
                           ("Subject", "subject"), ("Keywords", "keywords")):
            value = (raw_meta.get(key) or "").strip()
            if value:
                header_lines.append(f"{label}: {value}")
        if header_lines:
            header_lines.append(f"Pages: {page_count}")

        body = "\n".join(t.strip() for t in page_texts if t.strip())
        text = ("\n".join(header_lines) + "\n\n" + body) if header_lines else body

        return ExtractedText(
            text=text,
            metadata={
                "page_count": page_count,
                "title": raw_meta.get("title", "") or "",
                "author": raw_meta.get("author", "") or "",
            },
        )

    # ------------------------------------------------------------------
    # DOCX
    # ------------------------------------------------------------------

    def _extract_docx(self, data: bytes) -> ExtractedText:
        """Paragraph text followed by pipe-delimited table rows."""
        try:
            doc = DocxDocument(io.BytesIO(data))
        except Exception as exc:
            raise RuntimeError(f"Cannot open DOCX file: {exc}") from exc

        parts: List[str] = [p.text.strip() for p in doc.paragraphs if p.text.strip()]

        for table in doc.tables:
            rows: List[str] = []
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells]
                non_empty = [c for c in cells if c]
                if non_empty:
                    rows.append(" | ".join(non_empty))
            if rows:
                parts.append("\n".join(rows))

        core = doc.core_properties
        return ExtractedText(
            text="\n\n".join(parts),
            metadata={
                "title": core.title or "",
                "author": core.author or "",
            },
        )

    # ------------------------------------------------------------------
    # Plain text
    # ------------------------------------------------------------------

    @staticmethod
    def _extract_txt(data: bytes) -> ExtractedText:
        try:
            text = data.decode("utf-8-sig")
        except UnicodeDecodeError:
            text = data.decode("latin-1")
        return ExtractedText(text=text)

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    @staticmethod
    def _extract_image(data: bytes) -> ExtractedText:
        """Run Tesseract OCR over an uploaded image."""
        try:
            img = Image.open(io.BytesIO(data))
        except UnidentifiedImageError as exc:
            raise RuntimeError(f"Cannot open image file: {exc}") from exc

        try:
            text = pytesseract.image_to_string(img)
        except pytesseract.TesseractError as exc:
            raise RuntimeError(f"OCR failed: {exc}") from exc
        except pytesseract.TesseractNotFoundError as exc:
            raise RuntimeError("Tesseract is not installed or TESSERACT_CMD is wrong") from exc

        return ExtractedText(
            text=text.strip(),
            metadata={"width": img.width, "height": img.height},
        )


# ---------------------------------------------------------------------------
# Module-level helpers
# ---------------------------------------------------------------------------

def _detect_language(sample: str) -> str:
    """Detect the language of a text sample; returns an ISO 639-1 code or 'unknown'."""
    if len(sample.split()) < 20:
        return "unknown"
    try:
        return _langdetect_fn(sample)
    except LangDetectException:
        return "unknown"
