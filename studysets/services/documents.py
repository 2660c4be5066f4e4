"""
Text extraction for uploaded study materials (PDF, Word, PowerPoint, plain text)
"""
import io
import os
import re

import structlog
from docx import Document
from pptx import Presentation
from pypdf import PdfReader

logger = structlog.get_logger()

IMAGE_TYPES = {"image/png", "image/jpeg", "image/jpg", "image/heic", "image/heif"}
HEIC_TYPES = {"image/heic", "image/heif"}
DOCX_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
PPTX_TYPE = "application/vnd.openxmlformats-officedocument.presentationml.presentation"
PDF_TYPE = "application/pdf"

UNWANTED_INLINE = ["\u00ad", "\uf0b7", "\u200b", "\u200c", "\u200d"]


class DocumentExtractionError(ValueError):
    pass


def _extension(filename: str) -> str:
    return os.path.splitext(filename or "")[1].lower()


def is_image_file(content_type: str, filename: str = "") -> bool:
    if content_type and content_type.lower() in IMAGE_TYPES:
        return True
    return _extension(filename) in {".png", ".jpg", ".jpeg", ".heic", ".heif"}


def is_heic_file(content_type: str, filename: str = "") -> bool:
    if content_type and content_type.lower() in HEIC_TYPES:
        return True
    return _extension(filename) in {".heic", ".heif"}


def is_office_document(content_type: str, filename: str = "") -> bool:
    if content_type in (DOCX_TYPE, PPTX_TYPE):
        return True
    return _extension(filename) in {".docx", ".pptx"}


def normalize_text(raw_text: str) -> str:
    for ch in UNWANTED_INLINE:
        raw_text = raw_text.replace(ch, " ")
    raw_text = re.sub(r"-\s*\n\s*(?=\w)", "", raw_text)  # de-hyphenate across linebreaks
    raw_text = raw_text.replace("\r\n", "\n").replace("\r", "\n")
    raw_text = re.sub(r"[ \t]+\n", "\n", raw_text)
    raw_text = re.sub(r"\n{3,}", "\n\n", raw_text)
    return raw_text.strip()


def _pdf_text(data: bytes) -> str:
    reader = PdfReader(io.BytesIO(data))
    if reader.is_encrypted:
        reader.decrypt("")
    return "\n".join(page.extract_text() or "" for page in reader.pages)


def _docx_text(data: bytes) -> str:
    document = Document(io.BytesIO(data))
    parts = [p.text for p in document.paragraphs if p.text.strip()]
    for table in document.tables:
        for row in table.rows:
            parts.append(" | ".join(cell.text.strip() for cell in row.cells))
    return "\n".join(parts)


def _pptx_text(data: bytes) -> str:
    presentation = Presentation(io.BytesIO(data))
    parts = []
    for number, slide in enumerate(presentation.slides, start=1):
        slide_lines = [
            shape.text_frame.text
            for shape in slide.shapes
            if shape.has_text_frame and shape.text_frame.text.strip()
        ]
        if slide_lines:
            parts.append(f"Slide {number}:\n" + "\n".join(slide_lines))
    return "\n\n".join(parts)


def extract_text(data: bytes, filename: str = "", content_type: str = "") -> str:
    """
    Extract plain text from an uploaded file.

    Images have no text layer here and return an empty string; they go
    through the vision model instead.
    """
    if is_image_file(content_type, filename):
        return ""

    ext = _extension(filename)
    try:
        if content_type == PDF_TYPE or ext == ".pdf":
            text = _pdf_text(data)
        elif content_type == DOCX_TYPE or ext == ".docx":
            text = _docx_text(data)
        elif content_type == PPTX_TYPE or ext == ".pptx":
            text = _pptx_text(data)
        else:
            text = data.decode("utf-8", errors="ignore")
    except Exception as e:
        logger.error("document_extraction_failed", filename=filename, content_type=content_type, error=str(e))
        raise DocumentExtractionError(f"Could not extract text from {filename or 'upload'}: {e}") from e

    text = normalize_text(text)
    logger.info("document_text_extracted", filename=filename, characters=len(text))
    return text
