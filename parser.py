import io
import logging
import os
import re
import shutil
import threading
from typing import List, Optional

import fitz  # PyMuPDF
import pytesseract
from pdf2image import convert_from_bytes
from pdfminer.high_level import extract_text as pdfminer_extract_text

from config import settings

WINDOWS_TESSERACT_CANDIDATES = [
    r"C:\Program Files\Tesseract-OCR\tesseract.exe",
    r"C:\Program Files (x86)\Tesseract-OCR\tesseract.exe",
]
WINDOWS_POPPLER_CANDIDATES = [
    r"C:\Program Files\poppler\Library\bin",
    r"C:\Program Files\poppler-24.02.0\Library\bin",
    r"C:\Program Files\poppler-24.07.0\Library\bin",
    r"C:\poppler\Library\bin",
    r"C:\poppler\bin",
]

_configured_poppler_path: Optional[str] = None
_ocr_configured = False
_ocr_config_lock = threading.Lock()
logger = logging.getLogger(__name__)


class ExtractionError(Exception):
    """The uploaded bytes could not be read as a PDF."""


def _configure_ocr_backends() -> None:
    """Best-effort configuration for OCR toolchain on Windows installs."""
    global _configured_poppler_path

    env_tesseract_cmd = os.getenv("TESSERACT_CMD")
    if env_tesseract_cmd and os.path.exists(env_tesseract_cmd):
        pytesseract.pytesseract.tesseract_cmd = env_tesseract_cmd
    else:
        existing_cmd = getattr(pytesseract.pytesseract, "tesseract_cmd", "")
        if not shutil.which(existing_cmd):
            for candidate in WINDOWS_TESSERACT_CANDIDATES:
                if os.path.exists(candidate):
                    pytesseract.pytesseract.tesseract_cmd = candidate
                    break

    poppler_env = os.getenv("POPPLER_PATH")
    potential_paths = []
    if poppler_env:
        potential_paths.append(poppler_env)
    potential_paths.extend(WINDOWS_POPPLER_CANDIDATES)
    for candidate in potential_paths:
        if candidate and os.path.isdir(candidate):
            _configured_poppler_path = candidate
            break


def _ensure_ocr_configured() -> None:
    global _ocr_configured
    with _ocr_config_lock:
        if not _ocr_configured:
            _configure_ocr_backends()
            _ocr_configured = True


def extract_text_from_pdf_bytes(
    data: bytes,
    *,
    min_length: Optional[int] = None,
    ocr_enabled: Optional[bool] = None,
) -> str:
    """Extract normalized text from an in-memory PDF.

    Tries PyMuPDF, then pdfminer.six, then OCR when enabled. Returns ``""``
    when the PDF opens but holds no readable text; raises ``ExtractionError``
    when no backend can open the payload at all.
    """
    if not data:
        raise ExtractionError("Uploaded file is empty.")

    threshold = settings.pdf_text_min_length if min_length is None else min_length
    use_ocr = settings.pdf_ocr_enabled if ocr_enabled is None else ocr_enabled

    text = ""
    opened = False
    errors: List[str] = []

    try:
        text = _extract_with_pymupdf(data, threshold)
        opened = True
    except Exception as exc:
        errors.append(f"PyMuPDF: {exc}")
        logger.debug("PyMuPDF could not read PDF: %s", exc)

    if len(text.strip()) < threshold:
        try:
            text = pdfminer_extract_text(io.BytesIO(data)) or text
            opened = True
        except Exception as exc:
            errors.append(f"pdfminer: {exc}")
            logger.debug("pdfminer could not read PDF: %s", exc)

    if len(text.strip()) < threshold and use_ocr:
        try:
            ocr_text = _extract_pdf_via_ocr(data)
        except Exception as exc:
            errors.append(f"OCR: {exc}")
            logger.warning("OCR fallback failed: %s", exc)
        else:
            opened = True
            if ocr_text.strip():
                logger.info("OCR fallback succeeded")
                text = ocr_text
            else:
                logger.warning("OCR fallback yielded empty text")
    elif len(text.strip()) < threshold and opened:
        logger.warning("PDF text extraction produced < %s characters", threshold)

    if not opened:
        raise ExtractionError("Unable to read PDF: " + "; ".join(errors))

    return normalize_text(text)


def _extract_with_pymupdf(data: bytes, threshold: int) -> str:
    with fitz.open(stream=data, filetype="pdf") as doc:
        text = "\n".join(page.get_text("text", sort=True) for page in doc)
        if len(text.strip()) >= threshold:
            return text

        block_chunks: List[str] = []
        for page in doc:
            for block in page.get_text("blocks"):
                block_text = block[4]
                if block_text:
                    block_chunks.append(block_text.strip())
    alt_text = "\n".join(block_chunks)
    if len(alt_text.strip()) > len(text.strip()):
        return alt_text
    return text


def _extract_pdf_via_ocr(data: bytes) -> str:
    """Last-resort OCR extraction for image-based PDFs."""
    _ensure_ocr_configured()
    kwargs = {}
    if _configured_poppler_path:
        kwargs["poppler_path"] = _configured_poppler_path

    images = convert_from_bytes(data, dpi=300, **kwargs)
    return "\n".join(pytesseract.image_to_string(image) for image in images)


def normalize_text(text: str) -> str:
    """Normalize whitespace and replace common unicode bullets/dashes."""
    if not text:
        return ""

    char_replacements = {
        "\u2022": "-",
        "\u2023": "-",
        "\u25e6": "-",
        "\u2043": "-",
        "\u2212": "-",
        "\u2013": "-",
        "\u2014": "-",
        "\u2010": "-",
        "\u2012": "-",
        "\u2015": "-",
        "\uf0b7": "-",
        "\uf0d8": "-",
        "\uf0d9": "-",
        "\uf0da": "-",
        "\u2018": "'",
        "\u2019": "'",
        "\u201c": '"',
        "\u201d": '"',
        "\ufb01": "fi",
        "\ufb02": "fl",
        "\u00ad": "-",
        "\u00b7": "-",
        "\u00a0": " ",
        "\u2024": ".",
    }

    translation_table = str.maketrans(char_replacements)
    cleaned = text.translate(translation_table)
    cleaned = re.sub(r"\r\n?", "\n", cleaned)
    cleaned = re.sub(r"[ \t]+\n", "\n", cleaned)
    cleaned = re.sub(r"\n{3,}", "\n\n", cleaned)
    return cleaned.strip()
