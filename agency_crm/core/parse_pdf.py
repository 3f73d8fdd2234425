"""Utilities for recovering text from uploaded policy PDFs and scans."""

from __future__ import annotations

import logging
import os
import re
import tempfile
from io import BytesIO
from pathlib import PurePath
from typing import List, Optional, Sequence

import pytesseract
from pdfminer.high_level import extract_text as pdfminer_extract_text
from PIL import Image, UnidentifiedImageError
from pypdf import PdfReader

LOGGER = logging.getLogger(__name__)

OCR_LANG = os.getenv("OCR_LANG", "tur")

PDF_CONTENT_TYPES = {"application/pdf", "application/x-pdf"}
IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".tif", ".tiff", ".bmp", ".webp"}
PAGE_SEPARATOR = "\n\n"


def normalize_extracted_text(text: str) -> str:
    """Normalize extracted text while keeping table-friendly spacing."""

    normalized = text.replace("\r", "\n").replace("\t", " ")
    normalized = re.sub(r"[ ]{3,}", "  ", normalized)
    normalized = re.sub(r"\n{3,}", "\n\n", normalized)
    return normalized.strip()


def is_pdf(filename: Optional[str], content_type: Optional[str]) -> bool:
    if content_type and content_type.lower() in PDF_CONTENT_TYPES:
        return True
    return bool(filename) and PurePath(filename).suffix.lower() == ".pdf"


def is_image(filename: Optional[str], content_type: Optional[str]) -> bool:
    if content_type and content_type.lower().startswith("image/"):
        return True
    return bool(filename) and PurePath(filename).suffix.lower() in IMAGE_EXTENSIONS


def extract_document_text(
    file_bytes: bytes,
    *,
    filename: Optional[str] = None,
    content_type: Optional[str] = None,
) -> str:
    """Return the text of an uploaded PDF or image, or ``""`` if none can be read."""

    if not file_bytes:
        return ""
    if is_pdf(filename, content_type) or file_bytes.startswith(b"%PDF"):
        return extract_text_from_pdf(file_bytes, filename=filename)
    if is_image(filename, content_type):
        return extract_text_from_image(file_bytes, filename=filename)

    LOGGER.warning(
        "Unsupported document type for %s (%s); trying image OCR",
        filename or "unknown file",
        content_type or "no content type",
    )
    return extract_text_from_image(file_bytes, filename=filename)


def extract_text_from_pdf(file_bytes: bytes, *, filename: Optional[str] = None) -> str:
    """Extract normalized text from PDF bytes, falling back to OCR for scans."""

    if not file_bytes:
        return ""

    page_texts = _extract_with_pypdf(file_bytes)
    if any(page.strip() for page in page_texts):
        return _join_pages(page_texts)

    LOGGER.warning(
        "Primary PDF extraction failed; attempting pdfminer fallback for %s",
        filename or "unknown file",
    )
    pdfminer_text = _extract_with_pdfminer(file_bytes)
    if pdfminer_text.strip():
        return _join_pages([pdfminer_text])

    LOGGER.warning(
        "Both primary PDF extractors failed; attempting OCR fallback for %s",
        filename or "unknown file",
    )
    ocr_pages = _extract_with_ocr(file_bytes, filename=filename)
    if ocr_pages:
        return _join_pages(ocr_pages)

    return ""


def extract_text_from_image(
    file_bytes: bytes, *, filename: Optional[str] = None, lang: Optional[str] = None
) -> str:
    """Run Tesseract over an uploaded photo or scan."""

    if not file_bytes:
        return ""

    try:
        with Image.open(BytesIO(file_bytes)) as image:
            text = pytesseract.image_to_string(image, lang=lang or OCR_LANG)
    except UnidentifiedImageError:
        LOGGER.warning("Could not identify image data for %s", filename or "unknown file")
        return ""
    except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError) as exc:
        LOGGER.error("Tesseract failed for %s", filename or "unknown file", exc_info=exc)
        return ""

    return normalize_extracted_text(text or "")


def _extract_with_pypdf(file_bytes: bytes) -> List[str]:
    try:
        reader = PdfReader(BytesIO(file_bytes))
    except Exception as exc:  # pragma: no cover - defensive guard
        LOGGER.error("Failed to read PDF with pypdf", exc_info=exc)
        return []

    texts = []
    for page in reader.pages:
        try:
            page_text = page.extract_text() or ""
        except Exception as exc:  # pragma: no cover - defensive guard
            LOGGER.warning("Failed to extract page with pypdf", exc_info=exc)
            page_text = ""
        texts.append(page_text)

    return texts


def _extract_with_pdfminer(file_bytes: bytes) -> str:
    try:
        return pdfminer_extract_text(BytesIO(file_bytes)) or ""
    except Exception as exc:  # pragma: no cover - defensive guard
        LOGGER.error("Failed to extract PDF with pdfminer", exc_info=exc)
        return ""


def _extract_with_ocr(file_bytes: bytes, *, filename: Optional[str] = None) -> List[str]:
    """OCR a scanned PDF with ocrmypdf, installed through the ``ocr`` extra."""

    try:  # pragma: no cover - optional dependency path
        import ocrmypdf  # type: ignore[import-untyped]
    except ImportError:  # pragma: no cover
        LOGGER.warning(
            "OCR dependencies unavailable (missing ocrmypdf); "
            "install the ocr extra to enable OCR for %s",
            filename or "unknown file",
        )
        return []

    try:
        with (
            tempfile.NamedTemporaryFile(suffix=".pdf") as input_tmp,
            tempfile.NamedTemporaryFile(suffix=".pdf") as output_tmp,
        ):
            input_tmp.write(file_bytes)
            input_tmp.flush()

            ocrmypdf.ocr(  # type: ignore[attr-defined]
                input_tmp.name,
                output_tmp.name,
                language=[OCR_LANG],
                progress_bar=False,
                force_ocr=True,
            )

            output_tmp.seek(0)
            ocr_bytes = output_tmp.read()
    except Exception as exc:  # pragma: no cover - defensive guard
        LOGGER.error("OCR processing failed for %s", filename or "unknown file", exc_info=exc)
        return []

    if not ocr_bytes:
        LOGGER.warning("OCR processing produced no output for %s", filename or "unknown file")
        return []

    page_texts = _extract_with_pypdf(ocr_bytes)
    if any(page.strip() for page in page_texts):
        return page_texts

    fallback_text = _extract_with_pdfminer(ocr_bytes)
    return [fallback_text] if fallback_text else []


def _join_pages(pages: Sequence[str]) -> str:
    cleaned = [normalize_extracted_text(page) for page in pages]
    return PAGE_SEPARATOR.join(page for page in cleaned if page)
