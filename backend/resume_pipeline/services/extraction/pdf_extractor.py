import io
import os
import tempfile
from contextlib import contextmanager
from typing import Iterator

import fitz  # PyMuPDF
import pdfplumber
import pytesseract
from pdf2image import convert_from_path

from ...exceptions import ExtractionError
from ...utils.logger import get_logger
from .preprocess import preprocess_image_for_ocr

logger = get_logger(__name__)

IMAGE_BASED_MESSAGE = (
    "Could not extract sufficient text from PDF. "
    "The PDF is likely image-based and OCR failed"
)


@contextmanager
def temporary_pdf(pdf_bytes: bytes) -> Iterator[str]:
    """
    Write the bytes to a temporary .pdf for backends that only take paths.
    The file is removed when the block exits, whether or not it raised.
    """
    fd, path = tempfile.mkstemp(suffix=".pdf")
    try:
        with os.fdopen(fd, "wb") as fp:
            fp.write(pdf_bytes)
        yield path
    finally:
        try:
            os.remove(path)
        except FileNotFoundError:
            pass


class PdfTextExtractor:
    """
    Converts PDF bytes to plain text.

    The embedded text layer is read with pdfplumber (PyMuPDF if pdfplumber
    cannot open the file). Documents whose text layer is shorter than
    `min_text_length` are treated as scanned and go through Tesseract.
    """

    def __init__(self, min_text_length: int = 50, ocr_dpi: int = 300, ocr_lang: str = "eng"):
        self.min_text_length = min_text_length
        self.ocr_dpi = ocr_dpi
        self.ocr_lang = ocr_lang

    def extract_text(self, pdf_bytes: bytes) -> str:
        text = self._extract_text_layer(pdf_bytes)
        if len(text) >= self.min_text_length:
            return text

        logger.warning(
            f"PDF text layer has {len(text)} characters (< {self.min_text_length}), attempting OCR..."
        )
        return self.extract_text_with_ocr(pdf_bytes)

    # -------------- Text layer --------------

    def _extract_text_layer(self, pdf_bytes: bytes) -> str:
        try:
            return self._extract_with_pdfplumber(pdf_bytes)
        except Exception as e:
            logger.warning(f"pdfplumber could not read the PDF ({e}), retrying with PyMuPDF")
            try:
                return self._extract_with_pymupdf(pdf_bytes)
            except Exception as fallback_error:
                logger.error(f"PyMuPDF could not read the PDF either: {fallback_error}")
                raise ExtractionError(f"Failed to extract text from PDF: {fallback_error}") from e

    def _extract_with_pdfplumber(self, pdf_bytes: bytes) -> str:
        parts = []
        with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
            for page in pdf.pages:
                page_text = page.extract_text()
                if page_text:
                    parts.append(page_text)
        return "\n\n".join(parts).strip()

    def _extract_with_pymupdf(self, pdf_bytes: bytes) -> str:
        with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
            text = "\n\n".join(page.get_text("text") for page in doc)
        return text.strip()

    # -------------- OCR fallback --------------

    def extract_text_with_ocr(self, pdf_bytes: bytes) -> str:
        try:
            with temporary_pdf(pdf_bytes) as path:
                images = convert_from_path(path, dpi=self.ocr_dpi)
                texts = []
                for i, img in enumerate(images, start=1):
                    logger.info(f"Running Tesseract OCR on page {i}...")
                    texts.append(pytesseract.image_to_string(preprocess_image_for_ocr(img), lang=self.ocr_lang))
        except Exception as e:
            logger.error(f"OCR fallback failed: {e}")
            raise ExtractionError(f"{IMAGE_BASED_MESSAGE}: {e}") from e

        text = "\n\n".join(t.strip() for t in texts if t and t.strip()).strip()
        if not text:
            raise ExtractionError(f"{IMAGE_BASED_MESSAGE}: no text recognised")
        return text
