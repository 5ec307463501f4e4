"""
Plain text from uploaded study material (PDF or text files)
"""
import io
import re

import structlog
from pypdf import PdfReader
from pypdf.errors import PyPdfError

logger = structlog.get_logger()

MAX_PDF_PAGES = 20

UNWANTED_INLINE = ["\u00ad", "\uf0b7", "\u2022", "\u200b", "\u200c", "\u200d"]


class TextExtractionError(ValueError):
    pass


def normalize_text(raw_text: str) -> str:
    for ch in UNWANTED_INLINE:
        raw_text = raw_text.replace(ch, " ")
    raw_text = re.sub(r"-\s*\n\s*(?=\w)", "", raw_text)  # de-hyphenate across linebreaks
    raw_text = raw_text.replace("\r\n", "\n").replace("\r", "\n")
    raw_text = re.sub(r"[ \t]+\n", "\n", raw_text)
    raw_text = re.sub(r"\n{3,}", "\n\n", raw_text)
    return raw_text.strip()


def extract_text_from_pdf(data: bytes) -> str:
    try:
        reader = PdfReader(io.BytesIO(data))
        if reader.is_encrypted:
            reader.decrypt("")
        parts = [page.extract_text() or "" for page in reader.pages[:MAX_PDF_PAGES]]
    except (PyPdfError, ValueError, KeyError) as e:
        raise TextExtractionError(f"PDF parse error: {e}") from e
    return "\n".join(parts)


def extract_text(filename: str, data: bytes) -> str:
    if (filename or "").lower().endswith(".pdf"):
        text = extract_text_from_pdf(data)
    else:
        text = data.decode("utf-8", errors="ignore")
    text = normalize_text(text)
    logger.info("text_extracted", filename=filename, bytes=len(data), chars=len(text))
    return text
