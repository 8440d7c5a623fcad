from __future__ import annotations

from io import BytesIO
from typing import Optional

import pdfplumber

from brokerage.config import settings
from brokerage.services.extraction import ExtractionError

PDF_MIME_TYPE = "application/pdf"


def is_pdf(content_type: Optional[str], filename: Optional[str]) -> bool:
    return content_type == PDF_MIME_TYPE or (filename or "").lower().endswith(".pdf")


def pdf_to_text(data: bytes) -> str:
    with pdfplumber.open(BytesIO(data)) as pdf:
        return "\n".join((page.extract_text() or "") for page in pdf.pages)


def read_document_text(
    *,
    data: Optional[bytes] = None,
    filename: Optional[str] = None,
    content_type: Optional[str] = None,
    manual_text: Optional[str] = None,
    max_chars: Optional[int] = None,
) -> str:
    """Text of an uploaded quotation document, or the manual text when no file is given.

    The result is stripped and truncated to `max_chars`
    (default: settings.max_document_chars).
    """

    has_manual = bool(manual_text and manual_text.strip())
    if data is None and not has_manual:
        raise ExtractionError("Quotation document is required")

    if data is not None:
        if is_pdf(content_type, filename):
            try:
                text = pdf_to_text(data)
            except Exception as exc:
                raise ExtractionError("Unable to read quotation document") from exc
        else:
            text = data.decode("utf-8", errors="replace")
    else:
        text = manual_text or ""

    text = text.strip()
    if not text:
        raise ExtractionError("Unable to read quotation document")

    limit = settings.max_document_chars if max_chars is None else int(max_chars)
    return text[:limit]
