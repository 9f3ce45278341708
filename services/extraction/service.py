"""Entry points for UBL extraction.

- ``decode_xml_bytes``: strip a UTF-8 byte-order mark and decode
- ``parse_ubl_invoice``: XML -> document model, or None when invalid
- ``normalize_ubl_response``: XML or document model -> DTO + raw echo
- ``parse_ubl_invoice_document``: bytes -> DTO + raw echo (with MIME type)

All four are synchronous and stateless; concurrent calls need no coordination.

Usage:
    from services.extraction.service import parse_ubl_invoice_document

    outcome = parse_ubl_invoice_document(content, "doc-1", "application/xml")
    outcome.extracted.invoice.total
"""

from typing import Any

from pydantic import BaseModel

from services.extraction.normalize import (
    InvalidUblDocumentError,
    NormalizedUbl,
    normalize_ubl_response,
)
from services.extraction.schema import InvoiceExtractionDTO
from services.ubl.parser import parse_ubl_invoice

UTF8_BOM = "\ufeff"


class UblExtractionOutcome(BaseModel):
    """Result of end-to-end extraction from raw bytes.

    Attributes:
        extracted: Normalized extraction record
        raw_payload: Sanitized document echo plus the caller's MIME type
        provider_job_id: Always None; synchronous extraction has no job
    """

    extracted: InvoiceExtractionDTO
    raw_payload: dict[str, Any]
    provider_job_id: str | None = None


def decode_xml_bytes(content: bytes) -> str:
    """Decode UTF-8 bytes, dropping one leading byte-order mark.

    Invalid byte sequences become U+FFFD; a stray byte in free text does not
    make the document unreadable.
    """
    text = content.decode("utf-8", errors="replace")
    return text[1:] if text.startswith(UTF8_BOM) else text


def parse_ubl_invoice_document(
    content: bytes, document_id: str, mime_type: str
) -> UblExtractionOutcome:
    """Decode, parse and normalize a UBL document.

    Args:
        content: Raw document bytes (UTF-8, optional BOM)
        document_id: Caller-supplied opaque identifier
        mime_type: Caller-supplied MIME type, echoed into the raw payload

    Returns:
        UblExtractionOutcome with the DTO and sanitized raw echo

    Raises:
        InvalidUblDocumentError: If the bytes are not a parseable UBL document
    """
    normalized = normalize_ubl_response(decode_xml_bytes(content), document_id)
    return UblExtractionOutcome(
        extracted=normalized.extracted,
        raw_payload={**normalized.raw_payload, "mime_type": mime_type},
    )


__all__ = [
    "InvalidUblDocumentError",
    "NormalizedUbl",
    "UblExtractionOutcome",
    "decode_xml_bytes",
    "normalize_ubl_response",
    "parse_ubl_invoice",
    "parse_ubl_invoice_document",
]
