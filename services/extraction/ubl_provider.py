"""UBL 2.1 XML extraction provider.

Structured e-invoices need no OCR or model inference: the document is parsed
directly and normalized into the shared extraction record. Extraction is
synchronous, so ``provider_job_id`` is always None.
"""

import logging

from services.extraction.base import ExtractionProvider, ExtractionResult
from services.extraction.normalize import PROVIDER_NAME, InvalidUblDocumentError
from services.extraction.service import parse_ubl_invoice_document

logger = logging.getLogger(__name__)


class UblXmlExtractionProvider(ExtractionProvider):
    """Extraction provider for UBL Invoice and CreditNote documents."""

    @property
    def provider_name(self) -> str:
        return PROVIDER_NAME

    def is_available(self) -> bool:
        """Always available: parsing is local and needs no credentials."""
        return True

    def extract_document(
        self, content: bytes, document_id: str, mime_type: str
    ) -> ExtractionResult:
        """Parse and normalize a UBL document.

        Args:
            content: Raw XML bytes (UTF-8, optional BOM)
            document_id: Caller-supplied document identifier
            mime_type: Caller-supplied MIME type, echoed into the raw payload

        Returns:
            ExtractionResult with the normalized record or an error
        """
        if not content or not content.strip():
            return ExtractionResult(
                extracted=None,
                success=False,
                error="Empty document provided",
                provider=self.provider_name,
            )

        try:
            outcome = parse_ubl_invoice_document(content, document_id, mime_type)
        except InvalidUblDocumentError as e:
            logger.warning(f"Document {document_id} rejected: {e}")
            return ExtractionResult(
                extracted=None,
                success=False,
                error=str(e),
                provider=self.provider_name,
            )

        logger.info(
            f"Extracted {outcome.extracted.invoice.extra.get('document_type')} "
            f"{outcome.extracted.invoice.invoice_number} for document {document_id} "
            f"({len(outcome.extracted.line_items)} lines)"
        )
        return ExtractionResult(
            extracted=outcome.extracted,
            raw_payload=outcome.raw_payload,
            provider_job_id=outcome.provider_job_id,
            success=True,
            provider=self.provider_name,
        )
