"""Abstract base class for extraction providers.

Every document format the platform accepts is handled by a provider that turns
raw document bytes into the shared ``InvoiceExtractionDTO`` shape, so callers
can switch formats without changing how they consume results.

Based on Strategy Pattern:
https://refactoring.guru/design-patterns/strategy/python

Design follows existing patterns:
- Pydantic BaseModel for type-safe results (consistent with schema.py)
- ABC for interface enforcement (Python standard library)
- Settings injection (consistent with existing service initialization)
"""

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel

from services.extraction.schema import InvoiceExtractionDTO
from services.shared.config import Settings


class ExtractionResult(BaseModel):
    """Result of extraction operation.

    Attributes:
        extracted: Normalized record or None if extraction failed
        raw_payload: Provider-specific echo of the source document (sanitized)
        provider_job_id: Job handle for asynchronous providers, None otherwise
        success: Whether operation succeeded
        error: Error message if operation failed
        provider: Name of provider that performed extraction (e.g., 'ubl_xml')
    """

    extracted: InvoiceExtractionDTO | None
    raw_payload: dict[str, Any] | None = None
    provider_job_id: str | None = None
    success: bool
    error: str | None = None
    provider: str  # Track which provider was used


class ExtractionProvider(ABC):
    """Abstract base class for document extraction providers.

    All extraction services must implement this interface to ensure
    consistent behavior and type safety.

    Example implementations:
    - UblXmlExtractionProvider: UBL 2.1 Invoice/CreditNote XML
    """

    def __init__(self, settings: Settings) -> None:
        """Initialize provider with settings.

        Args:
            settings: Application settings
        """
        self.settings = settings

    @abstractmethod
    def extract_document(
        self, content: bytes, document_id: str, mime_type: str
    ) -> ExtractionResult:
        """Extract a normalized record from raw document bytes.

        Args:
            content: Raw document bytes
            document_id: Caller-supplied document identifier
            mime_type: Caller-supplied MIME type

        Returns:
            ExtractionResult with normalized data or error
        """
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Check if this provider is available/configured.

        Returns:
            True if provider can be used, False otherwise
        """
        pass

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Get provider name for logging/metrics.

        Returns:
            Provider identifier (e.g., 'ubl_xml')
        """
        pass
