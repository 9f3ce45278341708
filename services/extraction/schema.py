"""Normalized invoice extraction record.

Format-independent shape shared by every extraction provider. Every monetary,
date and numeric field is nullable: "unknown" is representable and never
silently defaulted to zero at this layer.
"""

from typing import Any

from pydantic import BaseModel, Field


class SupplierInfo(BaseModel):
    """Seller as exposed to API consumers."""

    name: str | None = Field(None, description="Supplier/vendor company name")
    address: str | None = Field(None, description="Multi-line address text")
    tax_id: str | None = Field(None, description="VAT id, falling back to company id")
    iban: str | None = Field(None, description="IBAN of the first payment means")
    bic: str | None = Field(None, description="BIC of the first payment means")


class ReceiverInfo(BaseModel):
    """Buyer as exposed to API consumers."""

    name: str | None = Field(None, description="Customer/buyer company name")
    address: str | None = Field(None, description="Multi-line address text")
    tax_id: str | None = Field(None, description="VAT id, falling back to company id")


class InvoiceFields(BaseModel):
    """Header-level business fields of an extracted invoice."""

    invoice_number: str | None = Field(None, description="Unique invoice identifier")
    invoice_date: str | None = Field(None, description="Issue date (YYYY-MM-DD)")
    due_date: str | None = Field(None, description="Payment due date (YYYY-MM-DD)")
    currency: str | None = Field(None, description="Currency code (ISO 4217)")

    # Financial details
    subtotal: float | None = Field(None, description="Amount before tax")
    tax_total: float | None = Field(None, description="Total tax amount")
    total: float | None = Field(None, description="Amount including tax")
    amount_due: float | None = Field(None, description="Payable amount")
    amount_paid: float | None = Field(None, description="Prepaid or already settled amount")
    discount_total: float | None = Field(None, description="Header-level allowances")
    shipping_total: float | None = Field(None, description="Header-level charges")

    payment_terms: str | None = None
    po_number: str | None = Field(None, description="Purchase/sales order reference")

    supplier: SupplierInfo = Field(default_factory=SupplierInfo)
    receiver: ReceiverInfo = Field(default_factory=ReceiverInfo)

    # Format-specific fields not promoted to first-class fields
    extra: dict[str, Any] = Field(default_factory=dict)


class LineItem(BaseModel):
    description: str
    quantity: float | None = None
    unit: str | None = None
    unit_price: float | None = None
    amount: float | None = None
    tax_amount: float | None = None
    tax_rate: float | None = None
    product_code: str | None = None
    discount_amount: float | None = None
    extra: dict[str, Any] = Field(default_factory=dict)


class ConfidenceBlock(BaseModel):
    """Extraction confidence.

    Attributes:
        overall: Overall confidence (0-1), None when unknown
        fields: Per-field confidence (0-1)
    """

    overall: float | None = Field(None, ge=0, le=1)
    fields: dict[str, float] = Field(default_factory=dict)


class InvoiceExtractionDTO(BaseModel):
    """Flat extraction record suitable for storage or API responses."""

    provider: str
    document_id: str
    invoice: InvoiceFields
    line_items: list[LineItem] = Field(default_factory=list)
    confidence: ConfidenceBlock = Field(default_factory=ConfidenceBlock)
