"""Typed document model for UBL 2.1 invoices and credit notes.

The model mirrors the business semantics of the UBL schema. Dates stay as the
schema-native strings found in the document; required numerics default to 0
so that arithmetic over a parsed document never meets a missing value.
"""

from typing import Literal

from pydantic import BaseModel, Field, computed_field

DocumentKind = Literal["Invoice", "CreditNote"]


class UblAddress(BaseModel):
    """Postal or delivery address."""

    street: str = ""
    additional_street: str | None = None
    city: str = ""
    postal_zone: str = ""
    country_subentity: str | None = None
    country_code: str = ""


class UblContact(BaseModel):
    """Party contact. Only built when at least one field is present."""

    name: str | None = None
    phone: str | None = None
    email: str | None = None


class UblParty(BaseModel):
    """Seller or buyer.

    A party that cannot be resolved from the document is represented by the
    placeholder name "Unknown" instead of being omitted.
    """

    name: str = ""
    registration_name: str | None = None
    company_legal_form: str | None = None
    vat_id: str | None = None
    tax_scheme_id: str | None = None
    company_id: str | None = None
    endpoint_id: str | None = None
    endpoint_scheme_id: str | None = None
    address: UblAddress | None = None
    contact: UblContact | None = None


class UblTaxSubtotal(BaseModel):
    taxable_amount: float = 0.0
    tax_amount: float = 0.0
    tax_percent: float = 0.0
    tax_category_id: str | None = None
    tax_scheme_id: str | None = None
    tax_exemption_reason: str | None = None


class UblAllowanceCharge(BaseModel):
    """Allowance (discount) or charge (surcharge).

    Attributes:
        charge_indicator: True for a charge, False for an allowance
        amount: Amount as written; aggregations use its absolute value
    """

    charge_indicator: bool = False
    amount: float = 0.0
    base_amount: float | None = None
    multiplier_factor_numeric: float | None = None
    reason: str | None = None
    reason_code: str | None = None
    tax_percent: float | None = None
    tax_category_id: str | None = None
    tax_scheme_id: str | None = None


class UblLine(BaseModel):
    """Invoice or credit note line.

    ``discount_amount`` and ``charge_amount`` are pre-aggregated from the line's
    own allowance/charges; a zero sum is stored as None.
    """

    id: str = ""
    description: str = ""
    quantity: float = 0.0
    unit_code: str = ""
    unit_price: float = 0.0
    line_extension_amount: float = 0.0
    tax_percent: float | None = None
    tax_amount: float | None = None
    tax_category_id: str | None = None
    tax_scheme_id: str | None = None
    tax_subtotals: list[UblTaxSubtotal] | None = None
    allowance_charges: list[UblAllowanceCharge] | None = None
    discount_amount: float | None = None
    charge_amount: float | None = None
    item_name: str | None = None
    sellers_item_id: str | None = None
    buyers_item_id: str | None = None


class UblMonetaryTotal(BaseModel):
    line_extension_amount: float = 0.0
    tax_exclusive_amount: float = 0.0
    tax_inclusive_amount: float = 0.0
    allowance_total_amount: float | None = None
    charge_total_amount: float | None = None
    prepaid_amount: float | None = None
    payable_rounding_amount: float | None = None
    payable_amount: float = 0.0


class UblPaymentMeans(BaseModel):
    code: str = ""
    code_name: str | None = None
    payment_id: str | None = None
    iban: str | None = None
    bic: str | None = None
    account_name: str | None = None


class UblInvoicePeriod(BaseModel):
    start_date: str | None = None
    end_date: str | None = None
    description_code: str | None = None


class UblDelivery(BaseModel):
    actual_delivery_date: str | None = None
    address: UblAddress | None = None


class UblAttachment(BaseModel):
    """Embedded document carried in an AdditionalDocumentReference."""

    id: str = ""
    filename: str | None = None
    mime_code: str | None = None
    description: str | None = None
    base64_content: str


class UblDocument(BaseModel):
    """Root aggregate produced by one parse call."""

    document_type: DocumentKind
    customization_id: str | None = None
    profile_id: str | None = None
    id: str = Field(min_length=1)
    invoice_type_code: str | None = None
    issue_date: str = ""
    due_date: str | None = None
    tax_point_date: str | None = None
    currency: str = ""
    buyer_reference: str | None = None
    order_reference: str | None = None
    sales_order_id: str | None = None
    contract_reference: str | None = None
    project_reference: str | None = None
    seller: UblParty
    buyer: UblParty
    delivery: UblDelivery | None = None
    lines: list[UblLine] = Field(default_factory=list)
    tax_subtotals: list[UblTaxSubtotal] = Field(default_factory=list)
    monetary_total: UblMonetaryTotal = Field(default_factory=UblMonetaryTotal)
    payment_means_list: list[UblPaymentMeans] | None = None
    invoice_period: UblInvoicePeriod | None = None
    note: str | None = None
    payment_terms_note: str | None = None
    attachments: list[UblAttachment] | None = None
    allowance_charges: list[UblAllowanceCharge] | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def payment_means(self) -> UblPaymentMeans | None:
        """First payment means of the document, if any."""
        return self.payment_means_list[0] if self.payment_means_list else None

    @property
    def is_credit_note(self) -> bool:
        return self.document_type == "CreditNote"
