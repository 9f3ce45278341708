"""Normalize a parsed UBL document into the flat extraction record.

Pure, total functions: no I/O and no state. The typed document model defaults
its required numerics to 0 so the derivations below can do arithmetic without
guards; the DTO they produce is nullable throughout.

Derived header fields, each an ordered list of candidates (first usable wins):

- subtotal: tax-exclusive amount, then line-extension amount
- total: tax-inclusive amount, then payable amount
- amount_paid: prepaid amount, then total - amount_due when total > amount_due
- tax_total: sum of header tax subtotals, then tax-inclusive - tax-exclusive
- discount_total / shipping_total: explicit allowance/charge total, then the
  absolute sum of header allowance/charges by indicator
- po_number: order reference id, then sales order id
"""

import logging
import math
import re
from datetime import datetime
from typing import Any

from dateutil import parser as date_parser
from pydantic import BaseModel

from services.extraction.schema import (
    ConfidenceBlock,
    InvoiceExtractionDTO,
    InvoiceFields,
    LineItem,
    ReceiverInfo,
    SupplierInfo,
)
from services.ubl.models import (
    UblAddress,
    UblAllowanceCharge,
    UblAttachment,
    UblDocument,
    UblLine,
    UblParty,
    UblPaymentMeans,
)
from services.ubl.parser import parse_ubl_invoice

logger = logging.getLogger(__name__)

PROVIDER_NAME = "ubl_xml"
RAW_FORMAT = "ubl_xml"
INVALID_UBL_MESSAGE = "Failed to parse UBL invoice XML"
DEFAULT_LINE_DESCRIPTION = "Line item"

# Static: structured XML carries no extraction uncertainty
CONFIDENCE_FIELDS = ("invoice_id", "invoice_date", "due_date", "total_amount", "supplier_name")

_ABSENT_MARKERS = {"NA", "N/A"}
_WHITESPACE = re.compile(r"\s+")
# Missing date components (e.g. a bare year) resolve against a fixed date
_DATE_DEFAULT = datetime(1970, 1, 1)


class InvalidUblDocumentError(ValueError):
    """Raised when the input is not a parseable UBL Invoice or CreditNote."""

    def __init__(self, message: str = INVALID_UBL_MESSAGE) -> None:
        super().__init__(message)


class NormalizedUbl(BaseModel):
    """DTO plus the sanitized raw echo of the parsed document.

    Attributes:
        extracted: Normalized extraction record
        raw_payload: ``{"format": "ubl_xml", "invoice": <sanitized document>}``
    """

    extracted: InvoiceExtractionDTO
    raw_payload: dict[str, Any]


# --- Scalar normalization ---


def normalize_text(value: str | None) -> str | None:
    """Trim ``value``; empty, "NA" and "N/A" (any case) read as absent."""
    if not value:
        return None
    trimmed = value.strip()
    if not trimmed or trimmed.upper() in _ABSENT_MARKERS:
        return None
    return trimmed


def to_number_or_none(value: float | None) -> float | None:
    if value is None or not math.isfinite(value):
        return None
    return value


def normalize_currency(value: str | None) -> str | None:
    if not value:
        return None
    trimmed = value.strip()
    return trimmed.upper() if trimmed else None


def parse_date(value: str | None) -> str | None:
    """Parse a schema date string into an ISO-8601 calendar date.

    Args:
        value: Date as written in the document (e.g. "2026-02-25")

    Returns:
        "YYYY-MM-DD", or None when the value is missing or not a date
    """
    if not value or not value.strip():
        return None
    try:
        parsed = date_parser.parse(value.strip(), default=_DATE_DEFAULT)
    except (ValueError, OverflowError):
        return None
    return parsed.date().isoformat()


# --- Addresses ---


def _join_present(*parts: str | None) -> str:
    return " ".join(part for part in parts if part and part.strip())


def address_to_text(address: UblAddress | None) -> str | None:
    """Render an address as up to three lines: street, postal zone + city, region + country."""
    if address is None:
        return None
    lines = [
        _join_present(address.street, address.additional_street),
        _join_present(address.postal_zone, address.city),
        _join_present(address.country_subentity, address.country_code),
    ]
    lines = [line for line in lines if line]
    return "\n".join(lines) if lines else None


def address_to_structured(address: UblAddress | None) -> dict[str, str | None] | None:
    if address is None:
        return None
    structured = {
        "line1": normalize_text(_join_present(address.street, address.additional_street)),
        "line2": None,
        "city": normalize_text(address.city),
        "state": normalize_text(address.country_subentity),
        "postal_code": normalize_text(address.postal_zone),
        "country": normalize_text(address.country_code),
    }
    return structured if any(structured.values()) else None


# --- Attachments and allowance/charges ---


def base64_byte_length(content: str) -> int:
    """Decoded size of a base64 payload without decoding it."""
    sanitized = _WHITESPACE.sub("", content)
    if not sanitized:
        return 0
    if sanitized.endswith("=="):
        padding = 2
    elif sanitized.endswith("="):
        padding = 1
    else:
        padding = 0
    return (len(sanitized) * 3) // 4 - padding


def sanitize_attachments(attachments: list[UblAttachment] | None) -> list[dict[str, Any]]:
    """Attachment metadata with the payload replaced by its decoded size."""
    return [
        {
            "id": normalize_text(attachment.id),
            "filename": normalize_text(attachment.filename),
            "mime_code": normalize_text(attachment.mime_code),
            "description": normalize_text(attachment.description),
            "size_bytes": base64_byte_length(attachment.base64_content),
        }
        for attachment in attachments or []
    ]


def sanitize_allowance_charges(
    charges: list[UblAllowanceCharge] | None,
) -> list[dict[str, Any]]:
    return [
        {
            "charge_indicator": charge.charge_indicator,
            "amount": to_number_or_none(charge.amount),
            "base_amount": to_number_or_none(charge.base_amount),
            "multiplier_factor_numeric": to_number_or_none(charge.multiplier_factor_numeric),
            "reason": normalize_text(charge.reason),
            "reason_code": normalize_text(charge.reason_code),
            "tax_percent": to_number_or_none(charge.tax_percent),
            "tax_category_id": normalize_text(charge.tax_category_id),
            "tax_scheme_id": normalize_text(charge.tax_scheme_id),
        }
        for charge in charges or []
    ]


def sanitize_raw_document(document: UblDocument) -> dict[str, Any]:
    """Serialize the document model with attachment payloads stripped.

    The dump is a fresh structure built without the attachment list; the
    sanitized metadata is attached afterwards, so no reference to the base64
    text survives in the result.
    """
    raw = document.model_dump(mode="json", exclude={"attachments"})
    raw["attachments"] = sanitize_attachments(document.attachments)
    return raw


# --- Summation ---


def _sum_tax_total(document: UblDocument) -> float:
    subtotal_sum = sum((sub.tax_amount for sub in document.tax_subtotals), 0.0)
    if document.tax_subtotals and math.isfinite(subtotal_sum):
        return subtotal_sum
    totals = document.monetary_total
    return totals.tax_inclusive_amount - totals.tax_exclusive_amount


def _sum_allowance_charges_by_type(
    charges: list[UblAllowanceCharge] | None, charge_indicator: bool
) -> float:
    return sum(
        (abs(c.amount) for c in charges or [] if c.charge_indicator is charge_indicator),
        0.0,
    )


def _first_number(*candidates: float | None) -> float | None:
    for candidate in candidates:
        number = to_number_or_none(candidate)
        if number is not None:
            return number
    return None


def _first_text(*candidates: str | None) -> str | None:
    for candidate in candidates:
        text = normalize_text(candidate)
        if text is not None:
            return text
    return None


# --- DTO sections ---


def _payment_means_to_dict(means: UblPaymentMeans) -> dict[str, str | None]:
    return {
        "code": normalize_text(means.code),
        "code_name": normalize_text(means.code_name),
        "payment_id": normalize_text(means.payment_id),
        "iban": normalize_text(means.iban),
        "bic": normalize_text(means.bic),
        "account_name": normalize_text(means.account_name),
    }


def _party_extra(party: UblParty) -> dict[str, str | None]:
    contact = party.contact
    return {
        "endpoint_id": normalize_text(party.endpoint_id),
        "endpoint_scheme_id": normalize_text(party.endpoint_scheme_id),
        "registration_name": normalize_text(party.registration_name),
        "company_legal_form": normalize_text(party.company_legal_form),
        "tax_scheme_id": normalize_text(party.tax_scheme_id),
        "contact_name": normalize_text(contact.name) if contact else None,
        "contact_phone": normalize_text(contact.phone) if contact else None,
        "contact_email": normalize_text(contact.email) if contact else None,
    }


def _normalize_line(line: UblLine) -> LineItem:
    return LineItem(
        description=_first_text(line.description, line.item_name) or DEFAULT_LINE_DESCRIPTION,
        quantity=to_number_or_none(line.quantity),
        unit=normalize_text(line.unit_code),
        unit_price=to_number_or_none(line.unit_price),
        amount=to_number_or_none(line.line_extension_amount),
        tax_amount=to_number_or_none(line.tax_amount),
        tax_rate=to_number_or_none(line.tax_percent),
        product_code=_first_text(line.sellers_item_id, line.buyers_item_id),
        discount_amount=to_number_or_none(line.discount_amount),
        extra={
            "ubl_line_id": normalize_text(line.id),
            "item_name": normalize_text(line.item_name),
            "sellers_item_id": normalize_text(line.sellers_item_id),
            "buyers_item_id": normalize_text(line.buyers_item_id),
            "tax_category_id": normalize_text(line.tax_category_id),
            "tax_scheme_id": normalize_text(line.tax_scheme_id),
            "tax_subtotals": [sub.model_dump() for sub in line.tax_subtotals or []],
            "allowance_charges": sanitize_allowance_charges(line.allowance_charges),
            "charge_amount": to_number_or_none(line.charge_amount),
        },
    )


def _build_extra(document: UblDocument) -> dict[str, Any]:
    delivery = document.delivery
    payment_means = document.payment_means
    return {
        "document_type": document.document_type,
        "customization_id": normalize_text(document.customization_id),
        "profile_id": normalize_text(document.profile_id),
        "invoice_type_code": normalize_text(document.invoice_type_code),
        "buyer_reference": normalize_text(document.buyer_reference),
        "order_reference_id": normalize_text(document.order_reference),
        "sales_order_id": normalize_text(document.sales_order_id),
        "contract_reference": normalize_text(document.contract_reference),
        "project_reference": normalize_text(document.project_reference),
        "tax_point_date": parse_date(document.tax_point_date),
        "invoice_period": (
            document.invoice_period.model_dump() if document.invoice_period else None
        ),
        "note": normalize_text(document.note),
        "payment_means": _payment_means_to_dict(payment_means) if payment_means else None,
        "payment_means_list": [
            _payment_means_to_dict(means) for means in document.payment_means_list or []
        ],
        "delivery": (
            {
                "actual_delivery_date": parse_date(delivery.actual_delivery_date),
                "address": address_to_structured(delivery.address),
            }
            if delivery
            else None
        ),
        "supplier": _party_extra(document.seller),
        "receiver": _party_extra(document.buyer),
        "supplier_address_structured": address_to_structured(document.seller.address),
        "receiver_address_structured": address_to_structured(document.buyer.address),
        "tax_subtotals": [sub.model_dump() for sub in document.tax_subtotals],
        "allowance_charges": sanitize_allowance_charges(document.allowance_charges),
        "attachments": sanitize_attachments(document.attachments),
    }


def _build_invoice_fields(document: UblDocument) -> InvoiceFields:
    totals = document.monetary_total
    seller, buyer = document.seller, document.buyer
    payment_means = document.payment_means

    total = _first_number(totals.tax_inclusive_amount, totals.payable_amount)
    amount_due = to_number_or_none(totals.payable_amount)
    amount_paid = to_number_or_none(totals.prepaid_amount)
    if amount_paid is None and total is not None and amount_due is not None:
        if total > amount_due:
            amount_paid = to_number_or_none(total - amount_due)

    has_header_charges = bool(document.allowance_charges)
    discount_total = to_number_or_none(totals.allowance_total_amount)
    if discount_total is None and has_header_charges:
        discount_total = to_number_or_none(
            _sum_allowance_charges_by_type(document.allowance_charges, False)
        )
    shipping_total = to_number_or_none(totals.charge_total_amount)
    if shipping_total is None and has_header_charges:
        shipping_total = to_number_or_none(
            _sum_allowance_charges_by_type(document.allowance_charges, True)
        )

    return InvoiceFields(
        invoice_number=normalize_text(document.id),
        invoice_date=parse_date(document.issue_date),
        due_date=parse_date(document.due_date),
        currency=normalize_currency(document.currency),
        subtotal=_first_number(totals.tax_exclusive_amount, totals.line_extension_amount),
        tax_total=to_number_or_none(_sum_tax_total(document)),
        total=total,
        amount_due=amount_due,
        amount_paid=amount_paid,
        discount_total=discount_total,
        shipping_total=shipping_total,
        payment_terms=normalize_text(document.payment_terms_note),
        po_number=_first_text(document.order_reference, document.sales_order_id),
        supplier=SupplierInfo(
            name=_first_text(seller.name, seller.registration_name),
            address=address_to_text(seller.address),
            tax_id=_first_text(seller.vat_id, seller.company_id),
            iban=normalize_text(payment_means.iban) if payment_means else None,
            bic=normalize_text(payment_means.bic) if payment_means else None,
        ),
        receiver=ReceiverInfo(
            name=_first_text(buyer.name, buyer.registration_name),
            address=address_to_text(buyer.address),
            tax_id=_first_text(buyer.vat_id, buyer.company_id),
        ),
        extra=_build_extra(document),
    )


# --- Public API ---


def normalize_ubl_document(document: UblDocument, document_id: str) -> NormalizedUbl:
    """Normalize an already parsed document.

    Args:
        document: Parsed UBL document model
        document_id: Caller-supplied opaque identifier

    Returns:
        NormalizedUbl with the DTO and the sanitized raw echo
    """
    extracted = InvoiceExtractionDTO(
        provider=PROVIDER_NAME,
        document_id=document_id,
        invoice=_build_invoice_fields(document),
        line_items=[_normalize_line(line) for line in document.lines],
        confidence=ConfidenceBlock(
            overall=1.0,
            fields={field: 1.0 for field in CONFIDENCE_FIELDS},
        ),
    )
    return NormalizedUbl(
        extracted=extracted,
        raw_payload={"format": RAW_FORMAT, "invoice": sanitize_raw_document(document)},
    )


def normalize_ubl_response(source: str | bytes | UblDocument, document_id: str) -> NormalizedUbl:
    """Parse (when given XML) and normalize a UBL document.

    Args:
        source: XML text, UTF-8 bytes, or a parsed document model
        document_id: Caller-supplied opaque identifier

    Returns:
        NormalizedUbl with the DTO and the sanitized raw echo

    Raises:
        InvalidUblDocumentError: If the XML is not a parseable UBL Invoice/CreditNote
    """
    document = source if isinstance(source, UblDocument) else parse_ubl_invoice(source)
    if document is None:
        logger.debug(f"Document {document_id} is not valid UBL")
        raise InvalidUblDocumentError()
    return normalize_ubl_document(document, document_id)
