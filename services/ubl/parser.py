"""UBL 2.1 Invoice / CreditNote parser.

Walks the root element of a UBL document and builds a ``UblDocument``. One
parser per aggregate, composed depth-first. Only three conditions make a
document unparseable (malformed XML, a root that is neither Invoice nor
CreditNote, a missing root ID); every other gap degrades to an empty,
placeholder or absent value.

Based on:
- OASIS UBL 2.1: https://docs.oasis-open.org/ubl/os-UBL-2.1/UBL-2.1.html
- lxml parsing: https://lxml.de/parsing.html
"""

import logging
from typing import cast

from lxml import etree

from services.ubl.elements import (
    CBC_NS,
    Element,
    attribute,
    cac_child,
    cac_children,
    cac_path,
    cbc_child,
    cbc_child_flag,
    cbc_child_number,
    cbc_child_optional_number,
    cbc_child_text,
    element_text,
    find_children,
    find_descendant,
    local_name,
)
from services.ubl.models import (
    DocumentKind,
    UblAddress,
    UblAllowanceCharge,
    UblAttachment,
    UblContact,
    UblDelivery,
    UblDocument,
    UblInvoicePeriod,
    UblLine,
    UblMonetaryTotal,
    UblParty,
    UblPaymentMeans,
    UblTaxSubtotal,
)

logger = logging.getLogger(__name__)

DOCUMENT_KINDS: tuple[DocumentKind, ...] = ("Invoice", "CreditNote")

# Decimal places for a line tax amount computed from percent x base.
# Applied to every currency; minor-unit precision per currency is not used.
LINE_TAX_DECIMALS = 2

UNKNOWN_PARTY_NAME = "Unknown"


def _optional(value: str) -> str | None:
    return value or None


def _text_in(aggregate: Element | None, tag: str) -> str | None:
    """Direct-child text of an optional aggregate; empty reads as None."""
    if aggregate is None:
        return None
    return _optional(cbc_child_text(aggregate, tag))


def _first(*candidates: str | None) -> str | None:
    """First candidate that is a non-empty string."""
    for candidate in candidates:
        if candidate:
            return candidate
    return None


def _new_parser() -> etree.XMLParser:
    # A fresh parser per call; lxml parser objects are not safe to share
    # between threads parsing concurrently.
    return etree.XMLParser(
        resolve_entities=False,
        no_network=True,
        remove_comments=True,
        remove_pis=True,
        # Embedded attachments can exceed libxml2's 10 MB text-node limit
        huge_tree=True,
    )


# --- Section parsers ---


def _parse_address(address: Element | None) -> UblAddress | None:
    if address is None:
        return None
    country = cac_child(address, "Country")
    return UblAddress(
        street=cbc_child_text(address, "StreetName"),
        additional_street=_optional(cbc_child_text(address, "AdditionalStreetName")),
        city=cbc_child_text(address, "CityName"),
        postal_zone=cbc_child_text(address, "PostalZone"),
        country_subentity=_optional(cbc_child_text(address, "CountrySubentity")),
        country_code=cbc_child_text(country, "IdentificationCode") if country is not None else "",
    )


def _parse_tax_scheme_id(parent: Element | None) -> str | None:
    return _text_in(cac_path(parent, "TaxScheme"), "ID")


def _parse_contact(party: Element) -> UblContact | None:
    contact = cac_child(party, "Contact")
    if contact is None:
        return None
    name = cbc_child_text(contact, "Name")
    phone = cbc_child_text(contact, "Telephone")
    email = cbc_child_text(contact, "ElectronicMail")
    if not (name or phone or email):
        return None
    return UblContact(name=_optional(name), phone=_optional(phone), email=_optional(email))


def _parse_party(root: Element, role: str) -> UblParty:
    """Parse the Party inside the ``role`` wrapper (e.g. AccountingSupplierParty)."""
    party = cac_path(root, role, "Party")
    if party is None:
        return UblParty(name=UNKNOWN_PARTY_NAME)

    party_name = cac_child(party, "PartyName")
    legal_entity = cac_child(party, "PartyLegalEntity")
    tax_scheme = cac_child(party, "PartyTaxScheme")
    identification = cac_child(party, "PartyIdentification")
    # EndpointID sits at varying depth in real-world documents
    endpoint = find_descendant(party, CBC_NS, "EndpointID")

    return UblParty(
        name=_text_in(party_name, "Name") or "",
        registration_name=_text_in(legal_entity, "RegistrationName"),
        company_legal_form=_text_in(legal_entity, "CompanyLegalForm"),
        vat_id=_text_in(tax_scheme, "CompanyID"),
        tax_scheme_id=_parse_tax_scheme_id(tax_scheme),
        company_id=_first(_text_in(legal_entity, "CompanyID"), _text_in(identification, "ID")),
        endpoint_id=_optional(element_text(endpoint)),
        endpoint_scheme_id=_optional(attribute(endpoint, "schemeID")),
        address=_parse_address(cac_child(party, "PostalAddress")),
        contact=_parse_contact(party),
    )


def _parse_tax_subtotal(subtotal: Element) -> UblTaxSubtotal:
    category = cac_child(subtotal, "TaxCategory")
    return UblTaxSubtotal(
        taxable_amount=cbc_child_number(subtotal, "TaxableAmount"),
        tax_amount=cbc_child_number(subtotal, "TaxAmount"),
        tax_percent=cbc_child_number(category, "Percent") if category is not None else 0.0,
        tax_category_id=_text_in(category, "ID"),
        tax_scheme_id=_parse_tax_scheme_id(category),
        tax_exemption_reason=_text_in(category, "TaxExemptionReason"),
    )


def _parse_tax_total_subtotals(tax_total: Element) -> list[UblTaxSubtotal]:
    return [_parse_tax_subtotal(sub) for sub in cac_children(tax_total, "TaxSubtotal")]


def parse_tax_subtotals(parent: Element) -> list[UblTaxSubtotal]:
    """Flatten the subtotals of every direct-child TaxTotal of ``parent``."""
    subtotals: list[UblTaxSubtotal] = []
    for tax_total in cac_children(parent, "TaxTotal"):
        subtotals.extend(_parse_tax_total_subtotals(tax_total))
    return subtotals


def _parse_allowance_charge(charge: Element) -> UblAllowanceCharge:
    category = cac_child(charge, "TaxCategory")
    return UblAllowanceCharge(
        charge_indicator=cbc_child_flag(charge, "ChargeIndicator"),
        amount=cbc_child_number(charge, "Amount"),
        base_amount=cbc_child_optional_number(charge, "BaseAmount"),
        multiplier_factor_numeric=cbc_child_optional_number(charge, "MultiplierFactorNumeric"),
        reason=_optional(cbc_child_text(charge, "AllowanceChargeReason")),
        reason_code=_optional(cbc_child_text(charge, "AllowanceChargeReasonCode")),
        tax_percent=cbc_child_number(category, "Percent") if category is not None else None,
        tax_category_id=_text_in(category, "ID"),
        tax_scheme_id=_parse_tax_scheme_id(category),
    )


def parse_allowance_charges(parent: Element) -> list[UblAllowanceCharge]:
    """Parse the direct-child AllowanceCharge elements of ``parent``.

    Direct children only: scanning the root must not pick up line-level
    allowances, and a line must not pick up anything nested deeper.
    """
    return [_parse_allowance_charge(el) for el in cac_children(parent, "AllowanceCharge")]


def _sum_allowance_charges(charges: list[UblAllowanceCharge], charge_indicator: bool) -> float:
    return sum((abs(c.amount) for c in charges if c.charge_indicator is charge_indicator), 0.0)


def _resolve_line_tax_amount(
    explicit_amount: float | None,
    subtotals: list[UblTaxSubtotal],
    tax_percent: float | None,
    line_extension_amount: float,
) -> float | None:
    """Resolve a line's tax amount; the first available source wins.

    1. TaxAmount on the line's own TaxTotal
    2. Sum of the line's tax subtotals
    3. line extension amount x percent / 100, rounded
    """
    if explicit_amount is not None:
        return explicit_amount
    if subtotals:
        return sum(sub.tax_amount for sub in subtotals)
    if tax_percent is not None:
        return round(line_extension_amount * tax_percent / 100, LINE_TAX_DECIMALS)
    return None


def _parse_line(line: Element, quantity_tag: str) -> UblLine:
    item = cac_child(line, "Item")
    price = cac_child(line, "Price")
    classified = cac_path(item, "ClassifiedTaxCategory")
    sellers_id = cac_path(item, "SellersItemIdentification")
    buyers_id = cac_path(item, "BuyersItemIdentification")
    quantity = cbc_child(line, quantity_tag)
    line_extension_amount = cbc_child_number(line, "LineExtensionAmount")

    line_tax_total = cac_child(line, "TaxTotal")
    subtotals = _parse_tax_total_subtotals(line_tax_total) if line_tax_total is not None else []
    explicit_tax = (
        cbc_child_optional_number(line_tax_total, "TaxAmount")
        if line_tax_total is not None
        else None
    )

    tax_percent: float | None = None
    if subtotals:
        tax_percent = subtotals[0].tax_percent
    elif classified is not None:
        tax_percent = cbc_child_number(classified, "Percent")

    first_subtotal = subtotals[0] if subtotals else None
    tax_category_id = _first(
        first_subtotal.tax_category_id if first_subtotal else None,
        _text_in(classified, "ID"),
    )
    tax_scheme_id = _first(
        first_subtotal.tax_scheme_id if first_subtotal else None,
        _parse_tax_scheme_id(classified),
    )

    charges = parse_allowance_charges(line)
    discount_amount = _sum_allowance_charges(charges, False)
    charge_amount = _sum_allowance_charges(charges, True)

    return UblLine(
        id=cbc_child_text(line, "ID"),
        description=cbc_child_text(item, "Description") if item is not None else "",
        quantity=cbc_child_number(line, quantity_tag),
        unit_code=attribute(quantity, "unitCode"),
        unit_price=cbc_child_number(price, "PriceAmount") if price is not None else 0.0,
        line_extension_amount=line_extension_amount,
        tax_percent=tax_percent,
        tax_amount=_resolve_line_tax_amount(
            explicit_tax, subtotals, tax_percent, line_extension_amount
        ),
        tax_category_id=tax_category_id,
        tax_scheme_id=tax_scheme_id,
        tax_subtotals=subtotals or None,
        allowance_charges=charges or None,
        discount_amount=discount_amount if discount_amount > 0 else None,
        charge_amount=charge_amount if charge_amount > 0 else None,
        item_name=_text_in(item, "Name"),
        sellers_item_id=_text_in(sellers_id, "ID"),
        buyers_item_id=_text_in(buyers_id, "ID"),
    )


def _parse_lines(root: Element, kind: DocumentKind) -> list[UblLine]:
    if kind == "CreditNote":
        line_tag, quantity_tag = "CreditNoteLine", "CreditedQuantity"
    else:
        line_tag, quantity_tag = "InvoiceLine", "InvoicedQuantity"
    return [_parse_line(line, quantity_tag) for line in cac_children(root, line_tag)]


def _parse_monetary_total(root: Element) -> UblMonetaryTotal:
    total = cac_child(root, "LegalMonetaryTotal")
    if total is None:
        return UblMonetaryTotal()

    def nonzero(tag: str) -> float | None:
        return cbc_child_number(total, tag) or None

    return UblMonetaryTotal(
        line_extension_amount=cbc_child_number(total, "LineExtensionAmount"),
        tax_exclusive_amount=cbc_child_number(total, "TaxExclusiveAmount"),
        tax_inclusive_amount=cbc_child_number(total, "TaxInclusiveAmount"),
        allowance_total_amount=nonzero("AllowanceTotalAmount"),
        charge_total_amount=nonzero("ChargeTotalAmount"),
        prepaid_amount=nonzero("PrepaidAmount"),
        payable_rounding_amount=nonzero("PayableRoundingAmount"),
        payable_amount=cbc_child_number(total, "PayableAmount"),
    )


def _parse_payment_means(means: Element) -> UblPaymentMeans:
    account = cac_child(means, "PayeeFinancialAccount")
    branch = cac_path(account, "FinancialInstitutionBranch")
    return UblPaymentMeans(
        code=cbc_child_text(means, "PaymentMeansCode"),
        code_name=_optional(attribute(cbc_child(means, "PaymentMeansCode"), "name")),
        payment_id=_optional(cbc_child_text(means, "PaymentID")),
        iban=_text_in(account, "ID"),
        bic=_text_in(branch, "ID"),
        account_name=_text_in(account, "Name"),
    )


def _parse_payment_means_list(root: Element) -> list[UblPaymentMeans] | None:
    means = [_parse_payment_means(el) for el in cac_children(root, "PaymentMeans")]
    return means or None


def _parse_invoice_period(root: Element) -> UblInvoicePeriod | None:
    period = cac_child(root, "InvoicePeriod")
    if period is None:
        return None
    start = cbc_child_text(period, "StartDate")
    end = cbc_child_text(period, "EndDate")
    if not start and not end:
        return None
    return UblInvoicePeriod(
        start_date=_optional(start),
        end_date=_optional(end),
        description_code=_optional(cbc_child_text(period, "DescriptionCode")),
    )


def _parse_delivery(root: Element) -> UblDelivery | None:
    delivery = cac_child(root, "Delivery")
    if delivery is None:
        return None
    actual_date = _optional(cbc_child_text(delivery, "ActualDeliveryDate"))
    address = _parse_address(cac_path(delivery, "DeliveryLocation", "Address"))
    if actual_date is None and address is None:
        return None
    return UblDelivery(actual_delivery_date=actual_date, address=address)


def _parse_payment_terms_note(root: Element) -> str | None:
    return _text_in(cac_child(root, "PaymentTerms"), "Note")


def _parse_notes(root: Element) -> str | None:
    # Root-level notes only; notes inside parties or terms belong elsewhere
    notes = [element_text(el) for el in find_children(root, CBC_NS, "Note")]
    notes = [note for note in notes if note]
    return "\n".join(notes) if notes else None


def _parse_attachments(root: Element) -> list[UblAttachment] | None:
    attachments: list[UblAttachment] = []
    for reference in cac_children(root, "AdditionalDocumentReference"):
        attachment = cac_child(reference, "Attachment")
        if attachment is None:
            continue
        binary = cbc_child(attachment, "EmbeddedDocumentBinaryObject")
        content = element_text(binary)
        if not content:
            continue
        attachments.append(
            UblAttachment(
                id=cbc_child_text(reference, "ID"),
                filename=_optional(attribute(binary, "filename")),
                mime_code=_optional(attribute(binary, "mimeCode")),
                description=_text_in(reference, "DocumentDescription"),
                base64_content=content,
            )
        )
    return attachments or None


def _reference_id(root: Element, tag: str) -> str | None:
    reference = cac_child(root, tag)
    if reference is None:
        return None
    return cbc_child_text(reference, "ID")


def _build_document(root: Element, kind: DocumentKind, document_id: str) -> UblDocument:
    order_reference = cac_child(root, "OrderReference")
    type_code_tag = "CreditNoteTypeCode" if kind == "CreditNote" else "InvoiceTypeCode"

    return UblDocument(
        document_type=kind,
        customization_id=_optional(cbc_child_text(root, "CustomizationID")),
        profile_id=_optional(cbc_child_text(root, "ProfileID")),
        id=document_id,
        invoice_type_code=_optional(cbc_child_text(root, type_code_tag)),
        issue_date=cbc_child_text(root, "IssueDate"),
        due_date=_optional(cbc_child_text(root, "DueDate")),
        tax_point_date=_optional(cbc_child_text(root, "TaxPointDate")),
        currency=cbc_child_text(root, "DocumentCurrencyCode"),
        buyer_reference=_optional(cbc_child_text(root, "BuyerReference")),
        order_reference=(
            cbc_child_text(order_reference, "ID") if order_reference is not None else None
        ),
        sales_order_id=(
            _optional(cbc_child_text(order_reference, "SalesOrderID"))
            if order_reference is not None
            else None
        ),
        contract_reference=_reference_id(root, "ContractDocumentReference"),
        project_reference=_reference_id(root, "ProjectReference"),
        seller=_parse_party(root, "AccountingSupplierParty"),
        buyer=_parse_party(root, "AccountingCustomerParty"),
        delivery=_parse_delivery(root),
        lines=_parse_lines(root, kind),
        tax_subtotals=parse_tax_subtotals(root),
        monetary_total=_parse_monetary_total(root),
        payment_means_list=_parse_payment_means_list(root),
        invoice_period=_parse_invoice_period(root),
        note=_parse_notes(root),
        payment_terms_note=_parse_payment_terms_note(root),
        attachments=_parse_attachments(root),
        allowance_charges=parse_allowance_charges(root) or None,
    )


def parse_ubl_invoice(xml: str | bytes) -> UblDocument | None:
    """Parse a UBL Invoice or CreditNote into the typed document model.

    Args:
        xml: Document text, or UTF-8 bytes (a leading BOM is tolerated)

    Returns:
        Parsed document, or None when the input is not well-formed XML, the
        root is neither Invoice nor CreditNote, or the root has no ID
    """
    data = xml.encode("utf-8") if isinstance(xml, str) else xml
    try:
        root = etree.fromstring(data, _new_parser())
    except (etree.XMLSyntaxError, ValueError) as e:
        logger.debug(f"Rejected document: malformed XML ({e})")
        return None

    kind = local_name(root)
    if kind not in DOCUMENT_KINDS:
        logger.debug(f"Rejected document: unsupported root element '{kind}'")
        return None

    document_id = cbc_child_text(root, "ID")
    if not document_id:
        logger.debug(f"Rejected {kind}: missing ID")
        return None

    return _build_document(root, cast(DocumentKind, kind), document_id)
