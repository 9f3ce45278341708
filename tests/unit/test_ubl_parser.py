"""Unit tests for the UBL Invoice/CreditNote parser.

Tests cover:
- Rejection of malformed and non-UBL documents
- Header, party, totals and payment means parsing
- Line tax fallback chain
- Direct-child scoping of notes, allowances and tax totals
- Credit notes
"""

import pytest

from services.ubl.elements import CAC_NS, CBC_NS
from services.ubl.parser import UNKNOWN_PARTY_NAME, parse_ubl_invoice

INVOICE_NS = "urn:oasis:names:specification:ubl:schema:xsd:Invoice-2"


def wrap_invoice(body: str, root: str = "Invoice") -> str:
    """Build a minimal UBL document around ``body``."""
    return (
        f'<{root} xmlns="{INVOICE_NS}" xmlns:cac="{CAC_NS}" xmlns:cbc="{CBC_NS}">'
        f"{body}</{root}>"
    )


def line(body: str) -> str:
    return (
        "<cac:InvoiceLine><cbc:ID>1</cbc:ID>"
        '<cbc:InvoicedQuantity unitCode="C62">1</cbc:InvoicedQuantity>'
        '<cbc:LineExtensionAmount currencyID="EUR">100.00</cbc:LineExtensionAmount>'
        f"{body}</cac:InvoiceLine>"
    )


class TestRejection:
    @pytest.mark.parametrize(
        "xml",
        [
            "",
            "not xml at all",
            "<Invoice><unclosed></Invoice>",
        ],
    )
    def test_malformed_xml_returns_none(self, xml: str) -> None:
        assert parse_ubl_invoice(xml) is None

    def test_unsupported_root_returns_none(self) -> None:
        assert parse_ubl_invoice(wrap_invoice("<cbc:ID>X-1</cbc:ID>", root="Order")) is None

    def test_missing_id_returns_none(self) -> None:
        assert parse_ubl_invoice(wrap_invoice("<cbc:IssueDate>2026-01-01</cbc:IssueDate>")) is None

    def test_blank_id_returns_none(self) -> None:
        assert parse_ubl_invoice(wrap_invoice("<cbc:ID>   </cbc:ID>")) is None

    def test_nested_id_does_not_count_as_root_id(self) -> None:
        xml = wrap_invoice("<cac:OrderReference><cbc:ID>PO-1</cbc:ID></cac:OrderReference>")

        assert parse_ubl_invoice(xml) is None

    def test_external_entities_are_not_resolved(self) -> None:
        xml = (
            '<?xml version="1.0"?>'
            '<!DOCTYPE Invoice [<!ENTITY secret SYSTEM "file:///etc/passwd">]>'
            + wrap_invoice("<cbc:ID>X-1</cbc:ID><cbc:Note>&secret;</cbc:Note>")
        )

        document = parse_ubl_invoice(xml)

        assert document is not None
        assert document.id == "X-1"
        assert "root:" not in (document.note or "")


class TestMinimalDocument:
    def test_minimal_invoice_defaults(self) -> None:
        document = parse_ubl_invoice(wrap_invoice("<cbc:ID>MIN-1</cbc:ID>"))

        assert document is not None
        assert document.id == "MIN-1"
        assert document.document_type == "Invoice"
        assert document.issue_date == ""
        assert document.currency == ""
        assert document.seller.name == UNKNOWN_PARTY_NAME
        assert document.buyer.name == UNKNOWN_PARTY_NAME
        assert document.lines == []
        assert document.tax_subtotals == []
        assert document.monetary_total.payable_amount == 0.0
        assert document.monetary_total.allowance_total_amount is None
        assert document.payment_means is None
        assert document.attachments is None
        assert document.allowance_charges is None

    def test_accepts_bytes_with_bom(self) -> None:
        xml = "\ufeff" + wrap_invoice("<cbc:ID>BOM-1</cbc:ID>")

        document = parse_ubl_invoice(xml.encode("utf-8"))

        assert document is not None
        assert document.id == "BOM-1"

    def test_accepts_text_with_encoding_declaration(self) -> None:
        xml = '<?xml version="1.0" encoding="UTF-8"?>' + wrap_invoice("<cbc:ID>DECL-1</cbc:ID>")

        document = parse_ubl_invoice(xml)

        assert document is not None
        assert document.id == "DECL-1"


class TestInvoiceFixture:
    def test_header(self, invoice_xml: str) -> None:
        document = parse_ubl_invoice(invoice_xml)

        assert document is not None
        assert document.id == "INV-UBL-1001"
        assert document.issue_date == "2026-02-25"
        assert document.due_date == "2026-03-10"
        assert document.currency == "EUR"
        assert document.invoice_type_code == "380"
        assert document.order_reference == "PO-42"
        assert document.payment_terms_note == "Net 14 days"
        assert document.note is None

    def test_parties(self, invoice_xml: str) -> None:
        document = parse_ubl_invoice(invoice_xml)

        assert document is not None
        seller = document.seller
        assert seller.name == "Acme BV"
        assert seller.registration_name == "Acme Belgium BV"
        assert seller.vat_id == "BE0123456789"
        assert seller.company_id == "0123456789"
        assert seller.tax_scheme_id == "VAT"
        assert seller.address is not None
        assert seller.address.street == "Main Street 10"
        assert seller.address.city == "Brussels"
        assert seller.address.postal_zone == "1000"
        assert seller.address.country_code == "BE"
        assert document.buyer.name == "Buyer NV"
        assert document.buyer.vat_id == "BE9876543210"

    def test_totals_and_tax(self, invoice_xml: str) -> None:
        document = parse_ubl_invoice(invoice_xml)

        assert document is not None
        totals = document.monetary_total
        assert totals.line_extension_amount == 100.0
        assert totals.tax_exclusive_amount == 100.0
        assert totals.tax_inclusive_amount == 121.0
        assert totals.payable_amount == 121.0
        assert len(document.tax_subtotals) == 1
        subtotal = document.tax_subtotals[0]
        assert subtotal.taxable_amount == 100.0
        assert subtotal.tax_amount == 21.0
        assert subtotal.tax_percent == 21.0
        assert subtotal.tax_category_id == "S"
        assert subtotal.tax_scheme_id == "VAT"

    def test_payment_means_keeps_every_entry(self, invoice_xml: str) -> None:
        document = parse_ubl_invoice(invoice_xml)

        assert document is not None
        assert document.payment_means_list is not None
        assert [m.code for m in document.payment_means_list] == ["30", "31"]
        assert document.payment_means is not None
        assert document.payment_means.payment_id == "PM-001"
        assert document.payment_means.iban == "BE10000123456789"
        assert document.payment_means.bic == "GEBA BE BB"
        assert document.payment_means_list[1].bic is None

    def test_line(self, invoice_xml: str) -> None:
        document = parse_ubl_invoice(invoice_xml)

        assert document is not None
        assert len(document.lines) == 1
        parsed = document.lines[0]
        assert parsed.id == "1"
        assert parsed.description == "Consulting services"
        assert parsed.item_name == "Consulting"
        assert parsed.sellers_item_id == "CONSULT-01"
        assert parsed.quantity == 2.0
        assert parsed.unit_code == "C62"
        assert parsed.unit_price == 50.0
        assert parsed.line_extension_amount == 100.0
        assert parsed.tax_percent == 21.0
        assert parsed.tax_amount == 21.0
        assert parsed.tax_category_id == "S"
        assert parsed.tax_scheme_id == "VAT"
        assert parsed.tax_subtotals is None
        assert parsed.discount_amount is None


class TestExtendedFixture:
    def test_profile_and_references(self, extended_invoice_xml: str) -> None:
        document = parse_ubl_invoice(extended_invoice_xml)

        assert document is not None
        assert document.customization_id is not None
        assert document.customization_id.startswith("urn:cen.eu:en16931:2017")
        assert document.profile_id == "urn:fdc:peppol.eu:2017:poacc:billing:01:1.0"
        assert document.buyer_reference == "BUY-REF-1"
        assert document.sales_order_id == "SO-9988"
        assert document.contract_reference == "CONTRACT-7"
        assert document.project_reference == "PRJ-3"
        assert document.tax_point_date == "2026-02-26"
        assert document.note == "Long legal note should not be mapped to payment terms"
        assert document.payment_terms_note is None

    def test_party_details(self, extended_invoice_xml: str) -> None:
        document = parse_ubl_invoice(extended_invoice_xml)

        assert document is not None
        seller, buyer = document.seller, document.buyer
        assert seller.endpoint_id == "0898218515"
        assert seller.endpoint_scheme_id == "0208"
        assert seller.company_legal_form == "SA/NV"
        # No legal-entity CompanyID: falls back to PartyIdentification
        assert seller.company_id == "0898218515"
        assert seller.contact is not None
        assert seller.contact.name == "Jane Seller"
        assert seller.contact.email == "billing@seller.example"
        assert seller.address is not None
        assert seller.address.additional_street == "Bte 4"
        assert seller.address.country_subentity == "Brussels-Capital"
        assert buyer.endpoint_id == "1006119434"
        assert buyer.company_id == "1006119434"
        assert buyer.company_legal_form == "BV"
        assert buyer.vat_id is None
        assert buyer.contact is not None
        assert buyer.contact.name is None

    def test_period_delivery_and_payment(self, extended_invoice_xml: str) -> None:
        document = parse_ubl_invoice(extended_invoice_xml)

        assert document is not None
        assert document.invoice_period is not None
        assert document.invoice_period.start_date == "2026-02-01"
        assert document.invoice_period.end_date == "2026-02-28"
        assert document.invoice_period.description_code == "3"
        assert document.delivery is not None
        assert document.delivery.actual_delivery_date == "2026-02-27"
        assert document.delivery.address is not None
        assert document.delivery.address.street == "Warehouse 5"
        assert document.payment_means is not None
        assert document.payment_means.code_name == "VIREMENT"
        assert document.payment_means.account_name == "Bank Account Name"
        assert document.monetary_total.prepaid_amount == 42.0

    def test_line_tax_computed_from_classified_category(self, extended_invoice_xml: str) -> None:
        document = parse_ubl_invoice(extended_invoice_xml)

        assert document is not None
        first = document.lines[0]
        assert first.description == ""
        assert first.item_name == "Toner cartridge"
        assert first.buyers_item_id == "BUYER-SKU-9"
        assert first.tax_percent == 21.0
        assert first.tax_amount == 21.0
        assert first.tax_category_id == "S"
        assert first.tax_scheme_id == "VAT"

    def test_explicit_line_tax_amount_beats_subtotals(self, extended_invoice_xml: str) -> None:
        document = parse_ubl_invoice(extended_invoice_xml)

        assert document is not None
        second = document.lines[1]
        assert second.tax_amount == 20.99
        assert second.tax_subtotals is not None
        assert second.tax_subtotals[0].tax_amount == 21.0
        assert second.tax_category_id == "S"
        assert second.tax_scheme_id is None


class TestLineTaxFallback:
    def test_subtotal_sum_when_no_explicit_amount(self, allowance_invoice_xml: str) -> None:
        document = parse_ubl_invoice(allowance_invoice_xml)

        assert document is not None
        assert document.lines[0].tax_amount == 18.9

    def test_computed_amount_is_rounded(self) -> None:
        xml = wrap_invoice(
            "<cbc:ID>R-1</cbc:ID>"
            + (
                "<cac:InvoiceLine><cbc:ID>1</cbc:ID>"
                '<cbc:LineExtensionAmount currencyID="EUR">10.05</cbc:LineExtensionAmount>'
                "<cac:Item><cac:ClassifiedTaxCategory><cbc:Percent>6</cbc:Percent>"
                "</cac:ClassifiedTaxCategory></cac:Item></cac:InvoiceLine>"
            )
        )

        document = parse_ubl_invoice(xml)

        assert document is not None
        assert document.lines[0].tax_amount == 0.6

    def test_no_tax_information_leaves_amount_absent(self) -> None:
        item = "<cac:Item><cbc:Name>X</cbc:Name></cac:Item>"
        xml = wrap_invoice("<cbc:ID>T-1</cbc:ID>" + line(item))

        document = parse_ubl_invoice(xml)

        assert document is not None
        assert document.lines[0].tax_percent is None
        assert document.lines[0].tax_amount is None


class TestAllowanceCharges:
    def test_header_and_line_allowances_are_kept_apart(self, allowance_invoice_xml: str) -> None:
        document = parse_ubl_invoice(allowance_invoice_xml)

        assert document is not None
        assert document.allowance_charges is not None
        assert len(document.allowance_charges) == 2
        freight, discount = document.allowance_charges
        assert freight.charge_indicator is True
        assert freight.reason == "Freight"
        assert freight.tax_percent == 21.0
        assert freight.tax_category_id == "S"
        assert discount.charge_indicator is False
        assert discount.amount == -5.0
        assert discount.base_amount == 100.0
        assert discount.multiplier_factor_numeric == 5.0
        assert discount.reason_code == "95"
        assert discount.tax_percent is None

        parsed_line = document.lines[0]
        assert parsed_line.allowance_charges is not None
        assert len(parsed_line.allowance_charges) == 1
        assert parsed_line.allowance_charges[0].reason == "Line discount"
        assert parsed_line.discount_amount == 10.0
        assert parsed_line.charge_amount is None

    def test_allowance_total_is_read(self, allowance_invoice_xml: str) -> None:
        document = parse_ubl_invoice(allowance_invoice_xml)

        assert document is not None
        assert document.monetary_total.allowance_total_amount == 10.0
        assert document.monetary_total.charge_total_amount is None


class TestAttachments:
    def test_only_embedded_payloads_are_kept(self, attachment_invoice_xml: str) -> None:
        document = parse_ubl_invoice(attachment_invoice_xml)

        assert document is not None
        assert document.attachments is not None
        assert len(document.attachments) == 1
        attachment = document.attachments[0]
        assert attachment.id == "ATT-1"
        assert attachment.filename == "invoice.pdf"
        assert attachment.mime_code == "application/pdf"
        assert attachment.description == "Invoice PDF"
        assert attachment.base64_content == "SGVsbG8="

    def test_attachment_larger_than_ten_megabytes(self) -> None:
        payload = "A" * 10_400_000
        xml = wrap_invoice(
            "<cbc:ID>BIG-1</cbc:ID>"
            "<cac:AdditionalDocumentReference><cbc:ID>ATT-BIG</cbc:ID><cac:Attachment>"
            f'<cbc:EmbeddedDocumentBinaryObject mimeCode="application/pdf">{payload}'
            "</cbc:EmbeddedDocumentBinaryObject></cac:Attachment>"
            "</cac:AdditionalDocumentReference>"
        )

        document = parse_ubl_invoice(xml)

        assert document is not None
        assert document.id == "BIG-1"
        assert document.attachments is not None
        assert len(document.attachments[0].base64_content) == 10_400_000


class TestCreditNote:
    def test_credit_note_lines_and_type(self, credit_note_xml: str) -> None:
        document = parse_ubl_invoice(credit_note_xml)

        assert document is not None
        assert document.document_type == "CreditNote"
        assert document.is_credit_note is True
        assert document.id == "CN-001"
        assert document.invoice_type_code == "381"
        assert len(document.lines) == 1
        parsed = document.lines[0]
        assert parsed.quantity == 1.0
        assert parsed.unit_code == "C62"
        assert parsed.description == "Returned goods"
        assert parsed.tax_amount == 10.5

    def test_invoice_lines_in_credit_note_are_ignored(self) -> None:
        xml = wrap_invoice("<cbc:ID>CN-2</cbc:ID>" + line(""), root="CreditNote")

        document = parse_ubl_invoice(xml)

        assert document is not None
        assert document.lines == []
