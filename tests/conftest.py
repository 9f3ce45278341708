"""Shared fixtures for UBL extraction tests."""

from collections.abc import Callable
from pathlib import Path

import pytest

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def load_fixture() -> Callable[[str], str]:
    """Return a loader for XML documents under tests/fixtures."""

    def _load(name: str) -> str:
        return (FIXTURES_DIR / name).read_text(encoding="utf-8")

    return _load


@pytest.fixture
def invoice_xml(load_fixture: Callable[[str], str]) -> str:
    return load_fixture("ubl-invoice.xml")


@pytest.fixture
def extended_invoice_xml(load_fixture: Callable[[str], str]) -> str:
    return load_fixture("ubl-invoice-extended.xml")


@pytest.fixture
def allowance_invoice_xml(load_fixture: Callable[[str], str]) -> str:
    return load_fixture("ubl-invoice-allowance-charge.xml")


@pytest.fixture
def attachment_invoice_xml(load_fixture: Callable[[str], str]) -> str:
    return load_fixture("ubl-invoice-with-attachment.xml")


@pytest.fixture
def credit_note_xml(load_fixture: Callable[[str], str]) -> str:
    return load_fixture("ubl-credit-note.xml")
