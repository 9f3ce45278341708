"""Namespace-scoped element access for UBL 2.1 documents.

UBL splits its vocabulary over two namespaces: Common Basic Components (cbc,
leaf values) and Common Aggregate Components (cac, structures). Lookups come in
two explicitly named flavours:

- ``find_descendant``: first match anywhere below the element, in document
  order.
- ``*_child`` / ``*_children``: direct children only.

Several aggregates nest same-named tags at different semantic levels
(``Note`` on the root and inside ``PaymentTerms``, ``TaxTotal`` on the root and
inside each line), so callers pick the flavour per field.

Based on lxml's ElementTree API:
https://lxml.de/tutorial.html#namespaces
"""

import math
import re

from lxml import etree

CBC_NS = "urn:oasis:names:specification:ubl:schema:xsd:CommonBasicComponents-2"
CAC_NS = "urn:oasis:names:specification:ubl:schema:xsd:CommonAggregateComponents-2"

# Longest leading decimal literal, mirroring JavaScript's parseFloat
_LEADING_FLOAT = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")

Element = etree._Element


def _qualified(namespace: str, tag: str) -> str:
    return f"{{{namespace}}}{tag}"


def local_name(element: Element) -> str:
    """Return the tag name of ``element`` without its namespace."""
    return etree.QName(element).localname


def find_descendant(parent: Element, namespace: str, tag: str) -> Element | None:
    """Return the first element named ``tag`` anywhere below ``parent``."""
    return next(parent.iterdescendants(_qualified(namespace, tag)), None)


def find_child(parent: Element, namespace: str, tag: str) -> Element | None:
    """Return the first direct child of ``parent`` named ``tag``."""
    return parent.find(_qualified(namespace, tag))


def find_children(parent: Element, namespace: str, tag: str) -> list[Element]:
    """Return every direct child of ``parent`` named ``tag``."""
    return parent.findall(_qualified(namespace, tag))


def element_text(element: Element | None) -> str:
    """Trimmed text content of ``element`` and its descendants ("" if missing)."""
    if element is None:
        return ""
    return "".join(element.itertext()).strip()


def attribute(element: Element | None, name: str) -> str:
    """Trimmed attribute value ("" if the element or attribute is missing)."""
    if element is None:
        return ""
    return (element.get(name) or "").strip()


def parse_float(raw: str) -> float | None:
    """Parse the leading decimal literal of ``raw``.

    Args:
        raw: Text content of a numeric element

    Returns:
        Finite float, or None when no number can be read
    """
    match = _LEADING_FLOAT.match(raw.strip())
    if not match:
        return None
    value = float(match.group(0))
    # "1e999" overflows to inf
    return value if math.isfinite(value) else None


# --- Common Basic Components ---


def cbc_child(parent: Element, tag: str) -> Element | None:
    return find_child(parent, CBC_NS, tag)


def cbc_child_text(parent: Element, tag: str) -> str:
    return element_text(find_child(parent, CBC_NS, tag))


def cbc_child_number(parent: Element, tag: str) -> float:
    """Numeric direct-child value; absent or unparsable reads as 0."""
    value = parse_float(cbc_child_text(parent, tag))
    return 0.0 if value is None else value


def cbc_child_optional_number(parent: Element, tag: str) -> float | None:
    """Numeric direct-child value; absent or unparsable reads as None."""
    return parse_float(cbc_child_text(parent, tag))


def cbc_child_flag(parent: Element, tag: str) -> bool:
    """Boolean direct-child value: true only for "true" or "1" (any case)."""
    return cbc_child_text(parent, tag).lower() in ("true", "1")


# --- Common Aggregate Components ---


def cac_child(parent: Element, tag: str) -> Element | None:
    return find_child(parent, CAC_NS, tag)


def cac_children(parent: Element, tag: str) -> list[Element]:
    return find_children(parent, CAC_NS, tag)


def cac_path(parent: Element | None, *tags: str) -> Element | None:
    """Follow a chain of direct cac children, e.g. ``cac_path(el, "Party", "PartyName")``."""
    current = parent
    for tag in tags:
        if current is None:
            return None
        current = cac_child(current, tag)
    return current
