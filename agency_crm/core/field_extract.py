"""Lightweight regex-based field extraction from Turkish policy documents."""

from __future__ import annotations

import logging
import math
import re
from dataclasses import asdict, dataclass
from typing import Dict, Optional

LOGGER = logging.getLogger(__name__)

POLICY_SOURCE_POLICY = "policy"
POLICY_SOURCE_CUSTOMER = "customer"

# Under re.I the token class also admits letters, so a label followed by a
# plain word (for example "tanzim") yields that word.
POLICY_NUMBER_RE = re.compile(
    r"(?:poliçe\s*no|ref\s*no)\s*[:.]?\s*([0-9A-Z\-/]{5,25})",
    re.I,
)
# "Müşteri No" is a customer identifier, not a policy identifier. It is only
# used when no policy label exists and callers are told via the source label.
CUSTOMER_NUMBER_RE = re.compile(
    r"müşteri\s*no\s*[:.]?\s*([0-9A-Z\-/]{5,25})",
    re.I,
)
AMOUNT_RE = re.compile(
    r"(?:net\s+prim|brüt\s+prim|toplam\s+tutar|ödenecek\s+tutar|genel\s+toplam|tutar|bedel)"
    r"[:\s]*([\d.,]+)\s*(?:TL|TRY|₺)",
    re.I,
)
CUSTOMER_NAME_RE = re.compile(
    r"(?:sigortalı|müşteri|unvanı?)\s*(?:adı|ünvanı)?\s*[:.]?\s*"
    r"([A-ZİĞÜŞÖÇ\s]{3,40})(?:\s+T\.?C\.?|\s+Vergi|\n|$)",
    re.I,
)
PLATE_NUMBER_RE = re.compile(
    r"(?:plaka|araç)\s*[:.]?\s*(\d{2}\s*[A-Z]{1,3}\s*\d{2,5})",
    re.I,
)

_WHITESPACE_RE = re.compile(r"\s+")
_MIN_NAME_LENGTH = 3


@dataclass(frozen=True)
class ExtractedFields:
    """Best-effort values recovered from a single document."""

    policy_number: Optional[str] = None
    amount: Optional[float] = None
    customer_name: Optional[str] = None
    plate_number: Optional[str] = None

    def as_dict(self) -> Dict[str, object]:
        return asdict(self)


@dataclass
class DocumentScan:
    """Raw OCR text together with the fields extracted from it."""

    text: str
    fields: ExtractedFields
    policy_number_source: Optional[str] = None


def normalize_text(text: str | None) -> str:
    """Fold Turkish casing and collapse OCR whitespace noise.

    The dotted and dotless capitals are mapped before the generic ``lower()``
    call; otherwise ``İ`` becomes ``i`` plus a combining dot and ``I`` becomes
    ``i`` instead of ``ı``.
    """

    if not text:
        return ""
    folded = text.replace("İ", "i").replace("I", "ı").lower()
    folded = folded.replace("|", "")
    return _WHITESPACE_RE.sub(" ", folded).strip()


def turkish_upper(value: str) -> str:
    return value.replace("i", "İ").replace("ı", "I").upper()


def parse_amount(raw: str | None) -> Optional[float]:
    """Convert a captured money token such as ``1.234,56`` into a float."""

    if not raw:
        return None

    token = raw.strip()
    if "," in token and "." in token:
        if token.rfind(".") > token.rfind(","):
            token = token.replace(",", "")
        else:
            token = token.replace(".", "").replace(",", ".")
    elif "," in token:
        token = token.replace(",", ".")

    try:
        value = float(token)
    except ValueError:
        LOGGER.debug("Unparseable amount token %r", raw)
        return None

    if not math.isfinite(value):
        return None
    return value


def _extract_policy_number(normalized: str) -> tuple[Optional[str], Optional[str]]:
    policy_match = POLICY_NUMBER_RE.search(normalized)
    if policy_match:
        return policy_match.group(1).strip().upper(), POLICY_SOURCE_POLICY

    customer_match = CUSTOMER_NUMBER_RE.search(normalized)
    if customer_match:
        LOGGER.info("No policy number label found; using customer number as fallback")
        return customer_match.group(1).strip().upper(), POLICY_SOURCE_CUSTOMER

    return None, None


def _extract_customer_name(normalized: str) -> Optional[str]:
    name_match = CUSTOMER_NAME_RE.search(normalized)
    if not name_match:
        return None
    name = _WHITESPACE_RE.sub(" ", name_match.group(1)).strip()
    # short captures are label fragments such as "no"
    if len(name) <= _MIN_NAME_LENGTH:
        return None
    return turkish_upper(name)


def _extract_plate_number(normalized: str) -> Optional[str]:
    plate_match = PLATE_NUMBER_RE.search(normalized)
    if not plate_match:
        return None
    return _WHITESPACE_RE.sub(" ", plate_match.group(1)).strip().upper()


def scan_text(text: str | None) -> DocumentScan:
    """Extract fields from OCR text and record where the policy number came from."""

    normalized = normalize_text(text)
    policy_number, source = _extract_policy_number(normalized)

    amount = None
    amount_match = AMOUNT_RE.search(normalized)
    if amount_match:
        amount = parse_amount(amount_match.group(1))

    fields = ExtractedFields(
        policy_number=policy_number,
        amount=amount,
        customer_name=_extract_customer_name(normalized),
        plate_number=_extract_plate_number(normalized),
    )
    return DocumentScan(text=text or "", fields=fields, policy_number_source=source)


def extract_fields(page_or_doc_text: str | None) -> ExtractedFields:
    """Extract structured field values from OCR policy text."""

    return scan_text(page_or_doc_text).fields


__all__ = [
    "DocumentScan",
    "ExtractedFields",
    "POLICY_SOURCE_CUSTOMER",
    "POLICY_SOURCE_POLICY",
    "extract_fields",
    "normalize_text",
    "parse_amount",
    "scan_text",
    "turkish_upper",
]
