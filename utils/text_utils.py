"""
Text utilities for CSV cells and catalog identity keys.

Spreadsheet exports mix full-width and half-width characters
("ＫＡＴＯ" vs "KATO", "１０－１６０３" vs "10-1603"), so catalog keys
are folded with NFKC before comparison.
"""

import re
import unicodedata
from typing import Optional

_HTML_BREAK = re.compile(r"<br\s*/?>", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")


def normalize_identity(value: Optional[str]) -> Optional[str]:
    """
    Normalize a brand or product code for comparison.

    - "ＫＡＴＯ" → "kato"
    - " 10-1603 " → "10-1603"
    - "Tomix  Set" → "tomix set"

    Returns:
        Lowercase NFKC string with collapsed whitespace, or None if empty
    """
    if value is None:
        return None

    folded = unicodedata.normalize("NFKC", value).strip()
    if not folded:
        return None

    return _WHITESPACE.sub(" ", folded).lower()


def catalog_key(brand: Optional[str], product_code: Optional[str]) -> Optional[str]:
    """
    Build the "brand:code" lookup key.

    Returns:
        Key string, or None when either part is missing
    """
    b = normalize_identity(brand)
    c = normalize_identity(product_code)
    if not b or not c:
        return None
    return f"{b}:{c}"


def convert_html_breaks(text: Optional[str]) -> Optional[str]:
    """Turn <br>, <BR/>, <br /> markers into newlines."""
    if not text:
        return None
    return _HTML_BREAK.sub("\n", text)


def clean_text(value: Optional[str], max_length: int = 255) -> Optional[str]:
    """
    Clean a free-text cell for storage.

    - Strips whitespace
    - Truncates to max length
    - Returns None for empty/whitespace-only strings
    """
    if not value:
        return None

    value = value.strip()

    if not value:
        return None

    if len(value) > max_length:
        value = value[:max_length]

    return value
