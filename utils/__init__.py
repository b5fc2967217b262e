"""
Shared helpers.
"""

from utils.text_utils import (
    normalize_identity,
    catalog_key,
    convert_html_breaks,
    clean_text,
)

__all__ = [
    "normalize_identity",
    "catalog_key",
    "convert_html_breaks",
    "clean_text",
]
