"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    DatabaseError,

    # Catalog
    ProductNotFoundError,
    UnknownProductTypeError,

    # Users
    UserNotFoundError,

    # CSV import
    CSVParseError,
    ImportFileError,
    ChunkCommitError,
    SetExpansionError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "DatabaseError",

    # Catalog
    "ProductNotFoundError",
    "UnknownProductTypeError",

    # Users
    "UserNotFoundError",

    # CSV import
    "CSVParseError",
    "ImportFileError",
    "ChunkCommitError",
    "SetExpansionError",
]
