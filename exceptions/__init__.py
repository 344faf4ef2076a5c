"""
Custom exceptions module.

Import errors from here rather than from exceptions.errors.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    DatabaseError,

    # Assemblies
    AssemblyNotFoundError,
    DefectBreakdownError,

    # Pricing
    ConflictingFieldsError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "DatabaseError",

    # Assemblies
    "AssemblyNotFoundError",
    "DefectBreakdownError",

    # Pricing
    "ConflictingFieldsError",
]
