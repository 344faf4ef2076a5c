"""
Shared helpers for breakdown arithmetic and numeric coercion.
"""
