"""
Test suite for the production tracking API.
"""
