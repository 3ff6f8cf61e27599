# tests/fixtures/__init__.py
"""Shared test factories for hookbridge tests."""
