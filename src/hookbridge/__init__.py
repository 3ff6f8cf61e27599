"""
Hookbridge: temporal versioning and bridge resolution for hook-keyed entities.

Turns append-only raw change records into point-in-time entity versions and
resolves the relationships between them across overlapping validity windows.
"""

__version__ = "0.1.0"
