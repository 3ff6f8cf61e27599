# tests/property/__init__.py
"""Property-based tests for hookbridge.

Property-based testing validates invariants that must hold for ALL inputs,
not just the specific examples we think of. Hooks must be injective,
versions contiguous and bridge intervals must exactly partition the
primary's interval.

Test modules:
- test_hook_properties: hook, composite and PIT hook injectivity
- test_versioning_properties: contiguity and single-current per key
- test_temporal_join_properties: fan-out duration conservation
- test_digest_properties: digest determinism under input reordering
"""
