# tests/property/__init__.py
"""Property-based tests for StreamPlan.

Property-based testing validates invariants that must hold for ALL inputs,
not just the specific pipelines we think of.

Test categories:
- test_mode_properties: Mode detection and plan fingerprint determinism
- test_windowing_properties: Window assignment invariants
- test_expansion_properties: Composites translate like their parts
- test_engine_properties: Local engine output completeness (marked slow)
"""
