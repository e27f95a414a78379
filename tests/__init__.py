"""
Test suite for obs-index.

This package contains:
- Unit tests for normalization, the index store, the writer and the adapter
- Service tests driven by in-memory fakes (tests/fakes.py)
- Vault parsing and CLI tests against temporary directories
"""
