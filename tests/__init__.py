"""
Test suite for ACR Catalog Import.

Run all tests: pytest
Run unit tests only: pytest tests/unit/
Run specific file: pytest tests/unit/test_diff_engine.py -v
"""
