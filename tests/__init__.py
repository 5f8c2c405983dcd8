"""
Test suite for the price ledger API.

Run all tests: pytest
Run unit tests only: pytest tests/unit/
Run specific file: pytest tests/unit/test_price_ledger_service.py -v
"""
