"""
ec2auth test suite.

Tests are organized by layer:
    tests/unit/         Unit tests (no real network, tmp_path files only)
    tests/integration/  CLI and end-to-end login scenarios over httpx.MockTransport

Run all tests:
    pytest

Run unit tests only:
    pytest tests/unit/
"""
