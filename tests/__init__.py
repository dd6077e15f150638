# ForgeGuard Test Suite
"""
Test suite including:
- Unit tests
- Integration tests (login decisions and 2FA flows end to end)
- Security tests (tampering, enumeration, leakage)

Run with: pytest
"""
