"""
pytest test suite for the EcoProducts backend.

Test categories:
- Unit tests: cart, validators, checkout workflow with fake persistence
- Integration tests: services against in-memory SQLite
- API tests: full FastAPI app through httpx ASGITransport
"""
