"""
Runtime package for the content record service.

This package contains:
- API layer (FastAPI server + routes)
- Agents (the host-facing content record facade)
- Stores (the shared skapp name dictionary)
- Models (Pydantic request/response schemas)
"""
