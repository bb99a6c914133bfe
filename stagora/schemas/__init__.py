"""
Schemas module - Request/Response schemas for API endpoints.

Everything lives in schemas.py; import from there:
    from stagora.schemas.schemas import CreateReport, PaginatedResponse
"""
