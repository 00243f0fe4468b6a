# Middleware package init
"""
Verdant Backend: Middleware Package
===================================

Middleware Chain (outermost first):
    Request → [Rate Limit] → [Request ID] → [Logging] → [GZip] → [CORS] → Route

Rate limiting runs first so rejected calls cost nothing. The request ID is
set before the access logger reads it.
"""
