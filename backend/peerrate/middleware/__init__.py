# Middleware package init
"""
PeerRate Backend - Middleware Package
=====================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain:
    Request → [Request ID] → [Access Log] → [GZip] → [CORS] → Route Handler

    Responses travel back through the same chain in reverse, so the access
    log sees the final status code and the request id header is set last.
"""
