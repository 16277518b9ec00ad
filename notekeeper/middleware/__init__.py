# Middleware package init
"""
NoteKeeper Backend — Middleware Package
========================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (order matters!):
    Request → [Request ID] → [Logging] → [GZip] → [CORS] → Route Handler

    1. Request ID first: every later log line can be correlated
    2. Logging: records method, path, status and duration with the request ID
    3. GZip / CORS: Starlette built-ins, configured in main.py
"""
