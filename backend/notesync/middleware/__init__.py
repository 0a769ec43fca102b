# Middleware package init
"""
NoteSync Backend — Middleware Package
======================================

Middleware Chain (outermost first):
    Request → [Rate Limit] → [Request ID] → [Access Log] → [GZip] → [CORS] → Route

    Rate limiting rejects before any other work; the access log runs inside
    the request-id middleware so every line carries the correlation id.
"""
