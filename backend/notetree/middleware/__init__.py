# Middleware package init
"""
NoteTree Backend — Middleware Package
=====================================

Middleware Chain (outermost first):
    Request → [Rate Limit] → [Request ID] → [Logging] → [GZip] → [CORS] → Route Handler

    1. Rate Limit: rejects excess writes before any processing
    2. Request ID: sets the correlation id used by log lines and error bodies
    3. Logging: one access line per request, with duration and project id
"""
