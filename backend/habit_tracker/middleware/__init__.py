# Middleware package init
"""
Habit Tracker Backend - Middleware Package
==========================================

Middleware Chain (first to run listed first):
    Request → [Rate Limit] → [Request ID] → [Logging] → [CORS] → Route Handler

    - Rate limit rejects abusive clients before any other work.
    - Request ID must be set before the access log line is written.
    - Responses pass back through the chain in reverse order.
"""
