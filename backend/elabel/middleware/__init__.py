"""
eLabel API — Middleware Package
================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (outermost first, as registered in elabel.main):
    Request → [CORS] → [Rate Limit] → [Slow Down] → [Body Limit]
            → [Request ID] → [Logging] → [Session] → [Security Headers]
            → [GZip] → Route Handler

    Why this order:
    1. CORS first: preflights end there, and 429/413 answers carry CORS
       headers a browser front end can read
    2. Throttles next: reject or delay abusive clients before any work
    3. Body limit: refuse oversized payloads, counting bytes as they arrive
    4. Request ID before Logging, so every access line carries the ID
"""
