"""
eLabel API — API Routes Package
================================

Route Inventory:
    - labels.py:    POST /api/labels, GET /api/labels and the six lookups
    - templates.py: GET  /api/templates, GET /api/templates/{id}
    - auth.py:      /api/auth/* (signup, login, me, Google sign-in);
                    built by build_router(provider)
    - health.py:    GET  /health

Routes are thin: parse the request, call one service method, return its
response model. Errors travel as exceptions to the handlers in elabel.main.
"""
