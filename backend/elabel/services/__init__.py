"""
eLabel API — Services Layer
============================

What:  Business logic between the routes (HTTP) and the models (persistence).
How:   Services receive the request's AsyncSession per call, raise domain
       exceptions from elabel.exceptions, and return response schemas.

Service Inventory:
    - LabelService: label creation, listing and the six lookups
    - TemplateService: read-only label templates
    - AuthService: signup, login, bearer-token users, OAuth user resolution
    - OAuthProvider (abstract): contract for federated sign-in providers
    - GoogleAuthProvider: Google OpenID Connect via Authlib
"""
