"""Credential primitives and request authentication.

Learn: Two authentication paths:
1. Tenants → email/password → JWT access token (Bearer)
2. Integrations → API key id + secret (body fields or X-API-Key headers)

Both resolve to a tenant id that scopes every downstream query.
"""
