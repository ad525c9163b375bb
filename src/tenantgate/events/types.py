"""Event type constants.

Learn: Centralizing event types as constants prevents typos and makes it easy
to discover every lifecycle change the system records.
"""

# ─── Tenants ─────────────────────────────────────────────

TENANT_REGISTERED = "tenant.registered"
TENANT_STATUS_CHANGED = "tenant.status_changed"

# ─── API keys ────────────────────────────────────────────

API_KEY_CREATED = "api_key.created"
API_KEY_DEACTIVATED = "api_key.deactivated"
API_KEY_REMOVED = "api_key.removed"
API_KEY_ROTATED = "api_key.rotated"

# ─── End customers ───────────────────────────────────────

CUSTOMER_CREATED = "customer.created"
CUSTOMER_UPDATED = "customer.updated"
RISK_PROFILE_BACKFILLED = "risk_profile.backfilled"
