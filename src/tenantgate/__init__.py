"""tenantgate: tenant identity and API-key lifecycle service.

Tenants register and log in with a password, receive short-lived JWT
sessions, and mint long-lived API keys that integrations use to push
end-customer records (each guaranteed a risk profile) into the system.
"""

__version__ = "0.1.0"
