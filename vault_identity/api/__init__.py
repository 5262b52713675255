"""
Account API client layer.

Provides async HTTP communication with the account API.
"""

from vault_identity.api.http_client import AsyncHttpClient, sanitize_for_log

__all__ = ["AsyncHttpClient", "sanitize_for_log"]
