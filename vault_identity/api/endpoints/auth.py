"""Authentication-related API endpoints."""

from typing import Any

from vault_identity.api.http_client import AsyncHttpClient


async def check_credentials(http: AsyncHttpClient, username: str, token: str) -> str:
    """
    Verify a username/token pair.

    Args:
        http: Configured async HTTP client.
        username: Account username.
        token: Hex auth token.

    Returns:
        The account id the credentials belong to.

    Raises:
        RemoteAuthRejectedError: If the server refuses the token.
    """
    # Read-only on the server, safe to send again
    response: Any = await http.request("POST", "/auth", auth=(username, token), retry=True)
    if isinstance(response, dict):
        return str(response["id"])
    return str(response)
