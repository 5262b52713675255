"""Account-related API endpoints."""

from typing import Any

from vault_identity.api.http_client import AsyncHttpClient


async def create_account(
    http: AsyncHttpClient,
    username: str,
    token: str,
    profile: dict[str, Any],
) -> dict[str, Any]:
    """
    Register a new account.

    Args:
        http: Configured async HTTP client.
        username: Requested username.
        token: Hex auth token derived from the new credentials.
        profile: Serialized profile (public fields and sealed body).

    Returns:
        The stored profile, including the server-assigned id.
    """
    return await http.request(
        "POST",
        "/accounts",
        json={"auth": token, "username": username, "data": profile},
        authenticated=False,
    )


async def get_account(
    http: AsyncHttpClient,
    account_id: str,
    *,
    auth: tuple[str, str] | None = None,
) -> dict[str, Any]:
    """Get the full profile of an account."""
    return await http.request("GET", f"/accounts/{account_id}", auth=auth)


async def update_account(
    http: AsyncHttpClient, account_id: str, profile: dict[str, Any]
) -> dict[str, Any] | None:
    """Replace the stored profile."""
    return await http.request("PUT", f"/accounts/{account_id}", json=profile)


async def change_credentials(
    http: AsyncHttpClient,
    account_id: str,
    *,
    username: str,
    token: str,
    keychain: list[dict[str, str]],
    profile: dict[str, Any],
) -> dict[str, Any] | None:
    """
    Replace username, auth token, keychain and profile in one call.

    The server applies all of it or nothing. Not retried: once it has
    succeeded the credentials it was sent with no longer work.
    """
    return await http.request(
        "PUT",
        f"/accounts/{account_id}/credentials",
        json={
            "username": username,
            "auth": token,
            "keychain": keychain,
            "data": profile,
        },
        retry=False,
    )


async def delete_account(http: AsyncHttpClient, account_id: str) -> None:
    """Delete an account and all of its data."""
    await http.request("DELETE", f"/accounts/{account_id}")


async def resend_confirmation(http: AsyncHttpClient) -> None:
    """Ask the server to send the account confirmation message again."""
    await http.request("POST", "/accounts/confirmation/resend")
