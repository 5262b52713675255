"""
In-memory account API used by service and client tests.

`FakeAccountApi.request` has the same signature as AsyncHttpClient.request,
so it can stand in for the HTTP client. `FakeAccountTransport` serves the
same state over httpx for end-to-end tests.
"""

import asyncio
import base64
import json
from typing import Any

import httpx

from vault_identity.crypto.auth_token import compute_token
from vault_identity.crypto.key_derivation import stretch_password
from vault_identity.exceptions import APIError, NotFoundError, RemoteAuthRejectedError


def token_for(username: str, password: str, iterations: int) -> str:
    return compute_token(stretch_password(username, password, iterations=iterations), username, password)


class FakeAccountApi:
    """Minimal account server: one token per account, verified on every authenticated call."""

    def __init__(self) -> None:
        self.accounts: dict[str, dict[str, Any]] = {}
        self.calls: list[tuple[str, str]] = []
        self.failures: dict[tuple[str, str], Exception] = {}
        self.gates: dict[tuple[str, str], asyncio.Event] = {}
        self.credentials: tuple[str, str] | None = None
        self.confirmations_sent = 0
        self._next_id = 1

    # Setup helpers

    def add_account(self, username: str, token: str, data: dict[str, Any] | None = None) -> str:
        account_id = f"user-{self._next_id}"
        self._next_id += 1
        self.accounts[account_id] = {
            "username": username,
            "token": token,
            "data": {**(data or {}), "id": account_id, "username": username},
            "keychain": [],
        }
        return account_id

    def fail(self, method: str, endpoint: str, error: Exception) -> None:
        self.failures[(method, endpoint)] = error

    def gate(self, method: str, endpoint: str) -> asyncio.Event:
        event = asyncio.Event()
        self.gates[(method, endpoint)] = event
        return event

    # AsyncHttpClient surface

    def set_credentials(self, username: str, token: str) -> None:
        self.credentials = (username, token)

    def clear_credentials(self) -> None:
        self.credentials = None

    async def request(
        self,
        method: str,
        endpoint: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        authenticated: bool = True,
        auth: tuple[str, str] | None = None,
        retry: bool | None = None,
    ) -> Any:
        self.calls.append((method, endpoint))

        gate = self.gates.get((method, endpoint))
        if gate is not None:
            await gate.wait()

        failure = self.failures.pop((method, endpoint), None)
        if failure is not None:
            raise failure

        if auth is None and authenticated:
            auth = self.credentials
        return self.handle(method, endpoint, json, auth)

    # Routing

    def handle(
        self,
        method: str,
        endpoint: str,
        body: dict[str, Any] | None,
        auth: tuple[str, str] | None,
    ) -> Any:
        parts = endpoint.strip("/").split("/")

        if (method, endpoint) == ("POST", "/accounts"):
            account_id = self.add_account(body["username"], body["auth"], body["data"])
            return dict(self.accounts[account_id]["data"])

        if (method, endpoint) == ("POST", "/auth"):
            return {"id": self._authorize(auth)}

        if (method, endpoint) == ("POST", "/accounts/confirmation/resend"):
            self._authorize(auth)
            self.confirmations_sent += 1
            return None

        if parts[0] == "accounts" and len(parts) >= 2:
            account_id = parts[1]
            if account_id not in self.accounts:
                raise NotFoundError("No such account", endpoint=endpoint)
            if self._authorize(auth) != account_id:
                raise RemoteAuthRejectedError("Not your account", code=403, endpoint=endpoint)
            account = self.accounts[account_id]

            if len(parts) == 2 and method == "GET":
                return dict(account["data"])
            if len(parts) == 2 and method == "PUT":
                account["data"] = {**body, "id": account_id}
                return dict(account["data"])
            if len(parts) == 2 and method == "DELETE":
                del self.accounts[account_id]
                return None
            if parts[2:] == ["credentials"] and method == "PUT":
                account["username"] = body["username"]
                account["token"] = body["auth"]
                account["keychain"] = body["keychain"]
                account["data"] = {**body["data"], "id": account_id}
                return None

        raise NotFoundError("No route", endpoint=endpoint)

    def _authorize(self, auth: tuple[str, str] | None) -> str:
        if auth is not None:
            username, token = auth
            for account_id, account in self.accounts.items():
                if account["username"] == username and account["token"] == token:
                    return account_id
        raise RemoteAuthRejectedError("Invalid credentials", code=401, endpoint="/auth")


class FakeAccountTransport(httpx.AsyncBaseTransport):
    """Serves a FakeAccountApi over httpx, decoding basic auth and JSON bodies."""

    def __init__(self, api: FakeAccountApi) -> None:
        self.api = api
        self.requests: list[httpx.Request] = []

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        body = json.loads(request.content) if request.content else None

        auth = None
        header = request.headers.get("Authorization", "")
        if header.startswith("Basic "):
            username, _, token = base64.b64decode(header[6:]).decode().partition(":")
            auth = (username, token)

        method, endpoint = request.method, request.url.path
        self.api.calls.append((method, endpoint))
        try:
            failure = self.api.failures.pop((method, endpoint), None)
            if failure is not None:
                raise failure
            result = self.api.handle(method, endpoint, body, auth)
        except RemoteAuthRejectedError as e:
            return httpx.Response(e.context.get("code", 401), json={"error": e.message})
        except APIError as e:
            return httpx.Response(e.code, json={"error": e.message})

        if result is None:
            return httpx.Response(200)
        return httpx.Response(200, json=result)
