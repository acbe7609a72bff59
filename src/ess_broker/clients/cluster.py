"""Cluster administrative API client.

A session authenticates with HTTP basic auth against one deployment's
Elasticsearch endpoint. Account operations return the HTTP status code;
deciding what counts as success is left to the caller. Only transport-level
failures raise.

Public API (the "studs"):
    ClusterClient: Session bound to one deployment's administrative endpoint
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import httpx

from ..exceptions import ConnectionFailureError

_logger = logging.getLogger(__name__)

# Every account the broker creates gets this single high-privilege role.
DEFAULT_ROLES = ("superuser",)


class ClusterClient:
    """Session bound to one deployment's administrative endpoint."""

    def __init__(
        self,
        url: str,
        username: str,
        password: str,
        timeout: float = 30.0,
        verify: bool = True,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self.username = username
        self._client = httpx.AsyncClient(
            base_url=url,
            auth=httpx.BasicAuth(username, password),
            headers={"Accept": "application/json"},
            timeout=httpx.Timeout(timeout),
            verify=verify,
            transport=transport,
        )

    async def __aenter__(self) -> ClusterClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _send(self, method: str, path: str, json: Any = None) -> int:
        try:
            response = await self._client.request(method, path, json=json)
        except httpx.RequestError as e:
            raise ConnectionFailureError(
                f"unable to reach cluster at {self.url} ({method} {path}): {e}"
            ) from e
        _logger.debug(
            "Cluster %s %s as %s returned %s", method, path, self.username, response.status_code
        )
        return response.status_code

    async def ping(self) -> int:
        """Liveness/authentication check against the cluster root.

        Returns:
            HTTP status code (200 when the session authenticates, 401 when not)

        Raises:
            ConnectionFailureError: If the cluster cannot be reached
        """
        return await self._send("HEAD", "/")

    async def put_user(
        self, username: str, password: str, roles: Sequence[str] = DEFAULT_ROLES
    ) -> int:
        """Create or update a native user account."""
        return await self._send(
            "PUT",
            f"/_security/user/{username}",
            json={"password": password, "roles": list(roles)},
        )

    async def update_password(
        self, username: str, password: str, roles: Sequence[str] = DEFAULT_ROLES
    ) -> int:
        """Set the password of an account, creating the account if it is missing.

        A fresh deployment does not have the broker's account yet, so this
        goes through the put-user API rather than the change-password API.
        """
        return await self.put_user(username, password, roles)

    async def delete_user(self, username: str) -> int:
        return await self._send("DELETE", f"/_security/user/{username}")


__all__ = ["ClusterClient", "DEFAULT_ROLES"]
