"""Deployment control-plane client.

Thin async wrapper around the deployment REST API
(``{url}/api/{version}/deployments/...``). Every httpx error is mapped to
the broker's exception taxonomy; callers never see raw transport errors.

Public API (the "studs"):
    ControlPlaneClient: Session bound to the control plane
    endpoint_of: Resolve the HTTPS endpoint of a deployment sub-resource
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from ..exceptions import ControlPlaneError, DeploymentNotFoundError
from .models import (
    Deployment,
    DeploymentCreateResponse,
    DeploymentResource,
    DeploymentTemplate,
    ResourceEndpoint,
)

if TYPE_CHECKING:
    from ..config.settings import ProviderConfig

_logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def _parse(model: type[M], data: Any, what: str) -> M:
    """Validate a response body, mapping schema mismatches to ControlPlaneError."""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ControlPlaneError(f"control plane returned a malformed {what}: {e}") from e


def _mapping(data: Any, what: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise ControlPlaneError(
            f"control plane returned a malformed {what}: expected an object, "
            f"got {type(data).__name__}"
        )
    return data


def endpoint_of(resource: DeploymentResource, kind: str = "resource") -> ResourceEndpoint:
    """Return the HTTPS endpoint of a sub-resource.

    Raises:
        ControlPlaneError: If the resource has no endpoint or HTTPS port yet
    """
    metadata = resource.info.metadata
    if not metadata.endpoint or metadata.ports.https is None:
        raise ControlPlaneError(
            f"{kind} resource {resource.ref_id or resource.id!r} has no HTTPS endpoint"
        )
    return ResourceEndpoint(host=metadata.endpoint, port=metadata.ports.https)


class ControlPlaneClient:
    """Session bound to the deployment control plane.

    Example:
        >>> async with ControlPlaneClient.from_config(config) as control_plane:
        ...     deployment = await control_plane.search_deployment("instance-1")
    """

    def __init__(
        self,
        api_url: str,
        api_key: str,
        user_agent: str = "ess-servicebroker/v1",
        timeout: float = 30.0,
        verify: bool = True,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_url = api_url
        self._client = httpx.AsyncClient(
            base_url=api_url,
            headers={
                "Authorization": f"ApiKey {api_key}",
                "User-Agent": user_agent,
                "Accept": "application/json",
            },
            timeout=httpx.Timeout(timeout),
            verify=verify,
            transport=transport,
        )

    @classmethod
    def from_config(
        cls, config: ProviderConfig, transport: httpx.AsyncBaseTransport | None = None
    ) -> ControlPlaneClient:
        return cls(
            api_url=config.api_url,
            api_key=config.api_key.get_secret_value(),
            user_agent=f"{config.user_agent}/{config.version}",
            timeout=config.request_timeout_seconds,
            verify=config.verify_tls,
            transport=transport,
        )

    async def __aenter__(self) -> ControlPlaneClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
        not_found: str | None = None,
    ) -> Any:
        """Send a request and return the decoded JSON body.

        Args:
            method: HTTP method
            path: Path relative to the API root
            json: JSON body
            params: Query parameters
            not_found: Message for DeploymentNotFoundError when the API answers 404

        Raises:
            DeploymentNotFoundError: On 404 when not_found is given
            ControlPlaneError: On any other HTTP or transport error
        """
        _logger.debug("Control plane request: %s %s", method, path)
        try:
            response = await self._client.request(method, path, json=json, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            if status_code == 404 and not_found is not None:
                raise DeploymentNotFoundError(not_found) from e
            body = e.response.text[:500] if e.response.text else ""
            raise ControlPlaneError(
                f"control plane returned {status_code} for {method} {path}: {body}",
                status_code=status_code,
            ) from e
        except httpx.RequestError as e:
            raise ControlPlaneError(f"control plane request {method} {path} failed: {e}") from e

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise ControlPlaneError(f"control plane returned invalid JSON for {path}") from e

    async def create_deployment(
        self, template: DeploymentTemplate, request_id: str
    ) -> DeploymentCreateResponse:
        """Create a deployment from a template.

        Args:
            template: Deployment create request
            request_id: Idempotency key forwarded to the control plane

        Returns:
            Create response carrying the new deployment ID
        """
        data = await self._request(
            "POST",
            "/deployments",
            json=template.model_dump(mode="json", exclude_none=True),
            params={"request_id": request_id},
        )
        return _parse(DeploymentCreateResponse, data, "create response")

    async def delete_deployment(self, deployment_id: str) -> None:
        await self._request(
            "DELETE",
            f"/deployments/{deployment_id}",
            not_found=f"deployment {deployment_id} not found",
        )

    async def get_deployment(self, deployment_id: str) -> Deployment:
        data = await self._request(
            "GET",
            f"/deployments/{deployment_id}",
            not_found=f"deployment {deployment_id} not found",
        )
        return _parse(Deployment, data, f"deployment {deployment_id}")

    async def search_deployment(self, name: str) -> Deployment:
        """Find the single deployment whose name is exactly ``name``.

        Raises:
            DeploymentNotFoundError: If no deployment has that name
            ControlPlaneError: If more than one deployment has that name, or the
                response is malformed
        """
        query = {"query": {"query_string": {"query": f"name: {name}"}}}
        data = await self._request("POST", "/deployments/_search", json=query)
        hits = _mapping(data, "search response").get("deployments") or []
        if not isinstance(hits, list):
            raise ControlPlaneError("control plane returned a malformed search response")
        # Search is fuzzy; unrelated hits are dropped before validation.
        matches = [
            _parse(Deployment, hit, f"deployment named {name}")
            for hit in hits
            if isinstance(hit, dict) and hit.get("name") == name
        ]
        if not matches:
            raise DeploymentNotFoundError(f"no deployment found matching the instance ID {name}")
        if len(matches) > 1:
            raise ControlPlaneError(
                f"{len(matches)} deployments match the instance ID {name}, expected one"
            )
        return matches[0]

    async def shutdown_deployment(self, deployment_id: str) -> None:
        await self._request(
            "POST",
            f"/deployments/{deployment_id}/_shutdown",
            not_found=f"deployment {deployment_id} not found",
        )

    async def reset_admin_password(
        self, deployment_id: str, ref_id: str = "main-elasticsearch"
    ) -> tuple[str | None, str]:
        """Reset the default administrative account password of a deployment.

        Returns:
            Tuple of (username, password) as issued by the control plane;
            username may be None if the API omits it
        """
        data = await self._request(
            "POST",
            f"/deployments/{deployment_id}/elasticsearch/{ref_id}/_reset-password",
            not_found=f"deployment {deployment_id} not found",
        )
        data = _mapping(data, "password reset response")
        password = data.get("password")
        if not password:
            raise ControlPlaneError(
                f"password reset for deployment {deployment_id} returned no password"
            )
        return data.get("username"), password

    async def get_resource(self, deployment_id: str, kind: str, ref_id: str) -> DeploymentResource:
        data = await self._request(
            "GET",
            f"/deployments/{deployment_id}/{kind}/{ref_id}",
            not_found=f"{kind} resource {ref_id} of deployment {deployment_id} not found",
        )
        return _parse(DeploymentResource, data, f"{kind} resource {ref_id}")

    async def resolve_endpoint(
        self, deployment_id: str, kind: str, ref_id: str
    ) -> ResourceEndpoint:
        """Resolve the HTTPS endpoint of a deployment sub-resource."""
        resource = await self.get_resource(deployment_id, kind, ref_id)
        return endpoint_of(resource, kind)


__all__ = ["ControlPlaneClient", "endpoint_of"]
