"""Provider - orchestrates the broker verbs against the control plane and clusters.

Every verb call talks to the deployment control plane and, for bind and
unbind, to the cluster's administrative API. Verbs return an opaque operation
token; last_operation decodes it on poll and resolves the current status.

The provider holds no state between calls. Credentials are re-derived from
the instance or binding ID and the configured seed whenever they are needed.

Public API (the "studs"):
    Provider: Implements provision, deprovision, bind, unbind, update and
              last_operation
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable
from contextlib import asynccontextmanager
from typing import TypeVar

from ..clients.cluster import DEFAULT_ROLES, ClusterClient
from ..clients.control_plane import ControlPlaneClient, endpoint_of
from ..clients.models import Deployment, DeploymentTemplate, ResourceEndpoint
from ..config.catalog import ServicePlan, find_deployment_template
from ..config.settings import ProviderConfig
from ..exceptions import (
    AccountCreateError,
    AccountDeleteError,
    AuthenticationError,
    BrokerError,
    ConnectionFailureError,
    ControlPlaneError,
    CredentialSyncError,
    NotFoundError,
    OperationTimeoutError,
    SerializationError,
)
from .credentials import derive_service_account, derive_user_account
from .models import (
    BindResult,
    Credentials,
    LastOperation,
    LastOperationState,
    OperationAction,
    OperationData,
    ProvisionResult,
)
from .operation import decode_operation, encode_operation

T = TypeVar("T")

# Factory for cluster sessions: (url, username, password) -> ClusterClient
ClusterFactory = Callable[[str, str, str], ClusterClient]

# Administrative account whose password the control plane can reset
DEFAULT_ADMIN_USERNAME = "elastic"

STATUS_STARTED = "started"
STATUS_STOPPED = "stopped"

_ACTION_LABELS: dict[str, str] = {
    OperationAction.PROVISION.value: "provision",
    OperationAction.DEPROVISION.value: "deprovision",
    OperationAction.BIND.value: "bind",
    OperationAction.UNBIND.value: "unbind",
}


def _is_success(status_code: int) -> bool:
    return 200 <= status_code < 300


class Provider:
    """Orchestrator behind the broker verbs.

    Args:
        config: Provider settings
        templates: Deployment templates from the plan catalog
        logger: Logger used for all provider messages (default: module logger)
        control_plane: Control plane session (default: built from config). An
            injected session stays open when the provider is closed.
        cluster_factory: Opens cluster sessions (default: ClusterClient with
            the configured timeout and TLS verification)

    Example:
        >>> async with Provider(config, catalog.templates) as provider:
        ...     result = await provider.provision("instance-1", plan)
        ...     status = await provider.last_operation("instance-1", result.operation_data)
    """

    def __init__(
        self,
        config: ProviderConfig,
        templates: Iterable[DeploymentTemplate],
        *,
        logger: logging.Logger | None = None,
        control_plane: ControlPlaneClient | None = None,
        cluster_factory: ClusterFactory | None = None,
    ) -> None:
        self._config = config
        self._templates = list(templates)
        self._logger = logger or logging.getLogger(__name__)
        self._owns_control_plane = control_plane is None
        self._control_plane = control_plane or ControlPlaneClient.from_config(config)
        self._cluster_factory = cluster_factory or self._open_cluster
        self._seed = config.seed.get_secret_value()
        self._logger.info("Provider initiated with %d deployment templates", len(self._templates))

    async def __aenter__(self) -> Provider:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the control plane session if this provider opened it."""
        if self._owns_control_plane:
            await self._control_plane.aclose()

    def _open_cluster(self, url: str, username: str, password: str) -> ClusterClient:
        return ClusterClient(
            url,
            username,
            password,
            timeout=self._config.request_timeout_seconds,
            verify=self._config.verify_tls,
        )

    async def _bounded(
        self, work: Awaitable[T], timeout: float, verb: str, instance_id: str
    ) -> T:
        """Run a verb under a deadline, logging and re-raising its terminal error."""
        try:
            return await asyncio.wait_for(work, timeout=timeout)
        except asyncio.TimeoutError as e:
            self._logger.error(
                "%s timed out after %ss (instance-id=%s)", verb, timeout, instance_id
            )
            raise OperationTimeoutError(
                f"{verb} for instance {instance_id} did not finish within {timeout}s"
            ) from e
        except BrokerError as e:
            self._logger.error("%s failed (instance-id=%s): %s", verb, instance_id, e)
            raise

    # =========================================================================
    # Verbs
    # =========================================================================

    async def provision(self, instance_id: str, plan: ServicePlan) -> ProvisionResult:
        """Create a deployment for a new service instance.

        The caller must already have checked that asynchronous operations are
        accepted. The deployment is named after the instance ID.

        Args:
            instance_id: Instance identifier
            plan: Catalog plan; its name selects the deployment template

        Returns:
            Dashboard URL and operation data for polling

        Raises:
            TemplateNotFoundError: If no template matches the plan
            ControlPlaneError: If creation or dashboard resolution fails
            OperationTimeoutError: If provisioning exceeds its deadline
        """
        return await self._bounded(
            self._provision(instance_id, plan),
            self._config.provision_timeout_seconds,
            "provision",
            instance_id,
        )

    async def _provision(self, instance_id: str, plan: ServicePlan) -> ProvisionResult:
        template = find_deployment_template(self._templates, plan)
        template.name = instance_id
        created = await self._control_plane.create_deployment(template, request_id=instance_id)
        deployment_id = created.id

        self._logger.info(
            "Retrieving dashboard url (instance-id=%s deployment-id=%s)",
            instance_id,
            deployment_id,
        )
        dashboard = await self._control_plane.resolve_endpoint(
            deployment_id, self._config.admin_ui_kind, self._config.admin_ui_ref_id
        )
        operation_data = encode_operation(OperationAction.PROVISION, deployment_id)

        self._logger.info(
            "New provision initiated (instance-id=%s deployment-id=%s)",
            instance_id,
            deployment_id,
        )
        return ProvisionResult(dashboard_url=dashboard.url, operation_data=operation_data)

    async def deprovision(self, instance_id: str) -> str:
        """Shut down the deployment named after the instance ID.

        Returns:
            Operation data for polling

        Raises:
            DeploymentNotFoundError: If no deployment has that name
            ControlPlaneError: If the search or shutdown fails
        """
        return await self._bounded(
            self._deprovision(instance_id),
            self._config.operation_timeout_seconds,
            "deprovision",
            instance_id,
        )

    async def _deprovision(self, instance_id: str) -> str:
        deployment = await self._control_plane.search_deployment(instance_id)
        await self._control_plane.shutdown_deployment(deployment.id)
        operation_data = encode_operation(OperationAction.DEPROVISION, deployment.id)
        self._logger.info(
            "Deprovision initiated (instance-id=%s deployment-id=%s)", instance_id, deployment.id
        )
        return operation_data

    async def bind(self, instance_id: str, binding_id: str) -> BindResult:
        """Create a user account for a binding on the instance's cluster.

        If the cluster rejects the service account (fresh deployment), the
        default admin password is reset once and used to push the service
        account password back; see _service_session. A 5xx answer to the
        service-account ping means the cluster is not serving yet and raises
        ConnectionFailureError; any other non-401 refusal (403 and the like)
        raises AuthenticationError.

        Args:
            instance_id: Instance identifier
            binding_id: Binding identifier; the username is its first 10 chars

        Returns:
            Credentials for the new account and operation data for polling

        Raises:
            DeploymentNotFoundError: If the instance has no deployment
            ConnectionFailureError: If the cluster cannot be reached
                or answers the ping with a 5xx status
            AuthenticationError: If the cluster refuses the service account with
                a non-401 client error
            CredentialSyncError: If the service account password resync fails
            AccountCreateError: If the account cannot be created
        """
        return await self._bounded(
            self._bind(instance_id, binding_id),
            self._config.operation_timeout_seconds,
            "bind",
            instance_id,
        )

    async def _bind(self, instance_id: str, binding_id: str) -> BindResult:
        deployment, endpoint = await self._resolve_cluster(instance_id)
        username, password = derive_user_account(binding_id, self._seed)

        async with self._service_session(deployment, endpoint, instance_id) as session:
            status = await session.put_user(username, password, DEFAULT_ROLES)
        if not _is_success(status):
            raise AccountCreateError(
                f"unable to create new account for bind operation, statuscode: {status}",
                status_code=status,
            )

        credentials = Credentials(
            uri=endpoint.url,
            host=endpoint.host,
            port=endpoint.port,
            username=username,
            password=password,
        )
        operation_data = encode_operation(OperationAction.BIND, deployment.id, username)
        self._logger.info(
            "New account created (instance-id=%s deployment-id=%s bind-id=%s)",
            instance_id,
            deployment.id,
            binding_id,
        )
        return BindResult(credentials=credentials, operation_data=operation_data)

    async def unbind(self, instance_id: str, binding_id: str) -> str:
        """Delete the user account of a binding.

        Returns:
            Operation data for polling

        Raises:
            DeploymentNotFoundError: If the instance has no deployment
            ConnectionFailureError: If the cluster cannot be reached
                or answers the ping with a 5xx status
            CredentialSyncError: If the service account password resync fails
            AccountDeleteError: If the account cannot be deleted
        """
        return await self._bounded(
            self._unbind(instance_id, binding_id),
            self._config.operation_timeout_seconds,
            "unbind",
            instance_id,
        )

    async def _unbind(self, instance_id: str, binding_id: str) -> str:
        deployment, endpoint = await self._resolve_cluster(instance_id)
        username, _ = derive_user_account(binding_id, self._seed)

        async with self._service_session(deployment, endpoint, instance_id) as session:
            status = await session.delete_user(username)
        if not _is_success(status):
            raise AccountDeleteError(
                f"unable to delete account, statuscode: {status}", status_code=status
            )

        operation_data = encode_operation(OperationAction.UNBIND, deployment.id, username)
        self._logger.info(
            "Account deleted (instance-id=%s deployment-id=%s bind-id=%s)",
            instance_id,
            deployment.id,
            binding_id,
        )
        return operation_data

    async def update(self, instance_id: str, plan: ServicePlan | None = None) -> str:
        """Accept an update request without doing anything.

        Resizing is not supported. The call completes synchronously and
        returns empty operation data; there is nothing to poll.
        """
        self._logger.info("Update requested, nothing to do (instance-id=%s)", instance_id)
        return ""

    async def last_operation(
        self, instance_id: str, operation_data: str, binding_id: str | None = None
    ) -> LastOperation:
        """Resolve the status of the operation described by operation_data.

        Never raises: every failure resolves to a failed state with a
        description. Action tags this provider does not know resolve to
        succeeded.

        Args:
            instance_id: Instance identifier
            operation_data: Token returned by the verb being polled
            binding_id: Full binding ID for bind/unbind polls. Without it the
                user password is derived from the token's user ID, which only
                matches for binding IDs of at most ten characters.

        Returns:
            State and description
        """
        try:
            data = decode_operation(operation_data)
        except SerializationError as e:
            self._logger.error(
                "Failed to decode last operation data (instance-id=%s): %s", instance_id, e
            )
            return LastOperation(
                state=LastOperationState.FAILED, description="failed to decode operation data"
            )

        label = _ACTION_LABELS.get(data.action, data.action)
        self._logger.info(
            "Last operation check started for %s (instance-id=%s deployment-id=%s)",
            data.action,
            instance_id,
            data.deployment_id,
        )
        try:
            return await asyncio.wait_for(
                self._check_operation(instance_id, data, binding_id),
                timeout=self._config.operation_timeout_seconds,
            )
        except asyncio.TimeoutError:
            self._logger.error(
                "Last operation check for %s timed out (instance-id=%s)", label, instance_id
            )
            return LastOperation(
                state=LastOperationState.FAILED, description=f"{label} status check timed out"
            )
        except NotFoundError as e:
            self._logger.error(
                "Last operation check for %s failed, cluster not found (instance-id=%s "
                "deployment-id=%s): %s",
                label,
                instance_id,
                data.deployment_id,
                e,
            )
            return LastOperation(
                state=LastOperationState.FAILED, description=f"{label} failed, cluster not found"
            )
        except BrokerError as e:
            self._logger.error(
                "Last operation check for %s failed (instance-id=%s): %s", label, instance_id, e
            )
            return LastOperation(
                state=LastOperationState.FAILED, description=f"{label} status check failed: {e}"
            )
        except Exception:
            self._logger.exception(
                "Unexpected error during last operation check (instance-id=%s)", instance_id
            )
            return LastOperation(
                state=LastOperationState.FAILED, description=f"{label} status check failed"
            )

    async def _check_operation(
        self, instance_id: str, data: OperationData, binding_id: str | None
    ) -> LastOperation:
        action = data.action
        if action == OperationAction.PROVISION:
            deployment = await self._control_plane.get_deployment(data.deployment_id)
            if not deployment.has_status(STATUS_STARTED):
                return _in_progress("provision in progress")
        elif action == OperationAction.DEPROVISION:
            deployment = await self._control_plane.get_deployment(data.deployment_id)
            if not deployment.has_status(STATUS_STOPPED):
                return _in_progress("deprovision in progress")
        elif action == OperationAction.BIND:
            status = await self._ping_as_user(instance_id, data, binding_id)
            if status is None or not _is_success(status):
                return _in_progress("bind in progress")
        elif action == OperationAction.UNBIND:
            status = await self._ping_as_user(instance_id, data, binding_id)
            if status is None or _is_success(status):
                return _in_progress("unbind in progress")

        self._logger.info(
            "Last operation check finished for %s (instance-id=%s deployment-id=%s)",
            action,
            instance_id,
            data.deployment_id,
        )
        return LastOperation(
            state=LastOperationState.SUCCEEDED, description="last operation succeeded"
        )

    # =========================================================================
    # Cluster access
    # =========================================================================

    async def _resolve_cluster(self, instance_id: str) -> tuple[Deployment, ResourceEndpoint]:
        """Find the instance's deployment and its Elasticsearch endpoint."""
        deployment = await self._control_plane.search_deployment(instance_id)
        resources = deployment.resources.of_kind("elasticsearch")
        if not resources:
            raise ControlPlaneError(f"deployment {deployment.id} has no elasticsearch resource")
        resource = next(
            (r for r in resources if r.ref_id == self._config.search_ref_id), resources[0]
        )
        return deployment, endpoint_of(resource, "elasticsearch")

    @asynccontextmanager
    async def _service_session(
        self, deployment: Deployment, endpoint: ResourceEndpoint, instance_id: str
    ) -> AsyncIterator[ClusterClient]:
        """Open a cluster session that can manage accounts.

        Tries the derived service account first. A 401 means the deployment
        does not know the derived password yet (fresh deployment, or the
        account was changed out of band): the default admin password is reset
        through the control plane, and after the settle delay that admin
        session pushes the derived password onto the service account. The
        admin session is then used for the rest of the call.
        """
        username, password = derive_service_account(instance_id, self._seed)
        async with self._cluster_factory(endpoint.url, username, password) as session:
            status = await session.ping()
            if _is_success(status):
                self._logger.info(
                    "Service account authenticated (instance-id=%s deployment-id=%s)",
                    instance_id,
                    deployment.id,
                )
                yield session
                return

        if status >= 500:
            raise ConnectionFailureError(
                f"cluster {endpoint.url} is not serving requests yet (status {status})"
            )
        if status != 401:
            raise AuthenticationError(
                f"cluster {endpoint.url} answered {status} to the service account"
            )

        self._logger.info(
            "Authentication denied first try, resetting admin password "
            "(instance-id=%s deployment-id=%s)",
            instance_id,
            deployment.id,
        )
        admin_username, admin_password = await self._control_plane.reset_admin_password(
            deployment.id, self._config.search_ref_id
        )
        async with self._cluster_factory(
            endpoint.url, admin_username or DEFAULT_ADMIN_USERNAME, admin_password
        ) as admin:
            # The reset is not visible cluster-wide right away.
            await asyncio.sleep(self._config.resync_delay_seconds)
            status = await admin.update_password(username, password, DEFAULT_ROLES)
            if not _is_success(status):
                raise CredentialSyncError(
                    f"updating the service account password on deployment {deployment.id} "
                    f"returned {status}"
                )
            self._logger.info(
                "Service account password resynced (instance-id=%s deployment-id=%s)",
                instance_id,
                deployment.id,
            )
            yield admin

    async def _ping_as_user(
        self, instance_id: str, data: OperationData, binding_id: str | None
    ) -> int | None:
        """Ping the instance's cluster as the bound user.

        Returns:
            The ping status code, or None if the cluster could not be reached
        """
        account_id = binding_id or data.user_id
        if not account_id:
            raise SerializationError("operation data carries no user ID")
        _, endpoint = await self._resolve_cluster(instance_id)
        username, password = derive_user_account(account_id, self._seed)
        try:
            async with self._cluster_factory(endpoint.url, username, password) as session:
                return await session.ping()
        except ConnectionFailureError as e:
            self._logger.warning(
                "Cluster unreachable during last operation check (instance-id=%s): %s",
                instance_id,
                e,
            )
            return None


def _in_progress(description: str) -> LastOperation:
    return LastOperation(state=LastOperationState.IN_PROGRESS, description=description)


__all__ = ["Provider", "ClusterFactory", "DEFAULT_ADMIN_USERNAME"]
