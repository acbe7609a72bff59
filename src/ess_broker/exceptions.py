"""Exceptions raised by the broker.

Public API (the "studs"):
    BrokerError: Base exception for all broker errors
    NotFoundError: A plan, template or deployment lookup missed
    AuthenticationError: The cluster API refused the service account
    CredentialSyncError: Service-account password resync failed
    AccountCreateError: User account creation reported a non-success status
    AccountDeleteError: User account deletion reported a non-success status
    ControlPlaneError: The deployment control plane reported an error
    ConnectionFailureError: The cluster API could not be reached
    SerializationError: Operation data could not be encoded or decoded
    OperationTimeoutError: A verb exceeded its deadline
"""


class BrokerError(Exception):
    """Base exception for all broker errors."""

    pass


class NotFoundError(BrokerError):
    """A lookup against the catalog or the control plane missed."""

    pass


class PlanNotFoundError(NotFoundError):
    """No service plan matches the requested service and plan IDs."""

    pass


class TemplateNotFoundError(NotFoundError):
    """No deployment template matches the plan name."""

    pass


class DeploymentNotFoundError(NotFoundError):
    """The control plane has no deployment for the given ID or name."""

    pass


class AuthenticationError(BrokerError):
    """The cluster API rejected the service account and could not be recovered."""

    pass


class CredentialSyncError(BrokerError):
    """Pushing the service-account password back onto the cluster failed."""

    pass


class AccountCreateError(BrokerError):
    """User account creation returned a non-success status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AccountDeleteError(BrokerError):
    """User account deletion returned a non-success status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ControlPlaneError(BrokerError):
    """Error reported by (or while talking to) the deployment control plane."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ConnectionFailureError(BrokerError):
    """Transport-level failure talking to a cluster."""

    pass


class SerializationError(BrokerError):
    """Operation data could not be encoded or decoded."""

    pass


class OperationTimeoutError(BrokerError):
    """A bounded operation exceeded its deadline. Nothing is assumed committed."""

    pass


__all__ = [
    "BrokerError",
    "NotFoundError",
    "PlanNotFoundError",
    "TemplateNotFoundError",
    "DeploymentNotFoundError",
    "AuthenticationError",
    "CredentialSyncError",
    "AccountCreateError",
    "AccountDeleteError",
    "ControlPlaneError",
    "ConnectionFailureError",
    "SerializationError",
    "OperationTimeoutError",
]
