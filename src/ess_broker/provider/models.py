"""Provider data models.

Models exchanged between the provider and its callers: the operation data
carried in the opaque token, issued credentials, verb results and the
tri-state outcome of a status poll.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


class OperationAction(str, Enum):
    """Action tags recorded in operation data."""

    PROVISION = "provision"
    DEPROVISION = "deprovision"
    BIND = "binding"
    UNBIND = "unbind"


class LastOperationState(str, Enum):
    """Status values reported back to pollers."""

    IN_PROGRESS = "in progress"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class OperationData(BaseModel):
    """Correlation record handed to the caller and returned on every poll.

    The action is kept as a plain string so that tags this version does not
    know about still decode; they resolve to the idle default on poll.
    """

    action: str = Field(..., alias="Action", description="Action tag")
    deployment_id: str = Field(..., alias="DeploymentID", description="Deployment identifier")
    user_id: str | None = Field(
        default=None, alias="UserID", description="Derived username (bind/unbind only)"
    )

    class Config:
        populate_by_name = True

    @field_validator("action", mode="before")
    @classmethod
    def _plain_action(cls, v: Any) -> Any:
        if isinstance(v, Enum):
            return v.value
        return v


class Credentials(BaseModel):
    """Credentials issued by a bind."""

    uri: str | None = Field(default=None, description="Full cluster URL")
    host: str | None = Field(default=None, serialization_alias="hostname")
    port: int | None = Field(default=None, description="Cluster HTTPS port")
    username: str
    password: str


class ProvisionResult(BaseModel):
    """Result of a provision call."""

    dashboard_url: str
    operation_data: str


class BindResult(BaseModel):
    """Result of a bind call."""

    credentials: Credentials
    operation_data: str


class LastOperation(BaseModel):
    """Outcome of a status poll."""

    state: LastOperationState
    description: str = ""

    class Config:
        use_enum_values = True


__all__ = [
    "OperationAction",
    "LastOperationState",
    "OperationData",
    "Credentials",
    "ProvisionResult",
    "BindResult",
    "LastOperation",
]
