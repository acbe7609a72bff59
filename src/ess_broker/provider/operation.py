"""Operation data codec.

Encodes the correlation record returned from every verb into the opaque
string the caller stores and hands back on poll, e.g.::

    {"Action":"binding","DeploymentID":"61b9a27f...","UserID":"bind-test1"}

Public API (the "studs"):
    encode_operation: Serialize operation data to a token string
    decode_operation: Parse a token string back into OperationData
"""

from pydantic import ValidationError

from ..exceptions import SerializationError
from .models import OperationAction, OperationData


def encode_operation(
    action: OperationAction | str, deployment_id: str, user_id: str | None = None
) -> str:
    """Serialize operation data.

    Args:
        action: Action tag
        deployment_id: Deployment the operation targets
        user_id: Derived username for bind/unbind operations

    Returns:
        Compact JSON token; UserID is omitted when not set

    Raises:
        SerializationError: If the record cannot be built
    """
    try:
        data = OperationData(action=action, deployment_id=deployment_id, user_id=user_id)
    except ValidationError as e:
        raise SerializationError(f"unable to encode operation data: {e}") from e
    return data.model_dump_json(by_alias=True, exclude_none=True)


def decode_operation(token: str) -> OperationData:
    """Parse a token produced by encode_operation.

    Raises:
        SerializationError: If the token is not valid operation data
    """
    try:
        return OperationData.model_validate_json(token)
    except ValidationError as e:
        raise SerializationError(f"unable to decode operation data: {e}") from e


__all__ = ["encode_operation", "decode_operation"]
