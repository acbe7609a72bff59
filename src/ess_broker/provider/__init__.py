"""Orchestration core.

Public API (the "studs"):
    Provider: Implements the broker verbs
    derive_service_account, derive_user_account: Credential derivation
    encode_operation, decode_operation: Operation data codec
    OperationData, OperationAction, LastOperation, LastOperationState,
    Credentials, ProvisionResult, BindResult: Data models
"""

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
from .provider import Provider

__all__ = [
    "Provider",
    "derive_service_account",
    "derive_user_account",
    "encode_operation",
    "decode_operation",
    "OperationData",
    "OperationAction",
    "LastOperation",
    "LastOperationState",
    "Credentials",
    "ProvisionResult",
    "BindResult",
]
