"""Deterministic credential derivation.

Credentials are never stored. They are recomputed from an identifier and the
shared seed every time bind, unbind or a status poll needs them, so the same
inputs must always produce the same output.

Public API (the "studs"):
    SERVICE_ACCOUNT_USERNAME: Account name the broker uses on every deployment
    USERNAME_LENGTH: Length user-account names are truncated to
    derive_service_account: Credentials for the broker's own account
    derive_user_account: Credentials for a bound user account
"""

import hashlib

SERVICE_ACCOUNT_USERNAME = "pcf_broker"

# Binding IDs sharing their first USERNAME_LENGTH characters map to the same
# account. Known collision risk, not handled.
USERNAME_LENGTH = 10


def _derive_password(identifier: str, seed: str) -> str:
    return hashlib.sha1(f"{identifier}-{seed}".encode()).hexdigest()


def derive_service_account(instance_id: str, seed: str) -> tuple[str, str]:
    """Derive the broker's service-account credentials for a deployment.

    Args:
        instance_id: Instance identifier the deployment is named after
        seed: Shared secret seed

    Returns:
        Tuple of (username, password)
    """
    return SERVICE_ACCOUNT_USERNAME, _derive_password(instance_id, seed)


def derive_user_account(binding_id: str, seed: str) -> tuple[str, str]:
    """Derive the user-account credentials for a binding.

    The username is the first ten characters of the binding ID (the whole ID
    when shorter). The password is derived from the full binding ID.

    Args:
        binding_id: Binding identifier
        seed: Shared secret seed

    Returns:
        Tuple of (username, password)
    """
    return binding_id[:USERNAME_LENGTH], _derive_password(binding_id, seed)


__all__ = [
    "SERVICE_ACCOUNT_USERNAME",
    "USERNAME_LENGTH",
    "derive_service_account",
    "derive_user_account",
]
