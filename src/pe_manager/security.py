"""Managed-identity-only credential acquisition.

The service authenticates to Azure exclusively through a managed identity.
Secret-based credentials in the environment are refused at startup:
1. No AZURE_CLIENT_SECRET, certificate or username/password variables
2. ManagedIdentityCredential is the only credential type handed out
"""

from __future__ import annotations

import logging
import os

from azure.identity import ManagedIdentityCredential

logger = logging.getLogger(__name__)

# Environment variables that indicate secret-based authentication
FORBIDDEN_CREDENTIAL_ENV_VARS: tuple[str, ...] = (
    "AZURE_CLIENT_SECRET",
    "AZURE_CLIENT_CERTIFICATE_PATH",
    "AZURE_CLIENT_CERTIFICATE_PASSWORD",
    "AZURE_USERNAME",
    "AZURE_PASSWORD",
)

SECRETLESS_VIOLATION_MESSAGE = (
    "SECURITY VIOLATION: {env_var} is set. The private endpoint manager "
    "authenticates with a managed identity only; remove secret credential "
    "variables and assign a managed identity with Network Contributor on the "
    "endpoint resource groups and Private DNS Zone Contributor on the zones."
)


class SecretlessViolationError(Exception):
    """Raised when secret credentials are present in the environment."""

    pass


def enforce_secretless_architecture() -> None:
    """Refuse to continue when a secret credential variable is set.

    Raises:
        SecretlessViolationError: If any forbidden variable is present.
    """
    for env_var in FORBIDDEN_CREDENTIAL_ENV_VARS:
        if os.environ.get(env_var):
            logger.critical(
                "Secretless architecture violation",
                extra={
                    "security_event": "credential_detected",
                    "env_var": env_var,
                    "action": "startup_blocked",
                },
            )
            raise SecretlessViolationError(SECRETLESS_VIOLATION_MESSAGE.format(env_var=env_var))


def get_managed_identity_credential(client_id: str | None = None) -> ManagedIdentityCredential:
    """Get a ManagedIdentityCredential after verifying the environment.

    Args:
        client_id: Client ID of a user-assigned identity; system-assigned when None.

    Raises:
        SecretlessViolationError: If credential environment variables are detected.
    """
    enforce_secretless_architecture()

    if client_id:
        logger.info(
            "Using user-assigned managed identity",
            extra={"client_id": client_id[:8] + "..." if len(client_id) > 8 else client_id},
        )
        return ManagedIdentityCredential(client_id=client_id)

    logger.info("Using system-assigned managed identity")
    return ManagedIdentityCredential()
