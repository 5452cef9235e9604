"""Configuration management with validation.

All settings come from environment variables and are validated at load time
so a misconfigured deployment fails on startup instead of mid-event.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path

from .models import DEFAULT_ZONE_GROUP_NAME
from .retry import (
    DEFAULT_INITIAL_WAIT_SECONDS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_MAX_WAIT_SECONDS,
    DEFAULT_RETRYABLE_ERROR_PATTERN,
    RetryPolicy,
    RetryPolicyError,
)


class ConfigurationError(Exception):
    """Raised when configuration validation fails."""

    pass


DEFAULT_ZONE_MAPPINGS_FILE = "/config/dns-zone-mappings.json"

# Upper bounds keep a single event within the host's execution time limit
MAX_RETRIES_LIMIT = 50
MAX_WAIT_SECONDS_LIMIT = 300

# ARM child resource names: 1-80 chars, alphanumerics, '-', '.', '_'
VALID_ZONE_GROUP_NAME_PATTERN = r"^[A-Za-z0-9][A-Za-z0-9_.-]{0,78}[A-Za-z0-9_]$"
VALID_CLIENT_ID_PATTERN = r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$"


@dataclass(frozen=True)
class Config:
    """Service configuration loaded from environment variables.

    All fields are validated at construction time. Invalid configurations
    raise ConfigurationError immediately rather than failing at runtime.
    """

    zone_mappings_file: Path = field(default_factory=lambda: Path(DEFAULT_ZONE_MAPPINGS_FILE))
    zone_group_name: str = DEFAULT_ZONE_GROUP_NAME
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)

    # User-assigned managed identity; system-assigned when None
    managed_identity_client_id: str | None = None

    dry_run: bool = False
    fail_on_tag_exhaustion: bool = False
    enable_audit_logging: bool = True

    def __post_init__(self) -> None:
        errors: list[str] = []

        if not re.match(VALID_ZONE_GROUP_NAME_PATTERN, self.zone_group_name):
            errors.append(
                f"ZONE_GROUP_NAME must match pattern {VALID_ZONE_GROUP_NAME_PATTERN}: "
                f"{self.zone_group_name}"
            )

        if self.retry_policy.max_retries > MAX_RETRIES_LIMIT:
            errors.append(f"RETRY_MAX_RETRIES cannot exceed {MAX_RETRIES_LIMIT}")
        if self.retry_policy.max_wait_seconds > MAX_WAIT_SECONDS_LIMIT:
            errors.append(f"RETRY_MAX_WAIT_SECONDS cannot exceed {MAX_WAIT_SECONDS_LIMIT}")

        if self.managed_identity_client_id and not re.match(
            VALID_CLIENT_ID_PATTERN, self.managed_identity_client_id.lower()
        ):
            errors.append(
                f"MANAGED_IDENTITY_CLIENT_ID must be a valid GUID: "
                f"{self.managed_identity_client_id}"
            )

        if errors:
            error_msg = "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            raise ConfigurationError(error_msg)

    @classmethod
    def from_env(cls) -> Config:
        """Load configuration from environment variables.

        Environment Variables:
            ZONE_MAPPINGS_FILE: JSON/YAML zone mappings (default: /config/dns-zone-mappings.json)
            ZONE_GROUP_NAME: Zone group written on endpoints (default: private-endpoint-manager)
            RETRY_MAX_RETRIES: Attempts per remote operation (default: 10)
            RETRY_INITIAL_WAIT_SECONDS: First backoff wait (default: 2)
            RETRY_MAX_WAIT_SECONDS: Backoff cap (default: 15)
            RETRY_ERROR_PATTERN: Regex for retryable error messages
            MANAGED_IDENTITY_CLIENT_ID: Client ID of a user-assigned identity
            DRY_RUN: If "true", read but do not write (default: false)
            FAIL_ON_TAG_EXHAUSTION: Abort the event when tagging exhausts retries (default: false)
            ENABLE_AUDIT_LOGGING: JSON logs to stdout (default: true)
        """

        def get_int(key: str, default: int) -> int:
            value = os.environ.get(key)
            if value is None:
                return default
            try:
                return int(value)
            except ValueError as e:
                raise ConfigurationError(f"{key} must be an integer: {value}") from e

        def get_bool(key: str, default: bool) -> bool:
            value = os.environ.get(key, "").lower()
            if not value:
                return default
            return value in ("true", "1", "yes")

        try:
            retry_policy = RetryPolicy(
                max_retries=get_int("RETRY_MAX_RETRIES", DEFAULT_MAX_RETRIES),
                initial_wait_seconds=get_int(
                    "RETRY_INITIAL_WAIT_SECONDS", DEFAULT_INITIAL_WAIT_SECONDS
                ),
                max_wait_seconds=get_int("RETRY_MAX_WAIT_SECONDS", DEFAULT_MAX_WAIT_SECONDS),
                retryable_error_pattern=os.environ.get(
                    "RETRY_ERROR_PATTERN", DEFAULT_RETRYABLE_ERROR_PATTERN
                ),
            )
        except RetryPolicyError as e:
            raise ConfigurationError(str(e)) from e

        return cls(
            zone_mappings_file=Path(
                os.environ.get("ZONE_MAPPINGS_FILE", DEFAULT_ZONE_MAPPINGS_FILE)
            ),
            zone_group_name=os.environ.get("ZONE_GROUP_NAME", DEFAULT_ZONE_GROUP_NAME),
            retry_policy=retry_policy,
            managed_identity_client_id=os.environ.get("MANAGED_IDENTITY_CLIENT_ID") or None,
            dry_run=get_bool("DRY_RUN", False),
            fail_on_tag_exhaustion=get_bool("FAIL_ON_TAG_EXHAUSTION", False),
            enable_audit_logging=get_bool("ENABLE_AUDIT_LOGGING", True),
        )
