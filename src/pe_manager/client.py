"""Resource client used by the event pipeline.

The pipeline only needs three remote operations on a private endpoint:
read its provisioning state and tags, write its tags, and create or replace
one of its private DNS zone groups. ResourceClient describes that surface;
AzureResourceClient implements it with generic ARM calls so no
network-specific SDK package is required.

Every failure surfaces as ResourceClientError whose message starts with the
error kind, so transient failures carry "RetryableError" and are picked up
by the default retry pattern.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from azure.core.exceptions import (
    AzureError,
    HttpResponseError,
    ResourceExistsError,
    ResourceNotFoundError,
    ServiceRequestError,
    ServiceResponseError,
)
from azure.mgmt.resource import ResourceManagementClient
from azure.mgmt.resource.resources.models import GenericResource, Tags, TagsPatchResource

from .models import ZoneGroupConfig, zone_group_body

logger = logging.getLogger(__name__)

PRIVATE_ENDPOINT_RESOURCE_TYPE = "Microsoft.Network/privateEndpoints"
ZONE_GROUP_CHILD_TYPE = "privateDnsZoneGroups"
NETWORK_API_VERSION = "2023-11-01"

# HTTP status codes treated as transient
TRANSIENT_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})


class ResourceErrorKind(str, Enum):
    """Classification of remote failures."""

    NOT_FOUND = "NotFound"
    TRANSIENT = "RetryableError"
    CONFLICT = "Conflict"
    INVALID_ARGUMENT = "InvalidArgument"
    UNKNOWN = "Unknown"


class ResourceClientError(Exception):
    """Raised for any failed remote operation."""

    def __init__(self, kind: ResourceErrorKind, message: str, operation: str = "") -> None:
        self.kind = kind
        self.operation = operation
        self.detail = message
        super().__init__(f"{kind.value}: {message}")


@dataclass(frozen=True)
class ResourceSnapshot:
    """The parts of a remote resource the pipeline reads."""

    provisioning_state: str | None
    tags: dict[str, str] = field(default_factory=dict)


class ResourceClient(Protocol):
    """Remote operations against private endpoints in one subscription."""

    def get_resource(self, resource_group: str, name: str) -> ResourceSnapshot: ...

    def merge_resource_tags(self, resource_group: str, name: str, tags: dict[str, str]) -> None:
        """Add or update the given tags, leaving all other tags untouched."""

    def create_or_replace_dns_zone_group(
        self,
        resource_group: str,
        resource_name: str,
        zone_group_name: str,
        configs: list[ZoneGroupConfig],
    ) -> None: ...


def classify_azure_error(error: AzureError) -> ResourceErrorKind:
    """Map an Azure SDK exception to an error kind."""
    if isinstance(error, ResourceNotFoundError):
        return ResourceErrorKind.NOT_FOUND
    if isinstance(error, ResourceExistsError):
        return ResourceErrorKind.CONFLICT
    if isinstance(error, ServiceRequestError | ServiceResponseError):
        return ResourceErrorKind.TRANSIENT
    if isinstance(error, HttpResponseError):
        status = error.status_code
        if status is None:
            return ResourceErrorKind.UNKNOWN
        if status == 404:
            return ResourceErrorKind.NOT_FOUND
        if status == 409:
            return ResourceErrorKind.CONFLICT
        if status in TRANSIENT_STATUS_CODES:
            return ResourceErrorKind.TRANSIENT
        if 400 <= status < 500:
            return ResourceErrorKind.INVALID_ARGUMENT
        if status >= 500:
            return ResourceErrorKind.TRANSIENT
    return ResourceErrorKind.UNKNOWN


def _error_detail(error: AzureError) -> str:
    """Remote error code and message, kept intact for pattern matching."""
    code = None
    if isinstance(error, HttpResponseError) and error.error is not None:
        code = error.error.code
    message = getattr(error, "message", None) or str(error)
    if code and code not in message:
        return f"{code}: {message}"
    return message


class AzureResourceClient:
    """ResourceClient backed by azure-mgmt-resource generic ARM operations."""

    def __init__(
        self,
        credential: Any,
        subscription_id: str,
        *,
        api_version: str = NETWORK_API_VERSION,
    ) -> None:
        self._subscription_id = subscription_id
        self._api_version = api_version
        self._client = ResourceManagementClient(
            credential=credential,
            subscription_id=subscription_id,
        )

    @property
    def subscription_id(self) -> str:
        return self._subscription_id

    def private_endpoint_id(self, resource_group: str, name: str) -> str:
        return (
            f"/subscriptions/{self._subscription_id}/resourceGroups/{resource_group}"
            f"/providers/{PRIVATE_ENDPOINT_RESOURCE_TYPE}/{name}"
        )

    def zone_group_id(self, resource_group: str, name: str, zone_group_name: str) -> str:
        return (
            f"{self.private_endpoint_id(resource_group, name)}"
            f"/{ZONE_GROUP_CHILD_TYPE}/{zone_group_name}"
        )

    def _translate(self, error: AzureError, operation: str, resource_id: str) -> ResourceClientError:
        kind = classify_azure_error(error)
        logger.debug(
            "Azure operation failed",
            extra={
                "operation": operation,
                "resource_id": resource_id,
                "error_kind": kind.value,
                "error_type": type(error).__name__,
            },
        )
        return ResourceClientError(kind, _error_detail(error), operation=operation)

    def get_resource(self, resource_group: str, name: str) -> ResourceSnapshot:
        resource_id = self.private_endpoint_id(resource_group, name)
        try:
            resource = self._client.resources.get_by_id(
                resource_id=resource_id,
                api_version=self._api_version,
            )
        except AzureError as e:
            raise self._translate(e, "get_resource", resource_id) from e

        properties = resource.properties or {}
        return ResourceSnapshot(
            provisioning_state=properties.get("provisioningState"),
            tags=dict(resource.tags or {}),
        )

    def merge_resource_tags(self, resource_group: str, name: str, tags: dict[str, str]) -> None:
        resource_id = self.private_endpoint_id(resource_group, name)
        try:
            # Merge touches only the given keys; tags written by others survive
            poller = self._client.tags.begin_update_at_scope(
                scope=resource_id,
                parameters=TagsPatchResource(operation="Merge", properties=Tags(tags=dict(tags))),
            )
            poller.result()
        except AzureError as e:
            raise self._translate(e, "merge_resource_tags", resource_id) from e

    def create_or_replace_dns_zone_group(
        self,
        resource_group: str,
        resource_name: str,
        zone_group_name: str,
        configs: list[ZoneGroupConfig],
    ) -> None:
        resource_id = self.zone_group_id(resource_group, resource_name, zone_group_name)
        try:
            poller = self._client.resources.begin_create_or_update_by_id(
                resource_id=resource_id,
                api_version=self._api_version,
                parameters=GenericResource(properties=zone_group_body(configs)),
            )
            poller.result()
        except AzureError as e:
            raise self._translate(e, "create_or_replace_dns_zone_group", resource_id) from e


class DryRunResourceClient:
    """Wraps a client so reads go through and writes are only logged."""

    def __init__(self, inner: ResourceClient) -> None:
        self._inner = inner

    def get_resource(self, resource_group: str, name: str) -> ResourceSnapshot:
        return self._inner.get_resource(resource_group, name)

    def merge_resource_tags(self, resource_group: str, name: str, tags: dict[str, str]) -> None:
        logger.info(
            "DRY RUN: would merge tags",
            extra={"resource_group": resource_group, "resource_name": name, "tags": tags},
        )

    def create_or_replace_dns_zone_group(
        self,
        resource_group: str,
        resource_name: str,
        zone_group_name: str,
        configs: list[ZoneGroupConfig],
    ) -> None:
        logger.info(
            "DRY RUN: would create or replace DNS zone group",
            extra={
                "resource_group": resource_group,
                "resource_name": resource_name,
                "zone_group_name": zone_group_name,
                "zone_configs": [config.to_arm() for config in configs],
            },
        )
