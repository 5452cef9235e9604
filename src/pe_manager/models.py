"""Pydantic models for inbound events, zone mappings and zone group config.

These models provide:
1. Type-safe parsing of the queue message payload
2. Validation at the boundary (fail fast, fail loudly)
3. The ARM body for a private DNS zone group
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, Field, ValidationError

# Zone group written on every private endpoint this service manages.
DEFAULT_ZONE_GROUP_NAME = "private-endpoint-manager"


class EventPayloadError(Exception):
    """Raised when an event payload cannot be decoded or validated."""

    pass


# =============================================================================
# Inbound Event
# =============================================================================


class ConnectionProperties(BaseModel):
    """Properties of a private link service connection."""

    model_config = {"extra": "ignore", "populate_by_name": True}

    group_ids: list[str] = Field(default_factory=list, alias="groupIds")


class PrivateLinkServiceConnection(BaseModel):
    """A single private link service connection on an endpoint."""

    model_config = {"extra": "ignore"}

    properties: ConnectionProperties = Field(default_factory=ConnectionProperties)

    @property
    def group_ids(self) -> list[str]:
        return self.properties.group_ids


class ResourceProperties(BaseModel):
    """Private endpoint properties carried by the event."""

    model_config = {"extra": "ignore", "populate_by_name": True}

    private_link_service_connections: list[PrivateLinkServiceConnection] = Field(
        default_factory=list, alias="privateLinkServiceConnections"
    )


class ResourceInfo(BaseModel):
    """The private endpoint the event refers to."""

    model_config = {"extra": "ignore"}

    id: Annotated[str, Field(min_length=1)]
    name: str = ""
    properties: ResourceProperties = Field(default_factory=ResourceProperties)

    @property
    def connections(self) -> list[PrivateLinkServiceConnection]:
        return self.properties.private_link_service_connections


class EventData(BaseModel):
    """Event body."""

    model_config = {"extra": "ignore", "populate_by_name": True}

    resource_info: ResourceInfo = Field(alias="resourceInfo")


class PrivateEndpointEvent(BaseModel):
    """A "private endpoint created" event.

    Accepts either a mapping or its JSON encoding via from_payload().
    """

    model_config = {"extra": "ignore", "frozen": True, "populate_by_name": True}

    event_type: str = Field("", alias="eventType")
    data: EventData

    @property
    def resource_info(self) -> ResourceInfo:
        return self.data.resource_info

    @classmethod
    def from_payload(cls, payload: str | bytes | dict[str, Any]) -> PrivateEndpointEvent:
        """Decode and validate a queue message payload.

        Raises:
            EventPayloadError: If the payload is not JSON or fails validation.
        """
        if isinstance(payload, bytes | bytearray):
            try:
                payload = payload.decode("utf-8")
            except UnicodeDecodeError as e:
                raise EventPayloadError(f"Event payload is not UTF-8: {e}") from e

        if isinstance(payload, str):
            try:
                payload = json.loads(payload)
            except json.JSONDecodeError as e:
                raise EventPayloadError(f"Event payload is not valid JSON: {e}") from e

        if not isinstance(payload, dict):
            raise EventPayloadError(
                f"Event payload must be a JSON object, got {type(payload).__name__}"
            )

        try:
            return cls.model_validate(payload)
        except ValidationError as e:
            errors = []
            for error in e.errors():
                loc = ".".join(str(x) for x in error["loc"])
                errors.append(f"  - {loc}: {error['msg']}")
            raise EventPayloadError(
                "Event payload validation failed:\n" + "\n".join(errors)
            ) from e


def extract_group_ids(resource_info: ResourceInfo) -> list[str]:
    """Flatten group IDs across all connections.

    Order is connection order, then declaration order. Duplicates are kept.
    """
    return [group_id for connection in resource_info.connections for group_id in connection.group_ids]


# =============================================================================
# Zone Mappings
# =============================================================================


class DnsZoneMapping(BaseModel):
    """Target private DNS zone for one group ID."""

    model_config = {"extra": "ignore", "frozen": True, "populate_by_name": True}

    zone_name: Annotated[str, Field(min_length=1, alias="zoneName")]
    zone_resource_id: Annotated[str, Field(min_length=1, alias="resourceId")]


class ZoneMappingConfig(BaseModel):
    """Static zone-mapping configuration file."""

    model_config = {"extra": "ignore", "populate_by_name": True}

    private_dns_zone_mappings: dict[str, DnsZoneMapping] = Field(
        default_factory=dict, alias="privateDnsZoneMappings"
    )


# =============================================================================
# Provisioning State
# =============================================================================


class ProvisioningState(str, Enum):
    """Remote lifecycle state of a resource.

    Any value ARM reports other than the three terminal states is PENDING
    (Creating, Updating, Accepted, or absent).
    """

    PENDING = "Pending"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    CANCELED = "Canceled"

    @classmethod
    def from_remote(cls, value: str | None) -> ProvisioningState:
        if not value:
            return cls.PENDING
        for state in (cls.SUCCEEDED, cls.FAILED, cls.CANCELED):
            if value.lower() == state.value.lower():
                return state
        return cls.PENDING

    @property
    def is_terminal(self) -> bool:
        return self is not ProvisioningState.PENDING


# =============================================================================
# DNS Zone Group
# =============================================================================


class ZoneGroupConfig(BaseModel):
    """One private DNS zone config entry inside a zone group."""

    model_config = {"frozen": True, "populate_by_name": True}

    name: Annotated[str, Field(min_length=1)]
    private_dns_zone_id: Annotated[str, Field(min_length=1, alias="privateDnsZoneId")]

    def to_arm(self) -> dict[str, Any]:
        return {"name": self.name, "properties": {"privateDnsZoneId": self.private_dns_zone_id}}


def zone_group_body(configs: list[ZoneGroupConfig]) -> dict[str, Any]:
    """ARM properties for a privateDnsZoneGroups resource."""
    return {"privateDnsZoneConfigs": [config.to_arm() for config in configs]}
