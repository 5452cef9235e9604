"""Process "private endpoint created" events.

Each event is handled start to finish on the calling thread:
1. Decode the payload and parse the endpoint's resource ID
2. Tag the endpoint as provisioned (best effort, see below)
3. Flatten the group IDs of its private link connections
4. For each group ID with a zone mapping: wait for provisioning, then
   reconcile the DNS zone group

Steps 1-3 are fatal: any error is re-raised so the transport can redeliver
the message. Step 4 is isolated per group ID: unmapped group IDs are skipped
and failures are recorded in the returned EventResult without stopping the
remaining group IDs.

Tagging is best effort in the sense of retry exhaustion: an exhausted tag
write is logged and recorded, not raised, unless fail_on_tag_exhaustion is
set. Non-retryable tagging errors are fatal like the rest of steps 1-3.

Deliveries are at-least-once and may overlap for the same endpoint. Every
remote write is an overwrite, so reprocessing an event converges on the
same state.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from .client import ResourceClient
from .dns import reconcile_dns_zone_group
from .identifiers import ResourceIdentifier, parse_resource_id
from .models import (
    DEFAULT_ZONE_GROUP_NAME,
    DnsZoneMapping,
    PrivateEndpointEvent,
    extract_group_ids,
)
from .provisioning import wait_for_provisioning
from .retry import DEFAULT_RETRY_POLICY, RetryOutcome, RetryPolicy, Sleeper
from .tagging import tag_provisioned

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str], ResourceClient]


class GroupIdStatus(str, Enum):
    """Per-group-ID outcome."""

    CONFIGURED = "Configured"
    SKIPPED = "Skipped"
    FAILED = "Failed"


@dataclass(frozen=True)
class GroupIdResult:
    """What happened to one group ID of an event."""

    group_id: str
    status: GroupIdStatus
    zone_name: str | None = None
    detail: str | None = None
    # None when no provisioning wait was attempted
    provisioned: bool | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "group_id": self.group_id,
            "status": self.status.value,
            "zone_name": self.zone_name,
            "detail": self.detail,
            "provisioned": self.provisioned,
        }


@dataclass
class EventResult:
    """Result of processing a single event."""

    resource_id: str
    identifier: ResourceIdentifier
    event_type: str = ""
    tagging: RetryOutcome = RetryOutcome.SUCCEEDED
    group_results: list[GroupIdResult] = field(default_factory=list)
    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    end_time: datetime | None = None

    @property
    def configured(self) -> list[GroupIdResult]:
        return [r for r in self.group_results if r.status == GroupIdStatus.CONFIGURED]

    @property
    def skipped(self) -> list[GroupIdResult]:
        return [r for r in self.group_results if r.status == GroupIdStatus.SKIPPED]

    @property
    def failed(self) -> list[GroupIdResult]:
        return [r for r in self.group_results if r.status == GroupIdStatus.FAILED]

    @property
    def partial_failure(self) -> bool:
        """True when any group ID failed or tagging ran out of retries."""
        return bool(self.failed) or self.tagging == RetryOutcome.EXHAUSTED

    @property
    def duration_seconds(self) -> float:
        if self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        return {
            "resource_id": self.resource_id,
            "event_type": self.event_type,
            "subscription_id": self.identifier.subscription_id,
            "resource_group": self.identifier.resource_group,
            "resource_name": self.identifier.resource_name,
            "tagging": self.tagging.value,
            "group_results": [r.to_dict() for r in self.group_results],
            "partial_failure": self.partial_failure,
            "duration_seconds": self.duration_seconds,
        }


class EventProcessor:
    """Sequences tagging, provisioning waits and DNS reconciliation per event."""

    def __init__(
        self,
        zone_mappings: Mapping[str, DnsZoneMapping],
        client_factory: ClientFactory,
        policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        *,
        zone_group_name: str = DEFAULT_ZONE_GROUP_NAME,
        fail_on_tag_exhaustion: bool = False,
        sleep: Sleeper = time.sleep,
    ) -> None:
        """Initialize the processor.

        Args:
            zone_mappings: Group ID to DNS zone table, read-only.
            client_factory: Builds a resource client for a subscription ID.
            policy: Retry policy passed to every remote operation.
            zone_group_name: Zone group written on each endpoint.
            fail_on_tag_exhaustion: Abort the event when tagging exhausts retries.
            sleep: Blocking sleep function (injectable for tests).
        """
        self._zone_mappings = dict(zone_mappings)
        self._client_factory = client_factory
        self._policy = policy
        self._zone_group_name = zone_group_name
        self._fail_on_tag_exhaustion = fail_on_tag_exhaustion
        self._sleep = sleep

    def process(self, event: PrivateEndpointEvent | str | bytes | dict[str, Any]) -> EventResult:
        """Process one event.

        Raises:
            EventPayloadError: If the payload is malformed.
            UnparsableResourceIdError: If the endpoint's resource ID is malformed.
            RetryExhaustedError: If tagging exhausts retries and
                fail_on_tag_exhaustion is set.
            Exception: Non-retryable errors raised while tagging.
        """
        if not isinstance(event, PrivateEndpointEvent):
            event = PrivateEndpointEvent.from_payload(event)

        resource_info = event.resource_info
        identifier = parse_resource_id(resource_info.id)
        result = EventResult(
            resource_id=resource_info.id,
            identifier=identifier,
            event_type=event.event_type,
        )

        logger.info(
            "Processing private endpoint event",
            extra={
                "event_type": event.event_type,
                "resource_id": resource_info.id,
                "subscription_id": identifier.subscription_id,
                "resource_group": identifier.resource_group,
                "resource_name": identifier.resource_name,
            },
        )

        client = self._client_factory(identifier.subscription_id)

        tag_result = tag_provisioned(
            client,
            identifier.resource_group,
            identifier.resource_name,
            self._policy,
            sleep=self._sleep,
        )
        result.tagging = tag_result.outcome
        if self._fail_on_tag_exhaustion:
            tag_result.raise_if_exhausted()

        group_ids = extract_group_ids(resource_info)
        if not group_ids:
            logger.info(
                "Private endpoint has no group IDs",
                extra={"resource_id": resource_info.id},
            )

        for group_id in group_ids:
            result.group_results.append(self._process_group_id(client, identifier, group_id))

        result.end_time = datetime.now(UTC)
        self._log_result(result)
        return result

    def _process_group_id(
        self,
        client: ResourceClient,
        identifier: ResourceIdentifier,
        group_id: str,
    ) -> GroupIdResult:
        mapping = self._zone_mappings.get(group_id)
        if mapping is None:
            logger.info(
                "No DNS zone mapping for group ID, skipping",
                extra={"group_id": group_id, "resource_name": identifier.resource_name},
            )
            return GroupIdResult(group_id, GroupIdStatus.SKIPPED, detail="no zone mapping")

        provisioned: bool | None = None
        try:
            provisioned = wait_for_provisioning(
                client,
                identifier.resource_group,
                identifier.resource_name,
                self._policy,
                sleep=self._sleep,
            )
            if not provisioned:
                logger.warning(
                    "Resource not confirmed provisioned, configuring DNS anyway",
                    extra={"group_id": group_id, "resource_name": identifier.resource_name},
                )

            outcome = reconcile_dns_zone_group(
                client,
                identifier.resource_group,
                identifier.resource_name,
                group_id,
                mapping.zone_resource_id,
                self._policy,
                zone_group_name=self._zone_group_name,
                sleep=self._sleep,
            )
        except Exception as e:
            logger.warning(
                "Group ID processing failed",
                extra={
                    "group_id": group_id,
                    "resource_name": identifier.resource_name,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
            )
            return GroupIdResult(
                group_id,
                GroupIdStatus.FAILED,
                zone_name=mapping.zone_name,
                detail=str(e),
                provisioned=provisioned,
            )

        if not outcome.success:
            return GroupIdResult(
                group_id,
                GroupIdStatus.FAILED,
                zone_name=mapping.zone_name,
                detail=outcome.error,
                provisioned=provisioned,
            )

        return GroupIdResult(
            group_id,
            GroupIdStatus.CONFIGURED,
            zone_name=mapping.zone_name,
            provisioned=provisioned,
        )

    def _log_result(self, result: EventResult) -> None:
        """Emit the audit record for a processed event."""
        extra = {
            "audit": True,
            "resource_id": result.resource_id,
            "event_type": result.event_type,
            "tagging": result.tagging.value,
            "configured": [r.group_id for r in result.configured],
            "skipped": [r.group_id for r in result.skipped],
            "failed": [r.group_id for r in result.failed],
            "duration_seconds": result.duration_seconds,
        }
        if result.partial_failure:
            logger.warning("Private endpoint event processed with failures", extra=extra)
        else:
            logger.info("Private endpoint event processed", extra=extra)
