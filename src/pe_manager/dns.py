"""Reconcile the private DNS zone group on a private endpoint.

The zone group named zone_group_name is overwritten with a single zone
config on every call, so repeated calls with the same arguments converge
on the same state. Failures are returned as a warning result and never
raised, so one group ID cannot stop its siblings.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from .client import ResourceClient
from .models import DEFAULT_ZONE_GROUP_NAME, ZoneGroupConfig
from .retry import RetryPolicy, Sleeper, execute_with_retry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ZoneGroupReconcileResult:
    """Outcome of one zone group reconciliation."""

    group_id: str
    zone_group_name: str
    success: bool
    error: str | None = None


def reconcile_dns_zone_group(
    client: ResourceClient,
    resource_group: str,
    resource_name: str,
    group_id: str,
    zone_resource_id: str,
    policy: RetryPolicy,
    *,
    zone_group_name: str = DEFAULT_ZONE_GROUP_NAME,
    sleep: Sleeper = time.sleep,
) -> ZoneGroupReconcileResult:
    """Create or overwrite the zone group binding group_id to a DNS zone.

    Transient failures are retried under policy. Non-retryable failures and
    retry exhaustion are logged as warnings and reported in the result.
    """
    context = {
        "resource_group": resource_group,
        "resource_name": resource_name,
        "group_id": group_id,
        "zone_group_name": zone_group_name,
        "zone_resource_id": zone_resource_id,
    }

    try:
        config = ZoneGroupConfig(name=group_id, private_dns_zone_id=zone_resource_id)
        result = execute_with_retry(
            lambda: client.create_or_replace_dns_zone_group(
                resource_group, resource_name, zone_group_name, [config]
            ),
            policy,
            operation_name="Reconcile DNS zone group",
            sleep=sleep,
            log_context=context,
        )
    except Exception as e:
        logger.warning(
            "DNS zone group reconciliation failed",
            extra={**context, "error": str(e), "error_type": type(e).__name__},
        )
        return ZoneGroupReconcileResult(group_id, zone_group_name, success=False, error=str(e))

    if result.exhausted:
        logger.warning(
            "DNS zone group reconciliation exhausted retries",
            extra={**context, "attempts": result.attempts, "error": str(result.last_error)},
        )
        return ZoneGroupReconcileResult(
            group_id,
            zone_group_name,
            success=False,
            error=f"retries exhausted after {result.attempts} attempts: {result.last_error}",
        )

    logger.info("DNS zone group reconciled", extra=context)
    return ZoneGroupReconcileResult(group_id, zone_group_name, success=True)
