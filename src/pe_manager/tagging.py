"""Mark a resource as having passed through this pipeline."""

from __future__ import annotations

import logging
import time

from .client import ResourceClient
from .retry import RetryPolicy, RetryResult, Sleeper, execute_with_retry

logger = logging.getLogger(__name__)

PROVISIONED_TAG_KEY = "hidden-pe-state"
PROVISIONED_TAG_VALUE = "provisioned"


def tag_provisioned(
    client: ResourceClient,
    resource_group: str,
    resource_name: str,
    policy: RetryPolicy,
    *,
    sleep: Sleeper = time.sleep,
) -> RetryResult[bool]:
    """Set hidden-pe-state=provisioned, preserving existing tags.

    Reads the current tags and writes only when the tag is missing or differs.
    The write merges the single key, so tags added by other writers between
    the read and the write are kept.

    Returns:
        RetryResult whose value is True when a write happened and False when
        the tag was already present. Exhaustion is returned, not raised.
    """

    def apply_tag() -> bool:
        snapshot = client.get_resource(resource_group, resource_name)
        if snapshot.tags.get(PROVISIONED_TAG_KEY) == PROVISIONED_TAG_VALUE:
            logger.debug(
                "Provisioned tag already present",
                extra={"resource_group": resource_group, "resource_name": resource_name},
            )
            return False
        client.merge_resource_tags(
            resource_group, resource_name, {PROVISIONED_TAG_KEY: PROVISIONED_TAG_VALUE}
        )
        return True

    result = execute_with_retry(
        apply_tag,
        policy,
        operation_name="Tag provisioned state",
        sleep=sleep,
        log_context={"resource_group": resource_group, "resource_name": resource_name},
    )
    if result.succeeded:
        logger.info(
            "Provisioned tag applied" if result.value else "Provisioned tag unchanged",
            extra={"resource_group": resource_group, "resource_name": resource_name},
        )
    return result
