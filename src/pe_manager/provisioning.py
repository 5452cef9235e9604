"""Wait for a private endpoint to finish provisioning.

Polls the resource until it reaches a terminal provisioning state:
- Succeeded: return True.
- Failed / Canceled: raise ProvisioningFailedError immediately, no retry.
- Anything else: back off and poll again.

Poll errors matching the retryable pattern share the same backoff counter as
pending polls; other errors propagate. When the budget runs out without a
terminal state the waiter returns False, which callers treat as "proceed
with caution" rather than a hard stop.
"""

from __future__ import annotations

import logging
import time

from .client import ResourceClient
from .models import ProvisioningState
from .retry import Backoff, RetryPolicy, Sleeper

logger = logging.getLogger(__name__)


class ProvisioningFailedError(Exception):
    """Raised when a resource reaches a terminal failure state."""

    def __init__(self, resource_group: str, resource_name: str, state: ProvisioningState) -> None:
        self.resource_group = resource_group
        self.resource_name = resource_name
        self.state = state
        super().__init__(
            f"Provisioning of '{resource_name}' in '{resource_group}' ended in state {state.value}"
        )


def wait_for_provisioning(
    client: ResourceClient,
    resource_group: str,
    resource_name: str,
    policy: RetryPolicy,
    *,
    sleep: Sleeper = time.sleep,
) -> bool:
    """Poll until the resource's provisioning state is terminal.

    Args:
        client: Resource client for the resource's subscription.
        resource_group: Resource group of the resource.
        resource_name: Name of the resource.
        policy: Poll budget, backoff bounds and retryable error pattern.
        sleep: Blocking sleep function (injectable for tests).

    Returns:
        True if the resource reached Succeeded, False if the budget ran out.

    Raises:
        ProvisioningFailedError: If the resource is Failed or Canceled.
        Exception: Any poll error that does not match the retryable pattern.
    """
    backoff = Backoff(policy, sleep)
    context = {"resource_group": resource_group, "resource_name": resource_name}

    while True:
        try:
            snapshot = client.get_resource(resource_group, resource_name)
        except Exception as e:
            if not policy.is_retryable(e):
                logger.error(
                    "Provisioning poll failed with non-retryable error",
                    extra={**context, "attempt": backoff.attempts, "error": str(e)},
                )
                raise
            logger.warning(
                "Provisioning poll hit retryable error",
                extra={**context, "attempt": backoff.attempts, "error": str(e)},
            )
        else:
            state = ProvisioningState.from_remote(snapshot.provisioning_state)

            if state == ProvisioningState.SUCCEEDED:
                logger.info(
                    "Resource provisioned",
                    extra={**context, "attempts": backoff.attempts},
                )
                return True

            if state in (ProvisioningState.FAILED, ProvisioningState.CANCELED):
                logger.error(
                    "Resource provisioning ended in failure state",
                    extra={**context, "provisioning_state": state.value},
                )
                raise ProvisioningFailedError(resource_group, resource_name, state)

            logger.info(
                "Resource still provisioning",
                extra={
                    **context,
                    "remote_state": snapshot.provisioning_state,
                    "attempt": backoff.attempts,
                    "wait_seconds": backoff.next_wait,
                },
            )

        if not backoff.can_retry:
            break
        backoff.wait()

    logger.warning(
        "Gave up waiting for provisioning",
        extra={**context, "attempts": backoff.attempts, "max_retries": policy.max_retries},
    )
    return False
