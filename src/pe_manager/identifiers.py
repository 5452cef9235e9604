"""Positional decomposition of Azure resource identifiers.

Resource IDs arrive in the shape:
/subscriptions/{sub}/resourceGroups/{rg}/providers/{namespace}/{type}/{name}

Only three positions are read: the subscription (segment 2), the resource
group (segment 4) and the resource name (last segment). Child resource IDs
(e.g. .../privateEndpoints/{pe}/privateLinkServiceConnections/{conn}) resolve
to the child's name, which callers rely on.
"""

from __future__ import annotations

from dataclasses import dataclass

SUBSCRIPTION_SEGMENT_INDEX = 2
RESOURCE_GROUP_SEGMENT_INDEX = 4

# "", "subscriptions", sub, "resourceGroups", rg, name
MIN_SEGMENT_COUNT = 6


class UnparsableResourceIdError(ValueError):
    """Raised when a resource ID does not have the expected positional shape."""

    def __init__(self, resource_id: str, reason: str) -> None:
        self.resource_id = resource_id
        self.reason = reason
        super().__init__(f"Unparsable resource ID '{resource_id}': {reason}")


@dataclass(frozen=True)
class ResourceIdentifier:
    """Subscription, resource group and name of a resource."""

    subscription_id: str
    resource_group: str
    resource_name: str


def parse_resource_id(resource_id: str) -> ResourceIdentifier:
    """Decompose a resource ID by fixed segment position.

    Args:
        resource_id: Full ARM resource ID.

    Returns:
        The parsed identifier.

    Raises:
        UnparsableResourceIdError: If the ID has too few segments or any of the
            three read positions is empty.
    """
    if not isinstance(resource_id, str) or not resource_id:
        raise UnparsableResourceIdError(str(resource_id), "resource ID is empty")

    segments = resource_id.split("/")
    if len(segments) < MIN_SEGMENT_COUNT:
        raise UnparsableResourceIdError(
            resource_id,
            f"expected at least {MIN_SEGMENT_COUNT} segments, found {len(segments)}",
        )

    identifier = ResourceIdentifier(
        subscription_id=segments[SUBSCRIPTION_SEGMENT_INDEX],
        resource_group=segments[RESOURCE_GROUP_SEGMENT_INDEX],
        resource_name=segments[-1],
    )

    missing = [
        label
        for label, value in (
            ("subscription", identifier.subscription_id),
            ("resource group", identifier.resource_group),
            ("resource name", identifier.resource_name),
        )
        if not value
    ]
    if missing:
        raise UnparsableResourceIdError(resource_id, f"empty {', '.join(missing)}")

    return identifier
