"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Add tests to path for azure_mock imports
tests_path = Path(__file__).parent
sys.path.insert(0, str(tests_path))

from azure_mock import FakeResourceClient, RecordingSleep  # noqa: E402

from pe_manager.models import DnsZoneMapping  # noqa: E402

SUBSCRIPTION_ID = "11111111-2222-3333-4444-555555555555"
RESOURCE_GROUP = "rg-app"
ENDPOINT_NAME = "pe-storage"
ENDPOINT_ID = (
    f"/subscriptions/{SUBSCRIPTION_ID}/resourceGroups/{RESOURCE_GROUP}"
    f"/providers/Microsoft.Network/privateEndpoints/{ENDPOINT_NAME}"
)
DNS_SUBSCRIPTION_ID = "99999999-8888-7777-6666-555555555555"


def zone_id(zone_name: str) -> str:
    return (
        f"/subscriptions/{DNS_SUBSCRIPTION_ID}/resourceGroups/rg-dns"
        f"/providers/Microsoft.Network/privateDnsZones/{zone_name}"
    )


def make_event(
    group_ids_per_connection: list[list[str]],
    resource_id: str = ENDPOINT_ID,
    event_type: str = "PrivateEndpointCreated",
) -> dict:
    """Build an inbound event payload."""
    return {
        "eventType": event_type,
        "data": {
            "resourceInfo": {
                "id": resource_id,
                "name": resource_id.rsplit("/", 1)[-1],
                "properties": {
                    "privateLinkServiceConnections": [
                        {"properties": {"groupIds": group_ids}}
                        for group_ids in group_ids_per_connection
                    ]
                },
            }
        },
    }


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def fake_client() -> FakeResourceClient:
    client = FakeResourceClient(subscription_id=SUBSCRIPTION_ID)
    client.add_endpoint(RESOURCE_GROUP, ENDPOINT_NAME, tags={"owner": "team-a"})
    return client


@pytest.fixture
def zone_mappings() -> dict[str, DnsZoneMapping]:
    return {
        "blob": DnsZoneMapping(
            zone_name="privatelink.blob.core.windows.net",
            zone_resource_id=zone_id("privatelink.blob.core.windows.net"),
        ),
        "table": DnsZoneMapping(
            zone_name="privatelink.table.core.windows.net",
            zone_resource_id=zone_id("privatelink.table.core.windows.net"),
        ),
    }
