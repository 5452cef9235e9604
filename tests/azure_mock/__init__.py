"""In-memory Azure doubles for pipeline tests.

Provides a fake resource client that stores private endpoints, their tags
and DNS zone groups, replays scripted provisioning states and raises
injected errors, plus a sleep recorder so backoff waits are asserted without
real delays.

Usage:
    from azure_mock import FakeResourceClient, RecordingSleep

    client = FakeResourceClient()
    client.add_endpoint("rg-app", "pe-storage", provisioning_states=["Updating", "Succeeded"])
    client.fail("merge_resource_tags", transient_error())

    sleep = RecordingSleep()
    wait_for_provisioning(client, "rg-app", "pe-storage", policy, sleep=sleep)
    assert sleep.calls == [2]
"""

from .resources import (
    FakeEndpoint,
    FakeResourceClient,
    RecordingSleep,
    conflict_error,
    invalid_argument_error,
    not_provisioned_error,
    transient_error,
)

__all__ = [
    "FakeEndpoint",
    "FakeResourceClient",
    "RecordingSleep",
    "conflict_error",
    "invalid_argument_error",
    "not_provisioned_error",
    "transient_error",
]
