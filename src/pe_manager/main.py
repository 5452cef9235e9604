"""Host entry point for the private endpoint manager.

The hosting runtime (queue trigger, Event Grid subscription, container job)
calls handle_message() once per delivered message. Fatal errors propagate
so the transport can apply its redelivery and poison-message policy;
per-group-ID failures are reported in the returned EventResult.
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from .client import AzureResourceClient, DryRunResourceClient, ResourceClient
from .config import Config, ConfigurationError
from .identifiers import UnparsableResourceIdError
from .mappings import ZoneMappingLoadError, load_zone_mappings
from .models import DnsZoneMapping, EventPayloadError, PrivateEndpointEvent
from .processor import ClientFactory, EventProcessor, EventResult
from .security import SecretlessViolationError, get_managed_identity_credential

logger = logging.getLogger(__name__)

_HANDLER_NAME = "pe-manager"

# LogRecord attributes that are not user-supplied extra fields
_RESERVED_RECORD_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "taskName",
        "message",
    }
)


class JsonFormatter(logging.Formatter):
    """Format logs as JSON for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_ATTRS:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(json_output: bool = True, level: int = logging.INFO) -> None:
    """Configure root logging, JSON to stdout for production."""
    handler = logging.StreamHandler(sys.stdout)
    if json_output:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))

    handler.set_name(_HANDLER_NAME)

    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        if existing.get_name() == _HANDLER_NAME:
            root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    # Reduce noise from Azure SDK
    logging.getLogger("azure").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def build_client_factory(config: Config) -> ClientFactory:
    """Client factory using the service's managed identity."""
    credential = get_managed_identity_credential(config.managed_identity_client_id)

    def create_client(subscription_id: str) -> ResourceClient:
        client: ResourceClient = AzureResourceClient(credential, subscription_id)
        if config.dry_run:
            client = DryRunResourceClient(client)
        return client

    return create_client


def build_processor(
    config: Config,
    *,
    client_factory: ClientFactory | None = None,
    zone_mappings: Mapping[str, DnsZoneMapping] | None = None,
) -> EventProcessor:
    """Wire an EventProcessor from configuration.

    Raises:
        ZoneMappingLoadError: If zone_mappings is not given and the file
            cannot be loaded.
        SecretlessViolationError: If no client_factory is given and secret
            credentials are present in the environment.
    """
    if zone_mappings is None:
        zone_mappings = load_zone_mappings(config.zone_mappings_file)
    if client_factory is None:
        client_factory = build_client_factory(config)

    return EventProcessor(
        zone_mappings,
        client_factory,
        config.retry_policy,
        zone_group_name=config.zone_group_name,
        fail_on_tag_exhaustion=config.fail_on_tag_exhaustion,
    )


def handle_message(
    message: str | bytes | dict[str, Any] | PrivateEndpointEvent,
    config: Config | None = None,
    *,
    client_factory: ClientFactory | None = None,
) -> EventResult:
    """Process one delivered message.

    Configuration and zone mappings are loaded per invocation.

    Raises:
        Exception: Any fatal error, for the transport to redeliver.
    """
    if config is None:
        config = Config.from_env()
    processor = build_processor(config, client_factory=client_factory)
    return processor.process(message)


def main(message: str) -> int:
    """Process one message and map the outcome to an exit code.

    Returns:
        0 on success (including per-group-ID failures), 1 on a fatal error,
        2 on a security violation.
    """
    try:
        config = Config.from_env()
    except ConfigurationError as e:
        setup_logging()
        logger.error("Configuration error", extra={"error": str(e)})
        return 1

    setup_logging(json_output=config.enable_audit_logging)

    try:
        result = handle_message(message, config)
    except SecretlessViolationError as e:
        logger.critical(
            "Security violation: credentials detected in environment",
            extra={"error": str(e)},
        )
        return 2
    except (ZoneMappingLoadError, EventPayloadError, UnparsableResourceIdError) as e:
        logger.error(
            "Event rejected",
            extra={"error": str(e), "error_type": type(e).__name__},
        )
        return 1
    except Exception as e:
        logger.exception("Event processing failed unexpectedly", extra={"error": str(e)})
        return 1

    if result.partial_failure:
        logger.warning(
            "Event completed with per-group-ID failures",
            extra={"failed": [r.group_id for r in result.failed]},
        )
    return 0


def run() -> None:
    """Entry point: process a single message read from stdin."""
    sys.exit(main(sys.stdin.read()))


if __name__ == "__main__":
    run()
