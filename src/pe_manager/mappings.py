"""Zone-mapping file loading with validation.

SECURITY: File size is checked before reading to prevent DoS via large files.
Files ending in .json are parsed as JSON; anything else as YAML.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .models import DnsZoneMapping, ZoneMappingConfig

logger = logging.getLogger(__name__)

MAX_MAPPINGS_FILE_SIZE_BYTES = 1024 * 1024  # 1MB


class ZoneMappingLoadError(Exception):
    """Raised when the zone-mapping file cannot be loaded or validated."""

    pass


def parse_zone_mappings(data: Any, source: str = "<data>") -> dict[str, DnsZoneMapping]:
    """Validate pre-parsed zone-mapping configuration.

    Args:
        data: Mapping with a privateDnsZoneMappings key.
        source: Name used in error messages.

    Returns:
        Group ID to zone mapping table.

    Raises:
        ZoneMappingLoadError: If the data does not match the expected shape.
    """
    if not isinstance(data, dict):
        raise ZoneMappingLoadError(f"Zone mappings must be a mapping: {source}")

    try:
        config = ZoneMappingConfig.model_validate(data)
    except ValidationError as e:
        errors = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            errors.append(f"  - {loc}: {error['msg']}")
        raise ZoneMappingLoadError(
            f"Validation failed for {source}:\n" + "\n".join(errors)
        ) from e

    return dict(config.private_dns_zone_mappings)


def load_zone_mappings(path: Path) -> dict[str, DnsZoneMapping]:
    """Load the zone-mapping table from disk.

    Raises:
        ZoneMappingLoadError: If the file is missing, too large, unparsable
            or invalid.
    """
    if not path.exists():
        raise ZoneMappingLoadError(f"Zone mappings file not found: {path}")

    try:
        file_size = path.stat().st_size
    except OSError as e:
        raise ZoneMappingLoadError(f"Failed to stat zone mappings file {path}: {e}") from e

    if file_size > MAX_MAPPINGS_FILE_SIZE_BYTES:
        raise ZoneMappingLoadError(
            f"Zone mappings file exceeds maximum size of "
            f"{MAX_MAPPINGS_FILE_SIZE_BYTES} bytes: {path}"
        )

    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ZoneMappingLoadError(f"Failed to read zone mappings file {path}: {e}") from e

    if path.suffix.lower() == ".json":
        try:
            raw_data = json.loads(content)
        except json.JSONDecodeError as e:
            raise ZoneMappingLoadError(f"Invalid JSON in {path}: {e}") from e
    else:
        try:
            raw_data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ZoneMappingLoadError(f"Invalid YAML in {path}: {e}") from e

    mappings = parse_zone_mappings(raw_data, source=str(path))
    logger.info(
        "Loaded DNS zone mappings",
        extra={"path": str(path), "group_ids": sorted(mappings)},
    )
    return mappings
