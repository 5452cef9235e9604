"""Tests for zone-mapping file loading."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
import yaml

from pe_manager.mappings import (
    MAX_MAPPINGS_FILE_SIZE_BYTES,
    ZoneMappingLoadError,
    load_zone_mappings,
    parse_zone_mappings,
)

MAPPINGS = {
    "privateDnsZoneMappings": {
        "blob": {
            "zoneName": "privatelink.blob.core.windows.net",
            "resourceId": "/subscriptions/s/resourceGroups/rg-dns/providers/"
            "Microsoft.Network/privateDnsZones/privatelink.blob.core.windows.net",
        },
        "vault": {
            "zoneName": "privatelink.vaultcore.azure.net",
            "resourceId": "/subscriptions/s/resourceGroups/rg-dns/providers/"
            "Microsoft.Network/privateDnsZones/privatelink.vaultcore.azure.net",
        },
    }
}


class TestParseZoneMappings:
    """Tests for parse_zone_mappings."""

    def test_valid(self) -> None:
        """Test parsing a pre-loaded mapping."""
        table = parse_zone_mappings(MAPPINGS)

        assert sorted(table) == ["blob", "vault"]
        assert table["vault"].zone_name == "privatelink.vaultcore.azure.net"

    def test_empty_mappings(self) -> None:
        """Test that a file without mappings yields an empty table."""
        assert parse_zone_mappings({}) == {}

    def test_not_a_mapping(self) -> None:
        """Test that a list is rejected."""
        with pytest.raises(ZoneMappingLoadError, match="must be a mapping"):
            parse_zone_mappings(["blob"])

    def test_missing_resource_id(self) -> None:
        """Test that validation errors name the failing entry."""
        with pytest.raises(ZoneMappingLoadError) as exc_info:
            parse_zone_mappings(
                {"privateDnsZoneMappings": {"blob": {"zoneName": "privatelink.blob"}}}
            )

        assert "blob" in str(exc_info.value)
        assert "resourceId" in str(exc_info.value)


class TestLoadZoneMappings:
    """Tests for load_zone_mappings."""

    def test_json_file(self, tmp_path: Path) -> None:
        """Test loading a JSON file."""
        path = tmp_path / "mappings.json"
        path.write_text(json.dumps(MAPPINGS))

        table = load_zone_mappings(path)

        assert table["blob"].zone_resource_id.endswith("privatelink.blob.core.windows.net")

    def test_yaml_file(self, tmp_path: Path) -> None:
        """Test loading a YAML file."""
        path = tmp_path / "mappings.yaml"
        path.write_text(yaml.dump(MAPPINGS))

        assert sorted(load_zone_mappings(path)) == ["blob", "vault"]

    def test_tab_indented_json_file(self, tmp_path: Path) -> None:
        """Test that JSON indented with tabs is accepted."""
        path = tmp_path / "dns-zone-mappings.json"
        path.write_text(json.dumps(MAPPINGS, indent="\t"))

        assert sorted(load_zone_mappings(path)) == ["blob", "vault"]

    def test_yml_extension(self, tmp_path: Path) -> None:
        """Test that .yml files use the YAML parser."""
        path = tmp_path / "mappings.yml"
        path.write_text(yaml.dump(MAPPINGS))

        assert sorted(load_zone_mappings(path)) == ["blob", "vault"]

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        """Test that unparsable YAML is reported."""
        path = tmp_path / "mappings.yaml"
        path.write_text("privateDnsZoneMappings: [unclosed")

        with pytest.raises(ZoneMappingLoadError, match="Invalid YAML"):
            load_zone_mappings(path)

    def test_not_utf8(self, tmp_path: Path) -> None:
        """Test that undecodable bytes are reported as a load error."""
        path = tmp_path / "mappings.json"
        path.write_bytes(b"\xff\xfe{}")

        with pytest.raises(ZoneMappingLoadError, match="Failed to read"):
            load_zone_mappings(path)

    def test_missing_file(self, tmp_path: Path) -> None:
        """Test that a missing file is reported."""
        with pytest.raises(ZoneMappingLoadError, match="not found"):
            load_zone_mappings(tmp_path / "missing.json")

    def test_invalid_content(self, tmp_path: Path) -> None:
        """Test that unparsable content is reported."""
        path = tmp_path / "mappings.json"
        path.write_text("{ unbalanced: [")

        with pytest.raises(ZoneMappingLoadError, match="Invalid JSON"):
            load_zone_mappings(path)

    def test_file_too_large(self, tmp_path: Path) -> None:
        """Test the file size limit."""
        path = tmp_path / "mappings.json"
        path.write_text(" " * (MAX_MAPPINGS_FILE_SIZE_BYTES + 1))

        with pytest.raises(ZoneMappingLoadError, match="maximum size"):
            load_zone_mappings(path)
