"""
Tests for schema.py - decoding and validation of identity documents.
"""

import pytest
from datetime import datetime

from identisync.errors import MalformedInputError
from identisync.schema import (
    extract_aliases,
    load_identities,
    load_org_mappings,
    parse_record,
    validate_record,
)


@pytest.fixture
def valid_document():
    return {
        "profile": {"name": "Jane Doe", "is_bot": False},
        "email": ["jane@acme.com"],
        "enrollments": [
            {"organization": "Acme Corp", "start": datetime(2010, 1, 1)},
            {"organization": "Globex"},
        ],
        "github": ["jane1", "jane-alt"],
        "gerrit": ["jdoe"],
    }


class TestValidateRecord:
    """Test validation error reporting."""

    def test_valid_document(self, valid_document):
        assert validate_record(valid_document) == []

    def test_missing_profile(self):
        errors = validate_record({"email": ["a@b.c"]})
        assert any("profile" in err for err in errors)

    def test_empty_profile_name(self):
        errors = validate_record({"profile": {"name": "  "}})
        assert any("profile.name" in err for err in errors)

    def test_is_bot_must_be_boolean(self):
        errors = validate_record({"profile": {"name": "x", "is_bot": "yes"}})
        assert any("is_bot" in err for err in errors)

    def test_enrollment_without_organization(self):
        errors = validate_record({"profile": {"name": "x"}, "enrollments": [{"start": "2010-01-01"}]})
        assert any("without organization" in err for err in errors)

    def test_bad_enrollment_date(self):
        errors = validate_record({
            "profile": {"name": "x"},
            "enrollments": [{"organization": "Acme", "end": "not a date"}],
        })
        assert any("'end'" in err for err in errors)

    def test_alias_value_must_be_list(self):
        errors = validate_record({"profile": {"name": "x"}, "github": "jane1"})
        assert any("github" in err for err in errors)

    def test_alias_usernames_must_be_strings(self):
        errors = validate_record({"profile": {"name": "x"}, "github": ["jane1", 42]})
        assert any("non-string" in err for err in errors)

    def test_alias_key_must_be_string(self):
        errors = validate_record({"profile": {"name": "x"}, 7: ["jane1"]})
        assert any("not a string" in err for err in errors)

    def test_non_mapping_document(self):
        assert validate_record(["profile"]) != []


class TestParseRecord:
    """Test decoding into IncomingRecord."""

    def test_fixed_fields(self, valid_document):
        record = parse_record(valid_document, position=3)
        assert record.profile.name == "Jane Doe"
        assert record.profile.is_bot is False
        assert record.emails == ["jane@acme.com"]
        assert record.position == 3
        assert [a.organization for a in record.affiliations] == ["Acme Corp", "Globex"]

    def test_open_dates_stay_unset(self, valid_document):
        record = parse_record(valid_document)
        assert record.affiliations[0].start == datetime(2010, 1, 1)
        assert record.affiliations[0].end is None
        assert record.affiliations[1].start is None

    def test_aliases_collected_from_unknown_keys(self, valid_document):
        record = parse_record(valid_document)
        assert record.aliases == {"github": ["jane1", "jane-alt"], "gerrit": ["jdoe"]}

    def test_extract_aliases_ignores_fixed_keys(self, valid_document):
        assert set(extract_aliases(valid_document)) == {"github", "gerrit"}

    def test_string_dates_parsed(self):
        record = parse_record({
            "profile": {"name": "x"},
            "enrollments": [{"organization": "Acme", "start": "2011-02-03", "end": "2012-01-01T00:00:00Z"}],
        })
        assert record.affiliations[0].start == datetime(2011, 2, 3)
        assert record.affiliations[0].end == datetime(2012, 1, 1)

    def test_malformed_raises(self):
        with pytest.raises(MalformedInputError):
            parse_record({"profile": {"name": ""}})


class TestLoadIdentities:
    """Test reading YAML files."""

    def test_load_file(self, identities_yaml):
        records = load_identities(identities_yaml)
        assert len(records) == 6
        assert records[0].aliases == {"github": ["bobs"]}
        assert records[1].affiliations[0].start == datetime(2010, 1, 1)
        assert [r.position for r in records] == list(range(6))

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert load_identities(path) == []

    def test_top_level_must_be_list(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("profile:\n  name: x\n", encoding="utf-8")
        with pytest.raises(MalformedInputError):
            load_identities(path)

    def test_one_bad_document_fails_the_file(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text(
            "- profile:\n    name: ok\n- profile:\n    name: ''\n",
            encoding="utf-8",
        )
        with pytest.raises(MalformedInputError, match="#1"):
            load_identities(path)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("- profile: [unclosed\n", encoding="utf-8")
        with pytest.raises(MalformedInputError):
            load_identities(path)

    def test_invalid_utf8(self, tmp_path):
        path = tmp_path / "latin1.yaml"
        path.write_bytes(b"- profile:\n    name: J\xff\xfe\n")
        with pytest.raises(MalformedInputError, match="not valid UTF-8"):
            load_identities(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(MalformedInputError, match="Cannot read"):
            load_identities(tmp_path / "nope.yaml")


class TestLoadOrgMappings:

    def test_load_mappings(self, orgs_map):
        mappings = load_org_mappings(orgs_map)
        assert mappings == [
            ("^ACME\\\\s+Inc\\\\.?$", "Acme Corp"),
            ("^umbrella", "Umbrella Corporation"),
        ]

    def test_pair_shape_enforced(self, tmp_path):
        path = tmp_path / "map.yaml"
        path.write_text("mappings:\n  - ['only one']\n", encoding="utf-8")
        with pytest.raises(MalformedInputError):
            load_org_mappings(path)

    def test_empty_mapping_file(self, tmp_path):
        path = tmp_path / "map.yaml"
        path.write_text("", encoding="utf-8")
        assert load_org_mappings(path) == []

    def test_missing_mapping_file(self, tmp_path):
        with pytest.raises(MalformedInputError, match="Cannot read"):
            load_org_mappings(tmp_path / "nope.yaml")

    def test_mapping_file_is_a_directory(self, tmp_path):
        with pytest.raises(MalformedInputError, match="Cannot read"):
            load_org_mappings(tmp_path)
