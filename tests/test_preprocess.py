"""
Tests for record preprocessing.
"""

import pytest
from datetime import datetime

from identisync.errors import MalformedInputError
from identisync.models import DEFAULT_END_DATE, DEFAULT_START_DATE, Affiliation
from pipelines.identity_resolution.preprocess import (
    RecordPreprocessor,
    apply_default_dates,
    remove_unaffiliated,
    validate,
)


class CountingResolver:
    def __init__(self, uuid=None):
        self.uuid = uuid
        self.calls = 0

    def resolve(self, record):
        self.calls += 1
        return self.uuid


class TestValidate:

    def test_empty_name_rejected(self, record_factory):
        with pytest.raises(MalformedInputError, match="without name"):
            validate(record_factory("", orgs=["Acme Corp"]))

    def test_empty_organization_rejected(self, record_factory):
        with pytest.raises(MalformedInputError, match="without organization"):
            validate(record_factory("Jane", orgs=["Acme Corp", ""]))

    def test_error_carries_record_description(self, record_factory):
        with pytest.raises(MalformedInputError) as exc_info:
            validate(record_factory("", orgs=["Acme Corp"], emails=["x@y.org"]))
        assert "x@y.org" in exc_info.value.record


class TestDefaultDates:

    def test_open_bounds_filled_with_sentinels(self, record_factory):
        record = record_factory("Jane", orgs=["Acme Corp"])
        apply_default_dates(record)
        assert record.affiliations[0].start == datetime(1900, 1, 1)
        assert record.affiliations[0].end == datetime(2100, 1, 1)

    def test_given_bounds_kept(self, record_factory):
        record = record_factory("Jane")
        record.affiliations = [Affiliation("Acme Corp", start=datetime(2012, 5, 1))]
        apply_default_dates(record)
        assert record.affiliations[0].start == datetime(2012, 5, 1)
        assert record.affiliations[0].end == DEFAULT_END_DATE


class TestRemoveUnaffiliated:

    def test_only_placeholder_dropped(self, record_factory):
        records = [
            record_factory("Jane", orgs=["Unaffiliated", "Acme Corp"]),
            record_factory("Bob", orgs=["Unaffiliated"]),
            record_factory("Carol", orgs=["unaffiliated"]),
        ]

        assert remove_unaffiliated(records) == 2
        assert [a.organization for a in records[0].affiliations] == ["Acme Corp"]
        assert records[1].affiliations == []
        assert [a.organization for a in records[2].affiliations] == ["unaffiliated"]


class TestRecordPreprocessor:

    def test_invalid_record_raises_before_lookup(self, record_factory):
        resolver = CountingResolver("u-1")
        with pytest.raises(MalformedInputError):
            RecordPreprocessor(resolver).process(record_factory("", orgs=["Acme Corp"]))
        assert resolver.calls == 0

    def test_record_without_affiliations_skipped(self, record_factory):
        resolver = CountingResolver("u-1")
        outcome = RecordPreprocessor(resolver).process(record_factory("Jane", position=3))
        assert outcome.skipped
        assert outcome.uuid is None
        assert outcome.position == 3
        assert resolver.calls == 0

    def test_resolved_record(self, record_factory):
        outcome = RecordPreprocessor(CountingResolver("u-1")).process(record_factory("Jane", orgs=["Acme Corp"]))
        assert outcome.uuid == "u-1"
        assert not outcome.skipped
        assert outcome.record.affiliations[0].start == DEFAULT_START_DATE

    def test_unresolved_record(self, record_factory):
        outcome = RecordPreprocessor(CountingResolver(None)).process(record_factory("Jane", orgs=["Acme Corp"]))
        assert outcome.uuid is None
        assert not outcome.skipped
