"""Tests for shared FHIR helper utilities."""

from datetime import datetime, timezone

from clinical_timeline.utils.fhir_helpers import (
    extract_codings,
    extract_effective_time,
    extract_first_coding,
    extract_first_concept,
    extract_quantity_value,
    extract_reference_id,
    parse_fhir_datetime,
)


class TestExtractReferenceId:
    """Tests for extract_reference_id function."""

    def test_extracts_from_urn_uuid(self):
        """Test extraction from urn:uuid format."""
        assert extract_reference_id("urn:uuid:abc-123-def") == "abc-123-def"

    def test_extracts_from_resource_reference(self):
        """Test extraction from ResourceType/id format."""
        assert extract_reference_id("MedicationOrder/order-123") == "order-123"

    def test_returns_none_for_none(self):
        assert extract_reference_id(None) is None

    def test_returns_none_for_empty_string(self):
        assert extract_reference_id("") is None

    def test_returns_plain_id_unchanged(self):
        """Test returns plain ID without prefix unchanged."""
        assert extract_reference_id("plain-id-no-prefix") == "plain-id-no-prefix"


class TestExtractConcepts:
    """Tests for CodeableConcept helpers."""

    def test_first_concept_from_list(self):
        assert extract_first_concept([{"text": "a"}, {"text": "b"}]) == {"text": "a"}

    def test_first_concept_from_dict(self):
        assert extract_first_concept({"text": "a"}) == {"text": "a"}

    def test_first_concept_empty(self):
        assert extract_first_concept([]) == {}
        assert extract_first_concept(None) == {}

    def test_codings_skip_non_dicts(self):
        concept = {"coding": [{"code": "1"}, "junk", {"code": "2"}]}
        assert extract_codings(concept) == [{"code": "1"}, {"code": "2"}]

    def test_codings_malformed(self):
        assert extract_codings({"coding": "nope"}) == []
        assert extract_codings(None) == []

    def test_first_coding(self):
        assert extract_first_coding({"coding": [{"code": "1"}, {"code": "2"}]}) == {"code": "1"}
        assert extract_first_coding({}) == {}


class TestParseFhirDatetime:
    """Tests for parse_fhir_datetime."""

    def test_zulu_instant(self):
        assert parse_fhir_datetime("1988-03-23T10:00:00Z") == datetime(1988, 3, 23, 10, tzinfo=timezone.utc)

    def test_offset_normalized_to_utc(self):
        result = parse_fhir_datetime("1988-03-23T10:00:00-05:00")
        assert result == datetime(1988, 3, 23, 15, tzinfo=timezone.utc)
        assert result.tzinfo == timezone.utc

    def test_naive_taken_as_utc(self):
        assert parse_fhir_datetime("1988-03-23T10:00:00") == datetime(1988, 3, 23, 10, tzinfo=timezone.utc)

    def test_partial_dates(self):
        assert parse_fhir_datetime("1988-03-23") == datetime(1988, 3, 23, tzinfo=timezone.utc)
        assert parse_fhir_datetime("1988-03") == datetime(1988, 3, 1, tzinfo=timezone.utc)
        assert parse_fhir_datetime("1988") == datetime(1988, 1, 1, tzinfo=timezone.utc)

    def test_invalid(self):
        assert parse_fhir_datetime("not a date") is None
        assert parse_fhir_datetime("") is None
        assert parse_fhir_datetime(None) is None


class TestExtractQuantityValue:
    """Tests for extract_quantity_value."""

    def test_int_and_float(self):
        assert extract_quantity_value({"value": 7}) == 7.0
        assert extract_quantity_value({"value": 7.5}) == 7.5

    def test_rejects_non_numeric(self):
        assert extract_quantity_value({"value": "7"}) is None
        assert extract_quantity_value({"value": True}) is None
        assert extract_quantity_value({}) is None
        assert extract_quantity_value(None) is None


class TestExtractEffectiveTime:
    """Tests for extract_effective_time."""

    def test_effective_datetime(self):
        resource = {"effectiveDateTime": "1988-03-23T10:00:00Z"}
        assert extract_effective_time(resource) == datetime(1988, 3, 23, 10, tzinfo=timezone.utc)

    def test_dstu2_effective_time(self):
        resource = {"effectiveTimeDateTime": "1988-03-23T10:00:00Z"}
        assert extract_effective_time(resource) == datetime(1988, 3, 23, 10, tzinfo=timezone.utc)

    def test_period_start(self):
        resource = {"effectiveTimePeriod": {"start": "1988-03-23T10:00:00Z"}}
        assert extract_effective_time(resource) == datetime(1988, 3, 23, 10, tzinfo=timezone.utc)

    def test_missing(self):
        assert extract_effective_time({"issued": "1988-03-23T10:00:00Z"}) is None
