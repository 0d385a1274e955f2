"""Tests for domain schema invariants."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from clinical_timeline.exceptions import (
    EmptyObservationError,
    InconsistentUnitError,
    InvalidRecordError,
    MixedCodeTypesError,
)
from clinical_timeline.schemas import (
    ENCOUNTER_BREAK,
    MISSING_VALUE,
    BreakReason,
    ChartStyle,
    CodeGroup,
    DateRange,
    Encounter,
    LabeledSeries,
    MedicationAdministration,
    MedicationAdministrationSet,
    Observation,
    Quantity,
    SeriesBundle,
)
from clinical_timeline.services.code_registry import lab_code, medication_code, microbio_code


def _utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


# =============================================================================
# Concepts
# =============================================================================


class TestCodeGroup:
    """Tests for CodeGroup homogeneity."""

    def test_mixed_lab_and_microbio(self):
        with pytest.raises(MixedCodeTypesError, match="lab, microbio"):
            CodeGroup(label="Mixed", codes=(lab_code("6690-2"), microbio_code("BLOOD_CULT")))

    def test_empty_group_rejected(self):
        with pytest.raises(ValidationError):
            CodeGroup(label="Empty", codes=())

    def test_round_trips_discriminator(self):
        group = CodeGroup(label="Vanc", codes=(medication_code("11124"),))
        restored = CodeGroup.model_validate(group.model_dump())
        assert restored == group


# =============================================================================
# Observation
# =============================================================================


class TestObservation:
    """Tests for Observation invariants."""

    def test_requires_code(self):
        with pytest.raises(InvalidRecordError):
            Observation(label="WBC", quantity=Quantity(value=1.0))

    def test_requires_label(self):
        with pytest.raises(InvalidRecordError):
            Observation(codes=(lab_code("6690-2"),), quantity=Quantity(value=1.0))

    def test_requires_content(self):
        with pytest.raises(EmptyObservationError):
            Observation(codes=(lab_code("6690-2"),), label="WBC")

    def test_is_immutable(self):
        obs = Observation(codes=(lab_code("6690-2"),), label="WBC", quantity=Quantity(value=1.0))
        with pytest.raises(ValidationError):
            obs.label = "Other"


# =============================================================================
# Medication
# =============================================================================


class TestMedicationAdministrationSet:
    """Tests for administration set ordering and units."""

    def _admin(self, admin_id: str, day: int, unit: str = "mg") -> MedicationAdministration:
        return MedicationAdministration(id=admin_id, timestamp=_utc(1988, 3, day), dose=day, unit=unit)

    def test_sorted_by_time(self):
        admin_set = MedicationAdministrationSet(
            administrations=(self._admin("b", 25), self._admin("a", 23))
        )
        assert admin_set.first.id == "a"
        assert admin_set.last.id == "b"
        assert (admin_set.min_dose, admin_set.max_dose) == (23, 25)

    def test_empty(self):
        admin_set = MedicationAdministrationSet()
        assert admin_set.first is None
        assert admin_set.unit is None

    def test_mixed_units(self):
        with pytest.raises(InconsistentUnitError):
            MedicationAdministrationSet(
                administrations=(self._admin("a", 23), self._admin("b", 24, "g"))
            )


# =============================================================================
# Series
# =============================================================================


class TestDateRange:
    """Tests for DateRange."""

    def test_inverted_rejected(self):
        with pytest.raises(ValidationError):
            DateRange(start=_utc(1988, 3, 25), end=_utc(1988, 3, 23))

    def test_contains_is_inclusive(self):
        date_range = DateRange(start=_utc(1988, 3, 23), end=_utc(1988, 3, 25))
        assert date_range.contains(_utc(1988, 3, 23))
        assert date_range.contains(_utc(1988, 3, 25))
        assert not date_range.contains(None)

    def test_naive_bounds_taken_as_utc(self):
        date_range = DateRange(start=datetime(1988, 3, 23), end=datetime(1988, 3, 25))
        assert date_range.start == _utc(1988, 3, 23)
        assert date_range.start.tzinfo is timezone.utc
        assert date_range.contains(_utc(1988, 3, 24))

    def test_aware_bounds_converted_to_utc(self):
        eastern = timezone(timedelta(hours=-5))
        date_range = DateRange(start=datetime(1988, 3, 23, tzinfo=eastern), end=_utc(1988, 3, 25))
        assert date_range.start == _utc(1988, 3, 23, 5)
        assert date_range.start.tzinfo is timezone.utc


class TestEncounter:
    """Tests for Encounter timestamps."""

    def test_naive_bounds_taken_as_utc(self):
        encounter = Encounter(id="enc", start=datetime(1988, 3, 22), end=datetime(1988, 3, 26))
        date_range = DateRange(start=_utc(1988, 3, 20), end=_utc(1988, 3, 31))
        assert encounter.end.tzinfo is timezone.utc
        assert date_range.overlaps(encounter.start, encounter.end)


class TestLabeledSeries:
    """Tests for LabeledSeries invariants."""

    def test_length_mismatch(self):
        with pytest.raises(ValidationError, match="x-values"):
            LabeledSeries(label="s", x_values=(_utc(1988, 3, 23),), y_values=())

    def test_display_bounds_must_cover_values(self):
        with pytest.raises(ValidationError, match="exclude value"):
            LabeledSeries(
                label="s",
                x_values=(_utc(1988, 3, 23),),
                y_values=(5.0,),
                y_display_bounds=(0.0, 1.0),
            )

    def test_display_bounds_must_cover_normal_bounds(self):
        with pytest.raises(ValidationError, match="normal bounds"):
            LabeledSeries(label="s", y_normal_bounds=(1.0, 90.0), y_display_bounds=(1.0, 50.0))

    def test_breaks_render_as_none(self):
        series = LabeledSeries(
            label="s",
            x_values=(_utc(1988, 3, 23), _utc(1988, 3, 24), _utc(1988, 3, 25)),
            y_values=(5.0, MISSING_VALUE, ENCOUNTER_BREAK),
            y_display_bounds=(5.0, 5.0),
        )
        assert series.render_y_values() == [5.0, None, None]
        assert series.y_values[1].reason is BreakReason.MISSING_VALUE
        assert series.finite_y_values() == [5.0]


class TestSeriesBundle:
    """Tests for SeriesBundle rendering."""

    def test_to_render_dict(self):
        bundle = SeriesBundle(
            label="GI",
            chart_style=ChartStyle.STEP,
            series=(
                LabeledSeries(
                    label="r-NEG-Final",
                    x_values=(_utc(1988, 3, 23),),
                    y_values=(10.0,),
                    y_display_bounds=(10.0, 10.0),
                ),
            ),
            y_axis_labels={10.0: "Blood Culture"},
        )
        rendered = bundle.to_render_dict()

        assert rendered["chart_style"] == "step"
        assert rendered["y_axis_labels"] == {"10.0": "Blood Culture"}
        assert rendered["series"][0] == {
            "label": "r-NEG-Final",
            "unit": None,
            "x": ["1988-03-23T00:00:00+00:00"],
            "y": [10.0],
            "y_normal_bounds": None,
            "y_display_bounds": [10.0, 10.0],
        }
        assert not bundle.is_empty
