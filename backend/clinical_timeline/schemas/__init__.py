"""Pydantic domain schemas."""

from clinical_timeline.schemas.concepts import (
    AnyCode,
    ChartStyle,
    CodedConcept,
    CodeGroup,
    CodeKind,
    LabCode,
    MedicationCode,
    MicrobioCode,
)
from clinical_timeline.schemas.medication import (
    MedicationAdministration,
    MedicationAdministrationSet,
    MedicationOrder,
    MedicationOrderSet,
)
from clinical_timeline.schemas.observation import (
    AnnotatedObservation,
    DiagnosticReport,
    Observation,
    ObservationInterpretation,
    ObservationSet,
    Quantity,
    ValueKind,
)
from clinical_timeline.schemas.series import (
    ENCOUNTER_BREAK,
    MISSING_VALUE,
    Break,
    BreakReason,
    DateRange,
    Encounter,
    LabeledSeries,
    SeriesBundle,
)

__all__ = [
    # Concepts
    "AnyCode",
    "ChartStyle",
    "CodedConcept",
    "CodeGroup",
    "CodeKind",
    "LabCode",
    "MedicationCode",
    "MicrobioCode",
    # Medication
    "MedicationAdministration",
    "MedicationAdministrationSet",
    "MedicationOrder",
    "MedicationOrderSet",
    # Observation
    "AnnotatedObservation",
    "DiagnosticReport",
    "Observation",
    "ObservationInterpretation",
    "ObservationSet",
    "Quantity",
    "ValueKind",
    # Series
    "Break",
    "BreakReason",
    "DateRange",
    "ENCOUNTER_BREAK",
    "Encounter",
    "LabeledSeries",
    "MISSING_VALUE",
    "SeriesBundle",
]
