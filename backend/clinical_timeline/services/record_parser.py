"""Clinical record parser.

Decodes raw FHIR JSON (DSTU2 or R4 field names) into validated, immutable
domain objects. Single-record functions raise a RecordError subclass for
unusable input; `parse_observations` isolates those failures so one bad
record never aborts its siblings.
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from clinical_timeline.config import settings
from clinical_timeline.exceptions import (
    InvalidRecordError,
    RecordError,
    UnsupportedInterpretationError,
)
from clinical_timeline.schemas.concepts import AnyCode, MedicationCode
from clinical_timeline.schemas.medication import MedicationAdministration, MedicationOrder
from clinical_timeline.schemas.observation import (
    DiagnosticReport,
    Observation,
    ObservationInterpretation,
    Quantity,
)
from clinical_timeline.schemas.series import Encounter
from clinical_timeline.services import code_registry
from clinical_timeline.services.reference_ranges import get_interpretation
from clinical_timeline.utils.fhir_helpers import (
    extract_codings,
    extract_effective_time,
    extract_first_coding,
    extract_first_concept,
    extract_quantity_value,
    extract_reference_id,
    parse_fhir_datetime,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SkippedRecord:
    """A raw record that could not be parsed, with the reason."""

    record_id: str | None
    error: RecordError


@dataclass
class ParseResult:
    """Outcome of parsing a batch of records."""

    observations: list[Observation] = field(default_factory=list)
    skipped: list[SkippedRecord] = field(default_factory=list)


def _require_object(record: Any, resource_name: str) -> dict[str, Any]:
    if not isinstance(record, dict):
        raise InvalidRecordError(f"{resource_name} record must be a JSON object, got {type(record).__name__}")
    return record


def _describe(record: dict[str, Any]) -> str:
    return f"{record.get('resourceType', 'record')}/{record.get('id', '?')}"


# =============================================================================
# Observation
# =============================================================================


def _resolve_codes(
    codings: list[dict[str, Any]],
    text: str | None,
) -> tuple[list[AnyCode], str | None]:
    """Pick the usable codes and the label for an observation's code field.

    Microbiology codings are taken verbatim and the coding display becomes
    the label. Otherwise only recognized lab codes (no system, or the lab
    system) are kept, and mixed-system code lists are tolerated.
    """
    if codings and code_registry.is_microbio_system(codings[0].get("system")):
        codes: list[AnyCode] = [
            code_registry.microbio_code(c["code"], c.get("display"))
            for c in codings
            if c.get("code") and code_registry.is_microbio_system(c.get("system"))
        ]
        return codes, codings[0].get("display") or text

    codes = []
    for coding in codings:
        if not code_registry.is_lab_system(coding.get("system")):
            continue
        concept = code_registry.lab_code(str(coding.get("code", "")))
        if concept is not None:
            codes.append(concept)

    label = text
    if not label:
        # Components usually carry only a coding display
        label = next((c.get("display") for c in codings if c.get("display")), None)
    if codes and label and label != codes[0].label:
        logger.debug("Observation label %r differs from code label %r", label, codes[0].label)
    return codes, label


def _parse_interpretation(record: dict[str, Any]) -> ObservationInterpretation | None:
    coding = extract_first_coding(extract_first_concept(record.get("interpretation")))
    if coding.get("system") != settings.interpretation_valueset_url:
        # Encodings from other value-sets are ignored
        return None
    interpretation = get_interpretation(str(coding.get("code")))
    if interpretation is None:
        raise UnsupportedInterpretationError(f"Unsupported interpretation code: {coding}")
    return interpretation


def _parse_normal_range(record: dict[str, Any]) -> tuple[float, float] | None:
    """Return the normal range only if exactly one complete range exists.

    Multiple ranges are labeled by population and partial ranges are
    ambiguous, so both are dropped rather than guessed at.
    """
    ranges = record.get("referenceRange")
    if not isinstance(ranges, list) or len(ranges) != 1 or not isinstance(ranges[0], dict):
        return None
    low = extract_quantity_value(ranges[0].get("low"))
    high = extract_quantity_value(ranges[0].get("high"))
    if low is None or high is None:
        return None
    return low, high


def parse_observation(
    record: dict[str, Any],
    *,
    default_timestamp: datetime | None = None,
) -> Observation:
    """Parse one raw FHIR Observation.

    Args:
        record: Raw Observation (or Observation.component) JSON.
        default_timestamp: Timestamp to use when the record has none; the
            parent's timestamp when parsing components.

    Returns:
        Validated Observation.

    Raises:
        InvalidRecordError: No usable code, no label, or malformed fields.
        UnsupportedInterpretationError: Unknown code from the recognized
            interpretation value-set.
        EmptyObservationError: No value, result, interpretation or components.
    """
    record = _require_object(record, "Observation")

    timestamp = (
        extract_effective_time(record)
        or parse_fhir_datetime(record.get("issued"))
        or default_timestamp
    )

    code_concept = record.get("code") if isinstance(record.get("code"), dict) else {}
    codes, label = _resolve_codes(extract_codings(code_concept), code_concept.get("text"))

    interpretation = _parse_interpretation(record)

    components = record.get("component") or []
    if not isinstance(components, list):
        raise InvalidRecordError(f"{_describe(record)} has a non-list component field")
    inner_components = tuple(
        parse_observation(component, default_timestamp=timestamp) for component in components
    )

    value_concept = record.get("valueCodeableConcept")
    result = value_concept.get("text") if isinstance(value_concept, dict) else None

    try:
        quantity = (
            Quantity.model_validate(record["valueQuantity"])
            if isinstance(record.get("valueQuantity"), dict)
            else None
        )
        return Observation(
            codes=tuple(codes),
            label=label or "",
            timestamp=timestamp,
            quantity=quantity,
            result=result,
            normal_range=_parse_normal_range(record),
            interpretation=interpretation,
            inner_components=inner_components,
        )
    except ValidationError as e:
        raise InvalidRecordError(f"{_describe(record)} is malformed: {e}") from e


def parse_observations(records: Iterable[dict[str, Any]]) -> ParseResult:
    """Parse a batch of Observations, skipping (and logging) unusable ones."""
    result = ParseResult()
    for record in records:
        try:
            result.observations.append(parse_observation(record))
        except RecordError as e:
            record_id = record.get("id") if isinstance(record, dict) else None
            logger.warning("Skipping observation %s: %s", record_id, e)
            result.skipped.append(SkippedRecord(record_id=record_id, error=e))
    return result


# =============================================================================
# Medication
# =============================================================================


def _parse_medication_code(record: dict[str, Any]) -> MedicationCode | None:
    for coding in extract_codings(record.get("medicationCodeableConcept")):
        if not code_registry.is_medication_system(coding.get("system")):
            continue
        concept = code_registry.medication_code(str(coding.get("code", "")))
        if concept is not None:
            return concept
    return None


def parse_medication_order(record: dict[str, Any]) -> MedicationOrder:
    """Parse a MedicationOrder (DSTU2) or MedicationRequest (R4).

    Raises:
        InvalidRecordError: Missing id or no recognized medication code.
    """
    record = _require_object(record, "MedicationOrder")
    order_id = record.get("id")
    if not order_id:
        raise InvalidRecordError(f"{_describe(record)} has no id")
    medication_code = _parse_medication_code(record)
    if medication_code is None:
        raise InvalidRecordError(f"{_describe(record)} has no usable medication code")
    return MedicationOrder(
        id=str(order_id),
        medication_code=medication_code,
        status=record.get("status"),
        authored_on=parse_fhir_datetime(record.get("authoredOn") or record.get("dateWritten")),
    )


def parse_medication_administration(record: dict[str, Any]) -> MedicationAdministration:
    """Parse a MedicationAdministration.

    The dose comes from dosage.quantity (DSTU2) or dosage.dose (R4); the
    order link from prescription (DSTU2) or request (R4).

    Raises:
        InvalidRecordError: Missing id, time, or dose.
    """
    record = _require_object(record, "MedicationAdministration")
    admin_id = record.get("id")
    if not admin_id:
        raise InvalidRecordError(f"{_describe(record)} has no id")

    timestamp = extract_effective_time(record)
    if timestamp is None:
        raise InvalidRecordError(f"{_describe(record)} has no administration time")

    dosage = record.get("dosage") if isinstance(record.get("dosage"), dict) else {}
    dose_quantity = dosage.get("quantity") or dosage.get("dose")
    dose = extract_quantity_value(dose_quantity)
    if dose is None:
        raise InvalidRecordError(f"{_describe(record)} has no numeric dose")

    order_ref = record.get("prescription") or record.get("request") or {}
    order_id = extract_reference_id(order_ref.get("reference")) if isinstance(order_ref, dict) else None

    return MedicationAdministration(
        id=str(admin_id),
        order_id=order_id,
        medication_code=_parse_medication_code(record),
        timestamp=timestamp,
        dose=dose,
        unit=dose_quantity.get("unit"),
    )


# =============================================================================
# Diagnostic report / encounter
# =============================================================================


def parse_diagnostic_report(
    record: dict[str, Any],
    observations_by_id: Mapping[str, dict[str, Any]] | None = None,
) -> DiagnosticReport:
    """Parse a DiagnosticReport and its result observations.

    Results are looked up first among contained resources, then in
    `observations_by_id` (e.g. the rest of the bundle). A report without
    result references uses every contained Observation. Unusable results
    are skipped; results without a time inherit the report's.

    Raises:
        InvalidRecordError: Missing id.
    """
    record = _require_object(record, "DiagnosticReport")
    report_id = record.get("id")
    if not report_id:
        raise InvalidRecordError(f"{_describe(record)} has no id")

    timestamp = extract_effective_time(record) or parse_fhir_datetime(record.get("issued"))

    contained = {
        str(r.get("id")): r
        for r in record.get("contained") or []
        if isinstance(r, dict) and r.get("resourceType") == "Observation"
    }
    lookup = {**(observations_by_id or {}), **contained}

    references = [r for r in record.get("result") or [] if isinstance(r, dict)]
    if references:
        raw_results = []
        for ref in references:
            ref_id = extract_reference_id((ref.get("reference") or "").lstrip("#"))
            if ref_id in lookup:
                raw_results.append(lookup[ref_id])
            else:
                logger.warning("%s references unknown result %s", _describe(record), ref_id)
    else:
        raw_results = list(contained.values())

    results: list[Observation] = []
    for raw in raw_results:
        try:
            results.append(parse_observation(raw, default_timestamp=timestamp))
        except RecordError as e:
            logger.warning("Skipping result %s of %s: %s", raw.get("id"), _describe(record), e)

    return DiagnosticReport(
        id=str(report_id),
        status=record.get("status") or "unknown",
        timestamp=timestamp,
        results=tuple(results),
    )


def parse_encounter(record: dict[str, Any]) -> Encounter:
    """Parse an Encounter's period.

    Raises:
        InvalidRecordError: Period start or end missing, or end before start.
    """
    record = _require_object(record, "Encounter")
    period = record.get("period") if isinstance(record.get("period"), dict) else {}
    start = parse_fhir_datetime(period.get("start"))
    end = parse_fhir_datetime(period.get("end"))
    if start is None or end is None:
        raise InvalidRecordError(f"{_describe(record)} needs both period.start and period.end")
    if end < start:
        raise InvalidRecordError(f"{_describe(record)} ends before it starts")
    return Encounter(id=record.get("id"), start=start, end=end)
