"""Shared FHIR record parsing utilities.

Consolidates the field-access patterns used by the record parser and the
bundle record source. All functions are pure and tolerate missing or
malformed fields by returning None/empty values; deciding whether a missing
field is an error is left to the caller.
"""

from datetime import datetime, timezone
from typing import Any


def extract_reference_id(reference: str | None) -> str | None:
    """Extract FHIR ID from a reference string.

    Handles both formats:
    - "urn:uuid:abc-123" -> "abc-123"
    - "MedicationOrder/abc-123" -> "abc-123"

    Args:
        reference: FHIR reference string

    Returns:
        Extracted ID or None if reference is empty/None
    """
    if not reference:
        return None

    if reference.startswith("urn:uuid:"):
        return reference[9:]  # len("urn:uuid:")
    elif "/" in reference:
        return reference.split("/")[-1]
    return reference


def extract_first_concept(value: Any) -> dict[str, Any]:
    """Return the first CodeableConcept from a field that may be a list.

    DSTU2 stores Observation.interpretation as a single CodeableConcept, R4
    as a list of them.
    """
    if isinstance(value, list):
        value = value[0] if value else {}
    return value if isinstance(value, dict) else {}


def extract_codings(codeable_concept: dict[str, Any] | None) -> list[dict[str, Any]]:
    """Return the coding entries of a CodeableConcept, skipping non-dicts."""
    if not isinstance(codeable_concept, dict):
        return []
    codings = codeable_concept.get("coding") or []
    if not isinstance(codings, list):
        return []
    return [c for c in codings if isinstance(c, dict)]


def extract_first_coding(codeable_concept: dict[str, Any] | None) -> dict[str, Any]:
    """Extract first coding from a FHIR CodeableConcept.

    Args:
        codeable_concept: FHIR CodeableConcept structure

    Returns:
        First coding dict or empty dict if none
    """
    codings = extract_codings(codeable_concept)
    return codings[0] if codings else {}


def parse_fhir_datetime(value: str | None) -> datetime | None:
    """Parse a FHIR dateTime/instant into an aware UTC datetime.

    Date-only and partial values ("2018", "2018-09") are anchored to the
    start of the period. Values without an offset are taken as UTC.

    Returns:
        Aware UTC datetime, or None if the value is empty or unparseable.
    """
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    try:
        dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        dt = None
        for fmt in ("%Y-%m-%d", "%Y-%m", "%Y"):
            try:
                dt = datetime.strptime(text[: len(fmt) + 2], fmt)
                break
            except ValueError:
                continue
        if dt is None:
            return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def extract_quantity_value(quantity: Any) -> float | None:
    """Return the numeric value of a FHIR Quantity, or None."""
    if not isinstance(quantity, dict):
        return None
    value = quantity.get("value")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def extract_effective_time(resource: dict[str, Any]) -> datetime | None:
    """Extract the clinically relevant time of a resource.

    Checks, in order: effectiveDateTime, effectiveTimeDateTime (DSTU2
    MedicationAdministration), effectivePeriod.start,
    effectiveTimePeriod.start.
    """
    for field in ("effectiveDateTime", "effectiveTimeDateTime"):
        ts = parse_fhir_datetime(resource.get(field))
        if ts is not None:
            return ts
    for field in ("effectivePeriod", "effectiveTimePeriod"):
        period = resource.get(field)
        if isinstance(period, dict):
            ts = parse_fhir_datetime(period.get("start"))
            if ts is not None:
                return ts
    return None
