"""Laboratory reference ranges and observation-interpretation codes.

Holds the recognized interpretation value-set (the only one the record
parser decodes) and a lookup table of reference/critical thresholds for the
lab codes known to the code registry. Computes HL7 interpretation codes
(N/H/L/HH/LL) for observations that carry a value but no explicit flag.

Reference values are demo-grade, sourced from standard clinical chemistry
references. Not for clinical use.
"""

from __future__ import annotations

from typing import Literal

from clinical_timeline.schemas.observation import ObservationInterpretation

HL7Interpretation = Literal["N", "H", "L", "HH", "LL"]

# ---------------------------------------------------------------------------
# Observation-interpretation value-set
#
# Codes outside this table but inside the recognized value-set are rejected
# by the parser. NEGORFLORA and CHECKRESULT are microbiology result flags.
# ---------------------------------------------------------------------------

_INTERPRETATION_DISPLAY: dict[str, str] = {
    "N": "Normal",
    "A": "Abnormal",
    "AA": "Critical abnormal",
    "H": "High",
    "HH": "Critical high",
    "L": "Low",
    "LL": "Critical low",
    "<": "Off scale low",
    ">": "Off scale high",
    "POS": "Positive",
    "NEG": "Negative",
    "IND": "Indeterminate",
    "DET": "Detected",
    "ND": "Not detected",
    "S": "Susceptible",
    "I": "Intermediate",
    "R": "Resistant",
    "NEGORFLORA": "Negative or flora",
    "CHECKRESULT": "Check result",
}

OBSERVATION_INTERPRETATIONS: dict[str, ObservationInterpretation] = {
    code: ObservationInterpretation(code=code, display=display)
    for code, display in _INTERPRETATION_DISPLAY.items()
}

# Codes that mark a result as outside normal limits
ABNORMAL_INTERPRETATIONS = frozenset({"A", "AA", "H", "HH", "L", "LL", "<", ">", "POS", "DET", "R"})


def get_interpretation(code: str) -> ObservationInterpretation | None:
    """Return the interpretation entry for a value-set code, or None."""
    return OBSERVATION_INTERPRETATIONS.get(code)


# ---------------------------------------------------------------------------
# Reference range lookup table
#
# Structure:
#   LOINC code -> {low, high, critical_low, critical_high}
#
# All values in US conventional units.
# Boundary semantics: exclusive (value > high = H, value < low = L).
# ---------------------------------------------------------------------------

REFERENCE_RANGES: dict[str, dict[str, float]] = {
    # CBC
    "6690-2": {"low": 4.5, "high": 11.0, "critical_low": 2.0, "critical_high": 30.0},  # WBC
    "789-8": {"low": 4.0, "high": 5.5, "critical_low": 2.5, "critical_high": 7.5},  # RBC
    "718-7": {"low": 12.0, "high": 17.5, "critical_low": 7.0, "critical_high": 20.0},  # Hemoglobin
    "4544-3": {"low": 36.0, "high": 52.0, "critical_low": 20.0, "critical_high": 60.0},  # Hematocrit
    "777-3": {"low": 150.0, "high": 400.0, "critical_low": 50.0, "critical_high": 1000.0},  # Platelets
    "751-8": {"low": 40.0, "high": 70.0, "critical_low": 10.0, "critical_high": 90.0},  # Neutrophils %
    # BMP
    "2345-7": {"low": 70.0, "high": 100.0, "critical_low": 40.0, "critical_high": 400.0},  # Glucose
    "3094-0": {"low": 7.0, "high": 20.0, "critical_low": 2.0, "critical_high": 100.0},  # BUN
    "2160-0": {"low": 0.6, "high": 1.2, "critical_low": 0.3, "critical_high": 10.0},  # Creatinine
    "2951-2": {"low": 136.0, "high": 145.0, "critical_low": 120.0, "critical_high": 160.0},  # Sodium
    "2823-3": {"low": 3.5, "high": 5.0, "critical_low": 2.5, "critical_high": 6.5},  # Potassium
    "2075-0": {"low": 98.0, "high": 106.0, "critical_low": 80.0, "critical_high": 120.0},  # Chloride
    "2028-9": {"low": 23.0, "high": 29.0, "critical_low": 10.0, "critical_high": 40.0},  # CO2
    "17861-6": {"low": 8.5, "high": 10.5, "critical_low": 6.0, "critical_high": 13.0},  # Calcium
    # Inflammation / liver
    "1988-5": {"low": 0.0, "high": 1.0, "critical_low": 0.0, "critical_high": 20.0},  # CRP (mg/dL)
    "1742-6": {"low": 7.0, "high": 56.0, "critical_low": 0.0, "critical_high": 1000.0},  # ALT
    "1920-8": {"low": 10.0, "high": 40.0, "critical_low": 0.0, "critical_high": 1000.0},  # AST
    # Drug levels
    "20578-1": {"low": 10.0, "high": 20.0, "critical_low": 0.0, "critical_high": 40.0},  # Vancomycin trough
    "35669-6": {"low": 0.5, "high": 2.0, "critical_low": 0.0, "critical_high": 12.0},  # Gentamicin trough
    # Vitals
    "8867-4": {"low": 60.0, "high": 100.0, "critical_low": 40.0, "critical_high": 150.0},  # Heart rate
    "9279-1": {"low": 12.0, "high": 20.0, "critical_low": 8.0, "critical_high": 35.0},  # Respiratory rate
    "8310-5": {"low": 36.1, "high": 37.8, "critical_low": 35.0, "critical_high": 40.0},  # Temperature
    "8480-6": {"low": 90.0, "high": 120.0, "critical_low": 70.0, "critical_high": 180.0},  # Systolic BP
    "8462-4": {"low": 60.0, "high": 80.0, "critical_low": 40.0, "critical_high": 120.0},  # Diastolic BP
}


def get_reference_range(loinc_code: str) -> dict[str, float] | None:
    """Return reference range for a LOINC code.

    Args:
        loinc_code: LOINC code (e.g. "718-7").

    Returns:
        Dict with keys {low, high, critical_low, critical_high} or None
        if the LOINC code is not in the lookup table.
    """
    return REFERENCE_RANGES.get(loinc_code)


def compute_interpretation(
    value: float,
    reference_range: dict[str, float],
) -> HL7Interpretation:
    """Compute HL7 interpretation code from a value and reference range.

    Boundary semantics are exclusive:
      value < critical_low  -> "LL"
      value < low           -> "L"
      value > critical_high -> "HH"
      value > high          -> "H"
      otherwise             -> "N"

    Critical thresholds are optional; a range with only {low, high} never
    yields "LL"/"HH".

    Args:
        value: Numeric observation value.
        reference_range: Dict with {low, high} and optionally
            {critical_low, critical_high}.

    Returns:
        HL7 interpretation code.
    """
    critical_low = reference_range.get("critical_low")
    critical_high = reference_range.get("critical_high")
    if critical_low is not None and value < critical_low:
        return "LL"
    if value < reference_range["low"]:
        return "L"
    if critical_high is not None and value > critical_high:
        return "HH"
    if value > reference_range["high"]:
        return "H"
    return "N"


def interpret_value(
    value: float,
    code: str,
    normal_range: tuple[float, float] | None = None,
) -> ObservationInterpretation | None:
    """Interpret a numeric value for a lab code.

    A normal range carried by the record wins over the lookup table, since it
    reflects the performing lab. Critical thresholds still come from the
    table when the code is known.

    Returns:
        Interpretation entry, or None when neither a record range nor a
        table entry exists.
    """
    table_range = get_reference_range(code)
    if normal_range is not None:
        reference_range: dict[str, float] = {"low": normal_range[0], "high": normal_range[1]}
        if table_range is not None:
            # Only borrow thresholds that lie outside the record's own range
            if table_range["critical_low"] <= normal_range[0]:
                reference_range["critical_low"] = table_range["critical_low"]
            if table_range["critical_high"] >= normal_range[1]:
                reference_range["critical_high"] = table_range["critical_high"]
    elif table_range is not None:
        reference_range = table_range
    else:
        return None
    return OBSERVATION_INTERPRETATIONS[compute_interpretation(value, reference_range)]
