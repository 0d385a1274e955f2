"""Coded-concept classifier.

Maps raw code strings from each supported coding system to typed concepts
with canonical labels and units, and builds the homogeneous code groups
shown on a chart axis. Lab and medication codes must be known to be used;
microbiology codes are taken verbatim from the record.
"""

import logging
from collections.abc import Iterable

from clinical_timeline.config import settings
from clinical_timeline.schemas.concepts import (
    AnyCode,
    ChartStyle,
    CodeGroup,
    CodeKind,
    LabCode,
    MedicationCode,
    MicrobioCode,
)

logger = logging.getLogger(__name__)

# LOINC code -> (canonical label, unit)
_LAB_CODES: dict[str, tuple[str, str | None]] = {
    # CBC
    "6690-2": ("WBC", "10*3/uL"),
    "789-8": ("RBC", "10*6/uL"),
    "718-7": ("Hemoglobin", "g/dL"),
    "4544-3": ("Hematocrit", "%"),
    "777-3": ("Platelets", "10*3/uL"),
    "751-8": ("Neutrophils", "%"),
    # BMP
    "2345-7": ("Glucose", "mg/dL"),
    "3094-0": ("BUN", "mg/dL"),
    "2160-0": ("Creatinine", "mg/dL"),
    "2951-2": ("Sodium", "mmol/L"),
    "2823-3": ("Potassium", "mmol/L"),
    "2075-0": ("Chloride", "mmol/L"),
    "2028-9": ("Carbon Dioxide", "mmol/L"),
    "17861-6": ("Calcium", "mg/dL"),
    # Inflammation / liver
    "1988-5": ("C-Reactive Protein", "mg/dL"),
    "1742-6": ("ALT", "U/L"),
    "1920-8": ("AST", "U/L"),
    # Drug levels
    "20578-1": ("Vancomycin Trough", "ug/mL"),
    "35669-6": ("Gentamicin Trough", "ug/mL"),
    # Urinalysis (qualitative)
    "5778-6": ("Urine Color", None),
    "5767-9": ("Urine Appearance", None),
    "5804-0": ("Urine Protein", None),
    # Vitals
    "8867-4": ("Heart Rate", "/min"),
    "9279-1": ("Respiratory Rate", "/min"),
    "8310-5": ("Body Temperature", "Cel"),
    "85354-9": ("Blood Pressure", "mm[Hg]"),
    "8480-6": ("Systolic BP", "mm[Hg]"),
    "8462-4": ("Diastolic BP", "mm[Hg]"),
}

# RxNorm code -> canonical label
_MEDICATION_CODES: dict[str, str] = {
    "11124": "Vancomycin",
    "1596450": "Gentamicin",
    "82122": "Levofloxacin",
    "2193": "Ceftriaxone",
    "1665": "Cefazolin",
    "7980": "Penicillin G",
    "161": "Acetaminophen",
    "5640": "Ibuprofen",
    "7052": "Morphine",
    "5224": "Heparin",
}

# Microbiology code -> canonical label (used to build axes; parsing accepts any code)
_MICROBIO_CODES: dict[str, str] = {
    "GI_SALM_SHIG_CULT": "Salmonella and Shigella Culture",
    "GI_OVA_PARASITE": "Ova and Parasite Exam",
    "GI_CDIFF_PCR": "Clostridium difficile Toxin PCR",
    "BLOOD_CULT": "Blood Culture",
    "URINE_CULT": "Urine Culture",
}


def lab_code(code: str) -> LabCode | None:
    """Return the LabCode for a recognized LOINC code, or None."""
    entry = _LAB_CODES.get(code)
    if entry is None:
        return None
    label, unit = entry
    return LabCode(code=code, label=label, unit=unit, coding_system=settings.lab_coding_system)


def medication_code(code: str) -> MedicationCode | None:
    """Return the MedicationCode for a recognized RxNorm code, or None."""
    label = _MEDICATION_CODES.get(code)
    if label is None:
        return None
    return MedicationCode(code=code, label=label, coding_system=settings.medication_coding_system)


def microbio_code(code: str, display: str | None = None) -> MicrobioCode:
    """Build a MicrobioCode verbatim from the record.

    The record's display text wins; the registry label is the fallback.
    """
    label = display or _MICROBIO_CODES.get(code) or code
    return MicrobioCode(code=code, label=label, coding_system=settings.microbio_coding_system)


def is_lab_system(system: str | None) -> bool:
    """Codings without a system are assumed to be lab codes."""
    return not system or settings.lab_coding_system in system


def is_medication_system(system: str | None) -> bool:
    return not system or settings.medication_coding_system in system


def is_microbio_system(system: str | None) -> bool:
    return system == settings.microbio_coding_system


def known_codes(kind: CodeKind) -> list[str]:
    """List every registered code string of one variant."""
    if kind is CodeKind.LAB:
        return list(_LAB_CODES)
    if kind is CodeKind.MEDICATION:
        return list(_MEDICATION_CODES)
    return list(_MICROBIO_CODES)


def resolve_code(kind: CodeKind, code: str) -> AnyCode | None:
    """Resolve a code string of a known variant to its typed concept."""
    if kind is CodeKind.LAB:
        return lab_code(code)
    if kind is CodeKind.MEDICATION:
        return medication_code(code)
    return microbio_code(code) if code in _MICROBIO_CODES else None


def make_code_group(
    label: str,
    kind: CodeKind,
    codes: Iterable[str],
    chart_style: ChartStyle | None = None,
) -> CodeGroup:
    """Build a code group from code strings of one variant.

    Unknown codes are dropped with a warning. Microbiology groups are always
    step-style; other groups default to a line chart.

    Raises:
        ValueError: If none of the codes is recognized.
    """
    resolved: list[AnyCode] = []
    for code in codes:
        concept = resolve_code(kind, code)
        if concept is None:
            logger.warning("Dropping unknown %s code %s from group %r", kind.value, code, label)
            continue
        resolved.append(concept)
    if not resolved:
        raise ValueError(f"Code group {label!r} has no recognized {kind.value} codes")

    if kind is CodeKind.MICROBIO:
        chart_style = ChartStyle.STEP
    return CodeGroup(label=label, codes=tuple(resolved), chart_style=chart_style or ChartStyle.LINE)
