"""Coded clinical concepts and homogeneous code groups.

A coded concept wraps one identifier from a coding system (LOINC lab codes,
RxNorm medication codes, microbiology codes) together with its canonical
label and unit. The variant is a closed tag (`kind`), so a code group can
check homogeneity once when it is built instead of re-testing every code
on each access.
"""

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from clinical_timeline.exceptions import MixedCodeTypesError


class CodeKind(str, Enum):
    """Coding-system variants a concept can belong to."""

    LAB = "lab"
    MEDICATION = "medication"
    MICROBIO = "microbio"


class ChartStyle(str, Enum):
    """Requested chart presentation for an axis."""

    SCATTER = "scatter"
    LINE = "line"
    STEP = "step"
    MICROBIO = "microbio"


class CodedConcept(BaseModel):
    """One code from a coding system with its canonical display label."""

    model_config = ConfigDict(frozen=True)

    code: str = Field(..., min_length=1, description="Raw code string from the coding system")
    label: str = Field(..., description="Canonical display label")
    coding_system: str = Field(..., description="Coding system URL")
    unit: str | None = Field(default=None, description="Canonical unit, if the concept has one")


class LabCode(CodedConcept):
    """LOINC lab-result code."""

    kind: Literal[CodeKind.LAB] = CodeKind.LAB


class MedicationCode(CodedConcept):
    """RxNorm medication code."""

    kind: Literal[CodeKind.MEDICATION] = CodeKind.MEDICATION


class MicrobioCode(CodedConcept):
    """Microbiology culture/test code."""

    kind: Literal[CodeKind.MICROBIO] = CodeKind.MICROBIO


AnyCode = Annotated[
    Union[LabCode, MedicationCode, MicrobioCode],
    Field(discriminator="kind"),
]


class CodeGroup(BaseModel):
    """A non-empty, single-variant ordered set of codes shown on one axis."""

    model_config = ConfigDict(frozen=True)

    label: str = Field(..., description="Display label for the axis")
    codes: tuple[AnyCode, ...] = Field(..., min_length=1)
    chart_style: ChartStyle = ChartStyle.LINE

    @model_validator(mode="after")
    def _check_homogeneous(self) -> "CodeGroup":
        kinds = {code.kind for code in self.codes}
        if len(kinds) > 1:
            raise MixedCodeTypesError(
                f"Code group {self.label!r} mixes code types: "
                + ", ".join(sorted(k.value for k in kinds))
            )
        return self

    @property
    def kind(self) -> CodeKind:
        """Variant shared by every code in the group."""
        return self.codes[0].kind

    @property
    def code_strings(self) -> frozenset[str]:
        return frozenset(code.code for code in self.codes)

    def __contains__(self, code: str) -> bool:
        return code in self.code_strings
