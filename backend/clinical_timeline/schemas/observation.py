"""Observation domain models.

Observations are built by the record parser from raw FHIR Observation JSON
and are immutable afterwards. The model validator holds the invariants every
observation must satisfy, so hand-built observations (tests, fixtures) are
checked the same way as parsed ones.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

from clinical_timeline.exceptions import EmptyObservationError, InvalidRecordError
from clinical_timeline.schemas.concepts import AnyCode


class Quantity(BaseModel):
    """FHIR Quantity, copied verbatim from valueQuantity."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    value: float | None = None
    unit: str | None = None
    comparator: str | None = None
    system: str | None = None
    code: str | None = None


class ObservationInterpretation(BaseModel):
    """One entry of the recognized observation-interpretation value-set."""

    model_config = ConfigDict(frozen=True)

    code: str
    display: str


class ValueKind(str, Enum):
    """How the members of an observation set carry their values."""

    QUANTITATIVE = "quantitative"
    QUALITATIVE = "qualitative"
    MIXED = "mixed"
    EMPTY = "empty"


class Observation(BaseModel):
    """A single clinical measurement or qualitative finding."""

    model_config = ConfigDict(frozen=True)

    codes: tuple[AnyCode, ...] = Field(default=(), description="Recognized codes for this observation")
    label: str = Field(default="", description="Display label from the record")
    timestamp: datetime | None = None
    quantity: Quantity | None = None
    # Populated for qualitative results such as "Yellow"
    result: str | None = None
    normal_range: tuple[float, float] | None = None
    interpretation: ObservationInterpretation | None = None
    inner_components: tuple["Observation", ...] = ()

    @model_validator(mode="after")
    def _check_usable(self) -> "Observation":
        if not self.codes:
            raise InvalidRecordError("Observation has no usable code")
        if not self.label:
            raise InvalidRecordError(
                f"Observation with code {self.codes[0].code} has no label"
            )
        if (
            self.quantity is None
            and self.result is None
            and self.interpretation is None
            and not self.inner_components
        ):
            raise EmptyObservationError(
                f"Observation {self.label!r} has no value, result, "
                "interpretation or components"
            )
        return self

    @property
    def value(self) -> float | None:
        return self.quantity.value if self.quantity is not None else None

    @property
    def unit(self) -> str | None:
        return self.quantity.unit if self.quantity is not None else None

    @property
    def is_qualitative(self) -> bool:
        return self.result is not None and self.quantity is None


class AnnotatedObservation(BaseModel):
    """An observation plus interpretation metadata computed at aggregation time."""

    model_config = ConfigDict(frozen=True)

    observation: Observation
    interpretation: ObservationInterpretation | None = Field(
        default=None,
        description="Explicit interpretation flag, else one computed from ranges",
    )
    abnormal: bool = False

    @property
    def timestamp(self) -> datetime | None:
        return self.observation.timestamp


class ObservationSet(BaseModel):
    """Ordered observations sharing one clinical concept."""

    model_config = ConfigDict(frozen=True)

    observations: tuple[AnnotatedObservation, ...] = ()

    def __len__(self) -> int:
        return len(self.observations)

    def __iter__(self):
        return iter(self.observations)

    @property
    def label(self) -> str | None:
        return self.observations[0].observation.label if self.observations else None

    @property
    def unit(self) -> str | None:
        for annotated in self.observations:
            if annotated.observation.unit:
                return annotated.observation.unit
        return None

    @property
    def value_kind(self) -> ValueKind:
        """Classify members as quantitative, qualitative, mixed or empty.

        Members carrying neither a quantity nor a qualitative result (e.g.
        interpretation-only or component panels) do not affect the kind.
        """
        has_quantity = any(a.observation.quantity is not None for a in self.observations)
        has_result = any(a.observation.is_qualitative for a in self.observations)
        if has_quantity and has_result:
            return ValueKind.MIXED
        if has_result:
            return ValueKind.QUALITATIVE
        if has_quantity or self.observations:
            return ValueKind.QUANTITATIVE
        return ValueKind.EMPTY

    @property
    def all_qualitative(self) -> bool:
        """True only if non-empty and every member is a qualitative result."""
        return bool(self.observations) and all(
            a.observation.is_qualitative for a in self.observations
        )


class DiagnosticReport(BaseModel):
    """A report bundling result observations, e.g. a microbiology culture."""

    model_config = ConfigDict(frozen=True)

    id: str
    status: str = "unknown"
    timestamp: datetime | None = None
    results: tuple[Observation, ...] = ()
