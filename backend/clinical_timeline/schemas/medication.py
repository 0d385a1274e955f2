"""Medication order and administration models.

An order starts unresolved (`administrations is None`). Resolving it never
mutates the instance: the resolver returns a copy carrying the
administration set, and the set itself is cached outside the order.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from clinical_timeline.exceptions import InconsistentUnitError
from clinical_timeline.schemas.concepts import MedicationCode


class MedicationAdministration(BaseModel):
    """One dose given to the patient."""

    model_config = ConfigDict(frozen=True)

    id: str
    order_id: str | None = Field(default=None, description="ID of the order this dose fulfils")
    medication_code: MedicationCode | None = None
    timestamp: datetime
    dose: float
    unit: str | None = None


def _common_unit(administrations: tuple[MedicationAdministration, ...], context: str) -> str | None:
    units = {a.unit for a in administrations if a.unit}
    if len(units) > 1:
        raise InconsistentUnitError(
            f"{context} mixes dose units: {', '.join(sorted(units))}"
        )
    return next(iter(units), None)


class MedicationAdministrationSet(BaseModel):
    """Timestamp-ordered administrations for one order."""

    model_config = ConfigDict(frozen=True)

    administrations: tuple[MedicationAdministration, ...] = ()

    @field_validator("administrations")
    @classmethod
    def _sort_by_time(
        cls, value: tuple[MedicationAdministration, ...]
    ) -> tuple[MedicationAdministration, ...]:
        return tuple(sorted(value, key=lambda a: a.timestamp))

    @model_validator(mode="after")
    def _check_unit(self) -> "MedicationAdministrationSet":
        _common_unit(self.administrations, "Administration set")
        return self

    def __len__(self) -> int:
        return len(self.administrations)

    def __iter__(self):
        return iter(self.administrations)

    @property
    def unit(self) -> str | None:
        return _common_unit(self.administrations, "Administration set")

    @property
    def min_dose(self) -> float | None:
        return min((a.dose for a in self.administrations), default=None)

    @property
    def max_dose(self) -> float | None:
        return max((a.dose for a in self.administrations), default=None)

    @property
    def first(self) -> MedicationAdministration | None:
        return self.administrations[0] if self.administrations else None

    @property
    def last(self) -> MedicationAdministration | None:
        return self.administrations[-1] if self.administrations else None


class MedicationOrder(BaseModel):
    """A prescription for one medication."""

    model_config = ConfigDict(frozen=True)

    id: str
    medication_code: MedicationCode
    status: str | None = None
    authored_on: datetime | None = None
    administrations: MedicationAdministrationSet | None = Field(
        default=None,
        description="Populated by the medication resolver; None until resolved",
    )

    @property
    def label(self) -> str:
        return self.medication_code.label

    @property
    def is_resolved(self) -> bool:
        return self.administrations is not None

    def with_administrations(self, administrations: MedicationAdministrationSet) -> "MedicationOrder":
        """Return a resolved copy of this order."""
        return self.model_copy(update={"administrations": administrations})


class MedicationOrderSet(BaseModel):
    """Orders shown together on one chart, e.g. every order for one drug."""

    model_config = ConfigDict(frozen=True)

    orders: tuple[MedicationOrder, ...] = ()

    @model_validator(mode="after")
    def _check_orders(self) -> "MedicationOrderSet":
        unresolved = [o.id for o in self.orders if not o.is_resolved]
        if unresolved:
            raise ValueError(
                f"Medication orders must be resolved before aggregation: {unresolved}"
            )
        _common_unit(self.administrations, "Medication order set")
        return self

    @property
    def administrations(self) -> tuple[MedicationAdministration, ...]:
        """All member administrations, merged in timestamp order."""
        merged = [a for order in self.orders for a in (order.administrations or ())]
        return tuple(sorted(merged, key=lambda a: a.timestamp))

    @property
    def label(self) -> str:
        return self.orders[0].label if self.orders else ""

    @property
    def medication_code(self) -> MedicationCode | None:
        return self.orders[0].medication_code if self.orders else None

    @property
    def unit(self) -> str | None:
        return _common_unit(self.administrations, "Medication order set")

    @property
    def min_dose(self) -> float | None:
        return min((a.dose for a in self.administrations), default=None)

    @property
    def max_dose(self) -> float | None:
        return max((a.dose for a in self.administrations), default=None)
