"""Record source protocol.

Describes the fetch collaborator the timeline core consumes. Implementations
own transport, auth and timeouts; a rejected fetch propagates to the caller
unchanged.
"""

from typing import Protocol, runtime_checkable

from clinical_timeline.schemas.concepts import CodeGroup
from clinical_timeline.schemas.medication import MedicationAdministration, MedicationOrder
from clinical_timeline.schemas.observation import DiagnosticReport, ObservationSet
from clinical_timeline.schemas.series import DateRange, Encounter


@runtime_checkable
class RecordSource(Protocol):
    """Asynchronous source of parsed clinical records for one patient."""

    async def fetch_observations(
        self, code_group: CodeGroup, date_range: DateRange
    ) -> list[ObservationSet]:
        """Observation sets for the group's codes within the date range."""
        ...

    async def fetch_medication_administrations(
        self, order_id: str
    ) -> list[MedicationAdministration]:
        """Every administration recorded against one order."""
        ...

    async def fetch_medication_orders(
        self, code_group: CodeGroup, date_range: DateRange
    ) -> list[MedicationOrder]:
        """Unresolved orders for the group's medications."""
        ...

    async def fetch_diagnostic_reports(
        self, code_group: CodeGroup, date_range: DateRange
    ) -> list[DiagnosticReport]:
        """Reports with at least one result coded in the group."""
        ...

    async def fetch_encounters(self, date_range: DateRange) -> list[Encounter]:
        """Encounters overlapping the date range."""
        ...
