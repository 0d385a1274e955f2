"""In-memory record source over a FHIR Bundle.

Parses every entry of one patient's Bundle up front and answers the
RecordSource queries from memory. Unusable entries are skipped and kept in
`skipped` so callers can report them.
"""

import logging
from collections import defaultdict
from collections.abc import Callable, Iterable
from functools import partial
from typing import Any, TypeVar

from clinical_timeline.exceptions import RecordError
from clinical_timeline.schemas.concepts import CodeGroup
from clinical_timeline.schemas.medication import MedicationAdministration, MedicationOrder
from clinical_timeline.schemas.observation import DiagnosticReport, ObservationSet
from clinical_timeline.schemas.series import DateRange, Encounter
from clinical_timeline.services.aggregator import group_by_code
from clinical_timeline.services.record_parser import (
    SkippedRecord,
    parse_diagnostic_report,
    parse_encounter,
    parse_medication_administration,
    parse_medication_order,
    parse_observations,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# DSTU2 and R4 names for the same resource
_ORDER_TYPES = ("MedicationOrder", "MedicationRequest")


class BundleRecordSource:
    """RecordSource backed by a parsed FHIR Bundle dict."""

    def __init__(self, bundle: dict[str, Any]):
        """Parse every resource in the bundle.

        Args:
            bundle: FHIR Bundle dict with an "entry" array of resources.

        Raises:
            ValueError: If the bundle is not a JSON object.
        """
        if not isinstance(bundle, dict):
            raise ValueError(f"Bundle must be a JSON object, got {type(bundle).__name__}")

        self._resources: dict[str, list[dict[str, Any]]] = defaultdict(list)
        for entry in bundle.get("entry") or []:
            resource = entry.get("resource") if isinstance(entry, dict) else None
            if isinstance(resource, dict) and resource.get("resourceType"):
                self._resources[resource["resourceType"]].append(resource)

        self.skipped: list[SkippedRecord] = []

        parsed = parse_observations(self._resources["Observation"])
        self.skipped.extend(parsed.skipped)
        self._observations = parsed.observations

        self._orders = self._parse_each(
            (r for t in _ORDER_TYPES for r in self._resources[t]),
            parse_medication_order,
        )
        self._administrations = self._parse_each(
            self._resources["MedicationAdministration"],
            parse_medication_administration,
        )
        observations_by_id = {
            str(r["id"]): r for r in self._resources["Observation"] if r.get("id")
        }
        self._reports = self._parse_each(
            self._resources["DiagnosticReport"],
            partial(parse_diagnostic_report, observations_by_id=observations_by_id),
        )
        self._encounters = self._parse_each(self._resources["Encounter"], parse_encounter)

        logger.info(
            "Loaded bundle: %d observations, %d orders, %d administrations, "
            "%d reports, %d encounters (%d skipped)",
            len(self._observations), len(self._orders), len(self._administrations),
            len(self._reports), len(self._encounters), len(self.skipped),
        )

    def _parse_each(
        self,
        records: Iterable[dict[str, Any]],
        parser: Callable[[dict[str, Any]], T],
    ) -> list[T]:
        parsed: list[T] = []
        for record in records:
            try:
                parsed.append(parser(record))
            except RecordError as e:
                logger.warning("Skipping %s/%s: %s", record.get("resourceType"), record.get("id"), e)
                self.skipped.append(SkippedRecord(record_id=record.get("id"), error=e))
        return parsed

    async def fetch_observations(
        self, code_group: CodeGroup, date_range: DateRange
    ) -> list[ObservationSet]:
        matching = [
            o
            for o in self._observations
            if o.codes[0].code in code_group and date_range.contains(o.timestamp)
        ]
        return group_by_code(matching, [c.code for c in code_group.codes])

    async def fetch_medication_administrations(
        self, order_id: str
    ) -> list[MedicationAdministration]:
        return [a for a in self._administrations if a.order_id == order_id]

    async def fetch_medication_orders(
        self, code_group: CodeGroup, date_range: DateRange
    ) -> list[MedicationOrder]:
        """Orders for the group's medications authored or administered in range."""
        administered = {
            a.order_id for a in self._administrations if date_range.contains(a.timestamp)
        }
        return [
            o
            for o in self._orders
            if o.medication_code.code in code_group
            and (date_range.contains(o.authored_on) or o.id in administered)
        ]

    async def fetch_diagnostic_reports(
        self, code_group: CodeGroup, date_range: DateRange
    ) -> list[DiagnosticReport]:
        return [
            r
            for r in self._reports
            if date_range.contains(r.timestamp)
            and any(c.code in code_group for result in r.results for c in result.codes)
        ]

    async def fetch_encounters(self, date_range: DateRange) -> list[Encounter]:
        return [e for e in self._encounters if date_range.overlaps(e.start, e.end)]
