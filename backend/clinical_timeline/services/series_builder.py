"""Labeled series builder.

Converts observation sets, medication orders, medication order sets and
diagnostic reports into LabeledSeries. Every entry path builds its base x/y
arrays first and then applies the same encounter-boundary rule: a
non-empty series gets each encounter's start and end appended with a break
marker, an empty series stays empty.

Point order is the order points were generated in. Nothing is resorted by
value; only the medication paths sort, and only by time.
"""

import logging
import math
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime, time

from clinical_timeline.exceptions import InconsistentRangeError
from clinical_timeline.schemas.medication import (
    MedicationAdministration,
    MedicationOrder,
    MedicationOrderSet,
)
from clinical_timeline.schemas.observation import DiagnosticReport, ObservationSet
from clinical_timeline.schemas.series import (
    ENCOUNTER_BREAK,
    MISSING_VALUE,
    Break,
    DateRange,
    Encounter,
    LabeledSeries,
    SeriesBundle,
)

logger = logging.getLogger(__name__)

YValue = float | Break


# =============================================================================
# Shared helpers
# =============================================================================


def add_encounter_breaks(
    x_values: Sequence[datetime],
    y_values: Sequence[YValue],
    encounters: Iterable[Encounter],
) -> tuple[list[datetime], list[YValue]]:
    """Append encounter start/end break points after the last data point.

    Encounters are appended in ascending start order. An empty base series
    gets nothing, so no phantom markers appear without data.
    """
    x_out, y_out = list(x_values), list(y_values)
    if not x_out:
        return x_out, y_out
    for encounter in sorted(encounters, key=lambda e: (e.start, e.end)):
        x_out.extend([encounter.start, encounter.end])
        y_out.extend([ENCOUNTER_BREAK, ENCOUNTER_BREAK])
    return x_out, y_out


def compute_display_bounds(
    values: Iterable[float],
    normal_bounds: tuple[float, float] | None = None,
) -> tuple[float, float]:
    """Smallest interval covering every finite value and the normal bounds.

    Returns (0.0, 0.0) when there is nothing to cover.
    """
    covered = [v for v in values if math.isfinite(v)]
    if normal_bounds is not None:
        covered.extend(normal_bounds)
    if not covered:
        return 0.0, 0.0
    return min(covered), max(covered)


def _normal_bounds(obs_set: ObservationSet) -> tuple[float, float] | None:
    ranges = {
        a.observation.normal_range
        for a in obs_set
        if a.observation.normal_range is not None
    }
    if len(ranges) > 1:
        raise InconsistentRangeError(
            f"Observations for {obs_set.label!r} disagree on normal range: {sorted(ranges)}"
        )
    return next(iter(ranges), None)


def _in_range(
    administrations: Iterable[MedicationAdministration],
    date_range: DateRange | None,
) -> list[MedicationAdministration]:
    if date_range is None:
        return list(administrations)
    return [a for a in administrations if date_range.contains(a.timestamp)]


def _finite(values: Iterable[YValue]) -> list[float]:
    return [v for v in values if not isinstance(v, Break)]


# =============================================================================
# Observation paths
# =============================================================================


def from_observation_set(
    obs_set: ObservationSet,
    encounters: Iterable[Encounter] = (),
) -> LabeledSeries:
    """Build a continuous series from an observation set.

    x is each observation's timestamp in original order; y its quantity
    value, or a missing-value break. Observations without a timestamp
    cannot be placed and are skipped.

    Raises:
        InconsistentRangeError: If members carry different normal ranges.
    """
    normal_bounds = _normal_bounds(obs_set)

    x_values: list[datetime] = []
    y_values: list[YValue] = []
    for annotated in obs_set:
        observation = annotated.observation
        if observation.timestamp is None:
            logger.debug("Skipping untimed observation %r", observation.label)
            continue
        x_values.append(observation.timestamp)
        y_values.append(observation.value if observation.value is not None else MISSING_VALUE)

    display_bounds = compute_display_bounds(_finite(y_values), normal_bounds)
    x_values, y_values = add_encounter_breaks(x_values, y_values, encounters)
    return LabeledSeries(
        label=obs_set.label or "",
        unit=obs_set.unit,
        x_values=tuple(x_values),
        y_values=tuple(y_values),
        y_normal_bounds=normal_bounds,
        y_display_bounds=display_bounds,
    )


def from_observation_sets_discrete(
    obs_sets: Iterable[ObservationSet],
    y_value: float,
    label: str,
    encounters: Iterable[Encounter] = (),
) -> LabeledSeries:
    """Build one series with every observation at the same fixed y-value.

    Used for qualitative results (colors, text); x is every observation
    timestamp in set-then-member order.
    """
    x_values = [
        annotated.timestamp
        for obs_set in obs_sets
        for annotated in obs_set
        if annotated.timestamp is not None
    ]
    y_values: list[YValue] = [y_value] * len(x_values)
    x_values, y_values = add_encounter_breaks(x_values, y_values, encounters)
    return LabeledSeries(
        label=label,
        x_values=tuple(x_values),
        y_values=tuple(y_values),
        y_display_bounds=(y_value, y_value),
    )


# =============================================================================
# Medication paths
# =============================================================================


def from_medication_order(
    order: MedicationOrder,
    date_range: DateRange | None = None,
    fixed_y: float | None = None,
    encounters: Iterable[Encounter] = (),
) -> tuple[LabeledSeries, LabeledSeries]:
    """Build the dose-over-time and administration-endpoint series of an order.

    With `fixed_y`, every point sits at that constant and the series shows
    presence rather than dosage.

    Returns:
        (dose series, endpoints series). The endpoints series holds the first
        and last administration in range.

    Raises:
        ValueError: If the order's administrations have not been resolved.
    """
    if order.administrations is None:
        raise ValueError(f"Medication order {order.id} has no resolved administrations")

    administrations = _in_range(order.administrations, date_range)
    y_for = (lambda a: fixed_y) if fixed_y is not None else (lambda a: a.dose)

    endpoints = administrations[:1] + administrations[1:][-1:]
    label = f"{order.label}-{order.id}"
    unit = None if fixed_y is not None else order.administrations.unit
    if fixed_y is not None:
        display_bounds = (fixed_y, fixed_y)
    else:
        display_bounds = compute_display_bounds(a.dose for a in administrations)

    built = []
    for series_label, points in ((label, administrations), (f"{label}-endpoints", endpoints)):
        x_values, y_values = add_encounter_breaks(
            [a.timestamp for a in points],
            [y_for(a) for a in points],
            encounters,
        )
        built.append(
            LabeledSeries(
                label=series_label,
                unit=unit,
                x_values=tuple(x_values),
                y_values=tuple(y_values),
                y_display_bounds=display_bounds,
            )
        )
    return built[0], built[1]


def from_medication_order_set(
    order_set: MedicationOrderSet,
    date_range: DateRange | None = None,
    encounters: Iterable[Encounter] = (),
) -> LabeledSeries:
    """Merge every member order's administrations into one time-sorted series.

    Label, unit and display bounds come from the aggregate, so the bounds
    span every member dose even when the date range hides some of them.
    """
    administrations = _in_range(order_set.administrations, date_range)
    x_values, y_values = add_encounter_breaks(
        [a.timestamp for a in administrations],
        [a.dose for a in administrations],
        encounters,
    )
    if order_set.min_dose is not None and order_set.max_dose is not None:
        display_bounds = (order_set.min_dose, order_set.max_dose)
    else:
        display_bounds = (0.0, 0.0)
    return LabeledSeries(
        label=order_set.label,
        unit=order_set.unit,
        x_values=tuple(x_values),
        y_values=tuple(y_values),
        y_display_bounds=display_bounds,
    )


# =============================================================================
# Diagnostic report path
# =============================================================================


def from_diagnostic_report(
    report: DiagnosticReport,
    y_axis_map: Mapping[str, float],
    encounters: Iterable[Encounter] = (),
) -> list[LabeledSeries]:
    """Build one series per interpretation category present in a report.

    Each result is plotted at the y-value the caller assigned to its label
    (e.g. the culture name). Series are labeled
    "{report id}-{interpretation code}-{Status}" in first-seen order.
    Results without an interpretation, a time, or a y position are skipped.
    """
    encounters = list(encounters)
    points: dict[str, tuple[list[datetime], list[YValue]]] = {}
    for result in report.results:
        if result.interpretation is None:
            logger.debug("Result %r of report %s has no interpretation", result.label, report.id)
            continue
        y_value = y_axis_map.get(result.label)
        if y_value is None:
            logger.warning("No y-axis position for result %r of report %s", result.label, report.id)
            continue
        timestamp = result.timestamp or report.timestamp
        if timestamp is None:
            continue
        x_values, y_values = points.setdefault(result.interpretation.code, ([], []))
        x_values.append(timestamp)
        y_values.append(y_value)

    display_bounds = compute_display_bounds(y_axis_map.values())
    series = []
    for code, (x_values, y_values) in points.items():
        x_values, y_values = add_encounter_breaks(x_values, y_values, encounters)
        series.append(
            LabeledSeries(
                label=f"{report.id}-{code}-{report.status.capitalize()}",
                x_values=tuple(x_values),
                y_values=tuple(y_values),
                y_display_bounds=display_bounds,
            )
        )
    return series


# =============================================================================
# Range checks
# =============================================================================


def data_points_in_range(series: Iterable[LabeledSeries], date_range: DateRange) -> bool:
    """Whether any data point of any series falls in the date range.

    The range is widened to whole days (UTC) on both ends. Break points do
    not count as data.
    """
    start = datetime.combine(date_range.start.date(), time.min, tzinfo=date_range.start.tzinfo)
    end = datetime.combine(date_range.end.date(), time.max, tzinfo=date_range.end.tzinfo)
    for s in series:
        for x, y in zip(s.x_values, s.y_values):
            if not isinstance(y, Break) and start <= x <= end:
                return True
    return False


def shared_unit_label(bundles: Iterable[SeriesBundle]) -> str:
    """Unit suffix for a card title: " (unit)" if every series shares one unit."""
    units = {s.unit for bundle in bundles for s in bundle.series}
    if len(units) == 1:
        (unit,) = units
        if unit:
            return f" ({unit})"
    return ""
