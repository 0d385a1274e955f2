"""Axis dispatcher.

Given a homogeneous code group and a requested chart style, fetches the
records the axis needs and routes them to the matching series-construction
path:

- lab codes: one continuous series per observation set, or a single
  discrete series when every set holds qualitative results
- medication codes, step style: a presence summary with one y level per
  medication
- medication codes, other styles: the dose-over-time line of one order set
- microbiology codes: diagnostic-report step chart

Encounters are always fetched alongside the primary data so every path can
break its lines at visit boundaries.
"""

import asyncio
import logging

from clinical_timeline.config import settings
from clinical_timeline.exceptions import MixedValueKindError
from clinical_timeline.repositories.record_source import RecordSource
from clinical_timeline.schemas.concepts import ChartStyle, CodeGroup, CodeKind
from clinical_timeline.schemas.observation import ObservationSet, ValueKind
from clinical_timeline.schemas.series import DateRange, LabeledSeries, SeriesBundle
from clinical_timeline.services.medication_resolver import (
    AdministrationCache,
    build_order_set,
    group_orders_by_medication,
    resolve_orders,
)
from clinical_timeline.services.series_builder import (
    from_diagnostic_report,
    from_medication_order,
    from_medication_order_set,
    from_observation_set,
    from_observation_sets_discrete,
)

logger = logging.getLogger(__name__)


def uniform_value_kind(obs_sets: list[ObservationSet]) -> ValueKind:
    """Value kind shared by every non-empty set.

    Raises:
        MixedValueKindError: If a set mixes kinds, or sets disagree.
    """
    kinds = {s.value_kind for s in obs_sets if len(s)}
    if ValueKind.MIXED in kinds or len(kinds) > 1:
        raise MixedValueKindError(
            "Observation sets mix quantitative and qualitative values: "
            + ", ".join(sorted(k.value for k in kinds))
        )
    return kinds.pop() if kinds else ValueKind.EMPTY


def _common_unit(series: list[LabeledSeries]) -> str | None:
    units = {s.unit for s in series if s.unit}
    return units.pop() if len(units) == 1 else None


def _y_levels(labels: list[str]) -> dict[float, str]:
    spacing = settings.step_series_spacing
    return {spacing * (i + 1): label for i, label in enumerate(labels)}


class AxisDispatcher:
    """Builds render-ready series for one chart axis at a time.

    The dispatcher owns an AdministrationCache unless one is passed in, so
    repeated medication axes reuse earlier administration lookups.
    """

    def __init__(self, source: RecordSource, cache: AdministrationCache | None = None):
        self.source = source
        self.cache = cache if cache is not None else AdministrationCache()

    async def resolve_axis_data(
        self,
        code_group: CodeGroup,
        chart_style: ChartStyle,
        date_range: DateRange,
    ) -> SeriesBundle:
        """Fetch and build every series for one axis.

        Args:
            code_group: Homogeneous codes to chart. Groups mixing code types
                cannot be constructed, so they fail before any fetch.
            chart_style: Requested presentation; only medication axes
                branch on it.
            date_range: Interval to fetch and display.

        Returns:
            SeriesBundle labeled after the code group.

        Raises:
            ConsistencyError: If the fetched data cannot share one axis.
        """
        kind = code_group.kind
        logger.debug(
            "Resolving %s axis %r (%s) for %s to %s",
            kind.value, code_group.label, chart_style.value, date_range.start, date_range.end,
        )
        if kind is CodeKind.LAB:
            return await self._resolve_lab(code_group, chart_style, date_range)
        if kind is CodeKind.MEDICATION:
            if chart_style is ChartStyle.STEP:
                return await self._resolve_medication_summary(code_group, date_range)
            return await self._resolve_medication_detail(code_group, chart_style, date_range)
        return await self._resolve_microbiology(code_group, date_range)

    async def _resolve_lab(
        self,
        code_group: CodeGroup,
        chart_style: ChartStyle,
        date_range: DateRange,
    ) -> SeriesBundle:
        obs_sets, encounters = await asyncio.gather(
            self.source.fetch_observations(code_group, date_range),
            self.source.fetch_encounters(date_range),
        )

        if uniform_value_kind(obs_sets) is ValueKind.QUALITATIVE:
            series = [
                from_observation_sets_discrete(
                    obs_sets, settings.discrete_series_y, code_group.label, encounters
                )
            ]
        else:
            series = [from_observation_set(s, encounters) for s in obs_sets if len(s)]

        return SeriesBundle(
            label=code_group.label,
            unit=_common_unit(series),
            chart_style=chart_style,
            series=tuple(series),
        )

    async def _resolve_medication_summary(
        self,
        code_group: CodeGroup,
        date_range: DateRange,
    ) -> SeriesBundle:
        orders, encounters = await asyncio.gather(
            self.source.fetch_medication_orders(code_group, date_range),
            self.source.fetch_encounters(date_range),
        )
        orders = await resolve_orders(orders, self.source, self.cache)
        order_sets = group_orders_by_medication(orders)

        y_axis_labels = _y_levels([s.label for s in order_sets])
        series: list[LabeledSeries] = []
        for y_value, order_set in zip(y_axis_labels, order_sets):
            for order in order_set.orders:
                series.extend(from_medication_order(order, date_range, y_value, encounters))

        return SeriesBundle(
            label=code_group.label,
            chart_style=ChartStyle.STEP,
            series=tuple(series),
            y_axis_labels=y_axis_labels,
        )

    async def _resolve_medication_detail(
        self,
        code_group: CodeGroup,
        chart_style: ChartStyle,
        date_range: DateRange,
    ) -> SeriesBundle:
        orders, encounters = await asyncio.gather(
            self.source.fetch_medication_orders(code_group, date_range),
            self.source.fetch_encounters(date_range),
        )
        orders = await resolve_orders(orders, self.source, self.cache)
        if not orders:
            return SeriesBundle(label=code_group.label, chart_style=chart_style)

        order_set = build_order_set(orders)
        series = from_medication_order_set(order_set, date_range, encounters)
        return SeriesBundle(
            label=code_group.label,
            unit=order_set.unit,
            chart_style=chart_style,
            series=(series,),
        )

    async def _resolve_microbiology(
        self,
        code_group: CodeGroup,
        date_range: DateRange,
    ) -> SeriesBundle:
        reports, encounters = await asyncio.gather(
            self.source.fetch_diagnostic_reports(code_group, date_range),
            self.source.fetch_encounters(date_range),
        )

        result_labels = list(dict.fromkeys(r.label for report in reports for r in report.results))
        y_axis_labels = _y_levels(result_labels)
        y_axis_map = {label: y for y, label in y_axis_labels.items()}

        series = [
            s
            for report in reports
            for s in from_diagnostic_report(report, y_axis_map, encounters)
        ]
        return SeriesBundle(
            label=code_group.label,
            chart_style=ChartStyle.STEP,
            series=tuple(series),
            y_axis_labels=y_axis_labels,
        )
