"""Render-ready time-series schemas.

These are the structures handed to the chart renderer. A LabeledSeries is
built fresh per chart-construction call and never mutated; `to_render_dict`
produces the plain JSON shape (ISO timestamps, numbers and nulls).
"""

import math
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, model_validator

from clinical_timeline.schemas.concepts import ChartStyle


def _as_utc(value: datetime) -> datetime:
    """Naive timestamps are taken as UTC; aware ones are converted to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


class DateRange(BaseModel):
    """Inclusive time interval a chart displays."""

    model_config = ConfigDict(frozen=True)

    start: UtcDatetime
    end: UtcDatetime

    @model_validator(mode="after")
    def _check_order(self) -> "DateRange":
        if self.end < self.start:
            raise ValueError(f"Date range ends before it starts: {self.start} > {self.end}")
        return self

    def contains(self, timestamp: datetime | None) -> bool:
        return timestamp is not None and self.start <= timestamp <= self.end

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return start <= self.end and end >= self.start


class Encounter(BaseModel):
    """A bracketing clinical visit, used only to break chart lines."""

    model_config = ConfigDict(frozen=True)

    id: str | None = None
    start: UtcDatetime
    end: UtcDatetime


class BreakReason(str, Enum):
    ENCOUNTER_BOUNDARY = "encounter_boundary"
    MISSING_VALUE = "missing_value"


class Break(BaseModel):
    """A point where the rendered line must be interrupted.

    Rendered as null. Encounter-boundary breaks sit at an encounter's start
    or end timestamp; missing-value breaks sit at an observation that has no
    numeric value.
    """

    model_config = ConfigDict(frozen=True)

    reason: BreakReason = BreakReason.ENCOUNTER_BOUNDARY


ENCOUNTER_BREAK = Break(reason=BreakReason.ENCOUNTER_BOUNDARY)
MISSING_VALUE = Break(reason=BreakReason.MISSING_VALUE)


class LabeledSeries(BaseModel):
    """Aligned timestamp/value pairs plus bounds metadata."""

    model_config = ConfigDict(frozen=True)

    label: str
    unit: str | None = None
    x_values: tuple[datetime, ...] = ()
    y_values: tuple[float | Break, ...] = ()
    y_normal_bounds: tuple[float, float] | None = None
    y_display_bounds: tuple[float, float] = (0.0, 0.0)

    @model_validator(mode="after")
    def _check_alignment(self) -> "LabeledSeries":
        if len(self.x_values) != len(self.y_values):
            raise ValueError(
                f"Series {self.label!r} has {len(self.x_values)} x-values "
                f"but {len(self.y_values)} y-values"
            )
        low, high = self.y_display_bounds
        if low > high:
            raise ValueError(f"Series {self.label!r} display bounds are inverted: {low} > {high}")
        for y in self.finite_y_values():
            if not low <= y <= high:
                raise ValueError(
                    f"Series {self.label!r} display bounds {self.y_display_bounds} "
                    f"exclude value {y}"
                )
        if self.y_normal_bounds is not None:
            normal_low, normal_high = self.y_normal_bounds
            if normal_low < low or normal_high > high:
                raise ValueError(
                    f"Series {self.label!r} display bounds {self.y_display_bounds} "
                    f"exclude normal bounds {self.y_normal_bounds}"
                )
        return self

    def __len__(self) -> int:
        return len(self.x_values)

    def finite_y_values(self) -> list[float]:
        return [y for y in self.y_values if not isinstance(y, Break) and math.isfinite(y)]

    def render_y_values(self) -> list[float | None]:
        """Y-values in renderer shape: breaks become None."""
        return [None if isinstance(y, Break) else y for y in self.y_values]

    def to_render_dict(self) -> dict[str, Any]:
        return {
            "label": self.label,
            "unit": self.unit,
            "x": [x.isoformat() for x in self.x_values],
            "y": self.render_y_values(),
            "y_normal_bounds": list(self.y_normal_bounds) if self.y_normal_bounds else None,
            "y_display_bounds": list(self.y_display_bounds),
        }


class SeriesBundle(BaseModel):
    """Everything one axis needs to render: series plus display unit/label."""

    model_config = ConfigDict(frozen=True)

    label: str
    unit: str | None = None
    chart_style: ChartStyle = ChartStyle.LINE
    series: tuple[LabeledSeries, ...] = ()
    y_axis_labels: dict[float, str] | None = Field(
        default=None,
        description="Category label for each fixed y level (step and microbiology charts)",
    )

    @property
    def is_empty(self) -> bool:
        return all(len(s) == 0 for s in self.series)

    def to_render_dict(self) -> dict[str, Any]:
        return {
            "label": self.label,
            "unit": self.unit,
            "chart_style": self.chart_style.value,
            "series": [s.to_render_dict() for s in self.series],
            "y_axis_labels": (
                {str(y): lbl for y, lbl in self.y_axis_labels.items()}
                if self.y_axis_labels is not None
                else None
            ),
        }
