"""Observation aggregator.

Groups parsed observations into ObservationSets and annotates each member
with interpretation metadata. Aggregation never fails; whether a set can be
charted is decided by the series builder and the axis dispatcher.
"""

from collections.abc import Iterable

from clinical_timeline.schemas.observation import (
    AnnotatedObservation,
    Observation,
    ObservationSet,
)
from clinical_timeline.services.reference_ranges import (
    ABNORMAL_INTERPRETATIONS,
    interpret_value,
)


def annotate_observation(observation: Observation) -> AnnotatedObservation:
    """Attach an interpretation to an observation.

    An explicit flag from the record wins. Otherwise a numeric value is
    interpreted against the record's normal range, falling back to the
    reference-range table for the observation's first code.
    """
    interpretation = observation.interpretation
    if interpretation is None and observation.value is not None:
        interpretation = interpret_value(
            observation.value,
            observation.codes[0].code,
            observation.normal_range,
        )
    abnormal = interpretation is not None and interpretation.code in ABNORMAL_INTERPRETATIONS
    return AnnotatedObservation(
        observation=observation,
        interpretation=interpretation,
        abnormal=abnormal,
    )


def build_observation_set(observations: Iterable[Observation]) -> ObservationSet:
    """Build an order-preserving ObservationSet."""
    return ObservationSet(observations=tuple(annotate_observation(o) for o in observations))


def group_by_code(
    observations: Iterable[Observation],
    codes: Iterable[str] | None = None,
) -> list[ObservationSet]:
    """Split observations into one set per code.

    Each observation lands in the set of its first code. When `codes` is
    given, sets come out in that order (empty sets included) and other
    codes are dropped; otherwise in first-seen order.
    """
    by_code: dict[str, list[Observation]] = {}
    if codes is not None:
        by_code = {code: [] for code in codes}
    for observation in observations:
        code = observation.codes[0].code
        if codes is not None and code not in by_code:
            continue
        by_code.setdefault(code, []).append(observation)
    return [build_observation_set(members) for members in by_code.values()]
