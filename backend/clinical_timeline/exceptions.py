"""Error taxonomy for record parsing and series construction.

Record errors are fatal to a single raw record and are isolated by batch
callers. Consistency errors are fatal to the whole series or axis being
built: a silently wrong clinical chart is worse than no chart.

These do not subclass ValueError, so they propagate unchanged out of
pydantic validators instead of being folded into a ValidationError.
"""


class TimelineError(Exception):
    """Base class for all clinical timeline errors."""

    pass


# =============================================================================
# Record-level errors
# =============================================================================


class RecordError(TimelineError):
    """Raised when a single raw record cannot become a domain object."""

    pass


class InvalidRecordError(RecordError):
    """Raised for unparseable or unusable raw input (e.g. no usable code)."""

    pass


class UnsupportedInterpretationError(RecordError):
    """Raised for an unknown code from the recognized interpretation value-set."""

    pass


class EmptyObservationError(RecordError):
    """Raised when an observation has no value, result, interpretation or components."""

    pass


# =============================================================================
# Series-level errors
# =============================================================================


class ConsistencyError(TimelineError):
    """Raised when otherwise-valid records disagree with each other."""

    pass


class InconsistentRangeError(ConsistencyError):
    """Raised when observations in one set carry different normal ranges."""

    pass


class InconsistentUnitError(ConsistencyError):
    """Raised when medication administrations disagree on dose unit."""

    pass


class MixedValueKindError(ConsistencyError):
    """Raised when qualitative and quantitative observations share one axis."""

    pass


class MixedCodeTypesError(ConsistencyError):
    """Raised when a code group mixes lab, medication and microbiology codes."""

    pass
