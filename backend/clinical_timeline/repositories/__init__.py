"""Record sources the timeline core reads from.

A record source fetches parsed clinical records for one patient. The core
only depends on the RecordSource protocol; BundleRecordSource serves records
from an in-memory FHIR Bundle.
"""

from clinical_timeline.repositories.bundle import BundleRecordSource
from clinical_timeline.repositories.record_source import RecordSource

__all__ = ["BundleRecordSource", "RecordSource"]
