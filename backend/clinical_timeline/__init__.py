"""Clinical timeline series core.

Turns FHIR clinical records into render-ready labeled time series.
"""
