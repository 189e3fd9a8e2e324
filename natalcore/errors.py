"""
Error taxonomy for the chart pipeline.

  InvalidBirthData      — unparseable date/time, surfaced to the caller
  EphemerisUnavailable  — remote/local ephemeris failed, recovered by the fallback chart
  GeoUnresolved         — place not in the lookup table, recovered with default coordinates
  StoreUnavailable      — persistence layer failed, propagated as a hard error
"""


class AstroCoreError(Exception):
    """Base class for all pipeline errors."""


class InvalidBirthData(AstroCoreError, ValueError):
    pass


class EphemerisUnavailable(AstroCoreError):
    pass


class GeoUnresolved(AstroCoreError):
    pass


class StoreUnavailable(AstroCoreError):
    pass
