"""
Protocol Module: Sample schemas and activity records.

- Write-once sensor samples (fixes, inertial, pedometer)
- Trusted fixes (trust score + anomaly flag)
- Fusion output and activity summary
"""

from .samples import (
    Coordinate,
    RawFix,
    InertialSample,
    PedometerSample,
    TrustedFix,
    LocationSource,
    UNKNOWN_ACCURACY_M,
)
from .activity import (
    ActivityLabel,
    ActivityFeatures,
    ActivitySummary,
    FusedLocation,
    create_empty_summary,
)

__all__ = [
    # Samples
    'Coordinate',
    'RawFix',
    'InertialSample',
    'PedometerSample',
    'TrustedFix',
    'LocationSource',
    'UNKNOWN_ACCURACY_M',
    # Activity
    'ActivityLabel',
    'ActivityFeatures',
    'ActivitySummary',
    'FusedLocation',
    'create_empty_summary',
]
