"""
Trek Core Package.

Sensor fusion and trust scoring for outdoor activity tracking (walk, run, hike).

Package structure:
- proto: Sample schemas and activity records
- localization: Geodesy, trust/anomaly scoring, fusion engine, tracking sessions
- domain: Feature extraction, activity classification, path refinement, routing
- io: Trace file reading for offline replay
- metrics: Diagnostics, counters, histograms

Pipeline:
    raw fix -> trust/anomaly filter -> fusion engine -> feature extraction
            -> classification -> path refinement -> distance/pace metrics
"""

__version__ = "0.3.0"
__author__ = "Trek Core Team"

from .localization import TrackingSession, SessionConfig, create_default_session
