"""
Localization Module: Geodesy, trust scoring, fusion, tracking sessions.

Key classes:
- TrustScorer: Per-fix trust score and anomaly detection
- SensorFusionEngine: Scalar Kalman fusion of fixes and inertial samples
- TrackingSession: Per-session pipeline from raw samples to activity summary
"""

# Geodesy must load before the session (domain modules import it)
from .geodesy import (
    EARTH_RADIUS_M,
    haversine_m,
    distance_m,
    initial_bearing_deg,
    destination_point,
    perpendicular_distance_m,
    heading_change_deg,
    path_length_m,
)
from .trust_scorer import (
    TrustScorer,
    TrustScorerConfig,
    create_default_scorer,
)
from .fusion_engine import (
    SensorFusionEngine,
    FusionConfig,
    FusionState,
)
from .tracking_session import (
    TrackingSession,
    SessionConfig,
    FixAcceptance,
    create_default_session,
)

__all__ = [
    # Geodesy
    'EARTH_RADIUS_M',
    'haversine_m',
    'distance_m',
    'initial_bearing_deg',
    'destination_point',
    'perpendicular_distance_m',
    'heading_change_deg',
    'path_length_m',
    # Trust
    'TrustScorer',
    'TrustScorerConfig',
    'create_default_scorer',
    # Fusion
    'SensorFusionEngine',
    'FusionConfig',
    'FusionState',
    # Session
    'TrackingSession',
    'SessionConfig',
    'FixAcceptance',
    'create_default_session',
]
