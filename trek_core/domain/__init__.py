"""
Domain Module: Activity logic over fused data.

Implements:
- Feature extraction from fix windows and motion samples
- Rule-based activity classification (single and windowed)
- Path refinement (outliers, simplification, smoothing, route-snap)
- Routing collaborators (offline identity, OSRM over HTTP)
"""

from .feature_extractor import (
    FeatureExtractor,
    FeatureExtractorConfig,
)
from .activity_classifier import (
    ActivityClassifier,
    ClassifierConfig,
    majority_label,
)
from .routing import (
    Router,
    OfflineRouter,
    OSRMRouter,
    TransportMode,
    RoutingError,
    RoutingUnavailableError,
)
from .path_refinement import (
    PathRefiner,
    RefinementConfig,
    RefinedPath,
    remove_outliers,
    simplify_path,
    smooth_path,
    split_chunks,
)

__all__ = [
    # Features
    'FeatureExtractor',
    'FeatureExtractorConfig',
    # Classification
    'ActivityClassifier',
    'ClassifierConfig',
    'majority_label',
    # Routing
    'Router',
    'OfflineRouter',
    'OSRMRouter',
    'TransportMode',
    'RoutingError',
    'RoutingUnavailableError',
    # Path refinement
    'PathRefiner',
    'RefinementConfig',
    'RefinedPath',
    'remove_outliers',
    'simplify_path',
    'smooth_path',
    'split_chunks',
]
