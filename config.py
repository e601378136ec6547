"""
Trace replay configuration.
"""

# Session tuning
SESSION_CONFIG = {
    "imu_pairing_window_s": 1.0,    # Max inertial sample age paired with a fix
    "motion_buffer_size": 100,      # Inertial/pedometer ring buffer capacity
    "max_dt_s": 10.0,               # Fusion sanity ceiling
    "reseed_on_gap": False,         # Re-seed fusion after a long fix gap
}

# Path refinement
REFINEMENT_CONFIG = {
    "simplify_tolerance_m": 10.0,   # Douglas-Peucker tolerance
    "smoothing_window": 5,          # Moving-average window (points)
    "chunk_size": 10,               # Points per route-snap request
    "chunk_timeout_s": 10.0,        # Wait bound per chunk
}

# Routing service (OSRM-compatible); None keeps route-snapping offline
ROUTING_CONFIG = {
    "osrm_url": None,
    "timeout_s": 5.0,
    "transport_mode": "walking",
}

# Logging
LOGGING_CONFIG = {
    "level": "INFO",
    "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
}
