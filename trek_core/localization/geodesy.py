"""
Spherical geodesy helpers.

All distances are great-circle distances on a sphere of mean Earth radius.
Small-step projection (used by the fusion predict step) uses the flat
meters-per-degree approximation instead.
"""

import math
from typing import Sequence

from trek_core.proto.samples import Coordinate

EARTH_RADIUS_M = 6_371_000.0

# Meters per degree of latitude for small-step projection
METERS_PER_DEG_LAT = 111_320.0


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance between two lat/lon points.

    Args:
        lat1, lon1: First point (deg)
        lat2, lon2: Second point (deg)

    Returns:
        Distance in meters
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2.0) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2.0) ** 2
    c = 2.0 * math.atan2(math.sqrt(a), math.sqrt(max(0.0, 1.0 - a)))
    return EARTH_RADIUS_M * c


def distance_m(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance between two coordinates (m)."""
    return haversine_m(a.lat, a.lon, b.lat, b.lon)


def initial_bearing_deg(a: Coordinate, b: Coordinate) -> float:
    """Initial bearing from a to b, in [0, 360), 0 = north, 90 = east."""
    phi1 = math.radians(a.lat)
    phi2 = math.radians(b.lat)
    d_lambda = math.radians(b.lon - a.lon)

    y = math.sin(d_lambda) * math.cos(phi2)
    x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(d_lambda)
    return math.degrees(math.atan2(y, x)) % 360.0


def destination_point(origin: Coordinate, distance: float, bearing_deg: float) -> Coordinate:
    """
    Point reached by travelling a great-circle distance along a bearing.

    Args:
        origin: Start coordinate
        distance: Distance to travel (m)
        bearing_deg: Initial bearing (deg)

    Returns:
        Destination coordinate
    """
    lat1 = math.radians(origin.lat)
    lon1 = math.radians(origin.lon)
    theta = math.radians(bearing_deg)
    delta = distance / EARTH_RADIUS_M

    lat2 = math.asin(
        math.sin(lat1) * math.cos(delta) + math.cos(lat1) * math.sin(delta) * math.cos(theta)
    )
    lon2 = lon1 + math.atan2(
        math.sin(theta) * math.sin(delta) * math.cos(lat1),
        math.cos(delta) - math.sin(lat1) * math.sin(lat2),
    )

    return Coordinate(math.degrees(lat2), math.degrees(lon2))


def project_flat(origin: Coordinate, distance: float, heading_deg: float) -> Coordinate:
    """
    Small-step projection using meters-per-degree scaling.

    Longitude is scaled by cos(latitude). Valid for the few meters a fusion
    step covers.
    """
    heading = math.radians(heading_deg)
    d_lat = distance * math.cos(heading) / METERS_PER_DEG_LAT

    cos_lat = math.cos(math.radians(origin.lat))
    if abs(cos_lat) < 1e-12:
        d_lon = 0.0
    else:
        d_lon = distance * math.sin(heading) / (METERS_PER_DEG_LAT * cos_lat)

    return Coordinate(origin.lat + d_lat, origin.lon + d_lon)


def perpendicular_distance_m(point: Coordinate, line_start: Coordinate, line_end: Coordinate) -> float:
    """
    Distance from a point to the chord between two coordinates.

    Uses Heron's formula on the three pairwise great-circle distances:
    height = 2 * area / base. No local projection is needed.

    A degenerate chord (start == end) returns the distance to the start.
    """
    a = distance_m(point, line_start)
    b = distance_m(point, line_end)
    c = distance_m(line_start, line_end)

    if c == 0.0:
        return a

    s = (a + b + c) / 2.0
    area = math.sqrt(max(0.0, s * (s - a) * (s - b) * (s - c)))
    return 2.0 * area / c


def heading_change_deg(a: float, b: float) -> float:
    """Absolute heading difference normalized to [0, 180]."""
    change = abs(a - b) % 360.0
    return min(change, 360.0 - change)


def blend_headings_deg(a: float, b: float, weight_b: float) -> float:
    """
    Weighted circular mean of two headings.

    Args:
        a: First heading (deg)
        b: Second heading (deg)
        weight_b: Weight of b in [0, 1]

    Returns:
        Blended heading in [0, 360)
    """
    ra = math.radians(a)
    rb = math.radians(b)
    x = (1.0 - weight_b) * math.cos(ra) + weight_b * math.cos(rb)
    y = (1.0 - weight_b) * math.sin(ra) + weight_b * math.sin(rb)

    if abs(x) < 1e-12 and abs(y) < 1e-12:
        # Opposite headings with equal weight: keep the first
        return a % 360.0

    return math.degrees(math.atan2(y, x)) % 360.0


def path_length_m(path: Sequence[Coordinate]) -> float:
    """Sum of consecutive great-circle distances along a path (m)."""
    total = 0.0
    for prev, curr in zip(path, path[1:]):
        total += distance_m(prev, curr)
    return total
