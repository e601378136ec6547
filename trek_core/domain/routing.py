"""
Routing collaborators for route-snapping.

Two implementations of one capability:
- OfflineRouter: deterministic identity pass-through (tests, no network)
- OSRMRouter: OSRM-compatible HTTP routing service via requests

Routers raise RoutingError on failure. Callers decide how to degrade.
"""

import logging
import time
from enum import Enum
from typing import List, Optional, Protocol, Sequence

import requests

from trek_core.proto.samples import Coordinate
from trek_core.metrics import MetricsCollector

logger = logging.getLogger(__name__)


class TransportMode(Enum):
    """Transport mode requested from the routing service."""

    WALKING = "walking"
    CYCLING = "cycling"
    DRIVING = "driving"
    TRANSIT = "transit"


class RoutingError(Exception):
    """Routing request failed."""


class RoutingUnavailableError(RoutingError):
    """Routing service does not support the request (e.g. transport mode)."""


class Router(Protocol):
    """Capability interface for route-snapping."""

    def route(
        self,
        origin: Coordinate,
        destination: Coordinate,
        waypoints: Sequence[Coordinate],
        transport_mode: TransportMode,
    ) -> List[Coordinate]:
        ...


class OfflineRouter:
    """Identity router: returns the requested points unchanged."""

    def route(
        self,
        origin: Coordinate,
        destination: Coordinate,
        waypoints: Sequence[Coordinate],
        transport_mode: TransportMode = TransportMode.WALKING,
    ) -> List[Coordinate]:
        return [origin, *waypoints, destination]


class OSRMRouter:
    """
    Routing via an OSRM-compatible HTTP API.

    Usage:
        router = OSRMRouter("https://router.project-osrm.org", timeout_s=5.0)
        points = router.route(a, b, [w1, w2], TransportMode.WALKING)

    Request:
        GET {base_url}/route/v1/{profile}/{lon,lat;...}?overview=full&geometries=geojson
    """

    PROFILES = {
        TransportMode.WALKING: "foot",
        TransportMode.CYCLING: "bike",
        TransportMode.DRIVING: "car",
    }

    def __init__(
        self,
        base_url: str,
        timeout_s: float = 5.0,
        session: Optional[requests.Session] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        """
        Initialize OSRM router.

        Args:
            base_url: Service root, e.g. "http://localhost:5000"
            timeout_s: Per-request timeout (s)
            session: requests session to reuse (created if None)
            metrics: Metrics collector (private collector if None)
        """
        self.base_url = base_url.rstrip('/')
        self.timeout_s = timeout_s
        self.session = session or requests.Session()
        self.metrics = metrics or MetricsCollector()

    def route(
        self,
        origin: Coordinate,
        destination: Coordinate,
        waypoints: Sequence[Coordinate],
        transport_mode: TransportMode = TransportMode.WALKING,
    ) -> List[Coordinate]:
        """
        Request a routed path through the given points.

        Raises:
            RoutingUnavailableError: Transport mode has no OSRM profile
            RoutingError: Network failure, HTTP error or no route
        """
        profile = self.PROFILES.get(transport_mode)
        if profile is None:
            raise RoutingUnavailableError(f"Unsupported transport mode: {transport_mode.value}")

        points = [origin, *waypoints, destination]
        coords = ';'.join(f"{p.lon:.6f},{p.lat:.6f}" for p in points)
        url = f"{self.base_url}/route/v1/{profile}/{coords}"

        started = time.monotonic()
        try:
            response = self.session.get(
                url,
                params={'overview': 'full', 'geometries': 'geojson'},
                timeout=self.timeout_s,
            )
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as e:
            raise RoutingError(f"Routing request failed: {e}") from e
        finally:
            self.metrics.record_histogram('routing_latency_s', time.monotonic() - started)

        return self._parse_geometry(payload)

    @staticmethod
    def _parse_geometry(payload: dict) -> List[Coordinate]:
        """Extract the first route's GeoJSON line as coordinates."""
        if payload.get('code') != 'Ok':
            raise RoutingError(f"Routing service returned {payload.get('code')!r}")

        routes = payload.get('routes') or []
        if not routes:
            raise RoutingError("No route returned")

        try:
            line = routes[0]['geometry']['coordinates']
            result = [Coordinate(float(lat), float(lon)) for lon, lat in line]
        except (KeyError, TypeError, ValueError) as e:
            raise RoutingError(f"Malformed route geometry: {e}") from e

        if len(result) < 2:
            raise RoutingError("Route geometry has fewer than 2 points")

        return result
