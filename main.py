"""
Trace replay tool.

Feeds a recorded JSON-lines trace through a tracking session and prints the
activity summary.

    python main.py run.jsonl
    python main.py run.jsonl --osrm-url http://localhost:5000 --json
"""

import sys
import json
import logging
import argparse
from typing import List, Optional

import config
from trek_core.proto import ActivityLabel, ActivitySummary, RawFix
from trek_core.localization import FusionConfig, SessionConfig, TrackingSession
from trek_core.domain import OSRMRouter, RefinementConfig, TransportMode
from trek_core.io import TraceFormatError, load_trace
from trek_core.metrics import MetricsCollector

logging.basicConfig(
    level=getattr(logging, config.LOGGING_CONFIG["level"]),
    format=config.LOGGING_CONFIG["format"]
)
logger = logging.getLogger(__name__)


def build_session(
    session_id: str,
    metrics: MetricsCollector,
    osrm_url: Optional[str] = None,
    transport_mode: Optional[str] = None,
) -> TrackingSession:
    """
    Create a session from the module-level configuration.

    Args:
        session_id: Session identifier
        metrics: Collector for the session and its router
        osrm_url: Routing service, overrides ROUTING_CONFIG
        transport_mode: Transport mode value, overrides ROUTING_CONFIG
    """
    routing = config.ROUTING_CONFIG
    refinement = config.REFINEMENT_CONFIG
    session_cfg = config.SESSION_CONFIG

    osrm_url = osrm_url or routing["osrm_url"]
    mode = TransportMode(transport_mode or routing["transport_mode"])

    router = None
    if osrm_url:
        router = OSRMRouter(osrm_url, timeout_s=routing["timeout_s"], metrics=metrics)

    session_config = SessionConfig(
        fusion_config=FusionConfig(
            max_dt_s=session_cfg["max_dt_s"],
            reseed_on_gap=session_cfg["reseed_on_gap"],
        ),
        refinement_config=RefinementConfig(
            simplify_tolerance_m=refinement["simplify_tolerance_m"],
            smoothing_window=refinement["smoothing_window"],
            chunk_size=refinement["chunk_size"],
            chunk_timeout_s=refinement["chunk_timeout_s"],
            transport_mode=mode,
        ),
        imu_pairing_window_s=session_cfg["imu_pairing_window_s"],
        motion_buffer_size=session_cfg["motion_buffer_size"],
    )

    return TrackingSession(session_id, session_config, router=router, metrics=metrics)


def replay(session: TrackingSession, records: List) -> ActivitySummary:
    """Feed records in file order and finalize over the fix time span."""
    first_t: Optional[float] = None
    last_t: Optional[float] = None

    for record in records:
        if isinstance(record, ActivityLabel):
            session.set_motion_activity(record)
            continue

        if isinstance(record, RawFix):
            first_t = record.timestamp if first_t is None else first_t
            last_t = record.timestamp

        session.accept(record)

    duration = (last_t - first_t) if first_t is not None else 0.0
    return session.finalize(duration)


def print_summary(summary: ActivitySummary):
    """Print human-readable activity summary."""
    pace = summary.avg_pace_s_per_km
    cadence = summary.avg_cadence

    print("\n" + "=" * 60)
    print("  ACTIVITY SUMMARY")
    print("=" * 60)
    print(f"  Activity:          {summary.activity_label.value}")
    print(f"  Duration:          {summary.duration_s:.0f} s")
    print(f"  Raw distance:      {summary.raw_distance_m:.1f} m")
    print(f"  Matched distance:  {summary.matched_distance_m:.1f} m")
    print(f"  Avg pace:          {pace:.0f} s/km" if pace else "  Avg pace:          -")
    print(f"  Avg confidence:    {summary.avg_confidence:.2f}")
    print(f"  Anomalies:         {summary.anomaly_count}")
    print(f"  Steps:             {summary.steps}")
    print(f"  Avg cadence:       {cadence:.2f} steps/s" if cadence else "  Avg cadence:       -")
    print(f"  Path points:       {len(summary.fused_path)} fused, {len(summary.matched_path)} matched")
    print("=" * 60)


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point."""
    parser = argparse.ArgumentParser(description='Replay a sensor trace through a tracking session')
    parser.add_argument('trace', type=str,
                        help='JSON-lines trace file')
    parser.add_argument('--osrm-url', type=str, default=None,
                        help='OSRM-compatible routing service for route-snapping')
    parser.add_argument('--mode', type=str, default=None,
                        choices=[m.value for m in TransportMode],
                        help='Transport mode requested from the router')
    parser.add_argument('--json', action='store_true',
                        help='Print the summary as JSON')
    parser.add_argument('--metrics', action='store_true',
                        help='Print diagnostic counters')
    parser.add_argument('--debug', '-d', action='store_true',
                        help='Enable debug logging')

    args = parser.parse_args(argv)

    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        records = load_trace(args.trace)
    except (OSError, TraceFormatError) as e:
        logger.error(f"Cannot read trace {args.trace}: {e}")
        return 1

    metrics = MetricsCollector()
    session = build_session(args.trace, metrics, osrm_url=args.osrm_url, transport_mode=args.mode)
    summary = replay(session, records)

    if args.json:
        payload = summary.to_dict()
        if args.metrics:
            payload["metrics"] = metrics.snapshot()
        print(json.dumps(payload, indent=2))
    else:
        print_summary(summary)
        if args.metrics:
            print(metrics.format_summary())

    return 0


if __name__ == "__main__":
    sys.exit(main())
