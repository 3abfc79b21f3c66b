"""
Command line for generating synthetic app start traces.

    app-start-tracing simulate --backend fake --screen MainActivity --attempts 3

Drives a StartupTraceTracker through complete startups on a manual clock, so every phase takes
exactly as long as requested. With the fake backend the recorded traces are printed as JSON.
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from app_start_tracing.clock import ManualClock
from app_start_tracing.constants import UI_LOAD_OPERATION
from app_start_tracing.core.config import TrackerConfig, get_telemetry_config
from app_start_tracing.core.loggers import logger_name, make_logger, silence_chatty_logger
from app_start_tracing.domain.entities import SpanStatus
from app_start_tracing.infra.gateways import FakeTelemetryGateway, get_telemetry_gateway
from app_start_tracing.infra.gateways.otel_telemetry_gateway import flush_otel_providers
from app_start_tracing.lifecycle import LifecycleRegistry, ManualFrameScheduler
from app_start_tracing.tracker import StartupTraceTracker

logger = make_logger(logger_name(fallback_name="app_start_tracing.cli"))


def simulate(args: argparse.Namespace) -> int:
    tracker_config = TrackerConfig(backend=args.backend)
    gateway = get_telemetry_gateway(tracker_config, get_telemetry_config())

    if args.backend == "datadog":
        # No agent is expected when simulating locally
        silence_chatty_logger("ddtrace.internal.writer", quieter=logging.FATAL)

    if args.ambient and not isinstance(gateway, FakeTelemetryGateway):
        logger.error("--ambient is only supported with the fake backend")
        return 2

    clock = ManualClock()
    frames = ManualFrameScheduler()
    lifecycle = LifecycleRegistry()
    tracker = StartupTraceTracker(gateway, frames, lifecycle, clock=clock, config=tracker_config)

    ambient = None
    if args.ambient:
        ambient = gateway.start_ambient_transaction("ambient", UI_LOAD_OPERATION)

    for _ in range(args.attempts):
        process_start_ms = clock()
        clock.advance(args.process_init_ms)
        tracker.begin(process_start_ms=process_start_ms, now_ms=clock())
        clock.advance(args.app_init_ms)
        lifecycle.dispatch_screen_created(args.screen)
        clock.advance(args.screen_create_ms)
        lifecycle.dispatch_screen_visible(args.screen)
        clock.advance(args.first_frame_ms)
        frames.render_frame()
        clock.advance(args.pause_ms)

    if ambient is not None:
        ambient.finish(SpanStatus.OK)

    if isinstance(gateway, FakeTelemetryGateway):
        json.dump(gateway.dump(), sys.stdout, indent=2)
        sys.stdout.write("\n")
    elif args.backend == "otel":
        flush_otel_providers()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="App start tracing tools")
    subparsers = parser.add_subparsers(dest="command", required=True)

    sim = subparsers.add_parser("simulate", help="Emit synthetic app start traces")
    sim.add_argument("--backend", choices=("fake", "otel", "datadog"), default="fake")
    sim.add_argument("--screen", type=str, default="MainActivity")
    sim.add_argument("--attempts", type=int, default=1, help="First is cold, the rest are warm")
    sim.add_argument("--ambient", action="store_true", help="Start with a span already active")
    sim.add_argument("--process-init-ms", type=float, default=50.0)
    sim.add_argument("--app-init-ms", type=float, default=150.0)
    sim.add_argument("--screen-create-ms", type=float, default=10.0)
    sim.add_argument("--first-frame-ms", type=float, default=90.0)
    sim.add_argument("--pause-ms", type=float, default=1000.0, help="Gap between attempts")
    sim.set_defaults(func=simulate)
    return parser


def entrypoint(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(entrypoint())
