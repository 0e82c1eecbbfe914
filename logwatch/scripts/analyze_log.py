#!/usr/bin/env python3
"""Reconstruct sync history from Intune agent logs.

Usage:
  python -m logwatch.scripts.analyze_log IntuneMDMDaemon.log
  python -m logwatch.scripts.analyze_log a.log b.log --json
  python -m logwatch.scripts.analyze_log --local
"""
from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from logwatch.date_utils import format_duration, format_log_timestamp
from logwatch.errors import LogFormatError, LogReadError, LogSourceError
from logwatch.models import LogAnalysis, WARNING_PREFIX
from logwatch.parsers.error_codes import get_error_details
from logwatch.sources import load_local_logs, load_log_files


def _describe_error_code(code: str) -> str:
    details = get_error_details(code)
    if details is None:
        return code
    return f"{code} ({details.hexCode} {details.title})"


def _print_summary(analysis: LogAnalysis, show_entries: bool = False) -> None:
    print(f"Source: {analysis.sourceTitle}")
    print(f"Entries: {analysis.totalEntries}")
    print(f"Sync events: {analysis.totalSyncEvents} ({analysis.completedSyncs} complete, {analysis.failedSyncs} failed)")

    enrollment = analysis.enrollment
    if not enrollment.isEmpty:
        print("")
        print("Enrollment")
        for key, value in enrollment.model_dump().items():
            if value:
                print(f"  {key}: {value}")

    network = analysis.networkSummary
    if network is not None:
        print("")
        print(f"Network checks: {network.totalNetworkChecks} (no connection {network.noConnectionPercentage:.1f}%)")
        for name, pct in sorted(network.interfacePercentages.items()):
            print(f"  {name}: {pct:.1f}%")

    for idx, event in enumerate(analysis.syncEvents, start=1):
        end = format_log_timestamp(event.endTime) if event.endTime else "still running"
        print("")
        print(
            f"{idx:02d}. {event.eventType.value} {format_log_timestamp(event.startTime)} -> {end} "
            f"[{event.overallStatus.value}] policies={event.totalPolicies}"
        )
        if event.executionFrequencyFormatted:
            print(f"    frequency: {event.executionFrequencyFormatted}")
        for policy in event.policies:
            print(
                f"    {policy.status.value:<9} {policy.type.value:<7} {policy.displayName} "
                f"({format_duration(policy.duration)}, {policy.statusReason})"
            )
            if policy.appErrorCodes:
                print(f"      error codes: {', '.join(_describe_error_code(code) for code in policy.appErrorCodes)}")
            if show_entries:
                for entry in policy.entries:
                    print(f"      {entry.rawLine}")

    errors = [e for e in analysis.parseErrors if not e.startswith(WARNING_PREFIX)]
    if analysis.warnings:
        print("")
        for warning in analysis.warnings:
            print(warning)
    if errors:
        print("")
        print(f"Parse errors: {len(errors)}")
        for error in errors[:20]:
            print(f"  {error}")
        if len(errors) > 20:
            print(f"  ... {len(errors) - 20} more")


def main() -> int:
    parser = argparse.ArgumentParser(description="Reconstruct sync history from Intune agent logs")
    parser.add_argument("paths", nargs="*", help="Log files; several files are combined oldest first")
    parser.add_argument("--local", action="store_true", help="Analyze this device's agent logs")
    parser.add_argument("--json", action="store_true")
    parser.add_argument("--no-validate", action="store_true", help="Skip the format pre-check")
    parser.add_argument("--entries", action="store_true", help="Print raw lines for each policy")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    if not args.local and not args.paths:
        parser.error("give at least one log file or --local")

    try:
        if args.local:
            analysis = load_local_logs()
        else:
            analysis = load_log_files([Path(p) for p in args.paths], validate=not args.no_validate)
    except LogFormatError as exc:
        print(str(exc))
        return 1
    except (LogReadError, LogSourceError) as exc:
        print(f"Error: {exc}")
        return 1

    if args.json:
        payload = {
            "summary": analysis.summary(),
            "analysis": analysis.model_dump(mode="json"),
            "errorCodes": {code: d.model_dump() for code, d in analysis.error_code_details().items()},
        }
        print(json.dumps(payload, indent=2))
        return 0

    _print_summary(analysis, show_entries=args.entries)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
