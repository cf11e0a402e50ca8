"""
CLI command handlers for shadow permission analysis.

Provides commands for:
- Running the full analysis over an entity snapshot
- Listing per-entity risk assessments
- Showing the time-to-shadow timeline
"""

from __future__ import annotations

import argparse
import json
import logging
from datetime import datetime
from typing import Any

from umbra.config import EngineConfig, load_config_from_env
from umbra.engine import AnalysisResult, ShadowAnalyzer
from umbra.errors import UmbraError
from umbra.loader import load_entities
from umbra.models import RiskAssessment, Severity, parse_timestamp

logger = logging.getLogger(__name__)

LEVEL_CHOICES = [s.value for s in Severity]


def add_common_arguments(parser: argparse.ArgumentParser) -> None:
    """Add the snapshot, config, reference time and format arguments."""
    parser.add_argument(
        "snapshot",
        help="Path to a JSON or YAML entity snapshot",
    )
    parser.add_argument(
        "--config",
        help="Path to an engine configuration file (default: from environment)",
    )
    parser.add_argument(
        "--now",
        help="Reference time as ISO-8601 (default: current time)",
    )
    parser.add_argument(
        "--format",
        choices=["table", "json"],
        default="table",
        help="Output format (default: table)",
    )


def add_shadow_parsers(subparsers: Any) -> None:
    """Add the analyze, assess and timeline commands to the CLI."""
    analyze_parser = subparsers.add_parser(
        "analyze",
        help="Run shadow permission analysis on a snapshot",
        description="Detect, score and forecast shadow permissions for a fleet.",
    )
    add_common_arguments(analyze_parser)
    analyze_parser.add_argument(
        "--previous-score",
        type=float,
        help="Previous overall security score for trend calculation",
    )
    analyze_parser.add_argument(
        "--no-timeline",
        action="store_true",
        help="Skip the time-to-shadow projection",
    )

    assess_parser = subparsers.add_parser(
        "assess",
        help="Show per-entity risk assessments",
        description="Score each entity and list its risk level and findings.",
    )
    add_common_arguments(assess_parser)
    assess_parser.add_argument(
        "--level",
        choices=LEVEL_CHOICES,
        help="Only show entities at this risk level",
    )

    timeline_parser = subparsers.add_parser(
        "timeline",
        help="Show the time-to-shadow timeline",
        description="Predict when permissions will become shadow risks.",
    )
    add_common_arguments(timeline_parser)
    timeline_parser.add_argument(
        "--severity",
        choices=LEVEL_CHOICES,
        help="Only show events of this severity",
    )
    timeline_parser.add_argument(
        "--within-days",
        type=int,
        help="Only show events due within this many days",
    )


def _load_config(args: argparse.Namespace) -> EngineConfig:
    config_path = getattr(args, "config", None)
    if config_path:
        return EngineConfig.from_file(config_path)
    return load_config_from_env()


def _reference_time(args: argparse.Namespace) -> datetime | None:
    value = getattr(args, "now", None)
    if not value:
        return None
    parsed = parse_timestamp(value)
    if parsed is None:
        raise UmbraError(f"Invalid --now value: {value}")
    return parsed


def _run_analysis(
    args: argparse.Namespace,
    previous_score: float | None = None,
    include_timeline: bool = True,
) -> AnalysisResult:
    config = _load_config(args)
    entities = load_entities(args.snapshot)
    analyzer = ShadowAnalyzer(config)
    return analyzer.analyze(
        entities,
        now=_reference_time(args),
        previous_score=previous_score,
        include_timeline=include_timeline,
    )


def cmd_analyze(args: argparse.Namespace) -> int:
    """
    Run the full analysis and print the security score.

    Returns:
        Exit code (0 success, 1 error)
    """
    output_format = getattr(args, "format", "table")

    try:
        result = _run_analysis(
            args,
            previous_score=getattr(args, "previous_score", None),
            include_timeline=not getattr(args, "no_timeline", False),
        )
    except UmbraError as e:
        logger.error(f"Analysis failed: {e}")
        print(f"Error: {e}")
        return 1

    if output_format == "json":
        print(json.dumps(result.to_dict(), indent=2))
        return 0

    breakdown = result.breakdown
    print("")
    print("Shadow Permission Analysis")
    print("=" * 60)
    print(f"Entities analyzed: {result.entities_analyzed}")
    print(f"Security Score: {breakdown.overall_score}/100 ({breakdown.risk_level.value})")
    if breakdown.trend is not None:
        sign = "+" if breakdown.trend >= 0 else ""
        print(f"Trend: {sign}{breakdown.trend} (previous {breakdown.previous_score})")
    print("")
    print("Score Breakdown:")
    print(f"  High risk deduction:    -{breakdown.high_risk_deduction} "
          f"({breakdown.high_findings} findings)")
    print(f"  Medium risk deduction:  -{breakdown.medium_risk_deduction} "
          f"({breakdown.medium_findings} findings)")
    print(f"  User activity impact:   {breakdown.user_activity_impact:+} "
          f"({breakdown.active_entities}/{breakdown.total_entities} active)")
    print("")

    print("Entities by Risk Level:")
    for level in LEVEL_CHOICES:
        print(f"  {level:<10} {breakdown.risk_distribution.get(level, 0)}")
    print("")

    findings_by_type = {k: v for k, v in result.findings_by_type.items() if v}
    if findings_by_type:
        print("Shadow Permissions by Type:")
        for shadow_type, count in sorted(findings_by_type.items()):
            print(f"  {shadow_type:<24} {count}")
        print("")
    else:
        print("No shadow permissions found.")
        print("")

    top = sorted(result.assessments, key=lambda a: (-a.score, a.entity_name))[:10]
    top = [a for a in top if a.score > 0]
    if top:
        print("Highest Risk Entities:")
        _print_assessment_table(top)
        print("")

    if breakdown.recommendations:
        print("Recommendations:")
        for recommendation in breakdown.recommendations:
            print(f"  - {recommendation}")
        print("")

    if result.timeline is not None:
        summary = result.timeline.summary()
        print("Time-to-Shadow:")
        print(f"  Next 30 days:  {summary.next_30_days}")
        print(f"  Next 90 days:  {summary.next_90_days}")
        print(f"  Next 180 days: {summary.next_180_days}")
        print(f"  Total:         {summary.total_events}")

    return 0


def cmd_assess(args: argparse.Namespace) -> int:
    """
    List per-entity risk assessments.

    Returns:
        Exit code (0 success, 1 error)
    """
    output_format = getattr(args, "format", "table")
    level = getattr(args, "level", None)

    try:
        result = _run_analysis(args, include_timeline=False)
    except UmbraError as e:
        logger.error(f"Assessment failed: {e}")
        print(f"Error: {e}")
        return 1

    assessments = result.assessments
    if level:
        assessments = result.assessments_at_level(Severity.from_string(level))

    if output_format == "json":
        print(json.dumps([a.to_dict() for a in assessments], indent=2))
        return 0

    if not assessments:
        print("No entities match the given filters.")
        return 0

    print("")
    _print_assessment_table(assessments)
    print("")
    print(f"Total: {len(assessments)} entities")
    return 0


def cmd_timeline(args: argparse.Namespace) -> int:
    """
    Show the time-to-shadow timeline.

    Returns:
        Exit code (0 success, 1 error)
    """
    output_format = getattr(args, "format", "table")
    severity = getattr(args, "severity", None)
    within_days = getattr(args, "within_days", None)

    try:
        if within_days is not None and within_days < 0:
            raise UmbraError("--within-days must not be negative")
        result = _run_analysis(args, include_timeline=True)
    except UmbraError as e:
        logger.error(f"Timeline projection failed: {e}")
        print(f"Error: {e}")
        return 1

    timeline = result.timeline
    events = timeline.events_by_severity(severity) if severity else timeline.events
    if within_days is not None:
        upcoming = {e.event_id for e in timeline.events_within_days(within_days)}
        events = [e for e in events if e.event_id in upcoming]

    if output_format == "json":
        output = {
            "generated_at": timeline.generated_at.isoformat(),
            "summary": timeline.summary().to_dict(),
            "events": [e.to_dict() for e in events],
        }
        print(json.dumps(output, indent=2))
        return 0

    if not events:
        print("No upcoming shadow permission events.")
        return 0

    print("")
    print("Time-to-Shadow Timeline:")
    print("-" * 110)
    print(f"{'Date':<12} {'Days':<6} {'Severity':<9} {'Entity':<30} {'Event':<18} "
          f"{'Item':<22} {'Conf'}")
    print("-" * 110)
    for event in events:
        name = event.entity_name
        name = name[:27] + "..." if len(name) > 30 else name
        item = event.item[:19] + "..." if len(event.item) > 22 else event.item
        print(f"{event.estimated_date.strftime('%Y-%m-%d'):<12} {event.days_until:<6} "
              f"{event.severity.value:<9} {name:<30} {event.event_type.value:<18} "
              f"{item:<22} {event.confidence}%")
    print("")
    print(f"Total: {len(events)} events")
    return 0


def _print_assessment_table(assessments: list[RiskAssessment]) -> None:
    print("-" * 100)
    print(f"{'Entity':<35} {'Type':<6} {'Provider':<9} {'Score':<7} {'Dash':<6} "
          f"{'Level':<9} {'Findings'}")
    print("-" * 100)
    for assessment in assessments:
        name = assessment.entity_name
        name = name[:32] + "..." if len(name) > 35 else name
        print(f"{name:<35} {assessment.entity_type.value:<6} "
              f"{assessment.provider.value:<9} {assessment.score:<7} "
              f"{assessment.dashboard_score:<6} {assessment.risk_level.value:<9} "
              f"{len(assessment.shadow_permissions)}")
