"""IdleWatch application entry point.

Supports two modes:
  - Monitor mode (default): watches for idle/active transitions until Ctrl-C,
    then prints the session report
  - Report mode: summarises an existing event log per day

Usage:
    python -m idlewatch.main                      # monitor mode
    python -m idlewatch.main --threshold 120      # idle after two minutes
    python -m idlewatch.main --report events.log  # per-day report of a log
"""

import argparse
import logging
from datetime import timedelta

from idlewatch.core.config import get_default_config_path, load_config, monitor_settings
from idlewatch.core.errors import InvalidConfiguration, LogParseError, SchedulingFailure
from idlewatch.reporting.formatter import TextFormatter
from idlewatch.reporting.log_parser import build_timeline


def build_parser() -> argparse.ArgumentParser:
    """Build and return the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="idlewatch",
        description="IdleWatch: system idle monitor and activity report",
    )
    parser.add_argument(
        "--report",
        metavar="LOGFILE",
        help="Print a per-day summary of an event log and exit",
    )
    parser.add_argument(
        "--config",
        metavar="PATH",
        help="Path to config.json (default: platform data directory)",
    )
    parser.add_argument(
        "--threshold",
        type=float,
        metavar="SECONDS",
        help="Idle threshold in seconds (overrides config)",
    )
    parser.add_argument(
        "--min-minutes",
        type=float,
        metavar="N",
        help="Hide report entries of N minutes or less (overrides config)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    return parser


def _print_log_report(path: str, min_duration: timedelta) -> None:
    """Parse the event log at *path* and print its per-day summary."""
    with open(path, "r", encoding="utf-8") as fh:
        timeline = build_timeline(fh)
    print(TextFormatter.format_days(timeline.durations(), min_duration), end="")


def _run_monitor(config: dict) -> None:
    """Run the idle monitor until interrupted, then print the session report."""
    # Imported here so report mode never touches platform modules.
    from idlewatch.app import IdleWatchApp

    app = IdleWatchApp(config)
    app.run_forever()
    print(app.report(), end="")


def main(args: list[str] | None = None) -> None:
    """Entry point for IdleWatch.

    When *args* is ``None`` the arguments are read from ``sys.argv``.
    """
    parser = build_parser()
    parsed = parser.parse_args(args)

    logging.basicConfig(
        level=logging.DEBUG if parsed.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    config_path = parsed.config or get_default_config_path()
    config = load_config(str(config_path))
    if parsed.threshold is not None:
        config["idle_threshold_seconds"] = parsed.threshold
    if parsed.min_minutes is not None:
        config["report_min_minutes"] = parsed.min_minutes
    min_duration = timedelta(minutes=config.get("report_min_minutes", 5))

    if parsed.report:
        try:
            _print_log_report(parsed.report, min_duration)
        except (OSError, UnicodeDecodeError) as exc:
            parser.exit(1, f"idlewatch: cannot read {parsed.report}: {exc}\n")
        except LogParseError as exc:
            parser.exit(1, f"idlewatch: {exc}\n")
        return

    try:
        monitor_settings(config)
    except InvalidConfiguration as exc:
        parser.error(str(exc))

    try:
        _run_monitor(config)
    except SchedulingFailure as exc:
        parser.exit(1, f"idlewatch: {exc}\n")


if __name__ == "__main__":
    main()
