"""Command-line argument parsing for the DORA metrics collector."""

from __future__ import annotations

import argparse
from datetime import date
from typing import Optional, Sequence

from .dates import parse_reference_date
from .errors import InvalidArgumentError


def _iso_date(value: str) -> date:
    """Parse and validate a ``YYYY-MM-DD`` CLI value.

    Raises:
        argparse.ArgumentTypeError: If value is not an ISO calendar date.
    """
    try:
        return parse_reference_date(value)
    except InvalidArgumentError as exc:
        raise argparse.ArgumentTypeError("must be a date in YYYY-MM-DD format") from exc


def _add_date_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "date",
        nargs="?",
        type=_iso_date,
        default=None,
        help="Reference date in YYYY-MM-DD format (default: today, UTC).",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dora-metrics",
        description=(
            "Compute DORA and engineering KPIs (deployments, lead time, uptime, "
            "recovery time, epic coverage, bugs, Metabase KPIs)."
        ),
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )

    commands = parser.add_subparsers(dest="command", required=True, metavar="COMMAND")

    kpi = commands.add_parser("kpi", help="Single value of a Metabase question.")
    kpi.add_argument("question_id", help="Metabase question (card) id.")
    _add_date_argument(kpi)

    for name, help_text in (
        ("lead-time", "Median business days from In Progress to Done, trailing 30 days."),
        ("epic-coverage", "Percentage of done issues linked to the configured epic, trailing 30 days."),
        ("uptime", "Pingdom uptime percentage across checks, trailing 30 days."),
        ("recovery-time", "Mean Pingdom outage duration in minutes, trailing 30 days."),
        ("deployments", "Deployments to the target environment in the month of the date."),
    ):
        _add_date_argument(commands.add_parser(name, help=help_text))

    bugs = commands.add_parser("bugs", help="Bugs created in a month of the current year.")
    bugs.add_argument(
        "month",
        nargs="?",
        default=None,
        help="Three-letter month abbreviation, any case (default: current month).",
    )

    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments for metric computation.

    Returns:
        Parsed CLI arguments containing the command and its date, question id
        or month argument.
    """
    return build_parser().parse_args(argv)
