"""Application entry point for the DORA metrics collector."""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import date, datetime, timezone
from typing import Callable, Optional, Sequence, Union

from .cli import parse_args
from .config import load_config
from .errors import ConfigurationError, InvalidArgumentError, MalformedResponseError, SourceUnavailableError
from .metrics import MetricService

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_UNEXPECTED = 1
EXIT_CONFIGURATION = 2
EXIT_INVALID_ARGUMENT = 3
EXIT_SOURCE = 4


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def run_metric(args: argparse.Namespace, service: MetricService, today: date) -> Union[int, float]:
    """Dispatch a parsed command to the matching metric."""
    if args.command == "bugs":
        return service.bug_count(args.month, today)

    reference_date = args.date or today
    if args.command == "kpi":
        return service.kpi(args.question_id, reference_date)

    dispatch = {
        "lead-time": service.lead_time,
        "epic-coverage": service.epic_coverage,
        "uptime": service.uptime,
        "recovery-time": service.recovery_time,
        "deployments": service.deployments,
    }
    return dispatch[args.command](reference_date)


def orchestrate_metric(
    argv: Optional[Sequence[str]] = None,
    today: Callable[[], date] = utc_today,
) -> int:
    """Parse arguments, compute one metric and print its value.

    Returns:
        Process exit code: ``0`` on success, ``2`` for configuration errors,
        ``3`` for invalid arguments, ``4`` when a source is unavailable or
        returns a malformed response, ``1`` for anything unexpected. The
        month of ``bugs`` is checked by the metric, not by argparse, so an
        unknown month exits with ``3``; other usage errors exit through
        argparse with ``2``.
    """
    try:
        args = parse_args(argv)
        logging.basicConfig(
            level=logging.DEBUG if args.verbose else logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        service = MetricService(load_config())
        value = run_metric(args, service, today())
    except ConfigurationError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_CONFIGURATION
    except InvalidArgumentError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_INVALID_ARGUMENT
    except (SourceUnavailableError, MalformedResponseError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_SOURCE
    except Exception:
        logger.exception("Unexpected error while computing metric")
        return EXIT_UNEXPECTED

    print(value)
    return EXIT_OK


def main() -> int:
    return orchestrate_metric()


if __name__ == "__main__":
    raise SystemExit(main())
