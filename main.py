from __future__ import annotations

import argparse
import logging
import os
import signal
import sys
from datetime import datetime
from typing import Optional, Sequence

from tqdm import tqdm

from wara.collectors import ArmCollector
from wara.config import MAX_PARALLELISM, load_config
from wara.errors import WaraError
from wara.logging_config import setup_logging
from wara.orchestrator import JOURNAL_FILENAME, AssessmentOrchestrator
from wara.progress import ProgressCounts
from wara.storage import last_unit_id

logger = logging.getLogger("wara")


def _throttle_limit(value: str) -> int:
    limit = int(value)
    if not 1 <= limit <= MAX_PARALLELISM:
        raise argparse.ArgumentTypeError(f"throttle limit must be between 1 and {MAX_PARALLELISM}")
    return limit


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run a tenant-wide reliability assessment")
    parser.add_argument("--config", required=True, help="Path to the JSON configuration file")
    resume = parser.add_mutually_exclusive_group()
    resume.add_argument("--resume-from", default=None, help="Unit id to resume an interrupted run from")
    resume.add_argument(
        "--resume",
        action="store_true",
        help=f"Resume from the last unit recorded in <outputDirectory>/{JOURNAL_FILENAME}",
    )
    parser.add_argument(
        "--throttle-limit",
        type=_throttle_limit,
        default=None,
        help=f"Override maxDegreeOfParallelism (1-{MAX_PARALLELISM})",
    )
    parser.add_argument("--output-dir", default=None, help="Override outputDirectory from the config file")
    parser.add_argument("--log-level", default=None, help="Logging level (default: LOG_LEVEL or INFO)")
    parser.add_argument("--no-progress", action="store_true", help="Disable the progress bar")
    return parser


def main(argv: Optional[Sequence[str]] = None, collector=None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config).with_overrides(
            throttle_limit=args.throttle_limit,
            output_directory=args.output_dir,
        )
    except WaraError as exc:
        setup_logging(args.log_level)
        logger.error("invalid configuration: %s", exc)
        return 1

    transcript = os.path.join(
        config.output_directory, f"transcript_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"
    )
    setup_logging(args.log_level, log_file=transcript)

    resume_from = args.resume_from
    if args.resume:
        journal = os.path.join(config.output_directory, JOURNAL_FILENAME)
        resume_from = last_unit_id(journal)
        if resume_from is None:
            logger.warning("no journaled units in %s; starting from the first unit", journal)
        else:
            logger.info("resuming from unit %s, the last one recorded in %s", resume_from, journal)

    bar = None if args.no_progress else tqdm(desc="units", unit="unit", leave=True)

    def on_progress(counts: ProgressCounts) -> None:
        if bar is None:
            return
        bar.total = counts.total
        bar.update(1)
        bar.set_postfix(ok=counts.succeeded, failed=counts.failed)

    orchestrator = AssessmentOrchestrator(
        config,
        collector or ArmCollector(),
        on_progress=on_progress,
    )

    def _on_sigint(signum, frame) -> None:
        logger.warning("interrupt received: finishing running units, no new units will start")
        orchestrator.cancel()
        signal.signal(signal.SIGINT, signal.default_int_handler)

    previous = signal.signal(signal.SIGINT, _on_sigint)
    try:
        summary = orchestrator.run(resume_from=resume_from)
    except WaraError as exc:
        logger.error("assessment aborted: %s", exc)
        return 1
    finally:
        signal.signal(signal.SIGINT, previous)
        if bar is not None:
            bar.close()

    print(
        f"\nDONE: succeeded={summary.succeeded_count} failed={summary.failed_count} "
        f"total={summary.total_units}"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
