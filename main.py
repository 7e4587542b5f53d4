"""Capacity Engine v1.0: CLI entry point."""

import argparse
import logging
from datetime import timedelta

from capacity_engine import EngineConfig, WindowConfig, analyze, format_summary
from capacity_engine.temporal import local_date, local_now


def parse_args():
    parser = argparse.ArgumentParser(description="Summarize capacity observations.")
    parser.add_argument("path", nargs="?", default="sample_observations.json",
                        help="JSON list of observations")
    parser.add_argument("--start", help="window start (YYYY-MM-DD), default: 90 days ago")
    parser.add_argument("--end", help="window end (YYYY-MM-DD), default: today")
    parser.add_argument("--minimum-days", type=int, default=90)
    parser.add_argument("--seed", help="patient ID seed")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser.parse_args()


if __name__ == "__main__":
    args = parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    cfg = EngineConfig()
    now = local_now(cfg.timezone)
    window = WindowConfig(
        window_start=args.start or local_date(now - timedelta(days=90)),
        window_end=args.end or local_date(now),
        minimum_days=args.minimum_days,
        patient_id_seed=args.seed,
    )

    result = analyze(args.path, window, cfg, now)
    print(format_summary(result))
