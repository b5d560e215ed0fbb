"""Command-line entry points for running curriculum training."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
import sys

# Allow `python cli/main.py ...` execution from IDEs by adding repo root to sys.path.
if __package__ in {None, ""}:
    repo_root = Path(__file__).resolve().parents[1]
    if str(repo_root) not in sys.path:
        sys.path.insert(0, str(repo_root))

from configs.loader import ConfigLoader, TrainingConfig
from data.logger import TrainingLogger
from main import build_components, run_headless


def _run_single(config: TrainingConfig, db_path: Path, ticks: int, auto_accept: bool) -> dict[str, object]:
    logger = TrainingLogger(db_path)
    try:
        orchestrator = build_components(config=config, logger=logger)
        try:
            executed = run_headless(orchestrator, ticks=ticks, auto_accept=auto_accept)
            levels = {genre.value: progress.to_dict() for genre, progress in orchestrator.levels().items()}
            run_id = orchestrator.run_id
        finally:
            orchestrator.close()
    finally:
        logger.close()
    if run_id is None:
        raise RuntimeError("Expected run id when logger is configured.")
    return {"run_id": run_id, "ticks": executed, "levels": levels}


def run_cli(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="arcade-curriculum")
    parser.add_argument("--log-level", default="INFO")
    sub = parser.add_subparsers(dest="command", required=True)

    run_cmd = sub.add_parser("run")
    run_cmd.add_argument("--config", default="configs/default_training.yaml")
    run_cmd.add_argument("--ticks", type=int, default=10_000)
    run_cmd.add_argument("--db", default="training_runs.db")
    run_cmd.add_argument("--auto-accept", action="store_true")

    events_cmd = sub.add_parser("events")
    events_cmd.add_argument("--db", default="training_runs.db")
    events_cmd.add_argument("--run")
    events_cmd.add_argument("--genre")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "run":
        if args.ticks <= 0:
            parser.error("--ticks must be > 0")
        config = ConfigLoader.load(args.config)
        summary = _run_single(config, Path(args.db), args.ticks, args.auto_accept)
        print(json.dumps(summary, sort_keys=True))
        return 0

    if args.command == "events":
        logger = TrainingLogger(Path(args.db))
        try:
            run_id = args.run or logger.latest_run_id()
            if run_id is None:
                raise RuntimeError(f"No training runs recorded in {args.db}.")
            for row in logger.fetch_level_events(run_id, genre=args.genre):
                print(json.dumps(row, sort_keys=True))
        finally:
            logger.close()
        return 0

    parser.print_help()
    return 1


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
