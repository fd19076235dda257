from __future__ import annotations

import argparse
import logging
import signal

from evocheckers.config import (
    DEFAULT_BEST_PATH,
    DEFAULT_CHECKPOINT_PATH,
    ensure_dirs,
    get_config,
    load_config_from_file,
    setup_logging,
)
from evocheckers.trainer import Trainer

logger = logging.getLogger("train")


def parse_args() -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Run evolutionary training for checkers players")
    ap.add_argument("--generations", type=int, default=100, help="Number of generations to run")
    ap.add_argument("--config", default=None, help="JSON config file (see EvoCheckersConfig)")
    ap.add_argument("--population", type=int, default=None, help="Population size")
    ap.add_argument("--mutation-rate", type=float, default=None, help="Base mutation rate")
    ap.add_argument("--elite-fraction", type=float, default=None, help="Share of elites kept unchanged")
    ap.add_argument("--opponents", type=int, default=None, help="Opponents per player per generation")
    ap.add_argument("--games-per-pair", type=int, default=None, help="Games per matchup")
    ap.add_argument("--max-moves", type=int, default=None, help="Move cap per game")
    ap.add_argument("--workers", type=int, default=None, help="Number of parallel workers")
    ap.add_argument("--no-parallel", action="store_true", help="Play all games in this process")
    ap.add_argument("--seed", type=int, default=None, help="Random seed")
    ap.add_argument("--best", default=DEFAULT_BEST_PATH, help="Best evaluator save path")
    ap.add_argument("--ckpt", default=DEFAULT_CHECKPOINT_PATH, help="Checkpoint save path")
    ap.add_argument("--resume", action="store_true", help="Resume from the checkpoint at --ckpt")
    return ap.parse_args()


def main() -> None:
    args = parse_args()
    config = load_config_from_file(args.config) if args.config else get_config()
    setup_logging(config.logging)
    ensure_dirs()

    overrides = {
        "population_size": args.population,
        "mutation_rate": args.mutation_rate,
        "elite_fraction": args.elite_fraction,
        "opponents_per_player": args.opponents,
        "games_per_pair": args.games_per_pair,
        "max_moves_per_game": args.max_moves,
        "workers": args.workers,
        "seed": args.seed,
    }
    training = {k: v for k, v in overrides.items() if v is not None}
    if args.no_parallel:
        training["use_parallel"] = False
    config.update_from_dict({"training": training})

    trainer = Trainer(config.training)
    if args.resume:
        trainer.load_checkpoint(args.ckpt)

    def request_stop(signum, frame) -> None:
        trainer.stop()

    signal.signal(signal.SIGINT, request_stop)

    try:
        trainer.run(args.generations, best_path=args.best)
    finally:
        trainer.save_checkpoint(args.ckpt)
    if trainer.stop_requested:
        logger.info("Training interrupted by user.")


if __name__ == "__main__":
    main()
