# Evolutionary training loop for the checkers players.
# Drives the population generation by generation, reports progress and
# persists checkpoints and the best evaluator.

from __future__ import annotations

import logging
import os
import pickle
import threading
import time
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, List, Optional

import numpy as np

from .config import DEFAULT_BEST_PATH, TrainingConfig, get_training_config
from .errors import ArchitectureMismatchError
from .match import GameOutcome, ParallelGameRunner
from .player import AIPlayer
from .population import Population

logger = logging.getLogger(__name__)


@dataclass
class GenerationStats:
    generation: int
    best_fitness: float
    average_fitness: float
    historical_best: float
    best_win_rate: float
    average_win_rate: float
    best_games_played: int
    stagnant_generations: int
    games_played: int = 0
    draws: int = 0
    mutation_rate: float = 0.0
    elapsed: float = 0.0


def generation_report(stats: GenerationStats) -> str:
    return (f"Gen {stats.generation:4d} | best {stats.best_fitness:7.2f} "
            f"(hist {stats.historical_best:7.2f}) | avg {stats.average_fitness:7.2f} | "
            f"win {100 * stats.best_win_rate:5.1f}% / avg {100 * stats.average_win_rate:5.1f}% | "
            f"games {stats.games_played:4d} draws {stats.draws:4d} | "
            f"mut {stats.mutation_rate:.3f} | stagnant {stats.stagnant_generations:3d} | "
            f"{stats.elapsed:.2f}s")


ProgressCallback = Callable[[GenerationStats], None]


class Trainer:
    """
    Owns the population, the random generator and the worker pool.

    pause(), resume() and stop() may be called from another thread. They
    take effect between generations; a generation in flight always finishes.
    """

    def __init__(self, config: Optional[TrainingConfig] = None) -> None:
        self.config: TrainingConfig = config or get_training_config()
        self.rng = np.random.default_rng(self.config.seed)
        self.population = Population(self.config, self.rng)
        self.history: List[GenerationStats] = []
        self._resume_event = threading.Event()
        self._resume_event.set()
        self._stop_event = threading.Event()

    # ----------------------------
    # Control
    # ----------------------------
    def pause(self) -> None:
        self._resume_event.clear()
        logger.info("Training paused")

    def resume(self) -> None:
        self._resume_event.set()
        logger.info("Training resumed")

    def stop(self) -> None:
        self._stop_event.set()
        self._resume_event.set()
        logger.info("Stop requested; finishing the current generation")

    @property
    def is_paused(self) -> bool:
        return not self._resume_event.is_set()

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    @property
    def best(self) -> Optional[AIPlayer]:
        return self.population.best

    # ----------------------------
    # Training
    # ----------------------------
    def run_generation(self, runner: Optional[ParallelGameRunner] = None) -> GenerationStats:
        start = time.time()
        pop = self.population
        outcomes = pop.run_tournament(runner)
        pop.compute_fitness()
        pop.record_best()
        stats = self._collect_stats(outcomes)
        pop.evolve()
        pop.inject_diversity()
        stats.mutation_rate = pop.last_mutation_rate
        stats.elapsed = time.time() - start
        self.history.append(stats)
        logger.info(generation_report(stats))
        return stats

    def run(self, generations: int, progress_callback: Optional[ProgressCallback] = None,
            best_path: Optional[str] = None) -> Optional[AIPlayer]:
        """Train for up to `generations` generations; returns the best player seen last."""
        use_pool = self.config.use_parallel and self.config.workers > 1
        runner = ParallelGameRunner(self.config.workers) if use_pool else None
        logger.info("Starting training: %d generations, population %d, %s",
                    generations, len(self.population),
                    f"{self.config.workers} workers" if use_pool else "sequential")
        try:
            for _ in range(generations):
                self._resume_event.wait()
                if self._stop_event.is_set():
                    break
                stats = self.run_generation(runner)
                if progress_callback:
                    progress_callback(stats)
                if self._stop_event.is_set():
                    break
        finally:
            if runner is not None:
                runner.close()

        if best_path:
            self.save_best(best_path)
        return self.population.best

    def _collect_stats(self, outcomes: List[GameOutcome]) -> GenerationStats:
        pop = self.population
        players = pop.players
        best = pop.best
        return GenerationStats(
            generation=pop.generation + 1,
            best_fitness=best.fitness if best else 0.0,
            average_fitness=float(np.mean([p.fitness for p in players])),
            historical_best=pop.historical_best,
            best_win_rate=best.stats.win_rate if best else 0.0,
            average_win_rate=float(np.mean([p.stats.win_rate for p in players])),
            best_games_played=best.stats.games_played if best else 0,
            stagnant_generations=pop.stagnant,
            games_played=len(outcomes),
            draws=sum(1 for o in outcomes if o.winner is None),
        )

    # ----------------------------
    # Persistence
    # ----------------------------
    def save_best(self, filepath: str = DEFAULT_BEST_PATH) -> bool:
        best = self.population.best
        if best is None:
            logger.warning("No generation finished yet; nothing to save")
            return False
        best.save(filepath)
        return True

    def save_checkpoint(self, checkpoint_path: str) -> None:
        """Save generation counters, history and every evaluator."""
        chk_dir = os.path.dirname(checkpoint_path)
        if chk_dir and not os.path.exists(chk_dir):
            os.makedirs(chk_dir, exist_ok=True)
        pop = self.population
        checkpoint_data: Dict[str, Any] = {
            'generation': pop.generation,
            'historical_best': pop.historical_best,
            'stagnant': pop.stagnant,
            'history': [asdict(s) for s in self.history],
            'networks': [p.network for p in pop.players],
            'best_network': pop.best.network if pop.best else None,
            'rng_state': self.rng.bit_generator.state,
            'config': self.config.model_dump(),
        }
        with open(checkpoint_path, 'wb') as f:
            pickle.dump(checkpoint_data, f)
        logger.info("Training checkpoint saved to: %s", checkpoint_path)

    def load_checkpoint(self, checkpoint_path: str) -> bool:
        """Resume from a checkpoint written by save_checkpoint."""
        if not os.path.exists(checkpoint_path):
            logger.warning("Checkpoint file not found: %s", checkpoint_path)
            return False
        with open(checkpoint_path, 'rb') as f:
            data = pickle.load(f)

        expected = self.config.layer_sizes
        for network in data['networks']:
            if network.layer_sizes != expected:
                raise ArchitectureMismatchError(expected, network.layer_sizes)

        pop = Population(self.config, self.rng,
                         [AIPlayer(n, name=f"P{i}") for i, n in enumerate(data['networks'])])
        pop.generation = data['generation']
        pop.historical_best = data['historical_best']
        pop.stagnant = data['stagnant']
        if data.get('best_network') is not None:
            pop.best = AIPlayer(data['best_network'], name="best")
        self.population = pop
        self.history = [GenerationStats(**s) for s in data.get('history', [])]
        self.rng.bit_generator.state = data['rng_state']
        logger.info("Training checkpoint loaded from: %s (generation %d)",
                    checkpoint_path, pop.generation)
        return True
