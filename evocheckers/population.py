"""
Population of AI players and the evolutionary operators applied to it.

One generation: reset stats, build matchups, play the games, compute
fitness, record the best player, evolve, and inject diversity when the
population has stagnated.
"""
from __future__ import annotations

import logging
from typing import List, Optional, Tuple

import numpy as np

from .config import TrainingConfig
from .match import GameOutcome, GameTask, ParallelGameRunner, run_games_sequential
from .player import AIPlayer
from .types import PieceColor

logger = logging.getLogger(__name__)

# Matchup = (player index, opponent index); Scheduled = (red index, black index, seed)
Matchup = Tuple[int, int]
ScheduledGame = Tuple[int, int, int]

_SEED_BOUND = 2 ** 63 - 1


class Population:
    def __init__(self, config: TrainingConfig, rng: np.random.Generator,
                 players: Optional[List[AIPlayer]] = None) -> None:
        self.config = config
        self.rng = rng
        self.players: List[AIPlayer] = players if players is not None else [
            AIPlayer.random(config.layer_sizes, rng, name=f"P{i}")
            for i in range(config.population_size)
        ]
        self.generation: int = 0
        self.best: Optional[AIPlayer] = None
        self.historical_best: float = 0.0
        self.stagnant: int = 0
        self.last_mutation_rate: float = config.mutation_rate

    def __len__(self) -> int:
        return len(self.players)

    # ----------------------------
    # Ranking
    # ----------------------------
    def ranked_indices(self) -> List[int]:
        """Indices by fitness, best first. Equal fitness keeps list order."""
        return sorted(range(len(self.players)), key=lambda i: -self.players[i].fitness)

    def reset_stats(self) -> None:
        for player in self.players:
            player.stats.reset()

    # ----------------------------
    # Tournament
    # ----------------------------
    def build_matchups(self) -> List[Matchup]:
        """
        Each player draws min(opponents_per_player, N - 1) opponents.

        Once a generation has been scored, an opponent is drawn from the
        players ranked within `rank_window` of this one with probability
        `rank_bias`, otherwise from the whole population. A draw that lands
        on the player itself is skipped.
        """
        n = len(self.players)
        draws = min(self.config.opponents_per_player, n - 1)
        order = self.ranked_indices()
        rank_of = {idx: r for r, idx in enumerate(order)}
        window = self.config.rank_window
        matchups: List[Matchup] = []
        for i in range(n):
            for _ in range(draws):
                if self.generation > 0 and self.rng.random() < self.config.rank_bias:
                    r = rank_of[i]
                    nearby = [j for j in order[max(0, r - window):r + window + 1] if j != i]
                    if not nearby:
                        continue
                    j = nearby[int(self.rng.integers(len(nearby)))]
                else:
                    j = int(self.rng.integers(n))
                if j == i:
                    continue
                matchups.append((i, j))
        return matchups

    def schedule_games(self, matchups: List[Matchup]) -> List[ScheduledGame]:
        """Expand matchups into games with alternating colors and one seed per game."""
        games: List[ScheduledGame] = []
        for i, j in matchups:
            for g in range(self.config.games_per_pair):
                red, black = (i, j) if g % 2 == 0 else (j, i)
                games.append((red, black, int(self.rng.integers(_SEED_BOUND))))
        return games

    def play_games(self, games: List[ScheduledGame],
                   runner: Optional[ParallelGameRunner] = None) -> List[GameOutcome]:
        tasks: List[GameTask] = [
            (self.players[r].network, self.players[b].network, seed,
             self.config.max_moves_per_game, self.config.explore_rate)
            for r, b, seed in games
        ]
        if runner is not None and len(tasks) > 1:
            return runner.run_games(tasks)
        return run_games_sequential(tasks)

    def apply_outcomes(self, games: List[ScheduledGame], outcomes: List[GameOutcome]) -> None:
        """Merge per-game tallies into player stats in schedule order."""
        for (r, b, _), outcome in zip(games, outcomes):
            self.players[r].stats.record_game(outcome.red, outcome.result_for(PieceColor.RED))
            self.players[b].stats.record_game(outcome.black, outcome.result_for(PieceColor.BLACK))

    def run_tournament(self, runner: Optional[ParallelGameRunner] = None) -> List[GameOutcome]:
        self.reset_stats()
        games = self.schedule_games(self.build_matchups())
        outcomes = self.play_games(games, runner)
        self.apply_outcomes(games, outcomes)
        logger.debug("generation %d: %d games played", self.generation + 1, len(outcomes))
        return outcomes

    # ----------------------------
    # Fitness
    # ----------------------------
    def compute_fitness(self) -> None:
        for player in self.players:
            player.calculate_fitness(self.config.fitness)

    def record_best(self) -> bool:
        """Track the best player. Returns True when the historical best improved."""
        top = self.players[self.ranked_indices()[0]]
        self.best = top.clone()
        self.best.stats = top.stats
        if top.fitness > self.historical_best:
            self.historical_best = top.fitness
            self.stagnant = 0
            return True
        self.stagnant += 1
        return False

    # ----------------------------
    # Evolution
    # ----------------------------
    def tournament_select(self) -> AIPlayer:
        n = len(self.players)
        k = min(self.config.tournament_size, n)
        contestants = self.rng.choice(n, size=k, replace=False)
        winner = max(contestants, key=lambda i: self.players[int(i)].fitness)
        return self.players[int(winner)]

    def adaptive_mutation_rate(self, parent_fitness: float, best_fitness: float) -> float:
        """Mutate harder when parents lag the leader and when progress has stalled."""
        rate = self.config.mutation_rate
        if best_fitness > 0:
            rate += 0.15 * (1.0 - parent_fitness / best_fitness)
        threshold = self.config.mutation_stagnation_threshold
        if self.stagnant > threshold:
            rate += 0.05 * (self.stagnant / float(threshold))
        return min(rate, self.config.max_mutation_rate)

    def evolve(self) -> None:
        """Replace the population: elites cloned unchanged, the rest bred."""
        n = len(self.players)
        ranked = [self.players[i] for i in self.ranked_indices()]
        elite_count = min(self.config.elite_count, n)
        best_fitness = ranked[0].fitness

        next_gen: List[AIPlayer] = [p.clone() for p in ranked[:elite_count]]
        rates: List[float] = []
        while len(next_gen) < n:
            a = self.tournament_select()
            b = self.tournament_select()
            rate = self.adaptive_mutation_rate((a.fitness + b.fitness) / 2.0, best_fitness)
            child = a.crossover(b, self.rng)
            child.mutate(rate, self.rng)
            rates.append(rate)
            next_gen.append(child)

        for i, player in enumerate(next_gen):
            player.name = f"P{i}"
        self.last_mutation_rate = float(np.mean(rates)) if rates else 0.0
        self.players = next_gen
        self.generation += 1

    def inject_diversity(self) -> bool:
        """
        After `stagnation_threshold` stagnant generations, replace the weakest
        band with fresh evaluators and mutate the next band heavily. Elites
        are left alone.
        """
        if self.stagnant < self.config.stagnation_threshold:
            return False
        n = len(self.players)
        elite_count = min(self.config.elite_count, n)
        band = max(1, int(round(n * self.config.diversity_fraction)))
        ranked = self.ranked_indices()
        candidates = ranked[elite_count:][::-1]
        weakest = candidates[:band]
        next_weakest = candidates[band:2 * band]

        for i in weakest:
            self.players[i] = AIPlayer.random(self.config.layer_sizes, self.rng, name=f"P{i}")
        for i in next_weakest:
            self.players[i].mutate(self.config.diversity_mutation_rate, self.rng)
        logger.info("Diversity injected after %d stagnant generations: %d replaced, %d mutated",
                    self.stagnant, len(weakest), len(next_weakest))
        self.stagnant = 0
        return True
