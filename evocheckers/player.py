"""
AI player: a neural evaluator plus the statistics it earns in a tournament.

Move choice is a single-ply evaluation. Each candidate is applied to a copy
of the board, the resulting position is scored by the network from the
mover's point of view, and a small hand-written bonus is added.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, fields
from enum import Enum
from typing import Dict, List, Optional, Sequence

import numpy as np

from .board import Board
from .config import FitnessWeights
from .features import encode_batch
from .moves import MoveValidator
from .network import NeuralNetwork
from .types import PIECES_PER_SIDE, Move, PieceColor

logger = logging.getLogger(__name__)

# Weight of the heuristic bonus relative to the network output
HEURISTIC_WEIGHT: float = 0.15

# Heuristic terms
CAPTURE_MAN_VALUE: float = 2.0
CAPTURE_KING_VALUE: float = 5.0
MULTI_CAPTURE_BONUS: float = 1.5
PROMOTION_BONUS: float = 3.0
MATERIAL_WEIGHT: float = 0.5
KING_MATERIAL: float = 1.5
MOBILITY_WEIGHT: float = 0.03
TEMPO_BONUS: float = 0.5
ADVANCE_WEIGHT: float = 0.2
EXPOSED_MAN_PENALTY: float = 0.8
EXPOSED_KING_PENALTY: float = 1.5
ENDGAME_PIECES: int = 6
CENTER_WEIGHT: float = 0.2


class GameResult(Enum):
    WIN = "win"
    LOSS = "loss"
    DRAW = "draw"


@dataclass
class GameTally:
    """What one side did in one game. Built by the game runner, merged afterwards."""
    moves: int = 0
    pieces_captured: int = 0
    pieces_lost: int = 0
    kings_made: int = 0
    kings_captured: int = 0
    kings_lost: int = 0

    def record_turn(self, move: Move, kings_taken: int, promoted: bool) -> None:
        self.moves += 1
        self.pieces_captured += move.capture_count
        self.kings_captured += kings_taken
        if promoted:
            self.kings_made += 1

    def record_losses(self, pieces: int, kings: int) -> None:
        self.pieces_lost += pieces
        self.kings_lost += kings


class PlayerStats:
    """Per-generation counters. Merges are serialized by a lock."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.reset()

    def reset(self) -> None:
        self.games_played = 0
        self.wins = 0
        self.losses = 0
        self.draws = 0
        self.total_moves = 0
        self.pieces_captured = 0
        self.pieces_lost = 0
        self.kings_made = 0
        self.kings_captured = 0
        self.kings_lost = 0

    def record_game(self, tally: GameTally, result: GameResult) -> None:
        with self._lock:
            self.games_played += 1
            if result is GameResult.WIN:
                self.wins += 1
            elif result is GameResult.LOSS:
                self.losses += 1
            else:
                self.draws += 1
            self.total_moves += tally.moves
            self.pieces_captured += tally.pieces_captured
            self.pieces_lost += tally.pieces_lost
            self.kings_made += tally.kings_made
            self.kings_captured += tally.kings_captured
            self.kings_lost += tally.kings_lost

    def _rate(self, count: int) -> float:
        return count / self.games_played if self.games_played else 0.0

    @property
    def win_rate(self) -> float:
        return self._rate(self.wins)

    @property
    def loss_rate(self) -> float:
        return self._rate(self.losses)

    @property
    def draw_rate(self) -> float:
        return self._rate(self.draws)

    def as_dict(self) -> Dict[str, int]:
        keys = ["games_played", "wins", "losses", "draws", "total_moves"]
        keys += [f.name for f in fields(GameTally) if f.name != "moves"]
        return {k: getattr(self, k) for k in keys}

    # Locks do not pickle
    def __getstate__(self):
        state = self.__dict__.copy()
        state.pop("_lock", None)
        return state

    def __setstate__(self, state) -> None:
        self.__dict__.update(state)
        self._lock = threading.Lock()


# ============================
# Heuristic bonus
# ============================
def _material(board: Board, color: PieceColor) -> float:
    return sum(KING_MATERIAL if p.is_king else 1.0 for p in board.pieces(color))


def heuristic_bonus(before: Board, after: Board, move: Move, color: PieceColor,
                    promoted: bool) -> float:
    """Deterministic bonus for the position reached by `move`."""
    score = 0.0
    enemy = color.opponent

    if move.is_jump:
        for sq in move.jumped:
            victim = before.get(sq)
            score += CAPTURE_KING_VALUE if victim is not None and victim.is_king else CAPTURE_MAN_VALUE
        if move.capture_count >= 2:
            score += MULTI_CAPTURE_BONUS * move.capture_count
        score += TEMPO_BONUS

    if promoted:
        score += PROMOTION_BONUS

    score += MATERIAL_WEIGHT * (_material(after, color) - _material(after, enemy))

    validator = MoveValidator(after)
    own_moves = validator.all_legal_moves(color)
    enemy_moves = validator.all_legal_moves(enemy)
    score += MOBILITY_WEIGHT * (len(own_moves) - len(enemy_moves))

    mover = after.get(move.to)
    if mover is not None and not mover.is_king and not promoted:
        score += ADVANCE_WEIGHT * abs(move.to.row - move.origin.row)

    if any(move.to in m.jumped for m in enemy_moves):
        exposed_king = mover is not None and mover.is_king
        score -= EXPOSED_KING_PENALTY if exposed_king else EXPOSED_MAN_PENALTY

    if mover is not None and mover.is_king:
        remaining = after.count(color) + after.count(enemy)
        if remaining <= ENDGAME_PIECES:
            dist = max(abs(move.to.row - 3.5), abs(move.to.col - 3.5))
            score += CENTER_WEIGHT * (3.5 - dist)

    return score


class AIPlayer:
    """Owns one evaluator and its per-generation statistics."""

    def __init__(self, network: NeuralNetwork, name: Optional[str] = None) -> None:
        self.network = network
        self.name = name
        self.stats = PlayerStats()

    @classmethod
    def random(cls, layer_sizes: Sequence[int], rng: np.random.Generator,
               name: Optional[str] = None) -> "AIPlayer":
        return cls(NeuralNetwork.random(layer_sizes, rng), name)

    @property
    def fitness(self) -> float:
        return self.network.fitness

    # ----------------------------
    # Move choice
    # ----------------------------
    def score_moves(self, board: Board, legal_moves: List[Move], color: PieceColor) -> np.ndarray:
        """Combined score of every candidate, in input order."""
        results: List[Board] = []
        bonuses: List[float] = []
        for move in legal_moves:
            after = board.clone()
            was_king = after.get(move.origin).is_king
            piece = after.apply_move(move)
            promoted = piece.is_king and not was_king
            results.append(after)
            bonuses.append(heuristic_bonus(board, after, move, color, promoted))
        neural = self.network.score_batch(encode_batch(results, color))
        return neural + HEURISTIC_WEIGHT * np.asarray(bonuses, dtype=np.float64)

    def choose_move(self, board: Board, legal_moves: List[Move], color: PieceColor,
                    rng: Optional[np.random.Generator] = None,
                    explore_rate: float = 0.0) -> Optional[Move]:
        if not legal_moves:
            return None
        if len(legal_moves) == 1:
            return legal_moves[0]
        if rng is not None and explore_rate > 0.0 and rng.random() < explore_rate:
            return legal_moves[int(rng.integers(len(legal_moves)))]
        scores = self.score_moves(board, legal_moves, color)
        # argmax returns the first maximum
        return legal_moves[int(np.argmax(scores))]

    # ----------------------------
    # Fitness
    # ----------------------------
    def calculate_fitness(self, weights: Optional[FitnessWeights] = None) -> float:
        """Score this generation's games and store the result on the evaluator."""
        w = weights or FitnessWeights()
        s = self.stats
        games = s.games_played
        if games == 0:
            self.network.fitness = 0.0
            return 0.0
        capture_ratio = s.pieces_captured / max(1, s.total_moves)
        survival = 1.0 - s.pieces_lost / (PIECES_PER_SIDE * games)
        fitness = (
            w.win * s.win_rate
            - w.loss * s.loss_rate
            + w.draw * s.draw_rate
            + w.capture_ratio * capture_ratio
            + w.survival * survival
            + w.kings_made * s.kings_made / games
            + w.kings_captured * s.kings_captured / games
            - w.kings_lost * s.kings_lost / games
        )
        self.network.fitness = max(0.0, fitness)
        return self.network.fitness

    # ----------------------------
    # Evolution
    # ----------------------------
    def clone(self) -> "AIPlayer":
        return AIPlayer(self.network.clone(), self.name)

    def mutate(self, rate: float, rng: np.random.Generator) -> int:
        return self.network.mutate(rate, rng)

    def crossover(self, other: "AIPlayer", rng: np.random.Generator) -> "AIPlayer":
        return AIPlayer(self.network.crossover(other.network, rng))

    def save(self, filepath: str) -> None:
        self.network.save(filepath)

    @classmethod
    def load(cls, filepath: str, expected_sizes: Optional[Sequence[int]] = None) -> "AIPlayer":
        return cls(NeuralNetwork.load(filepath, expected_sizes))

    def __repr__(self) -> str:
        label = self.name or "AIPlayer"
        return f"{label}(fitness={self.fitness:.2f}, games={self.stats.games_played})"
