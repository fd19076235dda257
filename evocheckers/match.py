"""
Headless game runner used by the tournament.

A game ends when the engine reports a winner, when the same position with
the same side to move occurs for the third time, or at the move cap. The
last two are draws.
"""
from __future__ import annotations

import logging
import multiprocessing as mp
import signal
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np

from .board import Board, StateKey
from .engine import GameEngine
from .network import NeuralNetwork
from .player import AIPlayer, GameResult, GameTally
from .types import GameState, PieceColor

logger = logging.getLogger(__name__)

REPETITION_LIMIT = 3

DRAW_REPETITION = "repetition"
DRAW_MOVE_CAP = "move_cap"


@dataclass
class GameOutcome:
    state: GameState
    moves: int
    red: GameTally = field(default_factory=GameTally)
    black: GameTally = field(default_factory=GameTally)
    draw_reason: Optional[str] = None

    @property
    def winner(self) -> Optional[PieceColor]:
        return self.state.winner

    def tally_for(self, color: PieceColor) -> GameTally:
        return self.red if color is PieceColor.RED else self.black

    def result_for(self, color: PieceColor) -> GameResult:
        winner = self.winner
        if winner is None:
            return GameResult.DRAW
        return GameResult.WIN if winner is color else GameResult.LOSS


def play_game(red: AIPlayer, black: AIPlayer, max_moves: int = 200,
              rng: Optional[np.random.Generator] = None,
              explore_rate: float = 0.0,
              board: Optional[Board] = None) -> GameOutcome:
    """Play one game, from the initial position unless `board` is given. Red moves first."""
    engine = GameEngine(board)
    players: Dict[PieceColor, AIPlayer] = {PieceColor.RED: red, PieceColor.BLACK: black}
    outcome = GameOutcome(state=GameState.RED_TURN, moves=0)
    seen: Counter = Counter()
    seen[_position_key(engine)] += 1

    while not engine.is_over:
        if outcome.moves >= max_moves:
            outcome.draw_reason = DRAW_MOVE_CAP
            break
        color = engine.side_to_move
        board = engine.board
        move = players[color].choose_move(board, engine.legal_moves(), color, rng, explore_rate)
        if move is None:
            break

        kings_taken = sum(1 for sq in move.jumped if board.get(sq).is_king)
        was_king = board.get(move.origin).is_king
        if not engine.execute(move):
            raise RuntimeError(f"player chose an illegal move {move}")
        promoted = not was_king and engine.board.get(move.to).is_king

        outcome.tally_for(color).record_turn(move, kings_taken, promoted)
        outcome.tally_for(color.opponent).record_losses(move.capture_count, kings_taken)
        outcome.moves += 1

        if engine.is_over:
            break
        key = _position_key(engine)
        seen[key] += 1
        if seen[key] >= REPETITION_LIMIT:
            outcome.draw_reason = DRAW_REPETITION
            break

    outcome.state = engine.state if engine.is_over else GameState.DRAW
    logger.debug("game over after %d moves: %s%s", outcome.moves, outcome.state.value,
                 f" ({outcome.draw_reason})" if outcome.draw_reason else "")
    return outcome


def _position_key(engine: GameEngine) -> Tuple[StateKey, Optional[PieceColor]]:
    return engine.board.state_key(), engine.side_to_move


# ============================
# Worker entry point
# ============================
def run_game_task(red_network: NeuralNetwork, black_network: NeuralNetwork, seed: int,
                  max_moves: int, explore_rate: float) -> GameOutcome:
    """
    Play one game in a worker process.

    Only evaluator snapshots and an integer seed cross the process boundary,
    so a game gives the same result wherever it runs.
    """
    rng = np.random.default_rng(seed)
    return play_game(AIPlayer(red_network), AIPlayer(black_network), max_moves, rng, explore_rate)


GameTask = Tuple[NeuralNetwork, NeuralNetwork, int, int, float]


def _worker_init() -> None:
    # Ctrl-C is handled by the parent, which stops between generations
    signal.signal(signal.SIGINT, signal.SIG_IGN)


class ParallelGameRunner:
    """Runs batches of games on a spawn-context process pool."""

    def __init__(self, num_workers: int = 4) -> None:
        self.num_workers = max(1, int(num_workers))
        self._ctx = mp.get_context("spawn")
        self.pool = None

    def run_games(self, tasks: List[GameTask]) -> List[GameOutcome]:
        """Outcomes come back in task order. starmap blocks until all games finish."""
        if not tasks:
            return []
        if self.pool is None:
            self.pool = self._ctx.Pool(self.num_workers, initializer=_worker_init)
        return self.pool.starmap(run_game_task, tasks)

    def close(self) -> None:
        if self.pool is not None:
            self.pool.close()
            self.pool.join()
            self.pool = None

    def __enter__(self) -> "ParallelGameRunner":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def run_games_sequential(tasks: List[GameTask]) -> List[GameOutcome]:
    return [run_game_task(*task) for task in tasks]
