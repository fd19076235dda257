import numpy as np

from evocheckers.match import (
    DRAW_MOVE_CAP,
    DRAW_REPETITION,
    play_game,
    run_game_task,
)
from evocheckers.moves import MoveValidator, all_legal_moves, any_capture_available
from evocheckers.network import NeuralNetwork
from evocheckers.player import AIPlayer, GameResult
from evocheckers.board import Board
from evocheckers.types import GameState, PieceColor, PieceKind, Position

SIZES = [32, 8, 1]


class ShuttlePlayer:
    """Moves a lone king back and forth between two squares."""

    def __init__(self, home, away):
        self.home = Position(*home)
        self.away = Position(*away)

    def choose_move(self, board, legal_moves, color, rng=None, explore_rate=0.0):
        target = self.away if board.get(self.home) is not None else self.home
        return next(m for m in legal_moves if m.to == target)


class RuleCheckingPlayer:
    """Plays seeded random legal moves and checks the move rules every turn."""

    def __init__(self, seed):
        self.rng = np.random.default_rng(seed)
        self.turns = 0

    def choose_move(self, board, legal_moves, color, rng=None, explore_rate=0.0):
        validator = MoveValidator(board)
        capture = validator.any_capture_available(color)
        capturers = [p for p in board.pieces(color) if validator.legal_captures(p)]
        assert capture == bool(capturers)
        assert legal_moves
        assert legal_moves == validator.all_legal_moves(color)
        if capture:
            assert all(m.is_jump for m in legal_moves)
        for move in legal_moves:
            piece = board.get(move.origin)
            assert piece.color is color
            if not piece.is_king and not move.is_jump:
                assert move.to.row - move.origin.row == color.forward
        self.turns += 1
        return legal_moves[int(self.rng.integers(len(legal_moves)))]


def two_kings():
    board = Board.empty()
    board.place(PieceColor.RED, Position(7, 0), PieceKind.KING)
    board.place(PieceColor.BLACK, Position(0, 1), PieceKind.KING)
    return board


def shuttle_game(max_moves=200):
    red = ShuttlePlayer((7, 0), (6, 1))
    black = ShuttlePlayer((0, 1), (1, 0))
    return play_game(red, black, max_moves=max_moves, board=two_kings())


def test_third_repetition_is_a_draw():
    outcome = shuttle_game()
    assert outcome.state is GameState.DRAW
    assert outcome.draw_reason == DRAW_REPETITION
    # Start position seen again after 4 and 8 moves
    assert outcome.moves == 8
    assert outcome.result_for(PieceColor.RED) is GameResult.DRAW


def test_move_cap_is_a_draw():
    outcome = shuttle_game(max_moves=3)
    assert outcome.state is GameState.DRAW
    assert outcome.draw_reason == DRAW_MOVE_CAP
    assert outcome.moves == 3


def test_random_games_keep_the_move_rules():
    for seed in range(8):
        red, black = RuleCheckingPlayer(seed), RuleCheckingPlayer(seed + 100)
        board = Board.initial()
        outcome = play_game(red, black, max_moves=300, board=board)
        assert red.turns + black.turns == outcome.moves
        if outcome.winner is not None:
            # A side only loses with no pieces or no move, never while it can capture
            loser = outcome.winner.opponent
            assert not any_capture_available(loser, board)
            assert not all_legal_moves(loser, board)


def test_game_between_networks_terminates():
    rng = np.random.default_rng(0)
    red = AIPlayer.random(SIZES, rng)
    black = AIPlayer.random(SIZES, rng)
    outcome = play_game(red, black, max_moves=60, rng=rng, explore_rate=0.1)
    assert outcome.moves <= 60
    assert outcome.state.is_terminal
    assert outcome.red.moves + outcome.black.moves == outcome.moves
    # Every capture by one side is a loss for the other
    assert outcome.red.pieces_captured == outcome.black.pieces_lost
    assert outcome.black.pieces_captured == outcome.red.pieces_lost
    assert outcome.red.kings_captured == outcome.black.kings_lost


def test_results_are_symmetric():
    rng = np.random.default_rng(1)
    outcome = play_game(AIPlayer.random(SIZES, rng), AIPlayer.random(SIZES, rng), max_moves=80)
    red, black = outcome.result_for(PieceColor.RED), outcome.result_for(PieceColor.BLACK)
    if outcome.winner is None:
        assert red is black is GameResult.DRAW
    else:
        assert {red, black} == {GameResult.WIN, GameResult.LOSS}


def test_game_task_is_reproducible():
    rng = np.random.default_rng(5)
    a = NeuralNetwork.random(SIZES, rng)
    b = NeuralNetwork.random(SIZES, rng)
    first = run_game_task(a, b, 1234, 80, 0.2)
    second = run_game_task(a.clone(), b.clone(), 1234, 80, 0.2)
    assert first == second
