import threading

import numpy as np
import pytest

import evocheckers.player as player_mod
from evocheckers.board import Board
from evocheckers.config import FitnessWeights
from evocheckers.moves import all_legal_moves
from evocheckers.network import NeuralNetwork
from evocheckers.player import AIPlayer, GameResult, GameTally, PlayerStats
from evocheckers.types import Move, PieceColor, PieceKind, Position

RED = PieceColor.RED
BLACK = PieceColor.BLACK
SIZES = [32, 16, 1]


class ExplodingNetwork(NeuralNetwork):
    def score_batch(self, X):
        raise AssertionError("evaluator should not be called")


def zero_player():
    return AIPlayer(NeuralNetwork(SIZES))


def random_player(seed=0):
    return AIPlayer.random(SIZES, np.random.default_rng(seed))


def test_no_moves_returns_none():
    assert zero_player().choose_move(Board.initial(), [], RED) is None


def test_single_move_skips_evaluator():
    player = AIPlayer(ExplodingNetwork(SIZES))
    only = Move.step(Position(5, 0), Position(4, 1))
    assert player.choose_move(Board.initial(), [only], RED) is only
    assert player.stats.total_moves == 0


def test_ties_go_to_first_move(monkeypatch):
    monkeypatch.setattr(player_mod, "heuristic_bonus", lambda *args, **kwargs: 0.0)
    board = Board.initial()
    moves = all_legal_moves(RED, board)
    assert zero_player().choose_move(board, moves, RED) == moves[0]
    assert zero_player().choose_move(board, moves[::-1], RED) == moves[-1]


def test_king_capture_preferred_over_man_capture():
    board = Board.empty()
    board.place(RED, Position(5, 2))
    board.place(BLACK, Position(4, 1))
    board.place(BLACK, Position(4, 3), PieceKind.KING)
    moves = all_legal_moves(RED, board)
    assert len(moves) == 2
    choice = zero_player().choose_move(board, moves, RED)
    assert choice.to == Position(3, 4)
    assert choice.jumped == (Position(4, 3),)


def test_choice_is_deterministic_without_exploration():
    board = Board.initial()
    moves = all_legal_moves(BLACK, board)
    player = random_player(4)
    first = player.choose_move(board, moves, BLACK)
    assert all(player.choose_move(board, moves, BLACK) == first for _ in range(3))
    # Scoring does not touch the board
    assert board == Board.initial()


def test_exploration_picks_a_legal_move():
    board = Board.initial()
    moves = all_legal_moves(RED, board)
    rng = np.random.default_rng(11)
    picks = {random_player().choose_move(board, moves, RED, rng, explore_rate=1.0) for _ in range(30)}
    assert picks <= set(moves)
    assert len(picks) > 1


def test_score_moves_matches_candidate_order():
    board = Board.initial()
    moves = all_legal_moves(RED, board)
    player = random_player(2)
    scores = player.score_moves(board, moves, RED)
    assert scores.shape == (len(moves),)
    np.testing.assert_array_equal(scores, player.score_moves(board, moves, RED))


def test_tally_records_turns_and_losses():
    tally = GameTally()
    move = Move.capture(Position(2, 1), Position(6, 5), [Position(3, 2), Position(5, 4)])
    tally.record_turn(move, kings_taken=1, promoted=False)
    tally.record_turn(Move.step(Position(1, 2), Position(0, 1)), kings_taken=0, promoted=True)
    tally.record_losses(pieces=1, kings=0)
    assert (tally.moves, tally.pieces_captured, tally.kings_captured) == (2, 2, 1)
    assert (tally.kings_made, tally.pieces_lost, tally.kings_lost) == (1, 1, 0)


def test_fitness_zero_games():
    player = zero_player()
    player.network.fitness = 42.0
    assert player.calculate_fitness() == 0.0
    assert player.fitness == 0.0


def test_fitness_formula():
    player = zero_player()
    tally = GameTally(moves=10, pieces_captured=4, pieces_lost=2, kings_made=1)
    player.stats.record_game(tally, GameResult.WIN)
    # 200*1 + 50*(4/10) + 30*(1 - 2/12) + 15*1
    assert player.calculate_fitness() == pytest.approx(260.0)
    assert player.fitness == pytest.approx(260.0)


def test_fitness_uses_supplied_weights():
    player = zero_player()
    player.stats.record_game(GameTally(moves=4), GameResult.DRAW)
    weights = FitnessWeights(draw=10.0, survival=0.0)
    assert player.calculate_fitness(weights) == pytest.approx(10.0)


def test_fitness_is_clamped_at_zero():
    player = zero_player()
    tally = GameTally(moves=5, pieces_lost=12, kings_lost=3)
    player.stats.record_game(tally, GameResult.LOSS)
    assert player.calculate_fitness() == 0.0


def test_stats_merge_under_concurrency():
    stats = PlayerStats()

    def worker():
        for _ in range(200):
            stats.record_game(GameTally(moves=3, pieces_captured=1), GameResult.WIN)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert stats.games_played == 1600
    assert stats.total_moves == 4800
    assert stats.pieces_captured == 1600
    assert stats.win_rate == 1.0

    stats.reset()
    assert stats.as_dict() == {k: 0 for k in stats.as_dict()}


def test_clone_and_crossover_produce_new_players():
    a = random_player(1)
    b = random_player(2)
    a.stats.record_game(GameTally(), GameResult.WIN)
    twin = a.clone()
    assert twin.network is not a.network
    assert twin.stats.games_played == 0
    child = a.crossover(b, np.random.default_rng(3))
    assert child.network.layer_sizes == SIZES
