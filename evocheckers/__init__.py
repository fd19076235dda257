"""evocheckers: checkers rules engine and evolutionary trainer for neural players.

Usage examples:
    from evocheckers import Board, GameEngine, legal_moves
    from evocheckers import AIPlayer, NeuralNetwork
    from evocheckers import Trainer, TrainingConfig
"""
from __future__ import annotations

# Rules engine
from .types import GameState, Move, Piece, PieceColor, PieceKind, Position
from .board import Board
from .moves import (
    MoveValidator,
    legal_moves,
    legal_captures,
    any_capture_available,
    all_legal_moves,
)
from .engine import GameEngine

# Evaluator and players
from .errors import ArchitectureMismatchError, EvaluatorFormatError, EvoCheckersError
from .network import NeuralNetwork
from .features import FEATURE_SIZE, encode_board
from .player import AIPlayer, GameTally, PlayerStats

# Training
from .config import EvoCheckersConfig, FitnessWeights, TrainingConfig, get_config
from .match import GameOutcome, play_game
from .population import Population
from .trainer import GenerationStats, Trainer, generation_report
