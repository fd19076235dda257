"""
Type definitions for the checkers rules engine.

This module provides:
- Value types for board coordinates and moves
- Enumerations for piece color/kind and game state
- The mutable Piece record owned by a Board
- Board geometry constants
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, NamedTuple, Optional, Tuple

# Board geometry
BOARD_SIZE = 8
PLAYABLE_SQUARES = 32
PIECES_PER_SIDE = 12

# Diagonal directions as (row delta, col delta)
ALL_DIRECTIONS: List[Tuple[int, int]] = [(-1, -1), (-1, 1), (1, -1), (1, 1)]


class Position(NamedTuple):
    """A (row, col) square, 0-based. Equality and hashing are by value."""
    row: int
    col: int

    def offset(self, dr: int, dc: int, steps: int = 1) -> "Position":
        return Position(self.row + dr * steps, self.col + dc * steps)

    def on_board(self) -> bool:
        return 0 <= self.row < BOARD_SIZE and 0 <= self.col < BOARD_SIZE

    def is_playable(self) -> bool:
        return self.on_board() and (self.row + self.col) % 2 == 1


class PieceColor(Enum):
    RED = "red"
    BLACK = "black"

    @property
    def opponent(self) -> "PieceColor":
        return PieceColor.BLACK if self is PieceColor.RED else PieceColor.RED

    @property
    def forward(self) -> int:
        """Row delta of a man's forward step. Red starts at the bottom and moves up."""
        return -1 if self is PieceColor.RED else 1

    @property
    def king_row(self) -> int:
        """Row on which a man of this color is promoted."""
        return 0 if self is PieceColor.RED else BOARD_SIZE - 1


class PieceKind(Enum):
    MAN = "man"
    KING = "king"


class GameState(Enum):
    RED_TURN = "red_turn"
    BLACK_TURN = "black_turn"
    RED_WINS = "red_wins"
    BLACK_WINS = "black_wins"
    DRAW = "draw"

    @property
    def is_terminal(self) -> bool:
        return self in (GameState.RED_WINS, GameState.BLACK_WINS, GameState.DRAW)

    @property
    def side_to_move(self) -> Optional[PieceColor]:
        if self is GameState.RED_TURN:
            return PieceColor.RED
        if self is GameState.BLACK_TURN:
            return PieceColor.BLACK
        return None

    @property
    def winner(self) -> Optional[PieceColor]:
        if self is GameState.RED_WINS:
            return PieceColor.RED
        if self is GameState.BLACK_WINS:
            return PieceColor.BLACK
        return None

    @staticmethod
    def turn_of(color: PieceColor) -> "GameState":
        return GameState.RED_TURN if color is PieceColor.RED else GameState.BLACK_TURN

    @staticmethod
    def win_for(color: PieceColor) -> "GameState":
        return GameState.RED_WINS if color is PieceColor.RED else GameState.BLACK_WINS


@dataclass
class Piece:
    """A checkers piece. Owned by the Board that holds it at `position`."""
    color: PieceColor
    position: Position
    kind: PieceKind = PieceKind.MAN

    @property
    def is_king(self) -> bool:
        return self.kind is PieceKind.KING

    def promote(self) -> None:
        """Crown this piece. Promotion is one-way."""
        self.kind = PieceKind.KING

    def should_promote_at(self, pos: Position) -> bool:
        return not self.is_king and pos.row == self.color.king_row

    def directions(self) -> List[Tuple[int, int]]:
        if self.is_king:
            return ALL_DIRECTIONS
        return [(self.color.forward, -1), (self.color.forward, 1)]

    def copy(self) -> "Piece":
        return Piece(self.color, self.position, self.kind)


@dataclass(frozen=True)
class Move:
    """
    One full turn for one piece.

    A multi-jump is a single Move whose `jumped` holds every captured square
    in the order they were taken.
    """
    origin: Position
    to: Position
    is_jump: bool = False
    jumped: Tuple[Position, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if not isinstance(self.jumped, tuple):
            object.__setattr__(self, "jumped", tuple(self.jumped))
        if self.is_jump != bool(self.jumped):
            raise ValueError("is_jump must be True exactly when jumped positions are given")
        if self.origin == self.to:
            raise ValueError("a move must change the piece's square")

    @classmethod
    def step(cls, origin: Position, to: Position) -> "Move":
        return cls(origin, to)

    @classmethod
    def capture(cls, origin: Position, to: Position, jumped) -> "Move":
        return cls(origin, to, True, tuple(jumped))

    @property
    def capture_count(self) -> int:
        return len(self.jumped)

    def __str__(self) -> str:
        sep = "x" if self.is_jump else "-"
        return f"{tuple(self.origin)}{sep}{tuple(self.to)}"
