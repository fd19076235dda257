"""
Board encoding for the evaluator.

Canonical encoding: one value per playable square (32 inputs), row-major,
seen from the mover's side. Own pieces are positive, enemy pieces negative,
and kings weigh twice as much as men.
"""
from __future__ import annotations

from typing import Dict, List, Tuple

import numpy as np

from .board import Board, playable_squares
from .types import PLAYABLE_SQUARES, PieceColor, PieceKind

FEATURE_SIZE: int = PLAYABLE_SQUARES

_VALUES: Dict[Tuple[bool, PieceKind], float] = {
    (True, PieceKind.MAN): 0.5,
    (True, PieceKind.KING): 1.0,
    (False, PieceKind.MAN): -0.5,
    (False, PieceKind.KING): -1.0,
}

_SQUARES = playable_squares()


def encode_board(board: Board, color: PieceColor) -> np.ndarray:
    """Encode `board` from the point of view of `color`."""
    x = np.zeros(FEATURE_SIZE, dtype=np.float64)
    for i, pos in enumerate(_SQUARES):
        piece = board.get(pos)
        if piece is not None:
            x[i] = _VALUES[(piece.color is color, piece.kind)]
    return x


def encode_batch(boards: List[Board], color: PieceColor) -> np.ndarray:
    """Stack encodings into an (N, FEATURE_SIZE) matrix."""
    if not boards:
        return np.zeros((0, FEATURE_SIZE), dtype=np.float64)
    return np.stack([encode_board(b, color) for b in boards])
