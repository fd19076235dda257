"""
Board model: an 8x8 grid of optional pieces plus accessors.
"""
from __future__ import annotations

from typing import Dict, Iterator, List, Optional, Tuple

from .types import (
    BOARD_SIZE,
    Move,
    Piece,
    PieceColor,
    PieceKind,
    Position,
)

# Hashable snapshot of a board: one entry per occupied square
StateKey = Tuple[Tuple[int, int, str, str], ...]

_GLYPHS: Dict[Tuple[PieceColor, PieceKind], str] = {
    (PieceColor.RED, PieceKind.MAN): "r",
    (PieceColor.RED, PieceKind.KING): "R",
    (PieceColor.BLACK, PieceKind.MAN): "b",
    (PieceColor.BLACK, PieceKind.KING): "B",
}


# ============================
# Geometry helpers
# ============================
def playable_squares() -> List[Position]:
    """All 32 dark squares in row-major order."""
    return [Position(r, c) for r in range(BOARD_SIZE) for c in range(BOARD_SIZE)
            if (r + c) % 2 == 1]


_PLAYABLE: List[Position] = playable_squares()
SQUARE_INDEX: Dict[Position, int] = {pos: i for i, pos in enumerate(_PLAYABLE)}


class Board:
    """
    Owns the pieces in play.

    At most one piece per square, and only on playable squares. The grid is
    the complete state; there is nothing else to copy or compare.
    """

    def __init__(self) -> None:
        self._grid: List[List[Optional[Piece]]] = [
            [None] * BOARD_SIZE for _ in range(BOARD_SIZE)
        ]

    # ----------------------------
    # Construction
    # ----------------------------
    @classmethod
    def empty(cls) -> "Board":
        return cls()

    @classmethod
    def initial(cls) -> "Board":
        """Black on rows 0..2, Red on rows 5..7."""
        board = cls()
        for pos in _PLAYABLE:
            if pos.row <= 2:
                board.place(PieceColor.BLACK, pos)
            elif pos.row >= 5:
                board.place(PieceColor.RED, pos)
        return board

    @classmethod
    def from_layout(cls, rows: List[str]) -> "Board":
        """
        Build a board from 8 strings of 8 characters.

        'r'/'b' are men, 'R'/'B' kings, anything else is empty.
        """
        if len(rows) != BOARD_SIZE or any(len(row) != BOARD_SIZE for row in rows):
            raise ValueError("layout must be 8 rows of 8 characters")
        glyph_to_piece = {glyph: key for key, glyph in _GLYPHS.items()}
        board = cls()
        for r, row in enumerate(rows):
            for c, ch in enumerate(row):
                if ch in glyph_to_piece:
                    color, kind = glyph_to_piece[ch]
                    board.place(color, Position(r, c), kind)
        return board

    def clone(self) -> "Board":
        """Structural copy. Pieces are copied, never shared."""
        other = Board()
        for r in range(BOARD_SIZE):
            for c in range(BOARD_SIZE):
                piece = self._grid[r][c]
                if piece is not None:
                    other._grid[r][c] = piece.copy()
        return other

    # ----------------------------
    # Accessors
    # ----------------------------
    @staticmethod
    def is_valid_position(pos: Position) -> bool:
        return pos.on_board()

    @staticmethod
    def is_playable_square(pos: Position) -> bool:
        return pos.is_playable()

    def get(self, pos: Position) -> Optional[Piece]:
        if not pos.on_board():
            return None
        return self._grid[pos.row][pos.col]

    def is_empty(self, pos: Position) -> bool:
        return pos.is_playable() and self._grid[pos.row][pos.col] is None

    def place(self, color: PieceColor, pos: Position, kind: PieceKind = PieceKind.MAN) -> Piece:
        piece = Piece(color, Position(*pos), kind)
        self.set(pos, piece)
        return piece

    def set(self, pos: Position, piece: Piece) -> None:
        """Put `piece` on `pos`, updating its position."""
        pos = Position(*pos)
        if not pos.is_playable():
            raise ValueError(f"{tuple(pos)} is not a playable square")
        occupant = self._grid[pos.row][pos.col]
        if occupant is not None and occupant is not piece:
            raise ValueError(f"{tuple(pos)} is already occupied")
        self._grid[pos.row][pos.col] = piece
        piece.position = pos

    def remove(self, pos: Position) -> Optional[Piece]:
        if not pos.on_board():
            return None
        piece = self._grid[pos.row][pos.col]
        self._grid[pos.row][pos.col] = None
        return piece

    def pieces(self, color: Optional[PieceColor] = None) -> List[Piece]:
        """Pieces in row-major order, optionally filtered by color."""
        return [p for p in self._iter_pieces() if color is None or p.color is color]

    def count(self, color: PieceColor) -> int:
        return sum(1 for p in self._iter_pieces() if p.color is color)

    def count_kings(self, color: PieceColor) -> int:
        return sum(1 for p in self._iter_pieces() if p.color is color and p.is_king)

    def _iter_pieces(self) -> Iterator[Piece]:
        for row in self._grid:
            for piece in row:
                if piece is not None:
                    yield piece

    # ----------------------------
    # Mutation
    # ----------------------------
    def apply_move(self, move: Move) -> Piece:
        """
        Execute a full turn: lift the piece, remove every jumped piece,
        drop it on the destination and promote if it ended on its king row.
        """
        piece = self.get(move.origin)
        if piece is None:
            raise ValueError(f"no piece at {tuple(move.origin)}")
        if not self.is_empty(move.to):
            raise ValueError(f"destination {tuple(move.to)} is not free")
        self.remove(move.origin)
        for jumped in move.jumped:
            self.remove(jumped)
        self.set(move.to, piece)
        if piece.should_promote_at(move.to):
            piece.promote()
        return piece

    # ----------------------------
    # Snapshots
    # ----------------------------
    def state_key(self) -> StateKey:
        return tuple(
            (p.position.row, p.position.col, p.color.value, p.kind.value)
            for p in self._iter_pieces()
        )

    def render(self) -> str:
        lines = ["  " + " ".join(str(c) for c in range(BOARD_SIZE))]
        for r in range(BOARD_SIZE):
            cells = []
            for c in range(BOARD_SIZE):
                piece = self._grid[r][c]
                if piece is not None:
                    cells.append(_GLYPHS[(piece.color, piece.kind)])
                else:
                    cells.append("." if (r + c) % 2 == 1 else " ")
            lines.append(f"{r} " + " ".join(cells))
        return "\n".join(lines)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Board):
            return NotImplemented
        return self.state_key() == other.state_key()

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Board(red={self.count(PieceColor.RED)}, black={self.count(PieceColor.BLACK)})"
