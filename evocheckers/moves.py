from __future__ import annotations

from typing import List, Tuple

from .board import Board
from .types import Move, Piece, PieceColor, Position

# (captured square, landing square)
Hop = Tuple[Position, Position]


def _capture_hops(board: Board, pos: Position, color: PieceColor, is_king: bool,
                  directions: List[Tuple[int, int]]) -> List[Hop]:
    """Single captures available to a piece of `color` standing on `pos`."""
    hops: List[Hop] = []
    for dr, dc in directions:
        if not is_king:
            mid = pos.offset(dr, dc)
            land = pos.offset(dr, dc, 2)
            victim = board.get(mid)
            if victim is not None and victim.color is not color and board.is_empty(land):
                hops.append((mid, land))
            continue

        # Flying king: slide over empties to the first occupied square
        step = 1
        sq = pos.offset(dr, dc, step)
        while sq.is_playable():
            occupant = board.get(sq)
            if occupant is None:
                step += 1
                sq = pos.offset(dr, dc, step)
                continue
            if occupant.color is not color:
                land = sq.offset(dr, dc)
                if board.is_empty(land):
                    hops.append((sq, land))
            break
    return hops


class MoveValidator:
    """Generates and validates legal moves on one board.

    Captures are mandatory: while any piece of a color can capture, only
    capturing moves are legal for every piece of that color. A capture is
    always returned as the full chain the piece can make from its square.
    """

    def __init__(self, board: Board) -> None:
        self.board = board

    # ----------------------------
    # Captures
    # ----------------------------
    def single_captures(self, piece: Piece) -> List[Move]:
        """One-hop captures from the piece's current square."""
        hops = _capture_hops(self.board, piece.position, piece.color, piece.is_king,
                             piece.directions())
        return [Move.capture(piece.position, land, (mid,)) for mid, land in hops]

    def legal_captures(self, piece: Piece) -> List[Move]:
        """
        Maximal capture chains for `piece`.

        Worklist of (square, captured so far, landings so far, working
        board). Each working board is a clone with the mover relocated and
        its victims removed, so a square can never be captured twice within
        a chain. The piece keeps its kind for the whole chain; crowning
        happens at turn end.

        A flying king's chain can close on its own starting square, which
        is not a move. Such a chain is cut at its last other landing, so a
        piece with a capture always has at least one capture move.
        """
        origin = piece.position
        directions = piece.directions()
        chains: List[Move] = []
        stack: List[Tuple[Position, Tuple[Position, ...], Tuple[Position, ...], Board]] = [
            (origin, (), (), self.board)
        ]
        while stack:
            pos, captured, landings, work = stack.pop()
            hops = _capture_hops(work, pos, piece.color, piece.is_king, directions)
            if not hops:
                if not captured:
                    continue
                if pos != origin:
                    move = Move.capture(origin, pos, captured)
                else:
                    # The first landing is never the origin
                    k = max(i for i, sq in enumerate(landings) if sq != origin)
                    move = Move.capture(origin, landings[k], captured[:k + 1])
                if move not in chains:
                    chains.append(move)
                continue
            # Reverse so the first direction is explored first
            for mid, land in reversed(hops):
                nxt = work.clone()
                mover = nxt.remove(pos)
                nxt.remove(mid)
                nxt.set(land, mover)
                stack.append((land, captured + (mid,), landings + (land,), nxt))
        return chains

    def any_capture_available(self, color: PieceColor) -> bool:
        for piece in self.board.pieces(color):
            if _capture_hops(self.board, piece.position, color, piece.is_king,
                             piece.directions()):
                return True
        return False

    # ----------------------------
    # Quiet moves
    # ----------------------------
    def quiet_moves(self, piece: Piece) -> List[Move]:
        moves: List[Move] = []
        for dr, dc in piece.directions():
            step = 1
            while True:
                target = piece.position.offset(dr, dc, step)
                if not self.board.is_empty(target):
                    break
                moves.append(Move.step(piece.position, target))
                if not piece.is_king:
                    break
                step += 1
        return moves

    # ----------------------------
    # Legal move sets
    # ----------------------------
    def legal_moves(self, piece: Piece) -> List[Move]:
        if self.any_capture_available(piece.color):
            return self.legal_captures(piece)
        return self.quiet_moves(piece)

    def all_legal_moves(self, color: PieceColor) -> List[Move]:
        """Every legal move for `color`, grouped by piece in row-major order."""
        pieces = self.board.pieces(color)
        if self.any_capture_available(color):
            moves: List[Move] = []
            for piece in pieces:
                moves.extend(self.legal_captures(piece))
            return moves
        quiet: List[Move] = []
        for piece in pieces:
            quiet.extend(self.quiet_moves(piece))
        return quiet

    def has_any_move(self, color: PieceColor) -> bool:
        if self.any_capture_available(color):
            return True
        return any(self.quiet_moves(p) for p in self.board.pieces(color))

    def is_legal(self, move: Move) -> bool:
        piece = self.board.get(move.origin)
        if piece is None:
            return False
        return move in self.legal_moves(piece)


# Convenience functional API

def legal_moves(piece: Piece, board: Board) -> List[Move]:
    return MoveValidator(board).legal_moves(piece)


def legal_captures(piece: Piece, board: Board) -> List[Move]:
    return MoveValidator(board).legal_captures(piece)


def any_capture_available(color: PieceColor, board: Board) -> bool:
    return MoveValidator(board).any_capture_available(color)


def all_legal_moves(color: PieceColor, board: Board) -> List[Move]:
    return MoveValidator(board).all_legal_moves(color)


def has_any_move(color: PieceColor, board: Board) -> bool:
    return MoveValidator(board).has_any_move(color)


def single_captures(piece: Piece, board: Board) -> List[Move]:
    return MoveValidator(board).single_captures(piece)
