"""
Game engine: turn sequencing, piece selection, move execution, win detection
and undo.

Rejected operations return False and leave the engine untouched, so a UI or
the trainer can probe freely.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .board import Board
from .moves import MoveValidator
from .types import GameState, Move, Piece, PieceColor, Position

logger = logging.getLogger(__name__)


@dataclass
class _Snapshot:
    board: Board
    state: GameState
    selected: Optional[Position]
    continuing: bool
    turn_origin: Optional[Position]
    turn_jumped: Tuple[Position, ...]
    last_turn: Optional[Move]


class GameEngine:
    """State machine for a single game. Red moves first."""

    def __init__(self, board: Optional[Board] = None,
                 state: GameState = GameState.RED_TURN) -> None:
        self.board: Board = board if board is not None else Board.initial()
        self.state: GameState = state
        self.validator = MoveValidator(self.board)
        self.selected: Optional[Piece] = None
        self.continuing: bool = False
        self.last_turn: Optional[Move] = None
        self._turn_origin: Optional[Position] = None
        self._turn_jumped: Tuple[Position, ...] = ()
        self.history: List[_Snapshot] = []

    # ----------------------------
    # Queries
    # ----------------------------
    @property
    def side_to_move(self) -> Optional[PieceColor]:
        return self.state.side_to_move

    @property
    def is_over(self) -> bool:
        return self.state.is_terminal

    def legal_moves(self) -> List[Move]:
        """All legal turns for the side to move."""
        color = self.side_to_move
        if color is None:
            return []
        if self.continuing and self.selected is not None:
            return self.validator.legal_captures(self.selected)
        return self.validator.all_legal_moves(color)

    def valid_move_positions(self) -> List[Position]:
        if self.selected is None:
            return []
        seen: List[Position] = []
        for move in self._candidates(self.selected):
            if move.to not in seen:
                seen.append(move.to)
        return seen

    # ----------------------------
    # Transitions
    # ----------------------------
    def select_piece(self, pos: Position) -> bool:
        if self.is_over:
            return False
        pos = Position(*pos)
        if self.continuing and self.selected is not None:
            return self.selected.position == pos
        piece = self.board.get(pos)
        if piece is None or piece.color is not self.side_to_move:
            return False
        self.selected = piece
        return True

    def deselect(self) -> None:
        if not self.continuing:
            self.selected = None

    def move_piece(self, to: Position) -> bool:
        """Move the selected piece to `to` if some legal move ends there."""
        if self.is_over or self.selected is None:
            return False
        to = Position(*to)
        turns = self._turn_moves(self.selected)
        move = next((m for m in turns if m.to == to), None)
        ends_turn = move is not None
        if move is None and turns and turns[0].is_jump:
            hops = self.validator.single_captures(self.selected)
            move = next((m for m in hops if m.to == to), None)
        if move is None:
            logger.debug("rejected move %s -> %s", tuple(self.selected.position), tuple(to))
            return False
        self._commit(self.selected, move, ends_turn)
        return True

    def execute(self, move: Move) -> bool:
        """Play exactly `move` for the side to move (select + move in one step)."""
        if self.is_over or self.continuing:
            return False
        piece = self.board.get(move.origin)
        if piece is None or piece.color is not self.side_to_move:
            return False
        if move not in self.validator.legal_moves(piece):
            return False
        self.selected = piece
        self._commit(piece, move, ends_turn=True)
        return True

    def undo(self) -> bool:
        """Revert the last turn, including a multi-jump still in progress."""
        if not self.history:
            return False
        snap = self.history.pop()
        self.board = snap.board
        self.validator = MoveValidator(self.board)
        self.state = snap.state
        self.selected = self.board.get(snap.selected) if snap.selected is not None else None
        self.continuing = snap.continuing
        self._turn_origin = snap.turn_origin
        self._turn_jumped = snap.turn_jumped
        self.last_turn = snap.last_turn
        return True

    def reset_game(self, board: Optional[Board] = None) -> None:
        self.board = board if board is not None else Board.initial()
        self.validator = MoveValidator(self.board)
        self.state = GameState.RED_TURN
        self.selected = None
        self.continuing = False
        self.last_turn = None
        self._turn_origin = None
        self._turn_jumped = ()
        self.history.clear()

    # ----------------------------
    # Internals
    # ----------------------------
    def _turn_moves(self, piece: Piece) -> List[Move]:
        if self.continuing:
            return self.validator.legal_captures(piece)
        return self.validator.legal_moves(piece)

    def _candidates(self, piece: Piece) -> List[Move]:
        """Full turns first, then one-hop captures for step-by-step input."""
        moves = self._turn_moves(piece)
        if moves and moves[0].is_jump:
            return moves + self.validator.single_captures(piece)
        return moves

    def _commit(self, piece: Piece, move: Move, ends_turn: bool = False) -> None:
        if not self.continuing:
            self.history.append(_Snapshot(
                board=self.board.clone(),
                state=self.state,
                selected=None,
                continuing=False,
                turn_origin=None,
                turn_jumped=(),
                last_turn=self.last_turn,
            ))
            self._turn_origin = move.origin
            self._turn_jumped = ()

        self.board.remove(move.origin)
        for jumped in move.jumped:
            self.board.remove(jumped)
        self.board.set(move.to, piece)
        self._turn_jumped += move.jumped

        # A full chain always ends the turn, even one cut short before
        # returning to its start. Further hops are judged with the piece's
        # pre-promotion kind.
        if not ends_turn and move.is_jump and self.validator.single_captures(piece):
            self.continuing = True
            return

        if piece.should_promote_at(move.to):
            piece.promote()

        origin = self._turn_origin if self._turn_origin is not None else move.origin
        self.last_turn = Move(origin, move.to, bool(self._turn_jumped), self._turn_jumped) \
            if origin != move.to else move
        self.continuing = False
        self.selected = None
        self._turn_origin = None
        self._turn_jumped = ()
        self.state = GameState.turn_of(piece.color.opponent)
        self._check_win()

    def _check_win(self) -> None:
        color = self.side_to_move
        if color is None:
            return
        if self.board.count(color) == 0 or not self.validator.has_any_move(color):
            self.state = GameState.win_for(color.opponent)
            logger.debug("%s cannot move: %s", color.value, self.state.value)
