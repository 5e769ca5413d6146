from loguru import logger

from classes import Board, ErrorKind, GameState, GameStatus, Piece, PieceType, Player, Position, Rejection

# Advantage triangle: each key beats its value and nothing else.
BEATS = {
    PieceType.ELEPHANT: PieceType.TIGER,
    PieceType.TIGER: PieceType.MOUSE,
    PieceType.MOUSE: PieceType.ELEPHANT,
}


def is_adjacent(src: Position, dst: Position) -> bool:
    """King-move adjacency: one step in any of the 8 directions. A cell is not adjacent to itself."""
    dr = abs(src.row - dst.row)
    dc = abs(src.col - dst.col)
    if dr == 0 and dc == 0:
        return False
    return dr <= 1 and dc <= 1


def attacker_beats_defender(attacker: PieceType, defender: PieceType) -> bool:
    """True iff attacker has the type advantage over defender. Scorpions have no place in the triangle."""
    return BEATS.get(attacker) == defender


def row_to_side(row: int) -> Player | None:
    """
    Which side may place pieces on this row: the two top rows belong to Player 2, the two bottom rows to
    Player 1. Any other row belongs to nobody.
    """
    if 0 <= row <= 1:
        return Player.PLAYER2
    if Board.size - 2 <= row < Board.size:
        return Player.PLAYER1
    return None


# --- Placement ---

def _check_placement(state: GameState, pos: Position, piece_type: PieceType | None) -> Rejection | None:
    if state.status != GameStatus.PLACEMENT:
        return Rejection(ErrorKind.WRONG_PHASE, "Game is not in placement phase")

    if piece_type is None:
        return Rejection(ErrorKind.INVALID_PIECE_TYPE, "Invalid piece type")

    if not state.board.is_inside(pos.row, pos.col):
        return Rejection(ErrorKind.OUT_OF_BOUNDS, "Position is outside the board")

    side = row_to_side(pos.row)
    if side is None:
        return Rejection(ErrorKind.NOT_YOUR_PLACEMENT_ROW, "You can place pieces only on your first two rows")

    if state.board.get_piece(pos) is not None:
        return Rejection(ErrorKind.SQUARE_OCCUPIED, "There is already a piece on that square")

    if state.placed[side][piece_type] >= piece_type.quota:
        return Rejection(ErrorKind.TYPE_QUOTA_EXCEEDED, "You have already placed all pieces of this type")

    return None


def place_piece(state: GameState, pos: Position, piece_type: PieceType | None) -> Rejection | None:
    """
    Put a new full-life piece on the board during the placement phase. The owning side is derived from the
    row, not from whoever is asking. Once both sides have placed their full quota the game starts with
    Player 1 to move. Placement never changes whose turn it is.

    Returns None on success, or the Rejection explaining why nothing happened.
    """
    pos = Position(*pos)
    rejection = _check_placement(state, pos, piece_type)
    if rejection is not None:
        logger.debug("Game {}: placement of {} at {} rejected ({})", state.id, piece_type, pos, rejection.kind.value)
        return rejection

    side = row_to_side(pos.row)
    state.board.set_piece(pos, Piece(side, piece_type))
    state.placed[side][piece_type] += 1
    logger.debug("Game {}: {} placed {} at {}", state.id, side.label, piece_type.value, pos)

    if state.placement_done(Player.PLAYER1) and state.placement_done(Player.PLAYER2):
        state.status = GameStatus.IN_PROGRESS
        state.current_player = Player.PLAYER1
        logger.info("Game {}: placement complete, {} to move", state.id, state.current_player.label)

    return None


# --- Movement and combat ---

def _check_move(state: GameState, src: Position, dst: Position) -> Rejection | None:
    if state.status != GameStatus.IN_PROGRESS:
        return Rejection(ErrorKind.WRONG_PHASE, "Game is not in progress")

    if not state.board.is_inside(src.row, src.col) or not state.board.is_inside(dst.row, dst.col):
        return Rejection(ErrorKind.OUT_OF_BOUNDS, "Move is outside the board")

    if not is_adjacent(src, dst):
        return Rejection(ErrorKind.NOT_ADJACENT, "Pieces can move only one step in any direction")

    piece = state.board.get_piece(src)
    if piece is None:
        return Rejection(ErrorKind.NO_PIECE_AT_SOURCE, "No piece at source square")

    if piece.owner != state.current_player:
        return Rejection(ErrorKind.NOT_YOUR_PIECE, "You can move only your own pieces")

    target = state.board.get_piece(dst)
    if target is not None and target.owner == piece.owner:
        return Rejection(ErrorKind.CANNOT_CAPTURE_OWN_PIECE, "You cannot capture your own piece")

    return None


def _resolve_combat(board: Board, src: Position, dst: Position, attacker: Piece, defender: Piece) -> Piece | None:
    """
    Fight between the piece at src and the enemy piece at dst. Returns the piece left standing on dst, if any.

    Whatever branch deals the damage, the final layout only depends on who survived:
    a living defender keeps dst and a living attacker stays on src; the attacker moves into dst only when it
    survives and the defender does not; when both die both cells end empty.
    """
    attacker.reveal()
    defender.reveal()

    if PieceType.SCORPION in (attacker.type, defender.type):
        attacker.kill()
        defender.kill()
    elif attacker_beats_defender(attacker.type, defender.type):
        defender.take_hit()
    elif attacker_beats_defender(defender.type, attacker.type):
        attacker.take_hit()
    else:
        # no advantage either way, same types included
        attacker.take_hit()
        defender.take_hit()

    logger.debug("Combat {} -> {}: attacker {} ({} lives), defender {} ({} lives)",
                 src, dst, attacker.type.value, attacker.lives, defender.type.value, defender.lives)

    if attacker.is_dead:
        board.set_piece(src, None)
    if not defender.is_dead:
        return defender

    board.set_piece(dst, None)
    if attacker.is_dead:
        return None
    board.relocate(src, dst)
    return attacker


# --- Flags and victory ---

def _pick_up_flag(state: GameState, piece: Piece, pos: Position) -> None:
    enemy = piece.owner.opponent
    if state.flag_on_board[enemy] and state.flag_pos[enemy] == pos:
        piece.has_enemy_flag = True
        state.flag_on_board[enemy] = False
        logger.info("Game {}: {} picked up the {} flag at {}", state.id, piece.owner.label, enemy.label, pos)


def _reached_home_with_flag(state: GameState, piece: Piece, pos: Position) -> bool:
    return piece.has_enemy_flag and pos == state.flag_home[piece.owner]


def _drop_flag_if_dead(state: GameState, piece: Piece, pos: Position) -> None:
    """A carrier that died leaves the flag on the cell where it fell."""
    if not (piece.is_dead and piece.has_enemy_flag):
        return
    enemy = piece.owner.opponent
    state.flag_on_board[enemy] = True
    state.flag_pos[enemy] = pos
    piece.has_enemy_flag = False
    logger.info("Game {}: {} flag dropped at {}", state.id, enemy.label, pos)


def move(state: GameState, src: Position, dst: Position) -> Rejection | None:
    """
    Move the current player's piece from src to an adjacent cell dst, fighting whatever enemy stands there.

    Resolution order: movement or combat, then flag pickup by the piece left on dst, then the victory check
    (which ends the move at once), then flags dropped by dead carriers, then the turn passes.

    Returns None on success, or the Rejection explaining why nothing happened. Nothing is changed before every
    check has passed. No locking here: callers sharing a GameState between threads serialize access themselves.
    """
    src, dst = Position(*src), Position(*dst)
    rejection = _check_move(state, src, dst)
    if rejection is not None:
        logger.debug("Game {}: move {} -> {} rejected ({})", state.id, src, dst, rejection.kind.value)
        return rejection

    board = state.board
    attacker = board.get_piece(src)
    defender = board.get_piece(dst)

    if defender is None:
        board.relocate(src, dst)
        occupant = attacker
    else:
        occupant = _resolve_combat(board, src, dst, attacker, defender)

    if occupant is not None:
        _pick_up_flag(state, occupant, dst)
        if _reached_home_with_flag(state, occupant, dst):
            state.status = GameStatus.FINISHED
            state.winner = occupant.owner
            logger.info("Game {}: {} brought the flag home and wins", state.id, occupant.owner.label)
            return None

    _drop_flag_if_dead(state, attacker, src)
    if defender is not None:
        _drop_flag_if_dead(state, defender, dst)

    state.current_player = state.current_player.opponent
    return None
