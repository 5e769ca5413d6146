import pytest

import rules
from classes import ErrorKind, GameState, GameStatus, Piece, PieceType, Player, Position

P1, P2 = Player.PLAYER1, Player.PLAYER2
E, T, M, S = PieceType.ELEPHANT, PieceType.TIGER, PieceType.MOUSE, PieceType.SCORPION

# One side's full quota, in the order it gets placed
FULL_SET = [E] * 4 + [T] * 4 + [M] * 4 + [S] * 2


def side_cells(player: Player) -> list[Position]:
    rows = (5, 6) if player == P1 else (0, 1)
    return [Position(r, c) for r in rows for c in range(7)]


def in_progress(current: Player = P1) -> GameState:
    """Empty board, movement phase, no pieces."""
    state = GameState()
    state.status = GameStatus.IN_PROGRESS
    state.current_player = current
    return state


def put(state: GameState, row: int, col: int, owner: Player, piece_type: PieceType, lives: int = 3) -> Piece:
    piece = Piece(owner, piece_type)
    piece.lives = lives
    state.board.set_piece(Position(row, col), piece)
    return piece


# --- Pure helpers ---

NEIGHBOURS = [(dr, dc) for dr in (-1, 0, 1) for dc in (-1, 0, 1) if (dr, dc) != (0, 0)]


@pytest.mark.parametrize("dr,dc", NEIGHBOURS)
def test_is_adjacent_all_eight_neighbours(dr, dc):
    assert rules.is_adjacent(Position(3, 3), Position(3 + dr, 3 + dc))


@pytest.mark.parametrize("row,col", [(0, 0), (3, 3), (6, 6), (2, 5)])
def test_is_adjacent_same_cell_is_false(row, col):
    assert not rules.is_adjacent(Position(row, col), Position(row, col))


@pytest.mark.parametrize("dst", [(3, 5), (5, 3), (1, 1), (5, 4), (0, 3), (3, 0)])
def test_is_adjacent_two_or_more_steps_is_false(dst):
    assert not rules.is_adjacent(Position(3, 3), Position(*dst))


def test_advantage_triangle():
    assert rules.attacker_beats_defender(M, E)
    assert rules.attacker_beats_defender(E, T)
    assert rules.attacker_beats_defender(T, M)
    # never in reverse
    assert not rules.attacker_beats_defender(E, M)
    assert not rules.attacker_beats_defender(T, E)
    assert not rules.attacker_beats_defender(M, T)


@pytest.mark.parametrize("piece_type", list(PieceType))
def test_no_advantage_against_same_type(piece_type):
    assert not rules.attacker_beats_defender(piece_type, piece_type)


@pytest.mark.parametrize("other", [E, T, M])
def test_scorpion_is_outside_the_triangle(other):
    assert not rules.attacker_beats_defender(S, other)
    assert not rules.attacker_beats_defender(other, S)


@pytest.mark.parametrize("row,side", [(0, P2), (1, P2), (2, None), (3, None), (4, None), (5, P1), (6, P1)])
def test_row_to_side(row, side):
    assert rules.row_to_side(row) == side


# --- Placement ---

def test_place_piece_writes_full_life_piece():
    state = GameState()
    assert rules.place_piece(state, Position(6, 0), E) is None

    piece = state.board.get_piece(Position(6, 0))
    assert piece.owner == P1
    assert piece.type == E
    assert piece.lives == 3
    assert not piece.has_enemy_flag
    assert not piece.revealed_to_player1 and not piece.revealed_to_player2
    assert state.placed[P1][E] == 1
    assert state.status == GameStatus.PLACEMENT


def test_side_comes_from_the_row_not_the_current_player():
    state = GameState()
    state.current_player = P1
    assert rules.place_piece(state, Position(1, 4), T) is None
    assert state.board.get_piece(Position(1, 4)).owner == P2
    assert state.placed[P2][T] == 1
    assert state.placed[P1][T] == 0


def test_placement_never_switches_turn():
    state = GameState()
    for pos, piece_type in zip(side_cells(P2)[:5], FULL_SET):
        assert rules.place_piece(state, pos, piece_type) is None
        assert state.current_player == P1


@pytest.mark.parametrize("pos", [(0, 0), (3, 3), (6, 6), (9, 9), (-1, 2)])
def test_place_piece_in_progress_is_wrong_phase(pos):
    state = in_progress()
    rejection = rules.place_piece(state, Position(*pos), E)
    assert rejection.kind == ErrorKind.WRONG_PHASE


def test_place_piece_when_finished_is_wrong_phase():
    state = GameState()
    state.status = GameStatus.FINISHED
    assert rules.place_piece(state, Position(6, 0), E).kind == ErrorKind.WRONG_PHASE


def test_place_piece_none_type():
    state = GameState()
    # the type check comes before the bounds check
    assert rules.place_piece(state, Position(10, 10), None).kind == ErrorKind.INVALID_PIECE_TYPE


@pytest.mark.parametrize("pos", [(7, 0), (0, 7), (-1, 0), (6, -1)])
def test_place_piece_out_of_bounds(pos):
    state = GameState()
    assert rules.place_piece(state, Position(*pos), M).kind == ErrorKind.OUT_OF_BOUNDS


@pytest.mark.parametrize("row", [2, 3, 4])
def test_place_piece_middle_rows_belong_to_nobody(row):
    state = GameState()
    assert rules.place_piece(state, Position(row, 0), M).kind == ErrorKind.NOT_YOUR_PLACEMENT_ROW
    assert state.board.get_piece(Position(row, 0)) is None


def test_place_piece_square_occupied():
    state = GameState()
    assert rules.place_piece(state, Position(5, 2), E) is None
    rejection = rules.place_piece(state, Position(5, 2), T)
    assert rejection.kind == ErrorKind.SQUARE_OCCUPIED
    assert state.board.get_piece(Position(5, 2)).type == E
    assert state.placed[P1][T] == 0


@pytest.mark.parametrize("piece_type,quota", [(E, 4), (T, 4), (M, 4), (S, 2)])
def test_type_quota_exceeded(piece_type, quota):
    state = GameState()
    cells = side_cells(P1)
    for pos in cells[:quota]:
        assert rules.place_piece(state, pos, piece_type) is None

    extra = cells[quota]
    rejection = rules.place_piece(state, extra, piece_type)
    assert rejection.kind == ErrorKind.TYPE_QUOTA_EXCEEDED
    assert state.board.get_piece(extra) is None
    assert state.placed[P1][piece_type] == quota

    # the other side's quota is independent
    assert rules.place_piece(state, Position(0, 0), piece_type) is None


def test_failed_placement_leaves_state_untouched():
    state = GameState()
    rules.place_piece(state, Position(6, 0), E)
    before = state.to_dict()
    assert rules.place_piece(state, Position(6, 0), E) is not None
    assert rules.place_piece(state, Position(3, 0), E) is not None
    assert state.to_dict() == before


def _fill(state: GameState, order: list[tuple[Position, PieceType]]) -> None:
    for pos, piece_type in order:
        assert rules.place_piece(state, pos, piece_type) is None


def test_full_placement_starts_game():
    state = GameState()
    _fill(state, list(zip(side_cells(P1), FULL_SET)))
    assert state.status == GameStatus.PLACEMENT
    assert state.placement_done(P1)
    assert not state.placement_done(P2)

    _fill(state, list(zip(side_cells(P2), FULL_SET)))
    assert state.status == GameStatus.IN_PROGRESS
    assert state.current_player == P1


def test_full_placement_order_does_not_matter():
    state = GameState()
    state.current_player = P2
    p1 = list(zip(side_cells(P1), reversed(FULL_SET)))
    p2 = list(zip(side_cells(P2), FULL_SET))
    # interleave, Player 2 first
    interleaved = [step for pair in zip(p2, p1) for step in pair]
    _fill(state, interleaved[:-1])
    assert state.status == GameStatus.PLACEMENT

    _fill(state, interleaved[-1:])
    assert state.status == GameStatus.IN_PROGRESS
    assert state.current_player == P1
    assert rules.place_piece(state, Position(5, 0), E).kind == ErrorKind.WRONG_PHASE


# --- Movement preconditions ---

def test_simple_move_relocates_and_switches_turn():
    state = in_progress()
    piece = put(state, 4, 4, P1, M)
    assert rules.move(state, Position(4, 4), Position(3, 5)) is None
    assert state.board.get_piece(Position(4, 4)) is None
    assert state.board.get_piece(Position(3, 5)) is piece
    assert state.current_player == P2
    # no fight, no reveal
    assert not piece.revealed_to_player2


def test_move_during_placement_is_wrong_phase():
    state = GameState()
    rules.place_piece(state, Position(5, 0), E)
    assert rules.move(state, Position(5, 0), Position(4, 0)).kind == ErrorKind.WRONG_PHASE


@pytest.mark.parametrize("src,dst", [((6, 6), (7, 6)), ((0, 0), (-1, 0)), ((7, 7), (6, 6))])
def test_move_out_of_bounds(src, dst):
    state = in_progress()
    put(state, 6, 6, P1, E)
    put(state, 0, 0, P1, E)
    assert rules.move(state, Position(*src), Position(*dst)).kind == ErrorKind.OUT_OF_BOUNDS


@pytest.mark.parametrize("dst", [(3, 3), (3, 5), (1, 3), (5, 5)])
def test_move_not_adjacent(dst):
    state = in_progress()
    put(state, 3, 3, P1, T)
    assert rules.move(state, Position(3, 3), Position(*dst)).kind == ErrorKind.NOT_ADJACENT


def test_move_from_empty_square():
    state = in_progress()
    assert rules.move(state, Position(3, 3), Position(3, 4)).kind == ErrorKind.NO_PIECE_AT_SOURCE


def test_move_opponent_piece():
    state = in_progress(current=P1)
    put(state, 3, 3, P2, T)
    assert rules.move(state, Position(3, 3), Position(3, 4)).kind == ErrorKind.NOT_YOUR_PIECE


def test_move_onto_own_piece():
    state = in_progress()
    put(state, 3, 3, P1, T)
    put(state, 3, 4, P1, M)
    assert rules.move(state, Position(3, 3), Position(3, 4)).kind == ErrorKind.CANNOT_CAPTURE_OWN_PIECE


def test_failed_move_leaves_state_untouched():
    state = in_progress()
    put(state, 3, 3, P1, T)
    put(state, 3, 4, P1, M)
    put(state, 2, 3, P2, E)
    before = state.to_dict()
    for src, dst in [((3, 3), (3, 4)), ((2, 3), (1, 3)), ((3, 3), (3, 5)), ((4, 4), (4, 5))]:
        assert rules.move(state, Position(*src), Position(*dst)) is not None
    assert state.to_dict() == before
    assert state.current_player == P1


def test_repeating_a_move_fails():
    state = in_progress()
    put(state, 4, 4, P1, E)
    assert rules.move(state, Position(4, 4), Position(3, 4)) is None
    rejection = rules.move(state, Position(4, 4), Position(3, 4))
    assert rejection is not None
    assert rejection.kind in (ErrorKind.NO_PIECE_AT_SOURCE, ErrorKind.NOT_YOUR_PIECE)
    assert state.board.get_piece(Position(3, 4)).type == E


# --- Combat ---

def test_elephant_kills_low_life_tiger_and_moves_in():
    state = in_progress()
    elephant = put(state, 3, 3, P1, E)
    tiger = put(state, 3, 4, P2, T, lives=1)

    assert rules.move(state, Position(3, 3), Position(3, 4)) is None

    assert tiger.is_dead
    assert state.board.get_piece(Position(3, 3)) is None
    assert state.board.get_piece(Position(3, 4)) is elephant
    assert elephant.lives == 3
    assert state.current_player == P2


def test_tiger_wounds_mouse_without_advancing():
    state = in_progress()
    tiger = put(state, 1, 1, P1, T)
    mouse = put(state, 1, 2, P2, M)

    assert rules.move(state, Position(1, 1), Position(1, 2)) is None

    assert mouse.lives == 2
    assert state.board.get_piece(Position(1, 2)) is mouse
    assert state.board.get_piece(Position(1, 1)) is tiger
    assert tiger.lives == 3
    assert state.current_player == P2


def test_defender_advantage_wounds_attacker():
    state = in_progress()
    tiger = put(state, 3, 3, P1, T)
    elephant = put(state, 2, 3, P2, E)

    assert rules.move(state, Position(3, 3), Position(2, 3)) is None
    assert tiger.lives == 2
    assert elephant.lives == 3
    assert state.board.get_piece(Position(3, 3)) is tiger
    assert state.board.get_piece(Position(2, 3)) is elephant


def test_defender_advantage_kills_attacker():
    state = in_progress()
    put(state, 3, 3, P1, E, lives=1)
    mouse = put(state, 2, 2, P2, M, lives=1)

    assert rules.move(state, Position(3, 3), Position(2, 2)) is None
    assert state.board.get_piece(Position(3, 3)) is None
    assert state.board.get_piece(Position(2, 2)) is mouse
    assert mouse.lives == 1


# attacker type, attacker lives, defender type, defender lives -> (at src, at dst) owners after the fight
WHO_ENDS_WHERE = [
    # no advantage
    (E, 3, E, 3, P1, P2),
    (M, 1, M, 3, None, P2),
    (T, 2, T, 1, None, P1),
    (M, 1, M, 1, None, None),
    # attacker advantage
    (E, 3, T, 3, P1, P2),
    (E, 1, T, 1, None, P1),
    # defender advantage
    (M, 3, T, 3, P1, P2),
    (M, 1, T, 1, None, P2),
    # scorpion
    (S, 3, E, 3, None, None),
    (E, 3, S, 1, None, None),
    (S, 1, S, 3, None, None),
]


@pytest.mark.parametrize("att,att_lives,defe,def_lives,at_src,at_dst", WHO_ENDS_WHERE)
def test_combat_final_layout(att, att_lives, defe, def_lives, at_src, at_dst):
    state = in_progress()
    attacker = put(state, 3, 3, P1, att, att_lives)
    defender = put(state, 3, 4, P2, defe, def_lives)

    assert rules.move(state, Position(3, 3), Position(3, 4)) is None

    src_piece = state.board.get_piece(Position(3, 3))
    dst_piece = state.board.get_piece(Position(3, 4))
    assert (src_piece.owner if src_piece else None) == at_src
    assert (dst_piece.owner if dst_piece else None) == at_dst

    # dead pieces never stay on the board
    for piece in (attacker, defender):
        if piece.is_dead:
            assert piece not in (src_piece, dst_piece)
            assert piece.lives == 0
    assert state.current_player == P2


def test_same_type_trade_costs_both_a_life():
    state = in_progress()
    attacker = put(state, 3, 3, P1, T)
    defender = put(state, 4, 4, P2, T)
    assert rules.move(state, Position(3, 3), Position(4, 4)) is None
    assert attacker.lives == 2
    assert defender.lives == 2


def test_scorpion_kills_both_regardless_of_lives():
    state = in_progress()
    put(state, 3, 3, P1, E, lives=3)
    scorpion = put(state, 3, 4, P2, S, lives=1)
    assert rules.move(state, Position(3, 3), Position(3, 4)) is None
    assert scorpion.is_dead
    assert state.board.get_piece(Position(3, 3)) is None
    assert state.board.get_piece(Position(3, 4)) is None


def test_combat_reveals_both_pieces_even_without_a_kill():
    state = in_progress()
    attacker = put(state, 3, 3, P1, E)
    defender = put(state, 3, 4, P2, E)
    bystander = put(state, 2, 2, P2, M)

    rules.move(state, Position(3, 3), Position(3, 4))

    for piece in (attacker, defender):
        assert piece.revealed_to_player1 and piece.revealed_to_player2
    assert defender.is_visible_to(P1)
    assert not bystander.is_visible_to(P1)
    assert bystander.is_visible_to(P2)


# --- Flags and victory ---

def test_pick_up_enemy_flag():
    state = in_progress()
    piece = put(state, 1, 3, P1, M)
    assert rules.move(state, Position(1, 3), Position(0, 3)) is None
    assert piece.has_enemy_flag
    assert not state.flag_on_board[P2]
    assert state.status == GameStatus.IN_PROGRESS
    assert state.current_player == P2


def test_own_flag_is_not_picked_up():
    state = in_progress()
    piece = put(state, 5, 3, P1, M)
    assert rules.move(state, Position(5, 3), Position(6, 3)) is None
    assert not piece.has_enemy_flag
    assert state.flag_on_board[P1]


def test_pick_up_after_winning_fight_on_flag_square():
    state = in_progress(current=P2)
    put(state, 6, 3, P1, T, lives=1)
    elephant = put(state, 5, 2, P2, E)
    assert rules.move(state, Position(5, 2), Position(6, 3)) is None
    assert elephant.has_enemy_flag
    assert not state.flag_on_board[P1]


def test_carrier_reaching_home_wins():
    state = in_progress()
    carrier = put(state, 5, 3, P1, T)
    carrier.has_enemy_flag = True
    state.flag_on_board[P2] = False
    # the rest of the board does not matter
    put(state, 0, 0, P2, E)
    put(state, 4, 4, P2, S)

    assert rules.move(state, Position(5, 3), Position(6, 3)) is None
    assert state.status == GameStatus.FINISHED
    assert state.winner == P1
    # the turn does not pass once the game is over
    assert state.current_player == P1
    assert rules.move(state, Position(6, 3), Position(5, 3)).kind == ErrorKind.WRONG_PHASE


def test_player2_carrier_reaching_home_wins():
    state = in_progress(current=P2)
    carrier = put(state, 1, 2, P2, E)
    carrier.has_enemy_flag = True
    state.flag_on_board[P1] = False
    assert rules.move(state, Position(1, 2), Position(0, 3)) is None
    assert state.winner == P2


def test_carrier_dying_as_attacker_drops_flag_where_it_stood():
    state = in_progress()
    carrier = put(state, 3, 3, P1, M, lives=1)
    carrier.has_enemy_flag = True
    state.flag_on_board[P2] = False
    put(state, 3, 4, P2, M)

    assert rules.move(state, Position(3, 3), Position(3, 4)) is None
    assert state.flag_on_board[P2]
    assert state.flag_pos[P2] == Position(3, 3)
    assert not carrier.has_enemy_flag
    assert state.current_player == P2


def test_carrier_dying_as_defender_drops_flag_under_the_winner():
    state = in_progress()
    elephant = put(state, 3, 3, P1, E)
    carrier = put(state, 3, 4, P2, T, lives=1)
    carrier.has_enemy_flag = True
    state.flag_on_board[P1] = False

    assert rules.move(state, Position(3, 3), Position(3, 4)) is None
    assert state.board.get_piece(Position(3, 4)) is elephant
    assert state.flag_on_board[P1]
    assert state.flag_pos[P1] == Position(3, 4)
    # a side never carries its own flag
    assert not elephant.has_enemy_flag


def test_scorpion_kills_carrier_and_flag_stays_on_that_square():
    state = in_progress(current=P2)
    carrier = put(state, 2, 2, P1, E)
    carrier.has_enemy_flag = True
    state.flag_on_board[P2] = False
    put(state, 1, 1, P2, S)

    assert rules.move(state, Position(1, 1), Position(2, 2)) is None
    assert state.flag_on_board[P2]
    assert state.flag_pos[P2] == Position(2, 2)
    assert state.board.get_piece(Position(2, 2)) is None


def test_dropped_flag_can_be_picked_up_again():
    state = in_progress()
    carrier = put(state, 3, 3, P1, M, lives=1)
    carrier.has_enemy_flag = True
    state.flag_on_board[P2] = False
    put(state, 3, 4, P2, M)
    rules.move(state, Position(3, 3), Position(3, 4))

    # Player 2 walks away from its own flag
    assert rules.move(state, Position(3, 4), Position(2, 5)) is None
    assert state.flag_on_board[P2]
    assert state.current_player == P1

    runner = put(state, 2, 3, P1, T)
    assert rules.move(state, Position(2, 3), Position(3, 3)) is None
    assert runner.has_enemy_flag
    assert not state.flag_on_board[P2]


def test_pickup_and_victory_in_the_same_move():
    # the Player 2 flag was dropped on Player 1's flag square
    state = in_progress()
    state.flag_pos[P2] = Position(6, 3)
    runner = put(state, 5, 4, P1, M)

    assert rules.move(state, Position(5, 4), Position(6, 3)) is None
    assert runner.has_enemy_flag
    assert state.status == GameStatus.FINISHED
    assert state.winner == P1


def test_flag_is_either_on_board_or_carried():
    state = in_progress()
    runner = put(state, 1, 2, P1, E)
    rules.move(state, Position(1, 2), Position(0, 3))

    carriers = [p for _, p in state.board.pieces(P1) if p.has_enemy_flag]
    assert state.flag_on_board[P2] is False
    assert carriers == [runner]


def test_winning_move_leaves_dropped_flags_alone():
    # both carriers meet on Player 1's flag square
    state = in_progress()
    runner = put(state, 5, 3, P1, E)
    runner.has_enemy_flag = True
    state.flag_on_board[P2] = False
    defender = put(state, 6, 3, P2, T, lives=1)
    defender.has_enemy_flag = True
    state.flag_on_board[P1] = False

    assert rules.move(state, Position(5, 3), Position(6, 3)) is None
    assert defender.is_dead
    assert state.board.get_piece(Position(6, 3)) is runner
    assert state.status == GameStatus.FINISHED
    assert state.winner == P1
    # the game ends before the dead carrier drops its flag, and the turn does not pass
    assert not state.flag_on_board[P1]
    assert defender.has_enemy_flag
    assert state.current_player == P1


if __name__ == '__main__':
    pytest.main()
