import threading

import pytest

from classes import ErrorKind, GameplayError, GameState, GameStatus, Piece, PieceType, Player, Position
from game import AnimalFlag
from sessions import SessionStore, redacted_view

P1, P2 = Player.PLAYER1, Player.PLAYER2

setup_p1 = [
    ['T', 'M', 'E', 'S', 'E', 'M', 'T'],
    ['E', 'T', 'M', 'S', 'M', 'T', 'E'],
]
setup_p2 = [
    ['M', 'E', 'T', 'S', 'T', 'E', 'M'],
    ['T', 'M', 'E', 'S', 'E', 'M', 'T'],
]


def started_game() -> AnimalFlag:
    return AnimalFlag(setup_p1, setup_p2, show_board_labels=False)


# --- Text front-end ---

@pytest.mark.parametrize("cell,player_id,expected", [
    ('a1', P1, (6, 0)),
    ('g7', P1, (0, 6)),
    ('d1', P1, (6, 3)),
    ('a1', P2, (0, 6)),
    ('d1', P2, (0, 3)),
    ('g7', P2, (6, 0)),
])
def test_cell_notation(cell, player_id, expected):
    assert AnimalFlag._cell_to_indices(cell, player_id) == Position(*expected)
    assert AnimalFlag._indices_to_cell(Position(*expected), player_id) == cell


@pytest.mark.parametrize("cell", ['h1', 'a0', 'a8', '1a', 'zz', ''])
def test_invalid_cell_notation(cell):
    with pytest.raises(GameplayError):
        AnimalFlag._cell_to_indices(cell, P1)


def test_setups_start_the_game():
    game = started_game()
    session = game.session
    assert session.status == GameStatus.IN_PROGRESS
    assert game.whose_turn() == P1
    # Player 2's setup is read from Player 2's side: its a1 is the top right corner
    assert session.board.get_piece(Position(0, 6)).type == PieceType.TIGER
    assert session.board.get_piece(Position(0, 6)).owner == P2
    assert session.board.get_piece(Position(6, 0)).type == PieceType.ELEPHANT
    assert session.board.get_piece(Position(5, 3)).type == PieceType.SCORPION


def test_setup_with_wrong_counts_is_refused():
    bad = [row[:] for row in setup_p1]
    bad[0][0] = 'E'
    with pytest.raises(GameplayError) as exc:
        AnimalFlag(bad, setup_p2)
    assert 'Invalid piece counts' in str(exc.value)


def test_setup_with_wrong_shape_is_refused():
    with pytest.raises(GameplayError):
        AnimalFlag(setup_p1[:1], setup_p2)


def test_whose_turn_during_placement():
    game = AnimalFlag(show_board_labels=False)
    assert game.whose_turn() == P1
    game = AnimalFlag(setup_p1, show_board_labels=False)
    assert game.session.status == GameStatus.PLACEMENT
    assert game.whose_turn() == P2


def test_place_commands_from_each_side():
    game = AnimalFlag(show_board_labels=False)
    game.play('E@a1', P1)
    game.play('s@a1', P2)
    assert game.session.board.get_piece(Position(6, 0)).owner == P1
    piece = game.session.board.get_piece(Position(0, 6))
    assert piece.owner == P2 and piece.type == PieceType.SCORPION


def test_place_on_enemy_rows_is_refused():
    game = AnimalFlag(show_board_labels=False)
    with pytest.raises(GameplayError) as exc:
        game.play('E@a7', P1)
    assert exc.value.kind == ErrorKind.NOT_YOUR_PLACEMENT_ROW
    with pytest.raises(GameplayError) as exc:
        game.play('E@c4', P1)
    assert exc.value.kind == ErrorKind.NOT_YOUR_PLACEMENT_ROW


def test_place_after_placement_is_refused():
    game = started_game()
    with pytest.raises(GameplayError) as exc:
        game.play('E@a1', P1)
    assert exc.value.kind == ErrorKind.WRONG_PHASE


def test_moves_alternate_between_players():
    game = started_game()
    game.play('a2-a3', P1)
    assert game.session.board.get_piece(Position(4, 0)).owner == P1
    assert game.whose_turn() == P2

    game.play('a2-b3', P2)
    assert game.session.board.get_piece(Position(2, 5)).owner == P2
    assert game.whose_turn() == P1


def test_move_out_of_turn_is_refused():
    game = started_game()
    with pytest.raises(GameplayError):
        game.play('a2-a3', P2)
    assert game.session.board.get_piece(Position(1, 6)) is not None
    assert game.whose_turn() == P1


@pytest.mark.parametrize("command", ['a2a3', 'a2-a9', 'X@a1', 'E@', 'move', ''])
def test_malformed_commands(command):
    game = started_game()
    with pytest.raises(GameplayError):
        game.play(command, P1)


def test_engine_rejection_keeps_its_kind():
    game = started_game()
    with pytest.raises(GameplayError) as exc:
        game.play('a2-a1', P1)
    assert exc.value.kind == ErrorKind.CANNOT_CAPTURE_OWN_PIECE
    with pytest.raises(GameplayError) as exc:
        game.play('a3-a4', P1)
    assert exc.value.kind == ErrorKind.NO_PIECE_AT_SOURCE


def test_board_hides_unrevealed_enemies():
    game = started_game()
    p1_lines = game._board_lines(P1)
    assert p1_lines[0].split() == ['?'] * 7
    assert p1_lines[-1].split() == ['E3', 'T3', 'M3', 'S3', 'M3', 'T3', 'E3']

    p2_lines = game._board_lines(P2)
    assert p2_lines[0].split() == ['?'] * 7
    assert p2_lines[-1].split() == ['t3', 'm3', 'e3', 's3', 'e3', 'm3', 't3']

    # the global view shows everything
    assert '?' not in "".join(game._board_lines(None))


def test_board_shows_pieces_after_they_fought():
    state = GameState()
    state.status = GameStatus.IN_PROGRESS
    tiger = Piece(P1, PieceType.TIGER)
    mouse = Piece(P2, PieceType.MOUSE)
    state.board.set_piece(Position(3, 3), tiger)
    state.board.set_piece(Position(3, 4), mouse)
    game = AnimalFlag(show_board_labels=False, session=state)

    assert game._board_lines(P1)[3].split() == ['.', '.', '.', 'T3', '?', '.', '.']
    game.play('d4-e4', P1)
    assert game._board_lines(P1)[3].split() == ['.', '.', '.', 'T3', 'm2', '.', '.']


def test_state_text():
    game = started_game()
    text = game.state(P1)
    assert "Quick summary of the rules" in text
    assert "Your flag is on the board at d1." in text
    assert "The enemy flag is on the board at d7." in text
    assert "It is Player1's (your) turn." in text

    game.play('a2-a3', P1)
    assert "Quick summary of the rules" not in game.state(P1)
    assert "Quick summary of the rules" in game.state(P2)
    assert "Your flag is on the board at d1." in game.state(P2)


def test_labels_follow_the_viewer():
    game = AnimalFlag(setup_p1, setup_p2, show_board_labels=True)
    lines = game._board_lines(P2)
    assert lines[0].split() == list('abcdefg')
    assert lines[2].split()[0] == '7'
    assert lines[-1].split()[0] == '1'


def test_scores_and_final_state():
    state = GameState()
    state.status = GameStatus.IN_PROGRESS
    carrier = Piece(P1, PieceType.MOUSE)
    carrier.has_enemy_flag = True
    state.flag_on_board[P2] = False
    state.board.set_piece(Position(5, 3), carrier)
    game = AnimalFlag(show_board_labels=False, session=state)

    assert game.scores() == {P1: 0.0, P2: 0.0}
    assert "The enemy flag is carried by one of your pieces." in game.state(P1)
    assert "Your flag is carried by the enemy." in game.state(P2)

    game.play('d2-d1', P1)
    assert game.is_over()
    assert game.scores() == {P1: 1.0, P2: 0.0}
    assert "Player1 brought the enemy flag home and won the game!" in game.state()


# --- Session store ---

def _fill_through_store(store: SessionStore, game_id: str) -> None:
    for row, types in ((6, setup_p1[1]), (5, setup_p1[0]), (0, setup_p2[1][::-1]), (1, setup_p2[0][::-1])):
        for col, sym in enumerate(types):
            result = store.place_piece(game_id, row, col, PieceType.from_symbol(sym).value.lower())
            assert result.ok, result.error


def test_create_and_get():
    store = SessionStore()
    created = store.create()
    assert created.ok
    view = created.view
    assert view['status'] == 'Placement'
    assert view['currentPlayer'] == 'Player1'
    assert view['winner'] == ''
    assert view['player1Flag'] == {'row': 6, 'col': 3, 'onBoard': True}
    assert view['player2Flag'] == {'row': 0, 'col': 3, 'onBoard': True}
    assert all(cell is None for row in view['cells'] for cell in row)

    assert store.get(view['id']).view == view


def test_unknown_session():
    store = SessionStore()
    for result in (store.get('nope'), store.place_piece('nope', 6, 0, 'Elephant'),
                   store.move('nope', 5, 0, 4, 0), store.register_name('nope', 'Player1', 'Ann')):
        assert not result.ok
        assert result.error.kind == ErrorKind.SESSION_NOT_FOUND


def test_place_by_type_name():
    store = SessionStore()
    game_id = store.create().view['id']
    result = store.place_piece(game_id, 6, 0, 'elephant')
    assert result.view['cells'][6][0] == {'owner': 'Player1', 'type': 'Elephant', 'lives': 3,
                                          'hasEnemyFlag': False}

    result = store.place_piece(game_id, 6, 1, 'Dragon')
    assert result.error.kind == ErrorKind.INVALID_PIECE_TYPE
    assert store.get(game_id).view['cells'][6][1] is None


def test_full_game_through_store():
    store = SessionStore()
    game_id = store.create().view['id']
    _fill_through_store(store, game_id)
    view = store.get(game_id).view
    assert view['status'] == 'InProgress'

    assert store.move(game_id, 5, 0, 4, 0).ok
    result = store.move(game_id, 5, 0, 4, 0)
    assert result.error.kind == ErrorKind.NO_PIECE_AT_SOURCE
    assert store.get(game_id).view['currentPlayer'] == 'Player2'


def test_register_name():
    store = SessionStore()
    game_id = store.create().view['id']
    assert store.register_name(game_id, 'player2', '  Roy ').view['player2Name'] == 'Roy'
    assert store.register_name(game_id, 'Player1', None).view['player1Name'] == ''

    result = store.register_name(game_id, 'Player3', 'Ann')
    assert result.error.kind == ErrorKind.INVALID_SIDE


def test_listeners_get_snapshots_after_success_only():
    store = SessionStore()
    game_id = store.create().view['id']
    seen = []

    def broken(_game_id, _view):
        raise RuntimeError("listener down")

    assert store.subscribe(game_id, broken)
    assert store.subscribe(game_id, lambda gid, view: seen.append((gid, view)))
    assert not store.subscribe('nope', broken)

    store.place_piece(game_id, 6, 0, 'Tiger')
    store.place_piece(game_id, 3, 0, 'Tiger')

    assert len(seen) == 1
    gid, view = seen[0]
    assert gid == game_id
    assert view['cells'][6][0]['type'] == 'Tiger'

    # later changes do not leak into views already handed out
    store.place_piece(game_id, 6, 1, 'Mouse')
    assert view['cells'][6][1] is None
    assert len(seen) == 2


def test_redacted_view_hides_unrevealed_opponents():
    state = GameState()
    state.status = GameStatus.IN_PROGRESS
    hidden = Piece(P2, PieceType.ELEPHANT)
    shown = Piece(P2, PieceType.TIGER)
    shown.reveal()
    own = Piece(P1, PieceType.MOUSE)
    state.board.set_piece(Position(0, 0), hidden)
    state.board.set_piece(Position(0, 1), shown)
    state.board.set_piece(Position(6, 0), own)

    view = redacted_view(state, P1)
    assert view['cells'][0][0] == {'owner': 'Player2', 'type': None, 'lives': None, 'hasEnemyFlag': False}
    assert view['cells'][0][1]['type'] == 'Tiger'
    assert view['cells'][6][0]['type'] == 'Mouse'
    # the engine's own view is never redacted
    assert state.to_dict()['cells'][0][0]['type'] == 'Elephant'


def test_concurrent_moves_on_one_game_apply_once():
    store = SessionStore()
    game_id = store.create().view['id']
    _fill_through_store(store, game_id)

    results = []
    barrier = threading.Barrier(8)

    def worker():
        barrier.wait()
        results.append(store.move(game_id, 5, 0, 4, 0))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sum(r.ok for r in results) == 1
    view = store.get(game_id).view
    assert view['cells'][4][0]['owner'] == 'Player1'
    assert view['currentPlayer'] == 'Player2'


def test_listeners_see_changes_in_commit_order():
    store = SessionStore()
    game_id = store.create().view['id']
    _fill_through_store(store, game_id)

    seen = []
    delivering = threading.Event()
    gate = threading.Event()

    def slow_first(_game_id, view):
        if not seen:
            delivering.set()
            gate.wait(timeout=5)
        seen.append(view['currentPlayer'])

    store.subscribe(game_id, slow_first)

    first = threading.Thread(target=store.move, args=(game_id, 5, 0, 4, 0))
    first.start()
    assert delivering.wait(timeout=5)
    # the first delivery is still running when Player 2 answers
    second = threading.Thread(target=store.move, args=(game_id, 1, 0, 2, 0))
    second.start()
    gate.set()
    first.join()
    second.join()

    assert seen == ['Player2', 'Player1']
    assert seen[-1] == store.get(game_id).view['currentPlayer']


def test_stale_view_is_not_delivered():
    store = SessionStore()
    game_id = store.create().view['id']
    seen = []
    store.subscribe(game_id, lambda gid, view: seen.append(view))

    old = store.place_piece(game_id, 6, 0, 'Tiger').view
    store.place_piece(game_id, 6, 1, 'Mouse')
    assert len(seen) == 2

    # a view numbered before the last delivered one arrives late
    store._publish(game_id, 1, old)
    assert len(seen) == 2
    assert seen[-1]['cells'][6][1]['type'] == 'Mouse'


if __name__ == '__main__':
    pytest.main()
