import threading
from dataclasses import dataclass
from typing import Callable

from loguru import logger

import rules
from classes import ErrorKind, GameState, PieceType, Player, Position, Rejection

Listener = Callable[[str, dict], None]


@dataclass(frozen=True)
class SessionResult:
    """Outcome of a store call: the session view on success, the Rejection otherwise."""
    view: dict | None = None
    error: Rejection | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _not_found(game_id: str) -> SessionResult:
    return SessionResult(error=Rejection(ErrorKind.SESSION_NOT_FOUND, f"Game {game_id!r} not found"))


def redacted_view(state: GameState, viewer: Player) -> dict:
    """
    The session view as `viewer` is allowed to see it: opponent pieces that have not fought yet keep their
    owner and flag-carrier marker but lose type and lives.
    """
    view = state.to_dict()
    for r, row in enumerate(state.board.cells):
        for c, piece in enumerate(row):
            if piece is not None and not piece.is_visible_to(viewer):
                view['cells'][r][c]['type'] = None
                view['cells'][r][c]['lives'] = None
    return view


class SessionStore:
    """
    In-memory registry of running games, and the only place where a GameState is changed on behalf of outside
    callers (an HTTP handler, a websocket hub, a test).

    Every call against one game runs under that game's lock, so place/move/register are atomic per game; calls
    on different games never wait on each other. Listeners subscribed to a game get a view after each
    successful change, in commit order. A listener may read the game but must not change it from inside the
    callback.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, GameState] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._listeners: dict[str, list[Listener]] = {}
        # per game: serializes delivery, and the last change number handed to listeners
        self._publish_locks: dict[str, threading.Lock] = {}
        self._versions: dict[str, int] = {}
        self._published: dict[str, int] = {}
        # guards the dicts above, never held while a game is being changed
        self._registry_lock = threading.Lock()

    def _lookup(self, game_id: str) -> tuple[GameState | None, "threading.Lock | None"]:
        with self._registry_lock:
            return self._sessions.get(game_id), self._locks.get(game_id)

    def create(self) -> SessionResult:
        state = GameState()
        with self._registry_lock:
            self._sessions[state.id] = state
            self._locks[state.id] = threading.Lock()
            self._listeners[state.id] = []
            self._publish_locks[state.id] = threading.Lock()
            self._versions[state.id] = 0
            self._published[state.id] = 0
        logger.info("Created game {}", state.id)
        return SessionResult(view=state.to_dict())

    def get(self, game_id: str, viewer: Player | None = None) -> SessionResult:
        """Current view of a game, redacted for `viewer` when one is given."""
        state, lock = self._lookup(game_id)
        if state is None:
            return _not_found(game_id)
        with lock:
            view = state.to_dict() if viewer is None else redacted_view(state, viewer)
        return SessionResult(view=view)

    def subscribe(self, game_id: str, listener: Listener) -> bool:
        """Call listener(game_id, view) after every successful change to the game. False if no such game."""
        with self._registry_lock:
            if game_id not in self._sessions:
                return False
            self._listeners[game_id].append(listener)
            return True

    def _apply(self, game_id: str, action: Callable[[GameState], Rejection | None]) -> SessionResult:
        state, lock = self._lookup(game_id)
        if state is None:
            return _not_found(game_id)

        with lock:
            rejection = action(state)
            if rejection is not None:
                return SessionResult(error=rejection)
            view = state.to_dict()
            # numbered under the game lock, so numbers follow commit order
            self._versions[game_id] += 1
            version = self._versions[game_id]

        self._publish(game_id, version, view)
        return SessionResult(view=view)

    def _publish(self, game_id: str, version: int, view: dict) -> None:
        """Deliver a view to every listener, unless a later change has already been delivered."""
        with self._registry_lock:
            listeners = list(self._listeners.get(game_id, ()))
            publish_lock = self._publish_locks[game_id]

        with publish_lock:
            if version <= self._published[game_id]:
                logger.debug("Game {}: skipping stale view {} (already sent {})",
                             game_id, version, self._published[game_id])
                return
            self._published[game_id] = version
            for listener in listeners:
                try:
                    listener(game_id, view)
                except Exception:
                    logger.exception("Listener {!r} failed for game {}", listener, game_id)

    def place_piece(self, game_id: str, row: int, col: int, piece_type: str) -> SessionResult:
        """Place a piece by type name ('Elephant', 'tiger', ...). Unknown names are an invalid piece type."""
        return self._apply(game_id, lambda state: rules.place_piece(state, Position(row, col),
                                                                    PieceType.from_name(piece_type)))

    def move(self, game_id: str, from_row: int, from_col: int, to_row: int, to_col: int) -> SessionResult:
        return self._apply(game_id, lambda state: rules.move(state, Position(from_row, from_col),
                                                             Position(to_row, to_col)))

    def register_name(self, game_id: str, side: str, name: str | None) -> SessionResult:
        """Attach a display name to 'Player1' or 'Player2'. Names play no part in the rules."""
        player = Player.from_name(side)

        def register(state: GameState) -> Rejection | None:
            if player is None:
                return Rejection(ErrorKind.INVALID_SIDE, "Invalid side")
            state.names[player] = (name or "").strip()
            return None

        return self._apply(game_id, register)
