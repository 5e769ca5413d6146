import uuid
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Iterator, NamedTuple

from settings import config


class ErrorKind(Enum):
    """Every reason the engine or the session store can refuse an action."""
    WRONG_PHASE = "WrongPhase"
    INVALID_PIECE_TYPE = "InvalidPieceType"
    OUT_OF_BOUNDS = "OutOfBounds"
    NOT_YOUR_PLACEMENT_ROW = "NotYourPlacementRow"
    SQUARE_OCCUPIED = "SquareOccupied"
    TYPE_QUOTA_EXCEEDED = "TypeQuotaExceeded"
    NOT_ADJACENT = "NotAdjacent"
    NO_PIECE_AT_SOURCE = "NoPieceAtSource"
    NOT_YOUR_PIECE = "NotYourPiece"
    CANNOT_CAPTURE_OWN_PIECE = "CannotCaptureOwnPiece"
    SESSION_NOT_FOUND = "SessionNotFound"
    INVALID_SIDE = "InvalidSide"


@dataclass(frozen=True)
class Rejection:
    """
    A refused action, returned as a value. The session is never modified when one of these is produced.

    Attributes:
        kind (ErrorKind): machine-readable reason.
        message (str): human-readable explanation, suitable for showing to a player.
    """
    kind: ErrorKind
    message: str

    def __str__(self):
        return self.message


class GameplayError(Exception):
    """
    Raised by the text front-end when a command cannot be applied, either because it could not be parsed or
    because the engine rejected it. The player should be prompted to try again.
    """

    def __init__(self, message: str, kind: ErrorKind | None = None):
        super().__init__(message)
        self.kind = kind

    @classmethod
    def from_rejection(cls, rejection: Rejection) -> "GameplayError":
        return cls(rejection.message, rejection.kind)


class Player(IntEnum):
    PLAYER1 = 1
    PLAYER2 = 2

    @property
    def opponent(self) -> "Player":
        return Player.PLAYER2 if self is Player.PLAYER1 else Player.PLAYER1

    @property
    def label(self) -> str:
        """Name used on the wire, e.g. 'Player1'."""
        return f"Player{self.value}"

    @classmethod
    def from_name(cls, name: str) -> "Player | None":
        """Parse 'Player1' / 'player2' (case-insensitive). Returns None for anything else."""
        if not isinstance(name, str):
            return None
        for player in cls:
            if player.label.lower() == name.strip().lower():
                return player
        return None


class PieceType(Enum):
    ELEPHANT = "Elephant"
    TIGER = "Tiger"
    MOUSE = "Mouse"
    SCORPION = "Scorpion"

    @property
    def symbol(self) -> str:
        """Single letter used by the text front-end: 'E', 'T', 'M' or 'S'."""
        return self.value[0]

    @classmethod
    def from_name(cls, name: str) -> "PieceType | None":
        """Parse a type name such as 'tiger' (case-insensitive). Returns None when it is not a known type."""
        if not isinstance(name, str):
            return None
        for piece_type in cls:
            if piece_type.value.lower() == name.strip().lower():
                return piece_type
        return None

    @property
    def quota(self) -> int:
        """How many pieces of this type each side places."""
        return config.PIECE_QUOTAS[self.value]

    @classmethod
    def from_symbol(cls, symbol: str) -> "PieceType | None":
        for piece_type in cls:
            if piece_type.symbol == symbol.upper():
                return piece_type
        return None


class GameStatus(Enum):
    PLACEMENT = "Placement"      # both sides fill their two back rows
    IN_PROGRESS = "InProgress"   # turns alternate
    FINISHED = "Finished"        # a flag reached its captor's home


class Position(NamedTuple):
    row: int
    col: int


class Piece:
    """
    A single unit on the board.

    Attributes:
        owner (Player): side this piece belongs to.
        type (PieceType): Elephant, Tiger, Mouse or Scorpion. Never changes.
        lives (int): remaining life points, from config.MAX_LIVES down to 0.
        has_enemy_flag (bool): True while this piece is carrying the opponent's flag.
        revealed_to_player1 (bool): True once Player 1 is allowed to see this piece's type.
        revealed_to_player2 (bool): True once Player 2 is allowed to see this piece's type.
    """

    def __init__(self, owner: Player, piece_type: PieceType):
        self.owner = owner
        self.type = piece_type
        self.lives = config.MAX_LIVES
        self.has_enemy_flag = False
        self.revealed_to_player1 = False
        self.revealed_to_player2 = False

    @property
    def is_dead(self) -> bool:
        return self.lives <= 0

    def take_hit(self, damage: int = 1) -> None:
        self.lives = max(0, self.lives - damage)

    def kill(self) -> None:
        self.lives = 0

    def reveal(self) -> None:
        """Make this piece known to both sides for the rest of the game."""
        self.revealed_to_player1 = True
        self.revealed_to_player2 = True

    def is_visible_to(self, viewer: Player) -> bool:
        """Owners always see their own pieces; opponents only after the piece has fought."""
        if viewer == self.owner:
            return True
        if viewer == Player.PLAYER1:
            return self.revealed_to_player1
        return self.revealed_to_player2

    def to_dict(self) -> dict:
        return {
            'owner': self.owner.label,
            'type': self.type.value,
            'lives': self.lives,
            'hasEnemyFlag': self.has_enemy_flag,
        }

    def __repr__(self):
        return f"Piece({self.owner.label}, {self.type.value}, lives={self.lives})"


class Board:
    """
    Fixed square grid holding at most one piece per cell. Row 0 is Player 2's back row, the last row is
    Player 1's back row.
    """
    size = config.BOARD_SIZE

    def __init__(self):
        self.cells: list[list[Piece | None]] = [[None for _ in range(self.size)] for _ in range(self.size)]

    def is_inside(self, row: int, col: int) -> bool:
        return 0 <= row < self.size and 0 <= col < self.size

    def get_piece(self, pos: Position) -> Piece | None:
        return self.cells[pos.row][pos.col]

    def set_piece(self, pos: Position, piece: Piece | None) -> None:
        self.cells[pos.row][pos.col] = piece

    def relocate(self, src: Position, dst: Position) -> None:
        """Move the piece at src to dst, clearing src."""
        piece = self.get_piece(src)
        self.set_piece(src, None)
        self.set_piece(dst, piece)

    def pieces(self, owner: Player | None = None) -> Iterator[tuple[Position, Piece]]:
        """Yield (position, piece) for every occupied cell, optionally filtered by owner."""
        for r, row in enumerate(self.cells):
            for c, piece in enumerate(row):
                if piece is not None and (owner is None or piece.owner == owner):
                    yield Position(r, c), piece


class GameState:
    """
    The aggregate for one game: board, phase, turn, placement counters, flags and display names.
    Only the functions in rules.py change the board, phase, turn, counters and flags.
    """

    def __init__(self, game_id: str | None = None):
        self.id = game_id or str(uuid.uuid4())
        self.board = Board()
        self.current_player = Player.PLAYER1
        self.status = GameStatus.PLACEMENT
        self.winner: Player | None = None

        # pieces placed so far, per side and type
        self.placed: dict[Player, dict[PieceType, int]] = {
            player: {piece_type: 0 for piece_type in PieceType} for player in Player
        }

        # each flag starts in the middle of its owner's back row
        last = Board.size - 1
        middle = Board.size // 2
        self.flag_home: dict[Player, Position] = {
            Player.PLAYER1: Position(last, middle),
            Player.PLAYER2: Position(0, middle),
        }
        self.flag_pos: dict[Player, Position] = dict(self.flag_home)
        self.flag_on_board: dict[Player, bool] = {player: True for player in Player}

        self.names: dict[Player, str] = {player: "" for player in Player}

    def placement_done(self, player: Player) -> bool:
        """True once the side has placed exactly its full quota of every type."""
        return all(count == piece_type.quota for piece_type, count in self.placed[player].items())

    def to_dict(self) -> dict:
        """
        Serializable view of the whole session. Nothing is hidden here: deciding what a given viewer may see is
        left to the caller (see sessions.redacted_view).
        """
        cells = [
            [None if piece is None else piece.to_dict() for piece in row]
            for row in self.board.cells
        ]

        def flag(player: Player) -> dict:
            pos = self.flag_pos[player]
            return {'row': pos.row, 'col': pos.col, 'onBoard': self.flag_on_board[player]}

        return {
            'id': self.id,
            'currentPlayer': self.current_player.label,
            'status': self.status.value,
            'winner': self.winner.label if self.winner is not None else "",
            'cells': cells,
            'player1Flag': flag(Player.PLAYER1),
            'player2Flag': flag(Player.PLAYER2),
            'player1Name': self.names[Player.PLAYER1],
            'player2Name': self.names[Player.PLAYER2],
        }
