import re
from abc import ABC, abstractmethod
from collections import Counter

import rules
from classes import Board, ErrorKind, GameplayError, GameState, GameStatus, Piece, PieceType, Player, Position
from settings import config


class Game(ABC):
    @property
    @abstractmethod
    def valid_players(self) -> tuple[Player, ...]:
        """Which player IDs are allowed."""
        raise NotImplementedError()

    @abstractmethod
    def whose_turn(self) -> Player: ...

    @abstractmethod
    def is_over(self) -> bool: ...

    @abstractmethod
    def scores(self) -> dict[Player, float]: ...

    @abstractmethod
    def state(self, player_id: Player | None = None) -> str: ...

    '''
    Returns a string representation of the game state for one player, or a global one if player_id is None.
    It must carry everything a player needs to choose the next command: rules summary on the first view,
    command format, the board as that player is allowed to see it, and whose turn it is.
    '''

    @abstractmethod
    def play(self, move: str, player_id: Player) -> None: ...

    '''
    Apply one command. Invalid commands raise GameplayError describing why they were refused.
    '''


PLACE_PATTERN = re.compile(r'([EeTtMmSs])@([a-zA-Z]\d+)')
MOVE_PATTERN = re.compile(r'([a-zA-Z]\d+)-([a-zA-Z]\d+)')


class AnimalFlag(Game):
    """
    Text front-end for one game session: parses commands in cell notation, feeds them to the rules engine and
    renders the board from either side's point of view.

    Commands:
        'E@b1'  place an Elephant (E, T, M or S) on cell b1.
        'b2-c3' move the piece on b2 to c3.

    Cells use files a-g and ranks 1-7 seen from the player giving the command, so rank 1 is always that
    player's own back row. Player 2's view is the board rotated by 180 degrees.
    """

    def __init__(self, setup_p1: list[list[str]] | None = None, setup_p2: list[list[str]] | None = None,
                 show_board_labels: bool | None = None, session: GameState | None = None):
        """
        Initialize a game, optionally skipping manual placement.

        Args:
            setup_p1: 2x7 grid of type letters for Player 1, front line first.
            setup_p2: 2x7 grid of type letters for Player 2, front line first, as seen by Player 2.
            show_board_labels: Whether to print file/rank labels alongside the board. Defaults to the
                SHOW_BOARD_LABELS setting.
            session: Existing GameState to drive instead of a fresh one.
        """
        self.session = session if session is not None else GameState()
        self.show_board_labels = config.SHOW_BOARD_LABELS if show_board_labels is None else show_board_labels
        self.first_states = {Player.PLAYER1: True, Player.PLAYER2: True}

        # Pre-built setups go through the same placement rules as typed commands
        if setup_p1 is not None:
            self._setup_pieces(Player.PLAYER1, setup_p1)
        if setup_p2 is not None:
            self._setup_pieces(Player.PLAYER2, setup_p2)

    @property
    def valid_players(self) -> tuple[Player, ...]:
        return Player.PLAYER1, Player.PLAYER2

    def _setup_pieces(self, player_id: Player, setup: list[list[str]]) -> None:
        """
        Place a full setup for player_id. Row 0 of the setup is the front line, row 1 the back row, both read
        left to right from that player's side of the table.
        Raises GameplayError on any validation failure.
        """
        size = Board.size
        if not (isinstance(setup, list) and len(setup) == 2 and all(
                isinstance(r, list) and len(r) == size for r in setup)):
            raise GameplayError(f"Setup must be a list of 2 lists, each of length {size}.")

        counts = Counter(sym.upper() for sym in setup[0] + setup[1])
        expected = {piece_type.symbol: piece_type.quota for piece_type in PieceType}
        if counts != expected:
            raise GameplayError(f"Invalid piece counts: found {dict(counts)}, expected {expected}.")

        for row_idx, row_setup in enumerate(setup):
            rank = 2 - row_idx
            for col_idx, sym in enumerate(row_setup):
                cell = f"{chr(ord('a') + col_idx)}{rank}"
                self._place(PieceType.from_symbol(sym), self._cell_to_indices(cell, player_id))

    @staticmethod
    def _cell_to_indices(cell: str, player_id: Player | None) -> Position:
        """
        Convert cell notation like 'b2' into a board Position, rotating 180 degrees for Player 2.
        Raises GameplayError for invalid notation.
        """
        size = Board.size
        last_file = chr(ord('a') + size - 1)
        m = re.fullmatch(r'([a-zA-Z])(\d+)', cell) if isinstance(cell, str) else None
        if not m or not ('a' <= m.group(1).lower() <= last_file) or not (1 <= int(m.group(2)) <= size):
            raise GameplayError(f"Invalid cell notation: {cell!r}. Use files a–{last_file} and ranks 1–{size}.")

        col = ord(m.group(1).lower()) - ord('a')
        row = size - int(m.group(2))
        if player_id == Player.PLAYER2:
            row = size - 1 - row
            col = size - 1 - col
        return Position(row, col)

    @staticmethod
    def _indices_to_cell(pos: Position, player_id: Player | None) -> str:
        size = Board.size
        r, c = pos
        if player_id == Player.PLAYER2:
            r = size - 1 - r
            c = size - 1 - c
        return f"{chr(ord('a') + c)}{size - r}"

    def _place(self, piece_type: PieceType | None, pos: Position) -> None:
        rejection = rules.place_piece(self.session, pos, piece_type)
        if rejection is not None:
            raise GameplayError.from_rejection(rejection)

    def _oriented_rows(self, player_id: Player | None) -> list[list[Piece | None]]:
        """Board rows in the order the given player sees them."""
        rows = [list(row) for row in self.session.board.cells]
        if player_id == Player.PLAYER2:
            rows = [list(reversed(row)) for row in reversed(rows)]
        return rows

    def _cell_symbol(self, piece: Piece | None, player_id: Player | None) -> str:
        """
        '.' empty, '?' hidden enemy, otherwise type letter and lives: upper case for Player 1, lower case for
        Player 2, with a trailing '*' when the piece carries a flag.
        """
        if piece is None:
            return '.'
        if player_id is not None and not piece.is_visible_to(player_id):
            return '?' + ('*' if piece.has_enemy_flag else '')
        letter = piece.type.symbol if piece.owner == Player.PLAYER1 else piece.type.symbol.lower()
        return f"{letter}{piece.lives}" + ('*' if piece.has_enemy_flag else '')

    def _board_lines(self, player_id: Player | None = None) -> list[str]:
        size = Board.size
        lines = []
        if self.show_board_labels:
            indent = " " * 5
            files = [chr(ord('a') + i) for i in range(size)]
            lines.append(indent + " ".join(f.ljust(3) for f in files))
            lines.append("")

        for idx, row in enumerate(self._oriented_rows(player_id)):
            prefix = ""
            if self.show_board_labels:
                prefix = str(size - idx).ljust(3) + " " * 2
            line = prefix + " ".join(self._cell_symbol(piece, player_id).ljust(3) for piece in row)
            lines.append(line.rstrip())
        return lines

    def _flag_lines(self, player_id: Player | None) -> list[str]:
        lines = []
        for owner in self.valid_players:
            if self.session.flag_on_board[owner]:
                cell = self._indices_to_cell(self.session.flag_pos[owner], player_id)
                where = f"on the board at {cell}"
            elif player_id is None:
                where = f"carried by {owner.opponent.label}"
            elif owner == player_id:
                where = "carried by the enemy"
            else:
                where = "carried by one of your pieces"
            if player_id is None:
                lines.append(f"{owner.label}'s flag is {where}.")
            elif owner == player_id:
                lines.append(f"Your flag is {where}.")
            else:
                lines.append(f"The enemy flag is {where}.")
        return lines

    def whose_turn(self) -> Player:
        """
        During placement both sides place independently; for a shared terminal Player 1 places first, then
        Player 2. After that, the engine's current player.
        """
        if self.session.status == GameStatus.PLACEMENT:
            for player in self.valid_players:
                if not self.session.placement_done(player):
                    return player
        return self.session.current_player

    def is_over(self) -> bool:
        return self.session.status == GameStatus.FINISHED

    def scores(self) -> dict[Player, float]:
        """Winner 1.0, loser 0.0 once finished; 0.0 for both before that."""
        winner = self.session.winner
        if winner is None:
            return {Player.PLAYER1: 0.0, Player.PLAYER2: 0.0}
        return {winner: 1.0, winner.opponent: 0.0}

    def state(self, player_id: Player | None = None) -> str:
        lines: list[str] = ["Animal Flag: bring the enemy flag back to your own flag square.", ""]

        first = (self.first_states[Player.PLAYER1] or self.first_states[Player.PLAYER2]) if player_id is None \
            else self.first_states[player_id]
        if first:
            lines.append("Quick summary of the rules: ")
            lines.append("Each side places 4 Elephants, 4 Tigers, 4 Mice and 2 Scorpions on its two back rows.")
            lines.append("Pieces move one step in any direction, diagonals included. Every piece has 3 lives.")
            lines.append("Moving onto an enemy attacks it. Elephant beats Tiger, Tiger beats Mouse, Mouse beats "
                         "Elephant: the loser of the matchup loses one life. Equal matchups cost both one life. ")
            lines.append("A Scorpion in a fight kills both pieces at once.")
            lines.append("Pieces that have fought are revealed to both sides for the rest of the game.")
            lines.append("Step on the enemy flag to pick it up and carry it to your own flag square to win. "
                         "A carrier that dies drops the flag where it fell.")
            lines.append("")

        lines.append("Cells are files a–g and ranks 1–7; rank 1 is your back row. '.' is empty, '?' a hidden "
                     "enemy, otherwise type letter and lives (upper case Player 1, lower case Player 2), "
                     "'*' marks a flag carrier.")
        if self.session.status == GameStatus.PLACEMENT:
            lines.append("Place a piece with 'E@b1' (E, T, M or S, then the cell).")
        else:
            lines.append("Move with 'b2-c3'.")
        lines.append("")

        lines.extend(self._board_lines(player_id))
        lines.append("")
        lines.extend(self._flag_lines(player_id))

        if self.is_over():
            lines.append(f"\n{self.session.winner.label} brought the enemy flag home and won the game! "
                         "The game is now over.")
        elif player_id != self.whose_turn():
            lines.append(f"\nIt is {self.whose_turn().label}'s turn.")
        else:
            lines.append(f"\nIt is {self.whose_turn().label}'s (your) turn. Please enter your command. ")

        return "\n".join(lines) + "\n"

    def play(self, move: str, player_id: Player) -> None:
        """
        Apply 'E@b1' (placement) or 'b2-c3' (move), with cells read from player_id's side of the board.
        Moves are only accepted from the player to move. Raises GameplayError if nothing was applied.
        """
        if not isinstance(move, str):
            raise GameplayError(f"Invalid command: {move!r}.")
        command = move.strip()

        m = PLACE_PATTERN.fullmatch(command)
        if m:
            pos = self._cell_to_indices(m.group(2), player_id)
            if self.session.status == GameStatus.PLACEMENT and rules.row_to_side(pos.row) not in (player_id, None):
                raise GameplayError("You can place pieces only on your first two rows",
                                    ErrorKind.NOT_YOUR_PLACEMENT_ROW)
            self._place(PieceType.from_symbol(m.group(1)), pos)
        else:
            m = MOVE_PATTERN.fullmatch(command)
            if not m:
                raise GameplayError(f"Invalid command: {move!r}. Use 'E@b1' to place or 'b2-c3' to move.")
            if self.session.status == GameStatus.IN_PROGRESS and player_id != self.session.current_player:
                raise GameplayError(f"It is {self.session.current_player.label}'s turn.")
            src = self._cell_to_indices(m.group(1), player_id)
            dst = self._cell_to_indices(m.group(2), player_id)
            rejection = rules.move(self.session, src, dst)
            if rejection is not None:
                raise GameplayError.from_rejection(rejection)

        self.first_states[player_id] = False
