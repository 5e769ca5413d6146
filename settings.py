import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


@dataclass(slots=True)
class Config:
    # --- Game constants ---
    BOARD_SIZE: int = 7
    MAX_LIVES: int = 3
    # keyed by PieceType value
    PIECE_QUOTAS: dict[str, int] = field(
        default_factory=lambda: {"Elephant": 4, "Tiger": 4, "Mouse": 4, "Scorpion": 2}
    )

    # --- Presentation / logging ---
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    SHOW_BOARD_LABELS: bool = _env_flag("SHOW_BOARD_LABELS", "true")

    def __post_init__(self):
        if sum(self.PIECE_QUOTAS.values()) != 2 * self.BOARD_SIZE:
            raise ValueError("PIECE_QUOTAS must exactly fill two rows of the board")

    @property
    def pieces_per_side(self) -> int:
        return sum(self.PIECE_QUOTAS.values())


config = Config()
