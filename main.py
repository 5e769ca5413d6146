import argparse
import sys

from loguru import logger

from classes import GameplayError
from game import AnimalFlag
from settings import config

# Quick-start setups, front line first, read from each player's own side of the table
setup_p1 = [
    ['T', 'M', 'E', 'S', 'E', 'M', 'T'],
    ['E', 'T', 'M', 'S', 'M', 'T', 'E'],
]
setup_p2 = [
    ['M', 'E', 'T', 'S', 'T', 'E', 'M'],
    ['T', 'M', 'E', 'S', 'E', 'M', 'T'],
]


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Play Animal Flag on one terminal.")
    parser.add_argument("--quick-setup", action="store_true",
                        help="skip the placement phase and start from the bundled setups")
    args = parser.parse_args(argv)

    logger.remove()
    logger.add(sys.stderr, level=config.LOG_LEVEL)

    if args.quick_setup:
        game = AnimalFlag(setup_p1, setup_p2)
    else:
        game = AnimalFlag()

    while not game.is_over():
        player_id = game.whose_turn()
        print(game.state(player_id))
        move = input(f"Command for {player_id.label}: \n")
        try:
            game.play(move, player_id)
        except GameplayError as e:
            print(f"Illegal command: {e}. Please try again.\n")

    print(game.state())


if __name__ == '__main__':
    main()
