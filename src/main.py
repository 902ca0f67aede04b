# Command line entry point: print a single elimination bracket for a participants file

import argparse
import logging
import random
import sys

import yaml

from ptm.elimination import SLOT_OPTIONS, calculate_bracket_size, generate_bracket, get_round_name
from ptm.errors import BracketValidationError
from ptm.export import matches_to_csv
from ptm.models import Participant


def load_participants(file_path):
    """
    Load participants from YAML.

    The file is a list whose items are either plain names or mappings with
    id, name and optional seed/rating. Plain names get their position as id.
    """
    with open(file_path, mode='r', encoding='utf-8') as file:
        rows = yaml.safe_load(file) or []
    if isinstance(rows, dict):
        rows = rows.get('participants', [])

    participants = []
    for position, row in enumerate(rows, start=1):
        if isinstance(row, dict):
            participants.append(Participant.from_dict(row))
        else:
            participants.append(Participant(id=str(position), name=str(row)))
    return participants


def format_bracket(bracket):
    lines = []
    for round_number, round_matches in enumerate(bracket.rounds, start=1):
        lines.append(f"# {get_round_name(round_number, bracket.total_rounds)}")
        for match in round_matches:
            player1 = match.player1.name if match.player1 else ('BYE' if match.round == 1 else 'TBD')
            player2 = match.player2.name if match.player2 else ('BYE' if match.round == 1 else 'TBD')
            line = f"M{match.match_number}: {player1} vs {player2}"
            if match.is_bye:
                line += f"  (bye, advances: {match.winner.name if match.winner else 'nobody'})"
            lines.append(line)
        lines.append("")
    if bracket.third_place is not None:
        lines.append("# Third place")
        lines.append("Loser SF1 vs Loser SF2")
        lines.append("")
    return "\n".join(lines).rstrip() + "\n"


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Generate a single elimination bracket from a participants YAML file'
    )
    parser.add_argument('participants', help='YAML file listing participants')
    parser.add_argument(
        '--slots',
        type=int,
        help=f'Bracket size, one of {", ".join(str(s) for s in SLOT_OPTIONS)} '
             '(default: smallest that fits)'
    )
    parser.add_argument('--randomize', action='store_true', help='Shuffle participants before placement')
    parser.add_argument('--random-seed', type=int, help='Seed for --randomize, for repeatable draws')
    parser.add_argument('--third-place', action='store_true', help='Add a third-place match')
    parser.add_argument('--csv', action='store_true', help='Print match CSV instead of the bracket tree')
    parser.add_argument('-v', '--verbose', action='store_true', help='Log debug output')
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    participants = load_participants(args.participants)
    slot_count = args.slots or max(calculate_bracket_size(len(participants)), min(SLOT_OPTIONS))
    rng = random.Random(args.random_seed) if args.random_seed is not None else None

    try:
        bracket = generate_bracket(
            participants,
            slot_count,
            randomize=args.randomize,
            third_place=args.third_place,
            rng=rng,
        )
    except BracketValidationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.csv:
        sys.stdout.write(matches_to_csv(bracket, args.participants))
    else:
        sys.stdout.write(format_bracket(bracket))
    return 0


if __name__ == '__main__':
    sys.exit(main())
