"""
CSV export of bracket match results.
"""
import csv
import io
from datetime import date
from typing import Optional

from .models import Bracket

CSV_HEADER = ['Round', 'Match #', 'Player 1', 'Player 2', 'Score', 'Winner', 'Status']


def matches_to_csv(bracket: Bracket, tournament_name: str, generated_on: Optional[date] = None) -> str:
    """
    Export every non-bye match of a bracket as CSV.

    Two ``#`` comment lines name the tournament and the export date, then a
    blank line and the table. Undetermined players read ``TBD`` and
    undecided matches have ``-`` as winner.
    """
    generated_on = generated_on or date.today()

    output = io.StringIO()
    output.write(f"# {tournament_name} - Match Results\n")
    output.write(f"# Generated: {generated_on.isoformat()}\n")
    output.write("\n")

    writer = csv.writer(output, lineterminator='\n')
    writer.writerow(CSV_HEADER)
    for match in bracket.iter_matches():
        if match.is_bye:
            continue
        writer.writerow([
            match.round,
            match.match_number,
            match.player1.name if match.player1 else 'TBD',
            match.player2.name if match.player2 else 'TBD',
            f"{match.score1} - {match.score2}",
            match.winner.name if match.winner else '-',
            match.status,
        ])

    csv_content = output.getvalue()
    output.close()
    return csv_content
