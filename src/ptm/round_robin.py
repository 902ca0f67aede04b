"""
Round robin group play and the transition from groups to a knockout bracket.
"""
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Sequence

from .elimination import calculate_bracket_size, generate_bracket
from .errors import BracketValidationError
from .models import Bracket, BracketMatch, Participant, STATUS_IN_PROGRESS


@dataclass
class GroupStanding:
    participant: Participant
    matches_played: int = 0
    wins: int = 0
    losses: int = 0
    draws: int = 0
    points_for: int = 0
    points_against: int = 0
    standing_points: int = 0

    @property
    def point_diff(self) -> int:
        return self.points_for - self.points_against

    def to_dict(self) -> Dict:
        return {
            'participant': self.participant.to_dict(),
            'matches_played': self.matches_played,
            'wins': self.wins,
            'losses': self.losses,
            'draws': self.draws,
            'points_for': self.points_for,
            'points_against': self.points_against,
            'point_diff': self.point_diff,
            'standing_points': self.standing_points,
        }


def generate_round_robin_matches(participants: Sequence[Participant],
                                 group_name: Optional[str] = None) -> List[BracketMatch]:
    """
    Pair every participant with every other one using the circle method.

    The first participant stays fixed while the rest rotate, which spreads
    each participant's matches evenly across rounds. An odd field gets a
    BYE placeholder whose pairings are skipped.
    """
    players = list(participants)
    if len(players) < 2:
        return []
    if len(players) % 2 != 0:
        players.append(Participant.bye(len(players)))

    prefix = f"{group_name}-" if group_name else ""
    indices = list(range(len(players)))
    half = len(players) // 2
    matches = []
    match_number = 1

    for round_idx in range(len(players) - 1):
        for i in range(half):
            p1 = players[indices[i]]
            p2 = players[indices[len(players) - 1 - i]]
            if p1.is_bye or p2.is_bye:
                continue
            matches.append(BracketMatch(
                id=f"{prefix}rr-{round_idx + 1}-{match_number}",
                round=round_idx + 1,
                match_number=match_number,
                player1=p1,
                player2=p2,
            ))
            match_number += 1

        # Rotate everyone but the first player
        indices.insert(1, indices.pop())

    return matches


def calculate_group_standings(participants: Sequence[Participant],
                              matches: Sequence[BracketMatch]) -> List[GroupStanding]:
    """
    Calculate group standings from completed matches.

    3 points for a win, 1 for a draw. Ranked by points, then point difference.
    """
    standings = {p.id: GroupStanding(participant=p) for p in participants}

    for match in matches:
        if match.player1 is None or match.player2 is None:
            continue
        # Level scores are recorded as in progress with no winner
        if match.winner is None and match.status != STATUS_IN_PROGRESS:
            continue
        first = standings.get(match.player1.id)
        second = standings.get(match.player2.id)
        if first is None or second is None:
            continue

        first.matches_played += 1
        second.matches_played += 1
        first.points_for += match.score1
        first.points_against += match.score2
        second.points_for += match.score2
        second.points_against += match.score1

        if match.winner is None:
            first.draws += 1
            second.draws += 1
            first.standing_points += 1
            second.standing_points += 1
        elif match.winner.id == match.player1.id:
            first.wins += 1
            first.standing_points += 3
            second.losses += 1
        elif match.winner.id == match.player2.id:
            second.wins += 1
            second.standing_points += 3
            first.losses += 1

    # sorted() is stable, so ties keep registration order
    return sorted(standings.values(), key=lambda s: (-s.standing_points, -s.point_diff))


def get_qualifiers_from_groups(groups: Sequence[Dict], qualifiers_per_group: int = 2) -> List[Participant]:
    """Take the top finishers of each group, group by group."""
    qualifiers = []
    for group in groups:
        for standing in group['standings'][:qualifiers_per_group]:
            qualifiers.append(standing.participant)
    return qualifiers


def cross_seed_qualifiers(groups: Sequence[Dict], qualifiers_per_group: int = 2) -> List[Participant]:
    """
    Order qualifiers for knockout placement.

    Group winners are taken in group order, runners-up in reverse group
    order, third places in group order again, and so on.
    """
    seeded = []
    num_groups = len(groups)
    for position in range(qualifiers_per_group):
        for group_idx in range(num_groups):
            actual_idx = group_idx if position % 2 == 0 else num_groups - 1 - group_idx
            standings = groups[actual_idx]['standings']
            if position < len(standings):
                seeded.append(standings[position].participant)
    return seeded


def generate_knockout_from_groups(groups: Sequence[Dict], qualifiers_per_group: int = 2,
                                  slot_count: Optional[int] = None) -> Bracket:
    """
    Build the knockout bracket for the qualifiers of group play.

    Args:
        groups: Dicts with 'group_id' and ranked 'standings'
        qualifiers_per_group: How many finishers advance from each group
        slot_count: Bracket size; defaults to the next power of two

    Returns:
        A bracket seeded in cross-seed order, never shuffled
    """
    seeded = cross_seed_qualifiers(groups, qualifiers_per_group)
    if len(seeded) < 2:
        raise BracketValidationError(f"Need at least 2 qualifiers for a knockout, got {len(seeded)}")
    if slot_count is None:
        slot_count = calculate_bracket_size(len(seeded))
    # Seeds on the qualifiers are group seeds; placement follows cross-seed order
    return generate_bracket([replace(p, seed=None) for p in seeded], slot_count, randomize=False)
