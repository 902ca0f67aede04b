"""
Single elimination bracket generation and management.
"""
import logging
import math
import random
from typing import Dict, List, Optional, Sequence, Tuple

from .errors import BracketValidationError, MatchNotFoundError
from .models import Bracket, BracketMatch, Participant, STATUS_BYE, STATUS_PENDING

logger = logging.getLogger(__name__)

SLOT_OPTIONS = (4, 8, 16, 32, 64)
THIRD_PLACE_MATCH_ID = 'third-place'


def get_round_name(round_number: int, total_rounds: int) -> str:
    """Get the name of a round from its 1-based index."""
    teams_in_round = 2 ** (total_rounds - round_number + 1)
    if teams_in_round == 2:
        return "Final"
    elif teams_in_round == 4:
        return "Semifinal"
    elif teams_in_round == 8:
        return "Quarterfinal"
    else:
        return f"Round of {teams_in_round}"


def calculate_bracket_size(num_participants: int) -> int:
    """Calculate the bracket size (next power of 2)."""
    if num_participants <= 0:
        return 0
    return 2 ** math.ceil(math.log2(num_participants))


def calculate_byes(num_participants: int, slot_count: Optional[int] = None) -> int:
    """Calculate number of byes needed to fill the bracket."""
    if slot_count is None:
        slot_count = calculate_bracket_size(num_participants)
    return max(slot_count - num_participants, 0)


def is_power_of_two(value: int) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 1 and value & (value - 1) == 0


def match_id_for(round_number: int, match_number: int) -> str:
    return f"round-{round_number}-match-{match_number}"


def _validate_inputs(participants: Sequence[Participant], slot_count: int):
    if len(participants) < 2:
        raise BracketValidationError(
            f"At least 2 participants are required, got {len(participants)}"
        )
    if not is_power_of_two(slot_count) or slot_count < 2:
        raise BracketValidationError(f"Slot count must be a power of two >= 2, got {slot_count!r}")
    if slot_count < len(participants):
        raise BracketValidationError(
            f"Slot count {slot_count} is smaller than the number of participants ({len(participants)})"
        )

    seen = set()
    for participant in participants:
        if participant.is_bye:
            raise BracketValidationError(f"Participant id {participant.id!r} uses the reserved BYE prefix")
        if participant.id in seen:
            raise BracketValidationError(f"Duplicate participant id: {participant.id}")
        seen.add(participant.id)


def order_participants(participants: Sequence[Participant], randomize: bool = False,
                       rng: Optional[random.Random] = None) -> List[Participant]:
    """
    Put participants in slot order.

    Randomized brackets are shuffled uniformly. Otherwise participants are
    stably sorted by seed, where a missing seed counts as the participant's
    1-based position in the list, so an unseeded list keeps its input order.
    """
    if randomize:
        ordered = list(participants)
        (rng or random.Random()).shuffle(ordered)
        return ordered

    keyed = [
        (p.seed if p.seed is not None else position, position, p)
        for position, p in enumerate(participants, start=1)
    ]
    keyed.sort(key=lambda item: (item[0], item[1]))
    return [p for _, _, p in keyed]


def pad_with_byes(ordered: List[Participant], slot_count: int) -> List[Participant]:
    """Append BYE placeholders until the list fills every slot."""
    padded = list(ordered)
    while len(padded) < slot_count:
        padded.append(Participant.bye(len(padded)))
    return padded


def _create_first_round(entrants: List[Participant]) -> List[BracketMatch]:
    first_round = []
    for i in range(len(entrants) // 2):
        p1 = entrants[i * 2]
        p2 = entrants[i * 2 + 1]
        is_bye = p1.is_bye or p2.is_bye

        winner = None
        if is_bye:
            # Whichever side is real; nobody when both are placeholders
            if not p1.is_bye:
                winner = p1
            elif not p2.is_bye:
                winner = p2

        first_round.append(BracketMatch(
            id=match_id_for(1, i + 1),
            round=1,
            match_number=i + 1,
            player1=None if p1.is_bye else p1,
            player2=None if p2.is_bye else p2,
            winner=winner,
            is_bye=is_bye,
            status=STATUS_BYE if is_bye else STATUS_PENDING,
        ))
    return first_round


def link_rounds(rounds: List[List[BracketMatch]]):
    """
    Point every match at the slot its winner advances to.

    Match index m of round r feeds round r+1 match floor(m/2), slot (m % 2) + 1.
    """
    for round_idx in range(len(rounds) - 1):
        next_round = rounds[round_idx + 1]
        for m, match in enumerate(rounds[round_idx]):
            target = next_round[m // 2]
            match.next_match_id = target.id
            match.next_match_slot = (m % 2) + 1


def _resolve_byes(rounds: List[List[BracketMatch]]):
    """
    Push bye winners forward, round by round.

    A match fed by one bye winner and one dead match (a bye with nobody to
    advance) is itself a bye for that winner; a match fed by two dead matches
    is dead too.
    """
    for round_idx in range(len(rounds) - 1):
        current = rounds[round_idx]
        for i, target in enumerate(rounds[round_idx + 1]):
            feeders = [(1, current[i * 2])]
            if i * 2 + 1 < len(current):
                feeders.append((2, current[i * 2 + 1]))

            for slot, feeder in feeders:
                if feeder.is_bye and feeder.winner is not None:
                    target.set_slot(slot, feeder.winner)

            dead = [feeder for _, feeder in feeders if feeder.is_dead]
            advanced = [feeder for _, feeder in feeders if feeder.is_bye and feeder.winner is not None]
            if len(dead) == len(feeders):
                target.is_bye = True
                target.status = STATUS_BYE
            elif dead and advanced:
                target.is_bye = True
                target.status = STATUS_BYE
                target.winner = advanced[0].winner


def _add_third_place_match(rounds: List[List[BracketMatch]]) -> Optional[BracketMatch]:
    semifinals = rounds[-2]
    if any(match.is_bye for match in semifinals):
        logger.info("Skipping third-place match: a semifinal is a bye and can never produce a loser")
        return None

    # A semifinal fed by a dead match becomes a walkover once its other feeder is decided
    if len(rounds) > 2:
        feeding = rounds[-3]
        for m, match in enumerate(semifinals):
            if any(feeder.is_dead for feeder in feeding[m * 2:m * 2 + 2]):
                logger.info("Skipping third-place match: semifinal %s will be a walkover", match.id)
                return None

    third_place = BracketMatch(
        id=THIRD_PLACE_MATCH_ID,
        round=len(rounds),
        match_number=2,
        is_third_place=True,
    )
    for m, match in enumerate(semifinals):
        match.loser_next_match_id = third_place.id
        match.loser_next_match_slot = m + 1
    return third_place


def generate_bracket(participants: Sequence[Participant], slot_count: int, randomize: bool = False,
                     third_place: bool = False, rng: Optional[random.Random] = None) -> Bracket:
    """
    Generate a linked single elimination bracket.

    Participants are ordered (see ``order_participants``), padded at the end
    with BYE placeholders up to ``slot_count`` and paired off consecutively.
    Later rounds start empty except for slots filled by bye winners.

    Args:
        participants: Entrants; at least two, with unique ids
        slot_count: Bracket size, a power of two no smaller than the entrant count
        randomize: Shuffle entrants instead of placing them by seed
        third_place: Add a match between the two semifinal losers
        rng: Random source used when ``randomize`` is set

    Returns:
        Bracket whose rounds hold slot_count / 2**r matches each
    """
    _validate_inputs(participants, slot_count)

    entrants = pad_with_byes(order_participants(participants, randomize, rng), slot_count)
    total_rounds = int(math.log2(slot_count))

    rounds = [_create_first_round(entrants)]
    for round_number in range(2, total_rounds + 1):
        num_matches = slot_count // (2 ** round_number)
        rounds.append([
            BracketMatch(id=match_id_for(round_number, i + 1), round=round_number, match_number=i + 1)
            for i in range(num_matches)
        ])

    link_rounds(rounds)
    _resolve_byes(rounds)

    bracket = Bracket(rounds=rounds)
    if third_place and total_rounds >= 2:
        bracket.third_place = _add_third_place_match(rounds)

    logger.debug(
        "Generated %d-slot bracket: %d participants, %d byes, %d rounds",
        slot_count, len(participants), calculate_byes(len(participants), slot_count), total_rounds,
    )
    return bracket


def index_matches(bracket: Bracket) -> Dict[str, BracketMatch]:
    return {match.id: match for match in bracket.iter_matches()}


def index_feeders(bracket: Bracket) -> Dict[Tuple[str, int], BracketMatch]:
    """Map (next_match_id, slot) to the match whose winner fills that slot."""
    return {
        (match.next_match_id, match.next_match_slot): match
        for match in bracket.iter_matches()
        if match.next_match_id
    }


def find_match(bracket: Bracket, match_id: str) -> BracketMatch:
    for match in bracket.iter_matches():
        if match.id == match_id:
            return match
    raise MatchNotFoundError(match_id)


def carry_forward(bracket: Bracket, match: BracketMatch) -> List[BracketMatch]:
    """
    Write a decided match's winner into its linked slot.

    Keeps walking while the destination's other feeder is a dead bye, since
    such a destination is a walkover for the arriving winner. Returns the
    matches whose slots changed.
    """
    matches_by_id = index_matches(bracket)
    feeders = index_feeders(bracket)
    changed = []

    current = match
    while current.winner is not None and current.next_match_id:
        target = matches_by_id.get(current.next_match_id)
        if target is None:
            raise MatchNotFoundError(current.next_match_id)
        target.set_slot(current.next_match_slot, current.winner)
        changed.append(target)

        sibling = feeders.get((target.id, 3 - current.next_match_slot))
        if target.winner is not None or sibling is None or not sibling.is_dead:
            break
        target.is_bye = True
        target.status = STATUS_BYE
        target.winner = current.winner
        current = target

    return changed


def get_champion(bracket: Bracket) -> Optional[Participant]:
    final = bracket.final
    return final.winner if final else None


def get_bracket_display(bracket: Bracket) -> Dict:
    """
    Get bracket data formatted for UI display.
    """
    total_rounds = bracket.total_rounds
    bracket_size = len(bracket.rounds[0]) * 2 if bracket.rounds else 0

    first_round = bracket.rounds[0] if bracket.rounds else []
    participants = {
        player.id
        for match in first_round
        for player in (match.player1, match.player2)
        if player is not None
    }
    first_round_byes = sum(1 for m in first_round if m.is_bye)

    rounds = {}
    matches_per_round = {}
    for round_number, round_matches in enumerate(bracket.rounds, start=1):
        round_name = get_round_name(round_number, total_rounds)
        rounds[round_name] = [m.to_dict() for m in round_matches]
        matches_per_round[round_name] = len([m for m in round_matches if not m.is_bye])

    champion = get_champion(bracket)
    return {
        'rounds': rounds,
        'third_place': bracket.third_place.to_dict() if bracket.third_place else None,
        'bracket_size': bracket_size,
        'total_rounds': total_rounds,
        'total_participants': len(participants),
        'byes': first_round_byes,
        'matches_per_round': matches_per_round,
        'champion': champion.to_dict() if champion else None,
    }
