"""
Conversion between the round-based bracket and flat persisted match records.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from .elimination import match_id_for
from .errors import RecordValidationError
from .models import Bracket, BracketMatch, MatchRecord, Participant, is_bye_id

logger = logging.getLogger(__name__)


def _player_id(participant: Optional[Participant]) -> Optional[str]:
    if participant is None or participant.is_bye:
        return None
    return participant.id


def flatten(bracket: Bracket, tournament_id: Optional[str] = None) -> List[MatchRecord]:
    """
    Flatten a bracket into match records for bulk persistence.

    Records come out round by round in match order, followed by the
    third-place match; ``bracket_position`` is the emission index.
    """
    records = []
    for position, match in enumerate(bracket.iter_matches()):
        records.append(MatchRecord(
            id=match.id,
            tournament_id=tournament_id,
            round=match.round,
            match_number=match.match_number,
            bracket_position=position,
            player1_id=_player_id(match.player1),
            player2_id=_player_id(match.player2),
            winner_id=_player_id(match.winner),
            player1_score=match.score1,
            player2_score=match.score2,
            status=match.status,
            is_bye=match.is_bye,
            is_third_place=match.is_third_place,
            next_match_id=match.next_match_id,
            next_match_slot=match.next_match_slot,
            loser_next_match_id=match.loser_next_match_id,
            loser_next_match_slot=match.loser_next_match_slot,
        ))
    return records


class _ParticipantResolver:
    """Turns player references on a record back into participants."""

    def __init__(self, participants: Optional[Sequence[Participant]]):
        self.known = {p.id: p for p in participants or []}

    def resolve(self, participant_id: Optional[str], embedded: Optional[Dict[str, Any]]) -> Optional[Participant]:
        if participant_id is None or is_bye_id(participant_id):
            return None
        if participant_id in self.known:
            return self.known[participant_id]
        if embedded and str(embedded.get('id', participant_id)) == participant_id:
            participant = Participant.from_dict({**embedded, 'id': participant_id})
        else:
            participant = Participant(id=participant_id, name=participant_id)
        self.known[participant_id] = participant
        return participant


def _to_match(record: MatchRecord, resolver: _ParticipantResolver) -> BracketMatch:
    player1 = resolver.resolve(record.player1_id, record.player1)
    player2 = resolver.resolve(record.player2_id, record.player2)

    winner = None
    if record.winner_id is not None:
        winner = player1 if record.winner_id == record.player1_id else player2

    return BracketMatch(
        id=record.id or match_id_for(record.round, record.match_number),
        round=record.round,
        match_number=record.match_number,
        player1=player1,
        player2=player2,
        winner=winner,
        score1=record.player1_score,
        score2=record.player2_score,
        is_bye=record.is_bye,
        status=record.status,
        is_third_place=record.is_third_place,
        next_match_id=record.next_match_id,
        next_match_slot=record.next_match_slot,
        loser_next_match_id=record.loser_next_match_id,
        loser_next_match_slot=record.loser_next_match_slot,
    )


def _check_layout(rounds: Dict[int, List[MatchRecord]]):
    round_numbers = sorted(rounds)
    if round_numbers != list(range(1, len(round_numbers) + 1)):
        raise RecordValidationError(f"Rounds must run from 1 without gaps, got {round_numbers}")

    previous_count = None
    for round_number in round_numbers:
        numbers = [r.match_number for r in rounds[round_number]]
        if len(set(numbers)) != len(numbers):
            raise RecordValidationError(f"Round {round_number} has duplicate match numbers")
        if previous_count is not None and len(numbers) != (previous_count + 1) // 2:
            raise RecordValidationError(
                f"Round {round_number} has {len(numbers)} matches, expected {(previous_count + 1) // 2}"
            )
        previous_count = len(numbers)


def _check_links(rounds: List[List[BracketMatch]], third_place: Optional[BracketMatch]):
    """
    Check every forward link against the bracket shape.

    Match index m of round r must feed round r+1 match floor(m/2), slot
    (m % 2) + 1. The final and the third-place match link nowhere, and only
    semifinals may send their loser to the third-place match.
    """
    for round_idx, round_matches in enumerate(rounds):
        next_round = rounds[round_idx + 1] if round_idx + 1 < len(rounds) else None
        for m, match in enumerate(round_matches):
            if next_round is None:
                expected = (None, None)
            else:
                expected = (next_round[m // 2].id, (m % 2) + 1)
            if (match.next_match_id, match.next_match_slot) != expected:
                raise RecordValidationError(
                    f"Match {match.id} links to {match.next_match_id} slot {match.next_match_slot}, "
                    f"expected {expected[0]} slot {expected[1]}"
                )

            if match.loser_next_match_id is None and match.loser_next_match_slot is None:
                continue
            if third_place is None or match.loser_next_match_id != third_place.id:
                raise RecordValidationError(
                    f"Match {match.id} sends its loser to unknown match {match.loser_next_match_id}"
                )
            if round_idx != len(rounds) - 2 or match.loser_next_match_slot != m + 1:
                raise RecordValidationError(
                    f"Match {match.id} cannot send its loser to slot {match.loser_next_match_slot} "
                    f"of {third_place.id}"
                )

    if third_place is not None and (third_place.next_match_id or third_place.loser_next_match_id):
        raise RecordValidationError(f"Third-place match {third_place.id} cannot link forward")


def reconstruct(records: Iterable[Union[MatchRecord, Dict[str, Any]]],
                participants: Optional[Sequence[Participant]] = None) -> Bracket:
    """
    Rebuild the round-ordered bracket from flat match records.

    Records are validated, grouped by round and sorted by match number.
    Byes, winners and links are read as stored; nothing is re-derived, but
    links that break the bracket shape are rejected.

    Args:
        records: Match records, or raw storage rows to validate into records
        participants: Known participants used to resolve player ids

    Returns:
        The reconstructed bracket; empty when there are no records
    """
    typed = [r if isinstance(r, MatchRecord) else MatchRecord.from_dict(r) for r in records]
    resolver = _ParticipantResolver(participants)

    by_round: Dict[int, List[MatchRecord]] = {}
    third_place_records = []
    for record in typed:
        if record.is_third_place:
            third_place_records.append(record)
        else:
            by_round.setdefault(record.round, []).append(record)

    if len(third_place_records) > 1:
        raise RecordValidationError("More than one third-place match record")

    _check_layout(by_round)

    rounds = []
    for round_number in sorted(by_round):
        ordered = sorted(by_round[round_number], key=lambda r: r.match_number)
        rounds.append([_to_match(record, resolver) for record in ordered])

    third_place = _to_match(third_place_records[0], resolver) if third_place_records else None
    _check_links(rounds, third_place)

    logger.debug("Reconstructed bracket with %d rounds from %d records", len(rounds), len(typed))
    return Bracket(rounds=rounds, third_place=third_place)
