"""
Data model for tournament brackets: participants, bracket matches and the
flat match records written to storage.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

from .errors import RecordValidationError


BYE_ID_PREFIX = 'bye-'
BYE_NAME = 'BYE'

STATUS_PENDING = 'PENDING'
STATUS_BYE = 'BYE'
STATUS_IN_PROGRESS = 'IN_PROGRESS'
STATUS_COMPLETED = 'COMPLETED'
MATCH_STATUSES = (STATUS_PENDING, STATUS_BYE, STATUS_IN_PROGRESS, STATUS_COMPLETED)


def is_bye_id(participant_id: Optional[str]) -> bool:
    """Check whether an identifier belongs to a synthetic BYE placeholder."""
    return bool(participant_id) and str(participant_id).startswith(BYE_ID_PREFIX)


@dataclass
class Participant:
    id: str
    name: str
    seed: Optional[int] = None
    rating: Optional[int] = None
    avatar_url: Optional[str] = None

    @property
    def is_bye(self) -> bool:
        return is_bye_id(self.id)

    @classmethod
    def bye(cls, index: int) -> 'Participant':
        """Create the placeholder that fills slot ``index``."""
        return cls(id=f'{BYE_ID_PREFIX}{index}', name=BYE_NAME)

    def to_dict(self) -> Dict[str, Any]:
        data = {'id': self.id, 'name': self.name}
        if self.seed is not None:
            data['seed'] = self.seed
        if self.rating is not None:
            data['rating'] = self.rating
        if self.avatar_url is not None:
            data['avatar_url'] = self.avatar_url
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Participant':
        """
        Build a participant from a registration or profile row.

        Accepts both the registration shape (``rating``) and the profile
        shape (``rating_mr``) since both reach us from storage.
        """
        if not isinstance(data, dict):
            raise RecordValidationError(f'Participant must be a mapping, got {type(data).__name__}')
        participant_id = data.get('id')
        if participant_id is None or str(participant_id).strip() == '':
            raise RecordValidationError('Participant is missing an id')
        name = data.get('name') or str(participant_id)
        rating = data.get('rating', data.get('rating_mr'))
        seed = data.get('seed')
        if seed is not None and (isinstance(seed, bool) or not isinstance(seed, int)):
            raise RecordValidationError(f'Participant {participant_id} has a non-integer seed: {seed!r}')
        return cls(
            id=str(participant_id),
            name=str(name),
            seed=seed,
            rating=rating,
            avatar_url=data.get('avatar_url'),
        )


@dataclass
class BracketMatch:
    id: str
    round: int
    match_number: int
    player1: Optional[Participant] = None
    player2: Optional[Participant] = None
    winner: Optional[Participant] = None
    score1: int = 0
    score2: int = 0
    is_bye: bool = False
    status: str = STATUS_PENDING
    is_third_place: bool = False
    next_match_id: Optional[str] = None
    next_match_slot: Optional[int] = None
    loser_next_match_id: Optional[str] = None
    loser_next_match_slot: Optional[int] = None

    @property
    def is_dead(self) -> bool:
        """A bye with nobody to advance (both slots were placeholders)."""
        return self.is_bye and self.winner is None

    @property
    def is_decided(self) -> bool:
        return self.winner is not None

    @property
    def loser(self) -> Optional[Participant]:
        if self.winner is None or self.is_bye:
            return None
        if self.player1 is not None and self.player1.id == self.winner.id:
            return self.player2
        return self.player1

    def get_slot(self, slot: int) -> Optional[Participant]:
        return self.player1 if slot == 1 else self.player2

    def set_slot(self, slot: int, participant: Optional[Participant]):
        if slot == 1:
            self.player1 = participant
        elif slot == 2:
            self.player2 = participant
        else:
            raise ValueError(f'Match slot must be 1 or 2, got {slot}')

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'round': self.round,
            'match_number': self.match_number,
            'player1': self.player1.to_dict() if self.player1 else None,
            'player2': self.player2.to_dict() if self.player2 else None,
            'winner': self.winner.to_dict() if self.winner else None,
            'score1': self.score1,
            'score2': self.score2,
            'is_bye': self.is_bye,
            'status': self.status,
            'is_third_place': self.is_third_place,
            'next_match_id': self.next_match_id,
            'next_match_slot': self.next_match_slot,
            'loser_next_match_id': self.loser_next_match_id,
            'loser_next_match_slot': self.loser_next_match_slot,
        }


@dataclass
class Bracket:
    rounds: List[List[BracketMatch]] = field(default_factory=list)
    third_place: Optional[BracketMatch] = None

    @property
    def total_rounds(self) -> int:
        return len(self.rounds)

    @property
    def final(self) -> Optional[BracketMatch]:
        if not self.rounds or not self.rounds[-1]:
            return None
        return self.rounds[-1][0]

    def iter_matches(self) -> Iterator[BracketMatch]:
        """Yield every match, round by round, then the third-place match."""
        for round_matches in self.rounds:
            yield from round_matches
        if self.third_place is not None:
            yield self.third_place

    def to_dict(self) -> Dict[str, Any]:
        return {
            'rounds': [[m.to_dict() for m in round_matches] for round_matches in self.rounds],
            'third_place': self.third_place.to_dict() if self.third_place else None,
        }


def _optional_str(data: Dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is None or value == '':
        return None
    return str(value)


def _int_field(data: Dict[str, Any], key: str, default: Optional[int] = None, minimum: int = 0) -> int:
    value = data.get(key, default)
    if value is None:
        raise RecordValidationError(f'Match record is missing {key}')
    if isinstance(value, bool) or not isinstance(value, int):
        raise RecordValidationError(f'Match record field {key} must be an integer, got {value!r}')
    if value < minimum:
        raise RecordValidationError(f'Match record field {key} must be >= {minimum}, got {value}')
    return value


def _slot_field(data: Dict[str, Any], key: str) -> Optional[int]:
    value = data.get(key)
    if value is None:
        return None
    if value not in (1, 2) or isinstance(value, bool):
        raise RecordValidationError(f'Match record field {key} must be 1 or 2, got {value!r}')
    return value


def _bool_field(data: Dict[str, Any], key: str) -> bool:
    value = data.get(key)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise RecordValidationError(f'Match record field {key} must be true or false, got {value!r}')
    return value


@dataclass
class MatchRecord:
    """
    One row of the persisted match table.

    Player and winner columns hold identifiers only; the optional
    ``player1``/``player2`` mappings carry profile data joined in by the
    storage layer.
    """
    id: Optional[str]
    round: int
    match_number: int
    tournament_id: Optional[str] = None
    bracket_position: Optional[int] = None
    player1_id: Optional[str] = None
    player2_id: Optional[str] = None
    winner_id: Optional[str] = None
    player1_score: int = 0
    player2_score: int = 0
    status: str = STATUS_PENDING
    is_bye: bool = False
    is_third_place: bool = False
    next_match_id: Optional[str] = None
    next_match_slot: Optional[int] = None
    loser_next_match_id: Optional[str] = None
    loser_next_match_slot: Optional[int] = None
    player1: Optional[Dict[str, Any]] = None
    player2: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'tournament_id': self.tournament_id,
            'round': self.round,
            'match_number': self.match_number,
            'bracket_position': self.bracket_position,
            'player1_id': self.player1_id,
            'player2_id': self.player2_id,
            'winner_id': self.winner_id,
            'player1_score': self.player1_score,
            'player2_score': self.player2_score,
            'status': self.status,
            'is_bye': self.is_bye,
            'is_third_place': self.is_third_place,
            'next_match_id': self.next_match_id,
            'next_match_slot': self.next_match_slot,
            'loser_next_match_id': self.loser_next_match_id,
            'loser_next_match_slot': self.loser_next_match_slot,
        }
        if self.player1 is not None:
            data['player1'] = self.player1
        if self.player2 is not None:
            data['player2'] = self.player2
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MatchRecord':
        """Validate a raw storage row and build a typed record from it."""
        if not isinstance(data, dict):
            raise RecordValidationError(f'Match record must be a mapping, got {type(data).__name__}')

        is_bye = _bool_field(data, 'is_bye')
        status = data.get('status') or (STATUS_BYE if is_bye else STATUS_PENDING)
        if status not in MATCH_STATUSES:
            raise RecordValidationError(f'Unknown match status: {status!r}')

        player1_id = _optional_str(data, 'player1_id')
        player2_id = _optional_str(data, 'player2_id')
        winner_id = _optional_str(data, 'winner_id')
        if winner_id is not None and winner_id not in (player1_id, player2_id):
            raise RecordValidationError(
                f'Match record {data.get("id")}: winner {winner_id} is not one of its players'
            )

        for key in ('player1', 'player2'):
            if data.get(key) is not None and not isinstance(data[key], dict):
                raise RecordValidationError(f'Match record field {key} must be a mapping')

        bracket_position = data.get('bracket_position')
        if bracket_position is not None:
            bracket_position = _int_field(data, 'bracket_position')

        return cls(
            id=_optional_str(data, 'id'),
            tournament_id=_optional_str(data, 'tournament_id'),
            round=_int_field(data, 'round', minimum=1),
            match_number=_int_field(data, 'match_number', minimum=1),
            bracket_position=bracket_position,
            player1_id=player1_id,
            player2_id=player2_id,
            winner_id=winner_id,
            player1_score=_int_field(data, 'player1_score', default=0),
            player2_score=_int_field(data, 'player2_score', default=0),
            status=status,
            is_bye=is_bye,
            is_third_place=_bool_field(data, 'is_third_place'),
            next_match_id=_optional_str(data, 'next_match_id'),
            next_match_slot=_slot_field(data, 'next_match_slot'),
            loser_next_match_id=_optional_str(data, 'loser_next_match_id'),
            loser_next_match_slot=_slot_field(data, 'loser_next_match_slot'),
            player1=data.get('player1'),
            player2=data.get('player2'),
        )
