"""
Match result updates and the explicit advance step.

Recording a result never moves the winner on by itself; callers advance a
decided match with ``advance_winner`` when they want the next slot filled.
"""
import logging
from typing import List, Optional

from .elimination import carry_forward, find_match, index_matches
from .errors import BracketValidationError, MatchNotFoundError
from .models import Bracket, BracketMatch, STATUS_COMPLETED, STATUS_IN_PROGRESS

logger = logging.getLogger(__name__)


def decide_winner(score1: int, score2: int) -> Optional[int]:
    """Return the winning slot (1 or 2), or None when the scores are level."""
    if score1 > score2:
        return 1
    elif score2 > score1:
        return 2
    return None


def _validate_score(value, label: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise BracketValidationError(f"{label} must be an integer, got {value!r}")
    if value < 0:
        raise BracketValidationError(f"{label} cannot be negative, got {value}")
    return value


def apply_result(match: BracketMatch, score1: int, score2: int) -> BracketMatch:
    """
    Set scores, winner and status on a playable match.

    A strictly higher score wins and completes the match. Level scores leave
    the winner empty and mark the match in progress, which is what separates
    a tied match from an untouched one.
    """
    score1 = _validate_score(score1, 'score1')
    score2 = _validate_score(score2, 'score2')
    if match.is_bye:
        raise BracketValidationError(f"Match {match.id} is a bye and cannot take a result")
    if match.player1 is None or match.player2 is None:
        raise BracketValidationError(f"Match {match.id} is still waiting for its players")

    slot = decide_winner(score1, score2)
    match.score1 = score1
    match.score2 = score2
    match.winner = match.get_slot(slot) if slot else None
    match.status = STATUS_COMPLETED if slot else STATUS_IN_PROGRESS
    return match


def update_match_result(bracket: Bracket, match_id: str, score1: int, score2: int) -> BracketMatch:
    """Record a score for one match of the bracket, in place."""
    match = find_match(bracket, match_id)
    apply_result(match, score1, score2)
    logger.info("Match %s scored %d-%d, status %s", match_id, match.score1, match.score2, match.status)
    return match


def advance_winner(bracket: Bracket, match_id: str) -> List[BracketMatch]:
    """
    Move a decided match's winner into the next round.

    Semifinal losers also drop into the third-place match when there is one.
    Returns the matches whose slots changed.
    """
    match = find_match(bracket, match_id)
    if not match.is_decided:
        raise BracketValidationError(f"Match {match_id} has no winner to advance")

    changed = carry_forward(bracket, match)

    if match.loser_next_match_id and match.loser is not None:
        target = index_matches(bracket).get(match.loser_next_match_id)
        if target is None:
            raise MatchNotFoundError(match.loser_next_match_id)
        target.set_slot(match.loser_next_match_slot, match.loser)
        changed.append(target)

    logger.info("Advanced %s from match %s into %s", match.winner.name, match_id,
                ', '.join(m.id for m in changed) or 'nothing (final)')
    return changed
