"""
Tournament bracket engine for PTM table-tennis events.
"""
from .elimination import generate_bracket, get_bracket_display, get_round_name
from .errors import BracketError, BracketValidationError, MatchNotFoundError, RecordValidationError
from .models import Bracket, BracketMatch, MatchRecord, Participant
from .records import flatten, reconstruct
from .results import advance_winner, update_match_result

__all__ = [
    'Bracket',
    'BracketError',
    'BracketMatch',
    'BracketValidationError',
    'MatchNotFoundError',
    'MatchRecord',
    'Participant',
    'RecordValidationError',
    'advance_winner',
    'flatten',
    'generate_bracket',
    'get_bracket_display',
    'get_round_name',
    'reconstruct',
    'update_match_result',
]
