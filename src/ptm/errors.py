"""Exceptions raised by the bracket engine and its match store."""


class BracketError(Exception):
    """Base class for all bracket errors."""


class BracketValidationError(BracketError, ValueError):
    """Raised when inputs cannot produce or update a consistent bracket."""


class RecordValidationError(BracketValidationError):
    """Raised when a persisted match record does not fit the record schema."""


class MatchNotFoundError(BracketError, LookupError):
    """Raised when a match identifier is not part of the bracket."""

    def __init__(self, match_id):
        super().__init__(f'Match not found: {match_id}')
        self.match_id = match_id
