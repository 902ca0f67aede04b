"""
YAML file storage for tournament participants, bracket settings and matches.

Each tournament gets a directory under ``<data_dir>/tournaments/<id>/``
holding ``participants.yaml``, ``settings.yaml`` and ``matches.yaml``.
Read-modify-write cycles run under a FileLock shared by the whole data dir.
"""
import logging
import os
import re
from typing import Dict, List, Optional

import yaml
from filelock import FileLock

from .elimination import SLOT_OPTIONS, generate_bracket
from .errors import BracketValidationError, RecordValidationError
from .models import Bracket, BracketMatch, MatchRecord, Participant
from .records import flatten, reconstruct
from . import results

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS = {
    'slot_count': 8,
    'randomize': True,
    'third_place': False,
}

_TOURNAMENT_ID_RE = re.compile(r'^[A-Za-z0-9][A-Za-z0-9_-]*$')


def validate_settings(settings: Dict) -> Dict:
    """Merge settings over the defaults and check their values."""
    merged = dict(DEFAULT_SETTINGS)
    merged.update({k: v for k, v in (settings or {}).items() if k in DEFAULT_SETTINGS})
    if merged['slot_count'] not in SLOT_OPTIONS:
        raise BracketValidationError(
            f"slot_count must be one of {', '.join(str(s) for s in SLOT_OPTIONS)}, got {merged['slot_count']!r}"
        )
    for key in ('randomize', 'third_place'):
        if not isinstance(merged[key], bool):
            raise BracketValidationError(f"{key} must be true or false, got {merged[key]!r}")
    return merged


class MatchStore:
    def __init__(self, data_dir: str, lock_timeout: float = 10):
        self.data_dir = data_dir
        self.tournaments_dir = os.path.join(data_dir, 'tournaments')
        os.makedirs(self.tournaments_dir, exist_ok=True)
        self.lock = FileLock(os.path.join(data_dir, '.lock'), timeout=lock_timeout)

    def _tournament_dir(self, tournament_id: str) -> str:
        if not isinstance(tournament_id, str) or not _TOURNAMENT_ID_RE.match(tournament_id):
            raise BracketValidationError(f"Invalid tournament id: {tournament_id!r}")
        return os.path.join(self.tournaments_dir, tournament_id)

    def _file_path(self, tournament_id: str, filename: str) -> str:
        return os.path.join(self._tournament_dir(tournament_id), filename)

    def _read_yaml(self, path: str):
        if not os.path.exists(path):
            return None
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.warning(f'Failed to parse {path}: {e}')
            return None

    def _write_yaml(self, path: str, data):
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)

    # Settings

    def load_settings(self, tournament_id: str) -> Dict:
        """Load bracket settings, falling back to defaults for missing keys."""
        data = self._read_yaml(self._file_path(tournament_id, 'settings.yaml'))
        settings = dict(DEFAULT_SETTINGS)
        if isinstance(data, dict):
            settings.update({k: v for k, v in data.items() if k in DEFAULT_SETTINGS})
        return settings

    def save_settings(self, tournament_id: str, settings: Dict) -> Dict:
        merged = validate_settings(settings)
        with self.lock:
            self._write_yaml(self._file_path(tournament_id, 'settings.yaml'), merged)
        return merged

    # Participants

    def load_participants(self, tournament_id: str) -> List[Participant]:
        """Load the registration list in registration order."""
        data = self._read_yaml(self._file_path(tournament_id, 'participants.yaml'))
        if not data:
            return []
        rows = data.get('participants', []) if isinstance(data, dict) else data
        if not isinstance(rows, list):
            raise RecordValidationError(f"participants.yaml for {tournament_id} must hold a list of participants")
        return [Participant.from_dict(row) for row in rows]

    def save_participants(self, tournament_id: str, participants: List[Participant]):
        ids = [p.id for p in participants]
        if len(set(ids)) != len(ids):
            raise BracketValidationError("Participant ids must be unique")
        for participant in participants:
            if participant.is_bye:
                raise BracketValidationError(f"Participant id {participant.id!r} uses the reserved BYE prefix")
        with self.lock:
            self._write_yaml(
                self._file_path(tournament_id, 'participants.yaml'),
                {'participants': [p.to_dict() for p in participants]},
            )
        logger.info(f'Saved {len(participants)} participants for tournament {tournament_id}')

    # Matches

    def fetch_matches(self, tournament_id: str) -> List[MatchRecord]:
        """Load match records ordered by round, then match number."""
        data = self._read_yaml(self._file_path(tournament_id, 'matches.yaml'))
        if not data:
            return []
        records = [MatchRecord.from_dict(row) for row in data.get('matches', [])]
        records.sort(key=lambda r: (r.round, r.is_third_place, r.match_number))
        return records

    def _save_records(self, tournament_id: str, records: List[MatchRecord]):
        self._write_yaml(
            self._file_path(tournament_id, 'matches.yaml'),
            {'matches': [r.to_dict() for r in records]},
        )

    def load_bracket(self, tournament_id: str) -> Optional[Bracket]:
        """Rebuild the stored bracket, or None when no bracket was saved."""
        records = self.fetch_matches(tournament_id)
        if not records:
            return None
        return reconstruct(records, self.load_participants(tournament_id))

    def save_bracket(self, tournament_id: str, bracket: Bracket) -> List[MatchRecord]:
        """Replace the stored bracket wholesale with ``bracket``."""
        records = flatten(bracket, tournament_id=tournament_id)
        with self.lock:
            self._save_records(tournament_id, records)
        logger.info(f'Saved bracket for tournament {tournament_id}: {len(records)} matches')
        return records

    def create_bracket(self, tournament_id: str, overrides: Optional[Dict] = None):
        """
        Generate a bracket from the registered participants and store it.

        ``overrides`` is merged over the stored settings and saved with the
        new bracket. Settings and matches are written under one lock hold, so
        no result update can land between them.

        Returns:
            Tuple of (settings, bracket, saved match records)
        """
        with self.lock:
            settings = self.load_settings(tournament_id)
            settings.update(overrides or {})
            settings = validate_settings(settings)

            bracket = generate_bracket(
                self.load_participants(tournament_id),
                settings['slot_count'],
                randomize=settings['randomize'],
                third_place=settings['third_place'],
            )
            records = flatten(bracket, tournament_id=tournament_id)
            self._write_yaml(self._file_path(tournament_id, 'settings.yaml'), settings)
            self._save_records(tournament_id, records)
        logger.info(f'Generated bracket for tournament {tournament_id}: {len(records)} matches')
        return settings, bracket, records

    def update_match_result(self, tournament_id: str, match_id: str, score1: int, score2: int) -> BracketMatch:
        """Record a score and persist it; the winner is not advanced."""
        with self.lock:
            bracket = self.load_bracket(tournament_id) or Bracket()
            match = results.update_match_result(bracket, match_id, score1, score2)
            self._save_records(tournament_id, flatten(bracket, tournament_id=tournament_id))
        return match

    def advance_winner(self, tournament_id: str, match_id: str) -> List[BracketMatch]:
        with self.lock:
            bracket = self.load_bracket(tournament_id) or Bracket()
            changed = results.advance_winner(bracket, match_id)
            self._save_records(tournament_id, flatten(bracket, tournament_id=tournament_id))
        return changed

    def clear_bracket(self, tournament_id: str):
        with self.lock:
            path = self._file_path(tournament_id, 'matches.yaml')
            if os.path.exists(path):
                os.remove(path)
        logger.info(f'Cleared bracket for tournament {tournament_id}')

