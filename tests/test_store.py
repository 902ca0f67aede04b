"""
Tests for YAML tournament storage.
"""
import os

import pytest
import yaml
from filelock import FileLock, Timeout

from ptm.elimination import generate_bracket
from ptm.errors import BracketValidationError, MatchNotFoundError, RecordValidationError
from ptm.models import Participant, STATUS_COMPLETED
from ptm.store import DEFAULT_SETTINGS, MatchStore, validate_settings


class TestSettings:
    """Tests for bracket settings."""

    def test_defaults_when_missing(self, temp_store):
        assert temp_store.load_settings("spring") == DEFAULT_SETTINGS

    def test_save_and_load(self, temp_store):
        temp_store.save_settings("spring", {'slot_count': 16, 'randomize': False})
        settings = temp_store.load_settings("spring")
        assert settings == {'slot_count': 16, 'randomize': False, 'third_place': False}

    def test_unknown_keys_dropped(self):
        assert 'colour' not in validate_settings({'colour': 'red'})

    @pytest.mark.parametrize("settings", [
        {'slot_count': 12},
        {'slot_count': 128},
        {'slot_count': '8'},
        {'randomize': 'yes'},
        {'third_place': 1},
    ])
    def test_invalid_settings(self, temp_store, settings):
        with pytest.raises(BracketValidationError):
            temp_store.save_settings("spring", settings)


class TestParticipants:
    """Tests for the registration list."""

    def test_empty_when_missing(self, temp_store):
        assert temp_store.load_participants("spring") == []

    def test_round_trip_keeps_order(self, temp_store, five_participants):
        five_participants[2].seed = 1
        temp_store.save_participants("spring", five_participants)
        assert temp_store.load_participants("spring") == five_participants

    def test_duplicate_ids_rejected(self, temp_store):
        with pytest.raises(BracketValidationError):
            temp_store.save_participants("spring", [Participant("x", "A"), Participant("x", "B")])

    def test_bye_prefix_rejected(self, temp_store):
        with pytest.raises(BracketValidationError):
            temp_store.save_participants("spring", [Participant("bye-1", "Sneaky")])

    def test_bare_list_file(self, temp_store, tmp_path):
        folder = tmp_path / "tournaments" / "spring"
        folder.mkdir(parents=True)
        (folder / "participants.yaml").write_text("- id: u1\n  name: Ana\n- id: u2\n  name: Budi\n",
                                                  encoding='utf-8')
        assert [p.name for p in temp_store.load_participants("spring")] == ["Ana", "Budi"]

    def test_unreadable_shape_rejected(self, temp_store, tmp_path):
        folder = tmp_path / "tournaments" / "spring"
        folder.mkdir(parents=True)
        (folder / "participants.yaml").write_text("participants: Ana\n", encoding='utf-8')
        with pytest.raises(RecordValidationError):
            temp_store.load_participants("spring")


class TestBracketStorage:
    """Tests for saving, loading and updating brackets."""

    def test_no_bracket(self, temp_store):
        assert temp_store.fetch_matches("spring") == []
        assert temp_store.load_bracket("spring") is None

    def test_save_and_load(self, temp_store, five_participants):
        temp_store.save_participants("spring", five_participants)
        bracket = generate_bracket(five_participants, 8)
        records = temp_store.save_bracket("spring", bracket)

        assert len(records) == 7
        assert temp_store.load_bracket("spring") == bracket

    def test_create_bracket_saves_settings_and_matches(self, temp_store, five_participants):
        temp_store.save_participants("spring", five_participants)
        settings, bracket, records = temp_store.create_bracket("spring", {'randomize': False})

        assert settings == {'slot_count': 8, 'randomize': False, 'third_place': False}
        assert temp_store.load_settings("spring") == settings
        assert len(records) == 7
        assert temp_store.load_bracket("spring") == bracket

    def test_create_bracket_waits_for_lock(self, tmp_path, five_participants):
        store = MatchStore(str(tmp_path), lock_timeout=0.1)
        store.save_participants("spring", five_participants)

        other = FileLock(store.lock.lock_file)
        with other:
            with pytest.raises(Timeout):
                store.create_bracket("spring", {'randomize': False})

        assert not os.path.exists(tmp_path / "tournaments" / "spring" / "settings.yaml")
        assert store.fetch_matches("spring") == []

    def test_create_bracket_rejects_bad_settings(self, temp_store, five_participants):
        temp_store.save_participants("spring", five_participants)
        with pytest.raises(BracketValidationError):
            temp_store.create_bracket("spring", {'slot_count': 4})
        assert temp_store.load_bracket("spring") is None

    def test_file_layout(self, temp_store, tmp_path, eight_participants):
        temp_store.save_bracket("spring", generate_bracket(eight_participants, 8, third_place=True))
        path = tmp_path / "tournaments" / "spring" / "matches.yaml"

        with open(path, encoding='utf-8') as f:
            rows = yaml.safe_load(f)['matches']
        assert len(rows) == 8
        assert rows[0]['tournament_id'] == "spring"
        assert rows[-1]['is_third_place'] is True

    def test_fetch_orders_by_round(self, temp_store, eight_participants):
        temp_store.save_bracket("spring", generate_bracket(eight_participants, 8, third_place=True))
        records = temp_store.fetch_matches("spring")
        assert [(r.round, r.match_number) for r in records][-3:] == [(2, 2), (3, 1), (3, 2)]
        assert records[-1].is_third_place

    def test_update_result_persists(self, temp_store, eight_participants):
        temp_store.save_participants("spring", eight_participants)
        temp_store.save_bracket("spring", generate_bracket(eight_participants, 8))

        match = temp_store.update_match_result("spring", "round-1-match-1", 11, 4)
        assert match.winner.name == "A"

        stored = temp_store.load_bracket("spring").rounds[0][0]
        assert stored.status == STATUS_COMPLETED
        assert (stored.score1, stored.score2) == (11, 4)
        assert stored.winner.name == "A"

    def test_advance_persists(self, temp_store, eight_participants):
        temp_store.save_participants("spring", eight_participants)
        temp_store.save_bracket("spring", generate_bracket(eight_participants, 8))
        temp_store.update_match_result("spring", "round-1-match-1", 11, 4)

        changed = temp_store.advance_winner("spring", "round-1-match-1")
        assert [m.id for m in changed] == ["round-2-match-1"]
        assert temp_store.load_bracket("spring").rounds[1][0].player1.name == "A"

    def test_unknown_match(self, temp_store, eight_participants):
        temp_store.save_bracket("spring", generate_bracket(eight_participants, 8))
        with pytest.raises(MatchNotFoundError):
            temp_store.update_match_result("spring", "round-7-match-1", 1, 0)

    def test_update_without_bracket(self, temp_store):
        with pytest.raises(MatchNotFoundError):
            temp_store.update_match_result("spring", "round-1-match-1", 1, 0)

    def test_clear_bracket(self, temp_store, tmp_path, eight_participants):
        temp_store.save_bracket("spring", generate_bracket(eight_participants, 8))
        temp_store.clear_bracket("spring")

        assert temp_store.load_bracket("spring") is None
        assert not os.path.exists(tmp_path / "tournaments" / "spring" / "matches.yaml")

    def test_corrupt_file_reads_as_empty(self, temp_store, tmp_path):
        folder = tmp_path / "tournaments" / "spring"
        folder.mkdir(parents=True)
        (folder / "matches.yaml").write_text("matches: [unclosed", encoding='utf-8')
        assert temp_store.fetch_matches("spring") == []

    @pytest.mark.parametrize("tournament_id", ["../etc", "", "a/b", "-lead"])
    def test_invalid_tournament_id(self, temp_store, tournament_id):
        with pytest.raises(BracketValidationError):
            temp_store.load_settings(tournament_id)
