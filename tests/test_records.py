"""
Tests for flattening brackets into match records and rebuilding them.
"""
import pytest

from ptm.elimination import generate_bracket
from ptm.errors import RecordValidationError
from ptm.models import MatchRecord, STATUS_BYE, STATUS_PENDING
from ptm.records import flatten, reconstruct
from ptm.results import advance_winner, update_match_result


class TestFlatten:
    """Tests for the save path."""

    def test_one_record_per_match(self, five_participants):
        bracket = generate_bracket(five_participants, 8)
        records = flatten(bracket, tournament_id="t1")

        assert len(records) == 7
        assert [r.bracket_position for r in records] == list(range(7))
        assert all(r.tournament_id == "t1" for r in records)
        assert [(r.round, r.match_number) for r in records] == [
            (1, 1), (1, 2), (1, 3), (1, 4), (2, 1), (2, 2), (3, 1),
        ]

    def test_placeholders_become_empty(self, five_participants):
        records = flatten(generate_bracket(five_participants, 8))
        bye, double_bye = records[2], records[3]

        assert bye.player1_id == "p5"
        assert bye.player2_id is None
        assert bye.winner_id == "p5"
        assert bye.is_bye and bye.status == STATUS_BYE
        assert double_bye.player1_id is None and double_bye.player2_id is None
        assert double_bye.winner_id is None

    def test_link_fields(self, five_participants):
        records = flatten(generate_bracket(five_participants, 8))
        assert records[0].next_match_id == "round-2-match-1"
        assert records[0].next_match_slot == 1
        assert records[3].next_match_id == "round-2-match-2"
        assert records[3].next_match_slot == 2
        assert records[-1].next_match_id is None

    def test_third_place_is_last(self, eight_participants):
        records = flatten(generate_bracket(eight_participants, 8, third_place=True))
        assert records[-1].is_third_place
        assert records[-1].status == STATUS_PENDING
        assert records[4].loser_next_match_id == records[-1].id


class TestReconstruct:
    """Tests for rebuilding rounds from records."""

    @pytest.mark.parametrize("count,slot_count,third_place", [
        (2, 4, False), (5, 8, False), (8, 8, True), (12, 16, True), (20, 32, False),
    ])
    def test_round_trip(self, people, count, slot_count, third_place):
        participants = people(*[f"P{i}" for i in range(count)])
        bracket = generate_bracket(participants, slot_count, third_place=third_place)
        assert reconstruct(flatten(bracket), participants) == bracket

    def test_round_trip_from_dicts(self, eight_participants):
        bracket = generate_bracket(eight_participants, 8)
        rows = [r.to_dict() for r in flatten(bracket)]
        assert reconstruct(rows, eight_participants) == bracket

    def test_round_trip_after_results(self, eight_participants):
        bracket = generate_bracket(eight_participants, 8)
        update_match_result(bracket, "round-1-match-1", 11, 9)
        advance_winner(bracket, "round-1-match-1")
        update_match_result(bracket, "round-1-match-2", 7, 7)

        assert reconstruct(flatten(bracket), eight_participants) == bracket

    def test_shuffled_records_are_regrouped(self, five_participants):
        bracket = generate_bracket(five_participants, 8)
        records = list(reversed(flatten(bracket)))
        assert reconstruct(records, five_participants) == bracket

    def test_unknown_players_keep_their_id(self, five_participants):
        bracket = reconstruct(flatten(generate_bracket(five_participants, 8)))
        assert bracket.rounds[0][0].player1.id == "p1"
        assert bracket.rounds[0][0].player1.name == "p1"

    def test_embedded_profiles_are_used(self):
        rows = [{
            'id': 'm1', 'round': 1, 'match_number': 1,
            'player1_id': 'u1', 'player2_id': 'u2', 'winner_id': 'u2',
            'player1_score': 3, 'player2_score': 11, 'status': 'COMPLETED',
            'player1': {'id': 'u1', 'name': 'Budi', 'rating_mr': 1200},
            'player2': {'id': 'u2', 'name': 'Sari', 'avatar_url': 'https://example.org/s.png'},
        }]
        match = reconstruct(rows).final
        assert match.player1.name == "Budi"
        assert match.player1.rating == 1200
        assert match.winner.name == "Sari"
        assert match.winner is match.player2

    def test_winner_and_byes_read_verbatim(self):
        rows = [
            {'id': 'a', 'round': 1, 'match_number': 1, 'player1_id': 'u1', 'is_bye': False,
             'next_match_id': 'c', 'next_match_slot': 1},
            {'id': 'b', 'round': 1, 'match_number': 2, 'player1_id': 'u2', 'is_bye': False,
             'next_match_id': 'c', 'next_match_slot': 2},
            {'id': 'c', 'round': 2, 'match_number': 1},
        ]
        bracket = reconstruct(rows)
        # A lone player is not turned into a bye winner on the way back in
        assert bracket.rounds[0][0].winner is None
        assert not bracket.rounds[0][0].is_bye

    def test_missing_id_gets_derived_id(self):
        bracket = reconstruct([{'round': 1, 'match_number': 1}])
        assert bracket.final.id == "round-1-match-1"

    def test_empty_input(self):
        bracket = reconstruct([])
        assert bracket.rounds == []
        assert bracket.final is None


class TestReconstructValidation:
    """Malformed records are rejected at the boundary."""

    def test_gap_in_rounds(self):
        rows = [{'round': 1, 'match_number': 1}, {'round': 3, 'match_number': 1}]
        with pytest.raises(RecordValidationError):
            reconstruct(rows)

    def test_duplicate_match_numbers(self):
        rows = [
            {'round': 1, 'match_number': 1}, {'round': 1, 'match_number': 1},
            {'round': 2, 'match_number': 1},
        ]
        with pytest.raises(RecordValidationError):
            reconstruct(rows)

    def test_round_size_mismatch(self):
        rows = [
            {'round': 1, 'match_number': n} for n in range(1, 5)
        ] + [{'round': 2, 'match_number': 1}]
        with pytest.raises(RecordValidationError):
            reconstruct(rows)

    def test_two_third_place_matches(self):
        rows = [
            {'round': 1, 'match_number': 1},
            {'round': 1, 'match_number': 2, 'is_third_place': True},
            {'round': 1, 'match_number': 3, 'is_third_place': True},
        ]
        with pytest.raises(RecordValidationError):
            reconstruct(rows)

    def test_link_to_unknown_match(self, people):
        rows = [r.to_dict() for r in flatten(generate_bracket(people("A", "B", "C", "D"), 4))]
        rows[0]['next_match_id'] = 'nowhere'
        with pytest.raises(RecordValidationError):
            reconstruct(rows)

    def test_link_to_wrong_slot(self, people):
        rows = [r.to_dict() for r in flatten(generate_bracket(people("A", "B", "C", "D"), 4))]
        rows[1]['next_match_slot'] = 1
        with pytest.raises(RecordValidationError):
            reconstruct(rows)

    def test_missing_link(self, eight_participants):
        rows = [r.to_dict() for r in flatten(generate_bracket(eight_participants, 8))]
        rows[5]['next_match_id'] = None
        rows[5]['next_match_slot'] = None
        with pytest.raises(RecordValidationError):
            reconstruct(rows)

    def test_final_links_nowhere(self, people):
        rows = [r.to_dict() for r in flatten(generate_bracket(people("A", "B", "C", "D"), 4))]
        rows[-1]['next_match_id'] = rows[0]['id']
        rows[-1]['next_match_slot'] = 1
        with pytest.raises(RecordValidationError):
            reconstruct(rows)

    def test_loser_link_without_third_place(self, eight_participants):
        rows = [r.to_dict() for r in flatten(generate_bracket(eight_participants, 8))]
        rows[4]['loser_next_match_id'] = 'third-place'
        rows[4]['loser_next_match_slot'] = 1
        with pytest.raises(RecordValidationError):
            reconstruct(rows)

    def test_loser_link_from_quarterfinal(self, eight_participants):
        rows = [r.to_dict() for r in flatten(generate_bracket(eight_participants, 8, third_place=True))]
        rows[0]['loser_next_match_id'] = 'third-place'
        rows[0]['loser_next_match_slot'] = 1
        with pytest.raises(RecordValidationError):
            reconstruct(rows)

    def test_bad_row_type(self):
        with pytest.raises(RecordValidationError):
            reconstruct(["not a record"])

    def test_typed_records_pass_through(self):
        bracket = reconstruct([MatchRecord(id='x', round=1, match_number=1)])
        assert bracket.final.id == 'x'
