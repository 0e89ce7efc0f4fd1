"""
Unit tests for the knockout bracket builder.
"""
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from core.bracket import (
    get_round_name,
    build_empty_bracket,
    slot_position,
    knockout_winner,
    build_knockout_bracket,
    bracket_rounds,
    champion,
    get_bracket_display,
)

TEAMS = [{'_id': f't{i}', 'name': f'Team {i}'} for i in range(1, 17)]


def _ko(match_id, stage, a, b, position=None, group=None, score=None, status='scheduled', penalties=None):
    match = {'_id': match_id, 'stage': stage, 'teamAId': a, 'teamBId': b, 'status': status}
    if position is not None:
        match['bracketRound'] = stage
        match['bracketPosition'] = position
    if group is not None:
        match['groupId'] = group
    if score is not None:
        match['score'] = {'teamA': score[0], 'teamB': score[1]}
    if penalties is not None:
        match['penalties'] = {'teamA': penalties[0], 'teamB': penalties[1]}
    return match


class TestEmptyBracket:
    """Tests for the bracket skeleton."""

    def test_fifteen_slots(self):
        """An empty bracket has 8 + 4 + 2 + 1 slots with stable ids."""
        slots = build_empty_bracket()
        assert len(slots) == 15
        assert [s.id for s in slots] == (
            [f'r16-{i}' for i in range(1, 9)]
            + [f'quarter-{i}' for i in range(1, 5)]
            + ['semi-1', 'semi-2', 'final-1']
        )

    def test_slots_have_no_teams(self):
        for slot in build_empty_bracket():
            assert slot.is_empty
            assert slot.team_a_id is None and slot.team_b_id is None
            assert slot.winner_id is None

    def test_no_knockout_matches_gives_empty_bracket(self):
        """Only group matches in the store: every slot stays empty."""
        matches = [_ko('g1', 'group', 't1', 't2', score=(1, 0), status='completed', group='Group A')]
        slots = build_knockout_bracket(TEAMS, matches)
        assert len(slots) == 15
        assert all(s.is_empty for s in slots)

    def test_round_names(self):
        assert get_round_name('round16') == 'Round of 16'
        assert get_round_name('final') == 'Final'


class TestSlotPosition:
    """Tests for reading a match's slot position."""

    def test_typed_field(self):
        assert slot_position(_ko('m', 'quarter', 't1', 't2', position=3)) == 3

    def test_legacy_slot_id_in_group_label(self):
        """Older records stored the slot id in the group label."""
        assert slot_position(_ko('m', 'round16', 't1', 't2', group='r16-5')) == 5

    def test_legacy_bare_number(self):
        assert slot_position(_ko('m', 'semi', 't1', 't2', group='2')) == 2

    def test_legacy_label_for_other_round(self):
        """A slot id for another round is not trusted."""
        assert slot_position(_ko('m', 'semi', 't1', 't2', group='r16-1')) is None

    def test_no_position(self):
        assert slot_position(_ko('m', 'final', 't1', 't2')) is None
        assert slot_position(_ko('m', 'final', 't1', 't2', group='Group A')) is None


class TestKnockoutWinner:
    """Tests for deciding who went through."""

    def test_not_completed(self):
        assert knockout_winner(_ko('m', 'final', 't1', 't2', score=(2, 0), status='live')) is None

    def test_higher_score_wins(self):
        assert knockout_winner(_ko('m', 'final', 't1', 't2', score=(0, 1), status='completed')) == 't2'

    def test_penalties_decide_a_draw(self):
        match = _ko('m', 'semi', 't1', 't2', score=(1, 1), status='completed', penalties=(3, 4))
        assert knockout_winner(match) == 't2'

    def test_draw_without_shootout_is_undecided(self):
        """A level knockout match without penalties has no winner."""
        match = _ko('m', 'semi', 't1', 't2', score=(2, 2), status='completed')
        assert knockout_winner(match) is None

    def test_completed_without_score(self):
        assert knockout_winner(_ko('m', 'semi', 't1', 't2', status='completed')) is None


class TestHydratedBracket:
    """Tests for filling slots from stored matches."""

    def test_match_fills_its_slot(self):
        matches = [_ko('m1', 'round16', 't1', 't2', position=3, score=(2, 1), status='completed')]
        slots = {s.id: s for s in build_knockout_bracket(TEAMS, matches)}

        slot = slots['r16-3']
        assert slot.match_id == 'm1'
        assert slot.team_a_name == 'Team 1'
        assert slot.team_b_name == 'Team 2'
        assert slot.score == {'teamA': 2, 'teamB': 1}
        assert slot.winner_id == 't1'
        assert slots['r16-4'].is_empty

    def test_winner_not_propagated(self):
        """A decided round of 16 match does not fill a quarterfinal slot."""
        matches = [_ko('m1', 'round16', 't1', 't2', position=1, score=(2, 1), status='completed')]
        slots = build_knockout_bracket(TEAMS, matches)
        assert all(s.is_empty for s in slots if s.round == 'quarter')

    def test_out_of_range_position_skipped(self):
        matches = [_ko('m1', 'semi', 't1', 't2', position=3)]
        assert all(s.is_empty for s in build_knockout_bracket(TEAMS, matches))

    def test_second_match_for_same_slot_ignored(self):
        matches = [
            _ko('m1', 'final', 't1', 't2', position=1),
            _ko('m2', 'final', 't3', 't4', position=1),
        ]
        slots = {s.id: s for s in build_knockout_bracket(TEAMS, matches)}
        assert slots['final-1'].match_id == 'm1'

    def test_unknown_team_has_no_name(self):
        matches = [_ko('m1', 'quarter', 't1', 'gone', position=2)]
        slots = {s.id: s for s in build_knockout_bracket(TEAMS, matches)}
        assert slots['quarter-2'].team_b_id == 'gone'
        assert slots['quarter-2'].team_b_name is None

    def test_champion_and_rounds(self):
        matches = [_ko('f', 'final', 't5', 't9', position=1, score=(0, 0), status='completed', penalties=(5, 4))]
        slots = build_knockout_bracket(TEAMS, matches)

        assert champion(slots) == 't5'
        rounds = bracket_rounds(slots)
        assert [len(rounds[r]) for r in ('round16', 'quarter', 'semi', 'final')] == [8, 4, 2, 1]
        assert rounds['final'][0]['penalties'] == {'teamA': 5, 'teamB': 4}

    def test_display(self):
        matches = [_ko('f', 'final', 't5', 't9', position=1, score=(3, 1), status='completed')]
        display = get_bracket_display(TEAMS, matches)
        assert display['champion'] == {'teamId': 't5', 'name': 'Team 5'}
        assert display['round_names']['semi'] == 'Semifinal'

    def test_display_without_champion(self):
        assert get_bracket_display(TEAMS, [])['champion'] is None
