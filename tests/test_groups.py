"""
Tests for group membership and group/team reconciliation.
"""
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from core.groups import (
    reconcile_groups_and_teams,
    create_group,
    assign_teams_to_groups,
    rename_group,
    complete_group,
    delete_group,
    get_group_teams,
)
from core.errors import DuplicateError, NotFoundError, ValidationError


def _raw_group(store, name, teams):
    return store.insert('groups', {'name': name, 'teams': list(teams), 'completed': False})


class TestReconcile:
    """Tests for reconcile_groups_and_teams."""

    def test_nothing_to_do(self, store):
        assert reconcile_groups_and_teams(store) == {'updates': 0}

    def test_listed_team_gets_group_name(self, store, add_team):
        """A team listed by a group but carrying another name is corrected."""
        team_id = add_team('Baniyas', group='Group Z')
        _raw_group(store, 'Group A', [team_id])

        result = reconcile_groups_and_teams(store)

        assert store.get('teams', team_id)['groupId'] == 'Group A'
        assert result['updates'] == 1

    def test_named_team_is_added_to_group(self, store, add_team):
        """A team naming a group it is missing from gets appended."""
        group_id = _raw_group(store, 'Group B', [])
        team_id = add_team('Ajman', group='Group B')

        result = reconcile_groups_and_teams(store)

        assert store.get('groups', group_id)['teams'] == [team_id]
        assert result['updates'] == 1

    def test_orphan_group_name_is_cleared(self, store, add_team):
        """A team naming a group that does not exist loses the name."""
        team_id = add_team('Dibba', group='Group Q')

        result = reconcile_groups_and_teams(store)

        assert 'groupId' not in store.get('teams', team_id)
        assert result['updates'] == 1

    def test_unknown_team_id_in_group_is_ignored(self, store):
        """Dangling ids in a group list do not raise."""
        _raw_group(store, 'Group A', ['missing'])
        assert reconcile_groups_and_teams(store) == {'updates': 0}

    def test_second_run_makes_no_updates(self, store, add_team):
        """Reconciling twice in a row performs zero writes the second time."""
        t1 = add_team('T1', group='Group Z')
        t2 = add_team('T2', group='Group B')
        add_team('T3', group='Nowhere')
        _raw_group(store, 'Group A', [t1])
        _raw_group(store, 'Group B', [])

        first = reconcile_groups_and_teams(store)
        second = reconcile_groups_and_teams(store)

        assert first['updates'] == 3
        assert second['updates'] == 0
        assert store.get('teams', t2)['groupId'] == 'Group B'

    def test_team_listed_twice_is_stable(self, store, add_team):
        """A team listed by two groups settles on the first and stays there."""
        team_id = add_team('Hatta')
        _raw_group(store, 'Group A', [team_id])
        _raw_group(store, 'Group B', [team_id])

        reconcile_groups_and_teams(store)

        assert store.get('teams', team_id)['groupId'] == 'Group A'
        assert reconcile_groups_and_teams(store)['updates'] == 0


class TestGroupMembership:
    """Tests for keeping both sides in step during normal edits."""

    def test_create_group_with_teams(self, store, add_team):
        t1, t2 = add_team('One'), add_team('Two')
        group_id = create_group(store, 'Group A', [t1, t2])

        assert store.get('groups', group_id)['teams'] == [t1, t2]
        assert store.get('teams', t1)['groupId'] == 'Group A'

    def test_create_group_duplicate_name(self, store):
        create_group(store, 'Group A')
        with pytest.raises(DuplicateError):
            create_group(store, 'Group A')

    def test_create_group_unknown_team(self, store):
        with pytest.raises(NotFoundError):
            create_group(store, 'Group A', ['nope'])
        assert store.list('groups') == []

    def test_create_group_requires_name(self, store):
        with pytest.raises(ValidationError):
            create_group(store, '  ')

    def test_move_team_between_groups(self, store, add_team):
        """Moving a team removes it from the old group list."""
        team_id = add_team('Mover')
        group_a = create_group(store, 'Group A', [team_id])
        group_b = create_group(store, 'Group B')

        assign_teams_to_groups(store, [{'teamId': team_id, 'groupId': group_b}])

        assert store.get('groups', group_a)['teams'] == []
        assert store.get('groups', group_b)['teams'] == [team_id]
        assert store.get('teams', team_id)['groupId'] == 'Group B'
        assert reconcile_groups_and_teams(store)['updates'] == 0

    def test_unassign_team(self, store, add_team):
        team_id = add_team('Leaver')
        group_id = create_group(store, 'Group A', [team_id])

        assign_teams_to_groups(store, [{'teamId': team_id, 'groupId': None}])

        assert store.get('groups', group_id)['teams'] == []
        assert 'groupId' not in store.get('teams', team_id)

    def test_rename_group_updates_members(self, store, add_team):
        team_id = add_team('Member')
        group_id = create_group(store, 'Group A', [team_id])

        rename_group(store, group_id, 'المجموعة أ')

        assert store.get('teams', team_id)['groupId'] == 'المجموعة أ'
        assert reconcile_groups_and_teams(store)['updates'] == 0

    def test_complete_group(self, store):
        group_id = create_group(store, 'Group A')
        assert complete_group(store, group_id)['completed'] is True

    def test_delete_group_clears_member_names(self, store, add_team):
        """Deleting a group nulls out the group name of its teams."""
        team_id = add_team('Member')
        group_id = create_group(store, 'Group A', [team_id])

        delete_group(store, group_id)

        assert store.list('groups') == []
        assert 'groupId' not in store.get('teams', team_id)

    def test_get_group_teams_merges_both_views(self, store, add_team):
        """Teams are found by id listing and by name, once each."""
        by_id = add_team('By Id')
        add_team('By Name', group='Group A')
        both = add_team('Both', group='Group A')
        group_id = _raw_group(store, 'Group A', [by_id, both])

        names = sorted(t['name'] for t in get_group_teams(store, group_id))

        assert names == ['Both', 'By Id', 'By Name']
