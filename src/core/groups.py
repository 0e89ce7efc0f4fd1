"""
Group membership.

A team stores its group *name* in ``groupId`` and a group stores its member
team ids in ``teams``. The functions here keep both sides in step, and
``reconcile_groups_and_teams`` repairs data where they have drifted apart.
"""
import logging
from typing import Dict, List, Optional

from .errors import DuplicateError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def reconcile_groups_and_teams(store) -> Dict[str, int]:
    """
    Make every team's group name agree with the group lists.

    Pass 1 rewrites a listed team's group name to the listing group's name.
    Pass 2 appends a team to the group its name points at, or clears the name
    when no such group exists. Returns the number of corrective writes.
    """
    updates = 0
    groups = store.list('groups')
    teams_by_id = {team['_id']: team for team in store.list('teams')}

    claimed = set()
    for group in groups:
        for team_id in group.get('teams', []):
            team = teams_by_id.get(team_id)
            if team is None:
                logger.warning(f"Group {group['name']} lists unknown team {team_id}")
                continue
            # A team listed by several groups keeps the first one.
            if team_id in claimed:
                logger.warning(f"Team {team['name']} is listed by more than one group")
                continue
            claimed.add(team_id)
            if team.get('groupId') != group['name']:
                logger.info(f"Setting group of team {team['name']} to {group['name']}")
                teams_by_id[team_id] = store.patch('teams', team_id, {'groupId': group['name']})
                updates += 1

    groups_by_name = {}
    for group in store.list('groups'):
        groups_by_name.setdefault(group['name'], group)

    for team in teams_by_id.values():
        group_name = team.get('groupId')
        if not group_name:
            continue
        group = groups_by_name.get(group_name)
        if group is None:
            logger.info(f"Clearing orphan group {group_name} from team {team['name']}")
            store.patch('teams', team['_id'], {'groupId': None})
            updates += 1
        elif team['_id'] not in group.get('teams', []):
            logger.info(f"Adding team {team['name']} to group {group_name}")
            groups_by_name[group_name] = store.patch(
                'groups', group['_id'], {'teams': group.get('teams', []) + [team['_id']]}
            )
            updates += 1

    return {'updates': updates}


def _remove_from_named_groups(store, team_id: str, group_name: str):
    for group in store.query('groups', name=group_name):
        if team_id in group.get('teams', []):
            store.patch('groups', group['_id'], {'teams': [t for t in group['teams'] if t != team_id]})


def create_group(store, name: str, team_ids: Optional[List[str]] = None) -> str:
    name = (name or '').strip()
    if not name:
        raise ValidationError("Group name is required")
    if store.first('groups', name=name):
        raise DuplicateError(f"Group already exists: {name}")
    team_ids = list(dict.fromkeys(team_ids or []))
    for team_id in team_ids:
        store.get('teams', team_id)

    group_id = store.insert('groups', {'name': name, 'teams': [], 'completed': False})
    if team_ids:
        assign_teams_to_groups(store, [{'teamId': t, 'groupId': group_id} for t in team_ids])
    return group_id


def assign_teams_to_groups(store, assignments: List[Dict]) -> int:
    """
    Move teams between groups.

    Each assignment is ``{'teamId': ..., 'groupId': <group id or None>}``; a
    None target just takes the team out of its group. Returns the number of
    teams moved.
    """
    moved = 0
    for assignment in assignments:
        team = store.get('teams', assignment.get('teamId'))
        target_id = assignment.get('groupId')
        target = store.get('groups', target_id) if target_id else None

        if team.get('groupId') and (target is None or team['groupId'] != target['name']):
            _remove_from_named_groups(store, team['_id'], team['groupId'])

        if target is None:
            store.patch('teams', team['_id'], {'groupId': None})
        else:
            if team['_id'] not in target.get('teams', []):
                store.patch('groups', target['_id'], {'teams': target.get('teams', []) + [team['_id']]})
            store.patch('teams', team['_id'], {'groupId': target['name']})
        moved += 1
    return moved


def rename_group(store, group_id: str, new_name: str) -> Dict:
    group = store.get('groups', group_id)
    new_name = (new_name or '').strip()
    if not new_name:
        raise ValidationError("Group name is required")
    existing = store.first('groups', name=new_name)
    if existing and existing['_id'] != group_id:
        raise DuplicateError(f"Group already exists: {new_name}")
    for team_id in group.get('teams', []):
        if store.find('teams', team_id):
            store.patch('teams', team_id, {'groupId': new_name})
    return store.patch('groups', group_id, {'name': new_name})


def complete_group(store, group_id: str) -> Dict:
    return store.patch('groups', group_id, {'completed': True})


def delete_group(store, group_id: str):
    """Delete a group after clearing the group name of its member teams."""
    group = store.get('groups', group_id)
    for team_id in group.get('teams', []):
        team = store.find('teams', team_id)
        if team and team.get('groupId') == group['name']:
            store.patch('teams', team_id, {'groupId': None})
    store.delete('groups', group_id)


def get_group_teams(store, group_id: str) -> List[Dict]:
    """Teams that belong to a group by id listing or by name, without duplicates."""
    group = store.find('groups', group_id)
    if group is None:
        raise NotFoundError(f"Group not found: {group_id}")
    found = {}
    for team in store.query('teams', groupId=group['name']):
        found[team['_id']] = team
    for team_id in group.get('teams', []):
        if team_id not in found:
            team = store.find('teams', team_id)
            if team:
                found[team_id] = team
    return list(found.values())
