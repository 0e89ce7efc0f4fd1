"""
Team registration: creation, edits, roster fees and deletion.
"""
import logging
from datetime import date
from typing import Dict, List, Optional

from .errors import DuplicateError, IntegrityError, NotFoundError, ValidationError
from .models import Player, Team, empty_stats, validate_date
from .tournament import load_settings

logger = logging.getLogger(__name__)


def _find_by_name(store, name: str) -> Optional[Dict]:
    wanted = name.strip().casefold()
    for team in store.list('teams'):
        if (team.get('name') or '').casefold() == wanted:
            return team
    return None


def _check_roster(store, players: List[Player]):
    limit = load_settings(store)['settings']['maxPlayersPerTeam']
    if len(players) > limit:
        raise ValidationError(f"A team can register at most {limit} players")


def create_team(store, data: Dict) -> str:
    """Register a team. The group, when given, must be an existing group name."""
    team = Team.from_dict(data)
    if _find_by_name(store, team.name):
        raise DuplicateError(f"Team already exists: {team.name}")
    _check_roster(store, team.players)
    team.stats = empty_stats()

    group = None
    if team.group:
        group = store.first('groups', name=team.group)
        if group is None:
            raise NotFoundError(f"Group not found: {team.group}")

    team_id = store.insert('teams', team.to_dict())
    if group is not None:
        store.patch('groups', group['_id'], {'teams': group.get('teams', []) + [team_id]})
    logger.info(f"Registered team {team.name}")
    return team_id


def update_team(store, team_id: str, data: Dict) -> Dict:
    """Edit a team's name or roster. Stats and group go through their own paths."""
    current = store.get('teams', team_id)
    fields = {}
    if 'name' in data:
        name = (data.get('name') or '').strip()
        if not name:
            raise ValidationError("Team name is required")
        other = _find_by_name(store, name)
        if other and other['_id'] != team_id:
            raise DuplicateError(f"Team already exists: {name}")
        fields['name'] = name
    if 'players' in data:
        players = [Player.from_dict(p) for p in data.get('players') or []]
        _check_roster(store, players)
        fields['players'] = [p.to_dict() for p in players]
    if not fields:
        return current
    return store.patch('teams', team_id, fields)


def set_player_fee(store, team_id: str, player_index: int, paid: bool,
                   payment_date: Optional[str] = None) -> Dict:
    """Mark one player's registration fee as paid or unpaid."""
    team = store.get('teams', team_id)
    players = team.get('players') or []
    if not 0 <= player_index < len(players):
        raise NotFoundError(f"Player {player_index} not found in team {team.get('name')}")
    player = Player.from_dict(players[player_index])
    player.fee_status = bool(paid)
    player.payment_date = (payment_date or date.today().isoformat()) if paid else None
    if player.payment_date:
        validate_date(player.payment_date, 'paymentDate')
    players[player_index] = player.to_dict()
    return store.patch('teams', team_id, {'players': players})


def unpaid_players(store) -> List[Dict]:
    """Players whose fee is still outstanding, with their team."""
    outstanding = []
    for team in store.list('teams'):
        for player in team.get('players') or []:
            if not player.get('feeStatus'):
                outstanding.append({'teamId': team['_id'], 'team': team.get('name'), 'player': player.get('fullName')})
    return outstanding


def delete_team(store, team_id: str):
    """
    Delete a team that no match references, removing it from its groups.

    Teams with matches are rejected; their matches have to be deleted first.
    """
    team = store.get('teams', team_id)
    referencing = [
        m['_id'] for m in store.list('matches')
        if team_id in (m.get('teamAId'), m.get('teamBId'))
    ]
    if referencing:
        raise IntegrityError(
            f"Team {team.get('name')} is referenced by {len(referencing)} match(es); delete them first"
        )
    for group in store.list('groups'):
        if team_id in group.get('teams', []):
            store.patch('groups', group['_id'], {'teams': [t for t in group['teams'] if t != team_id]})
    store.delete('teams', team_id)
    logger.info(f"Deleted team {team.get('name')}")
