"""
Group stage fixture generation and match ordering helpers.
"""
import logging
from datetime import datetime, timedelta
from itertools import combinations
from typing import Dict, List

from .bracket import slot_id, slot_position
from .errors import DuplicateError, ValidationError
from .models import Match, validate_date, validate_time

logger = logging.getLogger(__name__)


def generate_group_fixtures(group: Dict, teams: List[Dict]) -> List[Dict]:
    """Round-robin pairings for the teams of one group."""
    known = {team['_id'] for team in teams}
    team_ids = [t for t in group.get('teams', []) if t in known]
    if len(team_ids) < 2:
        logger.warning(f"Group {group.get('name')} has fewer than 2 valid teams ({len(team_ids)} found). Skipping fixture generation.")
        return []
    return [
        {'teamAId': team_a, 'teamBId': team_b, 'groupId': group['name']}
        for team_a, team_b in combinations(team_ids, 2)
    ]


def _already_scheduled(matches: List[Dict], team_a: str, team_b: str) -> bool:
    pair = {team_a, team_b}
    return any(
        m.get('stage') == 'group' and {m.get('teamAId'), m.get('teamBId')} == pair
        for m in matches
    )


def schedule_group_fixtures(store, group_id: str, start_date: str, start_time: str,
                            interval_minutes: int = 90, per_day: int = 2) -> List[str]:
    """
    Insert the missing round-robin matches of a group as scheduled matches.

    Kick-offs start at ``start_date start_time`` and are ``interval_minutes``
    apart, with at most ``per_day`` matches on one day. Pairings that already
    have a group match are left alone. Returns the new match ids.
    """
    validate_date(start_date, 'startDate')
    validate_time(start_time, 'startTime')
    if interval_minutes <= 0 or per_day <= 0:
        raise ValidationError("interval_minutes and per_day must be positive")

    group = store.get('groups', group_id)
    existing = store.list('matches')
    fixtures = [
        f for f in generate_group_fixtures(group, store.list('teams'))
        if not _already_scheduled(existing, f['teamAId'], f['teamBId'])
    ]

    first_kickoff = datetime.strptime(f"{start_date} {start_time}", '%Y-%m-%d %H:%M')
    created = []
    for i, fixture in enumerate(fixtures):
        day, slot = divmod(i, per_day)
        kickoff = first_kickoff + timedelta(days=day, minutes=slot * interval_minutes)
        match = Match(
            date=kickoff.strftime('%Y-%m-%d'),
            time=kickoff.strftime('%H:%M'),
            team_a_id=fixture['teamAId'],
            team_b_id=fixture['teamBId'],
            stage='group',
            group=fixture['groupId'],
        )
        created.append(store.insert('matches', match.to_dict()))
    logger.info(f"Scheduled {len(created)} fixtures for group {group['name']}")
    return created


def _check_references(store, match: Match):
    store.get('teams', match.team_a_id)
    store.get('teams', match.team_b_id)
    for referee_id in match.referees:
        store.get('staff', referee_id)


def _check_slot_free(store, match: Match, match_id: str = None):
    """Reject a knockout match whose bracket slot another match already holds."""
    if match.bracket_position is None:
        return
    for other in store.list('matches'):
        if other['_id'] == match_id or other.get('stage') != match.stage:
            continue
        if slot_position(other) == match.bracket_position:
            raise DuplicateError(
                f"Slot {slot_id(match.stage, match.bracket_position)} already holds match {other['_id']}"
            )


def create_match(store, data: Dict) -> str:
    """Schedule a match. Results are entered through record_match_result."""
    match = Match.from_dict(dict(data, status='scheduled'))
    _check_references(store, match)
    _check_slot_free(store, match)
    return store.insert('matches', match.to_dict())


SCHEDULE_FIELDS = ('date', 'time', 'teamAId', 'teamBId', 'stage', 'groupId', 'referees', 'bracketPosition')


def update_match(store, match_id: str, data: Dict) -> Dict:
    """Edit the schedule side of a match: kick-off, teams, stage and referees."""
    current = store.get('matches', match_id)
    merged = dict(current)
    merged.update({k: v for k, v in data.items() if k in SCHEDULE_FIELDS})
    teams_changed = (merged.get('teamAId'), merged.get('teamBId')) != (current.get('teamAId'), current.get('teamBId'))
    if teams_changed and current.get('status') == 'completed':
        raise ValidationError("Clear the result before changing the teams of a completed match")
    match = Match.from_dict(merged)
    _check_references(store, match)
    _check_slot_free(store, match, match_id)

    fields = match.to_dict()
    fields.pop('status')
    if match.bracket_position is None:
        fields.update({'bracketRound': None, 'bracketPosition': None})
    if not match.group:
        fields['groupId'] = None
    return store.patch('matches', match_id, fields)


def _kickoff_key(match: Dict):
    time = match.get('time') or '00:00'
    try:
        hours, minutes = (int(part) for part in time.split(':', 1))
    except ValueError:
        hours, minutes = 0, 0
    return (match.get('date') or '', hours, minutes)


def sort_by_kickoff(matches: List[Dict]) -> List[Dict]:
    return sorted(matches, key=_kickoff_key)


def upcoming_matches(matches: List[Dict]) -> List[Dict]:
    """Matches not yet completed, earliest kick-off first."""
    return sort_by_kickoff([m for m in matches if m.get('status') != 'completed'])


def matches_for_team(matches: List[Dict], team_id: str) -> List[Dict]:
    return [m for m in matches if team_id in (m.get('teamAId'), m.get('teamBId'))]
