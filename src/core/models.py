"""
Document shapes for teams, matches, groups, staff and bracket slots.

The store keeps plain dicts; these classes validate input on the way in and
produce those dicts through ``to_dict()``.
"""
import re
from typing import Dict, List, Optional

from .errors import ValidationError

STAGES = ['setup', 'group', 'round16', 'quarter', 'semi', 'final', 'completed']
MATCH_STAGES = ['group', 'round16', 'quarter', 'semi', 'final']
KNOCKOUT_STAGES = ['round16', 'quarter', 'semi', 'final']
ROUND_SIZES = {'round16': 8, 'quarter': 4, 'semi': 2, 'final': 1}
MATCH_STATUSES = ['scheduled', 'live', 'completed']
EVENT_TYPES = ['goal', 'yellowCard', 'redCard']
STAFF_ROLES = ['referee', 'medical', 'security', 'organizer']
STAT_FIELDS = ['played', 'won', 'drawn', 'lost', 'goalsFor', 'goalsAgainst', 'points']

MAX_EVENT_MINUTE = 130

_DATE_RE = re.compile(r'^\d{4}-\d{2}-\d{2}$')
_TIME_RE = re.compile(r'^([01]\d|2[0-3]):[0-5]\d$')


def empty_stats() -> Dict[str, int]:
    """Return a zeroed stats block."""
    return {field: 0 for field in STAT_FIELDS}


def normalize_stats(stats: Optional[Dict]) -> Dict[str, int]:
    """Fill missing stat fields with 0."""
    normalized = empty_stats()
    if stats:
        for field in STAT_FIELDS:
            normalized[field] = stats.get(field) or 0
    return normalized


def validate_date(value: str, field: str = 'date') -> str:
    if not isinstance(value, str) or not _DATE_RE.match(value):
        raise ValidationError(f"{field} must be YYYY-MM-DD")
    return value


def validate_time(value: str, field: str = 'time') -> str:
    if not isinstance(value, str) or not _TIME_RE.match(value):
        raise ValidationError(f"{field} must be HH:MM")
    return value


def validate_goals(value, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(f"{field} must be a non-negative integer")
    return value


def validate_score(score: Optional[Dict], field: str = 'score') -> Optional[Dict[str, int]]:
    """Validate a ``{teamA, teamB}`` score; None passes through."""
    if score is None:
        return None
    if not isinstance(score, dict):
        raise ValidationError(f"{field} must be an object with teamA and teamB")
    return {
        'teamA': validate_goals(score.get('teamA'), f'{field}.teamA'),
        'teamB': validate_goals(score.get('teamB'), f'{field}.teamB'),
    }


def validate_event(event: Dict, team_ids: List[str]) -> Dict:
    """Validate one match event against the two teams of its match."""
    if not isinstance(event, dict):
        raise ValidationError("Event must be an object")
    event_type = event.get('type')
    if event_type not in EVENT_TYPES:
        raise ValidationError(f"Unknown event type: {event_type}")
    player = (event.get('playerId') or '').strip()
    if not player:
        raise ValidationError("Event player is required")
    if event.get('teamId') not in team_ids:
        raise ValidationError("Event team must be one of the match teams")
    minute = event.get('minute')
    if isinstance(minute, bool) or not isinstance(minute, int) or not 0 <= minute <= MAX_EVENT_MINUTE:
        raise ValidationError(f"Event minute must be between 0 and {MAX_EVENT_MINUTE}")
    return {'type': event_type, 'playerId': player, 'teamId': event['teamId'], 'minute': minute}


class Player:
    def __init__(self, full_name, date_of_birth=None, fee_status=False, payment_date=None, photo_url=None):
        full_name = (full_name or '').strip()
        if not full_name:
            raise ValidationError("Player name is required")
        if date_of_birth:
            validate_date(date_of_birth, 'dateOfBirth')
        if payment_date:
            validate_date(payment_date, 'paymentDate')
        if photo_url is not None and not isinstance(photo_url, str):
            raise ValidationError("photoUrl must be a string")
        self.full_name = full_name
        self.date_of_birth = date_of_birth
        self.fee_status = bool(fee_status)
        self.payment_date = payment_date
        self.photo_url = photo_url

    @classmethod
    def from_dict(cls, data: Dict) -> 'Player':
        if not isinstance(data, dict):
            raise ValidationError("Player must be an object")
        return cls(
            full_name=data.get('fullName'),
            date_of_birth=data.get('dateOfBirth'),
            fee_status=data.get('feeStatus', False),
            payment_date=data.get('paymentDate'),
            photo_url=data.get('photoUrl'),
        )

    def to_dict(self) -> Dict:
        data = {'fullName': self.full_name, 'feeStatus': self.fee_status}
        if self.date_of_birth:
            data['dateOfBirth'] = self.date_of_birth
        if self.payment_date:
            data['paymentDate'] = self.payment_date
        if self.photo_url:
            data['photoUrl'] = self.photo_url
        return data

    def __repr__(self):
        return f"Player(full_name={self.full_name}, fee_status={self.fee_status})"


class Team:
    def __init__(self, name, players=None, group=None, stats=None):
        name = (name or '').strip()
        if not name:
            raise ValidationError("Team name is required")
        self.name = name
        self.players = players if players else []
        self.group = group or None
        self.stats = normalize_stats(stats)

    @classmethod
    def from_dict(cls, data: Dict) -> 'Team':
        return cls(
            name=data.get('name'),
            players=[Player.from_dict(p) for p in data.get('players') or []],
            group=data.get('groupId'),
            stats=data.get('stats'),
        )

    def to_dict(self) -> Dict:
        data = {
            'name': self.name,
            'players': [p.to_dict() for p in self.players],
            'stats': dict(self.stats),
        }
        if self.group:
            data['groupId'] = self.group
        return data

    def __repr__(self):
        return f"Team(name={self.name}, group={self.group}, players={len(self.players)})"


class Match:
    def __init__(self, date, time, team_a_id, team_b_id, stage='group', group=None,
                 referees=None, status='scheduled', bracket_position=None):
        validate_date(date)
        validate_time(time)
        if not team_a_id or not team_b_id:
            raise ValidationError("Both teams are required")
        if team_a_id == team_b_id:
            raise ValidationError("A team cannot play itself")
        if stage not in MATCH_STAGES:
            raise ValidationError(f"Unknown stage: {stage}")
        if status not in MATCH_STATUSES:
            raise ValidationError(f"Unknown status: {status}")
        if bracket_position is not None:
            if stage not in KNOCKOUT_STAGES:
                raise ValidationError("Only knockout matches have a bracket position")
            if isinstance(bracket_position, bool) or not isinstance(bracket_position, int):
                raise ValidationError("bracketPosition must be an integer")
            if not 1 <= bracket_position <= ROUND_SIZES[stage]:
                raise ValidationError(f"bracketPosition for {stage} must be between 1 and {ROUND_SIZES[stage]}")
        self.date = date
        self.time = time
        self.team_a_id = team_a_id
        self.team_b_id = team_b_id
        self.stage = stage
        self.group = group or None
        self.referees = list(referees or [])
        self.status = status
        self.bracket_position = bracket_position

    @classmethod
    def from_dict(cls, data: Dict) -> 'Match':
        return cls(
            date=data.get('date'),
            time=data.get('time'),
            team_a_id=data.get('teamAId'),
            team_b_id=data.get('teamBId'),
            stage=data.get('stage', 'group'),
            group=data.get('groupId'),
            referees=data.get('referees'),
            status=data.get('status', 'scheduled'),
            bracket_position=data.get('bracketPosition'),
        )

    def to_dict(self) -> Dict:
        data = {
            'date': self.date,
            'time': self.time,
            'teamAId': self.team_a_id,
            'teamBId': self.team_b_id,
            'stage': self.stage,
            'referees': self.referees,
            'status': self.status,
        }
        if self.group:
            data['groupId'] = self.group
        if self.bracket_position is not None:
            data['bracketRound'] = self.stage
            data['bracketPosition'] = self.bracket_position
        return data

    def __repr__(self):
        return f"Match(date={self.date}, time={self.time}, stage={self.stage}, teams=({self.team_a_id}, {self.team_b_id}))"


class StaffMember:
    def __init__(self, name, role, phone=None, email=None, photo_url=None, availability=None):
        name = (name or '').strip()
        if not name:
            raise ValidationError("Staff name is required")
        if role not in STAFF_ROLES:
            raise ValidationError(f"Unknown staff role: {role}")
        for day in availability or []:
            validate_date(day, 'availability')
        self.name = name
        self.role = role
        self.phone = phone
        self.email = email
        self.photo_url = photo_url
        self.availability = list(availability or [])

    @classmethod
    def from_dict(cls, data: Dict) -> 'StaffMember':
        return cls(
            name=data.get('name'),
            role=data.get('role'),
            phone=data.get('phone'),
            email=data.get('email'),
            photo_url=data.get('photoUrl'),
            availability=data.get('availability'),
        )

    def to_dict(self) -> Dict:
        data = {'name': self.name, 'role': self.role}
        if self.phone:
            data['phone'] = self.phone
        if self.email:
            data['email'] = self.email
        if self.photo_url:
            data['photoUrl'] = self.photo_url
        if self.availability:
            data['availability'] = self.availability
        return data

    def __repr__(self):
        return f"StaffMember(name={self.name}, role={self.role})"


class BracketSlot:
    """One position of the knockout tree. Derived from matches, never stored."""

    def __init__(self, round_name, prefix, position):
        self.id = f"{prefix}-{position}"
        self.round = round_name
        self.position = position
        self.team_a_id = None
        self.team_a_name = None
        self.team_b_id = None
        self.team_b_name = None
        self.winner_id = None
        self.match_id = None
        self.status = None
        self.score = None
        self.penalties = None

    @property
    def is_empty(self) -> bool:
        return self.match_id is None and self.team_a_id is None and self.team_b_id is None

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'round': self.round,
            'position': self.position,
            'teamAId': self.team_a_id,
            'teamAName': self.team_a_name,
            'teamBId': self.team_b_id,
            'teamBName': self.team_b_name,
            'winnerId': self.winner_id,
            'matchId': self.match_id,
            'status': self.status,
            'score': self.score,
            'penalties': self.penalties,
        }

    def __repr__(self):
        return f"BracketSlot(id={self.id}, teams=({self.team_a_name}, {self.team_b_name}), winner={self.winner_id})"
