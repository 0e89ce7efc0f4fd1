"""
Tournament settings and stage progression.
"""
from typing import Dict

from .errors import ValidationError
from .models import MATCH_STAGES, STAGES, validate_date


def get_default_settings() -> Dict:
    """Return default tournament settings."""
    return {
        'currentStage': 'setup',
        'startDate': '',
        'endDate': '',
        'settings': {
            'teamsPerGroup': 4,
            'maxPlayersPerTeam': 15,
            'playerFeeAmount': 0,
        },
    }


def load_settings(store) -> Dict:
    """Load the tournament document, merged with defaults so every key exists."""
    defaults = get_default_settings()
    doc = store.first('tournament')
    if not doc:
        return defaults
    for key, value in defaults.items():
        if key not in doc:
            doc[key] = value
    for key, value in defaults['settings'].items():
        doc['settings'].setdefault(key, value)
    return doc


def _validate_settings(data: Dict) -> Dict:
    stage = data.get('currentStage', 'setup')
    if stage not in STAGES:
        raise ValidationError(f"Unknown stage: {stage}")
    for field in ('startDate', 'endDate'):
        if data.get(field):
            validate_date(data[field], field)
    if data.get('startDate') and data.get('endDate') and data['endDate'] < data['startDate']:
        raise ValidationError("endDate must not be before startDate")

    settings = dict(get_default_settings()['settings'])
    settings.update(data.get('settings') or {})
    for field in ('teamsPerGroup', 'maxPlayersPerTeam'):
        value = settings[field]
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise ValidationError(f"{field} must be a positive integer")
    fee = settings.get('playerFeeAmount')
    if fee is not None and (isinstance(fee, bool) or not isinstance(fee, (int, float)) or fee < 0):
        raise ValidationError("playerFeeAmount must be a non-negative number")

    return {
        'currentStage': stage,
        'startDate': data.get('startDate', ''),
        'endDate': data.get('endDate', ''),
        'settings': settings,
    }


def save_settings(store, data: Dict) -> Dict:
    """Create or replace the single tournament document."""
    clean = _validate_settings(data)
    existing = store.first('tournament')
    if existing:
        return store.replace('tournament', existing['_id'], clean)
    store.insert('tournament', clean)
    return store.first('tournament')


def update_stage(store, stage: str) -> Dict:
    if stage not in STAGES:
        raise ValidationError(f"Unknown stage: {stage}")
    current = load_settings(store)
    current['currentStage'] = stage
    return save_settings(store, current)


def advance_stage(store) -> Dict:
    """Move to the next stage; the last stage stays where it is."""
    current = load_settings(store)
    index = STAGES.index(current['currentStage'])
    return update_stage(store, STAGES[min(index + 1, len(STAGES) - 1)])


def tournament_phase_summary(store) -> Dict[str, Dict[str, int]]:
    """Count matches per stage and status."""
    summary = {stage: {'scheduled': 0, 'live': 0, 'completed': 0} for stage in MATCH_STAGES}
    for match in store.list('matches'):
        stage = match.get('stage')
        status = match.get('status')
        if stage in summary and status in summary[stage]:
            summary[stage][status] += 1
    return summary
