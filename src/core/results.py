"""
Live result entry for single matches.

Recording a result updates the two teams' stats incrementally with the same
``apply_result`` rule the full recomputation uses. A result that is
corrected, cleared or deleted has its old contribution reversed first, so the
incremental path and ``recompute_all_standings`` agree.
"""
import logging
from typing import Dict, List, Optional

from .errors import ResultAlreadyRecordedError, ValidationError
from .models import normalize_stats, validate_event, validate_goals, validate_score
from .standings import apply_result, score_of

logger = logging.getLogger(__name__)


def _apply_to_teams(store, match: Dict, goals_a: int, goals_b: int, sign: int):
    """Apply (sign=1) or reverse (sign=-1) a score on both teams of a match."""
    sides = ((match['teamAId'], goals_a, goals_b), (match['teamBId'], goals_b, goals_a))
    for team_id, goals_for, goals_against in sides:
        team = store.find('teams', team_id)
        if team is None:
            logger.warning(f"Match {match['_id']} references unknown team {team_id}; stats not updated")
            continue
        stats = apply_result(normalize_stats(team.get('stats')), goals_for, goals_against, sign)
        store.patch('teams', team_id, {'stats': stats})


def _reverse_recorded_result(store, match: Dict) -> bool:
    if match.get('status') != 'completed':
        return False
    score = score_of(match)
    if score is None:
        return False
    _apply_to_teams(store, match, score[0], score[1], -1)
    return True


def record_match_result(store, match_id: str, team_a_goals: int, team_b_goals: int,
                        events: Optional[List[Dict]] = None, man_of_the_match: Optional[str] = None,
                        penalties: Optional[Dict] = None, revise: bool = False) -> Dict:
    """
    Mark a match completed with its final score and update both teams.

    Submitting a result for a match that is already completed is rejected
    unless ``revise`` is set, in which case the previous result is reversed
    before the new one is applied.
    """
    match = store.get('matches', match_id)
    validate_goals(team_a_goals, 'teamAGoals')
    validate_goals(team_b_goals, 'teamBGoals')
    team_ids = [match['teamAId'], match['teamBId']]
    clean_events = [validate_event(e, team_ids) for e in events or []]
    clean_events.sort(key=lambda e: e['minute'])
    penalties = validate_score(penalties, 'penalties')
    if penalties is not None and team_a_goals != team_b_goals:
        raise ValidationError("A penalty shoot-out needs a level score")
    if penalties is not None and penalties['teamA'] == penalties['teamB']:
        raise ValidationError("A penalty shoot-out cannot end level")
    if penalties is not None and match.get('stage') == 'group':
        raise ValidationError("Group matches have no penalty shoot-out")

    if match.get('status') == 'completed':
        if not revise:
            raise ResultAlreadyRecordedError(f"Result already recorded for match {match_id}")
        if _reverse_recorded_result(store, match):
            logger.info(f"Reversed previous result of match {match_id}")

    _apply_to_teams(store, match, team_a_goals, team_b_goals, 1)
    logger.info(f"Recorded result {team_a_goals}-{team_b_goals} for match {match_id}")

    man_of_the_match = (man_of_the_match or '').strip() or None
    return store.patch('matches', match_id, {
        'status': 'completed',
        'score': {'teamA': team_a_goals, 'teamB': team_b_goals},
        'events': clean_events,
        'manOfTheMatch': man_of_the_match,
        'penalties': penalties,
    })


def clear_match_result(store, match_id: str) -> Dict:
    """Take a recorded result back out and return the match to 'scheduled'."""
    match = store.get('matches', match_id)
    _reverse_recorded_result(store, match)
    return store.patch('matches', match_id, {
        'status': 'scheduled',
        'score': None,
        'events': None,
        'manOfTheMatch': None,
        'penalties': None,
    })


def set_match_live(store, match_id: str) -> Dict:
    match = store.get('matches', match_id)
    if match.get('status') == 'completed':
        raise ResultAlreadyRecordedError(f"Match {match_id} is already completed")
    return store.patch('matches', match_id, {'status': 'live'})


def remove_match(store, match_id: str):
    """Delete a match, reversing its result first when it was completed."""
    match = store.get('matches', match_id)
    if _reverse_recorded_result(store, match):
        logger.info(f"Reversed result of deleted match {match_id}")
    store.delete('matches', match_id)
