"""
Team standings: the scoring rule, full recomputation from the match log,
drift validation and table ordering.
"""
import logging
from typing import Dict, List, Tuple

from .models import STAT_FIELDS, empty_stats, normalize_stats

logger = logging.getLogger(__name__)

POINTS_FOR_WIN = 3
POINTS_FOR_DRAW = 1

UNASSIGNED_GROUP = 'Unassigned'


def match_outcome(goals_for: int, goals_against: int) -> str:
    """Return 'won', 'drawn' or 'lost' from one side's point of view."""
    if goals_for > goals_against:
        return 'won'
    if goals_for < goals_against:
        return 'lost'
    return 'drawn'


def apply_result(stats: Dict, goals_for: int, goals_against: int, sign: int = 1) -> Dict:
    """
    Add one match's contribution to a stats block in place.

    With ``sign=-1`` the contribution is taken back out, which is how a
    corrected or deleted result is reversed before anything else is applied.
    """
    outcome = match_outcome(goals_for, goals_against)
    stats['played'] += sign
    stats['goalsFor'] += sign * goals_for
    stats['goalsAgainst'] += sign * goals_against
    stats[outcome] += sign
    if outcome == 'won':
        stats['points'] += sign * POINTS_FOR_WIN
    elif outcome == 'drawn':
        stats['points'] += sign * POINTS_FOR_DRAW
    return stats


def score_of(match: Dict):
    """Return (teamA, teamB) goals, or None when the match has no usable score."""
    score = match.get('score')
    if not isinstance(score, dict):
        return None
    team_a = score.get('teamA')
    team_b = score.get('teamB')
    if not isinstance(team_a, int) or not isinstance(team_b, int):
        return None
    return team_a, team_b


def compute_team_stats(teams: List[Dict], matches: List[Dict]) -> Tuple[Dict[str, Dict], Dict]:
    """
    Replay every completed match from zeroed stats.

    Returns ``(stats_by_team_id, report)`` where the report holds the number of
    matches applied and the ids of completed matches that had no score.
    """
    stats_by_team = {team['_id']: empty_stats() for team in teams}
    report = {'processed': 0, 'unscored': []}

    for match in matches:
        if match.get('status') != 'completed':
            continue
        score = score_of(match)
        if score is None:
            logger.warning(f"Match {match.get('_id')} is marked as completed but has no score. Skipping.")
            report['unscored'].append(match.get('_id'))
            continue

        goals_a, goals_b = score
        sides = ((match.get('teamAId'), goals_a, goals_b), (match.get('teamBId'), goals_b, goals_a))
        for team_id, goals_for, goals_against in sides:
            if team_id not in stats_by_team:
                logger.warning(f"Match {match.get('_id')} references unknown team {team_id}")
                continue
            apply_result(stats_by_team[team_id], goals_for, goals_against)
        report['processed'] += 1

    return stats_by_team, report


def recompute_all_standings(store) -> Dict[str, int]:
    """Rebuild every team's stats from the match log and write them back."""
    teams = store.list('teams')
    matches = store.list('matches')
    computed, report = compute_team_stats(teams, matches)

    teams_updated = 0
    for team in teams:
        new_stats = computed[team['_id']]
        if team.get('stats') != new_stats:
            store.patch('teams', team['_id'], {'stats': new_stats})
            teams_updated += 1

    logger.info(f"Recomputed standings: {teams_updated} teams updated, {report['processed']} matches processed")
    return {'teamsUpdated': teams_updated, 'matchesProcessed': report['processed']}


def stat_discrepancies(current: Dict, expected: Dict) -> List[str]:
    """List the fields where two stats blocks disagree."""
    return [
        f"{field}: current={current.get(field)}, expected={expected[field]}"
        for field in STAT_FIELDS
        if current.get(field) != expected[field]
    ]


def validate_standings(store) -> Dict:
    """
    Compare stored stats with a fresh recomputation without writing anything.

    Each team whose stored block differs counts as one inconsistency, and so
    does each completed match that has no score.
    """
    teams = store.list('teams')
    matches = store.list('matches')
    computed, report = compute_team_stats(teams, matches)

    team_report = []
    mismatched = 0
    for team in teams:
        current = team.get('stats') or empty_stats()
        discrepancies = stat_discrepancies(current, computed[team['_id']])
        entry = {
            'teamId': team['_id'],
            'teamName': team.get('name'),
            'hasDiscrepancies': bool(discrepancies),
        }
        if discrepancies:
            mismatched += 1
            entry['discrepancies'] = discrepancies
            entry['currentStats'] = current
            entry['expectedStats'] = computed[team['_id']]
            logger.warning(f"Stats drift for team {team.get('name')}: {', '.join(discrepancies)}")
        team_report.append(entry)

    completed = sum(1 for m in matches if m.get('status') == 'completed')
    return {
        'inconsistenciesFound': mismatched + len(report['unscored']),
        'teamsChecked': len(teams),
        'matchesExamined': completed,
        'unscoredMatches': report['unscored'],
        'teamReport': team_report,
    }


def standings_row(team: Dict) -> Dict:
    stats = normalize_stats(team.get('stats'))
    row = {'teamId': team['_id'], 'name': team.get('name')}
    row.update(stats)
    row['goalDifference'] = stats['goalsFor'] - stats['goalsAgainst']
    return row


def sort_standings(rows: List[Dict]) -> List[Dict]:
    """
    Order rows by points, goal difference, then goals scored, all descending.

    Rows still level keep their input order; there is no head-to-head rule.
    """
    return sorted(
        rows,
        key=lambda r: (-r['points'], -(r['goalsFor'] - r['goalsAgainst']), -r['goalsFor'])
    )


def group_standings(store) -> Dict[str, List[Dict]]:
    """Build a sorted table per group name, plus one for teams without a group."""
    groups = store.list('groups')
    tables = {group['name']: [] for group in sorted(groups, key=lambda g: g['name'])}
    for team in store.list('teams'):
        group_name = team.get('groupId') or UNASSIGNED_GROUP
        tables.setdefault(group_name, []).append(standings_row(team))
    return {name: sort_standings(rows) for name, rows in tables.items() if rows or name != UNASSIGNED_GROUP}


def overall_standings(store) -> List[Dict]:
    return sort_standings([standings_row(team) for team in store.list('teams')])
