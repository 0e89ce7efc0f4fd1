"""
Tournament statistics built from match events and scores.
"""
from typing import Dict, List, Optional

from .standings import score_of


def top_scorers(matches: List[Dict], limit: int = 10) -> List[Dict]:
    """Goals per player, most first. Players are keyed by name and team."""
    goals = {}
    for match in matches:
        for event in match.get('events') or []:
            if event.get('type') != 'goal':
                continue
            key = (event.get('playerId'), event.get('teamId'))
            if key not in goals:
                goals[key] = {'player': key[0], 'teamId': key[1], 'goals': 0}
            goals[key]['goals'] += 1
    ranked = sorted(goals.values(), key=lambda p: (-p['goals'], p['player'] or ''))
    return ranked[:limit]


def disciplinary_table(matches: List[Dict]) -> List[Dict]:
    """Yellow and red cards per player, red cards first."""
    cards = {}
    for match in matches:
        for event in match.get('events') or []:
            if event.get('type') not in ('yellowCard', 'redCard'):
                continue
            key = (event.get('playerId'), event.get('teamId'))
            if key not in cards:
                cards[key] = {'player': key[0], 'teamId': key[1], 'yellow': 0, 'red': 0}
            if event['type'] == 'yellowCard':
                cards[key]['yellow'] += 1
            else:
                cards[key]['red'] += 1
    return sorted(cards.values(), key=lambda p: (-p['red'], -p['yellow'], p['player'] or ''))


def calculate_match_stats(matches: List[Dict], teams: Optional[List[Dict]] = None) -> Optional[Dict]:
    """
    Aggregate figures over completed matches that have a score.

    Returns None when no such match exists.
    """
    team_names = {team['_id']: team.get('name') for team in teams or []}
    scored = []
    yellow = red = 0
    for match in matches:
        if match.get('status') != 'completed':
            continue
        for event in match.get('events') or []:
            if event.get('type') == 'yellowCard':
                yellow += 1
            elif event.get('type') == 'redCard':
                red += 1
        score = score_of(match)
        if score is None:
            continue
        goals_a, goals_b = score
        scored.append({
            'matchId': match.get('_id'),
            'teamA': team_names.get(match.get('teamAId'), match.get('teamAId')),
            'teamB': team_names.get(match.get('teamBId'), match.get('teamBId')),
            'score': f"{goals_a}-{goals_b}",
            'margin': abs(goals_a - goals_b),
            'goals': goals_a + goals_b,
        })

    if not scored:
        return None

    total_goals = sum(m['goals'] for m in scored)
    biggest = max(scored, key=lambda m: m['margin'])
    highest = max(scored, key=lambda m: m['goals'])
    return {
        'matchesCompleted': len(scored),
        'totalGoals': total_goals,
        'averageGoals': round(total_goals / len(scored), 2),
        'yellowCards': yellow,
        'redCards': red,
        'biggestWin': biggest,
        'highestScoring': highest,
    }
