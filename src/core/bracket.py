"""
Single elimination bracket for the knockout stage.

The bracket has a fixed shape: 8 round of 16 slots, 4 quarterfinals,
2 semifinals and the final. It is rebuilt from stored knockout matches each
time it is requested. Winners are never carried into the next round here;
an organiser schedules the next-round match with the teams that went through.
"""
import logging
import re
from typing import Dict, List, Optional

from .models import KNOCKOUT_STAGES, ROUND_SIZES, BracketSlot
from .standings import score_of

logger = logging.getLogger(__name__)

# (stage, slot id prefix, number of slots)
KNOCKOUT_ROUNDS = [
    ('round16', 'r16', 8),
    ('quarter', 'quarter', 4),
    ('semi', 'semi', 2),
    ('final', 'final', 1),
]

_PREFIX_TO_STAGE = {prefix: stage for stage, prefix, _ in KNOCKOUT_ROUNDS}
_PREFIX_TO_STAGE.update({'qf': 'quarter', 'sf': 'semi', 'f': 'final'})
_SLOT_ID_RE = re.compile(r'^\s*([a-z0-9]+)-(\d+)\s*$', re.IGNORECASE)
_NUMBER_RE = re.compile(r'(\d+)\s*$')


def get_round_name(stage: str) -> str:
    """Human readable name of a knockout stage."""
    return {
        'round16': 'Round of 16',
        'quarter': 'Quarterfinal',
        'semi': 'Semifinal',
        'final': 'Final',
    }.get(stage, stage)


def slot_id(stage: str, position: int) -> str:
    prefix = next(p for s, p, _ in KNOCKOUT_ROUNDS if s == stage)
    return f"{prefix}-{position}"


def build_empty_bracket() -> List[BracketSlot]:
    """Return the 15 empty slots in round order."""
    slots = []
    for stage, prefix, size in KNOCKOUT_ROUNDS:
        for position in range(1, size + 1):
            slots.append(BracketSlot(stage, prefix, position))
    return slots


def slot_position(match: Dict) -> Optional[int]:
    """
    Position of a knockout match inside its round, or None.

    The typed ``bracketPosition`` field wins. Older records kept the slot in
    the group label, either as a slot id like ``r16-3`` or as a bare number.
    """
    position = match.get('bracketPosition')
    if isinstance(position, int) and not isinstance(position, bool):
        return position

    label = match.get('groupId')
    if not isinstance(label, str) or not label.strip():
        return None
    slot_match = _SLOT_ID_RE.match(label)
    if slot_match:
        label_stage = _PREFIX_TO_STAGE.get(slot_match.group(1).lower())
        if label_stage and label_stage != match.get('stage'):
            logger.warning(f"Match {match.get('_id')} label {label} does not match its stage {match.get('stage')}")
            return None
        return int(slot_match.group(2))
    number = _NUMBER_RE.search(label)
    return int(number.group(1)) if number else None


def knockout_winner(match: Dict) -> Optional[str]:
    """
    Team id of the side that went through a completed knockout match.

    A level score is settled by the penalty shoot-out. Without one the
    winner stays undecided and the organiser has to resolve it.
    """
    if match.get('status') != 'completed':
        return None
    score = score_of(match)
    if score is None:
        logger.warning(f"Knockout match {match.get('_id')} is completed without a score")
        return None
    goals_a, goals_b = score
    if goals_a == goals_b:
        penalties = match.get('penalties') or {}
        goals_a, goals_b = penalties.get('teamA', 0), penalties.get('teamB', 0)
    if goals_a > goals_b:
        return match.get('teamAId')
    if goals_b > goals_a:
        return match.get('teamBId')
    logger.warning(f"Knockout match {match.get('_id')} ended level with no shoot-out result")
    return None


def build_knockout_bracket(teams: List[Dict], matches: List[Dict]) -> List[BracketSlot]:
    """Fill the empty bracket from knockout matches already in the store."""
    slots = build_empty_bracket()
    by_id = {slot.id: slot for slot in slots}
    team_names = {team['_id']: team.get('name') for team in teams}

    for match in matches:
        stage = match.get('stage')
        if stage not in KNOCKOUT_STAGES:
            continue
        position = slot_position(match)
        if position is None or not 1 <= position <= ROUND_SIZES[stage]:
            logger.warning(f"Knockout match {match.get('_id')} has no valid bracket position ({position}). Skipping.")
            continue

        slot = by_id[slot_id(stage, position)]
        if slot.match_id is not None:
            logger.warning(f"Slot {slot.id} already holds match {slot.match_id}; ignoring match {match.get('_id')}")
            continue

        slot.match_id = match.get('_id')
        slot.status = match.get('status')
        slot.team_a_id = match.get('teamAId')
        slot.team_a_name = team_names.get(slot.team_a_id)
        slot.team_b_id = match.get('teamBId')
        slot.team_b_name = team_names.get(slot.team_b_id)
        if match.get('score'):
            slot.score = dict(match['score'])
        if match.get('penalties'):
            slot.penalties = dict(match['penalties'])
        slot.winner_id = knockout_winner(match)

    return slots


def bracket_rounds(slots: List[BracketSlot]) -> Dict[str, List[Dict]]:
    """Group slots by stage for display."""
    rounds = {stage: [] for stage, _, _ in KNOCKOUT_ROUNDS}
    for slot in slots:
        rounds[slot.round].append(slot.to_dict())
    return rounds


def champion(slots: List[BracketSlot]) -> Optional[str]:
    for slot in slots:
        if slot.round == 'final':
            return slot.winner_id
    return None


def get_bracket_display(teams: List[Dict], matches: List[Dict]) -> Dict:
    """Bracket data ready to serialise: rounds, round names and champion."""
    slots = build_knockout_bracket(teams, matches)
    winner = champion(slots)
    team_names = {team['_id']: team.get('name') for team in teams}
    return {
        'rounds': bracket_rounds(slots),
        'round_names': {stage: get_round_name(stage) for stage, _, _ in KNOCKOUT_ROUNDS},
        'champion': {'teamId': winner, 'name': team_names.get(winner)} if winner else None,
    }
