"""
Flask web application for the Football Tournament Manager.

Public routes are read-only JSON projections of the stored records. Every
route under /api/admin/ needs a logged-in organiser.
"""
import os
import re
import logging
from datetime import datetime, timedelta
from functools import wraps
from flask import Flask, request, jsonify, session
from werkzeug.security import generate_password_hash, check_password_hash
from core.store import DocumentStore
from core.errors import TournamentError, ValidationError, DuplicateError
from core.models import StaffMember, STAFF_ROLES
from core.standings import recompute_all_standings, validate_standings, group_standings, overall_standings
from core.groups import (reconcile_groups_and_teams, create_group, assign_teams_to_groups, rename_group,
                         complete_group, delete_group, get_group_teams)
from core.bracket import get_bracket_display
from core.results import record_match_result, clear_match_result, set_match_live, remove_match
from core.teams import create_team, update_team, set_player_fee, unpaid_players, delete_team
from core.fixtures import create_match, update_match, schedule_group_fixtures, upcoming_matches, matches_for_team, sort_by_kickoff
from core.statistics import top_scorers, disciplinary_table, calculate_match_stats
from core.tournament import load_settings, save_settings, update_stage, advance_stage, tournament_phase_summary

app = Flask(__name__)


def _get_or_create_secret_key() -> bytes:
    """Get SECRET_KEY from env, or generate and persist to file."""
    env_key = os.environ.get('SECRET_KEY')
    if env_key:
        return env_key.encode() if isinstance(env_key, str) else env_key
    key_file = os.path.join(DATA_DIR, '.secret_key')
    if os.path.exists(key_file):
        with open(key_file, 'rb') as f:
            return f.read()
    key = os.urandom(24)
    os.makedirs(os.path.dirname(key_file), exist_ok=True)
    with open(key_file, 'wb') as f:
        f.write(key)
    return key


BASE_DIR = os.path.dirname(os.path.dirname(__file__))
DATA_DIR = os.environ.get('TOURNAMENT_DATA_DIR', os.path.join(BASE_DIR, 'data'))

app.secret_key = _get_or_create_secret_key()
app.config['PERMANENT_SESSION_LIFETIME'] = timedelta(days=30)
app.json.ensure_ascii = False

store = DocumentStore(DATA_DIR)

USERNAME_RE = re.compile(r'^[a-z0-9][a-z0-9_-]*$')
MIN_PASSWORD_LENGTH = 6
ADMIN_ROLES = ('admin', 'editor')


def _admin_view(admin: dict) -> dict:
    """Admin record without its password hash."""
    return {
        '_id': admin['_id'],
        'username': admin['username'],
        'role': admin.get('role', 'editor'),
        'createdAt': admin.get('createdAt'),
        'lastLogin': admin.get('lastLogin'),
    }


def _check_credentials_type(username, password):
    if not isinstance(username or '', str) or not isinstance(password or '', str):
        raise ValidationError('Username and password must be strings.')


def _validate_password(password: str):
    if not isinstance(password, str) or not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f'Password must be at least {MIN_PASSWORD_LENGTH} characters.')


def create_admin(username: str, password: str, role: str = 'editor') -> str:
    """Create an organiser account with a salted password hash. Returns its id."""
    _check_credentials_type(username, password)
    username = (username or '').lower().strip()
    if not USERNAME_RE.match(username) or len(username) < 2:
        raise ValidationError('Username must be at least 2 characters: letters, numbers, hyphens, underscores.')
    _validate_password(password)
    if role not in ADMIN_ROLES:
        raise ValidationError(f'Unknown role: {role}')
    if store.first('admins', username=username):
        raise DuplicateError('Username already taken.')
    return store.insert('admins', {
        'username': username,
        'password_hash': generate_password_hash(password),
        'role': role,
        'createdAt': datetime.now().isoformat(),
    })


def authenticate_admin(username: str, password: str):
    """Check username/password. Returns the admin record on success, else None."""
    _check_credentials_type(username, password)
    admin = store.first('admins', username=(username or '').lower().strip())
    if admin is None or not check_password_hash(admin['password_hash'], password or ''):
        return None
    return store.patch('admins', admin['_id'], {'lastLogin': datetime.now().isoformat()})


def _seed_admin_from_env():
    """Create the first organiser from ADMIN_USERNAME/ADMIN_PASSWORD when none exists."""
    username = os.environ.get('ADMIN_USERNAME')
    password = os.environ.get('ADMIN_PASSWORD')
    if not username or not password or store.list('admins'):
        return
    try:
        create_admin(username, password, role='admin')
        app.logger.info(f'Seeded admin account {username}')
    except TournamentError as e:
        app.logger.warning(f'Could not seed admin account {username}: {e.message}')


_seed_admin_from_env()


def login_required(f):
    """Reject the request unless an organiser is logged in."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if 'admin' not in session:
            return jsonify({'error': 'Login required'}), 401
        return f(*args, **kwargs)
    return decorated_function


def admin_required(f):
    """Reject the request unless the logged-in organiser has the admin role."""
    @wraps(f)
    @login_required
    def decorated_function(*args, **kwargs):
        if session.get('role') != 'admin':
            return jsonify({'error': 'Admin role required'}), 403
        return f(*args, **kwargs)
    return decorated_function


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


@app.errorhandler(TournamentError)
def handle_tournament_error(error):
    return jsonify({'error': error.message}), error.status_code


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

@app.route('/api/login', methods=['POST'])
def api_login():
    data = _json_body()
    admin = authenticate_admin(data.get('username', ''), data.get('password', ''))
    if admin is None:
        return jsonify({'error': 'Invalid username or password.'}), 401
    session.clear()
    session['admin'] = admin['username']
    session['admin_id'] = admin['_id']
    session['role'] = admin.get('role', 'editor')
    session.permanent = True
    return jsonify({'success': True, 'admin': _admin_view(admin)})


@app.route('/api/logout', methods=['POST'])
def api_logout():
    session.clear()
    return jsonify({'success': True})


@app.route('/api/me')
def api_me():
    if 'admin' not in session:
        return jsonify({'admin': None})
    admin = store.find('admins', session.get('admin_id'))
    if admin is None:
        session.clear()
        return jsonify({'admin': None})
    return jsonify({'admin': _admin_view(admin)})


@app.route('/api/register', methods=['POST'])
def api_register():
    """Create an organiser. Open only while no admin exists; afterwards admins only."""
    bootstrap = not store.list('admins')
    if not bootstrap and session.get('role') != 'admin':
        return jsonify({'error': 'Admin role required'}), 403
    data = _json_body()
    role = 'admin' if bootstrap else data.get('role', 'editor')
    admin_id = create_admin(data.get('username', ''), data.get('password', ''), role)
    return jsonify({'success': True, 'admin': _admin_view(store.get('admins', admin_id))}), 201


@app.route('/api/admin/admins')
@admin_required
def api_list_admins():
    return jsonify([_admin_view(a) for a in store.list('admins')])


@app.route('/api/admin/admins/<admin_id>/role', methods=['POST'])
@admin_required
def api_update_admin_role(admin_id):
    role = _json_body().get('role')
    if role not in ADMIN_ROLES:
        raise ValidationError(f'Unknown role: {role}')
    current = store.get('admins', admin_id)
    if current.get('role') == 'admin' and role != 'admin' and len(store.query('admins', role='admin')) <= 1:
        raise ValidationError('Cannot demote the last admin.')
    admin = store.patch('admins', admin_id, {'role': role})
    if admin_id == session.get('admin_id'):
        session['role'] = role
    return jsonify(_admin_view(admin))


@app.route('/api/admin/admins/<admin_id>/password', methods=['POST'])
@login_required
def api_update_admin_password(admin_id):
    """Admins can reset anyone's password; editors only their own."""
    if session.get('role') != 'admin' and session.get('admin_id') != admin_id:
        return jsonify({'error': 'Admin role required'}), 403
    password = _json_body().get('password', '')
    _validate_password(password)
    store.patch('admins', admin_id, {'password_hash': generate_password_hash(password)})
    return jsonify({'success': True})


@app.route('/api/admin/admins/<admin_id>', methods=['DELETE'])
@admin_required
def api_delete_admin(admin_id):
    if session.get('admin_id') == admin_id:
        raise ValidationError('You cannot delete your own account.')
    store.delete('admins', admin_id)
    return jsonify({'success': True})


# ---------------------------------------------------------------------------
# Public read-only projections
# ---------------------------------------------------------------------------

def _public_team(team: dict) -> dict:
    """Team without roster details (birth dates, fees) for anonymous visitors."""
    if 'admin' in session:
        return team
    public = dict(team)
    public['players'] = [
        {k: p[k] for k in ('fullName', 'photoUrl') if p.get(k)}
        for p in team.get('players') or []
    ]
    return public


def _with_team_names(match: dict, team_names: dict) -> dict:
    enriched = dict(match)
    enriched['teamAName'] = team_names.get(match.get('teamAId'))
    enriched['teamBName'] = team_names.get(match.get('teamBId'))
    return enriched


def _team_names() -> dict:
    return {team['_id']: team.get('name') for team in store.list('teams')}


@app.route('/api/teams')
def api_teams():
    teams = store.list('teams')
    group = request.args.get('groupId')
    if group:
        teams = [t for t in teams if t.get('groupId') == group]
    return jsonify([_public_team(t) for t in teams])


@app.route('/api/teams/<team_id>')
def api_team(team_id):
    team = store.get('teams', team_id)
    names = _team_names()
    matches = sort_by_kickoff(matches_for_team(store.list('matches'), team_id))
    result = _public_team(team)
    result['matches'] = [_with_team_names(m, names) for m in matches]
    return jsonify(result)


@app.route('/api/matches')
def api_matches():
    matches = store.list('matches')
    for field in ('stage', 'groupId', 'status'):
        value = request.args.get(field)
        if value:
            matches = [m for m in matches if m.get(field) == value]
    team_id = request.args.get('teamId')
    if team_id:
        matches = matches_for_team(matches, team_id)
    names = _team_names()
    return jsonify([_with_team_names(m, names) for m in sort_by_kickoff(matches)])


@app.route('/api/matches/upcoming')
def api_upcoming_matches():
    names = _team_names()
    return jsonify([_with_team_names(m, names) for m in upcoming_matches(store.list('matches'))])


@app.route('/api/matches/<match_id>')
def api_match(match_id):
    match = store.get('matches', match_id)
    result = _with_team_names(match, _team_names())
    staff = {s['_id']: s.get('name') for s in store.list('staff')}
    result['refereeNames'] = [staff.get(r) for r in match.get('referees') or []]
    return jsonify(result)


@app.route('/api/groups')
def api_groups():
    return jsonify(store.list('groups'))


@app.route('/api/groups/<group_id>/teams')
def api_group_teams(group_id):
    return jsonify([_public_team(t) for t in get_group_teams(store, group_id)])


@app.route('/api/staff')
def api_staff():
    role = request.args.get('role')
    if role and role not in STAFF_ROLES:
        raise ValidationError(f'Unknown staff role: {role}')
    staff = store.query('staff', role=role) if role else store.list('staff')
    return jsonify(staff)


@app.route('/api/standings')
def api_standings():
    return jsonify({'groups': group_standings(store), 'overall': overall_standings(store)})


@app.route('/api/bracket')
def api_bracket():
    return jsonify(get_bracket_display(store.list('teams'), store.list('matches')))


@app.route('/api/statistics')
def api_statistics():
    teams = store.list('teams')
    matches = store.list('matches')
    names = {team['_id']: team.get('name') for team in teams}
    scorers = top_scorers(matches)
    cards = disciplinary_table(matches)
    for row in scorers + cards:
        row['teamName'] = names.get(row['teamId'])
    return jsonify({
        'summary': calculate_match_stats(matches, teams),
        'topScorers': scorers,
        'cards': cards,
    })


@app.route('/api/tournament')
def api_tournament():
    return jsonify({'tournament': load_settings(store), 'progress': tournament_phase_summary(store)})


# ---------------------------------------------------------------------------
# Standings maintenance
# ---------------------------------------------------------------------------

@app.route('/api/admin/standings/recompute', methods=['POST'])
@login_required
def api_recompute_standings():
    result = recompute_all_standings(store)
    app.logger.info(f"Standings recomputed by {session['admin']}: {result}")
    return jsonify(dict(result, success=True))


@app.route('/api/admin/standings/validate', methods=['POST'])
@login_required
def api_validate_standings():
    return jsonify(dict(validate_standings(store), success=True))


@app.route('/api/admin/groups/sync', methods=['POST'])
@login_required
def api_sync_groups():
    result = reconcile_groups_and_teams(store)
    app.logger.info(f"Groups reconciled by {session['admin']}: {result['updates']} updates")
    return jsonify(dict(result, success=True))


# ---------------------------------------------------------------------------
# Teams
# ---------------------------------------------------------------------------

@app.route('/api/admin/teams', methods=['POST'])
@login_required
def api_create_team():
    team_id = create_team(store, _json_body())
    return jsonify(store.get('teams', team_id)), 201


@app.route('/api/admin/teams/<team_id>', methods=['PUT'])
@login_required
def api_update_team(team_id):
    return jsonify(update_team(store, team_id, _json_body()))


@app.route('/api/admin/teams/<team_id>', methods=['DELETE'])
@login_required
def api_delete_team(team_id):
    delete_team(store, team_id)
    return jsonify({'success': True})


@app.route('/api/admin/teams/<team_id>/players/<int:index>/fee', methods=['POST'])
@login_required
def api_toggle_player_fee(team_id, index):
    data = _json_body()
    team = set_player_fee(store, team_id, index, bool(data.get('paid')), data.get('paymentDate'))
    return jsonify(team)


@app.route('/api/admin/unpaid-players')
@login_required
def api_unpaid_players():
    return jsonify(unpaid_players(store))


# ---------------------------------------------------------------------------
# Groups
# ---------------------------------------------------------------------------

@app.route('/api/admin/groups', methods=['POST'])
@login_required
def api_create_group():
    data = _json_body()
    group_id = create_group(store, data.get('name', ''), data.get('teams') or [])
    return jsonify(store.get('groups', group_id)), 201


@app.route('/api/admin/groups/assign', methods=['POST'])
@login_required
def api_assign_groups():
    assignments = _json_body().get('assignments')
    if not isinstance(assignments, list):
        raise ValidationError('assignments must be a list')
    moved = assign_teams_to_groups(store, assignments)
    return jsonify({'success': True, 'moved': moved})


@app.route('/api/admin/groups/<group_id>', methods=['PUT'])
@login_required
def api_rename_group(group_id):
    return jsonify(rename_group(store, group_id, _json_body().get('name', '')))


@app.route('/api/admin/groups/<group_id>/complete', methods=['POST'])
@login_required
def api_complete_group(group_id):
    return jsonify(complete_group(store, group_id))


@app.route('/api/admin/groups/<group_id>', methods=['DELETE'])
@login_required
def api_delete_group(group_id):
    delete_group(store, group_id)
    return jsonify({'success': True})


@app.route('/api/admin/groups/<group_id>/fixtures', methods=['POST'])
@login_required
def api_generate_fixtures(group_id):
    data = _json_body()
    try:
        interval = int(data.get('intervalMinutes', 90))
        per_day = int(data.get('perDay', 2))
    except (TypeError, ValueError):
        raise ValidationError('intervalMinutes and perDay must be integers')
    created = schedule_group_fixtures(store, group_id, data.get('startDate'), data.get('startTime'),
                                      interval, per_day)
    return jsonify({'success': True, 'created': created}), 201


# ---------------------------------------------------------------------------
# Matches
# ---------------------------------------------------------------------------

@app.route('/api/admin/matches', methods=['POST'])
@login_required
def api_create_match():
    match_id = create_match(store, _json_body())
    return jsonify(store.get('matches', match_id)), 201


@app.route('/api/admin/matches/<match_id>', methods=['PUT'])
@login_required
def api_update_match(match_id):
    return jsonify(update_match(store, match_id, _json_body()))


@app.route('/api/admin/matches/<match_id>', methods=['DELETE'])
@login_required
def api_delete_match(match_id):
    remove_match(store, match_id)
    return jsonify({'success': True})


@app.route('/api/admin/matches/<match_id>/live', methods=['POST'])
@login_required
def api_match_live(match_id):
    return jsonify(set_match_live(store, match_id))


@app.route('/api/admin/matches/<match_id>/result', methods=['POST'])
@login_required
def api_record_result(match_id):
    """Record a final score. Send "revise": true to correct an existing result."""
    data = _json_body()
    match = record_match_result(
        store,
        match_id,
        data.get('teamAGoals'),
        data.get('teamBGoals'),
        events=data.get('events') or [],
        man_of_the_match=data.get('manOfTheMatch'),
        penalties=data.get('penalties'),
        revise=bool(data.get('revise', False)),
    )
    app.logger.info(f"Result for match {match_id} recorded by {session['admin']}")
    return jsonify(match)


@app.route('/api/admin/matches/<match_id>/clear-result', methods=['POST'])
@login_required
def api_clear_result(match_id):
    return jsonify(clear_match_result(store, match_id))


# ---------------------------------------------------------------------------
# Staff
# ---------------------------------------------------------------------------

@app.route('/api/admin/staff', methods=['POST'])
@login_required
def api_create_staff():
    staff_id = store.insert('staff', StaffMember.from_dict(_json_body()).to_dict())
    return jsonify(store.get('staff', staff_id)), 201


@app.route('/api/admin/staff/<staff_id>', methods=['PUT'])
@login_required
def api_update_staff(staff_id):
    current = store.get('staff', staff_id)
    merged = dict(current)
    merged.update(_json_body())
    member = StaffMember.from_dict(merged)
    return jsonify(store.replace('staff', staff_id, member.to_dict()))


@app.route('/api/admin/staff/<staff_id>', methods=['DELETE'])
@login_required
def api_delete_staff(staff_id):
    """Delete a staff member and drop them from the referee lists of matches."""
    store.get('staff', staff_id)
    for match in store.list('matches'):
        if staff_id in (match.get('referees') or []):
            store.patch('matches', match['_id'], {'referees': [r for r in match['referees'] if r != staff_id]})
    store.delete('staff', staff_id)
    return jsonify({'success': True})


# ---------------------------------------------------------------------------
# Tournament settings
# ---------------------------------------------------------------------------

@app.route('/api/admin/tournament', methods=['POST'])
@login_required
def api_save_tournament():
    return jsonify(save_settings(store, _json_body()))


@app.route('/api/admin/tournament/stage', methods=['POST'])
@login_required
def api_update_stage():
    stage = _json_body().get('stage')
    if not stage:
        raise ValidationError('Missing stage')
    return jsonify(update_stage(store, stage))


@app.route('/api/admin/tournament/advance', methods=['POST'])
@login_required
def api_advance_stage():
    return jsonify(advance_stage(store))


@app.errorhandler(404)
def handle_not_found(error):
    return jsonify({'error': 'Not found'}), 404


if __name__ == '__main__':
    logging.basicConfig(level=os.environ.get('LOG_LEVEL', 'INFO'))
    app.run(debug=True, port=5000)
