"""
Shared pytest fixtures for the football tournament tests.

Running tests:
    pytest tests/
"""
import pytest
import sys
import os

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from core.store import DocumentStore
from core.models import Team, Match, empty_stats


@pytest.fixture
def store(tmp_path):
    """An empty document store in a temporary directory."""
    return DocumentStore(str(tmp_path / 'data'))


@pytest.fixture
def add_team(store):
    """Insert a team and return its id."""
    def _add(name, group=None, stats=None, players=None):
        team = Team(name=name, group=group, stats=stats)
        doc = team.to_dict()
        if players:
            doc['players'] = players
        return store.insert('teams', doc)
    return _add


@pytest.fixture
def add_match(store):
    """Insert a match and return its id. Pass score/status to make it completed."""
    def _add(team_a, team_b, score=None, status=None, stage='group', date='2026-07-01',
             time='18:00', group=None, position=None, **extra):
        doc = Match(date=date, time=time, team_a_id=team_a, team_b_id=team_b, stage=stage,
                    group=group, bracket_position=position).to_dict()
        if score is not None:
            doc['score'] = {'teamA': score[0], 'teamB': score[1]}
            doc['status'] = 'completed'
        if status:
            doc['status'] = status
        doc.update(extra)
        return store.insert('matches', doc)
    return _add


@pytest.fixture
def two_teams(add_team):
    return add_team('Al Nasr'), add_team('Al Wahda')


@pytest.fixture
def app_store(tmp_path, monkeypatch):
    """Point the Flask app at a temporary store."""
    import app as app_module
    temp_store = DocumentStore(str(tmp_path / 'app_data'))
    monkeypatch.setattr(app_module, 'store', temp_store)
    return temp_store


@pytest.fixture
def anon_client(app_store):
    """A test client with no login."""
    from app import app
    app.config['TESTING'] = True
    client = app.test_client()
    yield client


@pytest.fixture
def client(app_store):
    """Create a test client logged in as an admin."""
    from app import app, create_admin
    app.config['TESTING'] = True
    admin_id = create_admin('organiser', 'secret123', role='admin')
    client = app.test_client()
    with client.session_transaction() as sess:
        sess['admin'] = 'organiser'
        sess['admin_id'] = admin_id
        sess['role'] = 'admin'
    yield client


@pytest.fixture
def zero_stats():
    return empty_stats()
