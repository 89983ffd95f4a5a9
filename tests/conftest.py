"""
Shared pytest fixtures for the standings service tests.

Running tests:
    pytest tests/
"""
import pytest
import sys
import os
import tempfile
import yaml

# Keep the app's data directory out of the repository during tests
os.environ.setdefault('BEYBLADE_DATA_DIR', tempfile.mkdtemp(prefix='beyblade-tests-'))

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from core.models import MatchRecord, Participant


def build_match(id, p1, p2, scores_csv='', winner=None, state='complete', round=1, group_id=None,
                p1_id=None, p2_id=None):
    """Build a MatchRecord where player ids default to stable numbers derived from names."""
    p1_id = p1_id if p1_id is not None else 1000 + ord(p1[0])
    p2_id = p2_id if p2_id is not None else 1000 + ord(p2[0])
    winner_id = None
    loser_id = None
    if winner == p1:
        winner_id, loser_id = p1_id, p2_id
    elif winner == p2:
        winner_id, loser_id = p2_id, p1_id
    return MatchRecord(
        id=id,
        player1_id=p1_id,
        player2_id=p2_id,
        player1_name=p1,
        player2_name=p2,
        round=round,
        group_id=group_id,
        winner_id=winner_id,
        loser_id=loser_id,
        scores_csv=scores_csv,
        state=state,
    )


@pytest.fixture
def make_match():
    return build_match


@pytest.fixture
def three_player_matches():
    """A beats B 4-2, C beats A 5-1."""
    return [
        build_match(1, 'A', 'B', '4-2', winner='A'),
        build_match(2, 'A', 'C', '1-5', winner='C'),
    ]


@pytest.fixture
def challonge_participants():
    """Raw Challonge participants; Alice and Bob carry group aliases."""
    return [
        {'participant': {'id': 1, 'name': 'Alice', 'group_player_ids': [101]}},
        {'participant': {'id': 2, 'name': 'Bob', 'group_player_ids': [102]}},
        {'participant': {'id': 3, 'name': 'Carol', 'group_player_ids': [103]}},
        {'participant': {'id': 4, 'name': 'Dave', 'group_player_ids': [204]}},
    ]


@pytest.fixture
def challonge_matches():
    """Raw Challonge matches: group 11 (Alice, Bob, Carol), group 22 (Dave), and a final."""
    return [
        {'match': {'id': 503, 'round': 1, 'group_id': None, 'player1_id': 1, 'player2_id': 3,
                   'winner_id': None, 'loser_id': None, 'scores_csv': '', 'state': 'open',
                   'identifier': 'A'}},
        {'match': {'id': 501, 'round': 1, 'group_id': 11, 'player1_id': 101, 'player2_id': 102,
                   'winner_id': 101, 'loser_id': 102, 'scores_csv': '4-2', 'state': 'complete',
                   'identifier': 'A'}},
        {'match': {'id': 502, 'round': 2, 'group_id': 11, 'player1_id': 101, 'player2_id': 103,
                   'winner_id': 103, 'loser_id': 101, 'scores_csv': '1-5', 'state': 'complete',
                   'identifier': 'B'}},
        {'match': {'id': 504, 'round': 3, 'group_id': 11, 'player1_id': 102, 'player2_id': 103,
                   'winner_id': None, 'loser_id': None, 'scores_csv': None, 'state': 'pending',
                   'identifier': 'C'}},
        {'match': {'id': 505, 'round': 1, 'group_id': 22, 'player1_id': 204, 'player2_id': None,
                   'winner_id': None, 'loser_id': None, 'scores_csv': '', 'state': 'pending',
                   'identifier': 'D'}},
    ]


@pytest.fixture
def participants(challonge_participants):
    return [Participant.from_challonge(p) for p in challonge_participants]


@pytest.fixture
def temp_data_dir(tmp_path, monkeypatch):
    """Point the app at a temporary registry with one tournament."""
    import app as app_module
    from filelock import FileLock

    tournaments_file = tmp_path / "tournaments.yaml"
    tournaments_file.write_text(yaml.dump({'tournaments': [
        {'challonge_id': 'spring_cup', 'name': 'Spring Cup', 'api_key': 'secret', 'created': '2026-01-01'}
    ]}, default_flow_style=False))

    monkeypatch.setattr(app_module, 'DATA_DIR', str(tmp_path))
    monkeypatch.setattr(app_module, 'TOURNAMENTS_FILE', str(tournaments_file))
    monkeypatch.setattr(app_module, '_data_lock', FileLock(str(tmp_path / '.lock'), timeout=10))
    return str(tmp_path)


@pytest.fixture
def client():
    """Create a test client."""
    from app import app
    app.config['TESTING'] = True
    with app.test_client() as client:
        yield client
