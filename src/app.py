"""
Flask JSON API for the judge console and the player dashboard.
"""
import os
import re
import yaml
from datetime import datetime
from filelock import FileLock
from flask import Flask, request, jsonify, abort
from challonge import ChallongeClient, load_tournament_data, load_finish_descriptions
from core.finishes import FinishEntry, FINISH_TYPES, aggregate_finish_stats, format_finish_stats, normalize_name
from core.models import ChallongeError, as_int
from core.standings import (
    compute_standings,
    derive_stage_label,
    stage_sort_key,
    group_labels,
    group_stage_matches,
    final_stage_matches,
    matches_by_group,
    stage_rounds,
    resolve_opponent,
    find_pending_match,
    player_match_summary,
    player_position,
    final_position_label,
)

app = Flask(__name__)

BASE_DIR = os.path.dirname(os.path.dirname(__file__))
DATA_DIR = os.environ.get('BEYBLADE_DATA_DIR', os.path.join(BASE_DIR, 'data'))
TOURNAMENTS_FILE = os.path.join(DATA_DIR, 'tournaments.yaml')

os.makedirs(DATA_DIR, exist_ok=True)
_data_lock = FileLock(os.path.join(DATA_DIR, '.lock'), timeout=10)

SCORES_PATTERN = re.compile(r'^\d+-\d+$')


def load_tournaments() -> list:
    """Load the tournament registry from YAML."""
    if not os.path.exists(TOURNAMENTS_FILE):
        return []
    try:
        with open(TOURNAMENTS_FILE, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
        return data.get('tournaments', []) if data else []
    except Exception as e:
        app.logger.warning(f'Failed to parse {TOURNAMENTS_FILE}: {e}')
        return []


def save_tournaments(tournaments: list):
    """Save the tournament registry to YAML."""
    os.makedirs(os.path.dirname(TOURNAMENTS_FILE), exist_ok=True)
    with open(TOURNAMENTS_FILE, 'w', encoding='utf-8') as f:
        yaml.dump({'tournaments': tournaments}, f, default_flow_style=False)


def find_tournament(challonge_id: str):
    for tournament in load_tournaments():
        if tournament.get('challonge_id') == challonge_id:
            return tournament
    return None


def get_client(challonge_id: str) -> ChallongeClient:
    """Client for a registered tournament; 404 if it is not registered."""
    tournament = find_tournament(challonge_id)
    if not tournament:
        abort(404, description=f'Tournament {challonge_id} is not registered')
    return ChallongeClient(tournament['api_key'])


def find_participant(participants, player_id: int):
    """Look a participant up by id or by one of its group aliases."""
    for participant in participants:
        if player_id in participant.player_ids:
            return participant
    return None


def _involves(match, name: str) -> bool:
    target = normalize_name(name)
    return normalize_name(match.player1_name) == target or normalize_name(match.player2_name) == target


def build_group_overview(matches):
    """Per-group labels, rounds and standings for the group stage."""
    group_matches = group_stage_matches(matches)
    labels = group_labels(m.group_id for m in group_matches)
    grouped = matches_by_group(group_matches)
    groups = []
    for group_id, label in sorted(labels.items(), key=lambda item: item[1]):
        members = grouped.get(group_id, [])
        groups.append({
            'group_id': group_id,
            'label': label,
            'rounds': stage_rounds(members),
            'standings': [row.to_dict() for row in compute_standings(members)],
            'matches': [m.to_dict() for m in members],
        })
    return groups


def build_final_stage(matches):
    """Final-stage rounds in display order, earliest round first."""
    finals = final_stage_matches(matches)
    all_rounds = [m.round for m in finals]
    rounds = []
    for round_number in stage_rounds(finals):
        round_matches = [m for m in finals if abs(m.round) == round_number]
        rounds.append({
            'round': round_number,
            'label': derive_stage_label(round_number, all_rounds),
            'sort_key': stage_sort_key(round_number, all_rounds),
            'matches': [dict(m.to_dict(), stage_label=derive_stage_label(m.round, all_rounds))
                        for m in round_matches],
        })
    rounds.sort(key=lambda r: r['sort_key'], reverse=True)
    return rounds


def build_player_dashboard(participant, matches, finish_descriptions=None):
    """Everything the player page shows for one participant."""
    name = participant.name
    upcoming = [m.to_dict() for m in matches if not m.is_complete and _involves(m, name)]
    recent = sorted((m for m in matches if m.is_complete and _involves(m, name)),
                    key=lambda m: m.id, reverse=True)

    group_info = None
    group_matches = group_stage_matches(matches)
    player_group = next((m.group_id for m in group_matches if _involves(m, name)), None)
    if player_group is not None:
        labels = group_labels(m.group_id for m in group_matches)
        rows = compute_standings([m for m in group_matches if m.group_id == player_group])
        position = player_position(name, rows)
        if position is not None:
            group_info = dict(rows[position - 1].to_dict(), position=position,
                              group_id=player_group, label=labels[player_group])

    final_info = None
    finals = [m for m in final_stage_matches(matches) if m.is_complete]
    if any(_involves(m, name) for m in finals):
        rows = compute_standings(finals)
        position = player_position(name, rows)
        if position is not None:
            final_info = dict(rows[position - 1].to_dict(), position=position,
                              label=final_position_label(position))

    dashboard = {
        'player': participant.to_dict(),
        'summary': player_match_summary(name, matches),
        'upcoming': upcoming,
        'recent': [m.to_dict() for m in recent],
        'group': group_info,
        'final': final_info,
    }
    if finish_descriptions is not None:
        dashboard['finishes'] = aggregate_finish_stats(name, finish_descriptions)
    return dashboard


@app.errorhandler(ChallongeError)
def handle_challonge_error(e):
    return jsonify({'success': False, 'error': e.message}), e.status_code


@app.errorhandler(404)
def handle_not_found(e):
    return jsonify({'success': False, 'error': e.description}), 404


@app.route('/api/tournaments', methods=['GET'])
def api_list_tournaments():
    """List registered tournaments without their API keys."""
    tournaments = [
        {k: v for k, v in t.items() if k != 'api_key'}
        for t in load_tournaments()
    ]
    return jsonify({'success': True, 'tournaments': tournaments})


@app.route('/api/tournaments/create', methods=['POST'])
def api_create_tournament():
    """Register a Challonge tournament."""
    data = request.get_json(silent=True) or {}
    challonge_id = str(data.get('challonge_id', '')).strip()
    api_key = str(data.get('api_key', '')).strip()
    name = str(data.get('name', '')).strip() or challonge_id

    if not challonge_id or not api_key:
        return jsonify({'success': False, 'error': 'Missing challonge_id or api_key'}), 400
    if not re.match(r'^[A-Za-z0-9_-]+$', challonge_id):
        return jsonify({'success': False, 'error': 'Invalid challonge_id'}), 400

    with _data_lock:
        tournaments = load_tournaments()
        if any(t.get('challonge_id') == challonge_id for t in tournaments):
            return jsonify({'success': False, 'error': 'Tournament already registered'}), 409
        tournaments.append({
            'challonge_id': challonge_id,
            'name': name,
            'api_key': api_key,
            'created': datetime.now().isoformat()
        })
        save_tournaments(tournaments)

    app.logger.info(f'Registered tournament {challonge_id}')
    return jsonify({'success': True, 'challonge_id': challonge_id, 'name': name})


@app.route('/api/tournaments/delete', methods=['POST'])
def api_delete_tournament():
    """Unregister a tournament."""
    data = request.get_json(silent=True) or {}
    challonge_id = str(data.get('challonge_id', '')).strip()
    if not challonge_id:
        return jsonify({'success': False, 'error': 'Missing challonge_id'}), 400

    with _data_lock:
        tournaments = load_tournaments()
        remaining = [t for t in tournaments if t.get('challonge_id') != challonge_id]
        if len(remaining) == len(tournaments):
            return jsonify({'success': False, 'error': 'Tournament not found'}), 404
        save_tournaments(remaining)

    return jsonify({'success': True})


@app.route('/api/<challonge_id>/matches')
def api_matches(challonge_id):
    matches, participants = load_tournament_data(get_client(challonge_id), challonge_id)
    return jsonify({
        'success': True,
        'matches': [m.to_dict() for m in matches],
        'participants': [p.to_dict() for p in participants],
    })


@app.route('/api/<challonge_id>/groups')
def api_groups(challonge_id):
    matches, _ = load_tournament_data(get_client(challonge_id), challonge_id)
    try:
        groups = build_group_overview(matches)
    except ValueError as e:
        app.logger.error(f'Cannot label groups for {challonge_id}: {e}')
        return jsonify({'success': False, 'error': str(e)}), 422
    return jsonify({'success': True, 'groups': groups})


@app.route('/api/<challonge_id>/standings')
def api_standings(challonge_id):
    """
    Ranked standings for one stage.

    Query: stage=group (default) or final; group=<letter> narrows the group stage.
    """
    stage = request.args.get('stage', 'group')
    group = request.args.get('group', '').strip().upper()
    if stage not in ('group', 'final'):
        return jsonify({'success': False, 'error': 'stage must be group or final'}), 400

    matches, _ = load_tournament_data(get_client(challonge_id), challonge_id)
    if stage == 'final':
        scoped = final_stage_matches(matches)
    else:
        scoped = group_stage_matches(matches)
        if group:
            try:
                labels = group_labels(m.group_id for m in scoped)
            except ValueError as e:
                return jsonify({'success': False, 'error': str(e)}), 422
            group_id = next((gid for gid, label in labels.items() if label == group), None)
            if group_id is None:
                return jsonify({'success': False, 'error': f'Group {group} not found'}), 404
            scoped = [m for m in scoped if m.group_id == group_id]

    rows = compute_standings(scoped)
    return jsonify({
        'success': True,
        'stage': stage,
        'group': group or None,
        'standings': [dict(row.to_dict(), rank=i + 1) for i, row in enumerate(rows)],
    })


@app.route('/api/<challonge_id>/final-stage')
def api_final_stage(challonge_id):
    matches, _ = load_tournament_data(get_client(challonge_id), challonge_id)
    finals = [m for m in final_stage_matches(matches) if m.is_complete]
    return jsonify({
        'success': True,
        'rounds': build_final_stage(matches),
        'standings': [row.to_dict() for row in compute_standings(finals)],
    })


@app.route('/api/<challonge_id>/players/<int:player_id>')
def api_player(challonge_id, player_id):
    """Player dashboard. Pass finishes=0 to skip the attachment lookups."""
    client = get_client(challonge_id)
    matches, participants = load_tournament_data(client, challonge_id)
    participant = find_participant(participants, player_id)
    if not participant:
        return jsonify({'success': False, 'error': 'Player not found'}), 404

    finish_descriptions = None
    if request.args.get('finishes', '1') != '0':
        played = [m for m in matches if m.is_complete and _involves(m, participant.name)]
        finish_descriptions = load_finish_descriptions(client, challonge_id, played)

    try:
        dashboard = build_player_dashboard(participant, matches, finish_descriptions)
    except ValueError as e:
        return jsonify({'success': False, 'error': str(e)}), 422
    return jsonify(dict(dashboard, success=True))


@app.route('/api/<challonge_id>/players/<int:player_id>/opponent')
def api_player_opponent(challonge_id, player_id):
    """Next opponent of a player, for the judge console."""
    matches, participants = load_tournament_data(get_client(challonge_id), challonge_id)
    participant = find_participant(participants, player_id)
    if not participant:
        return jsonify({'success': False, 'error': 'Player not found'}), 404

    opponent_id = resolve_opponent(participant.player_ids, matches)
    opponent = find_participant(participants, opponent_id) if opponent_id is not None else None
    match = None
    if opponent:
        match = find_pending_match(participant.player_ids, opponent.player_ids, matches)
    return jsonify({
        'success': True,
        'opponent_id': opponent_id,
        'opponent': opponent.to_dict() if opponent else None,
        'match': match.to_dict() if match else None,
    })


@app.route('/api/<challonge_id>/matches/<int:match_id>/report', methods=['POST'])
def api_report_match(challonge_id, match_id):
    """
    Judge reports a match result.

    Body: {"scores_csv": "4-2", "winner_id": 123, "finishes": [{"name": ..., "spin": n, ...}]}
    """
    data = request.get_json(silent=True) or {}
    scores_csv = str(data.get('scores_csv') or '').strip()
    winner_id = data.get('winner_id')
    finishes = data.get('finishes') or []

    if not scores_csv and not winner_id:
        return jsonify({'success': False, 'error': 'Missing scores_csv or winner_id'}), 400
    if scores_csv and not SCORES_PATTERN.match(scores_csv):
        return jsonify({'success': False, 'error': 'scores_csv must look like 4-2'}), 400
    if winner_id is not None:
        winner_id = as_int(winner_id)
        if winner_id is None:
            return jsonify({'success': False, 'error': 'winner_id must be an integer'}), 400
    if not isinstance(finishes, list):
        return jsonify({'success': False, 'error': 'finishes must be a list'}), 400

    try:
        entries = [
            FinishEntry(str(f.get('name', '')).strip(), **{k: int(f.get(k) or 0) for k in FINISH_TYPES})
            for f in finishes if isinstance(f, dict) and str(f.get('name', '')).strip()
        ]
    except (TypeError, ValueError):
        return jsonify({'success': False, 'error': 'finish counts must be integers'}), 400

    client = get_client(challonge_id)
    match = client.update_match(challonge_id, match_id, scores_csv=scores_csv or None, winner_id=winner_id)
    app.logger.info(f'Reported match {match_id} in {challonge_id}: {scores_csv} winner={winner_id}')

    attachment = None
    if entries:
        attachment = client.create_attachment(challonge_id, match_id, format_finish_stats(entries))

    return jsonify({'success': True, 'match': match, 'attachment': attachment})


if __name__ == '__main__':
    app.run(debug=True, port=5000)
