"""
Flask web application exposing PTM tournament brackets as a JSON API.
"""
import os
from filelock import Timeout
from flask import Flask, Response, jsonify, request

from ptm.elimination import get_bracket_display
from ptm.errors import BracketValidationError, MatchNotFoundError
from ptm.export import matches_to_csv
from ptm.models import Participant
from ptm.store import MatchStore

app = Flask(__name__)

BASE_DIR = os.path.dirname(os.path.dirname(__file__))
DATA_DIR = os.environ.get('PTM_DATA_DIR', os.path.join(BASE_DIR, 'data'))

store = MatchStore(DATA_DIR)


@app.errorhandler(BracketValidationError)
def handle_validation_error(e):
    return jsonify({'error': str(e)}), 400


@app.errorhandler(MatchNotFoundError)
def handle_not_found(e):
    return jsonify({'error': str(e)}), 404


@app.errorhandler(Timeout)
def handle_lock_timeout(e):
    app.logger.error(f'Data lock timed out: {e}')
    return jsonify({'error': 'Tournament data is busy, try again'}), 503


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise BracketValidationError('Request body must be a JSON object')
    return data


@app.route('/api/tournaments/<tournament_id>/participants', methods=['GET'])
def list_participants(tournament_id):
    """API endpoint returning the registration list."""
    participants = store.load_participants(tournament_id)
    return jsonify({'participants': [p.to_dict() for p in participants]})


@app.route('/api/tournaments/<tournament_id>/participants', methods=['POST'])
def replace_participants(tournament_id):
    """API endpoint replacing the registration list."""
    data = _json_body()
    rows = data.get('participants')
    if not isinstance(rows, list):
        return jsonify({'error': 'Missing participants list'}), 400

    participants = [Participant.from_dict(row) for row in rows]
    store.save_participants(tournament_id, participants)
    return jsonify({'success': True, 'count': len(participants)})


@app.route('/api/tournaments/<tournament_id>/settings', methods=['GET'])
def get_settings(tournament_id):
    return jsonify(store.load_settings(tournament_id))


@app.route('/api/tournaments/<tournament_id>/settings', methods=['PUT'])
def update_settings(tournament_id):
    settings = store.load_settings(tournament_id)
    settings.update(_json_body())
    return jsonify(store.save_settings(tournament_id, settings))


@app.route('/api/tournaments/<tournament_id>/bracket', methods=['POST'])
def create_bracket(tournament_id):
    """
    API endpoint generating and saving a new bracket.

    Body keys slot_count, randomize and third_place override the stored
    settings for this and later generations. Any previous bracket is replaced.
    """
    settings, bracket, records = store.create_bracket(tournament_id, _json_body())
    app.logger.info(f'Generated bracket for {tournament_id}: {settings["slot_count"]} slots, '
                    f'{len(records)} matches')

    return jsonify({
        'success': True,
        'matches': len(records),
        'bracket': get_bracket_display(bracket),
    }), 201


@app.route('/api/tournaments/<tournament_id>/bracket', methods=['GET'])
def get_bracket(tournament_id):
    bracket = store.load_bracket(tournament_id)
    if bracket is None:
        return jsonify({'error': 'No bracket generated'}), 404
    return jsonify(get_bracket_display(bracket))


@app.route('/api/tournaments/<tournament_id>/bracket', methods=['DELETE'])
def delete_bracket(tournament_id):
    store.clear_bracket(tournament_id)
    return jsonify({'success': True})


@app.route('/api/tournaments/<tournament_id>/matches/<match_id>/result', methods=['POST'])
def save_match_result(tournament_id, match_id):
    """API endpoint to save a bracket match score."""
    data = _json_body()
    score1 = data.get('score1')
    score2 = data.get('score2')
    if score1 is None or score2 is None:
        return jsonify({'error': 'Both scores are required'}), 400

    match = store.update_match_result(tournament_id, match_id, score1, score2)
    return jsonify({
        'success': True,
        'match': match.to_dict(),
        'winner': match.winner.to_dict() if match.winner else None,
    })


@app.route('/api/tournaments/<tournament_id>/matches/<match_id>/advance', methods=['POST'])
def advance_match_winner(tournament_id, match_id):
    """API endpoint moving a decided match's winner into the next round."""
    changed = store.advance_winner(tournament_id, match_id)
    return jsonify({
        'success': True,
        'updated': [m.to_dict() for m in changed],
    })


@app.route('/api/tournaments/<tournament_id>/export.csv')
def export_matches_csv(tournament_id):
    """Export the bracket's match results as a downloadable CSV file."""
    bracket = store.load_bracket(tournament_id)
    if bracket is None:
        return jsonify({'error': 'No bracket generated'}), 404

    name = request.args.get('name', tournament_id)
    return Response(
        matches_to_csv(bracket, name),
        mimetype='text/csv',
        headers={'Content-Disposition': f'attachment; filename={tournament_id}-matches.csv'},
    )


if __name__ == '__main__':
    app.run(debug=os.environ.get('FLASK_DEBUG') == '1')
