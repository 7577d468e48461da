from flask import Blueprint, current_app, jsonify

main = Blueprint('main', __name__)


@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the RPS party server!'})


@main.route('/health')
def health():
    registry = current_app.extensions['rps_party'].registry
    return jsonify({'status': 'ok', 'rooms': len(registry)})
