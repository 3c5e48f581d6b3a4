"""
Beacon routes - first-party pixel endpoint
"""
from flask import Blueprint, jsonify, request, current_app
from pydantic import ValidationError

from logging_config import get_logger
from services.beacon_schema import BeaconEnvelope

logger = get_logger(__name__)

beacon_bp = Blueprint('beacon', __name__)


def _client_ip():
    forwarded = request.headers.get('X-Forwarded-For', '')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.remote_addr


@beacon_bp.after_request
def add_cors_headers(response):
    """The pixel posts cross-origin with credentials, so the Origin is echoed."""
    origin = request.headers.get('Origin')
    if origin:
        response.headers['Access-Control-Allow-Origin'] = origin
        response.headers['Access-Control-Allow-Credentials'] = 'true'
        response.headers['Vary'] = 'Origin'
    response.headers['Access-Control-Allow-Methods'] = 'POST, OPTIONS'
    response.headers['Access-Control-Allow-Headers'] = 'Content-Type'
    return response


@beacon_bp.route('/pixel', methods=['OPTIONS'])
def pixel_preflight():
    return '', 204


@beacon_bp.route('/pixel', methods=['POST'])
def pixel():
    """Receive one page_view or form_submit hit"""
    payload = request.get_json(force=True, silent=True)
    if not isinstance(payload, dict):
        return jsonify({'ok': False, 'error': 'Invalid JSON'}), 400

    try:
        envelope = BeaconEnvelope.model_validate(payload)
    except ValidationError as e:
        logger.info("Beacon payload rejected", errors=e.error_count())
        return jsonify({'ok': False, 'error': 'Invalid payload'}), 200

    beacon_service = current_app.services.get('beacon')
    result = beacon_service.process(envelope, client_ip=_client_ip(), user_agent=request.headers.get('User-Agent'))

    # Never break the customer's page: failures are still 200
    if result.is_failure:
        body = {'ok': False}
        if result.error_code == 'UNKNOWN_ORGANIZATION':
            body['error'] = result.error
        return jsonify(body), 200

    return jsonify(result.data), 200
