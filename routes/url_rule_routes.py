"""
URL rule routes - operator configuration API
"""
import hmac
from functools import wraps
from flask import Blueprint, jsonify, request, current_app

from logging_config import get_logger, security_logger

logger = get_logger(__name__)

url_rule_bp = Blueprint('url_rules', __name__)


def require_admin_token(f):
    """Bearer ADMIN_API_TOKEN; unguarded when no token is configured."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = current_app.config.get('ADMIN_API_TOKEN')
        if token:
            header = request.headers.get('Authorization', '')
            supplied = header[len('Bearer '):] if header.startswith('Bearer ') else ''
            if not hmac.compare_digest(token.encode('utf-8'), supplied.encode('utf-8')):
                security_logger.log_admin_token_failure(request.remote_addr)
                return jsonify({'error': 'Unauthorized'}), 401
        return f(*args, **kwargs)
    return decorated_function


def _status_for(result):
    return 404 if result.error_code == 'NOT_FOUND' else 400


@url_rule_bp.route('/organizations/<org_id>/url-rules', methods=['GET'])
@require_admin_token
def list_url_rules(org_id):
    url_rule_service = current_app.services.get('url_rule')
    result = url_rule_service.list_rules(org_id)
    if result.is_failure:
        return jsonify({'error': result.error}), _status_for(result)
    return jsonify({'rules': result.data})


@url_rule_bp.route('/organizations/<org_id>/url-rules', methods=['POST'])
@require_admin_token
def create_url_rule(org_id):
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({'error': 'Invalid JSON'}), 400

    url_rule_service = current_app.services.get('url_rule')
    result = url_rule_service.create_rule(org_id, data)
    if result.is_failure:
        return jsonify({'error': result.error}), _status_for(result)
    return jsonify(result.data), 201
