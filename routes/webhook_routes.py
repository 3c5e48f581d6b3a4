"""
Webhook routes - one endpoint per provider, all driven through the ingestion service
"""
from flask import Blueprint, jsonify, request, current_app, abort

from logging_config import get_logger
from services.adapters import WebhookRequest

logger = get_logger(__name__)

webhook_bp = Blueprint('webhooks', __name__)

ERROR_STATUS = {
    'INVALID_BODY': 400,
    'INVALID_SIGNATURE': 400,
    'MISSING_ORGANIZATION': 400,
    'INVALID_API_KEY': 401,
    'INVALID_SECRET': 401,
    'PROCESSING_ERROR': 500,
}


def _client_ip():
    forwarded = request.headers.get('X-Forwarded-For', '')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.remote_addr


def _ingest(provider, path_organization_id=None):
    service_name = f'{provider}_adapter'
    if not current_app.services.has(service_name):
        abort(404)
    adapter = current_app.services.get(service_name)

    webhook_request = WebhookRequest(
        body=request.get_data(),
        headers=dict(request.headers),
        args=request.args.to_dict(),
        content_type=request.content_type or '',
        path_organization_id=path_organization_id,
    )

    ingestion_service = current_app.services.get('webhook_ingestion')
    result = ingestion_service.ingest(adapter, webhook_request, client_ip=_client_ip())

    if result.is_success:
        return jsonify(result.data), 200

    status = (result.metadata or {}).get('status_code') or ERROR_STATUS.get(result.error_code, 400)
    if status >= 500:
        # Detail stays in the logs
        return jsonify({'error': 'Processing failed'}), status
    return jsonify({'error': result.error}), status


@webhook_bp.route('/webhooks/clickfunnels/<org_id>', methods=['GET'])
def clickfunnels_ping(org_id):
    """ClickFunnels pings the URL when the webhook is saved"""
    return jsonify({'ok': True})


@webhook_bp.route('/webhooks/clickfunnels/<org_id>', methods=['POST'])
def clickfunnels_webhook(org_id):
    return _ingest('clickfunnels', path_organization_id=org_id)


@webhook_bp.route('/webhooks/<provider>', methods=['POST'])
def provider_webhook(provider):
    """ghl, stripe, calendly, typeform, jotform, scheduleonce, whop, zapier"""
    if provider == 'clickfunnels':
        abort(404)
    return _ingest(provider)
