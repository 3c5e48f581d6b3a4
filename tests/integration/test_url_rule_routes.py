"""
Integration tests for the URL rule admin API
"""

import pytest

from tests.helpers import post_json


@pytest.fixture
def admin_token(app):
    app.config['ADMIN_API_TOKEN'] = 'admin-token'
    return 'admin-token'


class TestUrlRuleRoutes:

    def test_create_and_list(self, client, organization):
        # Act
        created = post_json(client, f'/api/organizations/{organization.id}/url-rules',
                            {'name': 'Thank you', 'pattern': '**/thank-you', 'event_type': 'OPT_IN'})
        listed = client.get(f'/api/organizations/{organization.id}/url-rules')

        # Assert
        assert created.status_code == 201
        assert listed.status_code == 200
        assert [rule['id'] for rule in listed.get_json()['rules']] == [created.get_json()['id']]

    def test_validation_error_is_400(self, client, organization):
        response = post_json(client, f'/api/organizations/{organization.id}/url-rules',
                             {'name': 'x', 'pattern': '/x', 'event_type': 'NOPE'})

        assert response.status_code == 400
        assert 'event_type' in response.get_json()['error']

    def test_invalid_json_is_400(self, client, organization):
        response = client.post(f'/api/organizations/{organization.id}/url-rules', data='nope',
                               content_type='application/json')

        assert response.status_code == 400

    def test_unknown_organization_is_404(self, client):
        assert client.get('/api/organizations/missing/url-rules').status_code == 404

    def test_token_required_when_configured(self, client, organization, admin_token, mocker):
        security_logger = mocker.patch('routes.url_rule_routes.security_logger')
        url = f'/api/organizations/{organization.id}/url-rules'

        assert client.get(url).status_code == 401
        assert client.get(url, headers={'Authorization': 'Bearer wrong'}).status_code == 401
        assert client.get(url, headers={'Authorization': f'Bearer {admin_token}'}).status_code == 200
        assert security_logger.log_admin_token_failure.call_count == 2
