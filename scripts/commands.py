# commands.py

import click
from flask import current_app
from flask.cli import with_appcontext


@click.command('seed-org')
@click.option('--name', required=True, help='Organization name')
@with_appcontext
def seed_org(name):
    """Create an organization and print its pixel snippet"""
    organization_repository = current_app.services.get('organization_repository')
    unit_of_work = current_app.services.get('unit_of_work')

    organization = organization_repository.find_by_name(name)
    if organization:
        click.echo(f'Organization already exists: {organization.name}')
    else:
        with unit_of_work.transaction():
            organization = organization_repository.create(name=name)
        click.echo(f'Organization created: {organization.name}')

    app_url = current_app.config.get('APP_URL', 'http://localhost:5000').rstrip('/')
    click.echo(f'  id:         {organization.id}')
    click.echo(f'  public key: {organization.public_key}')
    click.echo('  pixel:')
    click.echo(f'    <script async src="{app_url}/pixel.js" data-org-key="{organization.public_key}"></script>')


def init_app(app):
    """Register commands with the Flask app"""
    app.cli.add_command(seed_org)
