"""
Management command to load business flows.

Loads the built-in flows plus CFSFLOW['FLOWS'] from settings. Existing
flows with the same name are replaced.

Usage:
    python manage.py load_flows
    python manage.py load_flows --dry-run
"""

from django.core.management.base import BaseCommand, CommandError

from cfsflow import cfs
from cfsflow.conf import cfsflow_settings
from cfsflow.exceptions import FlowError
from cfsflow.protocols.transactions import FlowStep, validate_chain
from cfsflow.services import DEFAULT_FLOWS


class Command(BaseCommand):
    """Load business flows command."""

    help = 'Load built-in and configured business flows'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Validate the flows without saving them'
        )

    def handle(self, *args, **options):
        flows = {**DEFAULT_FLOWS, **cfsflow_settings.FLOWS}

        for name, config in flows.items():
            steps = config.get('steps') or []
            try:
                if options['dry_run']:
                    validate_chain(name, [FlowStep.from_dict(s) for s in steps])
                else:
                    cfs.save_flow(
                        name,
                        steps,
                        direction=config.get('direction', 'import'),
                        description=config.get('description', ''),
                    )
            except (FlowError, KeyError) as e:
                raise CommandError(f'Flow "{name}": {e}') from e

            chain = ' → '.join(s['code'] for s in steps) or '(no steps)'
            self.stdout.write(f'{name}: {chain}')

        if options['dry_run']:
            self.stdout.write(f'{len(flows)} flow(s) would be loaded')
        else:
            self.stdout.write(self.style.SUCCESS(f'{len(flows)} flow(s) loaded'))
