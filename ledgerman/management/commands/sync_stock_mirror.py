"""
Management command to refresh item stock mirrors from the ledger.

Usage:
    python manage.py sync_stock_mirror
    python manage.py sync_stock_mirror --company ACME
"""

from django.core.management.base import BaseCommand, CommandError

from ledgerman import ledger
from ledgerman.exceptions import LedgerError


class Command(BaseCommand):
    """Sync stock mirror command."""

    help = "Sets every item's current stock to its latest ledger balance"

    def add_arguments(self, parser):
        parser.add_argument('--company', help='Company code (default: all companies)')

    def handle(self, *args, **options):
        try:
            count = ledger.sync_mirrors(options['company'])
        except LedgerError as e:
            raise CommandError(f'{e.code}: {e.message}') from e

        self.stdout.write(self.style.SUCCESS(f'{count} mirror(s) updated'))
