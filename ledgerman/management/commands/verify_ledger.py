"""
Management command to audit running balances and stock mirrors.

Usage:
    python manage.py verify_ledger --company ACME
    python manage.py verify_ledger --company ACME --item 42

Exits with an error when any discrepancy is found.
"""

from django.core.management.base import BaseCommand, CommandError

from ledgerman import ledger
from ledgerman.exceptions import LedgerError


class Command(BaseCommand):
    """Verify ledger command."""

    help = 'Checks every running balance and stock mirror of a company'

    def add_arguments(self, parser):
        parser.add_argument('--company', required=True, help='Company code')
        parser.add_argument('--item', type=int, help='Verify a single item')

    def handle(self, *args, **options):
        try:
            found = ledger.verify(options['company'], options['item'])
        except LedgerError as e:
            raise CommandError(f'{e.code}: {e.message}') from e

        for d in found:
            where = f' (entry {d.entry_id})' if d.entry_id else ''
            self.stdout.write(
                f'item {d.item_id}: {d.kind} expected {d.expected}, found {d.found}{where}'
            )

        if found:
            raise CommandError(f'{len(found)} discrepancy(ies) found')
        self.stdout.write(self.style.SUCCESS('Ledger is consistent'))
