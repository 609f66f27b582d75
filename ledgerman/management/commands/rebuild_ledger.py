"""
Management command to regenerate the stock ledger from movement documents.

Usage:
    python manage.py rebuild_ledger --company ACME
    python manage.py rebuild_ledger --company ACME --item 42
    python manage.py rebuild_ledger --company ACME --dry-run
"""

from django.core.management.base import BaseCommand, CommandError

from ledgerman import ledger
from ledgerman.adapters import get_item_registry
from ledgerman.exceptions import LedgerError


class Command(BaseCommand):
    """Rebuild ledger command."""

    help = 'Regenerates ledger entries and stock mirrors from receiving and dispatch documents'

    def add_arguments(self, parser):
        parser.add_argument('--company', required=True, help='Company code')
        parser.add_argument('--item', type=int, help='Rebuild a single item')
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Shows the final balances without writing anything'
        )

    def handle(self, *args, **options):
        company = options['company']
        item_id = options['item']

        try:
            if options['dry_run']:
                self._dry_run(company, item_id)
                return

            if item_id is not None:
                result = ledger.rebuild_item(company, item_id)
            else:
                result = ledger.rebuild(company)
        except LedgerError as e:
            raise CommandError(f'{e.code}: {e.message}') from e

        self.stdout.write(
            self.style.SUCCESS(
                f'{result.company_id}: {result.items} item(s), {result.entries} entry(ies) rebuilt'
            )
        )

    def _dry_run(self, company, item_id):
        if item_id is not None:
            item_ids = [item_id]
        else:
            registry = get_item_registry()
            code = company.strip().upper()
            if not registry.company_exists(code):
                raise CommandError(f'Unknown company: {company}')
            item_ids = [item.item_id for item in registry.items_for_company(code)]

        for pk in item_ids:
            entries = ledger.plan(company, pk)
            current = ledger.balance(company, pk)
            final = entries[-1].net_balance
            marker = '' if final == current else '  (differs)'
            self.stdout.write(
                f'item {pk}: {len(entries)} entry(ies), balance {current} -> {final}{marker}'
            )
