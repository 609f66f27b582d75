"""
Tests for the rebuild path: ledger.rebuild(), rebuild_item(), plan(),
verify() and sync_mirrors().
"""

import pytest
from django.db import transaction

from ledgerman import ledger
from ledgerman.exceptions import NotFoundError
from ledgerman.models import LedgerEntry, TransactionType
from warehouse import services
from warehouse.models import Item


pytestmark = pytest.mark.django_db


def snapshot(item, with_times=False):
    """Comparable view of an item's ledger, in chronological order."""
    rows = []
    for e in LedgerEntry.objects.for_stream('ACME', item.pk).chronological():
        row = (e.transaction_type, e.quantity_change, e.net_balance, e.reference_label,
               e.counterparty_label, e.sequence)
        if with_times:
            row += (e.transaction_date, e.recorded_at, e.source_type,
                    e.source_document_id, e.source_line_id)
        rows.append(row)
    return rows


class TestRebuild:
    """Tests for ledger.rebuild()."""

    def test_concrete_scenario(self, scenario):
        """Opening 50, IN +20, REJ -5, OUT -10 → 50, 70, 65, 55; mirror 55."""
        item = scenario['item']
        Item.objects.filter(pk=item.pk).update(current_stock=0)

        result = ledger.rebuild('ACME')

        entries = list(LedgerEntry.objects.for_stream('ACME', item.pk).chronological())
        assert [e.transaction_type for e in entries] == ['OPENING', 'IN', 'REJ', 'OUT']
        assert [e.net_balance for e in entries] == [50, 70, 65, 55]
        assert result.balances[item.pk] == 55
        item.refresh_from_db()
        assert item.current_stock == 55

    def test_live_path_matches_rebuild(self, scenario):
        item = scenario['item']
        live = snapshot(item)

        ledger.rebuild('ACME')

        assert snapshot(item) == live
        assert live[1][3] == 'IN / INV-2031'
        assert live[1][4] == 'Vendor: Northwind'
        assert live[3][3] == 'OUT / DC-77'
        assert live[3][4] == 'Customer: Foo Motors'

    def test_running_balance_invariant(self, item, nut, make_receiving, make_dispatch):
        services.complete_receiving(make_receiving([(item, 40, 3), (nut, 12, 0)], day=2))
        services.complete_dispatch(make_dispatch([(item, 25), (nut, 50)], day=3))
        services.complete_receiving(make_receiving([(item, 7, 7)], day=4, invoice='INV-2040'))
        services.complete_dispatch(make_dispatch([(item, 1)], day=4, challan='', docket='DK-9'))

        ledger.rebuild('ACME')

        for each in (item, nut):
            previous = 0
            for entry in LedgerEntry.objects.for_stream('ACME', each.pk).chronological():
                assert entry.net_balance == previous + entry.quantity_change
                previous = entry.net_balance
        assert ledger.verify('ACME') == []

    def test_idempotent(self, scenario, nut, make_dispatch):
        services.complete_dispatch(make_dispatch([(nut, 4)], day=2))

        ledger.rebuild('ACME')
        first = [snapshot(scenario['item'], with_times=True), snapshot(nut, with_times=True)]
        ledger.rebuild('ACME')
        second = [snapshot(scenario['item'], with_times=True), snapshot(nut, with_times=True)]

        assert first == second

    def test_opening_emitted_for_zero_stock(self, empty_item):
        """Live path posts nothing for zero opening stock; rebuild still opens the stream."""
        assert snapshot(empty_item) == []

        ledger.rebuild('ACME')

        assert snapshot(empty_item) == [
            (TransactionType.OPENING, 0, 0, 'OPENING', 'Opening Balance', 1),
        ]

    def test_same_day_ties_keep_document_order(self, item, make_receiving, make_dispatch):
        """Same business date: document creation time, then IN before REJ."""
        services.complete_receiving(make_receiving([(item, 10, 4)], day=2))
        services.complete_dispatch(make_dispatch([(item, 6)], day=2))

        ledger.rebuild('ACME')

        assert [row[0] for row in snapshot(item)] == ['OPENING', 'IN', 'REJ', 'OUT']
        assert [row[2] for row in snapshot(item)] == [50, 60, 56, 50]

    def test_drafts_and_voided_documents_are_skipped(self, item, make_receiving, make_dispatch):
        make_receiving([(item, 100, 0)], invoice='DRAFT-1')
        voided = services.complete_dispatch(make_dispatch([(item, 30)]))
        services.void_dispatch(voided)

        ledger.rebuild('ACME')

        assert snapshot(item) == [
            ('OPENING', 50, 50, 'OPENING', 'Opening Balance', 1),
        ]

    def test_backdated_receiving_lands_in_business_order(self, scenario, make_receiving):
        """Live path clamps a late-entered document; rebuild sorts it by its own date."""
        item = scenario['item']
        services.complete_receiving(make_receiving([(item, 8, 0)], day=2, invoice='INV-LATE'))
        live_balance = ledger.balance('ACME', item.pk)

        ledger.rebuild('ACME')

        rows = snapshot(item)
        assert [row[3] for row in rows] == [
            'OPENING', 'IN / INV-2031', 'REJ / INV-2031', 'IN / INV-LATE', 'OUT / DC-77',
        ]
        assert rows[-1][2] == live_balance == 63

    def test_manual_adjustment_survives(self, scenario):
        item = scenario['item']
        services.adjust_stock(item, 40, reason='cycle count')

        ledger.rebuild('ACME')

        rows = snapshot(item)
        assert rows[-1][:5] == ('OPENING', -15, 40, 'Stock Adjustment', 'Manual Stock Update')
        item.refresh_from_db()
        assert item.current_stock == 40

    def test_only_rebuilds_own_company(self, scenario, other_company):
        other = services.create_item(other_company, 'BOLT-M8', 'M8 bolt', opening_stock=9)

        result = ledger.rebuild('acme')

        assert other.pk not in result.balances
        assert LedgerEntry.objects.for_stream('GLOBEX', other.pk).count() == 1

    def test_unknown_company(self, db):
        with pytest.raises(NotFoundError) as exc:
            ledger.rebuild('NOPE')

        assert exc.value.code == 'COMPANY_NOT_FOUND'


class TestRebuildItem:
    """Tests for ledger.rebuild_item() and ledger.plan()."""

    def test_rebuild_single_item(self, scenario, nut):
        Item.objects.filter(pk=nut.pk).update(current_stock=999)

        result = ledger.rebuild_item('ACME', scenario['item'].pk)

        assert result.items == 1
        assert result.entries == 4
        assert Item.objects.get(pk=nut.pk).current_stock == 999

    def test_unknown_item(self, company):
        with pytest.raises(NotFoundError) as exc:
            ledger.rebuild_item('ACME', 999999)

        assert exc.value.code == 'ITEM_NOT_FOUND'

    def test_plan_is_a_dry_run(self, scenario):
        item = scenario['item']
        before = snapshot(item, with_times=True)

        entries = ledger.plan('ACME', item.pk)

        assert all(e.pk is None for e in entries)
        assert [e.net_balance for e in entries] == [50, 70, 65, 55]
        assert [e.sequence for e in entries] == [1, 2, 3, 4]
        assert snapshot(item, with_times=True) == before


class TestVerify:
    """Tests for ledger.verify() and ledger.sync_mirrors()."""

    def test_consistent_ledger(self, scenario):
        assert ledger.verify('ACME') == []
        assert ledger.verify('ACME', scenario['item'].pk) == []

    def test_broken_running_balance(self, scenario):
        item = scenario['item']
        stream = LedgerEntry.objects.for_stream('ACME', item.pk)
        rej = stream.get(transaction_type='REJ')
        out = stream.get(transaction_type='OUT')
        LedgerEntry.objects.filter(pk=rej.pk).update(net_balance=999)

        found = ledger.verify('ACME', item.pk)

        # The audit resumes from the stored balance after each break
        assert [(d.kind, d.expected, d.found, d.entry_id) for d in found] == [
            ('balance', 65, 999, rej.pk),
            ('balance', 989, 55, out.pk),
        ]

    def test_stale_mirror_then_sync(self, scenario, nut):
        item = scenario['item']
        Item.objects.filter(pk=item.pk).update(current_stock=12)

        found = ledger.verify('ACME')
        assert [(d.item_id, d.kind, d.expected, d.found) for d in found] == [
            (item.pk, 'mirror', 55, 12),
        ]

        assert ledger.sync_mirrors('ACME') == 1
        assert ledger.sync_mirrors() == 0
        assert ledger.verify('ACME') == []

    def test_sync_mirrors_without_entries(self, empty_item):
        Item.objects.filter(pk=empty_item.pk).update(current_stock=5)

        assert ledger.sync_mirrors() == 1
        assert Item.objects.get(pk=empty_item.pk).current_stock == 0

    def test_rebuild_inside_caller_transaction(self, scenario):
        """rebuild() nests inside an open transaction as a savepoint."""
        with transaction.atomic():
            result = ledger.rebuild('ACME')

        assert result.entries == 4
