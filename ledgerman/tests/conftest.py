"""
Pytest fixtures for Ledgerman tests.
"""

import pytest

from ledgerman.adapters import reset_adapters
from ledgerman.tests.utils import at
from warehouse import services
from warehouse.models import (
    Company,
    DestinationType,
    DispatchDocument,
    DispatchLine,
    ReceivingDocument,
    ReceivingLine,
)


@pytest.fixture(autouse=True)
def fresh_adapters():
    """Adapters are cached per process; each test resolves them again."""
    reset_adapters()
    yield
    reset_adapters()


@pytest.fixture
def company(db):
    """Create a test company."""
    return Company.objects.create(code='ACME', name='Acme Fasteners')


@pytest.fixture
def other_company(db):
    return Company.objects.create(code='GLOBEX', name='Globex')


@pytest.fixture
def item(company):
    """Item with opening stock 50, created on Jan 1."""
    return services.create_item(company, 'BOLT-M8', 'M8 bolt', opening_stock=50, created_at=at(1))


@pytest.fixture
def nut(company):
    return services.create_item(company, 'NUT-M8', 'M8 nut', opening_stock=30, created_at=at(1))


@pytest.fixture
def empty_item(company):
    """Item without opening stock (no ledger entries)."""
    return services.create_item(company, 'WASHER-M8', 'M8 washer', created_at=at(1))


@pytest.fixture
def make_receiving(company):
    """
    Factory for draft receiving documents.

    lines: list of (item, received, rejected)
    """
    def factory(lines, day=2, invoice='INV-2031', vendor='Northwind', **extra):
        doc = ReceivingDocument.objects.create(
            company=company,
            invoice_number=invoice,
            receiving_date=at(day),
            vendor_name=vendor,
            received_by_id='u-1',
            received_by_name='Ravi',
            **extra,
        )
        for line_item, received, rejected in lines:
            ReceivingLine.objects.create(
                document=doc,
                item=line_item,
                received=received,
                rejected=rejected,
                short=2,
                challan_number=f'CH-{invoice}',
                challan_date=at(day).date(),
            )
        return doc
    return factory


@pytest.fixture
def make_dispatch(company):
    """
    Factory for draft dispatch documents.

    lines: list of (item, quantity)
    """
    def factory(lines, day=3, challan='DC-77', docket='', customer='Foo Motors',
                destination_type=DestinationType.CUSTOMER, **extra):
        doc = DispatchDocument.objects.create(
            company=company,
            invoice_challan_number=challan,
            docket_number=docket,
            dispatch_date=at(day),
            destination_type=destination_type,
            destination_name=customer,
            dispatched_by_name='Meera',
            **extra,
        )
        for line_item, quantity in lines:
            DispatchLine.objects.create(document=doc, item=line_item, quantity=quantity)
        return doc
    return factory


@pytest.fixture
def scenario(item, make_receiving, make_dispatch):
    """
    Opening 50 (Jan 1), IN +20 and REJ -5 (Jan 2), OUT -10 (Jan 3).

    Balances: 50, 70, 65, 55.
    """
    receiving = services.complete_receiving(make_receiving([(item, 20, 5)]))
    dispatch = services.complete_dispatch(make_dispatch([(item, 10)]))
    item.refresh_from_db()
    return {'item': item, 'receiving': receiving, 'dispatch': dispatch}
