"""
Initial migration for Warehouse models.
"""

import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


DOCUMENT_STATUS = [('draft', 'Draft'), ('completed', 'Completed')]


class Migration(migrations.Migration):
    """Create Company, Item, receiving/dispatch documents and StockAdjustment."""

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Company',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('code', models.CharField(max_length=50, unique=True, verbose_name='Code')),
                ('name', models.CharField(max_length=255, verbose_name='Name')),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now, verbose_name='Created at')),
            ],
            options={
                'verbose_name': 'Company',
                'verbose_name_plural': 'Companies',
                'ordering': ['code'],
            },
        ),
        migrations.CreateModel(
            name='Item',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('sku', models.CharField(max_length=64, verbose_name='SKU')),
                ('name', models.CharField(max_length=255, verbose_name='Name')),
                ('opening_stock', models.IntegerField(default=0, verbose_name='Opening stock')),
                ('current_stock', models.IntegerField(default=0, editable=False, help_text='Mirror of the latest ledger balance.', verbose_name='Current stock')),
                ('is_active', models.BooleanField(default=True, verbose_name='Active')),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now, verbose_name='Created at')),
                ('company', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='items', to='warehouse.company', verbose_name='Company')),
            ],
            options={
                'verbose_name': 'Item',
                'verbose_name_plural': 'Items',
                'ordering': ['company', 'sku'],
                'constraints': [
                    models.UniqueConstraint(fields=('company', 'sku'), name='unique_item_sku_per_company'),
                ],
            },
        ),
        migrations.CreateModel(
            name='ReceivingDocument',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('invoice_number', models.CharField(blank=True, default='', max_length=100, verbose_name='Invoice number')),
                ('receiving_date', models.DateTimeField(default=django.utils.timezone.now, verbose_name='Receiving date')),
                ('vendor_name', models.CharField(blank=True, default='', max_length=255, verbose_name='Vendor')),
                ('received_by_id', models.CharField(blank=True, max_length=64, null=True)),
                ('received_by_name', models.CharField(blank=True, default='', max_length=255)),
                ('status', models.CharField(choices=DOCUMENT_STATUS, default='draft', max_length=20, verbose_name='Status')),
                ('is_active', models.BooleanField(default=True, verbose_name='Active')),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now, verbose_name='Created at')),
                ('company', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='receivings', to='warehouse.company')),
            ],
            options={
                'verbose_name': 'Receiving document',
                'verbose_name_plural': 'Receiving documents',
                'ordering': ['created_at', 'pk'],
            },
        ),
        migrations.CreateModel(
            name='ReceivingLine',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('received', models.PositiveIntegerField(default=0, verbose_name='Received')),
                ('rejected', models.PositiveIntegerField(default=0, verbose_name='Rejected')),
                ('short', models.PositiveIntegerField(default=0, verbose_name='Short')),
                ('challan_number', models.CharField(blank=True, default='', max_length=100, verbose_name='Challan number')),
                ('challan_date', models.DateField(blank=True, null=True, verbose_name='Challan date')),
                ('document', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='lines', to='warehouse.receivingdocument')),
                ('item', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='receiving_lines', to='warehouse.item')),
            ],
            options={
                'verbose_name': 'Receiving line',
                'verbose_name_plural': 'Receiving lines',
                'ordering': ['document', 'pk'],
            },
        ),
        migrations.CreateModel(
            name='DispatchDocument',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('invoice_challan_number', models.CharField(blank=True, default='', max_length=100)),
                ('docket_number', models.CharField(blank=True, default='', max_length=100)),
                ('dispatch_date', models.DateTimeField(default=django.utils.timezone.now, verbose_name='Dispatch date')),
                ('destination_type', models.CharField(choices=[('customer', 'Customer'), ('factory', 'Factory'), ('other', 'Other')], default='customer', max_length=20, verbose_name='Destination type')),
                ('destination_name', models.CharField(blank=True, default='', max_length=255, verbose_name='Destination')),
                ('dispatched_by_id', models.CharField(blank=True, max_length=64, null=True)),
                ('dispatched_by_name', models.CharField(blank=True, default='', max_length=255)),
                ('status', models.CharField(choices=DOCUMENT_STATUS, default='draft', max_length=20, verbose_name='Status')),
                ('is_active', models.BooleanField(default=True, verbose_name='Active')),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now, verbose_name='Created at')),
                ('company', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='dispatches', to='warehouse.company')),
            ],
            options={
                'verbose_name': 'Dispatch document',
                'verbose_name_plural': 'Dispatch documents',
                'ordering': ['created_at', 'pk'],
            },
        ),
        migrations.CreateModel(
            name='DispatchLine',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('quantity', models.PositiveIntegerField(verbose_name='Quantity')),
                ('document', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='lines', to='warehouse.dispatchdocument')),
                ('item', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='dispatch_lines', to='warehouse.item')),
            ],
            options={
                'verbose_name': 'Dispatch line',
                'verbose_name_plural': 'Dispatch lines',
                'ordering': ['document', 'pk'],
            },
        ),
        migrations.CreateModel(
            name='StockAdjustment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('new_quantity', models.IntegerField(verbose_name='New quantity')),
                ('quantity_change', models.IntegerField(default=0, verbose_name='Change')),
                ('reason', models.CharField(blank=True, default='', max_length=255, verbose_name='Reason')),
                ('adjusted_at', models.DateTimeField(default=django.utils.timezone.now, verbose_name='Adjusted at')),
                ('actor_id', models.CharField(blank=True, max_length=64, null=True)),
                ('actor_name', models.CharField(blank=True, default='', max_length=255)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now, verbose_name='Created at')),
                ('company', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='adjustments', to='warehouse.company')),
                ('item', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='adjustments', to='warehouse.item')),
            ],
            options={
                'verbose_name': 'Stock adjustment',
                'verbose_name_plural': 'Stock adjustments',
                'ordering': ['created_at', 'pk'],
            },
        ),
    ]
