"""
Initial migration for Ledgerman models.
"""

import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):
    """Create LedgerEntry."""

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='LedgerEntry',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('company_id', models.CharField(db_index=True, max_length=50, verbose_name='Company')),
                ('item_id', models.PositiveBigIntegerField(verbose_name='Item')),
                ('transaction_date', models.DateTimeField(help_text='Business date of the movement.', verbose_name='Transaction date')),
                ('transaction_type', models.CharField(choices=[('OPENING', 'Opening'), ('IN', 'Incoming'), ('OUT', 'Outgoing'), ('REJ', 'Rejected')], max_length=10, verbose_name='Type')),
                ('reference_label', models.CharField(blank=True, default='', help_text='Display only. Ex: "IN / INV-2031"', max_length=255, verbose_name='Reference')),
                ('counterparty_label', models.CharField(blank=True, default='', max_length=255, verbose_name='Source / destination')),
                ('actor_id', models.CharField(blank=True, max_length=64, null=True, verbose_name='Actor ID')),
                ('actor_name', models.CharField(default='System', max_length=255, verbose_name='Actor')),
                ('quantity_change', models.IntegerField(help_text='Positive = stock in, Negative = stock out', verbose_name='Change')),
                ('net_balance', models.IntegerField(verbose_name='Balance')),
                ('source_type', models.CharField(blank=True, choices=[('opening', 'Opening stock'), ('receiving', 'Receiving document'), ('dispatch', 'Dispatch document'), ('adjustment', 'Manual adjustment')], max_length=20, null=True, verbose_name='Source type')),
                ('source_document_id', models.PositiveBigIntegerField(blank=True, null=True, verbose_name='Source document')),
                ('source_line_id', models.PositiveBigIntegerField(blank=True, null=True, verbose_name='Source line')),
                ('metadata', models.JSONField(blank=True, default=dict, verbose_name='Metadata')),
                ('recorded_at', models.DateTimeField(default=django.utils.timezone.now, verbose_name='Recorded at')),
                ('sequence', models.PositiveIntegerField(verbose_name='Sequence')),
                ('reverses', models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='reversed_by', to='ledgerman.ledgerentry', verbose_name='Reverses')),
            ],
            options={
                'verbose_name': 'Ledger entry',
                'verbose_name_plural': 'Ledger entries',
                'ordering': ['transaction_date', 'recorded_at', 'sequence'],
                'indexes': [
                    models.Index(fields=['company_id', 'item_id', 'transaction_date', 'recorded_at', 'sequence'], name='ledgerman_stream_order_idx'),
                    models.Index(fields=['source_type', 'source_document_id'], name='ledgerman_source_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('company_id', 'item_id', 'sequence'), name='unique_ledger_stream_sequence'),
                ],
            },
        ),
    ]
