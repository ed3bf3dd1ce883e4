"""
Initial migration for CFS Flow models.
"""

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

POSITION_STATUS_CHOICES = [
    ('UNKNOWN', 'Unknown'),
    ('CHECK_IN', 'Checked in'),
    ('HANDOVER', 'Handover'),
    ('STORED', 'Stored'),
    ('CHECKOUT', 'Checked out'),
    ('STUFFED', 'Stuffed'),
]
DIRECTION_CHOICES = [('import', 'Import'), ('export', 'Export')]


class Migration(migrations.Migration):
    """Create flows, packing lists, locations, packages, transactions and movements."""

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='BusinessFlow',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(help_text='Unique flow identifier (ex: destuffWarehouse)', max_length=80, unique=True, verbose_name='Name')),
                ('direction', models.CharField(choices=DIRECTION_CHOICES, default='import', max_length=10, verbose_name='Direction')),
                ('description', models.CharField(blank=True, max_length=255, verbose_name='Description')),
                ('is_active', models.BooleanField(default=True, verbose_name='Active')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Business flow',
                'verbose_name_plural': 'Business flows',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='FlowStep',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('position', models.PositiveSmallIntegerField(default=0, verbose_name='Order')),
                ('code', models.CharField(help_text='create, inspect, store, handover, ...', max_length=30, verbose_name='Code')),
                ('from_status', models.CharField(choices=POSITION_STATUS_CHOICES, max_length=20, verbose_name='From status')),
                ('to_status', models.CharField(choices=POSITION_STATUS_CHOICES, max_length=20, verbose_name='To status')),
                ('flow', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='steps', to='cfsflow.businessflow', verbose_name='Flow')),
            ],
            options={
                'verbose_name': 'Flow step',
                'verbose_name_plural': 'Flow steps',
                'ordering': ['flow', 'position'],
                'constraints': [
                    models.UniqueConstraint(fields=('flow', 'code'), name='cfsflow_unique_step_code'),
                    models.UniqueConstraint(fields=('flow', 'position'), name='cfsflow_unique_step_position'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Location',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('code', models.CharField(max_length=30, unique=True, verbose_name='Code')),
                ('name', models.CharField(blank=True, max_length=100, verbose_name='Name')),
                ('zone', models.CharField(blank=True, max_length=50, verbose_name='Zone')),
                ('is_active', models.BooleanField(default=True, verbose_name='Active')),
            ],
            options={
                'verbose_name': 'Location',
                'verbose_name_plural': 'Locations',
                'ordering': ['code'],
            },
        ),
        migrations.CreateModel(
            name='PackingList',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('number', models.CharField(max_length=50, unique=True, verbose_name='Packing list number')),
                ('direction_flow', models.CharField(choices=DIRECTION_CHOICES, default='import', max_length=10, verbose_name='Direction')),
                ('hbl_code', models.CharField(blank=True, max_length=50, verbose_name='HBL')),
                ('container_number', models.CharField(blank=True, max_length=20, verbose_name='Container')),
                ('forwarder_name', models.CharField(blank=True, max_length=120, verbose_name='Forwarder')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'verbose_name': 'Packing list',
                'verbose_name_plural': 'Packing lists',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='PackingListLine',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('line_no', models.PositiveIntegerField(verbose_name='Line')),
                ('commodity_description', models.CharField(blank=True, max_length=255, verbose_name='Cargo description')),
                ('unit_of_measure', models.CharField(blank=True, max_length=20, verbose_name='Unit')),
                ('package_type_code', models.CharField(blank=True, max_length=20, verbose_name='Package type')),
                ('number_of_packages', models.PositiveIntegerField(default=0, verbose_name='Declared packages')),
                ('packing_list', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='lines', to='cfsflow.packinglist', verbose_name='Packing list')),
            ],
            options={
                'verbose_name': 'Packing list line',
                'verbose_name_plural': 'Packing list lines',
                'ordering': ['packing_list', 'line_no'],
                'constraints': [
                    models.UniqueConstraint(fields=('packing_list', 'line_no'), name='cfsflow_unique_line_no'),
                ],
            },
        ),
        migrations.CreateModel(
            name='CargoPackage',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('package_no', models.CharField(max_length=60, unique=True, verbose_name='Package number')),
                ('position_status', models.CharField(choices=POSITION_STATUS_CHOICES, db_index=True, default='UNKNOWN', max_length=20, verbose_name='Position status')),
                ('condition_status', models.CharField(blank=True, choices=[('NORMAL', 'Normal'), ('PACKAGE_DAMAGED', 'Package damaged'), ('CARGO_DAMAGED', 'Cargo damaged')], max_length=20, null=True, verbose_name='Condition')),
                ('regulatory_status', models.CharField(blank=True, choices=[('UNINSPECTED', 'Uninspected'), ('PASSED', 'Passed'), ('ON_HOLD', 'On hold')], max_length=20, null=True, verbose_name='Customs')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('line', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='packages', to='cfsflow.packinglistline', verbose_name='Line')),
                ('location', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='packages', to='cfsflow.location', verbose_name='Current location')),
                ('packing_list', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='packages', to='cfsflow.packinglist', verbose_name='Packing list')),
            ],
            options={
                'verbose_name': 'Cargo package',
                'verbose_name_plural': 'Cargo packages',
                'ordering': ['line__line_no', 'package_no'],
                'indexes': [
                    models.Index(fields=['packing_list', 'position_status'], name='cfsflow_pkg_pl_status_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='PackageTransaction',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('status', models.CharField(choices=[('IN_PROGRESS', 'In progress'), ('DONE', 'Done')], db_index=True, default='IN_PROGRESS', max_length=20, verbose_name='Status')),
                ('party_name', models.CharField(blank=True, max_length=120, verbose_name='Party')),
                ('party_type', models.CharField(blank=True, max_length=30, verbose_name='Party type')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('completed_at', models.DateTimeField(blank=True, null=True, verbose_name='Completed at')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='Created by')),
                ('flow', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='transactions', to='cfsflow.businessflow', verbose_name='Business process flow')),
                ('packages', models.ManyToManyField(blank=True, related_name='transactions', to='cfsflow.cargopackage', verbose_name='Packages')),
                ('packing_list', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='transactions', to='cfsflow.packinglist', verbose_name='Packing list')),
            ],
            options={
                'verbose_name': 'Package transaction',
                'verbose_name_plural': 'Package transactions',
                'ordering': ['-created_at', '-pk'],
                'permissions': [
                    ('handle_packagetransaction', 'Can advance package transaction steps'),
                    ('complete_packagetransaction', 'Can complete package transactions'),
                ],
                'indexes': [
                    models.Index(fields=['packing_list', 'status'], name='cfsflow_txn_pl_status_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('status', 'IN_PROGRESS')), fields=('packing_list',), name='cfsflow_one_in_progress_per_packing_list'),
                ],
            },
        ),
        migrations.CreateModel(
            name='PackageMovement',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('step', models.CharField(max_length=30, verbose_name='Step')),
                ('from_status', models.CharField(choices=POSITION_STATUS_CHOICES, max_length=20, verbose_name='From')),
                ('to_status', models.CharField(choices=POSITION_STATUS_CHOICES, max_length=20, verbose_name='To')),
                ('timestamp', models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name='Date/Time')),
                ('location', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='+', to='cfsflow.location', verbose_name='Location')),
                ('package', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='movements', to='cfsflow.cargopackage', verbose_name='Package')),
                ('package_transaction', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='movements', to='cfsflow.packagetransaction', verbose_name='Transaction')),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL, verbose_name='User')),
            ],
            options={
                'verbose_name': 'Package movement',
                'verbose_name_plural': 'Package movements',
                'ordering': ['timestamp', 'pk'],
                'indexes': [
                    models.Index(fields=['package', 'timestamp'], name='cfsflow_move_pkg_ts_idx'),
                ],
            },
        ),
    ]
