"""
Seed the built-in business flows (destuffWarehouse, warehouseDelivery).
"""

from django.db import migrations

FLOWS = {
    'destuffWarehouse': ('export', [
        ('create', 'UNKNOWN', 'CHECK_IN'),
        ('inspect', 'CHECK_IN', 'HANDOVER'),
        ('store', 'HANDOVER', 'STORED'),
    ]),
    'warehouseDelivery': ('import', [
        ('inspect', 'STORED', 'CHECK_IN'),
        ('handover', 'CHECK_IN', 'CHECKOUT'),
    ]),
}


def create_default_flows(apps, schema_editor):
    BusinessFlow = apps.get_model('cfsflow', 'BusinessFlow')
    FlowStep = apps.get_model('cfsflow', 'FlowStep')

    for name, (direction, steps) in FLOWS.items():
        flow, created = BusinessFlow.objects.get_or_create(
            name=name,
            defaults={'direction': direction},
        )
        if not created:
            continue
        for position, (code, from_status, to_status) in enumerate(steps):
            FlowStep.objects.create(
                flow=flow,
                position=position,
                code=code,
                from_status=from_status,
                to_status=to_status,
            )


def remove_default_flows(apps, schema_editor):
    BusinessFlow = apps.get_model('cfsflow', 'BusinessFlow')
    BusinessFlow.objects.filter(name__in=list(FLOWS), transactions__isnull=True).delete()


class Migration(migrations.Migration):

    dependencies = [
        ('cfsflow', '0001_initial'),
    ]

    operations = [
        migrations.RunPython(create_default_flows, remove_default_flows),
    ]
