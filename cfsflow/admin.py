"""
CFS Flow Admin.

- BusinessFlow: editable, steps inline (chaining validated on save)
- PackingList / Location: editable reference data
- CargoPackage: read-only; position_status only moves through steps
- PackageTransaction: read-only with "complete" action
- PackageMovement: read-only audit trail
"""

import logging

from django.contrib import admin
from django.core.exceptions import ValidationError
from django.forms.models import BaseInlineFormSet
from django.utils.translation import gettext_lazy as _

from cfsflow.exceptions import CfsError, FlowError
from cfsflow.models import (
    BusinessFlow,
    CargoPackage,
    FlowStep,
    Location,
    PackageMovement,
    PackageTransaction,
    PackingList,
    PackingListLine,
    TransactionStatus,
)
from cfsflow.protocols.transactions import FlowStep as StepDef
from cfsflow.protocols.transactions import validate_chain

logger = logging.getLogger(__name__)


class ReadOnlyAdminMixin:
    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


# =========================================================================
# FLOW ADMIN
# =========================================================================


class FlowStepFormSet(BaseInlineFormSet):
    """Reject step lists that do not chain or repeat a code."""

    def clean(self):
        super().clean()
        if any(self.errors):
            return
        rows = [
            form.cleaned_data for form in self.forms
            if form.cleaned_data and not form.cleaned_data.get('DELETE')
        ]
        rows.sort(key=lambda row: row.get('position') or 0)
        try:
            validate_chain(self.instance.name, [
                StepDef(code=row['code'], from_status=row['from_status'], to_status=row['to_status'])
                for row in rows
            ])
        except FlowError as e:
            raise ValidationError(e.message)


class FlowStepInline(admin.TabularInline):
    model = FlowStep
    formset = FlowStepFormSet
    extra = 0
    ordering = ['position']


@admin.register(BusinessFlow)
class BusinessFlowAdmin(admin.ModelAdmin):
    list_display = ['name', 'direction', 'steps_display', 'is_active']
    list_filter = ['direction', 'is_active']
    search_fields = ['name']
    readonly_fields = ['created_at', 'updated_at']
    inlines = [FlowStepInline]

    @admin.display(description=_('Steps'))
    def steps_display(self, obj):
        return ' → '.join(s.code for s in obj.ordered_steps()) or '-'


# =========================================================================
# REFERENCE DATA
# =========================================================================


class PackingListLineInline(admin.TabularInline):
    model = PackingListLine
    extra = 0


@admin.register(PackingList)
class PackingListAdmin(admin.ModelAdmin):
    list_display = ['number', 'direction_flow', 'hbl_code', 'container_number', 'forwarder_name']
    list_filter = ['direction_flow']
    search_fields = ['number', 'hbl_code', 'container_number']
    inlines = [PackingListLineInline]


@admin.register(Location)
class LocationAdmin(admin.ModelAdmin):
    list_display = ['code', 'name', 'zone', 'is_active']
    list_filter = ['zone', 'is_active']
    search_fields = ['code', 'name']


# =========================================================================
# PACKAGES (read-only)
# =========================================================================


@admin.register(CargoPackage)
class CargoPackageAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """CargoPackage admin — read-only. Status only changes via steps."""

    list_display = ['package_no', 'packing_list', 'line', 'position_status',
                    'condition_status', 'regulatory_status', 'location']
    list_filter = ['position_status', 'condition_status', 'regulatory_status']
    search_fields = ['package_no', 'packing_list__number']


@admin.register(PackageMovement)
class PackageMovementAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """PackageMovement admin — read-only. Immutable audit trail."""

    list_display = ['timestamp', 'package', 'step', 'from_status', 'to_status', 'location', 'user']
    list_filter = ['step', 'to_status']
    search_fields = ['package__package_no']
    date_hierarchy = 'timestamp'


# =========================================================================
# TRANSACTIONS (read-only with complete action)
# =========================================================================


@admin.register(PackageTransaction)
class PackageTransactionAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ['code', 'packing_list', 'flow', 'status', 'package_count', 'created_at', 'completed_at']
    list_filter = ['status', 'flow']
    search_fields = ['packing_list__number', 'party_name']
    actions = ['complete_transactions']

    @admin.display(description=_('Packages'))
    def package_count(self, obj):
        return obj.packages.count()

    @admin.action(description=_('Complete selected transactions'))
    def complete_transactions(self, request, queryset):
        from cfsflow import cfs

        count = 0
        for txn in queryset.filter(status=TransactionStatus.IN_PROGRESS):
            try:
                cfs.complete(txn, user=request.user)
                count += 1
            except CfsError as exc:
                logger.warning("complete_transactions: %s not completed: %s", txn.code, exc.message)

        self.message_user(request, _('{count} transaction(s) completed.').format(count=count))
