"""
Enums for CFS Flow models.
"""

from django.db import models
from django.utils.translation import gettext_lazy as _


class PositionStatus(models.TextChoices):
    """
    Lifecycle position of a cargo package.

    Only step execution moves a package between positions; the
    client never writes this field directly.
    """
    UNKNOWN = 'UNKNOWN', _('Unknown')        # Not yet received
    CHECK_IN = 'CHECK_IN', _('Checked in')
    HANDOVER = 'HANDOVER', _('Handover')
    STORED = 'STORED', _('Stored')
    CHECKOUT = 'CHECKOUT', _('Checked out')  # Left the warehouse
    STUFFED = 'STUFFED', _('Stuffed')        # Loaded into an export container


class TransactionStatus(models.TextChoices):
    """Package transaction lifecycle status."""
    IN_PROGRESS = 'IN_PROGRESS', _('In progress')
    DONE = 'DONE', _('Done')


class ConditionStatus(models.TextChoices):
    """Physical condition recorded during inspection."""
    NORMAL = 'NORMAL', _('Normal')
    PACKAGE_DAMAGED = 'PACKAGE_DAMAGED', _('Package damaged')
    CARGO_DAMAGED = 'CARGO_DAMAGED', _('Cargo damaged')


class RegulatoryStatus(models.TextChoices):
    """Customs status recorded during inspection."""
    UNINSPECTED = 'UNINSPECTED', _('Uninspected')
    PASSED = 'PASSED', _('Passed')
    ON_HOLD = 'ON_HOLD', _('On hold')


class FlowDirection(models.TextChoices):
    """Cargo direction a flow applies to."""
    IMPORT = 'import', _('Import')
    EXPORT = 'export', _('Export')


class StepCode(models.TextChoices):
    """Step codes the server knows how to execute."""
    CREATE = 'create', _('Create')
    INSPECT = 'inspect', _('Inspect')
    STORE = 'store', _('Store')
    HANDOVER = 'handover', _('Handover')
    SELECT = 'select', _('Select')
    STUFFING = 'stuffing', _('Stuffing')
