"""
CargoPackage and PackageMovement — the package and its immutable status ledger.
"""

from django.conf import settings
from django.db import models, transaction
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from cfsflow.models.enums import ConditionStatus, PositionStatus, RegulatoryStatus


class CargoPackageQuerySet(models.QuerySet):
    """Custom QuerySet for CargoPackage."""

    def for_packing_list(self, packing_list):
        return self.filter(packing_list=packing_list)

    def at(self, status):
        return self.filter(position_status=status)


class CargoPackage(models.Model):
    """
    A single physical package of cargo.

    position_status is only changed through PackageMovement.save(),
    which step handlers create; never assign it directly.
    """

    packing_list = models.ForeignKey(
        'cfsflow.PackingList',
        on_delete=models.PROTECT,
        related_name='packages',
        verbose_name=_('Packing list'),
    )
    line = models.ForeignKey(
        'cfsflow.PackingListLine',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='packages',
        verbose_name=_('Line'),
    )
    package_no = models.CharField(unique=True, max_length=60, verbose_name=_('Package number'))
    position_status = models.CharField(
        max_length=20,
        choices=PositionStatus.choices,
        default=PositionStatus.UNKNOWN,
        db_index=True,
        verbose_name=_('Position status'),
    )
    condition_status = models.CharField(
        max_length=20,
        choices=ConditionStatus.choices,
        null=True,
        blank=True,
        verbose_name=_('Condition'),
    )
    regulatory_status = models.CharField(
        max_length=20,
        choices=RegulatoryStatus.choices,
        null=True,
        blank=True,
        verbose_name=_('Customs'),
    )
    location = models.ForeignKey(
        'cfsflow.Location',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='packages',
        verbose_name=_('Current location'),
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = CargoPackageQuerySet.as_manager()

    class Meta:
        verbose_name = _('Cargo package')
        verbose_name_plural = _('Cargo packages')
        ordering = ['line__line_no', 'package_no']
        indexes = [
            models.Index(fields=['packing_list', 'position_status'], name='cfsflow_pkg_pl_status_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.package_no} [{self.position_status}]"


class PackageMovement(models.Model):
    """
    Immutable record of one package status transition.

    Rules:
    - NEVER update() or delete()
    - Updates CargoPackage.position_status (and location) on save()

    This is the ONLY model that changes position_status.
    """

    package = models.ForeignKey(
        CargoPackage,
        on_delete=models.PROTECT,
        related_name='movements',
        verbose_name=_('Package'),
    )
    package_transaction = models.ForeignKey(
        'cfsflow.PackageTransaction',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='movements',
        verbose_name=_('Transaction'),
    )
    step = models.CharField(max_length=30, verbose_name=_('Step'))
    from_status = models.CharField(max_length=20, choices=PositionStatus.choices, verbose_name=_('From'))
    to_status = models.CharField(max_length=20, choices=PositionStatus.choices, verbose_name=_('To'))
    location = models.ForeignKey(
        'cfsflow.Location',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('Location'),
    )

    timestamp = models.DateTimeField(default=timezone.now, db_index=True, verbose_name=_('Date/Time'))
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        verbose_name=_('User'),
    )

    class Meta:
        verbose_name = _('Package movement')
        verbose_name_plural = _('Package movements')
        ordering = ['timestamp', 'pk']
        indexes = [
            models.Index(fields=['package', 'timestamp'], name='cfsflow_move_pkg_ts_idx'),
        ]

    def save(self, *args, **kwargs):
        """Save movement and move the package atomically."""
        if self.pk:
            raise ValueError(
                "Movements are immutable. "
                "To correct a status, record a new movement."
            )

        if not self.step:
            raise ValueError("Step is required")

        with transaction.atomic():
            super().save(*args, **kwargs)

            update = {'position_status': self.to_status, 'updated_at': timezone.now()}
            if self.location_id is not None:
                update['location_id'] = self.location_id
            CargoPackage.objects.filter(pk=self.package_id).update(**update)

    def delete(self, *args, **kwargs):
        """Prevent deletion — movements are immutable."""
        raise ValueError("Movements are immutable.")

    def __str__(self) -> str:
        return f"{self.package_id}: {self.from_status} → {self.to_status} ({self.step})"
