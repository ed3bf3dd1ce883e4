"""
PackingList, PackingListLine and Location — reference data the workflow reads.
"""

from django.db import models
from django.utils.translation import gettext_lazy as _

from cfsflow.models.enums import FlowDirection


class PackingList(models.Model):
    """Cargo declared under one house bill of lading."""

    number = models.CharField(unique=True, max_length=50, verbose_name=_('Packing list number'))
    direction_flow = models.CharField(
        max_length=10,
        choices=FlowDirection.choices,
        default=FlowDirection.IMPORT,
        verbose_name=_('Direction'),
    )
    hbl_code = models.CharField(max_length=50, blank=True, verbose_name=_('HBL'))
    container_number = models.CharField(max_length=20, blank=True, verbose_name=_('Container'))
    forwarder_name = models.CharField(max_length=120, blank=True, verbose_name=_('Forwarder'))

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _('Packing list')
        verbose_name_plural = _('Packing lists')
        ordering = ['-created_at']

    def __str__(self) -> str:
        return self.number


class PackingListLine(models.Model):
    """One cargo line of a packing list; the create step receives against it."""

    packing_list = models.ForeignKey(
        PackingList,
        on_delete=models.CASCADE,
        related_name='lines',
        verbose_name=_('Packing list'),
    )
    line_no = models.PositiveIntegerField(verbose_name=_('Line'))
    commodity_description = models.CharField(max_length=255, blank=True, verbose_name=_('Cargo description'))
    unit_of_measure = models.CharField(max_length=20, blank=True, verbose_name=_('Unit'))
    package_type_code = models.CharField(max_length=20, blank=True, verbose_name=_('Package type'))
    number_of_packages = models.PositiveIntegerField(default=0, verbose_name=_('Declared packages'))

    class Meta:
        verbose_name = _('Packing list line')
        verbose_name_plural = _('Packing list lines')
        ordering = ['packing_list', 'line_no']
        constraints = [
            models.UniqueConstraint(fields=['packing_list', 'line_no'], name='cfsflow_unique_line_no'),
        ]

    def __str__(self) -> str:
        return f"{self.packing_list} #{self.line_no}"


class Location(models.Model):
    """Warehouse storage location."""

    code = models.CharField(unique=True, max_length=30, verbose_name=_('Code'))
    name = models.CharField(max_length=100, blank=True, verbose_name=_('Name'))
    zone = models.CharField(max_length=50, blank=True, verbose_name=_('Zone'))
    is_active = models.BooleanField(default=True, verbose_name=_('Active'))

    class Meta:
        verbose_name = _('Location')
        verbose_name_plural = _('Locations')
        ordering = ['code']

    def __str__(self) -> str:
        return self.code
