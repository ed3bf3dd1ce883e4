"""
Flow models — named business processes and their ordered steps.
"""

from django.core.exceptions import ValidationError
from django.db import models
from django.utils.translation import gettext_lazy as _

from cfsflow.exceptions import FlowError
from cfsflow.models.enums import FlowDirection, PositionStatus


class BusinessFlowQuerySet(models.QuerySet):
    """Custom QuerySet for BusinessFlow."""

    def active(self):
        return self.filter(is_active=True)


class BusinessFlow(models.Model):
    """
    A named business process (e.g. "destuffWarehouse").

    The steps are walked by index; there is no graph. Consecutive steps
    must chain: steps[i].to_status == steps[i+1].from_status.

    Examples:
        flow = BusinessFlow.objects.create(name='destuffWarehouse', direction='export')
        flow.steps.create(position=0, code='create', from_status='UNKNOWN', to_status='CHECK_IN')
    """

    name = models.CharField(
        unique=True,
        max_length=80,
        verbose_name=_('Name'),
        help_text=_('Unique flow identifier (ex: destuffWarehouse)'),
    )
    direction = models.CharField(
        max_length=10,
        choices=FlowDirection.choices,
        default=FlowDirection.IMPORT,
        verbose_name=_('Direction'),
    )
    description = models.CharField(max_length=255, blank=True, verbose_name=_('Description'))
    is_active = models.BooleanField(default=True, verbose_name=_('Active'))

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = BusinessFlowQuerySet.as_manager()

    class Meta:
        verbose_name = _('Business flow')
        verbose_name_plural = _('Business flows')
        ordering = ['name']

    def __str__(self) -> str:
        return self.name

    def ordered_steps(self) -> list['FlowStep']:
        return list(self.steps.order_by('position'))

    def as_definition(self):
        """Pure FlowDefinition for this flow."""
        from cfsflow.protocols.transactions import FlowDefinition
        from cfsflow.protocols.transactions import FlowStep as StepDef

        return FlowDefinition(
            name=self.name,
            direction=self.direction,
            steps=tuple(
                StepDef(code=s.code, from_status=s.from_status, to_status=s.to_status)
                for s in self.ordered_steps()
            ),
        )

    def clean(self):
        if self.pk is None:
            return
        try:
            self.as_definition().validate()
        except FlowError as e:
            raise ValidationError(e.message) from e


class FlowStep(models.Model):
    """One transition (code, from_status, to_status) of a BusinessFlow."""

    flow = models.ForeignKey(
        BusinessFlow,
        on_delete=models.CASCADE,
        related_name='steps',
        verbose_name=_('Flow'),
    )
    position = models.PositiveSmallIntegerField(default=0, verbose_name=_('Order'))
    code = models.CharField(
        max_length=30,
        verbose_name=_('Code'),
        help_text=_('create, inspect, store, handover, ...'),
    )
    from_status = models.CharField(
        max_length=20,
        choices=PositionStatus.choices,
        verbose_name=_('From status'),
    )
    to_status = models.CharField(
        max_length=20,
        choices=PositionStatus.choices,
        verbose_name=_('To status'),
    )

    class Meta:
        verbose_name = _('Flow step')
        verbose_name_plural = _('Flow steps')
        ordering = ['flow', 'position']
        constraints = [
            models.UniqueConstraint(fields=['flow', 'code'], name='cfsflow_unique_step_code'),
            models.UniqueConstraint(fields=['flow', 'position'], name='cfsflow_unique_step_position'),
        ]

    def __str__(self) -> str:
        return f"{self.code} ({self.from_status} → {self.to_status})"
