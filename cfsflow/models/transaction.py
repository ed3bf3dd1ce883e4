"""
PackageTransaction model — a batch of packages moving together through a flow.
"""

from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _

from cfsflow.models.enums import TransactionStatus


class PackageTransactionQuerySet(models.QuerySet):
    """Custom QuerySet for PackageTransaction."""

    def in_progress(self):
        return self.filter(status=TransactionStatus.IN_PROGRESS)

    def done(self):
        return self.filter(status=TransactionStatus.DONE)

    def for_packing_list(self, packing_list):
        return self.filter(packing_list=packing_list)


class PackageTransaction(models.Model):
    """
    Server-side aggregate for a set of packages advancing through a flow.

    LIFECYCLE:

        create()  ──►  IN_PROGRESS  ──handle_step()──►  IN_PROGRESS
                            │                               │
                            │ delete() (no packages)        │ complete() (all terminal)
                            ▼                               ▼
                        (deleted)                          DONE

    At most one IN_PROGRESS transaction per packing list.
    """

    packing_list = models.ForeignKey(
        'cfsflow.PackingList',
        on_delete=models.PROTECT,
        related_name='transactions',
        verbose_name=_('Packing list'),
    )
    flow = models.ForeignKey(
        'cfsflow.BusinessFlow',
        on_delete=models.PROTECT,
        related_name='transactions',
        verbose_name=_('Business process flow'),
    )
    status = models.CharField(
        max_length=20,
        choices=TransactionStatus.choices,
        default=TransactionStatus.IN_PROGRESS,
        db_index=True,
        verbose_name=_('Status'),
    )
    packages = models.ManyToManyField(
        'cfsflow.CargoPackage',
        blank=True,
        related_name='transactions',
        verbose_name=_('Packages'),
    )
    party_name = models.CharField(max_length=120, blank=True, verbose_name=_('Party'))
    party_type = models.CharField(max_length=30, blank=True, verbose_name=_('Party type'))

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('Created by'),
    )
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)
    completed_at = models.DateTimeField(null=True, blank=True, verbose_name=_('Completed at'))

    objects = PackageTransactionQuerySet.as_manager()

    class Meta:
        verbose_name = _('Package transaction')
        verbose_name_plural = _('Package transactions')
        ordering = ['-created_at', '-pk']
        indexes = [
            models.Index(fields=['packing_list', 'status'], name='cfsflow_txn_pl_status_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['packing_list'],
                condition=models.Q(status='IN_PROGRESS'),
                name='cfsflow_one_in_progress_per_packing_list',
            ),
        ]
        permissions = [
            ('handle_packagetransaction', _('Can advance package transaction steps')),
            ('complete_packagetransaction', _('Can complete package transactions')),
        ]

    @property
    def code(self) -> str:
        """Transaction identifier in standard format."""
        return f"PT-{self.pk:06d}" if self.pk else ''

    @property
    def business_process_flow(self) -> str:
        return self.flow.name

    @property
    def is_done(self) -> bool:
        return self.status == TransactionStatus.DONE

    def __str__(self) -> str:
        return f"{self.code} {self.flow.name} [{self.status}]"
