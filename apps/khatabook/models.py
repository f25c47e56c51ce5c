# khatabook/models.py

from django.db import models
from django.core.validators import MinValueValidator
from decimal import Decimal
import logging

from utils.models import TenantModel

logger = logging.getLogger(__name__)


# =============================================================================
# CASH HANDOVER MODEL
# =============================================================================

class CashHandover(TenantModel):
    """
    A staff member declaring collected money as handed over to the owner.

    Lifecycle: PENDING -> VERIFIED | REJECTED (see ``khatabook.ledger``).
    Claimed payments point here through ``Payment.handover``.
    """

    STATUS_CHOICES = [
        ('PENDING', 'Pending'),
        ('VERIFIED', 'Verified'),
        ('REJECTED', 'Rejected'),
    ]

    METHOD_CHOICES = [
        ('CASH', 'Cash'),
        ('UPI', 'UPI'),
        ('BANK_TRANSFER', 'Bank Transfer'),
    ]

    branch = models.ForeignKey(
        'branches.Branch',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='handovers'
    )
    staff = models.ForeignKey(
        'accounts.UserProfile', on_delete=models.CASCADE, related_name='handovers'
    )
    amount = models.DecimalField(
        "Amount", max_digits=10, decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))]
    )
    method = models.CharField("Method", max_length=15, choices=METHOD_CHOICES, default='CASH')
    status = models.CharField(
        "Status", max_length=10, choices=STATUS_CHOICES, default='PENDING', db_index=True
    )
    notes = models.TextField("Notes", blank=True)
    attachment_url = models.URLField("Proof Attachment", max_length=500, blank=True)

    verified_by = models.ForeignKey(
        'accounts.UserProfile',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='verified_handovers'
    )
    verified_at = models.DateTimeField("Verified At", null=True, blank=True)

    class Meta:
        verbose_name = "Cash Handover"
        verbose_name_plural = "Cash Handovers"
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['library', 'status']),
            models.Index(fields=['staff', 'status', 'created_at']),
        ]

    def __str__(self):
        return f"{self.staff} - {self.amount} ({self.get_status_display()})"
