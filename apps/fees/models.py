# fees/models.py

from django.db import models
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from decimal import Decimal
import logging

from utils.models import TenantModel

logger = logging.getLogger(__name__)


# =============================================================================
# ADDITIONAL FEE MODEL
# =============================================================================

class AdditionalFee(TenantModel):
    """One-off charge outside a plan (registration, locker key, ID card...)"""

    branch = models.ForeignKey(
        'branches.Branch',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='additional_fees'
    )
    name = models.CharField("Fee Name", max_length=100)
    amount = models.DecimalField(
        "Amount", max_digits=10, decimal_places=2,
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    description = models.TextField("Description", blank=True)
    is_active = models.BooleanField("Active", default=True)

    class Meta:
        verbose_name = "Additional Fee"
        verbose_name_plural = "Additional Fees"
        ordering = ['name']

    def __str__(self):
        return f"{self.name} ({self.amount})"


# =============================================================================
# PAYMENT MODEL
# =============================================================================

class Payment(TenantModel):
    """Money received from a student for a subscription or an additional fee"""

    PAYMENT_STATUS_CHOICES = [
        ('PENDING', 'Pending'),
        ('COMPLETED', 'Completed'),
        ('FAILED', 'Failed'),
        ('PENDING_VERIFICATION', 'Pending Verification'),
    ]

    PAYMENT_METHOD_CHOICES = [
        ('CASH', 'Cash'),
        ('UPI', 'UPI'),
        ('CARD', 'Card'),
        ('BANK_TRANSFER', 'Bank Transfer'),
        ('ONLINE', 'Online'),
    ]

    PAYMENT_TYPE_CHOICES = [
        ('SUBSCRIPTION', 'Subscription'),
        ('ADDITIONAL_FEE', 'Additional Fee'),
        ('OTHER', 'Other'),
    ]

    # -------------------------------------------------------------------------
    # RELATIONSHIPS
    # -------------------------------------------------------------------------

    student = models.ForeignKey(
        'students.Student', on_delete=models.PROTECT, related_name='payments'
    )
    branch = models.ForeignKey(
        'branches.Branch', on_delete=models.PROTECT, related_name='payments'
    )
    subscription = models.ForeignKey(
        'subscriptions.Subscription',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='payments'
    )
    additional_fee = models.ForeignKey(
        AdditionalFee,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='payments'
    )

    # -------------------------------------------------------------------------
    # PAYMENT DETAILS
    # -------------------------------------------------------------------------

    amount = models.DecimalField(
        "Amount", max_digits=10, decimal_places=2,
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    discount = models.DecimalField(
        "Discount", max_digits=10, decimal_places=2, default=Decimal('0.00')
    )
    method = models.CharField("Method", max_length=15, choices=PAYMENT_METHOD_CHOICES, default='CASH')
    status = models.CharField(
        "Payment Status",
        max_length=20,
        choices=PAYMENT_STATUS_CHOICES,
        default='COMPLETED',
        db_index=True
    )
    payment_type = models.CharField(
        "Payment Type", max_length=20, choices=PAYMENT_TYPE_CHOICES, default='SUBSCRIPTION'
    )
    payment_date = models.DateTimeField("Payment Date", db_index=True)
    invoice_number = models.CharField("Invoice Number", max_length=50, blank=True, db_index=True)
    transaction_id = models.CharField("Transaction ID", max_length=100, blank=True)
    remarks = models.TextField("Remarks", blank=True)

    # -------------------------------------------------------------------------
    # CUSTODY & VERIFICATION
    # -------------------------------------------------------------------------

    collected_by = models.ForeignKey(
        'accounts.UserProfile',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='collected_payments',
        help_text="Staff member holding the money"
    )
    verified_by = models.ForeignKey(
        'accounts.UserProfile',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='verified_payments'
    )
    verified_at = models.DateTimeField("Verified At", null=True, blank=True)
    handover = models.ForeignKey(
        'khatabook.CashHandover',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='payments',
        help_text="Handover that claims this collected payment"
    )

    class Meta:
        verbose_name = "Payment"
        verbose_name_plural = "Payments"
        ordering = ['-payment_date', '-created_at']
        indexes = [
            models.Index(fields=['library', 'status', 'payment_date']),
            models.Index(fields=['collected_by', 'status']),
            models.Index(fields=['student', 'payment_date']),
        ]

    def __str__(self):
        return f"{self.invoice_number or self.pk} - {self.student.name}"

    def clean(self):
        super().clean()
        if self.subscription_id and self.additional_fee_id:
            raise ValidationError("A payment is for a subscription or an additional fee, not both")
        if self.discount and self.discount < 0:
            raise ValidationError({'discount': "Discount cannot be negative"})

    @property
    def description(self):
        if self.subscription_id:
            return f"Plan: {self.subscription.plan.name}"
        if self.additional_fee_id:
            return f"Fee: {self.additional_fee.name}"
        return self.get_payment_type_display()
