# subscriptions/models.py

from django.db import models
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from decimal import Decimal
import logging

from utils.models import TenantModel

logger = logging.getLogger(__name__)


# =============================================================================
# PLAN MODEL
# =============================================================================

class Plan(TenantModel):
    """A priced membership plan, optionally limited to one branch"""

    DURATION_UNIT_CHOICES = [
        ('DAYS', 'Days'),
        ('WEEKS', 'Weeks'),
        ('MONTHS', 'Months'),
    ]

    branch = models.ForeignKey(
        'branches.Branch',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='plans',
        help_text="Leave empty for a plan offered at every branch"
    )
    name = models.CharField("Plan Name", max_length=100)
    description = models.TextField("Description", blank=True)
    price = models.DecimalField(
        "Price", max_digits=10, decimal_places=2,
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    duration = models.PositiveIntegerField("Duration", default=1)
    duration_unit = models.CharField(
        "Duration Unit", max_length=10, choices=DURATION_UNIT_CHOICES, default='MONTHS'
    )
    hours_per_day = models.PositiveSmallIntegerField("Hours Per Day", null=True, blank=True)
    includes_seat = models.BooleanField("Includes Seat", default=True)
    includes_locker = models.BooleanField("Includes Locker", default=False)
    is_active = models.BooleanField("Active", default=True)

    class Meta:
        verbose_name = "Plan"
        verbose_name_plural = "Plans"
        ordering = ['price', 'name']

    def __str__(self):
        return f"{self.name} ({self.duration_display})"

    def clean(self):
        super().clean()
        if self.duration == 0:
            raise ValidationError({'duration': "Duration must be at least 1"})
        if self.branch_id and self.branch.library_id != self.library_id:
            raise ValidationError({'branch': "Branch belongs to another library"})

    @property
    def duration_display(self):
        unit = self.get_duration_unit_display()
        if self.duration == 1:
            unit = unit.rstrip('s')
        return f"{self.duration} {unit}"


# =============================================================================
# SUBSCRIPTION MODEL
# =============================================================================

class Subscription(TenantModel):
    """
    One membership period of a student at a branch.

    A student accumulates subscriptions as history; the current one is
    derived by ``students.status``, never stored.
    """

    STATUS_CHOICES = [
        ('ACTIVE', 'Active'),
        ('PENDING', 'Pending'),
        ('EXPIRED', 'Expired'),
        ('CANCELLED', 'Cancelled'),
    ]

    # Statuses that hold a seat or locker
    OCCUPYING_STATUSES = ['ACTIVE', 'PENDING']

    # -------------------------------------------------------------------------
    # RELATIONSHIPS
    # -------------------------------------------------------------------------

    student = models.ForeignKey(
        'students.Student', on_delete=models.CASCADE, related_name='subscriptions'
    )
    branch = models.ForeignKey(
        'branches.Branch', on_delete=models.CASCADE, related_name='subscriptions'
    )
    plan = models.ForeignKey(
        Plan, on_delete=models.PROTECT, related_name='subscriptions'
    )
    seat = models.ForeignKey(
        'branches.Seat',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='subscriptions'
    )
    locker = models.ForeignKey(
        'branches.Locker',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='subscriptions'
    )

    # -------------------------------------------------------------------------
    # PERIOD & STATUS
    # -------------------------------------------------------------------------

    status = models.CharField(
        "Status", max_length=10, choices=STATUS_CHOICES, default='ACTIVE', db_index=True
    )
    start_date = models.DateField("Start Date", db_index=True)
    end_date = models.DateField("End Date", db_index=True)
    amount = models.DecimalField(
        "Amount", max_digits=10, decimal_places=2, default=Decimal('0.00')
    )
    reminder_sent_at = models.DateTimeField("Expiry Reminder Sent", null=True, blank=True)

    class Meta:
        verbose_name = "Subscription"
        verbose_name_plural = "Subscriptions"
        ordering = ['-start_date']
        indexes = [
            models.Index(fields=['library', 'status', 'end_date']),
            models.Index(fields=['student', 'branch']),
        ]

    def __str__(self):
        return f"{self.student} - {self.plan.name} ({self.start_date} to {self.end_date})"

    def clean(self):
        super().clean()
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValidationError({'end_date': "End date cannot be before start date"})
        if self.seat_id and self.seat.branch_id != self.branch_id:
            raise ValidationError({'seat': "Seat belongs to another branch"})
        if self.locker_id and self.locker.branch_id != self.branch_id:
            raise ValidationError({'locker': "Locker belongs to another branch"})

    def days_remaining(self, today):
        return max((self.end_date - today).days, 0)
