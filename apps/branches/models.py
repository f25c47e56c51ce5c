# branches/models.py

from django.db import models
from django.core.exceptions import ValidationError
import uuid
import logging

from utils.models import TenantModel
from accounts.models import phone_validator

logger = logging.getLogger(__name__)


def generate_qr_token():
    return uuid.uuid4().hex


# =============================================================================
# BRANCH MODEL
# =============================================================================

class Branch(TenantModel):
    """A physical location of a library"""

    # -------------------------------------------------------------------------
    # BASIC INFORMATION
    # -------------------------------------------------------------------------

    name = models.CharField("Branch Name", max_length=150)
    description = models.TextField("Description", blank=True)
    manager_name = models.CharField("Manager Name", max_length=150, blank=True)

    # -------------------------------------------------------------------------
    # LOCATION & CONTACT
    # -------------------------------------------------------------------------

    address = models.TextField("Address", blank=True)
    area = models.CharField("Area", max_length=100, blank=True)
    city = models.CharField("City", max_length=100, blank=True)
    state = models.CharField("State", max_length=100, blank=True)
    pincode = models.CharField("Pincode", max_length=10, blank=True)
    contact_phone = models.CharField(
        "Contact Phone", max_length=15, blank=True, validators=[phone_validator]
    )
    contact_email = models.EmailField("Contact Email", blank=True)

    # -------------------------------------------------------------------------
    # OPERATIONS
    # -------------------------------------------------------------------------

    opening_time = models.TimeField("Opening Time", null=True, blank=True)
    closing_time = models.TimeField("Closing Time", null=True, blank=True)
    is_24_hours = models.BooleanField("Open 24 Hours", default=False)
    amenities = models.JSONField(
        "Amenities",
        default=list,
        blank=True,
        help_text="List of amenity names, e.g. ['WiFi', 'AC', 'Lockers']"
    )

    qr_code = models.CharField(
        "QR Code Token",
        max_length=64,
        unique=True,
        default=generate_qr_token,
        help_text="Token encoded in the attendance QR poster"
    )
    is_active = models.BooleanField("Active", default=True)

    class Meta:
        verbose_name = "Branch"
        verbose_name_plural = "Branches"
        ordering = ['name']
        indexes = [
            models.Index(fields=['library', 'name']),
        ]

    def __str__(self):
        return self.name

    def clean(self):
        super().clean()
        if not self.is_24_hours and self.opening_time and self.closing_time:
            if self.opening_time == self.closing_time:
                raise ValidationError({'closing_time': "Closing time must differ from opening time"})

    @property
    def operating_hours_display(self):
        if self.is_24_hours:
            return "24 Hours"
        if self.opening_time and self.closing_time:
            return f"{self.opening_time:%I:%M %p} - {self.closing_time:%I:%M %p}"
        return "Not set"

    def get_qr_payload(self):
        """String printed in the QR poster"""
        return f'{{"code": "{self.qr_code}"}}'


# =============================================================================
# SEAT MODEL
# =============================================================================

class Seat(TenantModel):
    """
    A bookable seat. Occupancy is derived from subscriptions that
    reference the seat and cover the date.
    """

    branch = models.ForeignKey(Branch, on_delete=models.CASCADE, related_name='seats')
    number = models.CharField("Seat Number", max_length=20)
    section = models.CharField("Section", max_length=50, blank=True, default='General')
    is_active = models.BooleanField("Active", default=True)

    class Meta:
        verbose_name = "Seat"
        verbose_name_plural = "Seats"
        ordering = ['branch__name', 'number']
        constraints = [
            models.UniqueConstraint(fields=['branch', 'number'], name='unique_seat_number_per_branch'),
        ]

    def __str__(self):
        return f"{self.branch.name} - {self.display_number}"

    @property
    def display_number(self):
        from students.status import format_seat_number
        return format_seat_number(self.number)


# =============================================================================
# LOCKER MODEL
# =============================================================================

class Locker(TenantModel):

    branch = models.ForeignKey(Branch, on_delete=models.CASCADE, related_name='lockers')
    number = models.CharField("Locker Number", max_length=20)
    notes = models.CharField("Notes", max_length=255, blank=True)
    is_active = models.BooleanField("Active", default=True)

    class Meta:
        verbose_name = "Locker"
        verbose_name_plural = "Lockers"
        ordering = ['branch__name', 'number']
        constraints = [
            models.UniqueConstraint(fields=['branch', 'number'], name='unique_locker_number_per_branch'),
        ]

    def __str__(self):
        return f"{self.branch.name} - L-{self.number}"
