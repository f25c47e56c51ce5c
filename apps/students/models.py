# students/models.py

from django.db import models
from django.core.exceptions import ValidationError
from django.contrib.auth.hashers import make_password, check_password
import logging

from utils.models import TenantModel
from accounts.models import phone_validator

logger = logging.getLogger(__name__)


# =============================================================================
# STUDENT MODEL
# =============================================================================

class Student(TenantModel):
    """
    A library member.

    ``library`` is the tenant that registered the student. The lifecycle
    status (active / expired / new / no_plan / blocked) is derived from
    subscriptions by ``students.status`` and never stored.
    """

    # -------------------------------------------------------------------------
    # CHOICE FIELDS
    # -------------------------------------------------------------------------

    GENDER_CHOICES = (
        ('M', 'Male'),
        ('F', 'Female'),
        ('O', 'Other'),
    )

    GOVT_ID_STATUS_CHOICES = (
        ('NONE', 'Not Uploaded'),
        ('PENDING', 'Pending Review'),
        ('VERIFIED', 'Verified'),
        ('REJECTED', 'Rejected'),
    )

    # -------------------------------------------------------------------------
    # IDENTIFICATION & BASIC INFORMATION
    # -------------------------------------------------------------------------

    branch = models.ForeignKey(
        'branches.Branch',
        verbose_name="Home Branch",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='home_students'
    )
    name = models.CharField("Full Name", max_length=150)
    email = models.EmailField("Email", blank=True, null=True, db_index=True)
    phone = models.CharField(
        "Phone", max_length=10, blank=True, null=True, db_index=True,
        validators=[phone_validator]
    )
    password = models.CharField("Password", max_length=128, blank=True)
    date_of_birth = models.DateField("Date of Birth", null=True, blank=True)
    gender = models.CharField("Gender", max_length=1, choices=GENDER_CHOICES, blank=True)

    # -------------------------------------------------------------------------
    # ADDRESS
    # -------------------------------------------------------------------------

    address = models.TextField("Address", blank=True)
    area = models.CharField("Area", max_length=100, blank=True)
    city = models.CharField("City", max_length=100, blank=True)
    state = models.CharField("State", max_length=100, blank=True)
    pincode = models.CharField("Pincode", max_length=10, blank=True)

    # -------------------------------------------------------------------------
    # GUARDIAN
    # -------------------------------------------------------------------------

    guardian_name = models.CharField("Guardian Name", max_length=150, blank=True)
    guardian_phone = models.CharField(
        "Guardian Phone", max_length=10, blank=True, validators=[phone_validator]
    )

    # -------------------------------------------------------------------------
    # DOCUMENTS & VERIFICATION
    # -------------------------------------------------------------------------

    photo = models.ImageField("Photo", upload_to='students/photos/', null=True, blank=True)
    govt_id = models.FileField("Government ID", upload_to='students/ids/', null=True, blank=True)
    govt_id_status = models.CharField(
        "Government ID Status",
        max_length=10,
        choices=GOVT_ID_STATUS_CHOICES,
        default='NONE'
    )

    is_blocked = models.BooleanField("Blocked", default=False, db_index=True)

    class Meta:
        verbose_name = "Student"
        verbose_name_plural = "Students"
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['library', 'created_at']),
            models.Index(fields=['library', 'is_blocked']),
        ]

    def __str__(self):
        return self.name

    def clean(self):
        super().clean()
        if not self.email and not self.phone:
            raise ValidationError("Either email or phone number is required")

    def set_password(self, raw_password):
        self.password = make_password(raw_password)

    def check_password(self, raw_password):
        return bool(self.password) and check_password(raw_password, self.password)


# =============================================================================
# STUDENT NOTE MODEL
# =============================================================================

class StudentNote(TenantModel):
    """Free-text note an owner or staff member leaves on a student"""

    student = models.ForeignKey(Student, on_delete=models.CASCADE, related_name='notes')
    content = models.TextField("Note")
    created_by = models.CharField("Written By", max_length=150, blank=True)

    class Meta:
        verbose_name = "Student Note"
        verbose_name_plural = "Student Notes"
        ordering = ['-created_at']

    def __str__(self):
        return f"Note on {self.student} by {self.created_by or 'System'}"


# =============================================================================
# SUPPORT TICKET MODEL
# =============================================================================

class SupportTicket(TenantModel):

    STATUS_CHOICES = [
        ('OPEN', 'Open'),
        ('IN_PROGRESS', 'In Progress'),
        ('RESOLVED', 'Resolved'),
        ('CLOSED', 'Closed'),
    ]

    CATEGORY_CHOICES = [
        ('GENERAL', 'General'),
        ('FACILITY', 'Facility'),
        ('PAYMENT', 'Payment'),
        ('OTHER', 'Other'),
    ]

    student = models.ForeignKey(Student, on_delete=models.CASCADE, related_name='tickets')
    subject = models.CharField("Subject", max_length=200)
    description = models.TextField("Description")
    category = models.CharField("Category", max_length=20, choices=CATEGORY_CHOICES, default='GENERAL')
    status = models.CharField("Status", max_length=15, choices=STATUS_CHOICES, default='OPEN')
    resolved_at = models.DateTimeField("Resolved At", null=True, blank=True)

    class Meta:
        verbose_name = "Support Ticket"
        verbose_name_plural = "Support Tickets"
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.subject} ({self.get_status_display()})"
