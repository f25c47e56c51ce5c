# attendance/models.py

from django.db import models
import logging

from utils.models import TenantModel

logger = logging.getLogger(__name__)


# =============================================================================
# ATTENDANCE MODEL
# =============================================================================

class Attendance(TenantModel):
    """One visit of a student to a branch"""

    STATUS_CHOICES = [
        ('PRESENT', 'Present'),
        ('SHORT_SESSION', 'Short Session'),
        ('FULL_DAY', 'Full Day'),
        ('AUTO_CHECKOUT', 'Auto Checkout'),
    ]

    student = models.ForeignKey(
        'students.Student', on_delete=models.CASCADE, related_name='attendance_records'
    )
    branch = models.ForeignKey(
        'branches.Branch', on_delete=models.CASCADE, related_name='attendance_records'
    )
    date = models.DateField("Date", db_index=True)
    check_in = models.DateTimeField("Check In")
    check_out = models.DateTimeField("Check Out", null=True, blank=True)
    duration = models.PositiveIntegerField("Duration (minutes)", null=True, blank=True)
    status = models.CharField("Status", max_length=15, choices=STATUS_CHOICES, default='PRESENT')

    class Meta:
        verbose_name = "Attendance"
        verbose_name_plural = "Attendance Records"
        ordering = ['-check_in']
        indexes = [
            models.Index(fields=['student', 'check_out']),
            models.Index(fields=['library', 'date']),
        ]

    def __str__(self):
        return f"{self.student} @ {self.branch} on {self.date}"
