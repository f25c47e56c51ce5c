# fees/signals.py

"""
Payment signal handlers:
- Invoice number generation
- Payment logging
"""

from django.db.models.signals import pre_save, post_save
from django.dispatch import receiver
from django.utils import timezone
import logging

from fees.utils import generate_invoice_number

logger = logging.getLogger(__name__)


@receiver(pre_save, sender='fees.Payment')
def payment_pre_save(sender, instance, **kwargs):
    """
    Pre-save processing for payments:
    - Default the payment date to now
    - Auto-generate the invoice number
    """
    if kwargs.get('raw', False):
        return

    if not instance.payment_date:
        instance.payment_date = timezone.now()

    if not instance.invoice_number:
        from core.utils import localize_datetime
        year = localize_datetime(instance.payment_date, instance.library).year
        instance.invoice_number = generate_invoice_number(instance.library, year)
        logger.info(f"Generated invoice number: {instance.invoice_number}")


@receiver(post_save, sender='fees.Payment')
def payment_post_save(sender, instance, created, **kwargs):
    if kwargs.get('raw', False):
        return

    if created:
        logger.info(
            f"Payment created: {instance.invoice_number} - "
            f"Student: {instance.student.name} - "
            f"Amount: {instance.amount} ({instance.method}, {instance.status})"
        )
