# fees/utils.py

"""
Number generation for fee documents.
"""

import logging

logger = logging.getLogger(__name__)

INVOICE_PREFIX = 'INV'


def generate_invoice_number(library, year):
    """
    Next invoice number for ``library`` in ``year``.

    Format: INV-2025-000001, sequential per library and year.
    """
    from fees.models import Payment

    search_prefix = f"{INVOICE_PREFIX}-{year}-"

    last_number = (
        Payment.objects.for_library(library)
        .filter(invoice_number__startswith=search_prefix)
        .order_by('-invoice_number')
        .values_list('invoice_number', flat=True)
        .first()
    )

    next_sequence = 1
    if last_number:
        try:
            next_sequence = int(last_number.rsplit('-', 1)[-1]) + 1
        except ValueError:
            logger.warning(f"Unparseable invoice number: {last_number}")

    return f"{search_prefix}{next_sequence:06d}"
