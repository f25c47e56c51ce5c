# fees/exports.py

"""
Excel and CSV exports of payment lists.
"""

from django.http import HttpResponse
from django.utils import timezone
import logging

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Alignment

from core.utils import generate_csv_response, localize_datetime

logger = logging.getLogger(__name__)

PAYMENT_COLUMNS = [
    'Invoice', 'Date', 'Student', 'Branch', 'Description',
    'Method', 'Status', 'Amount', 'Discount', 'Collected By',
]


def payment_row_values(payment, library=None):
    paid_at = localize_datetime(payment.payment_date, library or payment.library)
    return [
        payment.invoice_number,
        paid_at.strftime('%Y-%m-%d %H:%M') if paid_at else '',
        payment.student.name,
        payment.branch.name,
        payment.description,
        payment.get_method_display(),
        payment.get_status_display(),
        float(payment.amount),
        float(payment.discount or 0),
        payment.collected_by.full_name if payment.collected_by_id else '',
    ]


def export_payments_excel(payments, filename=None, library=None):
    """Payments to an .xlsx download, one row per payment"""
    filename = filename or f'payments_{timezone.now().strftime("%Y%m%d")}.xlsx'

    wb = Workbook()
    ws = wb.active
    ws.title = "Payments"
    ws.append(PAYMENT_COLUMNS)

    for cell in ws[1]:
        cell.fill = PatternFill(start_color='4472C4', end_color='4472C4', fill_type='solid')
        cell.font = Font(bold=True, color='FFFFFF')
        cell.alignment = Alignment(horizontal='center')

    count = 0
    for payment in payments:
        ws.append(payment_row_values(payment, library))
        count += 1

    for row in ws.iter_rows(min_row=2, min_col=8, max_col=9):
        for cell in row:
            cell.number_format = '#,##0.00'

    for column, width in zip('ABCDEFGHIJ', [20, 18, 25, 20, 30, 14, 20, 12, 12, 20]):
        ws.column_dimensions[column].width = width

    response = HttpResponse(
        content_type='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'
    )
    response['Content-Disposition'] = f'attachment; filename="{filename}"'
    wb.save(response)

    logger.info(f"Exported {count} payments to {filename}")
    return response


def export_payments_csv(payments, filename=None, library=None):
    filename = filename or f'payments_{timezone.now().strftime("%Y%m%d")}.csv'
    data = [payment_row_values(payment, library) for payment in payments]
    return generate_csv_response(data, filename, headers=PAYMENT_COLUMNS)
