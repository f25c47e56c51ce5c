# khatabook/exports.py

"""
CSV and PDF renderings of a staff member's khatabook rows.

Both take the rows returned by ``CashLedgerService.get_staff_khatabook``
and write one line per transaction in LEDGER_COLUMNS order.
"""

from io import BytesIO
import logging

from django.http import HttpResponse
from django.utils import timezone
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer

from core.utils import format_money, generate_csv_response, localize_datetime
from khatabook.services import LEDGER_COLUMNS

logger = logging.getLogger(__name__)


def ledger_row_values(row, library=None):
    """One khatabook row as a list in LEDGER_COLUMNS order"""
    date = localize_datetime(row['date'], library)
    return [
        date.strftime('%Y-%m-%d %H:%M') if date else '',
        row['type'],
        row['description'],
        row['method'],
        format_money(row['amount'], library, include_symbol=False),
        row['status'],
    ]


def ledger_rows_to_csv(rows, filename=None, library=None):
    filename = filename or f'khatabook_{timezone.now().strftime("%Y%m%d")}.csv'
    data = [ledger_row_values(row, library) for row in rows]
    return generate_csv_response(data, filename, headers=LEDGER_COLUMNS)


def build_ledger_pdf(rows, title='Khatabook', library=None, summary=None):
    """Render the ledger to PDF bytes"""
    buffer = BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4)
    elements = []

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        'LedgerTitle',
        parent=styles['Heading1'],
        fontSize=20,
        textColor=colors.HexColor('#1a1a1a'),
        spaceAfter=20,
        alignment=TA_CENTER
    )

    elements.append(Paragraph(title, title_style))
    if summary is not None:
        elements.append(Paragraph(
            f"Cash in hand: {format_money(summary.cash_in_hand, library)} &nbsp; "
            f"Pending: {format_money(summary.pending_handover_amount, library)} &nbsp; "
            f"Available: {format_money(summary.available_balance, library)}",
            styles['Normal']
        ))
    elements.append(Spacer(1, 20))

    data = [LEDGER_COLUMNS]
    for row in rows:
        values = ledger_row_values(row, library)
        values[2] = values[2][:30]
        data.append(values)

    table = Table(data, repeatRows=1)
    table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#4472C4')),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('ALIGN', (0, 0), (-1, -1), 'LEFT'),
        ('ALIGN', (4, 1), (4, -1), 'RIGHT'),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, 0), 10),
        ('FONTSIZE', (0, 1), (-1, -1), 9),
        ('BOTTOMPADDING', (0, 0), (-1, 0), 10),
        ('BACKGROUND', (0, 1), (-1, -1), colors.beige),
        ('GRID', (0, 0), (-1, -1), 1, colors.black)
    ]))

    elements.append(table)
    doc.build(elements)
    return buffer.getvalue()


def export_ledger_pdf(rows, filename=None, title='Khatabook', library=None, summary=None):
    filename = filename or f'khatabook_{timezone.now().strftime("%Y%m%d")}.pdf'
    response = HttpResponse(
        build_ledger_pdf(rows, title, library, summary), content_type='application/pdf'
    )
    response['Content-Disposition'] = f'attachment; filename="{filename}"'
    logger.info(f"Exported {len(rows)} khatabook rows to {filename}")
    return response
