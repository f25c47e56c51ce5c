# fees/invoices.py

"""
Payment invoice (receipt) rendering with reportlab.
"""

from io import BytesIO
import logging

from django.http import HttpResponse
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer

from core.utils import format_money, localize_datetime

logger = logging.getLogger(__name__)


def invoice_line_items(payment):
    """(description, period, amount) rows printed on the invoice"""
    library = payment.library
    if payment.subscription_id:
        subscription = payment.subscription
        period = f"{subscription.start_date:%d %b %Y} - {subscription.end_date:%d %b %Y}"
        seat = f", Seat {subscription.seat.display_number}" if subscription.seat_id else ''
        description = f"{subscription.plan.name} ({subscription.plan.duration_display}){seat}"
    elif payment.additional_fee_id:
        period = ''
        description = payment.additional_fee.name
    else:
        period = ''
        description = payment.remarks or payment.get_payment_type_display()

    gross = payment.amount + (payment.discount or 0)
    return [(description[:60], period, format_money(gross, library))]


def generate_invoice_pdf(payment):
    """
    Render the invoice of ``payment`` to PDF bytes.

    Shows the library's receipt name, the student, the line item, any
    discount, the amount paid and the payment method and status.
    """
    library = payment.library
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer, pagesize=A4,
        leftMargin=0.75 * inch, rightMargin=0.75 * inch,
        topMargin=0.75 * inch, bottomMargin=0.75 * inch,
    )
    elements = []

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        'InvoiceTitle',
        parent=styles['Heading1'],
        fontSize=22,
        textColor=colors.HexColor('#1a1a1a'),
        spaceAfter=6,
        alignment=TA_CENTER
    )
    right_style = ParagraphStyle('InvoiceRight', parent=styles['Normal'], alignment=TA_RIGHT)

    elements.append(Paragraph(library.display_name, title_style))
    contact = ' | '.join(filter(None, [payment.branch.name, library.contact_phone, library.contact_email]))
    if contact:
        elements.append(Paragraph(contact, ParagraphStyle('Contact', parent=styles['Normal'], alignment=TA_CENTER)))
    elements.append(Spacer(1, 18))

    paid_at = localize_datetime(payment.payment_date, library)
    header = Table(
        [
            [Paragraph(f"<b>Billed to</b><br/>{payment.student.name}<br/>"
                       f"{payment.student.phone or ''} {payment.student.email or ''}", styles['Normal']),
             Paragraph(f"<b>Invoice</b> {payment.invoice_number}<br/>"
                       f"<b>Date</b> {paid_at:%d %b %Y %H:%M}", right_style)],
        ],
        colWidths=[3.5 * inch, 3.5 * inch],
    )
    elements.append(header)
    elements.append(Spacer(1, 18))

    data = [['Description', 'Period', 'Amount']]
    data.extend(invoice_line_items(payment))
    if payment.discount:
        data.append(['Discount', '', f"- {format_money(payment.discount, library)}"])
    data.append(['Total Paid', '', format_money(payment.amount, library)])

    table = Table(data, colWidths=[3.4 * inch, 2.2 * inch, 1.4 * inch], repeatRows=1)
    table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#4472C4')),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('ALIGN', (0, 0), (-1, -1), 'LEFT'),
        ('ALIGN', (2, 0), (2, -1), 'RIGHT'),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTNAME', (0, -1), (-1, -1), 'Helvetica-Bold'),
        ('BOTTOMPADDING', (0, 0), (-1, 0), 10),
        ('BACKGROUND', (0, 1), (-1, -1), colors.beige),
        ('GRID', (0, 0), (-1, -1), 1, colors.black)
    ]))
    elements.append(table)
    elements.append(Spacer(1, 18))

    elements.append(Paragraph(
        f"Paid by {payment.get_method_display()}"
        f"{' (Ref: ' + payment.transaction_id + ')' if payment.transaction_id else ''}"
        f" - {payment.get_status_display()}",
        styles['Normal']
    ))
    if payment.collected_by_id:
        elements.append(Paragraph(f"Received by {payment.collected_by.full_name}", styles['Normal']))

    doc.build(elements)
    logger.info(f"Rendered invoice {payment.invoice_number}")
    return buffer.getvalue()


def invoice_response(payment, inline=False):
    response = HttpResponse(generate_invoice_pdf(payment), content_type='application/pdf')
    disposition = 'inline' if inline else 'attachment'
    response['Content-Disposition'] = f'{disposition}; filename="{payment.invoice_number}.pdf"'
    return response
