# khatabook/urls.py

from django.urls import path
from . import views

app_name = 'khatabook'

urlpatterns = [
    # =============================================================================
    # STAFF LEDGER
    # =============================================================================
    path('', views.staff_khatabook, name='staff_khatabook'),
    path('summary/', views.cash_summary, name='cash_summary'),
    path('transactions/', views.transactions, name='transactions'),
    path('pending-payments/', views.pending_cash_payments, name='pending_cash_payments'),
    path('handovers/submit/', views.submit_handover, name='submit_handover'),
    path('export/csv/', views.export_khatabook_csv, name='export_csv'),
    path('export/pdf/', views.export_khatabook_pdf, name='export_pdf'),


    # =============================================================================
    # OWNER HANDOVER REVIEW
    # =============================================================================
    path('handovers/', views.handover_dashboard, name='handover_dashboard'),
    path('handovers/pending/', views.pending_handovers, name='pending_handovers'),
    path('handovers/<uuid:pk>/verify/', views.verify_handover, name='verify_handover'),
    path('handovers/<uuid:pk>/reject/', views.reject_handover, name='reject_handover'),
    path('staff/balances/', views.staff_balances, name='staff_balances'),
    path('staff/<uuid:staff_id>/', views.staff_ledger, name='staff_ledger'),
    path('staff/<uuid:staff_id>/export/', views.export_staff_ledger, name='export_staff_ledger'),
]
