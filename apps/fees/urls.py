# fees/urls.py

from django.urls import path
from . import views

app_name = 'fees'

urlpatterns = [
    # =============================================================================
    # PAYMENTS
    # =============================================================================
    path('payments/', views.payment_list, name='payment_list'),
    path('payments/export/', views.export_payments, name='export_payments'),
    path('payments/collect/', views.collect_payment, name='collect_payment'),
    path('payments/record/', views.manual_payment, name='manual_payment'),
    path('payments/pending/', views.pending_payments, name='pending_payments'),
    path('payments/<uuid:pk>/verify/', views.verify_payment, name='verify_payment'),
    path('payments/<uuid:pk>/invoice/', views.payment_invoice, name='payment_invoice'),

    # =============================================================================
    # ADDITIONAL FEES
    # =============================================================================
    path('fees/', views.fee_list, name='fee_list'),
    path('fees/<uuid:pk>/toggle/', views.fee_toggle, name='fee_toggle'),

    # =============================================================================
    # STATISTICS
    # =============================================================================
    path('stats/', views.finance_stats, name='finance_stats'),
]
