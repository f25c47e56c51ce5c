# fees/admin.py

from django.contrib import admin
from .models import AdditionalFee, Payment


@admin.register(AdditionalFee)
class AdditionalFeeAdmin(admin.ModelAdmin):
    list_display = ['name', 'library', 'branch', 'amount', 'is_active']
    list_filter = ['is_active', 'library']
    search_fields = ['name']


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ['invoice_number', 'student', 'branch', 'amount', 'method', 'status', 'payment_date']
    list_filter = ['status', 'method', 'payment_type', 'library']
    search_fields = ['invoice_number', 'transaction_id', 'student__name']
    readonly_fields = ['id', 'invoice_number', 'created_at', 'updated_at', 'verified_at']
    raw_id_fields = ['student', 'subscription', 'collected_by', 'verified_by', 'handover']
    date_hierarchy = 'payment_date'
