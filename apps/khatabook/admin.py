# khatabook/admin.py

from django.contrib import admin
from .models import CashHandover


@admin.register(CashHandover)
class CashHandoverAdmin(admin.ModelAdmin):
    list_display = ['created_at', 'staff', 'branch', 'amount', 'method', 'status', 'verified_by', 'library']
    list_filter = ['status', 'method', 'library']
    search_fields = ['staff__user__first_name', 'staff__user__last_name', 'notes']
    readonly_fields = ['id', 'created_at', 'updated_at', 'verified_at']
    raw_id_fields = ['staff', 'verified_by', 'branch']
