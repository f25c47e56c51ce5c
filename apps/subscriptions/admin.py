# subscriptions/admin.py

from django.contrib import admin
from .models import Plan, Subscription


@admin.register(Plan)
class PlanAdmin(admin.ModelAdmin):
    list_display = ['name', 'library', 'branch', 'price', 'duration', 'duration_unit', 'is_active']
    list_filter = ['is_active', 'duration_unit', 'library']
    search_fields = ['name', 'description']
    readonly_fields = ['id', 'created_at', 'updated_at']


@admin.register(Subscription)
class SubscriptionAdmin(admin.ModelAdmin):
    list_display = ['student', 'plan', 'branch', 'seat', 'status', 'start_date', 'end_date', 'amount']
    list_filter = ['status', 'library', 'branch']
    search_fields = ['student__name', 'student__email', 'student__phone', 'plan__name']
    date_hierarchy = 'end_date'
    readonly_fields = ['id', 'created_at', 'updated_at', 'reminder_sent_at']
    raw_id_fields = ['student', 'seat', 'locker']
