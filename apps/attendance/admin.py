# attendance/admin.py

from django.contrib import admin
from .models import Attendance


@admin.register(Attendance)
class AttendanceAdmin(admin.ModelAdmin):
    list_display = ['student', 'branch', 'date', 'check_in', 'check_out', 'duration', 'status']
    list_filter = ['status', 'date', 'library']
    search_fields = ['student__name', 'branch__name']
    raw_id_fields = ['student', 'branch']
    date_hierarchy = 'date'
